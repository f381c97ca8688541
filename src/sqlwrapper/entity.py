"""
Record contract.

A record is a mutable dataclass that declares the table it lives in and the
column holding its primary key. Subclass `Entity` and set `__tablename__`
(and `__pkcolumn__` when the key column is not `id`):

    @dataclass
    class User(Entity):
        __tablename__ = 'users'

        id: int = 0
        name: str = ''
        nickname: str = db_field('nick_name', default='')
        cache: dict = db_field('-', default_factory=dict)

Any dataclass exposing `table_name()` and `pk_column()` class methods works
as well.
"""
import dataclasses
from typing import Any, ClassVar

from sqlwrapper.exceptions import NotEntityError

__all__ = ['Entity', 'db_field', 'table_name_of', 'pk_column_of', 'EXCLUDED']

EXCLUDED = '-'


class Entity:
    """Mixin giving a dataclass its table name and primary key column.
    """
    __tablename__: ClassVar[str] = ''
    __pkcolumn__: ClassVar[str] = 'id'

    @classmethod
    def table_name(cls) -> str:
        if not cls.__tablename__:
            raise NotEntityError(f'{cls.__name__} does not declare __tablename__')
        return cls.__tablename__

    @classmethod
    def pk_column(cls) -> str:
        return cls.__pkcolumn__


def db_field(column: str | None = None, **kwargs: Any) -> Any:
    """Dataclass field with a column name override.

    Pass '-' as the column to exclude the field from every statement.
    """
    metadata = dict(kwargs.pop('metadata', None) or {})
    if column:
        metadata['db'] = column
    return dataclasses.field(metadata=metadata, **kwargs)


def _record_class(record: Any) -> type:
    return record if isinstance(record, type) else type(record)


def table_name_of(record: Any) -> str:
    """Table name declared by a record instance or type."""
    cls = _record_class(record)
    fn = getattr(cls, 'table_name', None)
    if not callable(fn):
        raise NotEntityError(f'{cls.__name__} does not declare a table name')
    return fn()


def pk_column_of(record: Any) -> str | None:
    """Primary key column declared by a record, or None."""
    cls = _record_class(record)
    fn = getattr(cls, 'pk_column', None)
    if callable(fn):
        return fn()
    return getattr(cls, '__pkcolumn__', None)
