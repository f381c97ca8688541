"""
Record metadata and the process-wide metadata cache.

Metadata depends only on the record type (and the naming convention used to
derive column names), never on a particular instance, so it is computed once
per type and shared read-only by every operation.
"""
import dataclasses
import logging
import threading
import typing
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

import numpy as np
from sqlwrapper.convert import is_zero, resolve_type, zero_value
from sqlwrapper.entity import EXCLUDED, pk_column_of
from sqlwrapper.exceptions import ElemNotStructError, InvalidPrimaryKeyTypeError
from sqlwrapper.naming import NamingConverter, snake

__all__ = ['FieldMeta', 'RecordMeta', 'MetadataCache', 'build_meta', 'is_valid_pk_type']

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FieldMeta:
    """Column mapping of one dataclass field.
    """
    index: int
    name: str
    column: str
    type: Any
    nullable: bool

    def get(self, record: Any) -> Any:
        return getattr(record, self.name)

    def set(self, record: Any, value: Any) -> None:
        setattr(record, self.name, value)

    def is_zero(self, record: Any) -> bool:
        return is_zero(getattr(record, self.name))


@dataclass(frozen=True)
class RecordMeta:
    """Column layout of a record type.

    `columns` keeps declaration order and `column_field_map` has one entry per
    column. `pk_index` is the position of the primary key field in `fields`,
    or None when no field maps to the declared key column.
    """
    record_type: type
    n_fields: int
    fields: tuple[FieldMeta, ...]
    columns: tuple[str, ...]
    column_field_map: Mapping[str, FieldMeta]
    pk_column: str | None
    pk_index: int | None
    pk_type: Any
    field_types: tuple[Any, ...]

    @property
    def pk_field(self) -> FieldMeta | None:
        if self.pk_index is None:
            return None
        return self.fields[self.pk_index]

    def field_for(self, column: str) -> FieldMeta | None:
        return self.column_field_map.get(column)

    def new_instance(self) -> Any:
        """Create a record without calling __init__.

        Fields take their declared default, or the zero value of their resolved
        type. Excluded fields are initialized too.
        """
        obj = self.record_type.__new__(self.record_type)
        for f, tp in zip(dataclasses.fields(self.record_type), self.field_types, strict=True):
            if f.default is not dataclasses.MISSING:
                value = f.default
            elif f.default_factory is not dataclasses.MISSING:
                value = f.default_factory()
            else:
                value = zero_value(tp)
            object.__setattr__(obj, f.name, value)
        return obj


def is_valid_pk_type(tp: Any) -> bool:
    """Primary keys must be a non-nullable integer or string type."""
    base, nullable = resolve_type(tp)
    if nullable or not isinstance(base, type):
        return False
    if issubclass(base, bool | np.bool_):
        return False
    return issubclass(base, int | np.integer | str)


def _type_hints(record_type: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(record_type)
    except (NameError, TypeError) as err:
        logger.debug(f'Could not resolve type hints for {record_type.__name__}: {err}')
        return {}


def build_meta(record_type: type, naming: NamingConverter = snake) -> RecordMeta:
    """Introspect a dataclass record type.

    Fields with `metadata={'db': '-'}` are skipped. Column names come from the
    `db` metadata override or from `naming` applied to the field name.
    """
    if not isinstance(record_type, type) or not dataclasses.is_dataclass(record_type):
        raise ElemNotStructError(record_type)

    hints = _type_hints(record_type)
    pk_column = pk_column_of(record_type)
    dc_fields = dataclasses.fields(record_type)

    metas: list[FieldMeta] = []
    pk_index = None
    pk_type = None
    for i, f in enumerate(dc_fields):
        column = f.metadata.get('db') or naming(f.name)
        if column == EXCLUDED:
            continue
        tp = hints.get(f.name, f.type)
        _, nullable = resolve_type(tp)
        if pk_index is None and pk_column is not None and column == pk_column:
            if not is_valid_pk_type(tp):
                raise InvalidPrimaryKeyTypeError(record_type, f.name, tp)
            pk_index, pk_type = len(metas), tp
        metas.append(FieldMeta(index=i, name=f.name, column=column, type=tp, nullable=nullable))

    return RecordMeta(
        record_type=record_type,
        n_fields=len(dc_fields),
        fields=tuple(metas),
        columns=tuple(m.column for m in metas),
        column_field_map=MappingProxyType({m.column: m for m in metas}),
        pk_column=pk_column,
        pk_index=pk_index,
        pk_type=pk_type,
        field_types=tuple(hints.get(f.name, f.type) for f in dc_fields),
    )


class MetadataCache:
    """Process-wide cache of record metadata.

    Thread-safe singleton. Lookups of a cached type take no lock; the first
    resolution of a type is serialized so exactly one `RecordMeta` wins.
    Entries are never evicted.
    """

    _instance = None
    _instance_lock = threading.Lock()

    def __init__(self):
        self._metas: dict[tuple[type, NamingConverter], RecordMeta] = {}
        self._lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> 'MetadataCache':
        """Get singleton instance."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def resolve(self, record_type: type, naming: NamingConverter = snake) -> RecordMeta:
        """Return cached metadata for a record type, building it on first use.
        """
        key = (record_type, naming)
        meta = self._metas.get(key)
        if meta is not None:
            return meta
        with self._lock:
            meta = self._metas.get(key)
            if meta is None:
                meta = build_meta(record_type, naming)
                self._metas[key] = meta
                logger.debug(f'Registered record type {record_type.__name__}: columns={list(meta.columns)}')
        return meta

    def __contains__(self, record_type: type) -> bool:
        return any(key[0] is record_type for key in list(self._metas))

    def __len__(self) -> int:
        return len(self._metas)

    def clear(self) -> None:
        """Drop all entries. Only meant for test isolation."""
        with self._lock:
            self._metas.clear()
