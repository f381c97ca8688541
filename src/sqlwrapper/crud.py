"""
Record level operations shared by databases and transactions.

`Operations` renders insert, update, save, query and delete statements from
record metadata and options. Subclasses decide where the statements run by
implementing `raw_exec` and `raw_query`.

    db.insert(user)                               # fills user.id when generated
    db.update(user, with_columns('age'))
    found = db.query(user, where('id = ?', 1))
    users = db.query_multiple([], User, order_by('id desc'), limit(10))
    db.delete(User, where('age < ?', 18))

Zero-valued fields (0, '', False, None) are skipped on insert and update
unless `including_zeros()` is given.
"""
import dataclasses
import logging
from abc import ABC, abstractmethod
from collections.abc import MutableSequence
from typing import TYPE_CHECKING, Any

from sqlwrapper.clauses import build_delete, build_exec, build_query
from sqlwrapper.convert import KEEP, NullStrategy, ValueConverter, convert_value, is_zero
from sqlwrapper.entity import table_name_of
from sqlwrapper.exceptions import ConversionError, ElemNotSliceError, ElemNotStructError
from sqlwrapper.exceptions import EmptyPrimaryKeyError, NoPrimaryKeyError, NotPointerError
from sqlwrapper.exceptions import NotSupportedError, UnknownColumnError
from sqlwrapper.meta import MetadataCache, RecordMeta
from sqlwrapper.scanner import RowsScanner, slice_scanner, struct_scanner

if TYPE_CHECKING:
    from sqlwrapper.context import ContextPool
    from sqlwrapper.dialect import Dialect
    from sqlwrapper.scope import Scope
    from sqlwrapper.strategy import DatabaseStrategy

__all__ = ['ExecResult', 'Operations']

logger = logging.getLogger(__name__)


class ExecResult:
    """Outcome of a statement that returns no rows."""

    __slots__ = ('rowcount', '_lastrowid')

    def __init__(self, rowcount: int, lastrowid: Any = None) -> None:
        self.rowcount = rowcount
        self._lastrowid = lastrowid

    def last_insert_id(self) -> Any:
        """Key generated by the last insert.

        Raises
            NotSupportedError: the driver did not report one
        """
        if self._lastrowid is None:
            raise NotSupportedError('driver does not report the last insert id')
        return self._lastrowid

    def __repr__(self) -> str:
        return f'ExecResult(rowcount={self.rowcount}, lastrowid={self._lastrowid!r})'


class Operations(ABC):
    """Statement rendering on top of `raw_exec` and `raw_query`."""

    dialect: 'Dialect'
    driver: str
    converter: ValueConverter
    on_null: NullStrategy
    scope: 'Scope'
    _contexts: 'ContextPool'

    @abstractmethod
    def raw_exec(self, sql: str, *args: Any, scope: 'Scope | None' = None) -> ExecResult:
        """Execute a statement that returns no rows.
        """

    @abstractmethod
    def raw_query(self, sql: str, scanner: RowsScanner, *args: Any,
                  scope: 'Scope | None' = None) -> None:
        """Execute a query and hand its rows to `scanner`.
        """

    @property
    def strategy(self) -> 'DatabaseStrategy':
        return self.dialect.strategy

    def quote(self, name: str) -> str:
        return self.dialect.quote(name)

    def register_type(self, record: Any) -> RecordMeta:
        """Resolve and cache the metadata of a record instance or type."""
        record_type = record if isinstance(record, type) else type(record)
        return MetadataCache.get_instance().resolve(record_type, self.dialect.naming)

    def _field_for(self, meta: RecordMeta, column: str):
        field = meta.field_for(column)
        if field is None:
            raise UnknownColumnError(column)
        return field

    def insert(self, record: Any, *options: Any, scope: 'Scope | None' = None) -> int:
        """Insert a record and return the affected row count.

        When the record has a zero primary key the generated key is written
        back to it if the driver can report it.
        """
        meta = self.register_type(record)
        opts = build_exec(meta, options)
        table = table_name_of(record)
        with self._contexts.acquire() as ctx:
            columns, values = [], []
            for column in opts.columns:
                value = self._field_for(meta, column).get(record)
                if is_zero(value) and not opts.including_zeros:
                    continue
                columns.append(column)
                values.append(value)

            ctx.write_string('insert into ').write_quoted(table)
            if not columns:
                ctx.write_string(self.strategy.empty_insert_clause())
            else:
                ctx.write_string(' (')
                for i, column in enumerate(columns):
                    if i:
                        ctx.write_string(', ')
                    ctx.write_quoted(column)
                ctx.write_string(') values (')
                for i, value in enumerate(values):
                    if i:
                        ctx.write_string(', ')
                    ctx.next_placeholder(value)
                ctx.write_string(')')

            pk = meta.pk_field
            if pk is None or not pk.is_zero(record):
                return self.raw_exec(ctx.query_string, *ctx.arguments, scope=scope).rowcount

            rowcount, key = self.strategy.insert_and_recover_key(self, ctx, meta, scope=scope)
        if key is not None:
            self._assign_key(record, meta, key)
        return rowcount

    def _assign_key(self, record: Any, meta: RecordMeta, key: Any) -> None:
        pk = meta.pk_field
        try:
            value = convert_value(pk.type, key, self.converter, NullStrategy.DO_NOTHING)
        except ConversionError as err:
            logger.warning(f'Generated key {key!r} not assigned to {meta.record_type.__name__}.{pk.name}: {err}')
            return
        if value is not KEEP:
            pk.set(record, value)

    def update(self, record: Any, *options: Any, scope: 'Scope | None' = None) -> int:
        """Update the row matching the record's primary key.

        Only non-zero fields are written unless `including_zeros()` is given;
        when nothing is left to write no statement is issued and 0 is returned.
        """
        meta = self.register_type(record)
        pk = meta.pk_field
        if pk is None:
            raise NoPrimaryKeyError(f'{meta.record_type.__name__} has no field for primary key column {meta.pk_column!r}')
        if pk.is_zero(record):
            raise EmptyPrimaryKeyError(pk.column)
        opts = build_exec(meta, options)

        assignments = []
        for column in opts.columns:
            if column == pk.column:
                continue
            value = self._field_for(meta, column).get(record)
            if is_zero(value) and not opts.including_zeros:
                continue
            assignments.append((column, value))
        if not assignments:
            logger.debug(f'Nothing to update for {meta.record_type.__name__} {pk.get(record)!r}')
            return 0

        with self._contexts.acquire() as ctx:
            ctx.write_string('update ').write_quoted(table_name_of(record)).write_string(' set ')
            for i, (column, value) in enumerate(assignments):
                if i:
                    ctx.write_string(', ')
                ctx.write_quoted(column).write_string(' = ').next_placeholder(value)
            ctx.write_string(' where ').write_quoted(pk.column).write_string(' = ').next_placeholder(pk.get(record))
            return self.raw_exec(ctx.query_string, *ctx.arguments, scope=scope).rowcount

    def save(self, record: Any, *options: Any, scope: 'Scope | None' = None) -> int:
        """Insert the record when its primary key is zero, else update it."""
        meta = self.register_type(record)
        pk = meta.pk_field
        if pk is None:
            raise NoPrimaryKeyError(f'{meta.record_type.__name__} has no field for primary key column {meta.pk_column!r}')
        if pk.is_zero(record):
            return self.insert(record, *options, scope=scope)
        return self.update(record, *options, scope=scope)

    def query(self, record: Any, *options: Any, scope: 'Scope | None' = None) -> bool:
        """Fill `record` from the first matching row; return whether one was found.

        Without options this selects every mapped column of the record's
        table, limited to one row.
        """
        if record is None or isinstance(record, type):
            raise NotPointerError(record)
        if not dataclasses.is_dataclass(record):
            raise ElemNotStructError(record)
        meta = self.register_type(record)
        q = build_query(meta, self.dialect, options, single=True)
        with self._contexts.acquire() as ctx:
            ctx.append(q)
            scanner = struct_scanner(record, meta, self.converter, self.on_null, q.unused)
            self.raw_query(ctx.query_string, scanner, *ctx.arguments, scope=scope)
        return scanner.found

    def query_multiple(self, dest: MutableSequence, record_type: type, *options: Any,
                       scope: 'Scope | None' = None) -> MutableSequence:
        """Append one new `record_type` instance per matching row to `dest`.

        Returns `dest`.
        """
        if not isinstance(dest, MutableSequence):
            raise ElemNotSliceError(dest)
        if not isinstance(record_type, type):
            raise NotPointerError(record_type)
        if not dataclasses.is_dataclass(record_type):
            raise ElemNotStructError(record_type)
        meta = self.register_type(record_type)
        q = build_query(meta, self.dialect, options, single=False)
        with self._contexts.acquire() as ctx:
            ctx.append(q)
            scanner = slice_scanner(dest, meta, self.converter, self.on_null)
            self.raw_query(ctx.query_string, scanner, *ctx.arguments, scope=scope)
        return dest

    def delete(self, table: Any, *options: Any, scope: 'Scope | None' = None) -> int:
        """Delete rows of a table, given by name or record type.

        Without a `where` option every row of the table is deleted.
        """
        name = table if isinstance(table, str) else table_name_of(table)
        d = build_delete(options)
        with self._contexts.acquire() as ctx:
            ctx.write_string('delete from ').write_quoted(name)
            ctx.where(d.where_clause, d.where_args)
            return self.raw_exec(ctx.query_string, *ctx.arguments, scope=scope).rowcount
