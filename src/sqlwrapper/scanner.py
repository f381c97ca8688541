"""
Result readers.

`Rows` wraps an executed DB-API cursor. A scanner consumes it:

- `single_row_scanner()` keeps the raw values of the first row
- `struct_scanner()` fills one record from the first row
- `slice_scanner()` appends one new record per row to a list
- `scan_fn()` adapts any callable taking `Rows`

Column values go through `convert_value` with the database's converter and
NULL strategy, so conversion errors surface to the caller unchanged.
"""
import logging
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sqlwrapper.convert import KEEP, NullStrategy, ValueConverter, convert_value

if TYPE_CHECKING:
    from sqlwrapper.meta import RecordMeta
    from sqlwrapper.scope import Scope

__all__ = [
    'Rows',
    'RowsScanner',
    'scan_fn',
    'single_row_scanner',
    'struct_scanner',
    'slice_scanner',
]

logger = logging.getLogger(__name__)


class Rows:
    """Forward-only view over the rows of an executed cursor.

    Statements that produce row counts before their result (a SQL Server
    batch of insert then select) leave result sets without a description;
    those are skipped so iteration starts at the first set carrying rows.
    """

    def __init__(self, cursor: Any, scope: 'Scope | None' = None, size: int = 5000) -> None:
        self.cursor = cursor
        self.scope = scope
        self.size = size
        self._has_result = self._advance_to_result()

    def _advance_to_result(self) -> bool:
        while self.cursor.description is None:
            nextset = getattr(self.cursor, 'nextset', None)
            if nextset is None or not nextset():
                return False
        return True

    def columns(self) -> list[str]:
        if not self._has_result:
            return []
        return [d[0] for d in self.cursor.description]

    def __iter__(self) -> Iterator[tuple]:
        if not self._has_result:
            return
        while True:
            if self.scope is not None:
                self.scope.check()
            chunk = self.cursor.fetchmany(self.size)
            if not chunk:
                break
            for row in chunk:
                if self.scope is not None:
                    self.scope.check()
                yield tuple(row)

    def first(self) -> tuple | None:
        if not self._has_result:
            return None
        if self.scope is not None:
            self.scope.check()
        row = self.cursor.fetchone()
        return None if row is None else tuple(row)


@runtime_checkable
class RowsScanner(Protocol):
    def scan_from(self, rows: Rows) -> None:
        ...


class scan_fn:
    """Adapt a callable taking `Rows` into a scanner.

        ids = []
        db.raw_query('select id from t', scan_fn(lambda rows: ids.extend(r[0] for r in rows)))
    """

    __slots__ = ('fn',)

    def __init__(self, fn: Callable[[Rows], None]) -> None:
        self.fn = fn

    def scan_from(self, rows: Rows) -> None:
        self.fn(rows)


class _SingleRowScanner:
    __slots__ = ('values', 'columns')

    def __init__(self) -> None:
        self.values: tuple | None = None
        self.columns: list[str] = []

    def scan_from(self, rows: Rows) -> None:
        self.columns = rows.columns()
        self.values = rows.first()


def single_row_scanner() -> _SingleRowScanner:
    """Scanner keeping the raw values of the first row in `.values`.

    `.values` stays None when the result is empty.
    """
    return _SingleRowScanner()


def _assign(record: Any, meta: 'RecordMeta', columns: list[str], row: tuple,
            converter: ValueConverter, on_null: NullStrategy,
            unused: dict[str, Any] | None) -> None:
    for column, value in zip(columns, row):
        field = meta.field_for(column)
        if field is None:
            if unused is not None:
                unused[column] = value
            continue
        converted = convert_value(field.type, value, converter, on_null)
        if converted is KEEP:
            continue
        field.set(record, converted)


class _StructScanner:
    __slots__ = ('record', 'meta', 'converter', 'on_null', 'unused', 'found')

    def __init__(self, record, meta, converter, on_null, unused):
        self.record = record
        self.meta = meta
        self.converter = converter
        self.on_null = on_null
        self.unused = unused
        self.found = False

    def scan_from(self, rows: Rows) -> None:
        columns = rows.columns()
        row = rows.first()
        if row is None:
            return
        _assign(self.record, self.meta, columns, row, self.converter, self.on_null, self.unused)
        self.found = True


def struct_scanner(record: Any, meta: 'RecordMeta', converter: ValueConverter,
                   on_null: NullStrategy = NullStrategy.DO_NOTHING,
                   unused: dict[str, Any] | None = None) -> _StructScanner:
    """Scanner filling `record` from the first row; `.found` tells if there was one.

    Columns with no matching field go to `unused` when given, else are dropped.
    """
    return _StructScanner(record, meta, converter, on_null, unused)


class _SliceScanner:
    __slots__ = ('dest', 'meta', 'converter', 'on_null')

    def __init__(self, dest, meta, converter, on_null):
        self.dest = dest
        self.meta = meta
        self.converter = converter
        self.on_null = on_null

    def scan_from(self, rows: Rows) -> None:
        """Scan every row before touching `dest`, so a failed row leaves it unchanged."""
        columns = rows.columns()
        scanned = []
        for row in rows:
            record = self.meta.new_instance()
            _assign(record, self.meta, columns, row, self.converter, self.on_null, None)
            scanned.append(record)
        self.dest.extend(scanned)
        logger.debug(f'Scanned {len(scanned)} {self.meta.record_type.__name__} rows')


def slice_scanner(dest: list, meta: 'RecordMeta', converter: ValueConverter,
                  on_null: NullStrategy = NullStrategy.DO_NOTHING) -> _SliceScanner:
    """Scanner appending one new record per row to `dest`, in row order."""
    return _SliceScanner(dest, meta, converter, on_null)
