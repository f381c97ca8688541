"""
SQL text and argument accumulator.

A `SqlContext` collects the text of one statement together with its
positional arguments. Every placeholder written through `next_placeholder`
appends exactly one argument, so the placeholder count and the argument list
always agree:

    >>> ctx = SqlContext(get_dialect('postgres'))
    >>> ctx.write_string('select * from ').write_quoted('t') \\
    ...    .write_string(' where id = ').next_placeholder(1)
    >>> ctx.query_string
    'select * from "t" where id = $1'

Contexts are pooled. Use `ContextPool.acquire()` to borrow one for a single
statement; it is reset when returned.
"""
import logging
import re
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Protocol, Self, runtime_checkable

from sqlwrapper.exceptions import InvalidJoinConditionTypeError
from sqlwrapper.exceptions import NotEnoughArgumentsError, TooManyArgumentsError

if TYPE_CHECKING:
    from sqlwrapper.clauses import TableSpec
    from sqlwrapper.dialect import Dialect

__all__ = ['SqlContext', 'ContextPool', 'ContextAppender']

logger = logging.getLogger(__name__)

# String literals are skipped so a `?` inside quotes is never bound
_MARKER = re.compile(r"""(?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*")|(?P<qmark>\?)""")


@runtime_checkable
class ContextAppender(Protocol):
    """Object that renders itself into a SQL context."""

    def append_to_context(self, ctx: 'SqlContext') -> None:
        ...


class SqlContext:
    """Mutable text and argument accumulator for one statement.
    """

    def __init__(self, dialect: 'Dialect', driver: str = '') -> None:
        self.dialect = dialect
        self.driver = driver
        self._parts: list[str] = []
        self._args: list[Any] = []
        self._counter = 0

    def write_string(self, text: str) -> Self:
        self._parts.append(text)
        return self

    def write_quoted(self, identifier: str) -> Self:
        self._parts.append(self.dialect.quote(identifier))
        return self

    def next_placeholder(self, value: Any) -> Self:
        """Write the next placeholder and bind `value` to it."""
        self._counter += 1
        self._parts.append(self.dialect.hold_place(self._counter))
        self._args.append(value)
        return self

    def append(self, obj: ContextAppender) -> Self:
        obj.append_to_context(self)
        return self

    @property
    def query_string(self) -> str:
        return ''.join(self._parts)

    @property
    def arguments(self) -> list[Any]:
        return list(self._args)

    @property
    def placeholder_count(self) -> int:
        return self._counter

    def reset(self) -> None:
        self._parts.clear()
        self._args.clear()
        self._counter = 0

    def __repr__(self) -> str:
        return f'SqlContext({self.query_string!r}, args={self._args!r})'

    # Clause emitters

    def select_from_table(self, columns: Sequence[str], table: 'TableSpec') -> Self:
        """Write `select <columns> from <table> [as alias] [joins]`.

        Columns are written as given; pass quoted names where needed.
        """
        self.write_string('select ')
        self.write_string(', '.join(columns) if columns else '*')
        self.write_string(' from ')
        self.append(table.table)
        if table.alias:
            self.write_string(' as ').write_quoted(table.alias)
        for join in table.joins:
            self.write_string(f' {join.kind} ')
            self.append(join.table)
            if join.alias:
                self.write_string(' as ').write_quoted(join.alias)
            if not join.condition_type or not join.conditions:
                continue
            if join.condition_type == 'on':
                self.write_string(' on ').write_string(' and '.join(join.conditions))
            elif join.condition_type == 'using':
                self.write_string(' using (').write_string(', '.join(join.conditions)).write_string(')')
            else:
                raise InvalidJoinConditionTypeError(join.condition_type)
        return self

    def clause_with_args(self, clause: str, args: Sequence[Any]) -> Self:
        """Write `clause`, replacing each `?` marker with the next argument.

        Arguments that render themselves (value groups, sub-queries) are
        appended instead of bound.
        """
        used = 0
        last = 0
        for match in _MARKER.finditer(clause):
            if match.group('string'):
                continue
            self.write_string(clause[last:match.start()])
            if used >= len(args):
                markers = sum(1 for m in _MARKER.finditer(clause) if not m.group('string'))
                raise NotEnoughArgumentsError(clause, markers, len(args))
            arg = args[used]
            if isinstance(arg, ContextAppender):
                self.append(arg)
            else:
                self.next_placeholder(arg)
            used += 1
            last = match.end()
        if used < len(args):
            raise TooManyArgumentsError(clause, used, len(args))
        return self.write_string(clause[last:])

    def where(self, clause: str, args: Sequence[Any] = ()) -> Self:
        if not clause:
            return self
        return self.write_string(' where ').clause_with_args(clause, args)

    def having(self, clause: str, args: Sequence[Any] = ()) -> Self:
        if not clause:
            return self
        return self.write_string(' having ').clause_with_args(clause, args)

    def group_by(self, columns: Sequence[str]) -> Self:
        if columns:
            self.write_string(' group by ')
            for i, column in enumerate(columns):
                if i:
                    self.write_string(', ')
                self.write_quoted(column)
        return self

    def order_by(self, columns: Sequence[str]) -> Self:
        """Write `order by`, quoting each column but keeping `asc`/`desc`."""
        if columns:
            self.write_string(' order by ')
            for i, column in enumerate(columns):
                if i:
                    self.write_string(', ')
                name, space, direction = column.partition(' ')
                self.write_quoted(name)
                if space:
                    self.write_string(f' {direction}')
        return self

    def limit_offset(self, limit: int, offset: int) -> Self:
        if limit > 0:
            self.write_string(' limit ').next_placeholder(limit)
        if offset > 0:
            self.write_string(' offset ').next_placeholder(offset)
        return self

    def offset_fetch_next_rows(self, offset: int, limit: int, *, always_offset: bool = False) -> Self:
        if offset > 0 or (always_offset and limit > 0):
            self.write_string(' offset ').next_placeholder(offset).write_string(' rows')
        if limit > 0:
            self.write_string(' fetch next ').next_placeholder(limit).write_string(' rows only')
        return self

    def paginate(self, order_by: Sequence[str], limit: int, offset: int) -> Self:
        """Write ordering and paging in the dialect's syntax."""
        self.dialect.strategy.paginate(self, order_by, limit, offset)
        return self


class ContextPool:
    """Pool of reusable SQL contexts for one dialect.
    """

    def __init__(self, dialect: 'Dialect', driver: str = '', maxsize: int = 16) -> None:
        self.dialect = dialect
        self.driver = driver
        self.maxsize = maxsize
        self._free: list[SqlContext] = []
        self._lock = threading.Lock()

    def _get(self) -> SqlContext:
        with self._lock:
            if self._free:
                return self._free.pop()
        return SqlContext(self.dialect, self.driver)

    def _put(self, ctx: SqlContext) -> None:
        ctx.reset()
        with self._lock:
            if len(self._free) < self.maxsize:
                self._free.append(ctx)

    @contextmanager
    def acquire(self) -> Iterator[SqlContext]:
        """Borrow a reset context for the duration of the block."""
        ctx = self._get()
        try:
            yield ctx
        finally:
            self._put(ctx)

    def __len__(self) -> int:
        return len(self._free)
