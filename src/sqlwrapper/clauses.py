"""
Composable query, insert/update and delete options.

Options are small objects that apply themselves onto a descriptor. Which
descriptors an option can configure is expressed by the abstract base
classes it inherits from, so a type checker flags an option passed to the
wrong operation; the folding functions also check at run time.

    db.query_multiple(users, User,
        select('u.id', 'u.name'),
        select_from(table('users'), alias('u'),
                    left_join(table('orders'), alias('o'), on('o.user_id = u.id'))),
        where('u.age > ? and u.id in ?', 18, ValueGroup(1, 2, 3)),
        order_by('u.id desc'),
        limit(10), offset(20),
    )

Capabilities:

    select, select_from, where, group_by,
    having, order_by, offset             query (single and multiple)
    limit                                query multiple
    retrieve_unused_values_to            query single
    where                                delete
    table, sub_query, alias              table and join
    inner/left/right/full_join           table
    on, using                            join
    with_columns, including_zeros        insert and update
"""
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlwrapper.context import SqlContext

if TYPE_CHECKING:
    from sqlwrapper.dialect import Dialect
    from sqlwrapper.meta import RecordMeta

__all__ = [
    'QuerySingleOption',
    'QueryMultipleOption',
    'QueryOption',
    'TableOption',
    'JoinOption',
    'ExecOption',
    'DeleteOption',
    'WhereOption',
    'QueryDescriptor',
    'TableSpec',
    'JoinSpec',
    'TableName',
    'ExecDescriptor',
    'DeleteDescriptor',
    'select',
    'select_from',
    'table',
    'sub_query',
    'inner_join',
    'left_join',
    'right_join',
    'full_join',
    'alias',
    'on',
    'using',
    'where',
    'group_by',
    'having',
    'order_by',
    'offset',
    'limit',
    'retrieve_unused_values_to',
    'with_columns',
    'including_zeros',
    'build_query',
    'build_exec',
    'build_delete',
]

# Capabilities


class QuerySingleOption(ABC):
    @abstractmethod
    def apply_to_query_single(self, q: 'QueryDescriptor') -> None:
        ...


class QueryMultipleOption(ABC):
    @abstractmethod
    def apply_to_query_multiple(self, q: 'QueryDescriptor') -> None:
        ...


class QueryOption(QuerySingleOption, QueryMultipleOption):
    """Option valid for single and multiple record queries."""

    @abstractmethod
    def apply_to_query(self, q: 'QueryDescriptor') -> None:
        ...

    def apply_to_query_single(self, q: 'QueryDescriptor') -> None:
        self.apply_to_query(q)

    def apply_to_query_multiple(self, q: 'QueryDescriptor') -> None:
        self.apply_to_query(q)


class TableOption(ABC):
    @abstractmethod
    def apply_to_table(self, t: 'TableSpec') -> None:
        ...


class JoinOption(ABC):
    @abstractmethod
    def apply_to_join(self, j: 'JoinSpec') -> None:
        ...


class ExecOption(ABC):
    @abstractmethod
    def apply_to_exec(self, e: 'ExecDescriptor') -> None:
        ...


class DeleteOption(ABC):
    @abstractmethod
    def apply_to_delete(self, d: 'DeleteDescriptor') -> None:
        ...


class WhereOption(QueryOption, DeleteOption):
    """Option valid for queries and delete."""


def _fold(options: Iterable[Any], capability: type, method: str, target: Any) -> Any:
    for opt in options:
        if not isinstance(opt, capability):
            raise TypeError(f'{type(opt).__name__} cannot be used as {capability.__name__}')
        getattr(opt, method)(target)
    return target


# Descriptors


@dataclass
class TableName(TableOption, JoinOption):
    """Plain table reference, rendered quoted."""
    name: str

    def apply_to_table(self, t: 'TableSpec') -> None:
        t.table = self

    def apply_to_join(self, j: 'JoinSpec') -> None:
        j.table = self

    def append_to_context(self, ctx: SqlContext) -> None:
        ctx.write_quoted(self.name)


@dataclass
class JoinSpec(TableOption):
    """One join of a table spec."""
    kind: str
    table: Any = None
    alias: str = ''
    condition_type: str = ''
    conditions: tuple[str, ...] = ()

    def apply_to_table(self, t: 'TableSpec') -> None:
        t.joins.append(self)


@dataclass
class TableSpec(QueryOption):
    """Base table reference with optional alias and joins."""
    table: Any = None
    alias: str = ''
    joins: list[JoinSpec] = field(default_factory=list)

    def apply_to_query(self, q: 'QueryDescriptor') -> None:
        q.table = self


@dataclass
class QueryDescriptor(TableOption, JoinOption):
    """Everything needed to render one select.

    A descriptor flagged as sub-query renders parenthesized, which lets it
    stand in table, join or argument position.
    """
    select_columns: list[str] = field(default_factory=list)
    table: TableSpec | None = None
    where_clause: str = ''
    where_args: tuple[Any, ...] = ()
    group_by_columns: list[str] = field(default_factory=list)
    having_clause: str = ''
    having_args: tuple[Any, ...] = ()
    order_by_columns: list[str] = field(default_factory=list)
    limit: int = 0
    offset: int = 0
    is_sub_query: bool = False
    unused: dict[str, Any] | None = None

    def apply_to_table(self, t: TableSpec) -> None:
        t.table = self

    def apply_to_join(self, j: JoinSpec) -> None:
        j.table = self

    def append_to_context(self, ctx: SqlContext) -> None:
        if self.table is None or self.table.table is None:
            raise ValueError('query has no table; add a select_from option')
        if self.is_sub_query:
            ctx.write_string('(')
        ctx.select_from_table(self.select_columns, self.table)
        ctx.where(self.where_clause, self.where_args)
        ctx.group_by(self.group_by_columns)
        ctx.having(self.having_clause, self.having_args)
        ctx.paginate(self.order_by_columns, self.limit, self.offset)
        if self.is_sub_query:
            ctx.write_string(')')


@dataclass
class ExecDescriptor:
    """Columns considered by insert and update."""
    columns: list[str] = field(default_factory=list)
    including_zeros: bool = False


@dataclass
class DeleteDescriptor:
    where_clause: str = ''
    where_args: tuple[Any, ...] = ()


# Options


@dataclass(frozen=True)
class _Select(QueryOption):
    columns: tuple[str, ...]

    def apply_to_query(self, q: QueryDescriptor) -> None:
        q.select_columns = list(self.columns)


@dataclass(frozen=True)
class _Alias(TableOption, JoinOption):
    name: str

    def apply_to_table(self, t: TableSpec) -> None:
        t.alias = self.name

    def apply_to_join(self, j: JoinSpec) -> None:
        j.alias = self.name


@dataclass(frozen=True)
class _JoinCondition(JoinOption):
    condition_type: str
    conditions: tuple[str, ...]

    def apply_to_join(self, j: JoinSpec) -> None:
        j.condition_type = self.condition_type
        j.conditions = self.conditions


@dataclass(frozen=True)
class _Where(WhereOption):
    clause: str
    args: tuple[Any, ...]

    def apply_to_query(self, q: QueryDescriptor) -> None:
        q.where_clause, q.where_args = self.clause, self.args

    def apply_to_delete(self, d: DeleteDescriptor) -> None:
        d.where_clause, d.where_args = self.clause, self.args


@dataclass(frozen=True)
class _GroupBy(QueryOption):
    columns: tuple[str, ...]

    def apply_to_query(self, q: QueryDescriptor) -> None:
        q.group_by_columns = list(self.columns)


@dataclass(frozen=True)
class _Having(QueryOption):
    clause: str
    args: tuple[Any, ...]

    def apply_to_query(self, q: QueryDescriptor) -> None:
        q.having_clause, q.having_args = self.clause, self.args


@dataclass(frozen=True)
class _OrderBy(QueryOption):
    columns: tuple[str, ...]

    def apply_to_query(self, q: QueryDescriptor) -> None:
        q.order_by_columns = list(self.columns)


@dataclass(frozen=True)
class _Offset(QueryOption):
    offset: int

    def apply_to_query(self, q: QueryDescriptor) -> None:
        q.offset = self.offset


@dataclass(frozen=True)
class _Limit(QueryMultipleOption):
    limit: int

    def apply_to_query_multiple(self, q: QueryDescriptor) -> None:
        q.limit = self.limit


@dataclass(frozen=True)
class _Unused(QuerySingleOption):
    target: dict[str, Any]

    def apply_to_query_single(self, q: QueryDescriptor) -> None:
        q.unused = self.target


@dataclass(frozen=True)
class _Columns(ExecOption):
    columns: tuple[str, ...]

    def apply_to_exec(self, e: ExecDescriptor) -> None:
        e.columns = list(self.columns)


class _IncludingZeros(ExecOption):
    def apply_to_exec(self, e: ExecDescriptor) -> None:
        e.including_zeros = True


def select(*columns: str) -> QueryOption:
    """Select the given expressions, written as is.

        select('id', 'name')      # select id, name
        select('distinct name')   # select distinct name
        select('count(*)')        # select count(*)
        select(db.quote('id'))    # select "id"
    """
    return _Select(columns)


def select_from(*options: TableOption) -> QueryOption:
    """Table to select from, with alias and joins.

        select_from(table('user'))
    """
    return _fold(options, TableOption, 'apply_to_table', TableSpec())


def table(name: str) -> TableName:
    return TableName(name)


def sub_query(*options: QueryMultipleOption) -> QueryDescriptor:
    """A parenthesized select usable as a table, a join target or an argument."""
    q = _fold(options, QueryMultipleOption, 'apply_to_query_multiple', QueryDescriptor())
    q.is_sub_query = True
    return q


def _join(kind: str, options: tuple[JoinOption, ...]) -> JoinSpec:
    return _fold(options, JoinOption, 'apply_to_join', JoinSpec(kind=kind))


def inner_join(*options: JoinOption) -> TableOption:
    return _join('inner join', options)


def left_join(*options: JoinOption) -> TableOption:
    return _join('left join', options)


def right_join(*options: JoinOption) -> TableOption:
    return _join('right join', options)


def full_join(*options: JoinOption) -> TableOption:
    return _join('full join', options)


def alias(name: str) -> _Alias:
    return _Alias(name)


def on(*conditions: str) -> JoinOption:
    """Join conditions, combined with `and`."""
    return _JoinCondition('on', conditions)


def using(*columns: str) -> JoinOption:
    return _JoinCondition('using', columns)


def where(clause: str, *args: Any) -> WhereOption:
    """Filter with a clause whose `?` markers bind `args` in order.

    Value groups and sub-queries passed as arguments render in place.
    """
    return _Where(clause, args)


def group_by(*columns: str) -> QueryOption:
    return _GroupBy(columns)


def having(clause: str, *args: Any) -> QueryOption:
    return _Having(clause, args)


def order_by(*columns: str) -> QueryOption:
    """Order by columns, each optionally followed by `asc` or `desc`.

        order_by('id')
        order_by('id asc', 'name desc')
    """
    return _OrderBy(columns)


def offset(n: int) -> QueryOption:
    return _Offset(n)


def limit(n: int) -> QueryMultipleOption:
    return _Limit(n)


def retrieve_unused_values_to(target: dict[str, Any]) -> QuerySingleOption:
    """Collect result columns that map to no record field into `target`.
    """
    return _Unused(target)


def with_columns(*columns: str) -> ExecOption:
    """Restrict insert and update to these columns; zero values are still skipped."""
    return _Columns(columns)


def including_zeros() -> ExecOption:
    """Write zero-valued fields instead of skipping them."""
    return _IncludingZeros()


def build_query(meta: 'RecordMeta', dialect: 'Dialect', options: Iterable[Any],
                single: bool) -> QueryDescriptor:
    """Fold query options over defaults derived from the record metadata.

    Defaults select every mapped column from the record's table; single
    record queries are limited to one row.
    """
    from sqlwrapper.entity import table_name_of

    q = QueryDescriptor(select_columns=[dialect.quote(c) for c in meta.columns])
    if single:
        q.limit = 1
        _fold(options, QuerySingleOption, 'apply_to_query_single', q)
    else:
        _fold(options, QueryMultipleOption, 'apply_to_query_multiple', q)
    if q.table is None:
        q.table = TableSpec(table=TableName(table_name_of(meta.record_type)))
    return q


def build_exec(meta: 'RecordMeta', options: Iterable[Any]) -> ExecDescriptor:
    return _fold(options, ExecOption, 'apply_to_exec', ExecDescriptor(columns=list(meta.columns)))


def build_delete(options: Iterable[Any]) -> DeleteDescriptor:
    return _fold(options, DeleteOption, 'apply_to_delete', DeleteDescriptor())
