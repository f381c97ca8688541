"""
SQL Server strategy.
"""
import logging
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlwrapper.convert import resolve_type
from sqlwrapper.sql import to_qmark_paramstyle
from sqlwrapper.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from sqlwrapper.context import SqlContext
    from sqlwrapper.crud import Operations
    from sqlwrapper.meta import RecordMeta
    from sqlwrapper.options import DatabaseOptions
    from sqlwrapper.scope import Scope

logger = logging.getLogger(__name__)


@register_strategy('sqlserver')
class SQLServerStrategy(DatabaseStrategy):
    """SQL Server through pyodbc.

    Statements are rendered with `@p1` placeholders and translated to `?`
    before reaching the driver.
    """
    sqlalchemy_driver = 'mssql+pyodbc'

    def paginate(self, ctx: 'SqlContext', order_by: list[str], limit: int, offset: int) -> None:
        """T-SQL pages with `offset .. rows fetch next .. rows only`.

        Paging requires an `order by`, so `order by 1` is used when no
        ordering is given, and `fetch` requires an `offset`.
        """
        paging = limit > 0 or offset > 0
        if order_by:
            ctx.order_by(order_by)
        elif paging:
            ctx.write_string(' order by 1')
        ctx.offset_fetch_next_rows(offset, limit, always_offset=True)

    def insert_and_recover_key(self, ops: 'Operations', ctx: 'SqlContext',
                               meta: 'RecordMeta', scope: 'Scope | None' = None) -> tuple[int, Any]:
        """Select SCOPE_IDENTITY() in the same batch.

        SQL Server cannot report generated string keys, so string keys are
        not recovered.
        """
        from sqlwrapper.scanner import single_row_scanner

        base, _ = resolve_type(meta.pk_type)
        if isinstance(base, type) and issubclass(base, str):
            logger.warning(f'String key of {meta.record_type.__name__} cannot be recovered on SQL Server')
            result = ops.raw_exec(ctx.query_string, *ctx.arguments, scope=scope)
            return result.rowcount, None
        ctx.write_string('; select last_id = convert(bigint, SCOPE_IDENTITY())')
        scanner = single_row_scanner()
        ops.raw_query(ctx.query_string, scanner, *ctx.arguments, scope=scope)
        if scanner.values is None:
            return 0, None
        return 1, scanner.values[0]

    def standardize_sql(self, sql: str) -> str:
        """Convert `@pN` placeholders to pyodbc's `?`.
        """
        return to_qmark_paramstyle(sql)

    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for SQL Server."""
        url = super().build_connection_url(options)
        return url.update_query_dict({'driver': 'ODBC Driver 18 for SQL Server'})

    @classmethod
    def get_required_options(cls) -> list[str]:
        return ['hostname', 'username', 'password', 'database']
