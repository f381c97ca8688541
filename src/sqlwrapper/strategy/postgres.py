"""
PostgreSQL strategy.
"""
import logging
from typing import TYPE_CHECKING, Any

import psycopg
from sqlwrapper.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from sqlwrapper.context import SqlContext
    from sqlwrapper.crud import Operations
    from sqlwrapper.meta import RecordMeta
    from sqlwrapper.scope import Scope
    from sqlwrapper.transaction import TxOptions

logger = logging.getLogger(__name__)


@register_strategy('postgresql')
class PostgresStrategy(DatabaseStrategy):
    """PostgreSQL through psycopg 3.

    Statements are rendered with `$n` placeholders, so cursors are
    `psycopg.RawCursor`, which passes them to the server unchanged.
    """
    sqlalchemy_driver = 'postgresql+psycopg'

    def insert_and_recover_key(self, ops: 'Operations', ctx: 'SqlContext',
                               meta: 'RecordMeta', scope: 'Scope | None' = None) -> tuple[int, Any]:
        """Append `returning <pk>` and read the key from the single row.
        """
        from sqlwrapper.scanner import single_row_scanner

        ctx.write_string(' returning ').write_quoted(meta.pk_column)
        scanner = single_row_scanner()
        ops.raw_query(ctx.query_string, scanner, *ctx.arguments, scope=scope)
        if scanner.values is None:
            return 0, None
        return 1, scanner.values[0]

    def create_cursor(self, raw_conn: Any) -> Any:
        return psycopg.RawCursor(raw_conn)

    def cancel_hook(self, raw_conn: Any):
        return getattr(raw_conn, 'cancel_safe', None) or raw_conn.cancel

    def begin(self, raw_conn: Any, tx_options: 'TxOptions | None' = None) -> None:
        if tx_options is not None:
            if tx_options.isolation_level:
                level = tx_options.isolation_sql().replace(' ', '_')
                raw_conn.isolation_level = psycopg.IsolationLevel[level]
            if tx_options.read_only:
                raw_conn.read_only = True
        self.disable_autocommit(raw_conn)

    def end(self, raw_conn: Any) -> None:
        self.enable_autocommit(raw_conn)
        raw_conn.isolation_level = None
        raw_conn.read_only = None

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for PostgreSQL connections."""
        return ['hostname', 'username', 'password', 'database', 'port']
