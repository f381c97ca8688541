"""
Oracle strategy.
"""
import logging
from typing import TYPE_CHECKING, Any

from sqlwrapper.exceptions import NotSupportedError
from sqlwrapper.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from sqlwrapper.context import SqlContext
    from sqlwrapper.crud import Operations
    from sqlwrapper.meta import RecordMeta
    from sqlwrapper.scope import Scope

logger = logging.getLogger(__name__)


@register_strategy('oracle')
class OracleStrategy(DatabaseStrategy):
    """Oracle through python-oracledb, which binds `:1` natively.
    """
    sqlalchemy_driver = 'oracle+oracledb'

    def paginate(self, ctx: 'SqlContext', order_by: list[str], limit: int, offset: int) -> None:
        ctx.order_by(order_by).offset_fetch_next_rows(offset, limit)

    def empty_insert_clause(self) -> str:
        raise NotSupportedError('oracle cannot insert a row without any column')

    def insert_and_recover_key(self, ops: 'Operations', ctx: 'SqlContext',
                               meta: 'RecordMeta', scope: 'Scope | None' = None) -> tuple[int, Any]:
        """Run the insert without recovering a key.

        The driver's `lastrowid` is a ROWID, not the generated key.
        """
        logger.warning(f'Generated key of {meta.record_type.__name__} cannot be recovered on Oracle')
        result = ops.raw_exec(ctx.query_string, *ctx.arguments, scope=scope)
        return result.rowcount, None
