"""
MySQL strategy.
"""
from typing import TYPE_CHECKING, Any

from sqlwrapper.sql import to_format_paramstyle
from sqlwrapper.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from sqlwrapper.context import SqlContext
    from sqlwrapper.transaction import TxOptions

# Largest row count MySQL accepts; `offset` is invalid without a `limit`.
# See https://dev.mysql.com/doc/refman/8.0/en/select.html
MYSQL_UNLIMITED = 18446744073709551615


@register_strategy('mysql')
class MySQLStrategy(DatabaseStrategy):
    """MySQL through pymysql.
    """
    sqlalchemy_driver = 'mysql+pymysql'

    def paginate(self, ctx: 'SqlContext', order_by: list[str], limit: int, offset: int) -> None:
        if limit <= 0 and offset > 0:
            limit = MYSQL_UNLIMITED
        ctx.order_by(order_by).limit_offset(limit, offset)

    def empty_insert_clause(self) -> str:
        return ' () values ()'

    def standardize_sql(self, sql: str) -> str:
        """Convert `?` placeholders to pymysql's `%s`.
        """
        return to_format_paramstyle(sql)

    def enable_autocommit(self, raw_conn: Any) -> None:
        raw_conn.autocommit(True)

    def disable_autocommit(self, raw_conn: Any) -> None:
        raw_conn.autocommit(False)

    def begin(self, raw_conn: Any, tx_options: 'TxOptions | None' = None) -> None:
        cursor = raw_conn.cursor()
        try:
            if tx_options is not None and tx_options.isolation_level:
                cursor.execute(f'set transaction isolation level {tx_options.isolation_sql()}')
            if tx_options is not None and tx_options.read_only:
                cursor.execute('start transaction read only')
            else:
                cursor.execute('start transaction')
        finally:
            cursor.close()

    @classmethod
    def get_required_options(cls) -> list[str]:
        return ['hostname', 'username', 'database']
