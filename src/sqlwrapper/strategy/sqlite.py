"""
SQLite strategy.
"""
import datetime
import logging
import sqlite3
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlwrapper.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from sqlwrapper.context import SqlContext
    from sqlwrapper.options import DatabaseOptions
    from sqlwrapper.transaction import TxOptions

logger = logging.getLogger(__name__)

_BEGIN_BY_ISOLATION = {
    'serializable': 'begin immediate',
    'repeatable read': 'begin immediate',
}


def _convert_timestamp(value: bytes) -> datetime.datetime:
    return datetime.datetime.fromisoformat(value.decode())


def _convert_date(value: bytes) -> datetime.date:
    return datetime.date.fromisoformat(value.decode())


@register_strategy('sqlite')
class SQLiteStrategy(DatabaseStrategy):
    """SQLite through the standard library driver.
    """
    sqlalchemy_driver = 'sqlite'

    def paginate(self, ctx: 'SqlContext', order_by: list[str], limit: int, offset: int) -> None:
        """SQLite rejects `offset` without `limit`; -1 means no limit.
        """
        ctx.order_by(order_by)
        if offset > 0 and limit <= 0:
            ctx.write_string(' limit ').next_placeholder(-1)
            ctx.write_string(' offset ').next_placeholder(offset)
            return
        ctx.limit_offset(limit, offset)

    def configure_connection(self, raw_conn: Any) -> None:
        """Configure connection settings for SQLite.
        """
        raw_conn.execute('PRAGMA foreign_keys = ON')
        self.register_type_adapters(raw_conn)
        self.enable_autocommit(raw_conn)

    def register_type_adapters(self, raw_conn: Any) -> None:
        """Store datetimes as ISO text and read declared timestamp columns back.
        """
        sqlite3.register_adapter(datetime.datetime, lambda v: v.isoformat(' '))
        sqlite3.register_adapter(datetime.date, lambda v: v.isoformat())
        sqlite3.register_adapter(Decimal, str)
        sqlite3.register_converter('timestamp', _convert_timestamp)
        sqlite3.register_converter('datetime', _convert_timestamp)
        sqlite3.register_converter('date', _convert_date)

    def enable_autocommit(self, raw_conn: Any) -> None:
        """Enable auto-commit mode for SQLite.
        """
        raw_conn.isolation_level = None

    def disable_autocommit(self, raw_conn: Any) -> None:
        """Disable auto-commit mode for SQLite.
        """
        raw_conn.isolation_level = 'DEFERRED'

    def cancel_hook(self, raw_conn: Any):
        return raw_conn.interrupt

    def begin(self, raw_conn: Any, tx_options: 'TxOptions | None' = None) -> None:
        """Open an explicit transaction; the connection stays in autocommit mode.
        """
        statement = 'begin'
        if tx_options is not None and tx_options.isolation_level:
            statement = _BEGIN_BY_ISOLATION.get(tx_options.isolation_level.lower(), 'begin')
        raw_conn.execute(statement)

    def commit(self, raw_conn: Any) -> None:
        if raw_conn.in_transaction:
            raw_conn.execute('commit')

    def rollback(self, raw_conn: Any) -> None:
        if raw_conn.in_transaction:
            raw_conn.execute('rollback')

    def end(self, raw_conn: Any) -> None:
        pass

    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for SQLite."""
        return sa.URL.create(drivername='sqlite', database=options.database)

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for SQLite."""
        connect_args = {
            'detect_types': sqlite3.PARSE_DECLTYPES,
            'check_same_thread': False,
        }
        if options.timeout:
            connect_args['timeout'] = options.timeout
        return {'connect_args': connect_args}

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for SQLite connections."""
        return ['database']
