"""
Base strategy interface for dialect-specific behavior.

A strategy is the single place where a driver family differs from the
others: pagination syntax, generated key recovery after an insert, the
rendering of an insert without columns, placeholder translation for the
DB-API driver, connection setup and transaction control. Adding a database
means implementing one strategy class and registering it.
"""
import logging
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlwrapper.exceptions import NotSupportedError

if TYPE_CHECKING:
    from sqlwrapper.context import SqlContext
    from sqlwrapper.crud import Operations
    from sqlwrapper.meta import RecordMeta
    from sqlwrapper.options import DatabaseOptions
    from sqlwrapper.scope import Scope
    from sqlwrapper.transaction import TxOptions

logger = logging.getLogger(__name__)

# Registry of strategy name -> strategy class
_STRATEGY_REGISTRY: dict[str, type['DatabaseStrategy']] = {}


def register_strategy(name: str):
    """Decorator to register a strategy class under a name.

    Usage:
        @register_strategy('postgresql')
        class PostgresStrategy(DatabaseStrategy):
            ...
    """
    def decorator(cls: type['DatabaseStrategy']) -> type['DatabaseStrategy']:
        cls.name = name
        _STRATEGY_REGISTRY[name] = cls
        return cls
    return decorator


@register_strategy('default')
class DatabaseStrategy:
    """Base class for dialect-specific operations.

    The base class is usable on its own: it implements `limit ? offset ?`
    paging and recovers generated keys through the cursor's `lastrowid`.
    """
    name = 'default'
    sqlalchemy_driver: str | None = None

    # Statement rendering

    def paginate(self, ctx: 'SqlContext', order_by: list[str], limit: int, offset: int) -> None:
        """Write the order by, limit and offset of a select.
        """
        ctx.order_by(order_by).limit_offset(limit, offset)

    def empty_insert_clause(self) -> str:
        """Text written after the table name when no column is inserted."""
        return ' default values'

    def standardize_sql(self, sql: str) -> str:
        """Translate rendered SQL to the DB-API driver's paramstyle.
        """
        return sql

    def insert_and_recover_key(self, ops: 'Operations', ctx: 'SqlContext',
                               meta: 'RecordMeta', scope: 'Scope | None' = None) -> tuple[int, Any]:
        """Execute a rendered insert and return (rowcount, generated key).

        The key is None when the driver cannot report it.
        """
        result = ops.raw_exec(ctx.query_string, *ctx.arguments, scope=scope)
        try:
            return result.rowcount, result.last_insert_id()
        except NotSupportedError as err:
            logger.warning(f'Generated key not recovered for {meta.record_type.__name__}: {err}')
            return result.rowcount, None

    # Connection handling

    def configure_connection(self, raw_conn: Any) -> None:
        """Configure a freshly checked out DB-API connection.
        """
        self.enable_autocommit(raw_conn)

    def enable_autocommit(self, raw_conn: Any) -> None:
        raw_conn.autocommit = True

    def disable_autocommit(self, raw_conn: Any) -> None:
        raw_conn.autocommit = False

    def create_cursor(self, raw_conn: Any) -> Any:
        return raw_conn.cursor()

    def cancel_hook(self, raw_conn: Any):
        """Callable aborting the statement running on `raw_conn`, or None."""
        return None

    # Transactions

    def begin(self, raw_conn: Any, tx_options: 'TxOptions | None' = None) -> None:
        """Start a transaction on a connection in autocommit mode.
        """
        self.disable_autocommit(raw_conn)
        if tx_options is not None and tx_options.isolation_level:
            cursor = raw_conn.cursor()
            try:
                cursor.execute(f'set transaction isolation level {tx_options.isolation_sql()}')
            finally:
                cursor.close()

    def commit(self, raw_conn: Any) -> None:
        raw_conn.commit()

    def rollback(self, raw_conn: Any) -> None:
        raw_conn.rollback()

    def end(self, raw_conn: Any) -> None:
        """Return the connection to autocommit mode after commit or rollback."""
        self.enable_autocommit(raw_conn)

    # Configuration

    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for this dialect.

        Args:
            options: DatabaseOptions containing connection parameters

        Returns
            sqlalchemy.URL for create_engine
        """
        if not self.sqlalchemy_driver:
            raise NotSupportedError(f'no SQLAlchemy driver known for {self.name}')
        query = {}
        if options.timeout:
            query['connect_timeout'] = str(options.timeout)
        return sa.URL.create(
            drivername=self.sqlalchemy_driver,
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port or None,
            database=options.database,
            query=query,
        )

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for this dialect."""
        return {}

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return list of required option field names for this dialect.
        """
        return ['hostname', 'database']

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        """Validate options for this dialect.

        Raises
            ValueError: If any required field is None or 0
        """
        for field in cls.get_required_options():
            if not getattr(options, field):
                raise ValueError(f'field {field} cannot be None or 0')
