"""
Database connection handling with SQLAlchemy.

This module provides the primary interfaces for connecting to databases:
1. The `connect()` function for creating new database connections
2. The `Database` class running record operations on one connection

SQLAlchemy is used for URL building, driver loading and connection checkout.
A `Database` checks one connection out when it is created and keeps it until
`close()`; statements run on its DB-API connection through the dialect's
strategy, one at a time.

    db = connect({'drivername': 'postgresql', 'hostname': 'localhost',
                  'username': 'me', 'password': 'secret', 'database': 'app',
                  'port': 5432})
    with db:
        db.insert(user)
"""
import logging
import threading
import time
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from functools import wraps
from typing import Any, Self, TypeVar

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from sqlwrapper.context import ContextPool
from sqlwrapper.crud import ExecResult, Operations
from sqlwrapper.exceptions import DbConnectionError, is_retryable_error
from sqlwrapper.options import DatabaseOptions
from sqlwrapper.scanner import Rows, RowsScanner
from sqlwrapper.scope import Scope
from sqlwrapper.transaction import Transaction, TransactionStep, Tx, TxOptions
from sqlwrapper.transaction import run_tx
from sqlwrapper.types import TypeConverter

from libb import load_options

__all__ = ['Database', 'connect', 'check_connection', 'dumpsql', 'create_engine_for_options']

logger = logging.getLogger(__name__)

T = TypeVar('T')


def dumpsql(func):
    """Decorator for logging SQL statements, arguments and timing."""
    @wraps(func)
    def wrapper(self, operation: str, args: Sequence[Any] = (), *rest: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{operation}\nargs: {list(args)}')
        try:
            return func(self, operation, args, *rest, **kwargs)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{operation}\nargs: {list(args)}')
            raise
        finally:
            elapsed = time.time() - start
            self.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


def check_connection(func: Callable[..., T] | None = None, *, max_retries: int = 3,
                     retry_delay: float = 1, retry_errors: type | tuple[type, ...] | None = None,
                     retry_backoff: float = 1.5,
                     sleep_func: Callable[[float], None] = time.sleep) -> Callable[..., T]:
    """Connection retry decorator with backoff.

    Retries the decorated database method when it fails with a transient
    connection error (see `is_retryable_error`). Calls made while the
    database is inside a transaction are never retried.

    Supports both @check_connection and @check_connection() syntax.
    """
    def decorator(f: Callable[..., T]) -> Callable[..., T]:
        @wraps(f)
        def inner(self, *args: Any, **kwargs: Any) -> T:
            error_types = retry_errors if retry_errors is not None else DbConnectionError

            tries = 0
            delay = retry_delay
            while True:
                try:
                    return f(self, *args, **kwargs)
                except error_types as err:
                    if getattr(self, 'in_transaction', False) or not is_retryable_error(err):
                        raise
                    tries += 1
                    if tries >= max_retries:
                        logger.error(f'Maximum retries ({max_retries}) exceeded: {err}')
                        raise
                    logger.warning(f'Connection error (attempt {tries}/{max_retries}): {err}')
                    sleep_func(delay)
                    delay *= retry_backoff

        return inner

    if func is None:
        return decorator
    return decorator(func)


def create_engine_for_options(options: DatabaseOptions,
                              engine_factory: Callable[..., Engine] = sa.create_engine,
                              **kwargs: Any) -> Engine:
    """Create a SQLAlchemy engine for the given options.

    Connections are not pooled: a `Database` holds its one connection for
    its whole life.
    """
    strategy = options.dialect.strategy
    url = strategy.build_connection_url(options)
    engine_kwargs: dict[str, Any] = {'echo': False, 'poolclass': NullPool}
    engine_kwargs.update(strategy.get_engine_kwargs(options))
    engine_kwargs.update(kwargs)
    logger.debug(f'Creating engine for {options.drivername}')
    return engine_factory(url, **engine_kwargs)


class Database(Operations):
    """Record operations on one SQLAlchemy connection.

    Statement execution is serialized by a lock, so a database can be shared
    between threads; a transaction holds the lock until it ends.
    """

    def __init__(self, sa_connection: sa.engine.Connection, options: DatabaseOptions) -> None:
        self.sa_connection = sa_connection
        self.engine = sa_connection.engine
        self.options = options
        self.driver = options.drivername
        self.dialect = options.dialect
        self.converter = options.value_converter
        self.on_null = options.on_null
        self.scope = Scope()
        self._contexts = ContextPool(self.dialect, self.driver)
        self._lock = threading.RLock()
        self.in_transaction = False
        self.calls = 0
        self.time = 0
        self.strategy.configure_connection(self.raw_connection)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    @property
    def raw_connection(self) -> Any:
        """The driver's own connection object."""
        return self.sa_connection.connection.driver_connection

    def _ensure_connection(self) -> Any:
        """Reconnect when the held connection was closed or lost."""
        lost = getattr(self.raw_connection, 'closed', False) is True
        if self.sa_connection.closed or lost:
            if self.in_transaction:
                return self.raw_connection
            logger.warning(f'Reconnecting to {self.driver}')
            if not self.sa_connection.closed:
                self.sa_connection.invalidate()
                self.sa_connection.close()
            self.sa_connection = self.engine.connect()
            self.strategy.configure_connection(self.raw_connection)
        return self.raw_connection

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics."""
        self.time += elapsed
        self.calls += 1

    def _run(self, cursor: Any, raw: Any, sql: str, args: Sequence[Any], scope: Scope,
             scanner: RowsScanner | None = None) -> None:
        """Execute on `cursor` under the scope's cancel hook, then scan.

        A statement aborted by the scope raises the scope's error instead of
        the driver's.
        """
        try:
            with scope.watch(self.strategy.cancel_hook(raw)):
                cursor.execute(self.strategy.standardize_sql(sql),
                               TypeConverter.convert_params(args))
                if scanner is not None:
                    scanner.scan_from(Rows(cursor, scope))
        except Exception:
            scope.check()
            raise

    @dumpsql
    def _execute(self, sql: str, args: Sequence[Any] = (), scope: Scope | None = None) -> ExecResult:
        scope = scope or self.scope
        scope.check()
        with self._lock:
            raw = self._ensure_connection()
            cursor = self.strategy.create_cursor(raw)
            try:
                self._run(cursor, raw, sql, args, scope)
                return ExecResult(cursor.rowcount, getattr(cursor, 'lastrowid', None))
            finally:
                cursor.close()

    @dumpsql
    def _query(self, sql: str, args: Sequence[Any] = (), scanner: RowsScanner = None,
               scope: Scope | None = None) -> None:
        scope = scope or self.scope
        scope.check()
        with self._lock:
            raw = self._ensure_connection()
            cursor = self.strategy.create_cursor(raw)
            try:
                self._run(cursor, raw, sql, args, scope, scanner)
            finally:
                cursor.close()

    @check_connection
    def raw_exec(self, sql: str, *args: Any, scope: Scope | None = None) -> ExecResult:
        """Execute a statement that returns no rows.

        `sql` uses the dialect's placeholders.
        """
        return self._execute(sql, args, scope)

    @check_connection
    def raw_query(self, sql: str, scanner: RowsScanner, *args: Any,
                  scope: Scope | None = None) -> None:
        """Execute a query and hand its rows to `scanner`."""
        self._query(sql, args, scanner, scope)

    def ping(self) -> None:
        """Round trip to the server; raises the driver's error when unreachable."""
        with self._lock:
            self._ensure_connection()
            self.engine.dialect.do_ping(self.sa_connection.connection.dbapi_connection)

    def run_tx(self, run: Callable[[Tx], Any], tx_options: TxOptions | None = None) -> TransactionStep:
        """Run `run(tx)` in a transaction; see `sqlwrapper.transaction.run_tx`."""
        return run_tx(self, run, tx_options)

    @contextmanager
    def transaction(self, tx_options: TxOptions | None = None) -> Iterator[Tx]:
        """Transaction as a context manager, committing on clean exit.
        """
        with Transaction(self, tx_options) as tx:
            yield tx

    def close(self) -> None:
        """Cancel running statements, release the connection and dispose the engine."""
        self.scope.cancel()
        if not self.sa_connection.closed:
            self.sa_connection.close()
            logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s (avg: {self.time/max(1,self.calls):.3f}s per query)')
        self.engine.dispose()


@load_options(cls=DatabaseOptions)
def connect(options: DatabaseOptions | dict[str, Any] | str,
            config: Any | None = None, **kw: Any) -> Database:
    """Connect to a database using SQLAlchemy for connection management

    Args:
        options: Can be:
                - DatabaseOptions object
                - String path to configuration
                - Dictionary of options
                - Options specified as keyword arguments
        config: Configuration object (for loading from config files)
        **kw: Additional keyword arguments to override options

    Returns
        Database bound to a fresh connection
    """
    engine = create_engine_for_options(options)
    sa_connection = engine.connect()
    db = Database(sa_connection, options)
    if options.check_connection:
        db.ping()
    logger.debug(f'Connected to {options.drivername} database {options.database}')
    return db
