"""
Transaction handling.

Two ways to run statements in one transaction:

    step = db.run_tx(lambda tx: tx.insert(user) == 1)

`run_tx` commits when the callable returns a truthy value, rolls back
otherwise, and reports failures as `TransactionError` tagged with the step
that failed.

    with db.transaction() as tx:
        tx.insert(user)
        tx.update(account)

The context manager commits on a clean exit and rolls back when the block
raises; the block's exception propagates unchanged.
"""
import enum
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlwrapper.crud import ExecResult, Operations
from sqlwrapper.exceptions import TransactionError
from sqlwrapper.scanner import RowsScanner

if TYPE_CHECKING:
    from sqlwrapper.connection import Database
    from sqlwrapper.scope import Scope

__all__ = ['TransactionStep', 'TxOptions', 'Tx', 'Transaction', 'run_tx']

logger = logging.getLogger(__name__)

ISOLATION_LEVELS = ('read uncommitted', 'read committed', 'repeatable read', 'serializable')

_local = threading.local()


class TransactionStep(enum.IntEnum):
    """Last step a transaction reached. Only END means it completed."""
    END = 0
    BEGIN = -1
    RUN = -2
    COMMIT = -3


@dataclass(frozen=True)
class TxOptions:
    """Isolation level and access mode applied when a transaction begins."""
    isolation_level: str | None = None
    read_only: bool = False

    def __post_init__(self):
        if self.isolation_level is not None:
            level = self.isolation_level.lower().replace('_', ' ')
            if level not in ISOLATION_LEVELS:
                raise ValueError(f'isolation_level must be one of: {list(ISOLATION_LEVELS)}')
            object.__setattr__(self, 'isolation_level', level)

    def isolation_sql(self) -> str:
        """Isolation level as SQL keywords, e.g. `READ COMMITTED`."""
        return (self.isolation_level or '').upper()


class Tx(Operations):
    """Operations bound to an open transaction.

    Shares the dialect, converter, NULL strategy and context pool of its
    database. A handle must not be used from more than one thread.
    """

    def __init__(self, db: 'Database', scope: 'Scope') -> None:
        self.db = db
        self.dialect = db.dialect
        self.driver = db.driver
        self.converter = db.converter
        self.on_null = db.on_null
        self.scope = scope
        self._contexts = db._contexts

    def raw_exec(self, sql: str, *args: Any, scope: 'Scope | None' = None) -> ExecResult:
        return self.db._execute(sql, args, scope or self.scope)

    def raw_query(self, sql: str, scanner: RowsScanner, *args: Any,
                  scope: 'Scope | None' = None) -> None:
        self.db._query(sql, args, scanner, scope or self.scope)


class Transaction:
    """Context manager for running multiple statements in a transaction.

    Thread-local state tracks the open transaction of each database, so
    nesting on one database in the same thread raises `RuntimeError`. Other
    threads using the database wait until the transaction ends.
    """

    def __init__(self, db: 'Database', tx_options: TxOptions | None = None) -> None:
        self.db = db
        self.tx_options = tx_options
        self.tx: Tx | None = None

        if not hasattr(_local, 'active_transactions'):
            _local.active_transactions = {}
        if id(db) in _local.active_transactions:
            raise RuntimeError('Nested transactions are not supported')

    def begin(self) -> Tx:
        """Start the transaction.

        Raises
            TransactionError: step BEGIN, the driver refused to start it
        """
        self.db._lock.acquire()
        _local.active_transactions[id(self.db)] = True
        self.db.in_transaction = True
        try:
            self.db.strategy.begin(self.db.raw_connection, self.tx_options)
        except Exception as err:
            self._release()
            raise TransactionError(TransactionStep.BEGIN, err) from err
        self.tx = Tx(self.db, self.db.scope.child())
        logger.debug(f'Started transaction for connection {id(self.db)}')
        return self.tx

    def commit(self) -> None:
        """Raises
            TransactionError: step COMMIT
        """
        try:
            self.db.strategy.commit(self.db.raw_connection)
        except Exception as err:
            raise TransactionError(TransactionStep.COMMIT, err) from err
        logger.debug(f'Committed transaction for connection {id(self.db)}')

    def rollback(self) -> None:
        logger.warning('Rolling back the current transaction')
        self.db.strategy.rollback(self.db.raw_connection)

    def end(self) -> None:
        """Return the connection to autocommit and release the database."""
        try:
            self.db.strategy.end(self.db.raw_connection)
        finally:
            if self.tx is not None:
                self.tx.scope.cancel()
            self._release()
            logger.debug(f'Transaction cleanup complete for connection {id(self.db)}')

    def _release(self) -> None:
        _local.active_transactions.pop(id(self.db), None)
        self.db.in_transaction = False
        self.db._lock.release()

    def __enter__(self) -> Tx:
        return self.begin()

    def __exit__(self, exc_type: type | None, value: Exception | None, traceback: Any | None) -> None:
        try:
            if exc_type is not None:
                self.rollback()
            else:
                try:
                    self.commit()
                except TransactionError:
                    self.rollback()
                    raise
        finally:
            self.end()


def run_tx(db: 'Database', run: Callable[[Tx], Any],
           tx_options: TxOptions | None = None) -> TransactionStep:
    """Run `run(tx)` in a transaction, committing when it returns truthy.

    Returns TransactionStep.END when the transaction committed or was
    rolled back on request.

    Raises
        TransactionError: tagged BEGIN, RUN or COMMIT; `cause` holds the
        original error
    """
    transaction = Transaction(db, tx_options)
    tx = transaction.begin()
    committed = False
    try:
        try:
            commit = run(tx)
        except Exception as err:
            raise TransactionError(TransactionStep.RUN, err) from err
        if not commit:
            logger.debug('Transaction not committed on request')
            return TransactionStep.END
        transaction.commit()
        committed = True
        return TransactionStep.END
    finally:
        if not committed:
            try:
                transaction.rollback()
            except Exception as err:
                logger.warning(f'Rollback failed: {err}')
        transaction.end()
