"""
Dialects: identifier quoting, placeholder syntax and column naming per driver.

Built-in driver names:

    sqlite, sqlite3          snake   ?     `name`
    mysql                    snake   ?     `name`
    pgx, postgres,
    postgresql               snake   $1    "name"
    mssql, sqlserver         snake   @p1   [name]
    oracle, oci8             UPPER   :1    "NAME"

Unknown drivers fall back to the default dialect (snake, `?`, no quotes).
"""
import logging
import threading
from dataclasses import dataclass, field

from sqlwrapper.exceptions import DialectAlreadyRegisteredError
from sqlwrapper.naming import NamingConverter, snake, upper_snake
from sqlwrapper.placeholder import Placeholder, at_p, colon, dollar, question_mark
from sqlwrapper.quoting import BACKTICKS, BRACKETS, DOUBLE_QUOTES, NO_QUOTES, Quoter
from sqlwrapper.strategy import DatabaseStrategy, get_strategy

__all__ = [
    'Dialect',
    'DEFAULT_DIALECT',
    'get_dialect',
    'register_dialect',
    'registered_drivers',
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dialect:
    """Immutable bundle of naming, placeholder, quoting and strategy.
    """
    naming: NamingConverter = snake
    placeholder: Placeholder = question_mark
    quoter: Quoter = NO_QUOTES
    strategy: DatabaseStrategy = field(default_factory=lambda: get_strategy('default'))

    def quote(self, identifier: str) -> str:
        return self.quoter.quote(identifier)

    def hold_place(self, index: int) -> str:
        return self.placeholder(index)

    def convert(self, name: str) -> str:
        """Column name for a field name."""
        return self.naming(name)


DEFAULT_DIALECT = Dialect()
MYSQL = Dialect(snake, question_mark, BACKTICKS, get_strategy('mysql'))
SQLITE = Dialect(snake, question_mark, BACKTICKS, get_strategy('sqlite'))
POSTGRESQL = Dialect(snake, dollar, DOUBLE_QUOTES, get_strategy('postgresql'))
SQLSERVER = Dialect(snake, at_p, BRACKETS, get_strategy('sqlserver'))
ORACLE = Dialect(upper_snake, colon, DOUBLE_QUOTES, get_strategy('oracle'))

_dialects: dict[str, Dialect] = {
    'sqlite': SQLITE,
    'sqlite3': SQLITE,
    'mysql': MYSQL,
    'oracle': ORACLE,
    'oci8': ORACLE,
    'pgx': POSTGRESQL,
    'postgres': POSTGRESQL,
    'postgresql': POSTGRESQL,
    'mssql': SQLSERVER,
    'sqlserver': SQLSERVER,
}
_dialects_lock = threading.Lock()


def get_dialect(driver: str) -> Dialect:
    """Dialect registered for a driver name, or the default dialect."""
    return _dialects.get(driver, DEFAULT_DIALECT)


def register_dialect(driver: str, dialect: Dialect) -> None:
    """Bind a dialect to a driver name.

    Raises
        DialectAlreadyRegisteredError: name already bound, built-ins included
    """
    with _dialects_lock:
        if driver in _dialects:
            raise DialectAlreadyRegisteredError(driver)
        _dialects[driver] = dialect
    logger.debug(f'Registered dialect for driver {driver}')


def registered_drivers() -> list[str]:
    return list(_dialects)
