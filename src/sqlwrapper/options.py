from dataclasses import dataclass

from sqlwrapper.convert import NullStrategy, ValueConverter
from sqlwrapper.dialect import Dialect, get_dialect, registered_drivers

from libb import ConfigOptions, scriptname

__all__ = ['DatabaseOptions']


@dataclass
class DatabaseOptions(ConfigOptions):
    """Options

    supported driver names: `postgresql` (`postgres`, `pgx`), `sqlite`
    (`sqlite3`), `mysql`, `sqlserver` (`mssql`), `oracle` (`oci8`), and any
    name bound with `register_dialect`.

    Mapping options:
    - on_null: what a NULL column does to a non-nullable field (default: leave it)
    - dialect: dialect override, required for unregistered driver names
    - value_converter: converter override for inbound values
    """
    drivername: str = 'postgresql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    appname: str = None
    check_connection: bool = True
    on_null: NullStrategy = NullStrategy.DO_NOTHING
    dialect: Dialect | None = None
    value_converter: ValueConverter | None = None

    def __post_init__(self):
        if self.dialect is None and self.drivername not in registered_drivers():
            available = registered_drivers()
            raise ValueError(f'drivername must be one of: {available}')
        if isinstance(self.on_null, str):
            self.on_null = NullStrategy[self.on_null.upper()]
        self.appname = self.appname or scriptname() or 'python_console'
        self.dialect = self.dialect or get_dialect(self.drivername)
        self.value_converter = self.value_converter or ValueConverter()
        self.dialect.strategy.validate_options(self)
