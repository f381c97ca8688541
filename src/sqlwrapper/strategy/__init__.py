"""
Strategy factory for dialect-specific operations.
"""
from functools import lru_cache

from sqlwrapper.strategy.base import _STRATEGY_REGISTRY
from sqlwrapper.strategy.base import DatabaseStrategy as DatabaseStrategy
from sqlwrapper.strategy.base import register_strategy as register_strategy
from sqlwrapper.strategy.mysql import MYSQL_UNLIMITED as MYSQL_UNLIMITED
from sqlwrapper.strategy.mysql import MySQLStrategy as MySQLStrategy
from sqlwrapper.strategy.oracle import OracleStrategy as OracleStrategy
from sqlwrapper.strategy.postgres import PostgresStrategy as PostgresStrategy
from sqlwrapper.strategy.sqlite import SQLiteStrategy as SQLiteStrategy
from sqlwrapper.strategy.sqlserver import SQLServerStrategy as SQLServerStrategy


def _validate_name(name: str) -> None:
    """Raise ValueError if no strategy is registered under name."""
    if name not in _STRATEGY_REGISTRY:
        available = list(_STRATEGY_REGISTRY.keys())
        raise ValueError(f'Unsupported strategy: {name}. Available: {available}')


@lru_cache(maxsize=16)
def get_strategy(name: str) -> DatabaseStrategy:
    """Get cached strategy instance by name."""
    _validate_name(name)
    return _STRATEGY_REGISTRY[name]()


def get_available_strategies() -> list[str]:
    """Return list of registered strategy names."""
    return list(_STRATEGY_REGISTRY.keys())


def is_supported_strategy(name: str) -> bool:
    """Check if a strategy is registered."""
    return name in _STRATEGY_REGISTRY


def get_strategy_class(name: str) -> type[DatabaseStrategy]:
    """Get the strategy class without instantiating."""
    _validate_name(name)
    return _STRATEGY_REGISTRY[name]
