"""
Dynamic SQL builder and record mapper for PostgreSQL, SQLite, MySQL, SQL
Server and Oracle.

Records are dataclasses; statements are built from their metadata and
composable options and rendered in the dialect of the connection:

    @dataclass
    class User(Entity):
        __tablename__ = 'users'
        id: int = 0
        name: str = ''
        age: int = 0

    db = connect({'drivername': 'sqlite', 'database': ':memory:'})
    db.insert(user)
    adults = db.query_multiple([], User, where('age >= ?', 18), order_by('name'))
"""
__version__ = '0.1.0'

from sqlwrapper.clauses import alias, full_join, group_by, having, including_zeros
from sqlwrapper.clauses import inner_join, left_join, limit, offset, on, order_by
from sqlwrapper.clauses import retrieve_unused_values_to, right_join, select
from sqlwrapper.clauses import select_from, sub_query, table, using, where
from sqlwrapper.clauses import with_columns
from sqlwrapper.connection import Database, connect
from sqlwrapper.context import ContextPool, SqlContext
from sqlwrapper.convert import NullStrategy, ValueConverter
from sqlwrapper.crud import ExecResult
from sqlwrapper.dialect import Dialect, get_dialect, register_dialect
from sqlwrapper.entity import Entity, db_field
from sqlwrapper.exceptions import CancelledError, ConstructionError, ConversionError
from sqlwrapper.exceptions import DatabaseError, DbConnectionError
from sqlwrapper.exceptions import DeadlineExceededError, IntegrityError, ShapeError
from sqlwrapper.exceptions import TransactionError, ValidationError
from sqlwrapper.meta import MetadataCache
from sqlwrapper.options import DatabaseOptions
from sqlwrapper.quoting import Quoter
from sqlwrapper.scanner import scan_fn, single_row_scanner
from sqlwrapper.scope import Scope
from sqlwrapper.transaction import TransactionStep, Tx, TxOptions
from sqlwrapper.valuegroup import ValueGroup
