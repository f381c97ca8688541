"""
Exception classes raised by the SQL builder and record mapper.

Errors fall into a handful of families so callers can tell caller misuse
(shape errors), malformed option usage (construction errors), per-column
scan failures (conversion errors) and transaction failures apart. Errors
raised by the DB-API driver are never wrapped.
"""
import re
import sqlite3

import psycopg

RETRYABLE_PATTERNS = [
    # SSL/TLS errors
    r'ssl',
    r'tls',
    # Connection drops
    r'connection.*(closed|reset|refused|lost|terminated|broken)',
    r'server closed',
    r'eof detected',
    r'broken pipe',
    # Timeouts
    r'timeout',
    r'timed out',
    # Network issues
    r'could not connect',
    r'no route to host',
    r'network.*(unreachable|error)',
    r'host.*(unreachable|down)',
    # Database unavailable
    r'database.*unavailable',
    r'too many connections',
]

_RETRYABLE_REGEX = re.compile('|'.join(RETRYABLE_PATTERNS), re.IGNORECASE)


def is_retryable_error(exc: BaseException) -> bool:
    """Check if an exception represents a transient error worth retrying.

    Syntax errors, constraint violations and conversion failures will fail
    again and are never retryable.

    :param exc: The exception to check.
    :returns: True if the error is likely transient.
    """
    if isinstance(exc, DatabaseError):
        return False
    return bool(_RETRYABLE_REGEX.search(str(exc).lower()))


class DatabaseError(Exception):
    """Base class for all sqlwrapper errors.
    """


# Shape errors: the caller handed over a destination of the wrong shape


class ShapeError(DatabaseError):
    """Destination or record type has the wrong shape.
    """


class NotPointerError(ShapeError):
    """Destination must be a record instance, not a type or None.
    """

    def __init__(self, value=None):
        super().__init__(f'destination must be a record instance, got {type(value).__name__}')


class ElemNotStructError(ShapeError):
    """Destination element is not a dataclass record.
    """

    def __init__(self, value=None):
        name = value.__name__ if isinstance(value, type) else type(value).__name__
        super().__init__(f'element type {name} is not a dataclass record')


class ElemNotSliceError(ShapeError):
    """Multi-row destination is not a mutable sequence.
    """

    def __init__(self, value=None):
        super().__init__(f'destination must be a mutable sequence, got {type(value).__name__}')


class InvalidPrimaryKeyTypeError(ShapeError):
    """Primary key field is neither an integer type nor a string type.
    """

    def __init__(self, record_type, field_name, field_type):
        self.record_type = record_type
        self.field_name = field_name
        self.field_type = field_type
        super().__init__(
            f'invalid primary key type {field_type!r} for field '
            f'{record_type.__name__}.{field_name}: must be an integer or string type')


class NotEntityError(ShapeError):
    """Object does not declare a table name.
    """


class NoPrimaryKeyError(ShapeError):
    """Record type does not declare a primary key field.
    """


# Construction errors: raised before any statement reaches the driver


class ConstructionError(DatabaseError):
    """Malformed option usage.
    """


class NotEnoughArgumentsError(ConstructionError):
    """Fewer arguments than `?` markers in a clause.
    """

    def __init__(self, clause: str = '', expected: int = 0, given: int = 0):
        self.clause = clause
        self.expected = expected
        self.given = given
        super().__init__(
            f'not enough arguments for clause {clause!r}: expected {expected}, {given} given')


class TooManyArgumentsError(ConstructionError):
    """More arguments than `?` markers in a clause.
    """

    def __init__(self, clause: str = '', expected: int = 0, given: int = 0):
        self.clause = clause
        self.expected = expected
        self.given = given
        super().__init__(
            f'too many arguments for clause {clause!r}: expected {expected}, {given} given')


class UnknownColumnError(ConstructionError):
    """Column passed to `with_columns` has no matching field.
    """

    def __init__(self, column: str):
        self.column = column
        super().__init__(f"cannot find any fields related to column '{column}'")


class InvalidJoinConditionTypeError(ConstructionError):
    """Join condition is neither `on` nor `using`.
    """

    def __init__(self, condition_type=None):
        super().__init__(f'invalid join condition type: {condition_type!r}')


# Conversion errors: raised per column while scanning


class ConversionError(DatabaseError):
    """Error converting a database value into a typed destination.

    Carries the source value, its type, the destination type and the reason.
    """

    def __init__(self, src, dest_type, reason: str = '', src_type=None):
        self.src = src
        self.src_type = src_type if src_type is not None else type(src)
        self.dest_type = dest_type
        self.reason = reason
        super().__init__(
            f'converting value type {_type_name(self.src_type)} ({src!r}) '
            f'to type {_type_name(dest_type)}: {reason}')


class UnsupportedConversionError(ConversionError):
    """No conversion from the source kind into the destination type.
    """

    def __init__(self, src, dest_type, src_type=None):
        super().__init__(src, dest_type, 'unsupported conversion', src_type=src_type)
        self.args = (
            f'unsupported conversion from type {_type_name(self.src_type)} '
            f'into type {_type_name(dest_type)}',)

    def __str__(self):
        return self.args[0]


class UnsupportedSourceError(ConversionError):
    """Source value is not one of the supported wire kinds.
    """

    def __init__(self, src, dest_type=None):
        super().__init__(src, dest_type, 'unsupported source type')
        self.args = (f'unsupported source type {_type_name(self.src_type)}',)

    def __str__(self):
        return self.args[0]


class ValidationError(DatabaseError):
    """Error in input validation.
    """


class EmptyPrimaryKeyError(ValidationError):
    """Primary key is empty or zero on a statement that needs it.
    """

    def __init__(self, column: str):
        self.column = column
        super().__init__(f"primary key field '{column}' should not be empty or zero value")


class DialectAlreadyRegisteredError(DatabaseError):
    """Driver name already bound to a dialect.
    """

    def __init__(self, driver: str):
        self.driver = driver
        super().__init__(f'dialect already registered for driver {driver!r}')


class NotSupportedError(DatabaseError):
    """Driver does not support the requested capability.
    """


class CancelledError(DatabaseError):
    """Execution scope was cancelled.
    """


class DeadlineExceededError(CancelledError):
    """Execution scope deadline passed.
    """


class TransactionError(DatabaseError):
    """Transaction failed at a given step.

    `step` is the `TransactionStep` that failed, `cause` the original error.
    """

    def __init__(self, step, cause: BaseException):
        self.step = step
        self.cause = cause
        label = {-1: 'begin', -2: 'run', -3: 'commit'}.get(int(step), str(step))
        if int(step) == -1:
            message = f'fail to create transaction: {cause}'
        else:
            message = f'transaction failed at {label} step: {cause}'
        super().__init__(message)


def _type_name(tp) -> str:
    if tp is None:
        return 'None'
    if isinstance(tp, type):
        return tp.__name__
    return str(tp)


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    )

IntegrityError = (
    psycopg.IntegrityError,
    sqlite3.IntegrityError,
    )
