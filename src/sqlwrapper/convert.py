"""
Conversion of database values into typed record fields.

Drivers hand back values of a small closed set of wire kinds: int, float,
str, bytes, bool, datetime and None. `convert_value` dispatches on the kind
of the source and asks a `ValueConverter` to produce a value for the field's
declared type.

Each `convert_*` method first handles the common destination shapes directly
(the exact builtin, `str`, `bytes`, `Any`) and only then falls back to
type-directed conversion: `Optional[X]` unwraps to `X`, then `int`/`str`/
`float` subclasses, enums, `Decimal`, `datetime`/`date` and numpy scalar
types. Narrowing into fixed-width numpy integers is range checked.

NULL handling is chosen per database with `NullStrategy`:

- DO_NOTHING: leave the field untouched
- SET_ZERO: assign the zero value of the declared type
- CONTINUE: let the converter decide (`None` for nullable fields, an error
  otherwise)
"""
import datetime
import enum
import types
import typing
import uuid
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Any

import numpy as np
from dateutil import parser as dateparser
from sqlwrapper.exceptions import ConversionError, UnsupportedConversionError
from sqlwrapper.exceptions import UnsupportedSourceError

__all__ = [
    'NullStrategy',
    'ValueConverter',
    'DEFAULT_TIME_FORMAT',
    'KEEP',
    'convert_value',
    'resolve_type',
    'zero_value',
    'is_zero',
    'format_float',
]

DEFAULT_TIME_FORMAT = '%Y-%m-%d %H:%M:%S'

_TRUE_STRINGS = frozenset(('1', 't', 'T', 'TRUE', 'true', 'True'))
_FALSE_STRINGS = frozenset(('0', 'f', 'F', 'FALSE', 'false', 'False'))


class NullStrategy(enum.Enum):
    """What to do with a field when the database value is NULL.
    """
    DO_NOTHING = 'do_nothing'
    SET_ZERO = 'set_zero'
    CONTINUE = 'continue'


class _Keep:
    """Marker returned when a field must be left untouched."""

    def __repr__(self):
        return 'KEEP'

    def __bool__(self):
        return False


KEEP = _Keep()


@lru_cache(maxsize=512)
def resolve_type(tp: Any) -> tuple[Any, bool]:
    """Strip annotations and Optional from a declared type.

    Returns the base type and whether None is allowed. Unions of several
    concrete types and unresolved string annotations resolve to `Any`.
    """
    if isinstance(tp, str):
        return Any, True
    origin = typing.get_origin(tp)
    if origin is typing.Annotated:
        return resolve_type(typing.get_args(tp)[0])
    if origin is typing.Union or origin is types.UnionType:
        args = typing.get_args(tp)
        concrete = [a for a in args if a is not type(None)]
        nullable = len(concrete) < len(args)
        if len(concrete) == 1:
            base, _ = resolve_type(concrete[0])
            return base, nullable
        return Any, nullable
    if origin is not None:
        # list[int], dict[str, Any] and friends
        return origin, False
    if tp is Any or tp is object or tp is None:
        return Any, True
    return tp, False


def _is_int_type(tp: Any) -> bool:
    return (isinstance(tp, type)
            and issubclass(tp, int | np.integer)
            and not issubclass(tp, bool | np.bool_))


def zero_value(tp: Any) -> Any:
    """Zero value of a declared type, None where there is none."""
    base, nullable = resolve_type(tp)
    if nullable or not isinstance(base, type) or issubclass(base, enum.Enum):
        return None
    if issubclass(base, np.generic):
        return base(0)
    if issubclass(base, bool | int | float | str | bytes | bytearray | Decimal):
        try:
            return base()
        except TypeError:
            return None
    return None


def is_zero(value: Any) -> bool:
    """Check whether a field value counts as unset.

    None, False, numeric zero and empty strings/bytes are zero. Enum members
    are zero when their value is.
    """
    if value is None:
        return True
    if isinstance(value, enum.Enum):
        return is_zero(value.value)
    if isinstance(value, bool | np.bool_):
        return not value
    if isinstance(value, int | float | Decimal | np.number):
        return value == 0
    if isinstance(value, str | bytes | bytearray):
        return len(value) == 0
    return False


def format_float(value: float) -> str:
    """Shortest positional text for a float: 1.0 -> '1', 0.25 -> '0.25'."""
    return np.format_float_positional(value, trim='-')


def _check_range(dest: type, src: int) -> Any:
    if issubclass(dest, np.integer):
        info = np.iinfo(dest)
        if src < info.min or src > info.max:
            raise ConversionError(src, dest, 'value out of range')
    return dest(src)


def _to_enum(dest: type[enum.Enum], src: Any) -> enum.Enum:
    try:
        return dest(src)
    except ValueError:
        pass
    if isinstance(src, str):
        if src in dest.__members__:
            return dest[src]
        if issubclass(dest, int):
            try:
                return dest(int(src))
            except ValueError:
                pass
    raise ConversionError(src, dest, f'{src!r} is not a valid {dest.__name__}')


def _parse_time(src: str, time_format: str, dest: Any) -> datetime.datetime:
    try:
        return datetime.datetime.strptime(src, time_format)
    except ValueError:
        pass
    try:
        return dateparser.parse(src)
    except (ValueError, OverflowError) as err:
        raise ConversionError(src, dest, str(err)) from err


class ValueConverter:
    """Converts wire values into typed destinations.

    Subclass and override individual `convert_*` methods to customize how a
    database maps values into records, then pass the instance as the
    `value_converter` option.
    """

    def __init__(self, time_format: str = DEFAULT_TIME_FORMAT):
        self.time_format = time_format

    def convert_string(self, dest: Any, src: str) -> Any:
        if dest is str or dest is Any:
            return src
        if dest is bytes:
            return src.encode()
        base, _ = resolve_type(dest)
        if base is Any or base is str:
            return src
        if not isinstance(base, type):
            raise UnsupportedConversionError(src, dest)
        if issubclass(base, enum.Enum):
            return _to_enum(base, src)
        if issubclass(base, bool | np.bool_):
            if src in _TRUE_STRINGS:
                return base(True)
            if src in _FALSE_STRINGS:
                return base(False)
            raise ConversionError(src, dest, f'invalid syntax for bool: {src!r}')
        if _is_int_type(base):
            try:
                parsed = int(src, 10)
            except ValueError as err:
                raise ConversionError(src, dest, str(err)) from err
            return _check_range(base, parsed)
        if issubclass(base, float | np.floating):
            try:
                return base(float(src))
            except ValueError as err:
                raise ConversionError(src, dest, str(err)) from err
        if issubclass(base, Decimal):
            try:
                return base(src)
            except InvalidOperation as err:
                raise ConversionError(src, dest, 'invalid decimal') from err
        if issubclass(base, datetime.datetime):
            return _parse_time(src, self.time_format, dest)
        if issubclass(base, datetime.date):
            return _parse_time(src, self.time_format, dest).date()
        if issubclass(base, uuid.UUID):
            try:
                return base(src)
            except ValueError as err:
                raise ConversionError(src, dest, str(err)) from err
        if issubclass(base, str):
            return base(src)
        if issubclass(base, bytes | bytearray):
            return base(src.encode())
        raise UnsupportedConversionError(src, dest)

    def convert_int64(self, dest: Any, src: int) -> Any:
        if dest is int or dest is Any:
            return src
        base, _ = resolve_type(dest)
        if base is Any or base is int:
            return src
        if not isinstance(base, type):
            raise UnsupportedConversionError(src, dest)
        if issubclass(base, enum.Enum):
            return _to_enum(base, src)
        if issubclass(base, bool | np.bool_):
            if src in {0, 1}:
                return base(src == 1)
            raise ConversionError(src, dest, 'only 0 and 1 could convert to bool')
        if _is_int_type(base):
            return _check_range(base, src)
        if issubclass(base, float | np.floating | Decimal):
            return base(src)
        if issubclass(base, str):
            return base(str(src))
        if issubclass(base, bytes | bytearray):
            return base(str(src).encode())
        raise UnsupportedConversionError(src, dest)

    def convert_float64(self, dest: Any, src: float) -> Any:
        if dest is float or dest is Any:
            return src
        base, _ = resolve_type(dest)
        if base is Any or base is float:
            return src
        if not isinstance(base, type):
            raise UnsupportedConversionError(src, dest)
        if issubclass(base, float | np.floating):
            return base(src)
        if _is_int_type(base):
            if not np.isfinite(src) or not src.is_integer():
                raise ConversionError(src, dest, f'{format_float(src)} is not an integral value')
            return _check_range(base, int(src))
        if issubclass(base, Decimal):
            return base(format_float(src))
        if issubclass(base, str):
            return base(format_float(src))
        if issubclass(base, bytes | bytearray):
            return base(format_float(src).encode())
        raise UnsupportedConversionError(src, dest)

    def convert_bool(self, dest: Any, src: bool) -> Any:
        if dest is bool or dest is Any:
            return src
        base, _ = resolve_type(dest)
        if base is Any or base is bool:
            return src
        if not isinstance(base, type):
            raise UnsupportedConversionError(src, dest)
        if issubclass(base, bool | np.bool_):
            return base(src)
        if issubclass(base, str):
            return base('true' if src else 'false')
        if issubclass(base, bytes | bytearray):
            return base(b'true' if src else b'false')
        raise UnsupportedConversionError(src, dest)

    def convert_bytes(self, dest: Any, src: bytes) -> Any:
        if dest is bytes or dest is Any:
            return bytes(src)
        base, _ = resolve_type(dest)
        if base is Any or base is bytes:
            return bytes(src)
        if not isinstance(base, type):
            raise UnsupportedConversionError(src, dest)
        if issubclass(base, bytes | bytearray):
            return base(src)
        try:
            text = bytes(src).decode()
        except UnicodeDecodeError as err:
            raise ConversionError(src, dest, str(err)) from err
        if issubclass(base, str) and not issubclass(base, enum.Enum):
            return base(text)
        try:
            return self.convert_string(dest, text)
        except ConversionError as err:
            raise UnsupportedConversionError(src, dest) from err

    def convert_time(self, dest: Any, src: datetime.datetime) -> Any:
        if dest is datetime.datetime or dest is Any:
            return src
        base, _ = resolve_type(dest)
        if base is Any:
            return src
        if not isinstance(base, type):
            raise UnsupportedConversionError(src, dest)
        if issubclass(base, datetime.datetime):
            return src
        if issubclass(base, datetime.date):
            return src.date()
        if issubclass(base, str):
            return base(src.strftime(self.time_format))
        if issubclass(base, bytes | bytearray):
            return base(src.strftime(self.time_format).encode())
        raise UnsupportedConversionError(src, dest)

    def convert_null(self, dest: Any) -> Any:
        """Value for a NULL source when the converter is asked to decide."""
        _, nullable = resolve_type(dest)
        if nullable:
            return None
        raise ConversionError(None, dest, 'cannot assign NULL to a non-nullable field',
                              src_type=type(None))


def convert_value(dest: Any, src: Any, converter: ValueConverter,
                  on_null: NullStrategy = NullStrategy.DO_NOTHING) -> Any:
    """Convert one column value for a field declared as `dest`.

    Returns `KEEP` when the field must be left untouched.
    """
    if src is None:
        if on_null is NullStrategy.DO_NOTHING:
            return KEEP
        if on_null is NullStrategy.SET_ZERO:
            return zero_value(dest)
        return converter.convert_null(dest)
    # bool before int: bool is an int subclass
    if isinstance(src, bool | np.bool_):
        return converter.convert_bool(dest, bool(src))
    if isinstance(src, int | np.integer):
        return converter.convert_int64(dest, int(src))
    if isinstance(src, float | np.floating):
        return converter.convert_float64(dest, float(src))
    if isinstance(src, str):
        return converter.convert_string(dest, src)
    if isinstance(src, bytes | bytearray | memoryview):
        return converter.convert_bytes(dest, bytes(src))
    if isinstance(src, datetime.datetime):
        return converter.convert_time(dest, src)
    if isinstance(src, datetime.date):
        return converter.convert_time(dest, datetime.datetime.combine(src, datetime.time()))
    if isinstance(src, Decimal):
        if resolve_type(dest)[0] in {Decimal, Any}:
            return src
        return converter.convert_string(dest, str(src))
    if isinstance(src, uuid.UUID):
        if resolve_type(dest)[0] in {uuid.UUID, Any}:
            return src
        return converter.convert_string(dest, str(src))
    if isinstance(src, datetime.time):
        return converter.convert_string(dest, src.isoformat())
    raise UnsupportedSourceError(src, dest)
