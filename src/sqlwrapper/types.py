"""
Outbound argument adaptation.

Values bound to placeholders must be something every DB-API driver accepts.
`TypeConverter.convert_params` normalizes the argument list of a statement
before execution:

- numpy scalars become the matching Python scalar
- NaN, infinity and NaT become NULL
- `numpy.datetime64` becomes `datetime.datetime`
- enum members bind their value
- `memoryview`/`bytearray` become `bytes`
"""
import datetime
import enum
import math
from collections.abc import Sequence
from typing import Any

import numpy as np

__all__ = ['TypeConverter']

NUMPY_FLOAT_TYPES = (np.floating,)
NUMPY_INT_TYPES = (np.integer, np.unsignedinteger)


def _convert_numpy_value(val: Any) -> float | int | bool | datetime.datetime | None:
    """Convert NumPy value to Python type."""
    if isinstance(val, np.floating) and (np.isnan(val) or np.isinf(val)):
        return None

    if isinstance(val, np.datetime64):
        if np.isnat(val):
            return None
        return val.astype('datetime64[us]').item()

    if isinstance(val, (*NUMPY_FLOAT_TYPES, *NUMPY_INT_TYPES, np.bool_)):
        return val.item()

    return val


class TypeConverter:
    """Conversion of Python values to driver-bindable parameters.
    """

    @staticmethod
    def convert_value(value: Any) -> Any:
        """Convert a single value to a database-compatible format."""
        if value is None:
            return None

        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return None

        if isinstance(value, (*NUMPY_FLOAT_TYPES, *NUMPY_INT_TYPES, np.bool_, np.datetime64)):
            return _convert_numpy_value(value)

        if isinstance(value, enum.Enum):
            return TypeConverter.convert_value(value.value)

        if isinstance(value, memoryview | bytearray):
            return bytes(value)

        return value

    @staticmethod
    def convert_params(params: Sequence[Any]) -> list[Any]:
        """Positional arguments of one statement, each adapted for binding."""
        return [TypeConverter.convert_value(v) for v in params]
