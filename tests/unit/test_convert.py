"""Unit tests for value conversion into typed fields."""
import datetime
import enum
import uuid
from decimal import Decimal
from typing import Any, Optional

import numpy as np
import pytest
from sqlwrapper.convert import KEEP, NullStrategy, ValueConverter, convert_value
from sqlwrapper.convert import format_float, is_zero, resolve_type, zero_value
from sqlwrapper.exceptions import ConversionError, UnsupportedConversionError
from sqlwrapper.exceptions import UnsupportedSourceError


class Color(enum.Enum):
    RED = 'red'
    BLUE = 'blue'


class Level(enum.IntEnum):
    LOW = 1
    HIGH = 2


class UserId(int):
    pass


@pytest.fixture
def converter():
    return ValueConverter()


def convert(dest, src, on_null=NullStrategy.DO_NOTHING):
    return convert_value(dest, src, ValueConverter(), on_null)


class TestResolveType:

    @pytest.mark.parametrize(('tp', 'expected'), [
        (int, (int, False)),
        (int | None, (int, True)),
        (Optional[str], (str, True)),
        (int | str, (Any, False)),
        (list[int], (list, False)),
        (Any, (Any, True)),
        ('int', (Any, True)),
    ], ids=['plain', 'union_none', 'optional', 'multi_union', 'generic', 'any', 'string'])
    def test_resolve(self, tp, expected):
        assert resolve_type(tp) == expected


class TestZero:

    @pytest.mark.parametrize('value', [None, 0, 0.0, '', b'', False, Decimal(0), np.int32(0)],
                             ids=['none', 'int', 'float', 'str', 'bytes', 'bool', 'decimal', 'numpy'])
    def test_is_zero(self, value):
        assert is_zero(value)

    @pytest.mark.parametrize('value', [1, -1.5, 'a', b'x', True, [], datetime.date(2020, 1, 1)],
                             ids=['int', 'float', 'str', 'bytes', 'bool', 'list', 'date'])
    def test_is_not_zero(self, value):
        assert not is_zero(value)

    def test_enum_zero_follows_value(self):
        class Flag(enum.IntEnum):
            OFF = 0
            ON = 1
        assert is_zero(Flag.OFF)
        assert not is_zero(Flag.ON)

    @pytest.mark.parametrize(('tp', 'expected'), [
        (int, 0), (str, ''), (float, 0.0), (bool, False), (bytes, b''),
        (int | None, None), (datetime.date, None), (Color, None),
    ], ids=['int', 'str', 'float', 'bool', 'bytes', 'optional', 'date', 'enum'])
    def test_zero_value(self, tp, expected):
        assert zero_value(tp) == expected

    def test_numpy_zero_value(self):
        value = zero_value(np.int16)
        assert value == 0
        assert isinstance(value, np.int16)


class TestNull:

    def test_do_nothing_keeps_field(self):
        assert convert(int, None) is KEEP

    def test_set_zero(self):
        assert convert(int, None, NullStrategy.SET_ZERO) == 0
        assert convert(str, None, NullStrategy.SET_ZERO) == ''
        assert convert(int | None, None, NullStrategy.SET_ZERO) is None

    def test_continue_nullable(self):
        assert convert(str | None, None, NullStrategy.CONTINUE) is None

    def test_continue_non_nullable(self):
        with pytest.raises(ConversionError):
            convert(int, None, NullStrategy.CONTINUE)

    def test_keep_is_falsy(self):
        assert not KEEP
        assert repr(KEEP) == 'KEEP'


class TestFromString:

    @pytest.mark.parametrize(('dest', 'src', 'expected'), [
        (str, 'abc', 'abc'),
        (bytes, 'abc', b'abc'),
        (int, '42', 42),
        (float, '1.5', 1.5),
        (bool, 't', True),
        (bool, 'FALSE', False),
        (Decimal, '1.10', Decimal('1.10')),
        (Color, 'red', Color.RED),
        (Color, 'BLUE', Color.BLUE),
        (Level, '2', Level.HIGH),
        (datetime.datetime, '2023-05-01 10:20:30', datetime.datetime(2023, 5, 1, 10, 20, 30)),
        (datetime.date, '2023-05-01 10:20:30', datetime.date(2023, 5, 1)),
        (Any, 'x', 'x'),
        (str | None, 'x', 'x'),
    ], ids=['str', 'bytes', 'int', 'float', 'bool_true', 'bool_false', 'decimal',
            'enum_value', 'enum_name', 'int_enum', 'datetime', 'date', 'any', 'optional'])
    def test_convert(self, dest, src, expected):
        assert convert(dest, src) == expected

    def test_iso_datetime_falls_back_to_parser(self):
        assert convert(datetime.datetime, '2023-05-01T10:20:30') == datetime.datetime(2023, 5, 1, 10, 20, 30)

    def test_uuid(self):
        value = '12345678-1234-5678-1234-567812345678'
        assert convert(uuid.UUID, value) == uuid.UUID(value)

    @pytest.mark.parametrize(('dest', 'src'), [
        (int, 'abc'), (bool, 'yes'), (float, 'x'), (Decimal, 'x'), (Color, 'green'),
        (np.int8, '300'),
    ], ids=['int', 'bool', 'float', 'decimal', 'enum', 'int8_range'])
    def test_invalid(self, dest, src):
        with pytest.raises(ConversionError):
            convert(dest, src)

    def test_unsupported(self):
        with pytest.raises(UnsupportedConversionError):
            convert(list, 'x')


class TestFromInt:

    @pytest.mark.parametrize(('dest', 'src', 'expected'), [
        (int, 7, 7),
        (float, 7, 7.0),
        (Decimal, 7, Decimal(7)),
        (str, 7, '7'),
        (bytes, 7, b'7'),
        (bool, 1, True),
        (bool, 0, False),
        (Level, 1, Level.LOW),
        (UserId, 5, UserId(5)),
    ], ids=['int', 'float', 'decimal', 'str', 'bytes', 'bool_1', 'bool_0', 'int_enum', 'int_subclass'])
    def test_convert(self, dest, src, expected):
        result = convert(dest, src)
        assert result == expected
        assert type(result) is type(expected)

    def test_bool_out_of_range(self):
        with pytest.raises(ConversionError, match='only 0 and 1'):
            convert(bool, 2)

    def test_numpy_range(self):
        assert convert(np.int8, 127) == np.int8(127)
        with pytest.raises(ConversionError, match='out of range'):
            convert(np.int8, 128)
        with pytest.raises(ConversionError):
            convert(np.uint16, -1)

    def test_numpy_source(self):
        assert convert(int, np.int64(3)) == 3

    def test_unsupported(self):
        with pytest.raises(UnsupportedConversionError):
            convert(datetime.date, 3)


class TestFromFloat:

    def test_to_float(self):
        assert convert(float, 2.5) == 2.5
        assert convert(np.float32, 2.5) == np.float32(2.5)

    def test_integral_float_to_int(self):
        assert convert(int, 3.0) == 3

    def test_fractional_float_to_int(self):
        with pytest.raises(ConversionError, match='not an integral value'):
            convert(int, 3.5)

    def test_to_text(self):
        assert convert(str, 1.0) == '1'
        assert convert(str, 0.25) == '0.25'
        assert convert(Decimal, 0.1) == Decimal('0.1')

    def test_format_float(self):
        assert format_float(100.0) == '100'
        assert format_float(1.5e-7) == '0.00000015'


class TestOtherSources:

    def test_bool(self):
        assert convert(bool, True) is True
        assert convert(str, False) == 'false'
        with pytest.raises(UnsupportedConversionError):
            convert(int, True)

    def test_bytes(self):
        assert convert(bytes, b'abc') == b'abc'
        assert convert(str, b'abc') == 'abc'
        assert convert(int, b'12') == 12
        assert convert(bytes, memoryview(b'xy')) == b'xy'

    def test_bytes_not_text(self):
        with pytest.raises(ConversionError):
            convert(str, b'\xff\xfe')

    def test_datetime(self):
        value = datetime.datetime(2024, 2, 3, 4, 5, 6)
        assert convert(datetime.datetime, value) is value
        assert convert(datetime.date, value) == datetime.date(2024, 2, 3)
        assert convert(str, value) == '2024-02-03 04:05:06'

    def test_date_source(self):
        value = datetime.date(2024, 2, 3)
        assert convert(datetime.date, value) == value
        assert convert(datetime.datetime | None, value) == datetime.datetime(2024, 2, 3)

    def test_decimal_kept(self):
        assert convert(Decimal, Decimal('1.5')) == Decimal('1.5')
        assert convert(float, Decimal('1.5')) == 1.5

    def test_uuid_kept(self):
        value = uuid.uuid4()
        assert convert(uuid.UUID, value) is value
        assert convert(str, value) == str(value)

    def test_time_source(self):
        assert convert(str, datetime.time(10, 30)) == '10:30:00'

    def test_unsupported_source(self):
        with pytest.raises(UnsupportedSourceError):
            convert(str, object())


class TestCustomConverter:

    def test_override_method(self):
        class Upper(ValueConverter):
            def convert_string(self, dest, src):
                return super().convert_string(dest, src).upper()

        assert convert_value(str, 'abc', Upper()) == 'ABC'

    def test_time_format(self):
        converter = ValueConverter(time_format='%d/%m/%Y')
        assert convert_value(datetime.datetime, '01/02/2023', converter) == datetime.datetime(2023, 2, 1)
