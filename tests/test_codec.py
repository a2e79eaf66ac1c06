# tests/test_codec.py

import pytest

from huawei_modbus import codec
from huawei_modbus.exceptions import DecodeError


def test_first_register_is_upper_half():
    assert codec.combine_u32_le(0x0001, 0x0002) == 0x00010002
    assert codec.decode_u32([0x0001, 0x86A0]) == 100000


def test_signed_32bit_values():
    assert codec.combine_i32_le(0xFFFF, 0xFFFE) == -2
    assert codec.combine_i32_le(0x7FFF, 0xFFFF) == 2147483647
    assert codec.combine_i32_le(0x8000, 0x0000) == -2147483648
    assert codec.decode_i32([0x0000, 0x1388]) == 5000


def test_signed_16bit_values():
    assert codec.to_signed16(0xFFFF) == -1
    assert codec.to_signed16(0x8000) == -32768
    assert codec.to_signed16(0x7FFF) == 32767
    assert codec.decode_i16([0xFF9C]) == -100
    assert codec.decode_u16([0xFF9C]) == 0xFF9C


def test_u64_is_exact():
    assert codec.decode_u64([0x0001, 0x0000, 0x0000, 0x0002]) == (1 << 48) + 2


def test_decode_string_strips_padding_and_truncates():
    words = [0x5355, 0x4E32, 0x3030, 0x3000, 0x0000]   # "SUN2000\0..."
    assert codec.decode_string(words) == "SUN2000"
    assert codec.decode_string(words, max_len=3) == "SUN"
    assert codec.decode_string([0, 0, 0]) == ""


def test_gain_is_a_divisor_applied_once():
    assert codec.apply_gain(2301, 10) == pytest.approx(230.1)
    assert codec.apply_gain(-1000, 1000) == pytest.approx(-1.0)

    value = codec.apply_gain(42, 1)
    assert value == 42
    assert isinstance(value, int)


def test_too_few_registers_raise_decode_error():
    with pytest.raises(DecodeError):
        codec.decode_u32([1])
    with pytest.raises(DecodeError):
        codec.decode_u16([])
    with pytest.raises(DecodeError):
        codec.decode_u64([1, 2, 3])
