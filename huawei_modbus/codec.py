"""Register value decoding for Huawei SmartLogger and SUN2000 devices

Huawei documents multi-register values as big-endian, but the devices
actually place the words in the order handled by ``combine_u32_le``:
the first register read is shifted into the upper half of the result.
This is a fixed property of the vendor firmware and is not configurable.
"""

from typing import Sequence, Union

from .exceptions import DecodeError

Number = Union[int, float]


def _require(words: Sequence[int], count: int, kind: str):
    if len(words) < count:
        raise DecodeError(f"{kind} needs {count} register(s), got {len(words)}")


def to_signed16(value: int) -> int:
    """Convert uint16 to signed int16"""
    return value - 0x10000 if value >= 0x8000 else value


def combine_u32_le(low: int, high: int) -> int:
    """
    Combine two registers into an unsigned 32-bit value.

    Args:
        low: First register of the pair
        high: Second register of the pair

    Returns:
        (low << 16) | high
    """
    return ((low & 0xFFFF) << 16) | (high & 0xFFFF)


def combine_i32_le(low: int, high: int) -> int:
    """Combine two registers into a signed 32-bit value (two's complement)"""
    value = combine_u32_le(low, high)
    return value - 0x100000000 if value >= 0x80000000 else value


def combine_u64_le(w1: int, w2: int, w3: int, w4: int) -> int:
    """
    Combine four registers into an unsigned 64-bit value.

    Python integers do not overflow, so the result is exact. Values above
    2**53 lose precision once converted to float (for example by
    apply_gain with a gain other than 1).
    """
    return (
        ((w1 & 0xFFFF) << 48)
        | ((w2 & 0xFFFF) << 32)
        | ((w3 & 0xFFFF) << 16)
        | (w4 & 0xFFFF)
    )


def decode_string(words: Sequence[int], max_len: int = 20) -> str:
    """
    Decode an ASCII string from registers.

    Each register holds two characters, high byte first. The result is
    truncated to max_len characters and trailing NUL bytes are removed.
    """
    data = bytearray()
    for word in words:
        data.append((word >> 8) & 0xFF)
        data.append(word & 0xFF)
    text = data.decode('latin-1')[:max_len]
    return text.rstrip('\x00')


def apply_gain(raw: int, gain: int = 1) -> Number:
    """
    Convert a raw register integer into its real-world value.

    Huawei gains are divisors: a voltage with gain 10 read as 2301 is 230.1 V.
    A gain of 1 keeps the integer unchanged.
    """
    if gain == 1:
        return raw
    return raw / gain


def decode_u16(words: Sequence[int]) -> int:
    _require(words, 1, "U16")
    return words[0] & 0xFFFF


def decode_i16(words: Sequence[int]) -> int:
    _require(words, 1, "I16")
    return to_signed16(words[0] & 0xFFFF)


def decode_u32(words: Sequence[int]) -> int:
    _require(words, 2, "U32")
    return combine_u32_le(words[0], words[1])


def decode_i32(words: Sequence[int]) -> int:
    _require(words, 2, "I32")
    return combine_i32_le(words[0], words[1])


def decode_u64(words: Sequence[int]) -> int:
    _require(words, 4, "U64")
    return combine_u64_le(words[0], words[1], words[2], words[3])

