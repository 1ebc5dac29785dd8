# encoding.py: 16-bit word helpers, sign extension, big-endian conversion
from typing import List

WORD_BITS = 16
BYTE_PER_WORD = 2
WORD_MASK = (1 << WORD_BITS) - 1
SIGN_BIT = 1 << (WORD_BITS - 1)

MEMORY_SIZE = 1 << WORD_BITS


def mask16(val: int) -> int:
    return val & WORD_MASK


def sign_extend(value: int, bit_count: int) -> int:
    """
    Reinterpret the low 'bit_count' bits of 'value' as two's complement and
    widen to a 16-bit word (the result is unsigned, e.g. sext(0x1F, 5) == 0xFFFF).
    """
    value &= (1 << bit_count) - 1
    if value & (1 << (bit_count - 1)):
        value |= (WORD_MASK << bit_count)
    return value & WORD_MASK


def to_signed(bits: int) -> int:
    bits &= WORD_MASK
    if bits & SIGN_BIT:
        return -(((~bits) & WORD_MASK) + 1)
    else:
        return bits


def word_to_bytes(bits: int) -> bytes:
    return (bits & WORD_MASK).to_bytes(BYTE_PER_WORD, byteorder="big", signed=False)


def bytes_to_word(b: bytes) -> int:
    return int.from_bytes(b, byteorder="big", signed=False) & WORD_MASK


def bytes_to_words(data: bytes) -> List[int]:
    """Split an even-length byte string into big-endian 16-bit words."""
    return [bytes_to_word(data[i:i + BYTE_PER_WORD]) for i in range(0, len(data), BYTE_PER_WORD)]
