"""
Low level bit and varint helpers shared by the encoders.

Bit packing is little-endian at the bit level: the first value occupies the
least significant bits of the first byte, as used by the RLE/bit-packed
hybrid and DELTA_BINARY_PACKED encodings.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..exceptions import MalformedEncoding


def bit_width(max_value: int) -> int:
    """Number of bits needed to represent every value in ``[0, max_value]``."""
    return max_value.bit_length()


def encode_varint(value: int) -> bytes:
    """Unsigned LEB128."""
    if value < 0:
        raise ValueError(f'varint value must be non-negative, got {value}')
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def decode_varint(data: bytes | memoryview, pos: int) -> tuple[int, int]:
    """Read an unsigned LEB128 value starting at ``pos``.

    Returns the value and the position just past it.
    """
    result = 0
    shift = 0
    end = len(data)
    while True:
        if pos >= end:
            raise MalformedEncoding('Truncated varint')
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7
        if shift > 70:
            raise MalformedEncoding('Varint is too long')


def zigzag_encode(value: int) -> int:
    return (value << 1) if value >= 0 else ((-value) << 1) - 1


def zigzag_decode(value: int) -> int:
    return (value >> 1) ^ -(value & 1)


def pack_bits(values: Sequence[int], width: int) -> bytes:
    """Pack unsigned ints LSB first into ``ceil(len(values) * width / 8)`` bytes."""
    if width == 0 or not values:
        return b''
    acc = 0
    shift = 0
    for value in values:
        acc |= value << shift
        shift += width
    return acc.to_bytes((shift + 7) // 8, 'little')


def unpack_bits(
    data: bytes | memoryview,
    count: int,
    width: int,
    pos: int = 0,
) -> list[int]:
    """Unpack ``count`` values of ``width`` bits starting at byte ``pos``.

    Raises MalformedEncoding when the slice holds fewer bits than needed.
    """
    if width == 0:
        return [0] * count
    nbytes = (count * width + 7) // 8
    if pos + nbytes > len(data):
        raise MalformedEncoding(
            f'Bit-packed data needs {nbytes} bytes for {count} values of '
            f'{width} bits, only {len(data) - pos} available',
        )
    acc = int.from_bytes(data[pos : pos + nbytes], 'little')
    mask = (1 << width) - 1
    return [(acc >> (i * width)) & mask for i in range(count)]


def pack_bits_msb(values: Sequence[int], width: int) -> bytes:
    """Legacy BIT_PACKED layout: values packed from the most significant bit."""
    if width == 0 or not values:
        return b''
    acc = 0
    for value in values:
        acc = (acc << width) | value
    total_bits = len(values) * width
    nbytes = (total_bits + 7) // 8
    acc <<= nbytes * 8 - total_bits
    return acc.to_bytes(nbytes, 'big')


def unpack_bits_msb(data: bytes | memoryview, count: int, width: int) -> list[int]:
    if width == 0:
        return [0] * count
    total_bits = count * width
    nbytes = (total_bits + 7) // 8
    if nbytes > len(data):
        raise MalformedEncoding(
            f'BIT_PACKED levels need {nbytes} bytes, only {len(data)} available',
        )
    acc = int.from_bytes(data[:nbytes], 'big') >> (nbytes * 8 - total_bits)
    mask = (1 << width) - 1
    return [(acc >> ((count - 1 - i) * width)) & mask for i in range(count)]
