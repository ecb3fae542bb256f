"""
DELTA_BINARY_PACKED, DELTA_LENGTH_BYTE_ARRAY and DELTA_BYTE_ARRAY.

DELTA_BINARY_PACKED layout::

    <block size> <mini blocks per block> <total value count> <zigzag first value>
    per block: <zigzag min delta> <one bit width byte per mini block>
               <mini blocks bit-packed with (delta - min delta)>

Deltas wrap at the width of the physical type (32 or 64 bits), so every
adjusted delta fits in an unsigned value of that width. The bit width bytes
of unused mini blocks in the last block are still written (as zero) but
their bodies are omitted.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..constants import DELTA_BLOCK_SIZE, DELTA_MINI_BLOCKS
from ..enums import Encoding, Type
from ..exceptions import MalformedEncoding
from .bit_utils import (
    decode_varint,
    encode_varint,
    pack_bits,
    unpack_bits,
    zigzag_decode,
    zigzag_encode,
)

_TYPE_BITS = {Type.INT32: 32, Type.INT64: 64}


def _wrap(value: int, bits: int) -> int:
    """Reduce to the signed two's complement range of ``bits``."""
    value &= (1 << bits) - 1
    if value >= 1 << (bits - 1):
        value -= 1 << bits
    return value


class DeltaBinaryPackedCodec:
    encoding = Encoding.DELTA_BINARY_PACKED

    def __init__(
        self,
        physical_type: Type = Type.INT64,
        block_size: int = DELTA_BLOCK_SIZE,
        mini_blocks: int = DELTA_MINI_BLOCKS,
    ) -> None:
        if block_size % 128 or block_size // mini_blocks % 32:
            raise ValueError(
                'Block size must be a multiple of 128 and mini blocks a '
                'multiple of 32 values',
            )
        self.physical_type = physical_type
        self.bits = _TYPE_BITS.get(physical_type, 64)
        self.block_size = block_size
        self.mini_blocks = mini_blocks
        self.mini_block_size = block_size // mini_blocks

    def encode(self, values: Sequence[int]) -> bytes:
        out = bytearray()
        out += encode_varint(self.block_size)
        out += encode_varint(self.mini_blocks)
        out += encode_varint(len(values))
        out += encode_varint(zigzag_encode(values[0] if values else 0))

        deltas = [
            _wrap(values[i] - values[i - 1], self.bits) for i in range(1, len(values))
        ]
        mask = (1 << self.bits) - 1
        for start in range(0, len(deltas), self.block_size):
            block = deltas[start : start + self.block_size]
            min_delta = min(block)
            adjusted = [(d - min_delta) & mask for d in block]
            out += encode_varint(zigzag_encode(min_delta))

            widths = bytearray(self.mini_blocks)
            bodies = []
            for m in range(self.mini_blocks):
                mini = adjusted[m * self.mini_block_size : (m + 1) * self.mini_block_size]
                if not mini:
                    break
                width = max(mini).bit_length()
                widths[m] = width
                mini = mini + [0] * (self.mini_block_size - len(mini))
                bodies.append(pack_bits(mini, width))
            out += widths
            for body in bodies:
                out += body
        return bytes(out)

    def decode(self, data: bytes | memoryview, count: int) -> list[int]:
        values, end = self.decode_from(data, count, 0)
        if end != len(data):
            raise MalformedEncoding(
                f'DELTA_BINARY_PACKED data has {len(data) - end} trailing bytes',
            )
        return values

    def decode_from(  # noqa: C901
        self,
        data: bytes | memoryview,
        count: int,
        pos: int,
    ) -> tuple[list[int], int]:
        """Decode ``count`` values at ``pos``; return them and the end position.

        The whole encoded run (all ``total value count`` values) is consumed
        so that the end position always points past the encoded block.
        """
        block_size, pos = decode_varint(data, pos)
        mini_blocks, pos = decode_varint(data, pos)
        total, pos = decode_varint(data, pos)
        first, pos = decode_varint(data, pos)

        if block_size == 0 or block_size % 128:
            raise MalformedEncoding(f'Invalid DELTA block size {block_size}')
        if mini_blocks == 0 or block_size % mini_blocks:
            raise MalformedEncoding(f'Invalid DELTA mini block count {mini_blocks}')
        mini_block_size = block_size // mini_blocks
        if mini_block_size % 32:
            raise MalformedEncoding(
                f'DELTA mini block size {mini_block_size} is not a multiple of 32',
            )
        if total != count:
            raise MalformedEncoding(
                f'DELTA_BINARY_PACKED holds {total} values, expected {count}',
            )

        mask = (1 << self.bits) - 1
        values: list[int] = []
        if total == 0:
            return values, pos
        current = _wrap(zigzag_decode(first), self.bits)
        values.append(current)

        remaining = total - 1
        while remaining > 0:
            min_delta_raw, pos = decode_varint(data, pos)
            min_delta = zigzag_decode(min_delta_raw)
            if pos + mini_blocks > len(data):
                raise MalformedEncoding('Truncated DELTA mini block bit widths')
            widths = bytes(data[pos : pos + mini_blocks])
            pos += mini_blocks
            for width in widths:
                if remaining <= 0:
                    break
                if width > self.bits:
                    raise MalformedEncoding(
                        f'DELTA mini block bit width {width} exceeds {self.bits}',
                    )
                deltas = unpack_bits(data, mini_block_size, width, pos)
                pos += mini_block_size * width // 8
                for delta in deltas[:remaining]:
                    current = _wrap(current + ((delta + min_delta) & mask), self.bits)
                    values.append(current)
                remaining -= min(remaining, mini_block_size)
        return values, pos


class DeltaLengthByteArrayCodec:
    """DELTA_BINARY_PACKED lengths followed by the concatenated values."""

    encoding = Encoding.DELTA_LENGTH_BYTE_ARRAY

    def __init__(self) -> None:
        self._lengths = DeltaBinaryPackedCodec(Type.INT32)

    def encode(self, values: Sequence[bytes]) -> bytes:
        return self._lengths.encode([len(v) for v in values]) + b''.join(values)

    def decode(self, data: bytes | memoryview, count: int) -> list[bytes]:
        lengths, pos = self._lengths.decode_from(data, count, 0)
        if any(length < 0 for length in lengths):
            raise MalformedEncoding('Negative DELTA_LENGTH_BYTE_ARRAY length')
        if pos + sum(lengths) != len(data):
            raise MalformedEncoding(
                f'DELTA_LENGTH_BYTE_ARRAY lengths sum to {sum(lengths)} bytes, '
                f'{len(data) - pos} available',
            )
        values = []
        for length in lengths:
            values.append(bytes(data[pos : pos + length]))
            pos += length
        return values


class DeltaByteArrayCodec:
    """Incremental (front coded) byte arrays.

    DELTA_BINARY_PACKED prefix lengths shared with the previous value, then
    DELTA_BINARY_PACKED suffix lengths, then the concatenated suffixes.
    """

    encoding = Encoding.DELTA_BYTE_ARRAY

    def __init__(self) -> None:
        self._lengths = DeltaBinaryPackedCodec(Type.INT32)

    def encode(self, values: Sequence[bytes]) -> bytes:
        prefixes = []
        suffixes = []
        previous = b''
        for value in values:
            limit = min(len(previous), len(value))
            shared = 0
            while shared < limit and previous[shared] == value[shared]:
                shared += 1
            prefixes.append(shared)
            suffixes.append(value[shared:])
            previous = value
        return (
            self._lengths.encode(prefixes)
            + self._lengths.encode([len(s) for s in suffixes])
            + b''.join(suffixes)
        )

    def decode(self, data: bytes | memoryview, count: int) -> list[bytes]:
        prefixes, pos = self._lengths.decode_from(data, count, 0)
        suffix_lengths, pos = self._lengths.decode_from(data, count, pos)

        values: list[bytes] = []
        previous = b''
        for i, (prefix, suffix_length) in enumerate(
            zip(prefixes, suffix_lengths, strict=True),
        ):
            if prefix < 0 or suffix_length < 0:
                raise MalformedEncoding(
                    f'Negative DELTA_BYTE_ARRAY length at value {i}',
                )
            if prefix > len(previous):
                raise MalformedEncoding(
                    f'Invalid prefix length at value {i}: '
                    f'prefix={prefix}, previous length={len(previous)}',
                )
            if pos + suffix_length > len(data):
                raise MalformedEncoding(
                    f'Truncated DELTA_BYTE_ARRAY suffix at value {i}',
                )
            current = previous[:prefix] + bytes(data[pos : pos + suffix_length])
            pos += suffix_length
            values.append(current)
            previous = current
        if pos != len(data):
            raise MalformedEncoding(
                f'DELTA_BYTE_ARRAY data has {len(data) - pos} trailing bytes',
            )
        return values
