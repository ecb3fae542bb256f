"""
RLE / bit-packed hybrid encoding.

The stream is a sequence of runs, each prefixed by a ULEB128 header whose low
bit selects the run kind:

- ``count << 1``: RLE run, one value stored in ``ceil(bit_width / 8)``
  little-endian bytes and repeated ``count`` times;
- ``groups << 1 | 1``: bit-packed run of ``groups * 8`` values packed LSB
  first with ``bit_width`` bits each.

The bit width is never stored in the stream; both sides derive it from the
maximum level or the dictionary size.
"""

from __future__ import annotations

import struct

from collections.abc import Sequence

from ..constants import LENGTH_PREFIX_SIZE
from ..enums import Encoding
from ..exceptions import MalformedEncoding
from .bit_utils import decode_varint, encode_varint, pack_bits, unpack_bits

MIN_RLE_RUN = 8

_LENGTH = struct.Struct('<I')


class RleBitPackedHybridEncoder:
    def __init__(self, bit_width: int) -> None:
        if not 0 <= bit_width <= 64:
            raise ValueError(f'Invalid bit width {bit_width}')
        self.bit_width = bit_width
        self._value_bytes = (bit_width + 7) // 8
        self._max_value = (1 << bit_width) - 1

    def encode(self, values: Sequence[int]) -> bytes:
        out = bytearray()
        literals: list[int] = []
        n = len(values)
        i = 0
        while i < n:
            value = values[i]
            if not 0 <= value <= self._max_value:
                raise ValueError(
                    f'Value {value} does not fit in {self.bit_width} bits',
                )
            j = i + 1
            while j < n and values[j] == value:
                j += 1
            run = j - i
            if run >= MIN_RLE_RUN:
                # bit-packed runs hold multiples of 8 values, so top the
                # pending literals up from the run before switching to RLE
                pad = -len(literals) % 8
                if pad:
                    literals.extend(values[i : i + pad])
                    i += pad
                    run -= pad
                if run >= MIN_RLE_RUN:
                    self._flush_literals(out, literals)
                    out += encode_varint(run << 1)
                    out += value.to_bytes(self._value_bytes, 'little')
                    i = j
                continue
            literals.extend(values[i:j])
            i = j
        self._flush_literals(out, literals)
        return bytes(out)

    def _flush_literals(self, out: bytearray, literals: list[int]) -> None:
        if not literals:
            return
        groups = (len(literals) + 7) // 8
        padded = literals + [0] * (groups * 8 - len(literals))
        out += encode_varint((groups << 1) | 1)
        out += pack_bits(padded, self.bit_width)
        literals.clear()


class RleBitPackedHybridDecoder:
    def __init__(self, bit_width: int) -> None:
        if not 0 <= bit_width <= 64:
            raise MalformedEncoding(f'Invalid bit width {bit_width}')
        self.bit_width = bit_width
        self._value_bytes = (bit_width + 7) // 8
        self._max_value = (1 << bit_width) - 1

    def decode(self, data: bytes | memoryview, count: int) -> list[int]:
        """Decode exactly ``count`` values; the runs must consume all of ``data``."""
        values, end = self.decode_from(data, count, 0)
        if end != len(data):
            raise MalformedEncoding(
                f'RLE/bit-packed data has {len(data) - end} trailing bytes '
                f'after {count} values',
            )
        return values

    def decode_from(
        self,
        data: bytes | memoryview,
        count: int,
        pos: int,
    ) -> tuple[list[int], int]:
        values: list[int] = []
        while len(values) < count:
            if pos >= len(data):
                raise MalformedEncoding(
                    f'RLE/bit-packed data exhausted after {len(values)} of '
                    f'{count} values',
                )
            header, pos = decode_varint(data, pos)
            remaining = count - len(values)
            if header & 1:
                groups = header >> 1
                if groups == 0:
                    raise MalformedEncoding('Empty bit-packed run')
                run_values = groups * 8
                if run_values - remaining >= 8:
                    raise MalformedEncoding(
                        f'Bit-packed run of {run_values} values exceeds the '
                        f'{remaining} values remaining',
                    )
                unpacked = unpack_bits(data, run_values, self.bit_width, pos)
                pos += (run_values * self.bit_width + 7) // 8
                values.extend(unpacked[:remaining])
            else:
                run = header >> 1
                if run == 0:
                    raise MalformedEncoding('Empty RLE run')
                if run > remaining:
                    raise MalformedEncoding(
                        f'RLE run of {run} values exceeds the {remaining} '
                        'values remaining',
                    )
                end = pos + self._value_bytes
                if end > len(data):
                    raise MalformedEncoding('Truncated RLE run value')
                value = int.from_bytes(data[pos:end], 'little')
                if value > self._max_value:
                    raise MalformedEncoding(
                        f'RLE value {value} does not fit in {self.bit_width} bits',
                    )
                pos = end
                values.extend([value] * run)
        return values, pos


class RleBooleanCodec:
    """RLE encoding of BOOLEAN values: length prefix plus hybrid runs, width 1."""

    encoding = Encoding.RLE

    def encode(self, values: Sequence[bool]) -> bytes:
        body = RleBitPackedHybridEncoder(1).encode([1 if v else 0 for v in values])
        return _LENGTH.pack(len(body)) + body

    def decode(self, data: bytes | memoryview, count: int) -> list[bool]:
        body = read_length_prefixed(data, 0)
        if LENGTH_PREFIX_SIZE + len(body) != len(data):
            raise MalformedEncoding('RLE boolean data has trailing bytes')
        return [bool(v) for v in RleBitPackedHybridDecoder(1).decode(body, count)]


def read_length_prefixed(data: bytes | memoryview, pos: int) -> memoryview:
    """Return the slice following a 4-byte little-endian length at ``pos``."""
    if pos + LENGTH_PREFIX_SIZE > len(data):
        raise MalformedEncoding('Truncated 4-byte length prefix')
    (length,) = _LENGTH.unpack_from(data, pos)
    start = pos + LENGTH_PREFIX_SIZE
    if start + length > len(data):
        raise MalformedEncoding(
            f'Length prefix claims {length} bytes, only {len(data) - start} '
            'available',
        )
    return memoryview(data)[start : start + length]


def length_prefixed(body: bytes) -> bytes:
    return _LENGTH.pack(len(body)) + body
