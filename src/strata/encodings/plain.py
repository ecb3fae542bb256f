"""
PLAIN encoding.

Fixed width little-endian values for the numeric types, booleans bit-packed
LSB first, BYTE_ARRAY values prefixed with their 4-byte little-endian
length and FIXED_LEN_BYTE_ARRAY values stored back to back.
"""

from __future__ import annotations

import struct

from collections.abc import Sequence

from ..constants import INT96_BYTE_WIDTH, LENGTH_PREFIX_SIZE
from ..enums import Encoding, Type
from ..exceptions import MalformedEncoding
from ..physical_types import STRUCT_FORMATS, PhysicalValue
from .bit_utils import pack_bits, unpack_bits

_LENGTH = struct.Struct('<I')


class PlainCodec:
    """Stateless PLAIN encoder/decoder for one physical type."""

    encoding = Encoding.PLAIN

    def __init__(self, physical_type: Type, type_length: int | None = None) -> None:
        self.physical_type = physical_type
        self.type_length = type_length

    def encode(self, values: Sequence[PhysicalValue]) -> bytes:
        match self.physical_type:
            case Type.BOOLEAN:
                return pack_bits([1 if v else 0 for v in values], 1)
            case Type.INT32 | Type.INT64 | Type.FLOAT | Type.DOUBLE:
                fmt = STRUCT_FORMATS[self.physical_type]
                return struct.pack(f'<{len(values)}{fmt[1]}', *values)
            case Type.INT96:
                return b''.join(
                    v.to_bytes(INT96_BYTE_WIDTH, 'little', signed=True)
                    for v in values
                )
            case Type.BYTE_ARRAY:
                out = bytearray()
                for v in values:
                    out += _LENGTH.pack(len(v))
                    out += v
                return bytes(out)
            case Type.FIXED_LEN_BYTE_ARRAY:
                return b''.join(values)
        raise MalformedEncoding(f'Unknown physical type {self.physical_type}')

    def decode(self, data: bytes | memoryview, count: int) -> list[PhysicalValue]:
        """Decode exactly ``count`` values, which must consume all of ``data``."""
        values, end = self.decode_from(data, count, 0)
        if end != len(data):
            raise MalformedEncoding(
                f'PLAIN data has {len(data) - end} trailing bytes after '
                f'{count} {self.physical_type.name} values',
            )
        return values

    def decode_from(
        self,
        data: bytes | memoryview,
        count: int,
        pos: int,
    ) -> tuple[list[PhysicalValue], int]:
        """Decode ``count`` values starting at ``pos``; return values and end."""
        match self.physical_type:
            case Type.BOOLEAN:
                nbytes = (count + 7) // 8
                bits = unpack_bits(data, count, 1, pos)
                return [bool(b) for b in bits], pos + nbytes
            case Type.INT32 | Type.INT64 | Type.FLOAT | Type.DOUBLE:
                fmt = STRUCT_FORMATS[self.physical_type]
                width = struct.calcsize(fmt)
                end = pos + width * count
                self._require(data, end, count)
                return list(struct.unpack(f'<{count}{fmt[1]}', data[pos:end])), end
            case Type.INT96:
                end = pos + INT96_BYTE_WIDTH * count
                self._require(data, end, count)
                return [
                    int.from_bytes(
                        data[p : p + INT96_BYTE_WIDTH],
                        'little',
                        signed=True,
                    )
                    for p in range(pos, end, INT96_BYTE_WIDTH)
                ], end
            case Type.BYTE_ARRAY:
                return self._decode_byte_arrays(data, count, pos)
            case Type.FIXED_LEN_BYTE_ARRAY:
                width = self.type_length or 0
                end = pos + width * count
                self._require(data, end, count)
                return [bytes(data[p : p + width]) for p in range(pos, end, width)], end
        raise MalformedEncoding(f'Unknown physical type {self.physical_type}')

    def _decode_byte_arrays(
        self,
        data: bytes | memoryview,
        count: int,
        pos: int,
    ) -> tuple[list[PhysicalValue], int]:
        values: list[PhysicalValue] = []
        end = len(data)
        for i in range(count):
            if pos + LENGTH_PREFIX_SIZE > end:
                raise MalformedEncoding(
                    f'Truncated BYTE_ARRAY length prefix at value {i} of {count}',
                )
            (length,) = _LENGTH.unpack_from(data, pos)
            pos += LENGTH_PREFIX_SIZE
            if pos + length > end:
                raise MalformedEncoding(
                    f'BYTE_ARRAY value {i} claims {length} bytes, '
                    f'only {end - pos} available',
                )
            values.append(bytes(data[pos : pos + length]))
            pos += length
        return values, pos

    def _require(self, data: bytes | memoryview, end: int, count: int) -> None:
        if end > len(data):
            raise MalformedEncoding(
                f'PLAIN {self.physical_type.name} data too short for {count} '
                f'values: need {end} bytes, have {len(data)}',
            )
