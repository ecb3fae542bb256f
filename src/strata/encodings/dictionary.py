"""
Dictionary encoding.

The encoder keeps an insertion-ordered table of distinct values for a whole
column chunk. The table is written once as a PLAIN-encoded dictionary page;
data pages hold one bit width byte followed by RLE/bit-packed hybrid runs of
indices into the table.
"""

from __future__ import annotations

import logging

from collections.abc import Sequence

from ..constants import LENGTH_PREFIX_SIZE
from ..enums import Encoding, Type
from ..exceptions import MalformedEncoding
from ..physical_types import PhysicalValue, byte_width, dictionary_key
from .bit_utils import bit_width
from .plain import PlainCodec
from .rle import RleBitPackedHybridDecoder, RleBitPackedHybridEncoder

logger = logging.getLogger(__name__)


def index_bit_width(num_entries: int) -> int:
    """``ceil(log2(num_entries))``: enough bits for the largest index."""
    return bit_width(max(num_entries - 1, 0))


class DictionaryEncoder:
    encoding = Encoding.RLE_DICTIONARY

    def __init__(self, physical_type: Type, type_length: int | None = None) -> None:
        self.physical_type = physical_type
        self.type_length = type_length
        self._plain = PlainCodec(physical_type, type_length)
        self._indices: dict[object, int] = {}
        self._values: list[PhysicalValue] = []
        self._byte_size = 0

    @property
    def num_entries(self) -> int:
        return len(self._values)

    @property
    def dictionary_byte_size(self) -> int:
        """Size of the PLAIN-encoded dictionary page body."""
        if self.physical_type == Type.BOOLEAN:
            return (len(self._values) + 7) // 8
        return self._byte_size

    @property
    def values(self) -> list[PhysicalValue]:
        return list(self._values)

    def put(self, value: PhysicalValue) -> int:
        """Return the index of ``value``, adding it to the table if new."""
        key = dictionary_key(self.physical_type, value)
        index = self._indices.get(key)
        if index is None:
            index = len(self._values)
            self._indices[key] = index
            self._values.append(value)
            self._byte_size += self._value_size(value)
        return index

    def _value_size(self, value: PhysicalValue) -> int:
        # booleans are bit packed; dictionary_byte_size counts them separately
        if self.physical_type == Type.BOOLEAN:
            return 0
        width = byte_width(self.physical_type, self.type_length)
        if width is None:
            return LENGTH_PREFIX_SIZE + len(value)  # type: ignore[arg-type]
        return width

    def put_many(self, values: Sequence[PhysicalValue]) -> list[int]:
        return [self.put(v) for v in values]

    def would_add(self, values: Sequence[PhysicalValue]) -> tuple[int, int]:
        """Entries and bytes that ``values`` would add to the table."""
        seen: set[object] = set()
        entries = 0
        size = 0
        for value in values:
            key = dictionary_key(self.physical_type, value)
            if key in self._indices or key in seen:
                continue
            seen.add(key)
            entries += 1
            size += self._value_size(value)
        if self.physical_type == Type.BOOLEAN:
            size = (self.num_entries + entries + 7) // 8 - self.dictionary_byte_size
        return entries, size

    def encode_dictionary(self) -> bytes:
        return self._plain.encode(self._values)

    def encode(self, values: Sequence[PhysicalValue]) -> bytes:
        """Add ``values`` to the table and encode their indices for a data page."""
        return self.encode_indices(self.put_many(values))

    def encode_indices(self, indices: Sequence[int]) -> bytes:
        width = index_bit_width(self.num_entries)
        return bytes([width]) + RleBitPackedHybridEncoder(width).encode(indices)


class DictionaryDecoder:
    """Resolves encoded indices against a dictionary page's values."""

    def __init__(self, dictionary: Sequence[PhysicalValue]) -> None:
        self.dictionary = list(dictionary)

    @classmethod
    def from_page_bytes(
        cls,
        data: bytes | memoryview,
        num_values: int,
        physical_type: Type,
        type_length: int | None = None,
    ) -> DictionaryDecoder:
        values = PlainCodec(physical_type, type_length).decode(data, num_values)
        return cls(values)

    def decode_indices(self, data: bytes | memoryview, count: int) -> list[int]:
        if count == 0 and len(data) == 0:
            return []
        if len(data) < 1:
            raise MalformedEncoding('Missing dictionary index bit width')
        width = data[0]
        if width > 32:
            raise MalformedEncoding(f'Invalid dictionary index bit width {width}')
        indices = RleBitPackedHybridDecoder(width).decode(memoryview(data)[1:], count)
        size = len(self.dictionary)
        for index in indices:
            if index >= size:
                raise MalformedEncoding(
                    f'Dictionary index {index} out of range for {size} entries',
                )
        return indices

    def decode(self, data: bytes | memoryview, count: int) -> list[PhysicalValue]:
        return [self.dictionary[i] for i in self.decode_indices(data, count)]
