"""
Repetition and definition level codecs.

Levels are always encoded with a bit width derived from the maximum level of
the column. Version 1 data pages store RLE levels behind a 4-byte length
prefix (or use the legacy MSB-first BIT_PACKED layout); version 2 data pages
store raw hybrid runs and record their byte lengths in the page header.
"""

from __future__ import annotations

import logging

from collections.abc import Sequence

from ..enums import Encoding
from ..exceptions import MalformedEncoding, UnsupportedEncoding
from .bit_utils import bit_width, pack_bits_msb, unpack_bits_msb
from .rle import (
    RleBitPackedHybridDecoder,
    RleBitPackedHybridEncoder,
    length_prefixed,
    read_length_prefixed,
)

logger = logging.getLogger(__name__)

LEVEL_ENCODINGS = (Encoding.RLE, Encoding.BIT_PACKED)


class LevelEncoder:
    def __init__(self, encoding: Encoding, max_level: int) -> None:
        if encoding not in LEVEL_ENCODINGS:
            raise UnsupportedEncoding(f'{encoding!r} cannot encode levels')
        self.encoding = encoding
        self.max_level = max_level
        self.bit_width = bit_width(max_level)

    def encode(self, levels: Sequence[int]) -> bytes:
        """Encode levels in the version 1 page layout."""
        self._check(levels)
        if self.encoding == Encoding.BIT_PACKED:
            return pack_bits_msb(levels, self.bit_width)
        return length_prefixed(self.encode_raw(levels))

    def encode_raw(self, levels: Sequence[int]) -> bytes:
        """Encode levels as bare hybrid runs (version 2 page layout)."""
        if self.encoding != Encoding.RLE:
            raise UnsupportedEncoding(
                f'{self.encoding!r} levels have no version 2 layout',
            )
        return RleBitPackedHybridEncoder(self.bit_width).encode(levels)

    def _check(self, levels: Sequence[int]) -> None:
        for level in levels:
            if not 0 <= level <= self.max_level:
                raise ValueError(
                    f'Level {level} outside of [0, {self.max_level}]',
                )


class LevelDecoder:
    def __init__(self, encoding: Encoding, max_level: int) -> None:
        if encoding not in LEVEL_ENCODINGS:
            raise UnsupportedEncoding(f'{encoding!r} cannot decode levels')
        self.encoding = encoding
        self.max_level = max_level
        self.bit_width = bit_width(max_level)

    def decode_from(
        self,
        data: bytes | memoryview,
        count: int,
        pos: int,
    ) -> tuple[list[int], int]:
        """Decode version 1 levels at ``pos``; return levels and end position."""
        if self.encoding == Encoding.BIT_PACKED:
            nbytes = (count * self.bit_width + 7) // 8
            if pos + nbytes > len(data):
                raise MalformedEncoding(
                    f'BIT_PACKED levels need {nbytes} bytes, '
                    f'only {len(data) - pos} available',
                )
            levels = unpack_bits_msb(memoryview(data)[pos:], count, self.bit_width)
            end = pos + nbytes
        else:
            body = read_length_prefixed(data, pos)
            levels = self.decode_raw(body, count)
            end = pos + 4 + len(body)
        self._check(levels)
        return levels, end

    def decode_raw(self, data: bytes | memoryview, count: int) -> list[int]:
        levels = RleBitPackedHybridDecoder(self.bit_width).decode(data, count)
        self._check(levels)
        return levels

    def _check(self, levels: Sequence[int]) -> None:
        for level in levels:
            if level > self.max_level:
                raise MalformedEncoding(
                    f'Decoded level {level} exceeds maximum {self.max_level}',
                )
