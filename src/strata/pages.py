"""
Page models and their binary layout.

Every page is a fixed 40-byte little-endian header followed by the stored
(possibly compressed) payload::

    B page_type  B encoding  B definition_level_encoding  B repetition_level_encoding
    B codec      B flags     H reserved
    I num_values I num_nulls I num_rows
    I definition_levels_byte_length  I repetition_levels_byte_length
    I uncompressed_page_size  I compressed_page_size  I crc

Teaching Points:
- Pages are immutable once built; writers produce them, readers parse them
- compressed_page_size is the number of payload bytes following the header
- uncompressed_page_size is the payload size after decompression
- The CRC covers the stored payload, so corruption is caught before
  decompression
"""

from __future__ import annotations

import struct
import zlib

from typing import Annotated, Literal, Self

from pydantic import BaseModel, ConfigDict, Discriminator, Field

from .enums import Compression, Encoding, PageType
from .exceptions import CompressionError, MalformedEncoding, UnsupportedEncoding

PAGE_HEADER = struct.Struct('<BBBBBBHIIIIIIII')
HEADER_SIZE = PAGE_HEADER.size

FLAG_HAS_CRC = 0x01
FLAG_IS_COMPRESSED = 0x02
FLAG_IS_SORTED = 0x04


def page_crc(payload: bytes) -> int:
    return zlib.crc32(payload) & 0xFFFFFFFF


class Page(BaseModel):
    """Fields shared by all page kinds."""

    model_config = ConfigDict(frozen=True)

    page_type: PageType
    num_values: int
    codec: Compression = Compression.UNCOMPRESSED
    uncompressed_page_size: int
    compressed_page_size: int
    crc: int | None = None
    payload: bytes = Field(repr=False)
    offset: int | None = Field(default=None, exclude=True)

    @property
    def total_size(self) -> int:
        return HEADER_SIZE + self.compressed_page_size

    def _header_fields(self) -> dict[str, int]:
        return {}

    def to_bytes(self) -> bytes:
        fields = {
            'encoding': 0,
            'definition_level_encoding': 0,
            'repetition_level_encoding': 0,
            'flags': 0,
            'num_nulls': 0,
            'num_rows': 0,
            'definition_levels_byte_length': 0,
            'repetition_levels_byte_length': 0,
        }
        fields.update(self._header_fields())
        flags = fields['flags']
        if self.crc is not None:
            flags |= FLAG_HAS_CRC
        header = PAGE_HEADER.pack(
            self.page_type,
            fields['encoding'],
            fields['definition_level_encoding'],
            fields['repetition_level_encoding'],
            self.codec,
            flags,
            0,
            self.num_values,
            fields['num_nulls'],
            fields['num_rows'],
            fields['definition_levels_byte_length'],
            fields['repetition_levels_byte_length'],
            self.uncompressed_page_size,
            self.compressed_page_size,
            self.crc or 0,
        )
        return header + self.payload

    def verify_crc(self) -> bool | None:
        """True/False for a page with a checksum, None when it has none."""
        if self.crc is None:
            return None
        return page_crc(self.payload) == self.crc

    @classmethod
    def from_bytes(cls, data: bytes | memoryview, offset: int = 0) -> AnyPage:
        """Parse the page starting at ``offset`` of ``data``.

        ``offset`` is also recorded on the page so that errors raised while
        decoding it can report where it lives.
        """
        if offset + HEADER_SIZE > len(data):
            raise MalformedEncoding(
                f'Truncated page header: need {HEADER_SIZE} bytes, '
                f'have {len(data) - offset}',
                page_offset=offset,
            )
        (
            page_type,
            encoding,
            def_encoding,
            rep_encoding,
            codec,
            flags,
            _reserved,
            num_values,
            num_nulls,
            num_rows,
            def_length,
            rep_length,
            uncompressed_size,
            compressed_size,
            crc,
        ) = PAGE_HEADER.unpack_from(data, offset)

        start = offset + HEADER_SIZE
        if start + compressed_size > len(data):
            raise MalformedEncoding(
                f'Page payload of {compressed_size} bytes runs past the end '
                f'of the {len(data)} byte buffer',
                page_offset=offset,
            )
        common = {
            'num_values': num_values,
            'codec': _codec(codec, offset),
            'uncompressed_page_size': uncompressed_size,
            'compressed_page_size': compressed_size,
            'crc': crc if flags & FLAG_HAS_CRC else None,
            'payload': bytes(data[start : start + compressed_size]),
            'offset': offset,
        }

        match page_type:
            case PageType.DICTIONARY_PAGE:
                return DictionaryPage(
                    encoding=_encoding(encoding, offset),
                    is_sorted=bool(flags & FLAG_IS_SORTED),
                    **common,
                )
            case PageType.DATA_PAGE:
                return DataPageV1(
                    encoding=_encoding(encoding, offset),
                    definition_level_encoding=_encoding(def_encoding, offset),
                    repetition_level_encoding=_encoding(rep_encoding, offset),
                    **common,
                )
            case PageType.DATA_PAGE_V2:
                if def_length + rep_length > compressed_size:
                    raise MalformedEncoding(
                        'Level byte lengths exceed the page payload',
                        page_offset=offset,
                    )
                return DataPageV2(
                    encoding=_encoding(encoding, offset),
                    num_nulls=num_nulls,
                    num_rows=num_rows,
                    definition_levels_byte_length=def_length,
                    repetition_levels_byte_length=rep_length,
                    is_compressed=bool(flags & FLAG_IS_COMPRESSED),
                    **common,
                )
            case _:
                raise MalformedEncoding(
                    f'Unknown page type {page_type}',
                    page_offset=offset,
                )

    def with_offset(self, offset: int) -> Self:
        return self.model_copy(update={'offset': offset})


class DictionaryPage(Page):
    """A page holding the distinct values of a dictionary-encoded chunk."""

    page_type: Literal[PageType.DICTIONARY_PAGE] = PageType.DICTIONARY_PAGE
    encoding: Encoding = Encoding.PLAIN
    is_sorted: bool = False

    def _header_fields(self) -> dict[str, int]:
        return {
            'encoding': self.encoding,
            'flags': FLAG_IS_SORTED if self.is_sorted else 0,
        }


class DataPageV1(Page):
    """A version 1 data page: levels and values compressed together."""

    page_type: Literal[PageType.DATA_PAGE] = PageType.DATA_PAGE
    encoding: Encoding
    definition_level_encoding: Encoding = Encoding.RLE
    repetition_level_encoding: Encoding = Encoding.RLE

    def _header_fields(self) -> dict[str, int]:
        return {
            'encoding': self.encoding,
            'definition_level_encoding': self.definition_level_encoding,
            'repetition_level_encoding': self.repetition_level_encoding,
        }


class DataPageV2(Page):
    """A version 2 data page: uncompressed levels, then (compressed) values."""

    page_type: Literal[PageType.DATA_PAGE_V2] = PageType.DATA_PAGE_V2
    encoding: Encoding
    num_nulls: int
    num_rows: int
    definition_levels_byte_length: int
    repetition_levels_byte_length: int
    is_compressed: bool = True

    def _header_fields(self) -> dict[str, int]:
        return {
            'encoding': self.encoding,
            'definition_level_encoding': Encoding.RLE,
            'repetition_level_encoding': Encoding.RLE,
            'flags': FLAG_IS_COMPRESSED if self.is_compressed else 0,
            'num_nulls': self.num_nulls,
            'num_rows': self.num_rows,
            'definition_levels_byte_length': self.definition_levels_byte_length,
            'repetition_levels_byte_length': self.repetition_levels_byte_length,
        }


def _encoding(value: int, offset: int) -> Encoding:
    try:
        return Encoding(value)
    except ValueError:
        raise UnsupportedEncoding(
            f'Unknown encoding id {value}',
            page_offset=offset,
        ) from None


def _codec(value: int, offset: int) -> Compression:
    try:
        return Compression(value)
    except ValueError:
        raise CompressionError(
            f'Unknown compression codec id {value}',
            page_offset=offset,
        ) from None


AnyPage = DictionaryPage | DataPageV1 | DataPageV2
AnyDataPage = DataPageV1 | DataPageV2

AnyPageDiscriminated = Annotated[
    AnyPage,
    Discriminator('page_type'),
]

AnyDataPageDiscriminated = Annotated[
    AnyDataPage,
    Discriminator('page_type'),
]
