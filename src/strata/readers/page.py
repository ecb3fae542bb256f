"""
PageReader: verification, decompression and decoding of single pages.

Teaching Points:
- The checksum is verified before anything else touches the payload
- Version 1 pages are decompressed as a whole, then split into levels and
  values by walking the level length prefixes
- Version 2 pages are split by the byte lengths in the header, and only the
  value section is decompressed
- The number of values to decode is the number of definition levels equal to
  the column's maximum; everything else is a null slot
"""

from __future__ import annotations

import logging

from ..compression import decompress
from ..encodings import DICTIONARY_ENCODINGS, LevelDecoder, get_value_codec
from ..encodings.dictionary import DictionaryDecoder
from ..enums import Compression, Encoding
from ..exceptions import (
    ChecksumMismatch,
    CompressionError,
    MalformedEncoding,
    StrataError,
    UnsupportedEncoding,
)
from ..pages import AnyDataPage, DataPageV1, DataPageV2, DictionaryPage, Page
from ..physical_types import PhysicalValue
from ..schema import ColumnDescriptor
from ..types import ColumnBatch

logger = logging.getLogger(__name__)


class PageReader:
    """Decodes the pages of one column."""

    def __init__(self, descriptor: ColumnDescriptor, verify_checksums: bool = True):
        self.descriptor = descriptor
        self.verify_checksums = verify_checksums

    def read_dictionary_page(self, page: DictionaryPage) -> DictionaryDecoder:
        try:
            if page.encoding not in (Encoding.PLAIN, Encoding.PLAIN_DICTIONARY):
                raise UnsupportedEncoding(
                    f'Dictionary pages must be PLAIN encoded, got {page.encoding.name}',
                )
            body = self._decompress(page, page.payload, page.uncompressed_page_size)
            decoder = DictionaryDecoder.from_page_bytes(
                body,
                page.num_values,
                self.descriptor.physical_type,
                self.descriptor.type_length,
            )
        except StrataError as e:
            raise e.with_context(self.descriptor.path_in_schema, page.offset)
        logger.debug(
            'Read dictionary page for %s with %d entries',
            self.descriptor.path_in_schema,
            page.num_values,
        )
        return decoder

    def read_data_page(
        self,
        page: AnyDataPage,
        dictionary: DictionaryDecoder | None = None,
    ) -> ColumnBatch:
        try:
            match page:
                case DataPageV1():
                    batch = self._read_v1(page, dictionary)
                case DataPageV2():
                    batch = self._read_v2(page, dictionary)
                case _:
                    raise MalformedEncoding(
                        f'{type(page).__name__} is not a data page',
                    )
        except StrataError as e:
            raise e.with_context(self.descriptor.path_in_schema, page.offset)
        logger.debug(
            'Read %s for %s: %d values, %d nulls',
            page.page_type.name,
            self.descriptor.path_in_schema,
            batch.num_values,
            batch.num_nulls,
        )
        return batch

    def _read_v1(
        self,
        page: DataPageV1,
        dictionary: DictionaryDecoder | None,
    ) -> ColumnBatch:
        body = self._decompress(page, page.payload, page.uncompressed_page_size)
        count = page.num_values
        pos = 0
        rep_levels, pos = self._levels_v1(
            body,
            pos,
            count,
            page.repetition_level_encoding,
            self.descriptor.max_repetition_level,
        )
        def_levels, pos = self._levels_v1(
            body,
            pos,
            count,
            page.definition_level_encoding,
            self.descriptor.max_definition_level,
        )
        values = self._decode_values(
            memoryview(body)[pos:],
            page.encoding,
            def_levels,
            dictionary,
        )
        return self._batch(rep_levels, def_levels, values)

    def _read_v2(
        self,
        page: DataPageV2,
        dictionary: DictionaryDecoder | None,
    ) -> ColumnBatch:
        self._check_crc(page)
        payload = memoryview(page.payload)
        count = page.num_values
        rep_end = page.repetition_levels_byte_length
        def_end = rep_end + page.definition_levels_byte_length

        rep_levels = self._levels_v2(
            payload[:rep_end],
            count,
            self.descriptor.max_repetition_level,
        )
        def_levels = self._levels_v2(
            payload[rep_end:def_end],
            count,
            self.descriptor.max_definition_level,
        )

        values_bytes = bytes(payload[def_end:])
        values_size = page.uncompressed_page_size - def_end
        if page.is_compressed:
            values_bytes = self._decompress_raw(page.codec, values_bytes, values_size)
        if len(values_bytes) != values_size:
            raise MalformedEncoding(
                f'Value section is {len(values_bytes)} bytes, header says '
                f'{values_size}',
            )

        values = self._decode_values(values_bytes, page.encoding, def_levels, dictionary)
        batch = self._batch(rep_levels, def_levels, values)
        if batch.num_nulls != page.num_nulls:
            raise MalformedEncoding(
                f'Page header claims {page.num_nulls} nulls, levels hold '
                f'{batch.num_nulls}',
            )
        if batch.num_rows != page.num_rows:
            raise MalformedEncoding(
                f'Page header claims {page.num_rows} rows, levels hold '
                f'{batch.num_rows}',
            )
        return batch

    def _levels_v1(
        self,
        body: bytes,
        pos: int,
        count: int,
        encoding: Encoding,
        max_level: int,
    ) -> tuple[list[int], int]:
        if max_level == 0:
            return [0] * count, pos
        return LevelDecoder(encoding, max_level).decode_from(body, count, pos)

    def _levels_v2(
        self,
        data: memoryview,
        count: int,
        max_level: int,
    ) -> list[int]:
        if max_level == 0:
            if len(data):
                raise MalformedEncoding(
                    'Levels present for a column whose maximum level is 0',
                )
            return [0] * count
        return LevelDecoder(Encoding.RLE, max_level).decode_raw(data, count)

    def _decode_values(
        self,
        data: bytes | memoryview,
        encoding: Encoding,
        def_levels: list[int],
        dictionary: DictionaryDecoder | None,
    ) -> list[PhysicalValue]:
        max_def = self.descriptor.max_definition_level
        num_non_null = sum(1 for d in def_levels if d == max_def)

        if encoding in DICTIONARY_ENCODINGS:
            if dictionary is None:
                raise MalformedEncoding(
                    'Dictionary-encoded data page without a dictionary page',
                )
            return dictionary.decode(data, num_non_null)
        codec = get_value_codec(
            encoding,
            self.descriptor.physical_type,
            self.descriptor.type_length,
        )
        return codec.decode(data, num_non_null)

    def _batch(
        self,
        rep_levels: list[int],
        def_levels: list[int],
        values: list[PhysicalValue],
    ) -> ColumnBatch:
        return ColumnBatch(
            max_definition_level=self.descriptor.max_definition_level,
            repetition_levels=rep_levels,
            definition_levels=def_levels,
            values=values,
        )

    def _check_crc(self, page: Page) -> None:
        if not self.verify_checksums:
            return
        if page.verify_crc() is False:
            raise ChecksumMismatch(
                f'{page.page_type.name} payload does not match its CRC',
            )

    def _decompress(self, page: Page, payload: bytes, expected_size: int) -> bytes:
        self._check_crc(page)
        data = self._decompress_raw(page.codec, payload, expected_size)
        if len(data) != expected_size:
            raise MalformedEncoding(
                f'Decompressed page is {len(data)} bytes, header says '
                f'{expected_size}',
            )
        return data

    @staticmethod
    def _decompress_raw(codec: Compression, payload: bytes, size: int) -> bytes:
        try:
            return decompress(payload, codec, size)
        except CompressionError:
            raise
        except Exception as e:
            raise MalformedEncoding(
                f'{codec.name} decompression failed: {e}',
            ) from e
