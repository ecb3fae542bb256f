"""
PageWriter: packages one batch of levels and values into a page.

Teaching Points:
- Version 1 pages compress levels and values together; levels carry a
  4-byte length prefix (or use the legacy BIT_PACKED layout)
- Version 2 pages keep levels uncompressed and record their byte lengths in
  the header, so a reader can get at levels without decompressing values
- Levels are omitted entirely when the column's maximum level is 0
- The checksum is computed over the bytes actually stored
"""

from __future__ import annotations

import logging

from ..compression import compress
from ..encodings import LevelEncoder, ValueCodec
from ..encodings.dictionary import DictionaryEncoder
from ..enums import Compression, Encoding
from ..pages import AnyDataPage, DataPageV1, DataPageV2, DictionaryPage, page_crc
from ..properties import ColumnWriterProperties
from ..schema import ColumnDescriptor
from ..types import ColumnBatch

logger = logging.getLogger(__name__)


class PageWriter:
    def __init__(
        self,
        descriptor: ColumnDescriptor,
        properties: ColumnWriterProperties,
    ) -> None:
        self.descriptor = descriptor
        self.properties = properties
        self.codec: Compression = properties.compression

    def write_dictionary_page(self, encoder: DictionaryEncoder) -> DictionaryPage:
        body = encoder.encode_dictionary()
        payload = compress(body, self.codec)
        page = DictionaryPage(
            num_values=encoder.num_entries,
            encoding=Encoding.PLAIN,
            codec=self.codec,
            uncompressed_page_size=len(body),
            compressed_page_size=len(payload),
            crc=self._crc(payload),
            payload=payload,
        )
        logger.debug(
            'Wrote dictionary page for %s: %d entries, %d bytes',
            self.descriptor.path_in_schema,
            encoder.num_entries,
            len(payload),
        )
        return page

    def write_data_page(self, batch: ColumnBatch, codec: ValueCodec) -> AnyDataPage:
        values = codec.encode(batch.values)
        if self.properties.data_page_version == 2:
            page: AnyDataPage = self._data_page_v2(batch, codec.encoding, values)
        else:
            page = self._data_page_v1(batch, codec.encoding, values)
        logger.debug(
            'Wrote %s for %s: %d values (%d nulls), encoding %s, %d -> %d bytes',
            page.page_type.name,
            self.descriptor.path_in_schema,
            batch.num_values,
            batch.num_nulls,
            codec.encoding.name,
            page.uncompressed_page_size,
            page.compressed_page_size,
        )
        return page

    def _data_page_v1(
        self,
        batch: ColumnBatch,
        encoding: Encoding,
        values: bytes,
    ) -> DataPageV1:
        level_encoding = self.properties.level_encoding
        body = bytearray()
        if self.descriptor.max_repetition_level > 0:
            body += LevelEncoder(
                level_encoding,
                self.descriptor.max_repetition_level,
            ).encode(batch.repetition_levels)
        if self.descriptor.max_definition_level > 0:
            body += LevelEncoder(
                level_encoding,
                self.descriptor.max_definition_level,
            ).encode(batch.definition_levels)
        body += values
        payload = compress(bytes(body), self.codec)
        return DataPageV1(
            num_values=batch.num_values,
            encoding=encoding,
            definition_level_encoding=level_encoding,
            repetition_level_encoding=level_encoding,
            codec=self.codec,
            uncompressed_page_size=len(body),
            compressed_page_size=len(payload),
            crc=self._crc(payload),
            payload=payload,
        )

    def _data_page_v2(
        self,
        batch: ColumnBatch,
        encoding: Encoding,
        values: bytes,
    ) -> DataPageV2:
        rep_levels = b''
        def_levels = b''
        if self.descriptor.max_repetition_level > 0:
            rep_levels = LevelEncoder(
                Encoding.RLE,
                self.descriptor.max_repetition_level,
            ).encode_raw(batch.repetition_levels)
        if self.descriptor.max_definition_level > 0:
            def_levels = LevelEncoder(
                Encoding.RLE,
                self.descriptor.max_definition_level,
            ).encode_raw(batch.definition_levels)
        is_compressed = self.codec != Compression.UNCOMPRESSED
        stored_values = compress(values, self.codec) if is_compressed else values
        payload = rep_levels + def_levels + stored_values
        return DataPageV2(
            num_values=batch.num_values,
            num_nulls=batch.num_nulls,
            num_rows=batch.num_rows,
            encoding=encoding,
            definition_levels_byte_length=len(def_levels),
            repetition_levels_byte_length=len(rep_levels),
            is_compressed=is_compressed,
            codec=self.codec,
            uncompressed_page_size=len(rep_levels) + len(def_levels) + len(values),
            compressed_page_size=len(payload),
            crc=self._crc(payload),
            payload=payload,
        )

    def _crc(self, payload: bytes) -> int | None:
        return page_crc(payload) if self.properties.write_checksums else None
