"""
ColumnChunkWriter: turns one column's level entries into a column chunk.

Teaching Points:
- Entries are buffered until the estimated page size or the row limit is
  reached, and a page is only cut where the next entry starts a new record
- With dictionary encoding the chunk shares a single dictionary across all of
  its data pages; the dictionary page is written first but built last
- Once the dictionary grows too large the chunk falls back to the plain
  (or configured) encoding for the rest of the chunk and never goes back
- Statistics are accumulated entry by entry, so closing a chunk is cheap
"""

from __future__ import annotations

import logging

from collections.abc import Iterable

from ..cancellation import CancellationToken, check_cancelled
from ..chunks import ColumnChunk
from ..compression import check_codec
from ..encodings import ValueCodec, get_value_codec
from ..encodings.dictionary import DictionaryEncoder
from ..enums import Encoding, Type
from ..exceptions import SchemaViolation, StrataError
from ..pages import AnyDataPage
from ..physical_types import PhysicalValue, byte_width
from ..properties import ColumnWriterProperties
from ..schema import ColumnDescriptor
from ..statistics import StatisticsAccumulator
from ..types import ColumnBatch, LevelEntry
from .page import PageWriter

logger = logging.getLogger(__name__)


class ColumnChunkWriter:
    def __init__(
        self,
        descriptor: ColumnDescriptor,
        properties: ColumnWriterProperties,
        cancellation: CancellationToken | None = None,
    ) -> None:
        self.descriptor = descriptor
        self.properties = properties
        self.cancellation = cancellation

        try:
            check_codec(properties.compression)
            self._fallback: ValueCodec = get_value_codec(
                properties.encoding,
                descriptor.physical_type,
                descriptor.type_length,
            )
        except StrataError as e:
            raise e.with_context(column_path=descriptor.path_in_schema)

        self._dictionary: DictionaryEncoder | None = None
        if properties.dictionary_enabled:
            self._dictionary = DictionaryEncoder(
                descriptor.physical_type,
                descriptor.type_length,
            )
        self._use_dictionary = self._dictionary is not None
        self._dictionary_pages = 0

        self._page_writer = PageWriter(descriptor, properties)
        self._statistics = StatisticsAccumulator(
            descriptor.physical_type,
            descriptor.max_definition_level,
        )
        self._value_width = byte_width(descriptor.physical_type, descriptor.type_length)

        self._buffer = ColumnBatch(descriptor.max_definition_level)
        self._buffered_rows = 0
        self._buffered_bytes = 0
        self._data_pages: list[AnyDataPage] = []
        self._num_values = 0
        self._num_rows = 0
        self._closed = False

    @property
    def num_rows(self) -> int:
        return self._num_rows

    @property
    def num_values(self) -> int:
        return self._num_values

    @property
    def dictionary_active(self) -> bool:
        """Whether new pages are still being dictionary encoded."""
        return self._use_dictionary

    def write(self, entries: Iterable[LevelEntry]) -> None:
        if self._closed:
            raise StrataError(
                'Cannot write to a closed column chunk',
                column_path=self.descriptor.path_in_schema,
            )
        for entry in entries:
            self._write_entry(entry)

    def _write_entry(self, entry: LevelEntry) -> None:
        self._check_entry(entry)
        starts_record = entry.repetition_level == 0
        if starts_record and self._page_full():
            self.flush_page()

        self._buffer.append(entry)
        self._statistics.update(entry.definition_level, entry.value)
        self._buffered_bytes += self._entry_size(entry)
        self._num_values += 1
        if starts_record:
            self._buffered_rows += 1
            self._num_rows += 1

    def _check_entry(self, entry: LevelEntry) -> None:
        d = self.descriptor
        problem = None
        if not 0 <= entry.repetition_level <= d.max_repetition_level:
            problem = (
                f'repetition level {entry.repetition_level} outside '
                f'0..{d.max_repetition_level}'
            )
        elif not 0 <= entry.definition_level <= d.max_definition_level:
            problem = (
                f'definition level {entry.definition_level} outside '
                f'0..{d.max_definition_level}'
            )
        elif (entry.definition_level == d.max_definition_level) != (
            entry.value is not None
        ):
            problem = (
                f'value presence does not match definition level '
                f'{entry.definition_level}'
            )
        elif self._num_values == 0 and entry.repetition_level != 0:
            problem = 'a column chunk must start at a record boundary'
        if problem is not None:
            raise SchemaViolation(
                f'Invalid level entry: {problem}',
                column_path=d.path_in_schema,
            )

    def _entry_size(self, entry: LevelEntry) -> int:
        # One byte per slot stands in for both level streams.
        size = 1
        if entry.value is None:
            return size
        if self.descriptor.physical_type == Type.BOOLEAN:
            return size + 1
        if self._value_width is not None:
            return size + self._value_width
        return size + 4 + len(entry.value)  # type: ignore[arg-type]

    def _page_full(self) -> bool:
        if not self._buffer.num_values:
            return False
        return (
            self._buffered_rows >= self.properties.data_page_row_limit
            or self._buffered_bytes >= self.properties.data_page_size
        )

    def flush_page(self) -> None:
        """Encode the buffered entries into a data page."""
        if not self._buffer.num_values:
            return
        check_cancelled(
            self.cancellation,
            f'Writing column {self.descriptor.path_in_schema}',
        )
        codec = self._choose_codec(self._buffer.values)
        try:
            page = self._page_writer.write_data_page(self._buffer, codec)
        except StrataError as e:
            raise e.with_context(
                column_path=self.descriptor.path_in_schema,
                page_offset=len(self._data_pages),
            )
        if codec is self._dictionary:
            self._dictionary_pages += 1
        self._data_pages.append(page)
        self._buffer = ColumnBatch(self.descriptor.max_definition_level)
        self._buffered_rows = 0
        self._buffered_bytes = 0

    def _choose_codec(self, values: list[PhysicalValue]) -> ValueCodec:
        if not self._use_dictionary or self._dictionary is None:
            return self._fallback
        new_entries, new_bytes = self._dictionary.would_add(values)
        entries = self._dictionary.num_entries + new_entries
        size = self._dictionary.dictionary_byte_size + new_bytes
        if (
            entries > self.properties.dictionary_max_size
            or size > self.properties.dictionary_page_size_limit
        ):
            self._fall_back(entries, size)
            return self._fallback
        return self._dictionary

    def _fall_back(self, entries: int, size: int) -> None:
        self._use_dictionary = False
        if self._dictionary_pages == 0:
            # nothing references the dictionary yet
            self._dictionary = None
        logger.debug(
            'Column %s falls back to %s after %d pages: dictionary would hold '
            '%d entries in %d bytes',
            self.descriptor.path_in_schema,
            self._fallback.encoding.name,
            self._dictionary_pages,
            entries,
            size,
        )

    def close(self) -> ColumnChunk:
        if self._closed:
            raise StrataError(
                'Column chunk already closed',
                column_path=self.descriptor.path_in_schema,
            )
        self.flush_page()
        self._closed = True

        dictionary_page = None
        distinct_count = None
        if self._dictionary is not None and self._dictionary_pages:
            dictionary_page = self._page_writer.write_dictionary_page(
                self._dictionary,
            )
            if self._use_dictionary:
                distinct_count = self._dictionary.num_entries

        chunk = ColumnChunk(
            path_in_schema=self.descriptor.path_in_schema,
            physical_type=self.descriptor.physical_type,
            codec=self.properties.compression,
            encodings=self._encodings(dictionary_page is not None),
            dictionary_page=dictionary_page,
            data_pages=tuple(self._data_pages),
            statistics=self._statistics.freeze(distinct_count),
            num_values=self._num_values,
            num_rows=self._num_rows,
        )
        logger.debug(
            'Closed column chunk %s: %d rows, %d values, %d data pages%s, '
            '%d bytes stored',
            chunk.path_in_schema,
            chunk.num_rows,
            chunk.num_values,
            len(chunk.data_pages),
            ' + dictionary' if dictionary_page is not None else '',
            chunk.total_compressed_size,
        )
        return chunk

    def _encodings(self, has_dictionary: bool) -> tuple[Encoding, ...]:
        used: list[Encoding] = []
        if has_dictionary:
            used.append(Encoding.PLAIN)
        if self.descriptor.max_repetition_level or self.descriptor.max_definition_level:
            used.append(
                Encoding.RLE
                if self.properties.data_page_version == 2
                else self.properties.level_encoding,
            )
        used.extend(p.encoding for p in self._data_pages)
        return tuple(dict.fromkeys(used))
