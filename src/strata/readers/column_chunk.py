"""
ColumnChunkReader: decodes the pages of one column chunk, lazily.

Teaching Points:
- A dictionary page, if present, must be read before any page that refers
  to it, and a chunk has at most one
- Pages are decoded one at a time as the caller iterates, so only one page
  worth of values is held in memory
- from_storage() reads each page's byte range only when it is reached
"""

from __future__ import annotations

import logging

from collections.abc import Iterable, Iterator

from ..cancellation import CancellationToken, check_cancelled
from ..chunks import ColumnChunk
from ..encodings.dictionary import DictionaryDecoder
from ..exceptions import MalformedEncoding, StrataError
from ..metadata import ColumnChunkSummary, PageLocation
from ..pages import AnyPage, DictionaryPage, Page
from ..protocols import Storage
from ..schema import ColumnDescriptor
from ..types import ColumnBatch, LevelEntry
from .page import PageReader

logger = logging.getLogger(__name__)


class ColumnChunkReader:
    def __init__(
        self,
        descriptor: ColumnDescriptor,
        pages: Iterable[AnyPage],
        *,
        num_values: int | None = None,
        verify_checksums: bool = True,
        cancellation: CancellationToken | None = None,
    ) -> None:
        self.descriptor = descriptor
        self.num_values = num_values
        self.cancellation = cancellation
        self._pages = pages
        self._page_reader = PageReader(descriptor, verify_checksums)

    @classmethod
    def from_chunk(
        cls,
        descriptor: ColumnDescriptor,
        chunk: ColumnChunk,
        **kwargs,
    ) -> ColumnChunkReader:
        return cls(descriptor, chunk.pages, num_values=chunk.num_values, **kwargs)

    @classmethod
    def from_storage(
        cls,
        storage: Storage,
        descriptor: ColumnDescriptor,
        summary: ColumnChunkSummary,
        **kwargs,
    ) -> ColumnChunkReader:
        return cls(
            descriptor,
            _load_pages(storage, descriptor, summary.pages),
            num_values=summary.num_values,
            **kwargs,
        )

    def read_batches(self) -> Iterator[ColumnBatch]:
        """Yield one decoded batch per data page."""
        path = self.descriptor.path_in_schema
        dictionary: DictionaryDecoder | None = None
        values_read = 0
        for index, page in enumerate(self._pages):
            check_cancelled(self.cancellation, f'Reading column {path}')
            location = page.offset if page.offset is not None else index
            if isinstance(page, DictionaryPage):
                if dictionary is not None or index != 0:
                    raise MalformedEncoding(
                        'Dictionary page must be the first and only one of a chunk',
                        column_path=path,
                        page_offset=location,
                    )
            try:
                if isinstance(page, DictionaryPage):
                    dictionary = self._page_reader.read_dictionary_page(page)
                    continue
                batch = self._page_reader.read_data_page(page, dictionary)
            except StrataError as e:
                raise e.with_context(path, location)
            if batch.num_values and batch.repetition_levels[0] != 0:
                raise MalformedEncoding(
                    'Data page does not start at a record boundary',
                    column_path=path,
                    page_offset=location,
                )
            values_read += batch.num_values
            yield batch

        if self.num_values is not None and values_read != self.num_values:
            raise MalformedEncoding(
                f'Column chunk pages hold {values_read} values, '
                f'metadata says {self.num_values}',
                column_path=path,
            )
        logger.debug('Read column chunk %s: %d values', path, values_read)

    def read_entries(self) -> Iterator[LevelEntry]:
        for batch in self.read_batches():
            yield from batch.entries()

    def __iter__(self) -> Iterator[LevelEntry]:
        return self.read_entries()

    def __repr__(self) -> str:
        return f'ColumnChunkReader(column={self.descriptor.path_in_schema})'


def _load_pages(
    storage: Storage,
    descriptor: ColumnDescriptor,
    locations: Iterable[PageLocation],
) -> Iterator[AnyPage]:
    for location in locations:
        offset = location.byte_range.offset
        data = storage.read(location.byte_range)
        try:
            page = Page.from_bytes(data)
        except StrataError as e:
            # offsets of parse errors are relative to the page start
            e.page_offset = offset + (e.page_offset or 0)
            raise e.with_context(column_path=descriptor.path_in_schema)
        if page.total_size != location.byte_range.length:
            raise MalformedEncoding(
                f'Page occupies {page.total_size} bytes, metadata says '
                f'{location.byte_range.length}',
                column_path=descriptor.path_in_schema,
                page_offset=offset,
            )
        if page.page_type != location.page_type:
            raise MalformedEncoding(
                f'Expected {location.page_type.name}, found {page.page_type.name}',
                column_path=descriptor.path_in_schema,
                page_offset=offset,
            )
        yield page.with_offset(offset)
