"""
RowGroupCoordinator: the write and read entry point for a sequence of
row groups stored through a Storage and described by a footer.

Teaching Points:
- Records are buffered into a RowGroupWriter until row_group_size records
  have been written, then the row group is closed and its pages stored
- Pages of a chunk are stored back to back, dictionary page first, and the
  byte range of every page goes into the summary
- The footer is whatever the metadata serializer makes of the summaries
"""

from __future__ import annotations

import logging

from collections.abc import Iterable, Iterator, Mapping
from concurrent.futures import Executor
from typing import Any

from .cancellation import CancellationToken, check_cancelled
from .chunks import RowGroup
from .exceptions import StrataError
from .metadata import ColumnChunkSummary, PageLocation, RowGroupSummary
from .properties import WriterProperties
from .protocols import MetadataSerializer, Storage
from .readers.row_group import RowGroupReader
from .schema import Schema
from .writers.row_group import RowGroupWriter

logger = logging.getLogger(__name__)


class RowGroupCoordinator:
    def __init__(
        self,
        schema: Schema,
        storage: Storage,
        serializer: MetadataSerializer,
        properties: WriterProperties | None = None,
        *,
        executor: Executor | None = None,
        cancellation: CancellationToken | None = None,
    ) -> None:
        self.schema = schema
        self.storage = storage
        self.serializer = serializer
        self.properties = properties or WriterProperties()
        self.executor = executor
        self.cancellation = cancellation
        self.row_groups: list[RowGroupSummary] = []
        self._writer: RowGroupWriter | None = None
        self._offset = 0
        self._closed = False

    def _current_writer(self) -> RowGroupWriter:
        if self._closed:
            raise StrataError('Coordinator is closed')
        if self._writer is None:
            self._writer = RowGroupWriter(
                self.schema,
                self.properties,
                self.cancellation,
            )
        return self._writer

    def write_record(self, record: Mapping[str, Any]) -> None:
        writer = self._current_writer()
        writer.write_record(record)
        if writer.num_rows >= self.properties.row_group_size:
            self.flush()

    def write_records(self, records: Iterable[Mapping[str, Any]]) -> int:
        count = 0
        for record in records:
            self.write_record(record)
            count += 1
        return count

    def flush(self) -> RowGroupSummary | None:
        """Close the current row group, if it holds any records, and store it."""
        writer, self._writer = self._writer, None
        if writer is None or writer.num_rows == 0:
            return None
        row_group = writer.close(self.executor, self.cancellation)
        summary = self._store(row_group)
        self.row_groups.append(summary)
        logger.debug(
            'Stored row group %d: %d rows, %d bytes',
            len(self.row_groups) - 1,
            summary.num_rows,
            summary.total_compressed_size,
        )
        return summary

    def _store(self, row_group: RowGroup) -> RowGroupSummary:
        columns = []
        for path, chunk in row_group.columns.items():
            locations = []
            for page in chunk.pages:
                check_cancelled(self.cancellation, f'Storing column {path}')
                byte_range = self.storage.write(self._offset, page.to_bytes())
                self._offset = byte_range.end
                locations.append(
                    PageLocation(page.page_type, byte_range, page.num_values),
                )
            columns.append(
                ColumnChunkSummary.from_chunk(
                    chunk,
                    locations,
                    self.schema.column(path).type_length,
                ),
            )
        return RowGroupSummary(num_rows=row_group.num_rows, columns=columns)

    def close(self) -> bytes:
        """Flush the last row group and return the serialized footer."""
        self.flush()
        self._closed = True
        footer = self.serializer.serialize(self.row_groups)
        logger.debug(
            'Closed coordinator: %d row groups, %d rows, footer %d bytes',
            len(self.row_groups),
            sum(rg.num_rows for rg in self.row_groups),
            len(footer),
        )
        return footer

    def iter_row_groups(
        self,
        footer: bytes,
        verify_checksums: bool = True,
    ) -> Iterator[RowGroupReader]:
        for summary in self.serializer.deserialize(footer):
            yield RowGroupReader.from_storage(
                self.schema,
                self.storage,
                summary,
                verify_checksums=verify_checksums,
                cancellation=self.cancellation,
            )

    def read_records(
        self,
        footer: bytes,
        columns: Iterable[str] | None = None,
    ) -> Iterator[dict[str, Any]]:
        selected = list(columns) if columns is not None else None
        for reader in self.iter_row_groups(footer):
            yield from reader.read_records(selected)
