"""
RowGroupWriter: shreds records into one column chunk writer per leaf.

Teaching Points:
- A row group holds the same records in every column, so each record is
  shredded once and its entries are dispatched to every chunk writer
- A record is shredded completely before any writer sees it; a record that
  violates the schema leaves the row group untouched
- A failure while the entries are dispatched (a page flush that cannot
  compress, a cancellation) leaves the chunks out of step, so the row group
  refuses further writes and cannot be closed
- Chunk writers share no state, which lets close() finish them in parallel
"""

from __future__ import annotations

import logging

from collections.abc import Iterable, Mapping
from concurrent.futures import Executor
from typing import Any

from ..cancellation import CancellationToken, check_cancelled
from ..chunks import ColumnChunk, RowGroup
from ..exceptions import StrataError, StructuralCorruption
from ..properties import WriterProperties
from ..schema import Schema
from ..shredding import Shredder
from .column_chunk import ColumnChunkWriter

logger = logging.getLogger(__name__)


class RowGroupWriter:
    def __init__(
        self,
        schema: Schema,
        properties: WriterProperties | None = None,
        cancellation: CancellationToken | None = None,
    ) -> None:
        self.schema = schema
        self.properties = properties or WriterProperties()
        self.cancellation = cancellation
        self._shredder = Shredder(schema)
        self._writers = {
            descriptor.path_in_schema: ColumnChunkWriter(
                descriptor,
                self.properties.for_column(descriptor.path_in_schema),
                cancellation,
            )
            for descriptor in schema.columns
        }
        self._num_rows = 0
        self._closed = False
        self._failed: StrataError | None = None

    @property
    def num_rows(self) -> int:
        return self._num_rows

    @property
    def failed(self) -> bool:
        """Whether a record reached only some of the chunk writers."""
        return self._failed is not None

    def _check_usable(self) -> None:
        if self._closed:
            raise StrataError('Cannot write to a closed row group')
        if self._failed is not None:
            raise StrataError(
                f'Row group is unusable after a failed write: {self._failed}',
            )

    def write_record(self, record: Mapping[str, Any]) -> None:
        self._check_usable()
        check_cancelled(self.cancellation, 'Writing row group')
        streams = self._shredder.shred(record)
        try:
            for path, writer in self._writers.items():
                writer.write(streams[path])
        except StrataError as e:
            # chunk writers before the failing one already hold the record
            self._failed = e
            raise
        self._num_rows += 1

    def write_records(self, records: Iterable[Mapping[str, Any]]) -> int:
        count = 0
        for record in records:
            self.write_record(record)
            count += 1
        return count

    def close(
        self,
        executor: Executor | None = None,
        cancellation: CancellationToken | None = None,
    ) -> RowGroup:
        """Close every chunk writer and return the finished row group.

        With an ``executor`` the chunks are closed concurrently; the chunk
        order of the result is always the schema's column order.
        """
        if self._closed:
            raise StrataError('Row group already closed')
        self._check_usable()
        self._closed = True
        if cancellation is not None:
            for writer in self._writers.values():
                writer.cancellation = cancellation
        check_cancelled(cancellation or self.cancellation, 'Closing row group')

        if executor is None:
            chunks = [writer.close() for writer in self._writers.values()]
        else:
            futures = [executor.submit(w.close) for w in self._writers.values()]
            chunks = [future.result() for future in futures]

        columns: dict[str, ColumnChunk] = {}
        for path, chunk in zip(self._writers, chunks, strict=True):
            if chunk.num_rows != self._num_rows:
                raise StructuralCorruption(
                    f'Column chunk holds {chunk.num_rows} records, row group '
                    f'holds {self._num_rows}',
                    column_path=path,
                )
            columns[path] = chunk

        row_group = RowGroup(num_rows=self._num_rows, columns=columns)
        logger.debug(
            'Closed row group: %d rows, %d columns, %d bytes stored',
            row_group.num_rows,
            len(columns),
            row_group.total_compressed_size,
        )
        return row_group
