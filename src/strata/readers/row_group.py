"""
RowGroupReader: access to the column chunks of one row group.

Teaching Points:
- Every column chunk of a row group spans the same records
- Reading a subset of columns only decodes those chunks; the record
  assembler is given a projected schema holding just the selected leaves
- Readers are created per request because storage-backed pages are
  streamed once
"""

from __future__ import annotations

import logging

from collections.abc import Iterable, Iterator
from typing import Any

from ..assembly import RecordAssembler
from ..cancellation import CancellationToken
from ..chunks import RowGroup
from ..exceptions import SchemaError, StructuralCorruption
from ..metadata import RowGroupSummary
from ..protocols import Storage
from ..schema import Schema
from .column_chunk import ColumnChunkReader

logger = logging.getLogger(__name__)


class RowGroupReader:
    def __init__(
        self,
        schema: Schema,
        row_group: RowGroup | RowGroupSummary,
        storage: Storage | None = None,
        *,
        verify_checksums: bool = True,
        cancellation: CancellationToken | None = None,
    ) -> None:
        if isinstance(row_group, RowGroupSummary) and storage is None:
            raise ValueError('Reading a row group summary needs a storage')
        self.schema = schema
        self.row_group = row_group
        self.storage = storage
        self.verify_checksums = verify_checksums
        self.cancellation = cancellation

        present = set(self.columns())
        expected = set(schema.column_paths)
        if present != expected:
            raise SchemaError(
                'Row group columns do not match the schema: '
                f'missing={sorted(expected - present)} '
                f'unexpected={sorted(present - expected)}',
            )
        logger.debug(
            'RowGroupReader initialized: %d rows, %d columns',
            self.num_rows,
            len(present),
        )

    @classmethod
    def from_storage(
        cls,
        schema: Schema,
        storage: Storage,
        summary: RowGroupSummary,
        **kwargs,
    ) -> RowGroupReader:
        return cls(schema, summary, storage, **kwargs)

    @property
    def num_rows(self) -> int:
        return self.row_group.num_rows

    def columns(self) -> list[str]:
        if isinstance(self.row_group, RowGroup):
            return list(self.row_group.columns)
        return [c.path_in_schema for c in self.row_group.columns]

    def column(self, path: str) -> ColumnChunkReader:
        """A fresh reader for the chunk of the column at dotted ``path``."""
        descriptor = self.schema.column(path)
        key = descriptor.path_in_schema
        options = {
            'verify_checksums': self.verify_checksums,
            'cancellation': self.cancellation,
        }
        if isinstance(self.row_group, RowGroup):
            return ColumnChunkReader.from_chunk(
                descriptor,
                self.row_group.columns[key],
                **options,
            )
        return ColumnChunkReader.from_storage(
            self.storage,  # type: ignore[arg-type]
            descriptor,
            self.row_group.column(key),
            **options,
        )

    def read_records(
        self,
        columns: Iterable[str] | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Assemble the records of this row group.

        With ``columns`` only those leaves are decoded and the records only
        contain the fields leading to them.
        """
        schema = self.schema if columns is None else self.schema.project(columns)
        streams = {
            path: self.column(path).read_entries() for path in schema.column_paths
        }
        count = 0
        for record in RecordAssembler(schema).assemble(streams):
            count += 1
            yield record
        if count != self.num_rows:
            raise StructuralCorruption(
                f'Assembled {count} records, row group holds {self.num_rows}',
            )
        logger.debug(
            'Read %d records from %d of %d columns',
            count,
            len(streams),
            len(self.schema.column_paths),
        )
