"""
Summaries of written row groups, handed to a metadata serializer.

These are plain dataclasses so that any serializer can (un)structure them;
they describe where pages live in storage, never the page bytes themselves.
Statistics bounds are stored as bytes: PLAIN encoded, except BYTE_ARRAY
bounds which are the raw value.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .chunks import ColumnChunk
from .encodings import PlainCodec
from .enums import Compression, Encoding, PageType, Type
from .exceptions import SchemaError
from .physical_types import PhysicalValue
from .statistics import ColumnStatistics


@dataclass(frozen=True)
class ByteRange:
    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length


@dataclass(frozen=True)
class PageLocation:
    page_type: PageType
    byte_range: ByteRange
    num_values: int


@dataclass(frozen=True)
class StatisticsSummary:
    min_value: bytes | None = None
    max_value: bytes | None = None
    null_count: int = 0
    distinct_count: int | None = None

    @classmethod
    def from_statistics(
        cls,
        statistics: ColumnStatistics,
        physical_type: Type,
        type_length: int | None = None,
    ) -> StatisticsSummary:
        return cls(
            min_value=_encode_bound(statistics.min_value, physical_type, type_length),
            max_value=_encode_bound(statistics.max_value, physical_type, type_length),
            null_count=statistics.null_count,
            distinct_count=statistics.distinct_count,
        )

    def to_statistics(
        self,
        physical_type: Type,
        type_length: int | None = None,
    ) -> ColumnStatistics:
        return ColumnStatistics(
            min_value=_decode_bound(self.min_value, physical_type, type_length),
            max_value=_decode_bound(self.max_value, physical_type, type_length),
            null_count=self.null_count,
            distinct_count=self.distinct_count,
        )


def _encode_bound(
    value: PhysicalValue | None,
    physical_type: Type,
    type_length: int | None,
) -> bytes | None:
    if value is None:
        return None
    if physical_type == Type.BYTE_ARRAY:
        return value  # type: ignore[return-value]
    return PlainCodec(physical_type, type_length).encode([value])


def _decode_bound(
    data: bytes | None,
    physical_type: Type,
    type_length: int | None,
) -> PhysicalValue | None:
    if data is None:
        return None
    if physical_type == Type.BYTE_ARRAY:
        return data
    return PlainCodec(physical_type, type_length).decode(data, 1)[0]


@dataclass(frozen=True)
class ColumnChunkSummary:
    path_in_schema: str
    physical_type: Type
    codec: Compression
    encodings: list[Encoding]
    num_values: int
    num_rows: int
    total_uncompressed_size: int
    total_compressed_size: int
    byte_range: ByteRange
    pages: list[PageLocation] = field(default_factory=list)
    statistics: StatisticsSummary = field(default_factory=StatisticsSummary)

    @property
    def dictionary_page(self) -> PageLocation | None:
        for page in self.pages:
            if page.page_type == PageType.DICTIONARY_PAGE:
                return page
        return None

    @property
    def data_pages(self) -> list[PageLocation]:
        return [p for p in self.pages if p.page_type != PageType.DICTIONARY_PAGE]

    @classmethod
    def from_chunk(
        cls,
        chunk: ColumnChunk,
        pages: list[PageLocation],
        type_length: int | None = None,
    ) -> ColumnChunkSummary:
        """Summarize ``chunk`` whose pages were stored at ``pages``."""
        start = pages[0].byte_range.offset if pages else 0
        end = pages[-1].byte_range.end if pages else 0
        return cls(
            path_in_schema=chunk.path_in_schema,
            physical_type=chunk.physical_type,
            codec=chunk.codec,
            encodings=list(chunk.encodings),
            num_values=chunk.num_values,
            num_rows=chunk.num_rows,
            total_uncompressed_size=chunk.total_uncompressed_size,
            total_compressed_size=chunk.total_compressed_size,
            byte_range=ByteRange(start, end - start),
            pages=pages,
            statistics=StatisticsSummary.from_statistics(
                chunk.statistics,
                chunk.physical_type,
                type_length,
            ),
        )


@dataclass(frozen=True)
class RowGroupSummary:
    num_rows: int
    columns: list[ColumnChunkSummary] = field(default_factory=list)

    @property
    def total_byte_size(self) -> int:
        return sum(c.total_uncompressed_size for c in self.columns)

    @property
    def total_compressed_size(self) -> int:
        return sum(c.total_compressed_size for c in self.columns)

    def column(self, path: str) -> ColumnChunkSummary:
        for column in self.columns:
            if column.path_in_schema == path:
                return column
        raise SchemaError(f"No column chunk '{path}' in row group")
