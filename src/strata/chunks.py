"""
Immutable results of the write pipeline.

Teaching Points:
- A ColumnChunk is everything one column stored for one row group: an
  optional dictionary page followed by its data pages, in file order
- A RowGroup is a set of column chunks that all span the same records
- Both are produced by writers on close() and never change afterwards
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .enums import Compression, Encoding, Type
from .pages import AnyDataPageDiscriminated, AnyPage, DictionaryPage
from .statistics import ColumnStatistics


class ColumnChunk(BaseModel):
    model_config = ConfigDict(frozen=True)

    path_in_schema: str
    physical_type: Type
    codec: Compression
    encodings: tuple[Encoding, ...]
    dictionary_page: DictionaryPage | None = None
    data_pages: tuple[AnyDataPageDiscriminated, ...] = ()
    statistics: ColumnStatistics = Field(default_factory=ColumnStatistics)
    num_values: int = 0
    num_rows: int = 0

    @property
    def pages(self) -> list[AnyPage]:
        """All pages in file order, dictionary page first."""
        pages: list[AnyPage] = []
        if self.dictionary_page is not None:
            pages.append(self.dictionary_page)
        pages.extend(self.data_pages)
        return pages

    @property
    def total_uncompressed_size(self) -> int:
        return sum(p.uncompressed_page_size for p in self.pages)

    @property
    def total_compressed_size(self) -> int:
        """Stored bytes, page headers included."""
        return sum(p.total_size for p in self.pages)

    def to_bytes(self) -> bytes:
        return b''.join(p.to_bytes() for p in self.pages)


class RowGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    num_rows: int
    columns: dict[str, ColumnChunk]

    @property
    def total_byte_size(self) -> int:
        return sum(c.total_uncompressed_size for c in self.columns.values())

    @property
    def total_compressed_size(self) -> int:
        return sum(c.total_compressed_size for c in self.columns.values())
