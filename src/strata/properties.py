"""
Writer configuration.

Thresholds and encoding choices are tuning parameters, so they live in a
validated, immutable model instead of module constants. Per column overrides
are keyed by dotted column path.
"""

from __future__ import annotations

from typing import Literal, Self, TypeVar

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, model_validator

from .constants import (
    DEFAULT_DATA_PAGE_ROW_LIMIT,
    DEFAULT_DATA_PAGE_SIZE,
    DEFAULT_DICTIONARY_MAX_SIZE,
    DEFAULT_DICTIONARY_PAGE_SIZE_LIMIT,
    DEFAULT_ROW_GROUP_SIZE,
)
from .enums import Compression, Encoding

DICTIONARY_ENCODING_IDS = (Encoding.PLAIN_DICTIONARY, Encoding.RLE_DICTIONARY)


class ColumnProperties(BaseModel):
    """Overrides for a single column; unset fields inherit the writer default."""

    model_config = ConfigDict(frozen=True)

    encoding: Encoding | None = None
    dictionary_enabled: bool | None = None
    compression: Compression | None = None
    dictionary_max_size: PositiveInt | None = None

    @model_validator(mode='after')
    def _check_encoding(self) -> Self:
        if self.encoding in DICTIONARY_ENCODING_IDS:
            raise ValueError(
                'Use dictionary_enabled to request dictionary encoding; '
                '`encoding` is the non-dictionary (fallback) encoding',
            )
        return self


class ColumnWriterProperties(BaseModel):
    """Fully resolved settings for one column chunk writer."""

    model_config = ConfigDict(frozen=True)

    encoding: Encoding
    dictionary_enabled: bool
    dictionary_max_size: int
    dictionary_page_size_limit: int
    compression: Compression
    data_page_size: int
    data_page_row_limit: int
    write_checksums: bool
    data_page_version: Literal[1, 2]
    level_encoding: Encoding


class WriterProperties(BaseModel):
    model_config = ConfigDict(frozen=True)

    data_page_size: PositiveInt = DEFAULT_DATA_PAGE_SIZE
    data_page_row_limit: PositiveInt = DEFAULT_DATA_PAGE_ROW_LIMIT
    row_group_size: PositiveInt = DEFAULT_ROW_GROUP_SIZE
    dictionary_enabled: bool = True
    dictionary_max_size: PositiveInt = DEFAULT_DICTIONARY_MAX_SIZE
    dictionary_page_size_limit: PositiveInt = DEFAULT_DICTIONARY_PAGE_SIZE_LIMIT
    encoding: Encoding = Encoding.PLAIN
    compression: Compression = Compression.UNCOMPRESSED
    write_checksums: bool = True
    data_page_version: Literal[1, 2] = 1
    level_encoding: Encoding = Encoding.RLE
    column_overrides: dict[str, ColumnProperties] = Field(default_factory=dict)

    @model_validator(mode='after')
    def _check(self) -> Self:
        if self.encoding in DICTIONARY_ENCODING_IDS:
            raise ValueError(
                'Use dictionary_enabled to request dictionary encoding; '
                '`encoding` is the non-dictionary (fallback) encoding',
            )
        if self.level_encoding not in (Encoding.RLE, Encoding.BIT_PACKED):
            raise ValueError(
                f'Levels can only be RLE or BIT_PACKED, not {self.level_encoding.name}',
            )
        if self.level_encoding == Encoding.BIT_PACKED and self.data_page_version != 1:
            raise ValueError('BIT_PACKED levels only exist in version 1 data pages')
        return self

    def for_column(self, path: str) -> ColumnWriterProperties:
        override = self.column_overrides.get(path, ColumnProperties())
        return ColumnWriterProperties(
            encoding=_pick(override.encoding, self.encoding),
            dictionary_enabled=_pick(
                override.dictionary_enabled,
                self.dictionary_enabled,
            ),
            dictionary_max_size=_pick(
                override.dictionary_max_size,
                self.dictionary_max_size,
            ),
            dictionary_page_size_limit=self.dictionary_page_size_limit,
            compression=_pick(override.compression, self.compression),
            data_page_size=self.data_page_size,
            data_page_row_limit=self.data_page_row_limit,
            write_checksums=self.write_checksums,
            data_page_version=self.data_page_version,
            level_encoding=self.level_encoding,
        )


T = TypeVar('T')


def _pick(override: T | None, default: T) -> T:
    return default if override is None else override
