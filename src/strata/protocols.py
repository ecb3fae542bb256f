from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from .metadata import ByteRange, RowGroupSummary


@runtime_checkable
class Storage(Protocol):
    """Where page bytes go. The core never performs I/O any other way."""

    def write(self, offset_hint: int | None, data: bytes) -> ByteRange: ...

    def read(self, byte_range: ByteRange) -> bytes: ...


@runtime_checkable
class MetadataSerializer(Protocol):
    """Turns row group summaries into footer bytes and back."""

    def serialize(self, row_groups: Sequence[RowGroupSummary]) -> bytes: ...

    def deserialize(self, data: bytes) -> list[RowGroupSummary]: ...
