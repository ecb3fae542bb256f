"""
Running column statistics.

Teaching Points:
- min/max follow the physical type ordering; byte arrays compare as unsigned
  bytes, floats skip NaN, INT96 has no ordering and gets no min/max
- null_count counts every slot without a value (definition level below max),
  including empty lists
- distinct_count is only known when the whole chunk was dictionary encoded
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from .enums import Type
from .physical_types import PhysicalValue, is_nan, is_ordered, sort_key


class ColumnStatistics(BaseModel):
    """Frozen statistics of a closed column chunk (physical values)."""

    model_config = ConfigDict(frozen=True)

    min_value: bool | int | float | bytes | None = None
    max_value: bool | int | float | bytes | None = None
    null_count: int = 0
    distinct_count: int | None = None


class StatisticsAccumulator:
    """Incrementally tracks the statistics of one column chunk.

    Owned by a single chunk writer; not thread safe.
    """

    def __init__(self, physical_type: Type, max_definition_level: int) -> None:
        self.physical_type = physical_type
        self.max_definition_level = max_definition_level
        self.null_count = 0
        self.min_value: PhysicalValue | None = None
        self.max_value: PhysicalValue | None = None
        self._ordered = is_ordered(physical_type)
        self._min_key = None
        self._max_key = None

    def update(self, definition_level: int, value: PhysicalValue | None) -> None:
        if definition_level < self.max_definition_level:
            self.null_count += 1
            return
        if not self._ordered or value is None or is_nan(value):
            return
        key = sort_key(self.physical_type, value)
        if self._min_key is None or key < self._min_key:
            self._min_key = key
            self.min_value = key
        if self._max_key is None or key > self._max_key:
            self._max_key = key
            self.max_value = key

    def freeze(self, distinct_count: int | None = None) -> ColumnStatistics:
        return ColumnStatistics(
            min_value=self.min_value,
            max_value=self.max_value,
            null_count=self.null_count,
            distinct_count=distinct_count,
        )
