from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import NamedTuple

from .physical_types import PhysicalValue


class LevelEntry(NamedTuple):
    """One logical slot of a flattened column.

    ``value`` is None exactly when ``definition_level`` is below the column's
    maximum definition level.
    """

    repetition_level: int
    definition_level: int
    value: PhysicalValue | None = None


@dataclass
class ColumnBatch:
    """Level entries split into the three streams a data page stores.

    ``values`` only holds the non-null values, in order.
    """

    max_definition_level: int
    repetition_levels: list[int] = field(default_factory=list)
    definition_levels: list[int] = field(default_factory=list)
    values: list[PhysicalValue] = field(default_factory=list)

    @classmethod
    def from_entries(
        cls,
        entries: Iterable[LevelEntry],
        max_definition_level: int,
    ) -> ColumnBatch:
        batch = cls(max_definition_level)
        for entry in entries:
            batch.append(entry)
        return batch

    def append(self, entry: LevelEntry) -> None:
        self.repetition_levels.append(entry.repetition_level)
        self.definition_levels.append(entry.definition_level)
        if entry.definition_level == self.max_definition_level:
            self.values.append(entry.value)  # type: ignore[arg-type]

    @property
    def num_values(self) -> int:
        """Number of level slots, nulls included."""
        return len(self.definition_levels)

    @property
    def num_nulls(self) -> int:
        return len(self.definition_levels) - len(self.values)

    @property
    def num_rows(self) -> int:
        return sum(1 for r in self.repetition_levels if r == 0)

    def __len__(self) -> int:
        return self.num_values

    def entries(self) -> Iterator[LevelEntry]:
        values = iter(self.values)
        for r, d in zip(self.repetition_levels, self.definition_levels, strict=True):
            if d == self.max_definition_level:
                yield LevelEntry(r, d, next(values))
            else:
                yield LevelEntry(r, d, None)
