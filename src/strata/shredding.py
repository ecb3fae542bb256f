"""
Record shredding: nested records to per-column level streams.

Teaching Points:
- Every leaf column receives one entry per value, plus one entry for every
  place where the value is missing (null optional field, empty list)
- The definition level says how many optional/repeated nodes on the path
  are actually present
- The repetition level says at which repeated node the entry continues the
  previous one; 0 starts a new record
- The first item of a list inherits its parent's repetition level, so an
  entry always reports the shallowest list boundary crossed
"""

from __future__ import annotations

import logging

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, TypeAlias

from .enums import Repetition
from .exceptions import SchemaViolation
from .logical_types import to_physical
from .schema import ColumnDescriptor, Schema, SchemaField
from .types import LevelEntry

logger = logging.getLogger(__name__)

ColumnStreams: TypeAlias = dict[str, list[LevelEntry]]


@dataclass(frozen=True, slots=True)
class ShredState:
    """Levels reached so far on the current path of the walk."""

    repetition_level: int = 0
    definition_level: int = 0


class Shredder:
    """Turns records into level entry streams for a schema's leaf columns.

    Records are mappings keyed by field name. Repeated fields take a list
    (None counts as empty), optional fields take None or may be left out,
    and required fields must be present.
    """

    def __init__(self, schema: Schema) -> None:
        self.schema = schema

    def shred(self, record: Mapping[str, Any]) -> ColumnStreams:
        """Shred one record into entries for every column."""
        sink: ColumnStreams = {path: [] for path in self.schema.column_paths}
        self._write_record(record, sink)
        return sink

    def shred_many(self, records: Iterable[Mapping[str, Any]]) -> ColumnStreams:
        """Shred a batch of records, concatenating each column's entries."""
        sink: ColumnStreams = {path: [] for path in self.schema.column_paths}
        for record in records:
            self._write_record(record, sink)
        return sink

    def shred_column(
        self,
        record: Mapping[str, Any],
        column: ColumnDescriptor | str,
    ) -> list[LevelEntry]:
        """Shred one record for a single leaf column only."""
        if isinstance(column, str):
            column = self.schema.column(column)
        sink: ColumnStreams = {column.path_in_schema: []}
        self._write_record(record, sink)
        return sink[column.path_in_schema]

    def _write_record(self, record: Mapping[str, Any], sink: ColumnStreams) -> None:
        self._write_group(self.schema.tree, record, ShredState(), sink)

    def _write_group(
        self,
        field: SchemaField,
        value: Any,
        state: ShredState,
        sink: ColumnStreams,
    ) -> None:
        where = '.'.join(field.path) or field.name
        if not isinstance(value, Mapping):
            raise SchemaViolation(
                f"Group '{where}' expects a mapping, got {type(value).__name__}",
            )
        names = {child.name for child in field.children}
        unknown = [key for key in value if key not in names]
        if unknown:
            raise SchemaViolation(
                f"Unknown fields {sorted(map(str, unknown))} in group '{where}'",
            )
        for child in field.children:
            if not any(path in sink for path in child.leaf_paths):
                continue
            self._write_field(child, value.get(child.name), state, sink)

    def _write_field(
        self,
        field: SchemaField,
        value: Any,
        state: ShredState,
        sink: ColumnStreams,
    ) -> None:
        match field.repetition:
            case Repetition.REPEATED:
                items = self._as_list(field, value)
                if not items:
                    self._write_absent(field, state, sink)
                    return
                for i, item in enumerate(items):
                    if item is None:
                        raise SchemaViolation(
                            f"Repeated field '{'.'.join(field.path)}' cannot "
                            f'hold None (item {i})',
                        )
                    item_state = ShredState(
                        state.repetition_level if i == 0 else field.repetition_level,
                        field.definition_level,
                    )
                    self._write_value(field, item, item_state, sink)
            case Repetition.OPTIONAL:
                if value is None:
                    self._write_absent(field, state, sink)
                    return
                self._write_value(
                    field,
                    value,
                    ShredState(state.repetition_level, field.definition_level),
                    sink,
                )
            case Repetition.REQUIRED:
                if value is None:
                    raise SchemaViolation(
                        f"Required field '{'.'.join(field.path)}' is missing",
                    )
                self._write_value(field, value, state, sink)

    def _write_value(
        self,
        field: SchemaField,
        value: Any,
        state: ShredState,
        sink: ColumnStreams,
    ) -> None:
        if field.descriptor is None:
            self._write_group(field, value, state, sink)
            return
        sink[field.descriptor.path_in_schema].append(
            LevelEntry(
                state.repetition_level,
                state.definition_level,
                to_physical(field.descriptor, value),
            ),
        )

    def _write_absent(
        self,
        field: SchemaField,
        state: ShredState,
        sink: ColumnStreams,
    ) -> None:
        """One value-less entry for each selected leaf below ``field``."""
        for path in field.leaf_paths:
            entries = sink.get(path)
            if entries is not None:
                entries.append(
                    LevelEntry(state.repetition_level, state.definition_level),
                )

    @staticmethod
    def _as_list(field: SchemaField, value: Any) -> Sequence[Any]:
        if value is None:
            return []
        if isinstance(value, str | bytes | bytearray | Mapping) or not isinstance(
            value,
            Sequence,
        ):
            raise SchemaViolation(
                f"Repeated field '{'.'.join(field.path)}' expects a list, "
                f'got {type(value).__name__}',
            )
        return value


def shred_records(
    schema: Schema,
    records: Iterable[Mapping[str, Any]],
) -> ColumnStreams:
    return Shredder(schema).shred_many(records)
