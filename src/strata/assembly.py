"""
Record assembly: per-column level streams back to nested records.

Teaching Points:
- Columns are read in lockstep; a record ends where every column reaches the
  next entry with repetition level 0
- A definition level below a node's own level means the node is absent
  (None for optional fields, an empty list for repeated ones)
- Within a present repeated node, an entry whose repetition level equals the
  node's repetition level starts the next list item
- Any disagreement between columns is structural corruption, never guessed at
"""

from __future__ import annotations

import logging

from collections.abc import Iterable, Iterator, Mapping
from typing import Any, TypeAlias

from .enums import Repetition
from .exceptions import SchemaError, StructuralCorruption
from .logical_types import to_logical
from .schema import ColumnDescriptor, Schema, SchemaField
from .types import LevelEntry

logger = logging.getLogger(__name__)

RecordSlices: TypeAlias = dict[str, list[LevelEntry]]


class _ColumnCursor:
    """Reads one column stream a record at a time."""

    def __init__(self, descriptor: ColumnDescriptor, stream: Iterable[LevelEntry]):
        self.descriptor = descriptor
        self.path = descriptor.path_in_schema
        self._stream = iter(stream)
        self._pending: LevelEntry | None = None
        self._exhausted = False
        self.records_read = 0

    def _next_entry(self) -> LevelEntry | None:
        if self._pending is not None:
            entry, self._pending = self._pending, None
            return entry
        if self._exhausted:
            return None
        try:
            entry = LevelEntry(*next(self._stream))
        except StopIteration:
            self._exhausted = True
            return None
        self._check(entry)
        return entry

    def next_record(self) -> list[LevelEntry] | None:
        """Entries of the next record, or None at the end of the stream."""
        first = self._next_entry()
        if first is None:
            return None
        if first.repetition_level != 0:
            raise StructuralCorruption(
                f'Record {self.records_read} does not start at repetition '
                f'level 0 (got {first.repetition_level})',
                column_path=self.path,
            )
        entries = [first]
        while (entry := self._next_entry()) is not None:
            if entry.repetition_level == 0:
                self._pending = entry
                break
            entries.append(entry)
        self.records_read += 1
        return entries

    def _check(self, entry: LevelEntry) -> None:
        d = self.descriptor
        r_level, d_level, value = entry
        if not 0 <= r_level <= d.max_repetition_level:
            raise StructuralCorruption(
                f'Repetition level {r_level} outside of '
                f'[0, {d.max_repetition_level}]',
                column_path=self.path,
            )
        if not 0 <= d_level <= d.max_definition_level:
            raise StructuralCorruption(
                f'Definition level {d_level} outside of '
                f'[0, {d.max_definition_level}]',
                column_path=self.path,
            )
        if (value is None) != (d_level < d.max_definition_level):
            raise StructuralCorruption(
                f'Entry {entry} has a value inconsistent with its definition level',
                column_path=self.path,
            )


class RecordAssembler:
    """Reconstructs records from the level streams of a schema's columns.

    Pass a projected schema (``Schema.project``) to assemble only a subset
    of the columns; the result then only contains the selected fields.
    """

    def __init__(self, schema: Schema) -> None:
        self.schema = schema

    def assemble(
        self,
        columns: Mapping[str, Iterable[LevelEntry]],
    ) -> Iterator[dict[str, Any]]:
        expected = set(self.schema.column_paths)
        given = set(columns)
        if expected != given:
            raise SchemaError(
                'Column streams do not match the schema: '
                f'missing={sorted(expected - given)} '
                f'unexpected={sorted(given - expected)}',
            )
        cursors = [
            _ColumnCursor(descriptor, columns[descriptor.path_in_schema])
            for descriptor in self.schema.columns
        ]

        record_index = 0
        while True:
            slices: RecordSlices = {}
            finished = []
            for cursor in cursors:
                entries = cursor.next_record()
                if entries is None:
                    finished.append(cursor.path)
                else:
                    slices[cursor.path] = entries
            if finished:
                if slices:
                    raise StructuralCorruption(
                        f'Columns disagree on the record count: {finished} end '
                        f'after {record_index} records while '
                        f'{sorted(slices)} continue',
                        column_path=finished[0],
                    )
                logger.debug('Assembled %d records', record_index)
                return
            yield self._build_group(self.schema.tree, slices)
            record_index += 1

    def assemble_all(
        self,
        columns: Mapping[str, Iterable[LevelEntry]],
    ) -> list[dict[str, Any]]:
        return list(self.assemble(columns))

    def _build_group(self, field: SchemaField, slices: RecordSlices) -> dict[str, Any]:
        return {
            child.name: self._build_field(
                child,
                {path: slices[path] for path in child.leaf_paths},
            )
            for child in field.children
        }

    def _build_field(self, field: SchemaField, slices: RecordSlices) -> Any:
        reference = slices[field.leaf_paths[0]]
        absent = reference[0].definition_level < field.definition_level

        match field.repetition:
            case Repetition.REPEATED:
                if absent:
                    self._expect_absent(field, slices)
                    return []
                return [
                    self._build_value(field, item)
                    for item in self._split_items(field, slices)
                ]
            case Repetition.OPTIONAL:
                if absent:
                    self._expect_absent(field, slices)
                    return None
                return self._build_value(field, slices)
            case _:
                return self._build_value(field, slices)

    def _build_value(self, field: SchemaField, slices: RecordSlices) -> Any:
        for path, entries in slices.items():
            if min(e.definition_level for e in entries) < field.definition_level:
                raise StructuralCorruption(
                    f"Field '{'.'.join(field.path)}' is present in one column "
                    'but absent in another',
                    column_path=path,
                )

        if field.descriptor is None:
            return self._build_group(field, slices)

        path = field.descriptor.path_in_schema
        entries = slices[path]
        if len(entries) != 1:
            raise StructuralCorruption(
                f'Expected a single value, found {len(entries)} entries',
                column_path=path,
            )
        return to_logical(field.descriptor, entries[0].value)  # type: ignore[arg-type]

    def _split_items(
        self,
        field: SchemaField,
        slices: RecordSlices,
    ) -> list[RecordSlices]:
        """Split every column's entries into the items of a present list."""
        items: list[RecordSlices] = []
        item_count: int | None = None
        for path, entries in slices.items():
            column_items: list[list[LevelEntry]] = []
            for i, entry in enumerate(entries):
                if i == 0 or entry.repetition_level == field.repetition_level:
                    column_items.append([entry])
                elif entry.repetition_level < field.repetition_level:
                    raise StructuralCorruption(
                        f'Repetition level {entry.repetition_level} inside '
                        f"list '{'.'.join(field.path)}' crosses its boundary",
                        column_path=path,
                    )
                else:
                    column_items[-1].append(entry)

            if item_count is None:
                item_count = len(column_items)
                items = [{} for _ in range(item_count)]
            elif len(column_items) != item_count:
                raise StructuralCorruption(
                    f"List '{'.'.join(field.path)}' has {len(column_items)} items "
                    f'in this column but {item_count} in another',
                    column_path=path,
                )
            for item, column_item in zip(items, column_items, strict=True):
                item[path] = column_item
        return items

    def _expect_absent(self, field: SchemaField, slices: RecordSlices) -> None:
        for path, entries in slices.items():
            if len(entries) != 1 or entries[0].definition_level >= field.definition_level:
                raise StructuralCorruption(
                    f"Field '{'.'.join(field.path)}' is absent in one column "
                    'but present in another',
                    column_path=path,
                )


def assemble_records(
    schema: Schema,
    columns: Mapping[str, Iterable[LevelEntry]],
) -> list[dict[str, Any]]:
    return RecordAssembler(schema).assemble_all(columns)
