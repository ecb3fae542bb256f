"""
Schema tree and column descriptors.

Teaching Points:
- A schema is a tree: groups hold ordered children, leaves hold a physical type
- Every non-root node is REQUIRED, OPTIONAL or REPEATED
- Each leaf becomes one column, identified by its dotted path from the root
- max_repetition_level counts the REPEATED nodes on a leaf's path
- max_definition_level counts the OPTIONAL and REPEATED nodes on a leaf's path
"""

from __future__ import annotations

import logging

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field

from .enums import ConvertedType, Repetition, SchemaElementType, Type
from .exceptions import SchemaError

logger = logging.getLogger(__name__)

ANNOTATION_TYPES: dict[ConvertedType, tuple[Type, ...]] = {
    ConvertedType.UTF8: (Type.BYTE_ARRAY,),
    ConvertedType.ENUM: (Type.BYTE_ARRAY,),
    ConvertedType.JSON: (Type.BYTE_ARRAY,),
    ConvertedType.DATE: (Type.INT32,),
    ConvertedType.INT_8: (Type.INT32,),
    ConvertedType.INT_16: (Type.INT32,),
    ConvertedType.INT_32: (Type.INT32,),
    ConvertedType.UINT_8: (Type.INT32,),
    ConvertedType.UINT_16: (Type.INT32,),
    ConvertedType.UINT_32: (Type.INT32,),
    ConvertedType.INT_64: (Type.INT64,),
    ConvertedType.UINT_64: (Type.INT64,),
    ConvertedType.TIMESTAMP_MILLIS: (Type.INT64,),
    ConvertedType.TIMESTAMP_MICROS: (Type.INT64,),
}


class SchemaElement(BaseModel):
    model_config = ConfigDict(frozen=True)

    element_type: SchemaElementType
    name: str

    def _repr_extra(self) -> list[str]:
        return []

    def __repr__(self) -> str:
        extra = self._repr_extra()
        extra_str = f': {" ".join(extra)}' if extra else ''
        return f'{self.element_type}({self.name}{extra_str})'


class SchemaLeaf(SchemaElement):
    element_type: Literal[SchemaElementType.COLUMN] = SchemaElementType.COLUMN
    type: Type
    repetition: Repetition = Repetition.REQUIRED
    converted_type: ConvertedType | None = None
    type_length: int | None = None

    def _repr_extra(self) -> list[str]:
        extra = [self.repetition.name, self.type.name]
        if self.type_length is not None:
            extra.append(f'({self.type_length})')
        if self.converted_type is not None:
            extra.append(self.converted_type.name)
        return extra


class BaseSchemaGroup(SchemaElement):
    children: list[AnySchemaNode] = Field(default_factory=list)

    def count_leaf_columns(self) -> int:
        """Count all columns (leaves) in this group and its children."""
        return sum(
            child.count_leaf_columns() if isinstance(child, BaseSchemaGroup) else 1
            for child in self.children
        )

    def get_child(self, name: str) -> SchemaGroup | SchemaLeaf:
        for child in self.children:
            if child.name == name:
                return child
        raise KeyError(name)

    def find_element(self, path: str | Sequence[str]) -> SchemaElement:
        """Finds a descendant schema element by its dotted path."""
        parts = path.split('.') if isinstance(path, str) else list(path)
        current: SchemaElement = self
        for part in parts:
            if not isinstance(current, BaseSchemaGroup):
                raise KeyError(f"Schema element for path '{path}' not found")
            try:
                current = current.get_child(part)
            except KeyError:
                raise KeyError(f"Schema element for path '{path}' not found") from None
        return current

    def __repr__(self) -> str:
        result = super().__repr__()
        for child in self.children:
            result += f'  {child!r}'
        return result


class SchemaGroup(BaseSchemaGroup):
    element_type: Literal[SchemaElementType.GROUP] = SchemaElementType.GROUP
    repetition: Repetition = Repetition.REQUIRED

    def _repr_extra(self) -> list[str]:
        return [self.repetition.name]


class SchemaRoot(BaseSchemaGroup):
    """The record itself: a required group without a repetition of its own."""

    element_type: Literal[SchemaElementType.ROOT] = SchemaElementType.ROOT

    @property
    def repetition(self) -> Repetition:
        return Repetition.REQUIRED


AnySchemaNode = Annotated[
    SchemaGroup | SchemaLeaf,
    Discriminator('element_type'),
]

BaseSchemaGroup.model_rebuild()
SchemaGroup.model_rebuild()
SchemaRoot.model_rebuild()


def root(name: str, *children: SchemaGroup | SchemaLeaf) -> SchemaRoot:
    return SchemaRoot(name=name, children=list(children))


def group(
    name: str,
    repetition: Repetition,
    *children: SchemaGroup | SchemaLeaf,
) -> SchemaGroup:
    return SchemaGroup(name=name, repetition=repetition, children=list(children))


def leaf(
    name: str,
    type: Type,
    repetition: Repetition = Repetition.REQUIRED,
    converted_type: ConvertedType | None = None,
    type_length: int | None = None,
) -> SchemaLeaf:
    return SchemaLeaf(
        name=name,
        type=type,
        repetition=repetition,
        converted_type=converted_type,
        type_length=type_length,
    )


class ColumnDescriptor(BaseModel):
    """Everything the encoders need to know about one leaf column."""

    model_config = ConfigDict(frozen=True)

    path: tuple[str, ...]
    leaf: SchemaLeaf
    max_repetition_level: int
    max_definition_level: int
    column_index: int

    @property
    def path_in_schema(self) -> str:
        return '.'.join(self.path)

    @property
    def physical_type(self) -> Type:
        return self.leaf.type

    @property
    def type_length(self) -> int | None:
        return self.leaf.type_length

    @property
    def converted_type(self) -> ConvertedType | None:
        return self.leaf.converted_type

    def __repr__(self) -> str:
        return (
            f'ColumnDescriptor({self.path_in_schema}: {self.physical_type.name} '
            f'r={self.max_repetition_level} d={self.max_definition_level})'
        )


@dataclass(frozen=True)
class SchemaField:
    """A schema node annotated with the levels reached at that node.

    ``repetition_level`` and ``definition_level`` are the maximum levels of
    the node itself (ancestors and the node inclusive). Shredding and
    assembly walk this tree rather than the raw models.
    """

    node: SchemaRoot | SchemaGroup | SchemaLeaf
    path: tuple[str, ...]
    repetition: Repetition
    repetition_level: int
    definition_level: int
    children: tuple[SchemaField, ...]
    descriptor: ColumnDescriptor | None
    leaf_paths: tuple[str, ...]

    @property
    def name(self) -> str:
        return self.node.name

    @property
    def is_leaf(self) -> bool:
        return self.descriptor is not None

    def leaves(self) -> Iterator[SchemaField]:
        if self.is_leaf:
            yield self
        for child in self.children:
            yield from child.leaves()


class Schema:
    """A finalized schema: validated tree plus derived column descriptors.

    Descriptors are computed once here and never change afterwards; the
    schema is shared read-only by writers, readers and the assembler.
    """

    def __init__(self, root: SchemaRoot) -> None:
        if not isinstance(root, SchemaRoot):
            raise SchemaError(
                f'Schema root must be a SchemaRoot, got {type(root).__name__}',
            )
        self.root = root
        self._columns: list[ColumnDescriptor] = []
        self.tree = self._build(root, (), Repetition.REQUIRED, 0, 0)
        self._by_path = {c.path_in_schema: c for c in self._columns}
        logger.debug(
            'Schema %s finalized with %d columns',
            root.name,
            len(self._columns),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Schema:
        return cls(SchemaRoot.model_validate(data))

    @classmethod
    def from_json(cls, json_str: str) -> Schema:
        return cls(SchemaRoot.model_validate_json(json_str))

    def to_dict(self) -> dict[str, Any]:
        return self.root.model_dump(mode='json')

    @property
    def columns(self) -> list[ColumnDescriptor]:
        return list(self._columns)

    @property
    def column_paths(self) -> list[str]:
        return [c.path_in_schema for c in self._columns]

    def column(self, path: str | Sequence[str]) -> ColumnDescriptor:
        key = path if isinstance(path, str) else '.'.join(path)
        try:
            return self._by_path[key]
        except KeyError:
            raise SchemaError(f"No column '{key}' in schema") from None

    def project(self, paths: Iterable[str]) -> Schema:
        """Return a schema containing only the given leaf columns.

        Groups left without any selected leaf are dropped. Descriptors of the
        projected schema keep the same levels as the full schema.
        """
        wanted = set()
        for path in paths:
            wanted.add(self.column(path).path_in_schema)
        if not wanted:
            raise SchemaError('A projection needs at least one column')

        def prune(node, prefix):
            if isinstance(node, SchemaLeaf):
                return node if '.'.join(prefix) in wanted else None
            children = [
                pruned
                for child in node.children
                if (pruned := prune(child, (*prefix, child.name))) is not None
            ]
            if not children:
                return None
            return node.model_copy(update={'children': children})

        return Schema(prune(self.root, ()))

    def _build(
        self,
        node: SchemaRoot | SchemaGroup | SchemaLeaf,
        path: tuple[str, ...],
        repetition: Repetition,
        repetition_level: int,
        definition_level: int,
    ) -> SchemaField:
        if isinstance(node, SchemaLeaf):
            self._check_leaf(node, path)
            descriptor = ColumnDescriptor(
                path=path,
                leaf=node,
                max_repetition_level=repetition_level,
                max_definition_level=definition_level,
                column_index=len(self._columns),
            )
            self._columns.append(descriptor)
            return SchemaField(
                node=node,
                path=path,
                repetition=repetition,
                repetition_level=repetition_level,
                definition_level=definition_level,
                children=(),
                descriptor=descriptor,
                leaf_paths=(descriptor.path_in_schema,),
            )

        if not node.children:
            raise SchemaError(
                f"Group '{'.'.join(path) or node.name}' has no children",
            )
        names = [child.name for child in node.children]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise SchemaError(
                f"Duplicate field names {sorted(duplicates)} in group "
                f"'{'.'.join(path) or node.name}'",
            )

        children = []
        for child in node.children:
            child_rep = repetition_level
            child_def = definition_level
            if child.repetition == Repetition.REPEATED:
                child_rep += 1
                child_def += 1
            elif child.repetition == Repetition.OPTIONAL:
                child_def += 1
            children.append(
                self._build(
                    child,
                    (*path, child.name),
                    child.repetition,
                    child_rep,
                    child_def,
                ),
            )
        return SchemaField(
            node=node,
            path=path,
            repetition=repetition,
            repetition_level=repetition_level,
            definition_level=definition_level,
            children=tuple(children),
            descriptor=None,
            leaf_paths=tuple(p for c in children for p in c.leaf_paths),
        )

    @staticmethod
    def _check_leaf(node: SchemaLeaf, path: tuple[str, ...]) -> None:
        dotted = '.'.join(path)
        if node.type == Type.FIXED_LEN_BYTE_ARRAY:
            if not node.type_length or node.type_length <= 0:
                raise SchemaError(
                    f"FIXED_LEN_BYTE_ARRAY column '{dotted}' needs a positive "
                    'type_length',
                )
        elif node.type_length is not None:
            raise SchemaError(
                f"type_length only applies to FIXED_LEN_BYTE_ARRAY ('{dotted}')",
            )
        if node.converted_type is not None:
            allowed = ANNOTATION_TYPES[node.converted_type]
            if node.type not in allowed:
                raise SchemaError(
                    f"{node.converted_type.name} annotation does not apply to "
                    f"{node.type.name} column '{dotted}'",
                )

    def __repr__(self) -> str:
        lines = [f'Schema({self.root.name})']
        for column in self._columns:
            lines.append(f'  {column!r}')
        return '\n'.join(lines)
