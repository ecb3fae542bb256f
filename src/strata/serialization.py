"""
A reference metadata serializer writing row group summaries as JSON.

This is not a footer format; it exists so a writer's output can be read
back end to end. Summaries are (un)structured with cattrs; bytes values
(statistics bounds) become ``base64:`` prefixed strings.
"""

from __future__ import annotations

import base64
import json

from collections.abc import Callable, Sequence
from typing import Any

import cattrs

from ._version import get_version
from .exceptions import MalformedEncoding
from .metadata import RowGroupSummary

FORMAT_VERSION = 1
BYTES_PREFIX = 'base64:'


def _create_bytes_hooks() -> tuple[
    Callable[[bytes], str],
    Callable[[Any, Any], bytes],
]:
    def unstructure_bytes(value: bytes) -> str:
        return BYTES_PREFIX + base64.b64encode(value).decode('ascii')

    def structure_bytes(value: Any, _) -> bytes:
        if not isinstance(value, str) or not value.startswith(BYTES_PREFIX):
            raise ValueError(f'Expected a {BYTES_PREFIX!r} string, got {value!r}')
        return base64.b64decode(value[len(BYTES_PREFIX) :], validate=True)

    return unstructure_bytes, structure_bytes


def create_converter() -> cattrs.Converter:
    """Create a cattrs converter for row group summaries."""
    converter = cattrs.Converter()
    unstructure_bytes, structure_bytes = _create_bytes_hooks()
    converter.register_unstructure_hook(bytes, unstructure_bytes)
    converter.register_structure_hook(bytes, structure_bytes)
    return converter


class JsonMetadataSerializer:
    def __init__(self, indent: int | None = None) -> None:
        self.indent = indent
        self.converter = create_converter()

    def to_dict(self, row_groups: Sequence[RowGroupSummary]) -> dict[str, Any]:
        return {
            'format_version': FORMAT_VERSION,
            'created_by': f'strata {get_version()}',
            'num_rows': sum(rg.num_rows for rg in row_groups),
            'row_groups': self.converter.unstructure(
                list(row_groups),
                list[RowGroupSummary],
            ),
        }

    def serialize(self, row_groups: Sequence[RowGroupSummary]) -> bytes:
        return json.dumps(self.to_dict(row_groups), indent=self.indent).encode()

    def deserialize(self, data: bytes) -> list[RowGroupSummary]:
        try:
            document = json.loads(data)
            if document.get('format_version') != FORMAT_VERSION:
                raise ValueError(
                    f'Unsupported format version {document.get("format_version")}',
                )
            return self.converter.structure(
                document['row_groups'],
                list[RowGroupSummary],
            )
        except (
            ValueError,
            KeyError,
            TypeError,
            AttributeError,
            cattrs.BaseValidationError,
        ) as e:
            raise MalformedEncoding(f'Invalid metadata footer: {e}') from e
