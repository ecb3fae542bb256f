"""
Physical type rules: value validation, fixed byte widths and ordering.

Every physical value handled by the encoders is a plain Python object:

- BOOLEAN: ``bool``
- INT32 / INT64 / INT96: ``int`` (INT96 as a 96-bit two's complement integer)
- FLOAT / DOUBLE: ``float``
- BYTE_ARRAY / FIXED_LEN_BYTE_ARRAY: ``bytes``
"""

from __future__ import annotations

import math
import struct

from typing import Any, TypeAlias

from .constants import INT96_BYTE_WIDTH
from .enums import Type

PhysicalValue: TypeAlias = bool | int | float | bytes

INT_RANGES = {
    Type.INT32: (-(2**31), 2**31 - 1),
    Type.INT64: (-(2**63), 2**63 - 1),
    Type.INT96: (-(2**95), 2**95 - 1),
}

STRUCT_FORMATS = {
    Type.INT32: '<i',
    Type.INT64: '<q',
    Type.FLOAT: '<f',
    Type.DOUBLE: '<d',
}

FIXED_WIDTHS = {
    Type.INT32: 4,
    Type.INT64: 8,
    Type.INT96: INT96_BYTE_WIDTH,
    Type.FLOAT: 4,
    Type.DOUBLE: 8,
}


def byte_width(physical_type: Type, type_length: int | None = None) -> int | None:
    """Fixed PLAIN width of a value, or None for variable width types."""
    if physical_type == Type.FIXED_LEN_BYTE_ARRAY:
        return type_length
    return FIXED_WIDTHS.get(physical_type)


def check_value(
    physical_type: Type,
    value: Any,
    type_length: int | None = None,
) -> str | None:
    """Return a description of why ``value`` is invalid, or None if it is fine."""
    match physical_type:
        case Type.BOOLEAN:
            if not isinstance(value, bool):
                return f'expected bool, got {type(value).__name__}'
        case Type.INT32 | Type.INT64 | Type.INT96:
            if isinstance(value, bool) or not isinstance(value, int):
                return f'expected int, got {type(value).__name__}'
            low, high = INT_RANGES[physical_type]
            if not low <= value <= high:
                return f'{value} out of range for {physical_type.name}'
        case Type.FLOAT | Type.DOUBLE:
            if isinstance(value, bool) or not isinstance(value, int | float):
                return f'expected float, got {type(value).__name__}'
            try:
                struct.pack(STRUCT_FORMATS[physical_type], value)
            except OverflowError:
                return f'{value} out of range for {physical_type.name}'
        case Type.BYTE_ARRAY:
            if not isinstance(value, bytes):
                return f'expected bytes, got {type(value).__name__}'
        case Type.FIXED_LEN_BYTE_ARRAY:
            if not isinstance(value, bytes):
                return f'expected bytes, got {type(value).__name__}'
            if len(value) != type_length:
                return f'expected {type_length} bytes, got {len(value)}'
    return None


def is_ordered(physical_type: Type) -> bool:
    """INT96 has no defined sort order, so it never gets min/max statistics."""
    return physical_type != Type.INT96


def sort_key(physical_type: Type, value: PhysicalValue) -> Any:
    """Key usable with min/max under the physical type ordering.

    FLOAT values compare after rounding to single precision, which is
    what is actually stored.
    """
    if physical_type == Type.FLOAT:
        return struct.unpack('<f', struct.pack('<f', value))[0]
    return value


def is_nan(value: PhysicalValue) -> bool:
    return isinstance(value, float) and math.isnan(value)


def dictionary_key(physical_type: Type, value: PhysicalValue) -> Any:
    """Hashable identity for dictionary encoding.

    Floating point values are keyed by their bit pattern so that ``-0.0``
    and ``0.0`` stay distinct and every NaN maps onto one entry.
    """
    fmt = STRUCT_FORMATS.get(physical_type)
    if physical_type in (Type.FLOAT, Type.DOUBLE) and fmt is not None:
        return struct.pack(fmt, value)
    return value
