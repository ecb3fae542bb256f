"""
Logical type conversion utilities.

Converts between the Python values a caller puts into a record and the
physical values the encoders store, based on the leaf's converted type
annotation. Columns without an annotation pass values through unchanged.

Teaching Points:
- Annotated columns only accept their logical Python type, e.g. ``str`` for
  UTF8 or an aware ``datetime`` for timestamps, so every accepted value
  reads back equal to what was written
- Timestamps are UTC instants; a value in another timezone reads back as the
  same instant in UTC
- Stored values that cannot be converted back raise MalformedEncoding
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from typing import Any

from .enums import ConvertedType
from .exceptions import MalformedEncoding, SchemaViolation
from .physical_types import PhysicalValue, check_value
from .schema import ColumnDescriptor

EPOCH_DATE = date(1970, 1, 1)
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
MIN_TIMESTAMP = datetime.min.replace(tzinfo=UTC)
MAX_TIMESTAMP = datetime.max.replace(tzinfo=UTC)

TIMESTAMP_UNITS = {
    ConvertedType.TIMESTAMP_MILLIS: timedelta(milliseconds=1),
    ConvertedType.TIMESTAMP_MICROS: timedelta(microseconds=1),
}

INTEGER_RANGES = {
    ConvertedType.INT_8: (-(2**7), 2**7 - 1),
    ConvertedType.INT_16: (-(2**15), 2**15 - 1),
    ConvertedType.INT_32: (-(2**31), 2**31 - 1),
    ConvertedType.INT_64: (-(2**63), 2**63 - 1),
    ConvertedType.UINT_8: (0, 2**8 - 1),
    ConvertedType.UINT_16: (0, 2**16 - 1),
    ConvertedType.UINT_32: (0, 2**32 - 1),
    ConvertedType.UINT_64: (0, 2**64 - 1),
}


def to_physical(descriptor: ColumnDescriptor, value: Any) -> PhysicalValue:
    """Convert a record value to the physical value stored for a column.

    Raises SchemaViolation when the value cannot be represented.
    """
    try:
        converted = _convert_to_physical(descriptor.converted_type, value)
    except SchemaViolation as e:
        raise e.with_context(column_path=descriptor.path_in_schema) from None
    problem = check_value(
        descriptor.physical_type,
        converted,
        descriptor.type_length,
    )
    if problem is not None:
        raise SchemaViolation(
            f'Invalid value {value!r}: {problem}',
            column_path=descriptor.path_in_schema,
        )
    return converted


def _convert_to_physical(
    converted_type: ConvertedType | None,
    value: Any,
) -> Any:
    match converted_type:
        case None:
            return value
        case ConvertedType.UTF8 | ConvertedType.ENUM | ConvertedType.JSON:
            return _encode_text(converted_type, value)
        case ConvertedType.DATE:
            if isinstance(value, datetime) or not isinstance(value, date):
                raise SchemaViolation(
                    f'DATE expects a date, got {type(value).__name__}',
                )
            return (value - EPOCH_DATE).days
        case ConvertedType.TIMESTAMP_MILLIS | ConvertedType.TIMESTAMP_MICROS:
            return _timestamp_to_physical(converted_type, value)
        case (
            ConvertedType.INT_8
            | ConvertedType.INT_16
            | ConvertedType.INT_32
            | ConvertedType.INT_64
        ):
            _check_range(converted_type, value)
            return value
        case (
            ConvertedType.UINT_8
            | ConvertedType.UINT_16
            | ConvertedType.UINT_32
            | ConvertedType.UINT_64
        ):
            _check_range(converted_type, value)
            # unsigned values are stored in the two's complement bit pattern
            bits = 64 if converted_type == ConvertedType.UINT_64 else 32
            if isinstance(value, int) and value >= 2 ** (bits - 1):
                return value - 2**bits
            return value
    return value


def _encode_text(converted_type: ConvertedType, value: Any) -> bytes:
    if not isinstance(value, str):
        raise SchemaViolation(
            f'{converted_type.name} expects a str, got {type(value).__name__}',
        )
    try:
        return value.encode('utf-8')
    except UnicodeEncodeError as e:
        raise SchemaViolation(f'{value!r} is not valid UTF-8 text: {e}') from None


def _timestamp_to_physical(converted_type: ConvertedType, value: Any) -> int:
    if not isinstance(value, datetime):
        raise SchemaViolation(
            f'{converted_type.name} expects a datetime, got {type(value).__name__}',
        )
    if value.tzinfo is None:
        raise SchemaViolation(
            f'{converted_type.name} needs a timezone aware datetime, got {value}',
        )
    if not MIN_TIMESTAMP <= value <= MAX_TIMESTAMP:
        raise SchemaViolation(f'{value} is outside the UTC datetime range')
    unit = TIMESTAMP_UNITS[converted_type]
    delta = value - EPOCH
    if delta % unit:
        raise SchemaViolation(f'{value} is more precise than {converted_type.name}')
    return delta // unit


def _check_range(converted_type: ConvertedType, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        return
    low, high = INTEGER_RANGES[converted_type]
    if not low <= value <= high:
        raise SchemaViolation(
            f'{value} out of range for {converted_type.name}',
        )


def to_logical(descriptor: ColumnDescriptor, value: PhysicalValue) -> Any:
    """Convert a stored physical value back to its record value."""
    try:
        return _convert_to_logical(descriptor.converted_type, value)
    except (ValueError, OverflowError, TypeError, AttributeError) as e:
        raise MalformedEncoding(
            f'Stored value {value!r} is not a valid '
            f'{descriptor.converted_type.name}: {e}',  # type: ignore[union-attr]
            column_path=descriptor.path_in_schema,
        ) from e


def _convert_to_logical(
    converted_type: ConvertedType | None,
    value: PhysicalValue,
) -> Any:
    match converted_type:
        case None:
            return value
        case ConvertedType.UTF8 | ConvertedType.ENUM | ConvertedType.JSON:
            return value.decode('utf-8')  # type: ignore[union-attr]
        case ConvertedType.DATE:
            return EPOCH_DATE + timedelta(days=value)  # type: ignore[arg-type]
        case ConvertedType.TIMESTAMP_MILLIS | ConvertedType.TIMESTAMP_MICROS:
            return EPOCH + TIMESTAMP_UNITS[converted_type] * value  # type: ignore[operator]
        case ConvertedType.UINT_32 | ConvertedType.UINT_64:
            bits = 64 if converted_type == ConvertedType.UINT_64 else 32
            return value % (2**bits)  # type: ignore[operator]
    return value
