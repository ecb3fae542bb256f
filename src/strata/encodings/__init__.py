"""
The value encoding catalog.

The set of encodings is fixed by the file format, so codecs are looked up by
matching on the ``Encoding`` id rather than through a plugin registry.
Dictionary encodings are stateful and live in :mod:`.dictionary`.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from ..enums import Encoding, Type
from ..exceptions import UnsupportedEncoding
from ..physical_types import PhysicalValue
from .delta import DeltaBinaryPackedCodec, DeltaByteArrayCodec, DeltaLengthByteArrayCodec
from .dictionary import DictionaryDecoder, DictionaryEncoder
from .levels import LevelDecoder, LevelEncoder
from .plain import PlainCodec
from .rle import RleBitPackedHybridDecoder, RleBitPackedHybridEncoder, RleBooleanCodec

DICTIONARY_ENCODINGS = (Encoding.PLAIN_DICTIONARY, Encoding.RLE_DICTIONARY)

SUPPORTED_VALUE_ENCODINGS: dict[Type, tuple[Encoding, ...]] = {
    Type.BOOLEAN: (Encoding.PLAIN, Encoding.RLE),
    Type.INT32: (Encoding.PLAIN, Encoding.DELTA_BINARY_PACKED),
    Type.INT64: (Encoding.PLAIN, Encoding.DELTA_BINARY_PACKED),
    Type.INT96: (Encoding.PLAIN,),
    Type.FLOAT: (Encoding.PLAIN,),
    Type.DOUBLE: (Encoding.PLAIN,),
    Type.BYTE_ARRAY: (
        Encoding.PLAIN,
        Encoding.DELTA_LENGTH_BYTE_ARRAY,
        Encoding.DELTA_BYTE_ARRAY,
    ),
    Type.FIXED_LEN_BYTE_ARRAY: (Encoding.PLAIN, Encoding.DELTA_BYTE_ARRAY),
}


class ValueCodec(Protocol):
    encoding: Encoding

    def encode(self, values: Sequence[PhysicalValue]) -> bytes: ...

    def decode(self, data: bytes | memoryview, count: int) -> list: ...


def is_supported(encoding: Encoding, physical_type: Type) -> bool:
    if encoding in DICTIONARY_ENCODINGS:
        return True
    return encoding in SUPPORTED_VALUE_ENCODINGS[physical_type]


def get_value_codec(
    encoding: Encoding | int,
    physical_type: Type,
    type_length: int | None = None,
) -> ValueCodec:
    """Return the stateless codec for a non-dictionary value encoding."""
    try:
        encoding = Encoding(encoding)
    except ValueError:
        raise UnsupportedEncoding(f'Unknown encoding id {encoding}') from None

    if encoding in DICTIONARY_ENCODINGS:
        raise UnsupportedEncoding(
            f'{encoding.name} needs a dictionary; use DictionaryEncoder/Decoder',
        )
    if encoding not in SUPPORTED_VALUE_ENCODINGS[physical_type]:
        raise UnsupportedEncoding(
            f'{encoding.name} does not apply to {physical_type.name} values',
        )

    match encoding:
        case Encoding.PLAIN:
            return PlainCodec(physical_type, type_length)
        case Encoding.RLE:
            return RleBooleanCodec()
        case Encoding.DELTA_BINARY_PACKED:
            return DeltaBinaryPackedCodec(physical_type)
        case Encoding.DELTA_LENGTH_BYTE_ARRAY:
            return DeltaLengthByteArrayCodec()
        case Encoding.DELTA_BYTE_ARRAY:
            return DeltaByteArrayCodec()
        case _:
            raise UnsupportedEncoding(f'{encoding.name} is not a value encoding')


def get_value_encoder(
    encoding: Encoding | int,
    physical_type: Type,
    type_length: int | None = None,
) -> ValueCodec:
    return get_value_codec(encoding, physical_type, type_length)


def get_value_decoder(
    encoding: Encoding | int,
    physical_type: Type,
    type_length: int | None = None,
) -> ValueCodec:
    return get_value_codec(encoding, physical_type, type_length)


__all__ = [
    'DICTIONARY_ENCODINGS',
    'SUPPORTED_VALUE_ENCODINGS',
    'DeltaBinaryPackedCodec',
    'DeltaByteArrayCodec',
    'DeltaLengthByteArrayCodec',
    'DictionaryDecoder',
    'DictionaryEncoder',
    'LevelDecoder',
    'LevelEncoder',
    'PlainCodec',
    'RleBitPackedHybridDecoder',
    'RleBitPackedHybridEncoder',
    'RleBooleanCodec',
    'ValueCodec',
    'get_value_codec',
    'get_value_decoder',
    'get_value_encoder',
    'is_supported',
]
