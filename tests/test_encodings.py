import struct

import pytest

from strata.encodings import (
    DeltaBinaryPackedCodec,
    DeltaByteArrayCodec,
    DeltaLengthByteArrayCodec,
    DictionaryDecoder,
    DictionaryEncoder,
    LevelDecoder,
    LevelEncoder,
    PlainCodec,
    RleBitPackedHybridDecoder,
    RleBitPackedHybridEncoder,
    RleBooleanCodec,
    get_value_codec,
    get_value_decoder,
    get_value_encoder,
)
from strata.encodings.bit_utils import (
    decode_varint,
    encode_varint,
    pack_bits,
    unpack_bits,
    zigzag_decode,
    zigzag_encode,
)
from strata.encodings.dictionary import index_bit_width
from strata.enums import Encoding, Type
from strata.exceptions import MalformedEncoding, UnsupportedEncoding


@pytest.mark.parametrize(
    ('value', 'encoded'),
    [
        (0, b'\x00'),
        (1, b'\x01'),
        (127, b'\x7f'),
        (128, b'\x80\x01'),
        (300, b'\xac\x02'),
    ],
)
def test_varint(value: int, encoded: bytes) -> None:
    assert encode_varint(value) == encoded
    assert decode_varint(encoded, 0) == (value, len(encoded))


def test_truncated_varint() -> None:
    with pytest.raises(MalformedEncoding):
        decode_varint(b'\x80\x80', 0)


@pytest.mark.parametrize(
    ('value', 'zigzag'),
    [(0, 0), (-1, 1), (1, 2), (-2, 3), (2**63 - 1, 2**64 - 2), (-(2**63), 2**64 - 1)],
)
def test_zigzag(value: int, zigzag: int) -> None:
    assert zigzag_encode(value) == zigzag
    assert zigzag_decode(zigzag) == value


def test_pack_bits_lsb_first() -> None:
    # 0..7 with width 3 is the example layout of the format documentation
    assert pack_bits(list(range(8)), 3) == bytes([0b10001000, 0b11000110, 0b11111010])
    assert unpack_bits(b'\x88\xc6\xfa', 8, 3) == list(range(8))


class TestPlain:
    @pytest.mark.parametrize(
        ('physical_type', 'values', 'type_length'),
        [
            (Type.BOOLEAN, [True, False, True, True, False, False, True, False, True], None),
            (Type.INT32, [0, -1, 2**31 - 1, -(2**31)], None),
            (Type.INT64, [0, -1, 2**63 - 1, -(2**63)], None),
            (Type.INT96, [0, -1, 2**95 - 1, -(2**95)], None),
            (Type.FLOAT, [0.0, -1.5, 3.25], None),
            (Type.DOUBLE, [0.0, -1.5, 1e300], None),
            (Type.BYTE_ARRAY, [b'', b'abc', b'\x00' * 300], None),
            (Type.FIXED_LEN_BYTE_ARRAY, [b'ab', b'cd', b'\x00\xff'], 2),
        ],
    )
    def test_round_trip(self, physical_type, values, type_length) -> None:
        codec = PlainCodec(physical_type, type_length)
        assert codec.decode(codec.encode(values), len(values)) == values

    @pytest.mark.parametrize('physical_type', list(Type))
    def test_empty(self, physical_type: Type) -> None:
        codec = PlainCodec(physical_type, 4)
        assert codec.encode([]) == b''
        assert codec.decode(b'', 0) == []

    def test_int32_layout(self) -> None:
        assert PlainCodec(Type.INT32).encode([1, -1]) == struct.pack('<ii', 1, -1)

    def test_byte_array_layout(self) -> None:
        assert PlainCodec(Type.BYTE_ARRAY).encode([b'hi']) == b'\x02\x00\x00\x00hi'

    def test_boolean_layout(self) -> None:
        assert PlainCodec(Type.BOOLEAN).encode([True, False, True]) == b'\x05'

    def test_short_data(self) -> None:
        with pytest.raises(MalformedEncoding):
            PlainCodec(Type.INT64).decode(b'\x00' * 12, 2)

    def test_trailing_data(self) -> None:
        with pytest.raises(MalformedEncoding):
            PlainCodec(Type.INT32).decode(b'\x00' * 8, 1)

    def test_byte_array_length_past_end(self) -> None:
        with pytest.raises(MalformedEncoding):
            PlainCodec(Type.BYTE_ARRAY).decode(b'\x05\x00\x00\x00ab', 1)


class TestRleHybrid:
    @pytest.mark.parametrize('bit_width', [0, 1, 3, 8, 13, 32, 64])
    def test_round_trip(self, bit_width: int) -> None:
        top = (1 << bit_width) - 1
        values = [0, top, top // 2, 1 & top] * 5 + [top] * 20 + [0] * 3
        encoded = RleBitPackedHybridEncoder(bit_width).encode(values)
        assert RleBitPackedHybridDecoder(bit_width).decode(encoded, len(values)) == values

    def test_empty(self) -> None:
        assert RleBitPackedHybridEncoder(3).encode([]) == b''
        assert RleBitPackedHybridDecoder(3).decode(b'', 0) == []

    def test_all_equal_is_single_rle_run(self) -> None:
        encoded = RleBitPackedHybridEncoder(1).encode([1] * 1000)
        assert encoded == encode_varint(1000 << 1) + b'\x01'

    def test_short_input_is_bit_packed(self) -> None:
        encoded = RleBitPackedHybridEncoder(3).encode(list(range(8)))
        assert encoded == b'\x03\x88\xc6\xfa'

    def test_rle_value_width_is_rounded_to_bytes(self) -> None:
        encoded = RleBitPackedHybridEncoder(9).encode([300] * 10)
        assert encoded == b'\x14' + (300).to_bytes(2, 'little')

    def test_value_too_wide_for_encoder(self) -> None:
        with pytest.raises(ValueError):
            RleBitPackedHybridEncoder(2).encode([4])

    def test_rle_run_longer_than_count(self) -> None:
        with pytest.raises(MalformedEncoding):
            RleBitPackedHybridDecoder(1).decode(b'\x14\x01', 5)

    def test_exhausted_data(self) -> None:
        with pytest.raises(MalformedEncoding):
            RleBitPackedHybridDecoder(1).decode(b'\x06\x01', 5)

    def test_truncated_bit_packed_run(self) -> None:
        with pytest.raises(MalformedEncoding):
            RleBitPackedHybridDecoder(3).decode(b'\x03\x88', 8)

    def test_rle_value_exceeding_bit_width(self) -> None:
        with pytest.raises(MalformedEncoding):
            RleBitPackedHybridDecoder(1).decode(b'\x04\x02', 2)


class TestRleBoolean:
    def test_round_trip(self) -> None:
        values = [True] * 20 + [False, True, False] + [False] * 9
        codec = RleBooleanCodec()
        encoded = codec.encode(values)
        assert struct.unpack_from('<I', encoded)[0] == len(encoded) - 4
        assert codec.decode(encoded, len(values)) == values

    def test_bad_length_prefix(self) -> None:
        with pytest.raises(MalformedEncoding):
            RleBooleanCodec().decode(b'\xff\x00\x00\x00\x02\x01', 1)


class TestLevels:
    @pytest.mark.parametrize('encoding', [Encoding.RLE, Encoding.BIT_PACKED])
    @pytest.mark.parametrize('max_level', [1, 2, 3, 7])
    def test_round_trip(self, encoding: Encoding, max_level: int) -> None:
        levels = [i % (max_level + 1) for i in range(37)] + [max_level] * 12
        encoded = LevelEncoder(encoding, max_level).encode(levels)
        decoded, end = LevelDecoder(encoding, max_level).decode_from(
            encoded + b'tail',
            len(levels),
            0,
        )
        assert decoded == levels
        assert end == len(encoded)

    def test_bit_packed_is_msb_first(self) -> None:
        assert LevelEncoder(Encoding.BIT_PACKED, 1).encode([1, 0, 0, 0, 0, 0, 0, 1]) == (
            b'\x81'
        )
        assert LevelEncoder(Encoding.BIT_PACKED, 3).encode([1, 2, 3]) == b'\x6c'

    def test_rle_levels_are_length_prefixed(self) -> None:
        encoded = LevelEncoder(Encoding.RLE, 1).encode([1] * 10)
        assert encoded == b'\x02\x00\x00\x00\x14\x01'

    def test_raw_levels_have_no_prefix(self) -> None:
        assert LevelEncoder(Encoding.RLE, 1).encode_raw([1] * 10) == b'\x14\x01'

    def test_level_above_max(self) -> None:
        with pytest.raises(MalformedEncoding):
            LevelDecoder(Encoding.RLE, 2).decode_raw(b'\x04\x03', 2)

    def test_level_encoding_must_be_rle_or_bit_packed(self) -> None:
        with pytest.raises(UnsupportedEncoding):
            LevelEncoder(Encoding.PLAIN, 1)


class TestDeltaBinaryPacked:
    @pytest.mark.parametrize(
        'values',
        [
            [],
            [7],
            [1, 2, 3, 4, 5],
            [5] * 300,
            list(range(0, 1000, 3)),
            [(-1) ** i * i * 1000 for i in range(257)],
        ],
    )
    def test_round_trip_int64(self, values: list[int]) -> None:
        codec = DeltaBinaryPackedCodec(Type.INT64)
        assert codec.decode(codec.encode(values), len(values)) == values

    def test_extremes_wrap_int32(self) -> None:
        values = [2**31 - 1, -(2**31), 2**31 - 1, 0, -(2**31)]
        codec = DeltaBinaryPackedCodec(Type.INT32)
        assert codec.decode(codec.encode(values), len(values)) == values

    def test_extremes_wrap_int64(self) -> None:
        values = [2**63 - 1, -(2**63), 0, 2**63 - 1]
        codec = DeltaBinaryPackedCodec(Type.INT64)
        assert codec.decode(codec.encode(values), len(values)) == values

    def test_header(self) -> None:
        encoded = DeltaBinaryPackedCodec().encode([1, 2, 3])
        assert encoded[:4] == b'\x80\x01\x04\x03'
        assert decode_varint(encoded, 4)[0] == zigzag_encode(1)

    def test_count_mismatch(self) -> None:
        encoded = DeltaBinaryPackedCodec().encode([1, 2, 3])
        with pytest.raises(MalformedEncoding):
            DeltaBinaryPackedCodec().decode(encoded, 4)

    def test_truncated(self) -> None:
        encoded = DeltaBinaryPackedCodec().encode(list(range(0, 4000, 7)))
        with pytest.raises(MalformedEncoding):
            DeltaBinaryPackedCodec().decode(encoded[:-5], 572)

    def test_bad_block_size(self) -> None:
        with pytest.raises(MalformedEncoding):
            DeltaBinaryPackedCodec().decode(b'\x40\x04\x01\x00', 1)


class TestDeltaByteArrays:
    values = [b'Hello', b'World', b'Foobar', b'ABCDEF', b'', b'Hello', b'Help']

    def test_length_round_trip(self) -> None:
        codec = DeltaLengthByteArrayCodec()
        encoded = codec.encode(self.values)
        assert encoded.endswith(b''.join(self.values))
        assert codec.decode(encoded, len(self.values)) == self.values

    def test_incremental_round_trip(self) -> None:
        codec = DeltaByteArrayCodec()
        assert codec.decode(codec.encode(self.values), len(self.values)) == self.values

    def test_incremental_shares_prefixes(self) -> None:
        values = [b'axis', b'axle', b'babble', b'babby']
        encoded = DeltaByteArrayCodec().encode(values)
        assert encoded.endswith(b'axis' + b'le' + b'babble' + b'y')

    def test_lengths_beyond_data(self) -> None:
        encoded = DeltaLengthByteArrayCodec().encode([b'abc', b'def'])
        with pytest.raises(MalformedEncoding):
            DeltaLengthByteArrayCodec().decode(encoded[:-1], 2)

    def test_empty(self) -> None:
        assert DeltaByteArrayCodec().decode(DeltaByteArrayCodec().encode([]), 0) == []


class TestDictionary:
    @pytest.mark.parametrize(
        ('num_entries', 'width'),
        [(0, 0), (1, 0), (2, 1), (3, 2), (4, 2), (5, 3), (256, 8), (257, 9)],
    )
    def test_index_bit_width(self, num_entries: int, width: int) -> None:
        assert index_bit_width(num_entries) == width

    def test_round_trip(self) -> None:
        values = [b'b', b'a', b'b', b'c', b'a', b'a']
        encoder = DictionaryEncoder(Type.BYTE_ARRAY)
        indices = encoder.encode(values)
        assert encoder.values == [b'b', b'a', b'c']
        assert indices[0] == 2

        decoder = DictionaryDecoder.from_page_bytes(
            encoder.encode_dictionary(),
            encoder.num_entries,
            Type.BYTE_ARRAY,
        )
        assert decoder.decode(indices, len(values)) == values

    def test_byte_size_tracks_plain_size(self) -> None:
        encoder = DictionaryEncoder(Type.BYTE_ARRAY)
        encoder.put_many([b'abc', b'de', b'abc'])
        assert encoder.dictionary_byte_size == len(encoder.encode_dictionary())
        assert encoder.would_add([b'abc', b'xyz', b'xyz']) == (1, 7)

    def test_booleans_are_sized_in_bits(self) -> None:
        encoder = DictionaryEncoder(Type.BOOLEAN)
        assert encoder.would_add([True, False, True]) == (2, 1)
        assert encoder.put_many([True, False, True]) == [0, 1, 0]
        assert encoder.dictionary_byte_size == len(encoder.encode_dictionary()) == 1
        assert encoder.would_add([False]) == (0, 0)

    def test_floats_keyed_by_bits(self) -> None:
        encoder = DictionaryEncoder(Type.DOUBLE)
        assert encoder.put_many([0.0, -0.0, 0.0]) == [0, 1, 0]

    def test_index_out_of_range(self) -> None:
        decoder = DictionaryDecoder([b'only'])
        with pytest.raises(MalformedEncoding):
            decoder.decode(b'\x01\x02\x01', 1)

    def test_missing_bit_width(self) -> None:
        with pytest.raises(MalformedEncoding):
            DictionaryDecoder([b'x']).decode(b'', 1)


class TestCatalog:
    @pytest.mark.parametrize(
        ('encoding', 'physical_type'),
        [
            (Encoding.RLE, Type.INT32),
            (Encoding.DELTA_BINARY_PACKED, Type.DOUBLE),
            (Encoding.DELTA_LENGTH_BYTE_ARRAY, Type.INT64),
            (Encoding.DELTA_BYTE_ARRAY, Type.BOOLEAN),
            (Encoding.BIT_PACKED, Type.INT32),
            (Encoding.RLE_DICTIONARY, Type.INT32),
        ],
    )
    def test_inapplicable(self, encoding: Encoding, physical_type: Type) -> None:
        with pytest.raises(UnsupportedEncoding):
            get_value_codec(encoding, physical_type)

    def test_unknown_id(self) -> None:
        with pytest.raises(UnsupportedEncoding):
            get_value_decoder(42, Type.INT32)

    def test_encoder_and_decoder_agree(self) -> None:
        encoder = get_value_encoder(Encoding.DELTA_BINARY_PACKED, Type.INT32)
        decoder = get_value_decoder(Encoding.DELTA_BINARY_PACKED, Type.INT32)
        assert encoder.encoding == Encoding.DELTA_BINARY_PACKED
        assert decoder.decode(encoder.encode([3, 1, 4]), 3) == [3, 1, 4]
