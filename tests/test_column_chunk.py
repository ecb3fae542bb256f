import math

import pytest

from strata.cancellation import CancellationToken
from strata.enums import Encoding, PageType, Repetition, Type
from strata.exceptions import (
    MalformedEncoding,
    OperationCancelled,
    SchemaViolation,
    StrataError,
    UnsupportedEncoding,
)
from strata.properties import ColumnProperties, WriterProperties
from strata.readers.column_chunk import ColumnChunkReader
from strata.schema import Schema, leaf, root
from strata.types import LevelEntry
from strata.writers.column_chunk import ColumnChunkWriter

E = LevelEntry


def chunk_writer(schema, path, **options) -> ColumnChunkWriter:
    properties = WriterProperties(**options).for_column(path)
    return ColumnChunkWriter(schema.column(path), properties)


def read_back(schema, path, chunk) -> list[LevelEntry]:
    return list(ColumnChunkReader.from_chunk(schema.column(path), chunk))


class TestPaging:
    def test_row_limit(self, flat_schema) -> None:
        writer = chunk_writer(
            flat_schema,
            'id',
            data_page_row_limit=10,
            dictionary_enabled=False,
        )
        entries = [E(0, 0, i) for i in range(25)]
        writer.write(entries)
        chunk = writer.close()

        assert [p.num_values for p in chunk.data_pages] == [10, 10, 5]
        assert chunk.dictionary_page is None
        assert chunk.num_rows == chunk.num_values == 25
        assert read_back(flat_schema, 'id', chunk) == entries

    def test_pages_end_on_record_boundaries(self, doc_schema) -> None:
        writer = chunk_writer(doc_schema, 'Name.url', data_page_row_limit=2)
        entries = []
        for i in range(7):
            entries += [E(0, 2, b'x'), E(1, 1), E(1, 2, str(i).encode())]
        writer.write(entries)
        chunk = writer.close()

        assert [p.num_values for p in chunk.data_pages] == [6, 6, 6, 3]
        assert chunk.num_rows == 7
        assert read_back(doc_schema, 'Name.url', chunk) == entries

    def test_page_size(self, doc_schema) -> None:
        writer = chunk_writer(
            doc_schema,
            'Name.url',
            data_page_size=1,
            dictionary_enabled=False,
        )
        writer.write([E(0, 2, b'long value'), E(1, 2, b'more'), E(0, 0), E(0, 1)])
        chunk = writer.close()
        assert [p.num_values for p in chunk.data_pages] == [2, 1, 1]

    def test_empty_chunk(self, flat_schema) -> None:
        chunk = chunk_writer(flat_schema, 'id').close()
        assert chunk.pages == []
        assert chunk.num_rows == 0
        assert read_back(flat_schema, 'id', chunk) == []

    @pytest.mark.parametrize('version', [1, 2])
    @pytest.mark.parametrize(
        'encoding',
        [Encoding.PLAIN, Encoding.DELTA_BINARY_PACKED],
    )
    def test_int_encodings(self, flat_schema, version, encoding) -> None:
        writer = chunk_writer(
            flat_schema,
            'id',
            data_page_version=version,
            encoding=encoding,
            dictionary_enabled=False,
            data_page_row_limit=100,
        )
        entries = [E(0, 0, i * i - 500) for i in range(300)]
        writer.write(entries)
        chunk = writer.close()
        assert {p.encoding for p in chunk.data_pages} == {encoding}
        assert chunk.encodings == (encoding,)
        assert read_back(flat_schema, 'id', chunk) == entries

    def test_rle_booleans(self, flat_schema) -> None:
        writer = chunk_writer(
            flat_schema,
            'flag',
            encoding=Encoding.RLE,
            dictionary_enabled=False,
        )
        entries = [E(0, 1, i % 4 == 0) if i % 3 else E(0, 0) for i in range(50)]
        writer.write(entries)
        chunk = writer.close()
        assert chunk.data_pages[0].encoding == Encoding.RLE
        assert read_back(flat_schema, 'flag', chunk) == entries


class TestDictionary:
    def names(self, values: list[bytes]) -> list[LevelEntry]:
        return [E(0, 1, v) for v in values]

    def test_dictionary_kept(self, flat_schema) -> None:
        writer = chunk_writer(flat_schema, 'name', data_page_row_limit=10)
        entries = self.names([f'v{i % 5}'.encode() for i in range(40)])
        entries[3] = E(0, 0)
        writer.write(entries)
        chunk = writer.close()

        assert chunk.dictionary_page is not None
        assert chunk.dictionary_page.num_values == 5
        assert chunk.pages[0].page_type == PageType.DICTIONARY_PAGE
        assert {p.encoding for p in chunk.data_pages} == {Encoding.RLE_DICTIONARY}
        assert chunk.encodings == (
            Encoding.PLAIN,
            Encoding.RLE,
            Encoding.RLE_DICTIONARY,
        )
        assert chunk.statistics.distinct_count == 5
        assert read_back(flat_schema, 'name', chunk) == entries

    def test_fallback_before_first_page(self, flat_schema) -> None:
        writer = chunk_writer(flat_schema, 'name', dictionary_max_size=3)
        entries = self.names([f'v{i % 5}'.encode() for i in range(20)])
        writer.write(entries)
        assert writer.dictionary_active
        chunk = writer.close()

        assert not writer.dictionary_active
        assert chunk.dictionary_page is None
        assert [p.encoding for p in chunk.data_pages] == [Encoding.PLAIN]
        assert chunk.statistics.distinct_count is None
        assert read_back(flat_schema, 'name', chunk) == entries

    def test_fallback_after_first_page(self, flat_schema) -> None:
        writer = chunk_writer(
            flat_schema,
            'name',
            dictionary_max_size=6,
            data_page_row_limit=10,
            encoding=Encoding.DELTA_BYTE_ARRAY,
        )
        first = [f'v{i % 5}'.encode() for i in range(10)]
        later = [f'w{i}'.encode() for i in range(20)]
        entries = self.names(first + later)
        writer.write(entries)
        chunk = writer.close()

        assert chunk.dictionary_page is not None
        assert chunk.dictionary_page.num_values == 5
        assert [p.encoding for p in chunk.data_pages] == [
            Encoding.RLE_DICTIONARY,
            Encoding.DELTA_BYTE_ARRAY,
            Encoding.DELTA_BYTE_ARRAY,
        ]
        assert chunk.statistics.distinct_count is None
        assert read_back(flat_schema, 'name', chunk) == entries

    def test_fallback_on_dictionary_bytes(self, flat_schema) -> None:
        writer = chunk_writer(flat_schema, 'name', dictionary_page_size_limit=10)
        writer.write(self.names([b'abcdefgh', b'abcdefgh']))
        chunk = writer.close()
        assert chunk.dictionary_page is None
        assert chunk.data_pages[0].encoding == Encoding.PLAIN

    def test_column_override(self, flat_schema) -> None:
        properties = WriterProperties(
            column_overrides={'name': ColumnProperties(dictionary_enabled=False)},
        )
        writer = ColumnChunkWriter(
            flat_schema.column('name'),
            properties.for_column('name'),
        )
        writer.write(self.names([b'a', b'a']))
        assert writer.close().dictionary_page is None

    def test_all_null_column(self, flat_schema) -> None:
        writer = chunk_writer(flat_schema, 'name')
        entries = [E(0, 0)] * 3
        writer.write(entries)
        chunk = writer.close()
        assert chunk.statistics.null_count == 3
        assert chunk.statistics.min_value is None
        assert read_back(flat_schema, 'name', chunk) == entries


class TestStatistics:
    def test_ints_and_nulls(self, flat_schema) -> None:
        writer = chunk_writer(flat_schema, 'id')
        writer.write([E(0, 0, v) for v in (5, -3, 12, 0)])
        stats = writer.close().statistics
        assert (stats.min_value, stats.max_value, stats.null_count) == (-3, 12, 0)

    def test_byte_arrays_compare_unsigned(self, flat_schema) -> None:
        writer = chunk_writer(flat_schema, 'name')
        writer.write([E(0, 1, b'\xff'), E(0, 1, b'a'), E(0, 0), E(0, 1, b'ab')])
        stats = writer.close().statistics
        assert (stats.min_value, stats.max_value) == (b'a', b'\xff')
        assert stats.null_count == 1

    def test_nan_is_ignored(self, flat_schema) -> None:
        writer = chunk_writer(flat_schema, 'score')
        writer.write([E(0, 1, math.nan), E(0, 1, 2.5), E(0, 1, -1.0), E(0, 0)])
        stats = writer.close().statistics
        assert (stats.min_value, stats.max_value) == (-1.0, 2.5)

    def test_booleans(self, flat_schema) -> None:
        writer = chunk_writer(flat_schema, 'flag')
        writer.write([E(0, 1, True), E(0, 1, False)])
        stats = writer.close().statistics
        assert (stats.min_value, stats.max_value) == (False, True)

    def test_float_uses_stored_precision(self) -> None:
        schema = Schema(root('r', leaf('f', Type.FLOAT)))
        writer = chunk_writer(schema, 'f')
        writer.write([E(0, 0, 0.1)])
        stats = writer.close().statistics
        assert stats.min_value != 0.1
        assert stats.min_value == pytest.approx(0.1)

    def test_int96_is_unordered(self) -> None:
        schema = Schema(root('r', leaf('t', Type.INT96, Repetition.OPTIONAL)))
        writer = chunk_writer(schema, 't')
        writer.write([E(0, 1, 2**80), E(0, 0)])
        stats = writer.close().statistics
        assert stats.min_value is None
        assert stats.max_value is None
        assert stats.null_count == 1

    def test_empty_lists_count_as_nulls(self, doc_schema) -> None:
        writer = chunk_writer(doc_schema, 'Name.url')
        writer.write([E(0, 0), E(0, 1), E(0, 2, b'x')])
        assert writer.close().statistics.null_count == 2


class TestErrors:
    def test_inapplicable_encoding(self, flat_schema) -> None:
        with pytest.raises(UnsupportedEncoding) as exc_info:
            chunk_writer(flat_schema, 'id', encoding=Encoding.DELTA_BYTE_ARRAY)
        assert exc_info.value.column_path == 'id'

    @pytest.mark.parametrize(
        'entry',
        [E(1, 2, b'x'), E(0, 3, b'x'), E(0, 2, None), E(0, 1, b'x'), E(2, 2, b'x')],
    )
    def test_invalid_entries(self, doc_schema, entry) -> None:
        writer = chunk_writer(doc_schema, 'Name.url')
        with pytest.raises(SchemaViolation):
            writer.write([entry])

    def test_closed_twice(self, flat_schema) -> None:
        writer = chunk_writer(flat_schema, 'id')
        writer.close()
        with pytest.raises(StrataError):
            writer.close()
        with pytest.raises(StrataError):
            writer.write([E(0, 0, 1)])

    def test_cancellation_between_pages(self, flat_schema) -> None:
        token = CancellationToken()
        writer = ColumnChunkWriter(
            flat_schema.column('id'),
            WriterProperties(data_page_row_limit=1).for_column('id'),
            token,
        )
        writer.write([E(0, 0, 1)])
        token.cancel()
        with pytest.raises(OperationCancelled):
            writer.write([E(0, 0, 2)])

    def test_second_dictionary_page(self, flat_schema) -> None:
        writer = chunk_writer(flat_schema, 'name')
        writer.write([E(0, 1, b'a')])
        chunk = writer.close()
        pages = [chunk.dictionary_page, chunk.dictionary_page, *chunk.data_pages]
        reader = ColumnChunkReader(flat_schema.column('name'), pages)
        with pytest.raises(MalformedEncoding) as exc_info:
            list(reader)
        assert exc_info.value.page_offset == 1

    def test_value_count_mismatch(self, flat_schema) -> None:
        writer = chunk_writer(flat_schema, 'id')
        writer.write([E(0, 0, 1)])
        chunk = writer.close()
        reader = ColumnChunkReader(
            flat_schema.column('id'),
            chunk.pages,
            num_values=2,
        )
        with pytest.raises(MalformedEncoding):
            list(reader)
