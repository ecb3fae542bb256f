from typing import Any

import pytest

from strata.enums import ConvertedType, Repetition, Type
from strata.schema import Schema, group, leaf, root

REQUIRED = Repetition.REQUIRED
OPTIONAL = Repetition.OPTIONAL
REPEATED = Repetition.REPEATED
UTF8 = ConvertedType.UTF8


@pytest.fixture
def document_schema() -> Schema:
    """The Document schema of the Dremel paper."""
    return Schema(
        root(
            'Document',
            leaf('DocId', Type.INT64),
            group(
                'Links',
                OPTIONAL,
                leaf('Backward', Type.INT64, REPEATED),
                leaf('Forward', Type.INT64, REPEATED),
            ),
            group(
                'Name',
                REPEATED,
                group(
                    'Language',
                    REPEATED,
                    leaf('Code', Type.BYTE_ARRAY, REQUIRED, UTF8),
                    leaf('Country', Type.BYTE_ARRAY, OPTIONAL, UTF8),
                ),
                leaf('Url', Type.BYTE_ARRAY, OPTIONAL, UTF8),
            ),
        ),
    )


@pytest.fixture
def document_records() -> list[dict[str, Any]]:
    return [
        {
            'DocId': 10,
            'Links': {'Backward': [], 'Forward': [20, 40, 60]},
            'Name': [
                {
                    'Language': [
                        {'Code': 'en-us', 'Country': 'us'},
                        {'Code': 'en', 'Country': None},
                    ],
                    'Url': 'http://A',
                },
                {'Language': [], 'Url': 'http://B'},
                {'Language': [{'Code': 'en-gb', 'Country': 'gb'}], 'Url': None},
            ],
        },
        {
            'DocId': 20,
            'Links': {'Backward': [10, 30], 'Forward': [80]},
            'Name': [{'Language': [], 'Url': 'http://C'}],
        },
    ]


@pytest.fixture
def doc_schema() -> Schema:
    return Schema(
        root(
            'Doc',
            group(
                'Name',
                REPEATED,
                leaf('url', Type.BYTE_ARRAY, OPTIONAL, UTF8),
            ),
        ),
    )


@pytest.fixture
def doc_records() -> list[dict[str, Any]]:
    return [
        {'Name': [{'url': 'a'}, {'url': None}]},
        {'Name': []},
    ]


@pytest.fixture
def flat_schema() -> Schema:
    return Schema(
        root(
            'flat',
            leaf('id', Type.INT64),
            leaf('name', Type.BYTE_ARRAY, OPTIONAL, UTF8),
            leaf('score', Type.DOUBLE, OPTIONAL),
            leaf('flag', Type.BOOLEAN, OPTIONAL),
        ),
    )


@pytest.fixture
def make_flat_records():
    def _make(count: int, distinct_names: int = 5) -> list[dict[str, Any]]:
        return [
            {
                'id': i,
                'name': None if i % 7 == 3 else f'name-{i % distinct_names}',
                'score': i / 4 if i % 5 else None,
                'flag': i % 3 == 0,
            }
            for i in range(count)
        ]

    return _make
