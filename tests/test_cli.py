import json
import shlex

from collections.abc import Callable
from typing import TypeAlias
from pathlib import Path

import pytest

from click.testing import CliRunner, Result

from strata._version import get_version
from strata.cli import cli

Invoke: TypeAlias = Callable[..., Result]


@pytest.fixture(scope='session')
def invoke() -> Invoke:
    runner = CliRunner()

    def _invoke(cmd: str, **kwargs) -> Result:
        kwargs['catch_exceptions'] = kwargs.get('catch_exceptions', False)
        return runner.invoke(cli, shlex.split(cmd), **kwargs)

    return _invoke


@pytest.fixture
def schema_file(tmp_path: Path, doc_schema) -> Path:
    path = tmp_path / 'schema.json'
    path.write_text(json.dumps(doc_schema.to_dict()))
    return path


@pytest.fixture
def records_file(tmp_path: Path, doc_records) -> Path:
    path = tmp_path / 'records.json'
    path.write_text(json.dumps(doc_records))
    return path


def test_cli_help(invoke: Invoke) -> None:
    result = invoke('--help')
    assert result.exit_code == 0
    assert 'nested records to columnar pages' in result.output
    assert 'shred' in result.output
    assert 'roundtrip' in result.output


def test_version(invoke: Invoke) -> None:
    result = invoke('--version')
    assert result.exit_code == 0
    assert get_version() in result.output


def test_shred_help(invoke: Invoke) -> None:
    result = invoke('shred --help')
    assert result.exit_code == 0
    assert 'Record source' in result.output


def test_shred(invoke: Invoke, schema_file: Path, records_file: Path) -> None:
    result = invoke(f'shred -s {schema_file} -r {records_file}')
    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert lines[0] == 'Name.url (BYTE_ARRAY, max_rep=1, max_def=2)'
    assert lines[1] == '=' * 60
    assert lines[3:6] == [
        "    0   2  b'a'",
        '    1   1  NULL',
        '    0   0  NULL',
    ]


def test_shred_json_text(invoke: Invoke, schema_file: Path) -> None:
    records = shlex.quote(json.dumps({'Name': [{'url': 'x'}]}))
    result = invoke(f'shred -s {schema_file} -j {records}')
    assert result.exit_code == 0
    assert "    0   2  b'x'" in result.output


def test_shred_schema_violation(invoke: Invoke, schema_file: Path) -> None:
    records = shlex.quote(json.dumps([{'Name': 5}]))
    result = invoke(f'shred -s {schema_file} -j {records}')
    assert result.exit_code == 1
    assert 'Error:' in result.output
    assert 'expects a list' in result.output


@pytest.mark.parametrize(
    'options',
    ['', '--codec gzip --page-version 2', '--no-dictionary --encoding DELTA_BYTE_ARRAY'],
)
def test_roundtrip(
    invoke: Invoke,
    schema_file: Path,
    records_file: Path,
    options: str,
) -> None:
    result = invoke(f'roundtrip -s {schema_file} -r {records_file} {options}')
    assert result.exit_code == 0
    assert '"format_version": 1' in result.output
    assert 'for 2 records' in result.output
    assert result.output.rstrip().endswith('Round trip OK')


def test_roundtrip_row_groups(invoke: Invoke, schema_file: Path) -> None:
    records = shlex.quote(json.dumps([{'Name': [{'url': str(i)}]} for i in range(5)]))
    result = invoke(f'roundtrip -s {schema_file} -j {records} --row-group-size 2')
    assert result.exit_code == 0
    assert '"num_rows": 5' in result.output
    assert '"num_rows": 1' in result.output
    assert 'Round trip OK' in result.output


def test_roundtrip_inapplicable_encoding(
    invoke: Invoke,
    schema_file: Path,
    records_file: Path,
) -> None:
    result = invoke(
        f'roundtrip -s {schema_file} -r {records_file} --encoding DELTA_BINARY_PACKED',
    )
    assert result.exit_code == 1
    assert 'Error:' in result.output


def test_record_sources_are_exclusive(
    invoke: Invoke,
    schema_file: Path,
    records_file: Path,
) -> None:
    result = invoke(f'shred -s {schema_file} -r {records_file} -j "[]"')
    assert result.exit_code == 2


def test_record_source_required(invoke: Invoke, schema_file: Path) -> None:
    result = invoke(f'shred -s {schema_file}')
    assert result.exit_code == 2


def test_invalid_schema(invoke: Invoke, tmp_path: Path) -> None:
    path = tmp_path / 'schema.json'
    path.write_text(json.dumps({'name': 'r', 'children': []}))
    result = invoke(f'shred -s {path} -j "[]"')
    assert result.exit_code == 1
    assert 'Error:' in result.output
