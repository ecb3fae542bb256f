import json
import logging
import sys

from collections.abc import Callable
from pathlib import Path
from typing import Any, NoReturn

import click

from click_option_group import (
    RequiredMutuallyExclusiveOptionGroup,
    optgroup,
)
from pydantic import ValidationError

from .coordinator import RowGroupCoordinator
from .enums import Compression, Encoding
from .exceptions import StrataError
from .properties import WriterProperties
from .schema import Schema
from .serialization import JsonMetadataSerializer
from .shredding import Shredder
from .util.memory_storage import MemoryStorage

VALUE_ENCODINGS = [
    Encoding.PLAIN,
    Encoding.RLE,
    Encoding.DELTA_BINARY_PACKED,
    Encoding.DELTA_LENGTH_BYTE_ARRAY,
    Encoding.DELTA_BYTE_ARRAY,
]


def fail(message: str) -> NoReturn:
    click.echo(f'Error: {message}', err=True)
    sys.exit(1)


def load_schema(path: Path) -> Schema:
    try:
        return Schema.from_json(path.read_text())
    except ValidationError as e:
        fail(f'Invalid schema {path}: {e}')
    except StrataError as e:
        fail(str(e))


def load_records(records_path: Path | None, text: str | None) -> list[dict[str, Any]]:
    """Records are a JSON array of objects, or a single object."""
    source = records_path.read_text() if records_path else text
    if source is None:
        raise click.UsageError("Didn't get a records file or JSON text")
    try:
        data = json.loads(source)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f'Records are not valid JSON: {e}') from e
    return data if isinstance(data, list) else [data]


def records_source(func: Callable) -> Callable:
    """Options for the schema and the records to work on."""
    func = optgroup.option(
        '-j',
        '--json',
        'json_text',
        help='Records as JSON text',
    )(func)
    func = optgroup.option(
        '-r',
        '--records',
        'records_path',
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help='Path to a JSON file of records',
    )(func)
    func = optgroup.group(
        'Record source',
        cls=RequiredMutuallyExclusiveOptionGroup,
        help='A JSON array of records (or a single record object)',
    )(func)
    func = click.option(
        '-s',
        '--schema',
        'schema_path',
        required=True,
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help='Path to a JSON schema document',
    )(func)
    return func


@click.group()
@click.version_option()
@click.option('-v', '--verbose', is_flag=True, help='Enable debug logging')
def cli(verbose: bool):
    """strata - nested records to columnar pages and back"""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(levelname)s %(name)s: %(message)s',
        )


@cli.command()
@records_source
def shred(schema_path: Path, records_path: Path | None, json_text: str | None):
    """Print the repetition/definition level table of every column."""
    schema = load_schema(schema_path)
    records = load_records(records_path, json_text)
    try:
        streams = Shredder(schema).shred_many(records)
    except StrataError as e:
        fail(str(e))

    for descriptor in schema.columns:
        click.echo(
            f'{descriptor.path_in_schema} '
            f'({descriptor.physical_type.name}, '
            f'max_rep={descriptor.max_repetition_level}, '
            f'max_def={descriptor.max_definition_level})',
        )
        click.echo('=' * 60)
        click.echo(f'  {"r":>3} {"d":>3}  value')
        for entry in streams[descriptor.path_in_schema]:
            value = 'NULL' if entry.value is None else repr(entry.value)
            click.echo(
                f'  {entry.repetition_level:>3} {entry.definition_level:>3}  {value}',
            )
        click.echo()


@cli.command()
@records_source
@click.option(
    '--codec',
    type=click.Choice([c.name for c in Compression], case_sensitive=False),
    default=Compression.UNCOMPRESSED.name,
    show_default=True,
    help='Page compression codec',
)
@click.option(
    '--encoding',
    type=click.Choice([e.name for e in VALUE_ENCODINGS], case_sensitive=False),
    default=Encoding.PLAIN.name,
    show_default=True,
    help='Value encoding (used after dictionary fallback, or always)',
)
@click.option(
    '--dictionary/--no-dictionary',
    default=True,
    show_default=True,
    help='Try dictionary encoding first',
)
@click.option(
    '--page-version',
    type=click.Choice(['1', '2']),
    default='1',
    show_default=True,
    help='Data page format version',
)
@click.option(
    '--row-group-size',
    type=click.IntRange(min=1),
    default=None,
    help='Records per row group',
)
def roundtrip(
    schema_path: Path,
    records_path: Path | None,
    json_text: str | None,
    codec: str,
    encoding: str,
    dictionary: bool,
    page_version: str,
    row_group_size: int | None,
):
    """Write records to in-memory storage, print the footer and verify them."""
    schema = load_schema(schema_path)
    records = load_records(records_path, json_text)

    options: dict[str, Any] = {
        'compression': Compression[codec.upper()],
        'encoding': Encoding[encoding.upper()],
        'dictionary_enabled': dictionary,
        'data_page_version': int(page_version),
    }
    if row_group_size is not None:
        options['row_group_size'] = row_group_size
    try:
        properties = WriterProperties(**options)
    except ValidationError as e:
        fail(f'Invalid writer options: {e}')

    serializer = JsonMetadataSerializer(indent=2)
    storage = MemoryStorage()
    coordinator = RowGroupCoordinator(schema, storage, serializer, properties)
    try:
        coordinator.write_records(records)
        footer = coordinator.close()
        restored = list(coordinator.read_records(footer))
        # compare physical streams so that logical conversions do not matter
        shredder = Shredder(schema)
        matches = shredder.shred_many(records) == shredder.shred_many(restored)
    except StrataError as e:
        fail(str(e))

    click.echo(footer.decode())
    click.echo(f'Stored {len(storage):,} bytes of pages for {len(records)} records')
    if not matches:
        fail('Reassembled records differ from the input')
    click.echo('Round trip OK')
