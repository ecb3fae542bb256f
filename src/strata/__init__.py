from .cancellation import CancellationToken
from .chunks import ColumnChunk, RowGroup
from .coordinator import RowGroupCoordinator
from .exceptions import StrataError
from .properties import ColumnProperties, WriterProperties
from .readers.row_group import RowGroupReader
from .schema import Schema
from .serialization import JsonMetadataSerializer
from .util.memory_storage import MemoryStorage
from .writers.row_group import RowGroupWriter

__all__ = [
    'CancellationToken',
    'ColumnChunk',
    'ColumnProperties',
    'JsonMetadataSerializer',
    'MemoryStorage',
    'RowGroup',
    'RowGroupCoordinator',
    'RowGroupReader',
    'RowGroupWriter',
    'Schema',
    'StrataError',
    'WriterProperties',
]
