"""An append-only, in-memory implementation of the Storage protocol."""

from __future__ import annotations

import logging
import threading

from ..exceptions import StrataError
from ..metadata import ByteRange

logger = logging.getLogger(__name__)


class MemoryStorage:
    def __init__(self, initial: bytes = b'') -> None:
        self._buffer = bytearray(initial)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._buffer)

    def getvalue(self) -> bytes:
        return bytes(self._buffer)

    def write(self, offset_hint: int | None, data: bytes) -> ByteRange:
        """Append ``data``; the hint is advisory, writes always land at the end."""
        with self._lock:
            offset = len(self._buffer)
            if offset_hint is not None and offset_hint != offset:
                logger.warning(
                    'Write hinted at offset %d but storage ends at %d',
                    offset_hint,
                    offset,
                )
            self._buffer += data
        return ByteRange(offset, len(data))

    def read(self, byte_range: ByteRange) -> bytes:
        if byte_range.offset < 0 or byte_range.length < 0:
            raise StrataError(f'Invalid byte range {byte_range}')
        if byte_range.end > len(self._buffer):
            raise StrataError(
                f'Byte range {byte_range.offset}..{byte_range.end} is past the '
                f'end of storage ({len(self._buffer)} bytes)',
            )
        return bytes(self._buffer[byte_range.offset : byte_range.end])
