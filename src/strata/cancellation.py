"""Cooperative cancellation for long-running write and read loops.

Writers and readers never interrupt work in the middle of a page; they call
:meth:`CancellationToken.raise_if_cancelled` between pages and between
records so that a cancelled operation stops at a clean boundary.
"""

from __future__ import annotations

import threading

from .exceptions import OperationCancelled


class CancellationToken:
    """Thread-safe flag shared between a caller and the workers it started.

    Examples:
        >>> token = CancellationToken()
        >>> token.is_cancelled()
        False
        >>> token.cancel()
        >>> token.is_cancelled()
        True
    """

    def __init__(self) -> None:
        self._is_cancelled = threading.Event()

    def cancel(self) -> None:
        self._is_cancelled.set()

    def is_cancelled(self) -> bool:
        return self._is_cancelled.is_set()

    def raise_if_cancelled(self, where: str = 'operation') -> None:
        if self._is_cancelled.is_set():
            raise OperationCancelled(f'{where} cancelled')

    def reset(self) -> None:
        """Clear the flag. Meant for tests and controlled reuse."""
        self._is_cancelled.clear()


def check_cancelled(
    token: CancellationToken | None,
    where: str = 'operation',
) -> None:
    if token is not None:
        token.raise_if_cancelled(where)
