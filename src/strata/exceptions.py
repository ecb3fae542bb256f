from typing import Self


class StrataError(Exception):
    """Base class for every error raised by strata.

    Errors raised while reading or writing a particular column carry the
    dotted column path and, when known, the page offset (or page index for
    pages not yet placed in storage) so a caller can localise the fault.
    """

    def __init__(
        self,
        message: str,
        *,
        column_path: str | None = None,
        page_offset: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.column_path = column_path
        self.page_offset = page_offset

    def __str__(self) -> str:
        context = []
        if self.column_path is not None:
            context.append(f'column={self.column_path}')
        if self.page_offset is not None:
            context.append(f'page_offset={self.page_offset}')
        if not context:
            return self.message
        return f'{self.message} ({", ".join(context)})'

    def with_context(
        self,
        column_path: str | None = None,
        page_offset: int | None = None,
    ) -> Self:
        """Fill in missing location context and return self for re-raising."""
        if self.column_path is None:
            self.column_path = column_path
        if self.page_offset is None:
            self.page_offset = page_offset
        return self


class SchemaError(StrataError):
    """The schema tree itself is invalid."""


class SchemaViolation(StrataError):
    """A value tree does not match the shape or types of the schema."""


class StructuralCorruption(StrataError):
    """Level streams of the columns of a record disagree with each other."""


class MalformedEncoding(StrataError):
    """Encoded bytes are inconsistent with the expected count or bit width."""


class ChecksumMismatch(StrataError):
    """A page payload does not match its stored CRC."""


class UnsupportedEncoding(StrataError):
    """An encoding id is unknown or does not apply to the physical type."""


class CompressionError(StrataError):
    """A compression codec is unknown or its library is unavailable."""


class OperationCancelled(StrataError):
    """A cooperative cancellation request was observed."""
