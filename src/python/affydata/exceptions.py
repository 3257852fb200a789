# affydata/exceptions.py
"""Custom exception and warning types for the affydata library."""

from typing import Optional


class AffyError(Exception):
    """
    Base exception for all errors raised by this library.

    Attributes:
        message (str): The primary error message.
        offset (int | None): Byte offset in the input at which the problem
            was detected, when known.
        record (int | None): Record index (or text line number for the
            line-oriented formats) at which the problem was detected.
    """
    def __init__(
        self,
        message: str,
        *,
        offset: Optional[int] = None,
        record: Optional[int] = None
    ):
        super().__init__(message)
        self.message = message
        self.offset = offset
        self.record = record

    def __str__(self) -> str:
        location = []
        if self.offset is not None:
            location.append(f"offset={self.offset}")
        if self.record is not None:
            location.append(f"record={self.record}")
        if not location:
            return self.message
        return f"{self.message} ({', '.join(location)})"


class UnrecognizedFormat(AffyError):
    """Unknown magic number or legacy sub-version."""
    pass


class TruncatedInput(AffyError):
    """The stream ended before a required field could be read."""
    pass


class OutOfRangeCoordinate(AffyError):
    """A masked/outlier coordinate lies outside the declared chip geometry."""
    pass


class MalformedSection(AffyError):
    """
    An expected section, tag or record structure was not found.

    Raised for the line-oriented formats when a bracketed section or tag is
    missing, and for binary formats when a derived record length is invalid.
    """
    pass


class UnsupportedLayout(AffyError):
    """A recognized format whose body layout cannot be decoded."""
    pass


class GeometryMismatch(UserWarning):
    """Declared cell count disagrees with rows * columns. Parsing continues."""
    pass
