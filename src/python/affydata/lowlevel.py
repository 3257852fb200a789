# affydata/lowlevel.py
"""
Low-level primitive readers over a seekable byte stream.

This module isolates byte decoding from the rest of the library. Every
read either returns a complete value or raises `TruncatedInput`; all seeks
are absolute.
"""

import struct
from typing import BinaryIO, Iterator, Optional
import numpy as np

from .exceptions import MalformedSection, TruncatedInput

class BinaryReader:
    """
    Typed reads from a binary stream in a fixed byte order.

    Byte order is applied per read through `struct`/numpy format prefixes,
    so results do not depend on the host's native byte order.

    Args:
        stream: A seekable stream opened in binary mode.
        byteorder: '<' for little-endian (XDA/GDAC layouts) or '>' for
                   big-endian (generic container).
    """
    def __init__(self, stream: BinaryIO, byteorder: str = '<'):
        if byteorder not in ('<', '>'):
            raise ValueError(f"Unsupported byte order: '{byteorder}'. Must be '<' or '>'.")
        self._stream = stream
        self.byteorder = byteorder

    @property
    def stream(self) -> BinaryIO:
        return self._stream

    def tell(self) -> int:
        return self._stream.tell()

    def seek(self, position: int) -> None:
        """Moves to an absolute byte position."""
        if position < 0:
            raise MalformedSection(f"Invalid seek target {position}", offset=self.tell())
        self._stream.seek(position)

    def read_bytes(self, length: int) -> bytes:
        offset = self.tell()
        if length < 0:
            raise MalformedSection(f"Negative field length {length}", offset=offset)
        data = self._stream.read(length)
        if len(data) != length:
            raise TruncatedInput(
                f"Expected {length} bytes but the stream ended after {len(data)}",
                offset=offset,
            )
        return data

    def skip(self, length: int) -> None:
        """Consumes `length` bytes, checking that they exist."""
        self.read_bytes(length)

    def _unpack(self, fmt: str) -> int | float:
        size = struct.calcsize(fmt)
        return struct.unpack(self.byteorder + fmt, self.read_bytes(size))[0]

    def int8(self) -> int:
        return self._unpack('b')

    def uint8(self) -> int:
        return self._unpack('B')

    def int16(self) -> int:
        return self._unpack('h')

    def uint16(self) -> int:
        return self._unpack('H')

    def int32(self) -> int:
        return self._unpack('i')

    def uint32(self) -> int:
        return self._unpack('I')

    def float32(self) -> float:
        return self._unpack('f')

    def ascii(self, length: int) -> str:
        """Reads a fixed-length byte sequence as text."""
        return self.read_bytes(length).decode('latin-1')

    def fixed_name(self, length: int) -> str:
        """Reads a fixed-width name field, stripping trailing NUL padding."""
        return self.read_bytes(length).rstrip(b'\x00').decode('latin-1')

    def string(self, total: Optional[int] = None) -> str:
        """
        Reads an int32 length-prefixed single-byte string.

        Args:
            total: If given, the full on-disk width of the field (prefix
                   included); any padding after the string is consumed.
        """
        length = self.int32()
        value = self.ascii(length)
        if total is not None:
            self._consume_padding(total, length + 4)
        return value

    def wstring(self, total: Optional[int] = None) -> str:
        """Reads an int32 character-count-prefixed UTF-16 string."""
        length = self.int32()
        raw = self.read_bytes(2 * length)
        encoding = 'utf-16-be' if self.byteorder == '>' else 'utf-16-le'
        if total is not None:
            self._consume_padding(total, 2 * length + 4)
        return raw.decode(encoding)

    def _consume_padding(self, total: int, used: int) -> None:
        if used > total:
            raise MalformedSection(
                f"String of {used} bytes overflows its {total}-byte field",
                offset=self.tell(),
            )
        self.skip(total - used)

    def records(self, dtype: np.dtype | list, count: int) -> np.ndarray:
        """
        Reads `count` fixed-width records in one pass.

        The dtype is declared without a byte order; the reader's byte order
        is applied to every field. The returned array is read-only.
        """
        record_dtype = np.dtype(dtype).newbyteorder(self.byteorder)
        if count < 0:
            raise MalformedSection(f"Negative record count {count}", offset=self.tell())
        if count == 0:
            return np.empty(0, dtype=record_dtype)
        data = self.read_bytes(record_dtype.itemsize * count)
        return np.frombuffer(data, dtype=record_dtype, count=count)


class LineReader:
    """
    Line-oriented view of a binary stream for the legacy text layouts.

    Lines are decoded as latin-1 with CR/LF terminators stripped. The
    current line number is tracked for error reporting.
    """
    def __init__(self, stream: BinaryIO):
        self._stream = stream
        self.line_number = 0

    def rewind(self) -> None:
        self._stream.seek(0)
        self.line_number = 0

    def readline(self) -> Optional[str]:
        """Returns the next line, or None at end of stream."""
        raw = self._stream.readline()
        if not raw:
            return None
        self.line_number += 1
        return raw.decode('latin-1').rstrip('\r\n')

    def __iter__(self) -> Iterator[str]:
        while (line := self.readline()) is not None:
            yield line
