# affydata/abc.py
"""Abstract Base Classes for the affydata library."""

import abc
from typing import BinaryIO, Optional, TextIO

from .dataclasses import ChipGeometry, DataTable
from ._internal.tagvalue import ParameterMap, merge_into

AFFY_QT_PREFIX = 'Affymetrix:QuantitationType:'


class DatafileParser(abc.ABC):
    """
    Abstract base class for Affymetrix file decoders.

    A decoder is bound to one seekable binary stream. It owns (and closes)
    the stream only when it opened it itself. Header attributes are filled
    in by `parse()`; decoded bodies are stored only once a parse completes.

    Args:
        stream: A seekable stream opened in binary mode.
        owns_stream: If True, `close()` also closes the stream.
    """
    def __init__(self, stream: BinaryIO, *, owns_stream: bool = False):
        self._stream = stream
        self._owns_stream = owns_stream
        self._closed = False
        self.version: Optional[int | str] = None
        self.geometry: Optional[ChipGeometry] = None
        self.algorithm: Optional[str] = None
        self.chip_type: Optional[str] = None
        self.parameters: ParameterMap = {}
        self.stats: ParameterMap = {}
        self.headings: tuple[str, ...] = ()

    @property
    def stream(self) -> BinaryIO:
        if self._closed:
            raise ValueError("I/O operation on a closed parser.")
        return self._stream

    @property
    def qtd(self) -> tuple[str, ...]:
        """The headings as fully qualified quantitation type names."""
        return tuple(AFFY_QT_PREFIX + heading for heading in self.headings)

    def add_parameters(self, values) -> None:
        merge_into(self.parameters, values)

    def add_stats(self, values) -> None:
        merge_into(self.stats, values)

    @abc.abstractmethod
    def parse(self) -> None:
        """
        Decodes the whole file, header first.

        Raises:
            AffyError: If the input is malformed. Nothing decoded by a
                failed parse is retained.
        """
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def parsed(self) -> bool:
        """Returns True once a parse has completed."""
        raise NotImplementedError

    def close(self) -> None:
        """Releases the stream if this decoder opened it."""
        if not self._closed and self._owns_stream:
            self._stream.close()
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "DatafileParser":
        if self.closed:
            raise ValueError("Cannot enter context with a closed parser.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class TabularParser(DatafileParser):
    """
    A decoder whose body normalizes to a row/column table (CEL and CHP).

    The table is built lazily; asking for it parses the file first if that
    has not happened yet.
    """

    @abc.abstractmethod
    def table(self, cdf: Optional[DatafileParser] = None) -> DataTable:
        """
        Returns the normalized table of the file body.

        Args:
            cdf: The probe layout of the chip. Only result files without
                 their own probe-set names need one.
        """
        raise NotImplementedError

    def export(
        self,
        fh: TextIO,
        cdf: Optional[DatafileParser] = None,
        *,
        include_headings: bool = False
    ) -> None:
        """Writes the table as tab-delimited text, one line per row."""
        table = self.table(cdf)
        if include_headings:
            fh.write('\t'.join(table.headings) + '\n')
        for row in table.rows:
            fh.write('\t'.join(row) + '\n')
