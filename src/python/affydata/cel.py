# affydata/cel.py
"""
Decoders for CEL (cell intensity) files.

Every CEL layout decodes into the same in-memory table: one record per
feature in row-major order (row outer, column inner) with intensity,
standard deviation, pixel count, and the masked/outlier flags. The flags
are applied in two further passes over the table once the coordinate lists
have been read; the table is then made read-only.
"""

import logging
import warnings
from typing import Iterable, Optional

import numpy as np

from .abc import TabularParser
from .dataclasses import ChipGeometry, DataTable, IntensityCell, Subgrid
from .exceptions import (
    GeometryMismatch,
    MalformedSection,
    OutOfRangeCoordinate,
    UnrecognizedFormat,
)
from .lowlevel import BinaryReader, LineReader
from .types import FileFormat
from ._internal import records
from ._internal.tagvalue import (
    chip_type_from_dat_header,
    parse_algorithm_parameters,
    parse_cel_parameters,
    parse_header_tags,
)

logger = logging.getLogger(__name__)

CEL_HEADINGS = (
    'CELX',
    'CELY',
    'CELIntensity',
    'CELIntensityStdev',
    'CELPixels',
    'CELOutlier',
    'CELMask',
)


def new_cell_table(num_columns: int, num_rows: int) -> np.ndarray:
    """Allocates a zeroed, writable cell table with coordinates filled in."""
    table = np.zeros(num_columns * num_rows, dtype=records.CEL_TABLE)
    table['row'] = np.repeat(np.arange(num_rows, dtype=np.uint32), num_columns)
    table['column'] = np.tile(np.arange(num_columns, dtype=np.uint32), num_rows)
    return table


def set_flags(
    table: np.ndarray,
    flag: str,
    xs: np.ndarray,
    ys: np.ndarray,
    geometry: ChipGeometry,
    *,
    offset: Optional[int] = None,
    record_size: int = 0
) -> None:
    """
    Sets `flag` on every listed (x, y) cell.

    Raises:
        OutOfRangeCoordinate: If a coordinate lies outside the chip. The
            error carries the index of the offending pair and, for binary
            input, its byte offset.
    """
    xs = np.asarray(xs, dtype=np.int64)
    ys = np.asarray(ys, dtype=np.int64)
    outside = (xs < 0) | (ys < 0) | (xs >= geometry.num_columns) | (ys >= geometry.num_rows)
    if outside.any():
        index = int(np.argmax(outside))
        raise OutOfRangeCoordinate(
            f"{flag} cell ({xs[index]}, {ys[index]}) is outside a "
            f"{geometry.num_columns}x{geometry.num_rows} chip",
            offset=None if offset is None else offset + index * record_size,
            record=index,
        )
    table[flag][ys * geometry.num_columns + xs] = True


def _bool_text(value: bool) -> str:
    return 'true' if value else 'false'


class CelParser(TabularParser):
    """Common table, accessors and export of every CEL layout."""

    def __init__(self, stream, *, owns_stream: bool = False):
        super().__init__(stream, owns_stream=owns_stream)
        self.headings = CEL_HEADINGS
        self.num_masked: Optional[int] = None
        self.num_outliers: Optional[int] = None
        self._cells: Optional[np.ndarray] = None

    @property
    def parsed(self) -> bool:
        return self._cells is not None

    @property
    def cells(self) -> np.ndarray:
        """The read-only cell table (numpy structured array, row-major)."""
        if self._cells is None:
            self.parse()
        return self._cells

    def cell(self, x: int, y: int) -> IntensityCell:
        """Returns the feature at column `x`, row `y`."""
        cells = self.cells
        if not (0 <= x < self.geometry.num_columns and 0 <= y < self.geometry.num_rows):
            raise IndexError(f"Cell ({x}, {y}) is outside the chip")
        record = cells[y * self.geometry.num_columns + x]
        return IntensityCell(
            column=int(record['column']),
            row=int(record['row']),
            intensity=float(record['intensity']),
            stddev=float(record['stddev']),
            pixels=int(record['pixels']),
            masked=bool(record['masked']),
            outlier=bool(record['outlier']),
        )

    def table(self, cdf=None) -> DataTable:
        rows = tuple(
            (
                str(column),
                str(row),
                records.format_float(intensity, 2),
                records.format_float(stddev, 2),
                str(pixels),
                _bool_text(outlier),
                _bool_text(masked),
            )
            for column, row, intensity, stddev, pixels, masked, outlier in self.cells.tolist()
        )
        return DataTable(headings=self.headings, rows=rows)

    def design_elements(self, chip_type: Optional[str] = None) -> list[str]:
        """Feature identifiers in export order."""
        cells = self.cells
        chip_type = chip_type or self.chip_type
        if not chip_type:
            raise ValueError("No chip type information available for this CEL file.")
        return [
            f"Affymetrix:Feature:{chip_type}:Probe({column},{row})"
            for column, row in zip(cells['column'].tolist(), cells['row'].tolist())
        ]

    def _check_geometry(self) -> None:
        if not self.geometry.consistent:
            warnings.warn(
                f"Number of cells ({self.geometry.num_cells}) does not agree with "
                f"{self.geometry.num_columns} columns x {self.geometry.num_rows} rows",
                GeometryMismatch,
                stacklevel=3,
            )

    def _apply_header_tags(self, text: str) -> dict[str, str]:
        """Applies the `key=value` header tag blob shared by v3 and v4."""
        tags = parse_header_tags(text)
        self.algorithm = tags.get('Algorithm') or 'Unknown'
        self.chip_type = chip_type_from_dat_header(tags.get('DatHeader'))
        self.add_parameters(parse_algorithm_parameters(tags.get('AlgorithmParameters')))
        return tags

    def _store(self, table: np.ndarray) -> None:
        table.flags.writeable = False
        self._cells = table
        logger.debug(
            "Decoded %d cells (%d masked, %d outliers)",
            len(table), int(table['masked'].sum()), int(table['outlier'].sum()),
        )


class CelV4(CelParser):
    """Decoder for the binary version 4 CEL layout."""

    def __init__(self, stream, *, owns_stream: bool = False):
        super().__init__(stream, owns_stream=owns_stream)
        self.cell_margin: Optional[int] = None
        self.num_subgrids: Optional[int] = None
        self._subgrids: tuple[Subgrid, ...] = ()

    @property
    def subgrids(self) -> tuple[Subgrid, ...]:
        """Subgrid records, carried through as read and never exported."""
        if self._cells is None:
            self.parse()
        return self._subgrids

    def parse_header(self, reader: BinaryReader) -> None:
        reader.seek(0)
        magic = reader.int32()
        if magic != FileFormat.CEL_V4:
            raise UnrecognizedFormat(f"Not a version 4 CEL file (magic {magic})", offset=0)
        self.version = reader.int32()
        num_columns = reader.int32()
        num_rows = reader.int32()
        num_cells = reader.int32()

        header_offset = reader.tell()
        tags = self._apply_header_tags(reader.string())
        try:
            num_columns = num_columns or int(tags.get('Cols', 0))
            num_rows = num_rows or int(tags.get('Rows', 0))
        except ValueError:
            raise MalformedSection(
                f"Non-integer Cols/Rows header tags ({tags.get('Cols')!r}, {tags.get('Rows')!r})",
                offset=header_offset,
            ) from None
        self.geometry = ChipGeometry(num_columns, num_rows, num_cells)
        self._check_geometry()
        self.add_stats({
            'Number of Cells': str(self.geometry.num_cells),
            'Rows': str(self.geometry.num_rows),
            'Columns': str(self.geometry.num_columns),
        })

        self.algorithm = reader.string()
        self.add_parameters(parse_cel_parameters(reader.string()))
        self.cell_margin = reader.int32()
        self.num_outliers = reader.uint32()
        self.num_masked = reader.uint32()
        self.num_subgrids = reader.int32()
        self.add_stats({
            'Number Cells Masked': str(self.num_masked),
            'Number Outlier Cells': str(self.num_outliers),
        })
        logger.debug(
            "CEL v4 %s: %s, algorithm %s, margin %d",
            self.chip_type, self.geometry, self.algorithm, self.cell_margin,
        )

    def parse(self) -> None:
        reader = BinaryReader(self.stream, '<')
        self.parse_header(reader)
        geometry = self.geometry

        raw = reader.records(records.CEL_V4_CELL, geometry.expected_cells)
        table = new_cell_table(geometry.num_columns, geometry.num_rows)
        table['intensity'] = records.round_half_away(raw['intensity'], 1)
        table['stddev'] = records.round_half_away(raw['stddev'], 1)
        table['pixels'] = raw['pixels']

        coordinate_size = records.itemsize(records.CEL_COORDINATE)
        for flag, count in (('masked', self.num_masked), ('outlier', self.num_outliers)):
            offset = reader.tell()
            coordinates = reader.records(records.CEL_COORDINATE, count)
            set_flags(
                table, flag, coordinates['x'], coordinates['y'], geometry,
                offset=offset, record_size=coordinate_size,
            )

        subgrids = reader.records(records.CEL_SUBGRID, self.num_subgrids)
        self._subgrids = tuple(Subgrid(*values) for values in subgrids.tolist())
        self._store(table)


class CelV3(CelParser):
    """
    Decoder for the legacy text (version 3) CEL layout.

    Sections are read in file order: `[CEL]`, `[HEADER]`, `[INTENSITY]`,
    `[MASKS]`, `[OUTLIERS]` and `[MODIFIED]`. Modified cells are counted
    but not applied.
    """

    def __init__(self, stream, *, owns_stream: bool = False):
        super().__init__(stream, owns_stream=owns_stream)
        self.num_modified: Optional[int] = None

    @staticmethod
    def _find_section(lines: LineReader, name: str) -> None:
        for line in lines:
            if line.startswith(f'[{name}]'):
                return
        raise MalformedSection(f"Missing [{name}] section", record=lines.line_number)

    @staticmethod
    def _tag_value(lines: LineReader, key: str) -> str:
        line = lines.readline()
        if line is None or not line.startswith(f'{key}='):
            raise MalformedSection(f"Expected '{key}=' but found {line!r}", record=lines.line_number)
        return line.partition('=')[2].strip()

    def _count(self, lines: LineReader) -> int:
        value = self._tag_value(lines, 'NumberCells')
        try:
            return int(value)
        except ValueError:
            raise MalformedSection(f"Non-integer cell count {value!r}", record=lines.line_number) from None

    @staticmethod
    def _expect_heading(lines: LineReader, heading: str) -> None:
        line = lines.readline()
        if line != f'CellHeader={heading}':
            raise MalformedSection(f"Unrecognized column headings {line!r}", record=lines.line_number)

    @staticmethod
    def _rows(lines: LineReader) -> Iterable[list[str]]:
        """Yields tab-separated fields of each row up to the next blank line."""
        for line in lines:
            if not line.strip():
                return
            yield [field.strip() for field in line.strip().split('\t')]

    def parse_header(self, lines: LineReader) -> None:
        lines.rewind()
        label = lines.readline()
        if label != '[CEL]':
            raise MalformedSection(f"Expected [CEL] but found {label!r}", record=lines.line_number)
        self.version = self._tag_value(lines, 'Version')

        self._find_section(lines, 'HEADER')
        header_lines = []
        for line in lines:
            if not line.strip():
                break
            header_lines.append(line)
        tags = self._apply_header_tags('\n'.join(header_lines))
        try:
            num_columns, num_rows = int(tags['Cols']), int(tags['Rows'])
        except (KeyError, ValueError):
            raise MalformedSection("Missing Cols/Rows header tags", record=lines.line_number) from None

        self._find_section(lines, 'INTENSITY')
        self.geometry = ChipGeometry(num_columns, num_rows, self._count(lines))
        self._check_geometry()
        self.add_stats({
            'Number of Cells': str(self.geometry.num_cells),
            'Rows': str(num_rows),
            'Columns': str(num_columns),
        })
        logger.debug("CEL v3 %s: %s", self.chip_type, self.geometry)

    def _coordinates(self, lines: LineReader) -> tuple[np.ndarray, np.ndarray, int]:
        count = self._count(lines)
        self._expect_heading(lines, 'X\tY')
        pairs = [(int(fields[0]), int(fields[1])) for fields in self._rows(lines)]
        xs = np.array([p[0] for p in pairs], dtype=np.int64)
        ys = np.array([p[1] for p in pairs], dtype=np.int64)
        return xs, ys, count

    def parse(self) -> None:
        lines = LineReader(self.stream)
        self.parse_header(lines)
        geometry = self.geometry

        self._expect_heading(lines, 'X\tY\tMEAN\tSTDV\tNPIXELS')
        table = new_cell_table(geometry.num_columns, geometry.num_rows)
        num_read = 0
        for fields in self._rows(lines):
            num_read += 1
            try:
                x, y = int(fields[0]), int(fields[1])
                intensity, stddev, pixels = float(fields[2]), float(fields[3]), int(fields[4])
            except (IndexError, ValueError):
                raise MalformedSection(f"Bad intensity row {fields!r}", record=lines.line_number) from None
            if not (0 <= x < geometry.num_columns and 0 <= y < geometry.num_rows):
                raise OutOfRangeCoordinate(f"Intensity cell ({x}, {y}) is outside the chip", record=lines.line_number)
            index = y * geometry.num_columns + x
            table['intensity'][index] = intensity
            table['stddev'][index] = stddev
            table['pixels'][index] = pixels
        if num_read != geometry.num_cells:
            raise MalformedSection(
                f"[INTENSITY] has {num_read} rows for {geometry.num_cells} cells",
                record=lines.line_number,
            )

        for section, flag in (('MASKS', 'masked'), ('OUTLIERS', 'outlier')):
            self._find_section(lines, section)
            xs, ys, count = self._coordinates(lines)
            set_flags(table, flag, xs, ys, geometry)
            if flag == 'masked':
                self.num_masked = count
                self.add_stats({'Number Cells Masked': str(count)})
            else:
                self.num_outliers = count
                self.add_stats({'Number Outlier Cells': str(count)})

        self._find_section(lines, 'MODIFIED')
        self.num_modified = self._count(lines)
        self.add_stats({'Number Cells Modified': str(self.num_modified)})
        if self.num_modified:
            logger.warning("Ignoring %d modified cells", self.num_modified)
        self._expect_heading(lines, 'X\tY\tORIGMEAN')
        self._store(table)
