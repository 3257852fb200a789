# affydata/cdf.py
"""
Decoders for CDF (chip definition) files.

Two on-disk layouts describe the same thing: the legacy GDAC text layout
(`[CDF]` / `[Chip]` / `[UnitN]` / `[UnitN_BlockM]` sections) and the XDA
binary layout. Both produce the chip geometry, the QC units, and the probe
units with their blocks and cells.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Sequence

from .abc import DatafileParser
from .dataclasses import ChipGeometry, ProbeBlock, ProbeCell, ProbeUnit, QcProbe, QcUnit
from .exceptions import MalformedSection, TruncatedInput, UnrecognizedFormat
from .lowlevel import BinaryReader, LineReader
from .types import FileFormat
from ._internal import records

logger = logging.getLogger(__name__)

# Unit name placeholder used by expression CDFs; the real name is on the block.
UNNAMED_UNIT = 'NONE'

GDAC_CDF_VERSION = 'GC3.0'


class CdfParser(DatafileParser):
    """Common state and accessors of both CDF layouts."""

    def __init__(self, stream, *, owns_stream: bool = False):
        super().__init__(stream, owns_stream=owns_stream)
        self._units: Optional[tuple[ProbeUnit, ...]] = None
        self._qc_units: tuple[QcUnit, ...] = ()

    @property
    def parsed(self) -> bool:
        return self._units is not None

    @property
    def units(self) -> tuple[ProbeUnit, ...]:
        if self._units is None:
            self.parse()
        return self._units

    @property
    def qc_units(self) -> tuple[QcUnit, ...]:
        if self._units is None:
            self.parse()
        return self._qc_units

    @property
    def probeset_ids(self) -> list[str]:
        """Unit names in file order; index i names result record i."""
        return [unit.name for unit in self.units]

    def _store(self, units: Sequence[ProbeUnit], qc_units: Sequence[QcUnit]) -> None:
        self._qc_units = tuple(qc_units)
        self._units = tuple(units)
        logger.debug("Decoded %d units and %d QC units", len(self._units), len(self._qc_units))


def resolve_unit_name(name: str, blocks: Sequence[ProbeBlock], unit_number: int) -> str:
    """
    Returns the name a unit should be known by.

    Units named `NONE` (or with no name at all) take the name of their
    first block.

    Raises:
        MalformedSection: If no usable name can be found.
    """
    if name and name != UNNAMED_UNIT:
        return name
    if blocks and blocks[0].name and blocks[0].name != UNNAMED_UNIT:
        return blocks[0].name
    raise MalformedSection(f"No name for unit {unit_number}")


# =============================================================================
# GDAC (text)
# =============================================================================

_SECTION = re.compile(r'^\[(.*)\]\s*$')
_CELL_ROW = re.compile(r'^Cell\d+=(.*)$')
_UNIT_SECTION = re.compile(r'^Unit(\d+)$')
_BLOCK_SECTION = re.compile(r'^Unit(\d+)_Block(\d+)$')
_QC_SECTION = re.compile(r'^QC(\d+)$')


@dataclass
class _Section:
    name: str
    line_number: int
    tags: dict[str, str] = field(default_factory=dict)
    rows: list[list[str]] = field(default_factory=list)

    def tag(self, key: str) -> str:
        try:
            return self.tags[key]
        except KeyError:
            raise MalformedSection(
                f"Missing '{key}' in section [{self.name}]", record=self.line_number
            ) from None

    def int_tag(self, key: str) -> int:
        value = self.tag(key)
        try:
            return int(value)
        except ValueError:
            raise MalformedSection(
                f"Non-integer '{key}={value}' in section [{self.name}]",
                record=self.line_number,
            ) from None

    def columns(self, *names: str) -> list[int]:
        """Positions of the named columns in this section's CellHeader."""
        header = self.tag('CellHeader').split('\t')
        try:
            return [header.index(name) for name in names]
        except ValueError as e:
            raise MalformedSection(
                f"Unexpected CellHeader in section [{self.name}]: {e}",
                record=self.line_number,
            ) from None


def _read_sections(lines: LineReader) -> list[_Section]:
    sections: list[_Section] = []
    current: Optional[_Section] = None
    for line in lines:
        stripped = line.strip()
        if not stripped:
            continue
        if match := _SECTION.match(stripped):
            current = _Section(match.group(1), lines.line_number)
            sections.append(current)
            continue
        if current is None:
            raise MalformedSection("Content before the first section", record=lines.line_number)
        if match := _CELL_ROW.match(stripped):
            current.rows.append(match.group(1).split('\t'))
        else:
            key, _, value = stripped.partition('=')
            current.tags[key] = value
    return sections


class GdacCdf(CdfParser):
    """Decoder for the legacy line-oriented CDF layout."""

    def parse(self) -> None:
        lines = LineReader(self.stream)
        lines.rewind()
        label = lines.readline()
        if label is None or label.strip() != '[CDF]':
            raise MalformedSection(f"Expected [CDF] but found {label!r}", record=lines.line_number)
        lines.rewind()

        sections = _read_sections(lines)
        header = sections[0]
        version = header.tag('Version')
        if version != GDAC_CDF_VERSION:
            raise UnrecognizedFormat(f"Unrecognized CDF version: {version}", record=header.line_number)
        self.version = version

        by_name = {s.name: s for s in sections}
        chip = by_name.get('Chip')
        if chip is None:
            raise MalformedSection("Missing [Chip] section", record=lines.line_number)
        self.chip_type = chip.tags.get('Name') or None
        self.geometry = ChipGeometry(
            num_columns=chip.int_tag('Cols'),
            num_rows=chip.int_tag('Rows'),
            num_cells=chip.int_tag('NumberOfUnits'),
            num_qc_cells=chip.int_tag('NumQCUnits'),
        )
        logger.debug("GDAC CDF %s: %s", self.chip_type, self.geometry)

        qc_units = [self._qc_unit(s) for s in sections if _QC_SECTION.match(s.name)]

        blocks: dict[str, list[_Section]] = {}
        for section in sections:
            if match := _BLOCK_SECTION.match(section.name):
                blocks.setdefault(match.group(1), []).append(section)

        units = []
        for section in sections:
            if match := _UNIT_SECTION.match(section.name):
                units.append(self._unit(section, blocks.get(match.group(1), [])))

        if len(units) < self.geometry.num_cells:
            raise TruncatedInput(
                f"Expected {self.geometry.num_cells} units but found {len(units)}",
                record=lines.line_number,
            )
        self._store(units, qc_units)

    @staticmethod
    def _qc_unit(section: _Section) -> QcUnit:
        probes: list[QcProbe] = []
        if section.rows:
            x, y, plen, match, bg = section.columns('X', 'Y', 'PLEN', 'MATCH', 'BG')
            for row in section.rows:
                probes.append(QcProbe(
                    x=int(row[x]), y=int(row[y]), probe_length=int(row[plen]),
                    match=int(row[match]), background=int(row[bg]),
                ))
        return QcUnit(qc_type=section.int_tag('Type'), probes=tuple(probes))

    @staticmethod
    def _block(section: _Section) -> ProbeBlock:
        cells: list[ProbeCell] = []
        if section.rows:
            x, y, pbase, tbase, atom = section.columns('X', 'Y', 'PBASE', 'TBASE', 'ATOM')
            for row in section.rows:
                cells.append(ProbeCell(
                    atom=int(row[atom]), x=int(row[x]), y=int(row[y]),
                    probe_base=row[pbase], target_base=row[tbase],
                ))
        return ProbeBlock(name=section.tags.get('Name', ''), cells=tuple(cells))

    def _unit(self, section: _Section, block_sections: list[_Section]) -> ProbeUnit:
        unit_number = section.int_tag('UnitNumber')
        blocks = tuple(self._block(s) for s in block_sections)
        try:
            name = resolve_unit_name(section.tags.get('Name', ''), blocks, unit_number)
        except MalformedSection as e:
            e.record = section.line_number
            raise
        return ProbeUnit(
            unit_number=unit_number,
            name=name,
            unit_type=int(section.tags.get('UnitType', 0)),
            blocks=blocks,
        )


# =============================================================================
# XDA (binary)
# =============================================================================

NAME_WIDTH = 64


class XdaCdf(CdfParser):
    """Decoder for the binary (XDA) CDF layout."""

    def __init__(self, stream, *, owns_stream: bool = False):
        super().__init__(stream, owns_stream=owns_stream)
        self.reference_sequence: Optional[str] = None

    def parse(self) -> None:
        reader = BinaryReader(self.stream, '<')
        reader.seek(0)
        magic = reader.int32()
        if magic != FileFormat.XDA_CDF:
            raise UnrecognizedFormat(f"Not an XDA CDF file (magic {magic})", offset=0)
        self.version = reader.int32()
        num_columns = reader.uint16()
        num_rows = reader.uint16()
        num_units = reader.int32()
        num_qc = reader.int32()
        self.geometry = ChipGeometry(num_columns, num_rows, num_units, num_qc)
        self.reference_sequence = reader.string()
        logger.debug("XDA CDF version %s: %s", self.version, self.geometry)

        names = [reader.fixed_name(NAME_WIDTH) for _ in range(num_units)]
        # File offsets of each QC unit and unit; the records follow in order.
        reader.records(records.INT32_VALUE, num_qc)
        reader.records(records.INT32_VALUE, num_units)

        qc_units = [self._qc_unit(reader) for _ in range(num_qc)]
        units = [self._unit(reader, name, index) for index, name in enumerate(names)]
        self._store(units, qc_units)

    @staticmethod
    def _qc_unit(reader: BinaryReader) -> QcUnit:
        qc_type = reader.uint16()
        num_probes = reader.int32()
        probes = reader.records(records.CDF_QC_PROBE, num_probes)
        return QcUnit(
            qc_type=qc_type,
            probes=tuple(QcProbe(*values) for values in probes.tolist()),
        )

    def _unit(self, reader: BinaryReader, name: str, index: int) -> ProbeUnit:
        unit_type = reader.uint16()
        reader.uint8()      # direction
        reader.int32()      # atoms
        num_blocks = reader.int32()
        reader.int32()      # cells
        unit_number = reader.int32()
        reader.uint8()      # cells per atom

        blocks = tuple(self._block(reader) for _ in range(num_blocks))
        try:
            name = resolve_unit_name(name, blocks, unit_number)
        except MalformedSection as e:
            e.record, e.offset = index, reader.tell()
            raise
        return ProbeUnit(unit_number=unit_number, name=name, unit_type=unit_type, blocks=blocks)

    def _block(self, reader: BinaryReader) -> ProbeBlock:
        reader.int32()      # atoms
        num_cells = reader.int32()
        reader.uint8()      # cells per atom
        reader.uint8()      # direction
        reader.int32()      # first atom
        reader.int32()      # last atom
        name = reader.fixed_name(NAME_WIDTH)
        if self.version >= 2:
            reader.uint16() # wobble situation
            reader.uint16() # allele code
        layout = records.CDF_CELL_V2 if self.version >= 2 else records.CDF_CELL
        cells = reader.records(layout, num_cells)
        return ProbeBlock(
            name=name,
            cells=tuple(
                ProbeCell(
                    atom=int(cell['atom']),
                    x=int(cell['x']),
                    y=int(cell['y']),
                    probe_base=cell['probe_base'].decode('latin-1'),
                    target_base=cell['target_base'].decode('latin-1'),
                    index_pos=int(cell['index_pos']),
                )
                for cell in cells
            ),
        )
