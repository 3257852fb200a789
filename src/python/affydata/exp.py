# affydata/exp.py
"""
Decoder for experiment information (EXP) files.

An EXP file is a short tab-delimited text record of how a chip was
processed. After the label and version lines it holds three sections,
each ended by a blank line:

    [Sample Info]   chip type, chip lot and operator
    [Fluidics]      protocol, station, module, hybridization date and the
                    protocol's wash and stain steps in file order
    [Scanner]       pixel size, filter, scan temperature and date, scanner
                    ID and type, number of scans

Fluidics steps other than the named fields become the hybridization
parameters. They are also added to `parameters` under the sequential
names `HybridizationStep<n>-<protocol>`.
"""

import logging
import re
from typing import Optional, TextIO

from .abc import DatafileParser
from .exceptions import MalformedSection, UnrecognizedFormat
from .lowlevel import LineReader

logger = logging.getLogger(__name__)

EXP_LABEL = 'Affymetrix GeneChip Experiment Information'

_VERSION_LINE = re.compile(r'Version\t(\d+)')

SAMPLE_INFO_FIELDS = {
    'Chip Type': 'chip_type',
    'Chip Lot': 'chip_lot',
    'Operator': 'operator',
}

FLUIDICS_FIELDS = {
    'Protocol': 'protocol',
    'Station': 'station',
    'Module': 'module',
    'Hybridize Date': 'hyb_date',
}

SCANNER_FIELDS = {
    'Pixel Size': 'pixel_size',
    'Filter': 'filter',
    'Scan Temperature': 'scan_temp',
    'Scan Date': 'scan_date',
    'Scanner ID': 'scanner_id',
    'Number of Scans': 'num_scans',
    'Scanner Type': 'scanner_type',
}


class Exp(DatafileParser):
    """
    Decoder for the text EXP layout.

    All values are kept as the text found in the file; dates in
    particular are not normalized.
    """

    def __init__(self, stream, *, owns_stream: bool = False):
        super().__init__(stream, owns_stream=owns_stream)
        self.chip_lot: Optional[str] = None
        self.operator: Optional[str] = None
        self.protocol: Optional[str] = None
        self.station: Optional[str] = None
        self.module: Optional[str] = None
        self.hyb_date: Optional[str] = None
        self.pixel_size: Optional[str] = None
        self.filter: Optional[str] = None
        self.scan_temp: Optional[str] = None
        self.scan_date: Optional[str] = None
        self.scanner_id: Optional[str] = None
        self.num_scans: Optional[str] = None
        self.scanner_type: Optional[str] = None
        self.hyb_parameters: tuple[tuple[str, str], ...] = ()
        self._parsed = False

    @property
    def parsed(self) -> bool:
        return self._parsed

    @staticmethod
    def _section(lines: LineReader, name: str) -> list[tuple[str, str]]:
        """Returns the (name, value) pairs of a section, up to its blank line."""
        for line in lines:
            if line.startswith(f'[{name}]'):
                break
        else:
            raise MalformedSection(f"Missing [{name}] section", record=lines.line_number)

        pairs = []
        for line in lines:
            if not line.strip():
                break
            key, _, value = line.partition('\t')
            pairs.append((key, value))
        return pairs

    def parse(self) -> None:
        lines = LineReader(self.stream)
        lines.rewind()
        label = lines.readline()
        # Trailing whitespace after the label is tolerated.
        if label is None or label.rstrip() != EXP_LABEL:
            raise UnrecognizedFormat(f"Unrecognized EXP file label: {label!r}", record=lines.line_number)
        version_line = lines.readline() or ''
        match = _VERSION_LINE.match(version_line)
        if match is None:
            raise MalformedSection(f"Expected 'Version' but found {version_line!r}", record=lines.line_number)

        values: dict[str, str] = {}
        for key, value in self._section(lines, 'Sample Info'):
            if key in SAMPLE_INFO_FIELDS:
                values[SAMPLE_INFO_FIELDS[key]] = value

        hyb_parameters = []
        for key, value in self._section(lines, 'Fluidics'):
            if key in FLUIDICS_FIELDS:
                values[FLUIDICS_FIELDS[key]] = value
            else:
                hyb_parameters.append((key, value))

        for key, value in self._section(lines, 'Scanner'):
            if key in SCANNER_FIELDS:
                values[SCANNER_FIELDS[key]] = value

        self.version = int(match.group(1))
        for attribute, value in values.items():
            setattr(self, attribute, value)
        self.hyb_parameters = tuple(hyb_parameters)
        protocol = self.protocol or ''
        self.add_parameters({
            f'HybridizationStep{step}-{protocol}': value
            for step, (_, value) in enumerate(self.hyb_parameters)
        })
        self._parsed = True
        logger.debug(
            "EXP %s: protocol %s, %d hybridization steps",
            self.chip_type, self.protocol, len(self.hyb_parameters),
        )

    def export(self, fh: TextIO) -> None:
        """Writes the decoded fields back out in the EXP layout."""
        if not self._parsed:
            self.parse()

        def field(value: Optional[str]) -> str:
            return '' if value is None else value

        fh.write(f'{EXP_LABEL}\nVersion\t{self.version}\n\n')
        fh.write('[Sample Info]\n')
        for key, attribute in SAMPLE_INFO_FIELDS.items():
            fh.write(f'{key}\t{field(getattr(self, attribute))}\n')
        fh.write('\n[Fluidics]\n')
        fh.write(f'Protocol\t{field(self.protocol)}\n')
        for key, value in self.hyb_parameters:
            fh.write(f'{key}\t{value}\n')
        for key in ('Station', 'Module', 'Hybridize Date'):
            fh.write(f'{key}\t{field(getattr(self, FLUIDICS_FIELDS[key]))}\n')
        fh.write('\n[Scanner]\n')
        for key, attribute in SCANNER_FIELDS.items():
            fh.write(f'{key}\t{field(getattr(self, attribute))}\n')
