# affydata/chp.py
"""
Decoders for CHP (analysis results) files.

A CHP file holds one result record per probe set, in the same order as the
units of the chip's CDF. Exactly one record shape (`ResultVariant`) is
active for a whole file. Which one depends on the layout:

- XDA binary files declare a results type in the header; genotyping files
  are split into 10k and 100k shapes by their cell count, and expression
  files carry comparison fields when the body's analysis type says so.
- GDAC files (`GeneChip Sequence File`) come in versions 8, 12 and 13. Only
  the header of version 8 can be decoded.

Result files carry no probe-set names of their own; `table()` and
`design_elements()` take them from a parsed CDF.
"""

import logging
import re
from dataclasses import fields
from typing import Any, Callable, Optional, Sequence

import numpy as np

from .abc import DatafileParser, TabularParser
from .dataclasses import (
    BackgroundZone,
    ChipGeometry,
    DataTable,
    ExpressionComparisonResult,
    ExpressionResult,
    GenotypingResult100k,
    GenotypingResult10k,
    ResequencingResult,
    UniversalResult,
)
from .exceptions import MalformedSection, UnrecognizedFormat, UnsupportedLayout
from .lowlevel import BinaryReader
from .types import FileFormat, ResultsType, ResultVariant
from ._internal import records
from ._internal.tagvalue import (
    parse_legacy_statistics,
    parse_whitespace_parameters,
    split_statistic,
    strip_values,
)

logger = logging.getLogger(__name__)

# Genotyping chips with fewer cells than this use the 10k record shape. No
# header field identifies the chip generation reliably.
LARGE_CHIP_THRESHOLD = 25000

DETECTION_CALLS = ('Present', 'Marginal', 'Absent', 'No Call')

CHANGE_CALLS = (
    'null',
    'Increase',
    'Decrease',
    'Marginal Increase',
    'Marginal Decrease',
    'No change',
    'No call',
)

ALLELE_CALLS = (
    'NoCall', 'NoCall', 'NoCall', 'NoCall', 'NoCall', 'NoCall',
    'AA', 'BB', 'AB', 'AB_A', 'AB_B', 'NoCall',
)

# Expression analysis types whose records carry comparison fields.
COMPARISON_ANALYSIS_TYPES = (1, 3)

EXPRESSION_HEADINGS = (
    'ProbeSetName',
    'CHPPairs',
    'CHPPairsUsed',
    'CHPSignal',
    'CHPDetection',
    'CHPDetectionPvalue',
)

EXPRESSION_COMPARISON_HEADINGS = EXPRESSION_HEADINGS + (
    'CHPCommonPairs',
    'CHPSignalLogRatio',
    'CHPSignalLogRatioLow',
    'CHPSignalLogRatioHigh',
    'CHPChange',
    'CHPChangePvalue',
)

GENOTYPING_10K_HEADINGS = (
    'ProbeSetName',
    'CHPAllele',
    'CHPAllelePvalue',
    'CHPAlleleRAS1',
    'CHPAlleleRAS2',
)

GENOTYPING_100K_HEADINGS = (
    'ProbeSetName',
    'CHPAllele',
    'CHPAllelePvalue',
    'CHPAllelePvalueAA',
    'CHPAllelePvalueAB',
    'CHPAllelePvalueBB',
    'CHPAllelePvalueNoCall',
)

RESEQUENCING_HEADINGS = ('ProbeSetName', 'CHPSequence', 'CHPBaseCallScores')

UNIVERSAL_HEADINGS = ('ProbeSetName', 'CHPBackground')

HEADINGS: dict[ResultVariant, tuple[str, ...]] = {
    ResultVariant.EXPRESSION: EXPRESSION_HEADINGS,
    ResultVariant.EXPRESSION_COMPARISON: EXPRESSION_COMPARISON_HEADINGS,
    ResultVariant.GENOTYPING_10K: GENOTYPING_10K_HEADINGS,
    ResultVariant.GENOTYPING_100K: GENOTYPING_100K_HEADINGS,
    ResultVariant.RESEQUENCING: RESEQUENCING_HEADINGS,
    ResultVariant.UNIVERSAL: UNIVERSAL_HEADINGS,
}

# Decimal places kept when decoding expression records.
EXPRESSION_ROUNDING = {
    'detection_pvalue': 5,
    'signal': 1,
    'change_pvalue': 5,
    'signal_log_ratio': 1,
    'signal_log_ratio_low': 1,
    'signal_log_ratio_high': 1,
}


def call_label(labels: Sequence[str], code: int) -> str:
    """Maps a categorical call code to its label; unknown codes give 'null'."""
    if 0 <= code < len(labels):
        return labels[code]
    return 'null'


def _fixed(precision: int) -> Callable[[float], str]:
    return lambda value: records.format_float(value, precision)


def _calls(labels: Sequence[str]) -> Callable[[int], str]:
    return lambda code: call_label(labels, code)


def _scores(values: Sequence[float]) -> str:
    return ','.join(records.format_compact(value) for value in values)


# Heading -> (result field, text formatter).
COLUMNS: dict[str, tuple[str, Callable[[Any], str]]] = {
    'CHPPairs': ('pairs', str),
    'CHPPairsUsed': ('pairs_used', str),
    'CHPSignal': ('signal', _fixed(1)),
    'CHPDetection': ('detection', _calls(DETECTION_CALLS)),
    'CHPDetectionPvalue': ('detection_pvalue', _fixed(5)),
    'CHPCommonPairs': ('common_pairs', str),
    'CHPSignalLogRatio': ('signal_log_ratio', _fixed(1)),
    'CHPSignalLogRatioLow': ('signal_log_ratio_low', _fixed(1)),
    'CHPSignalLogRatioHigh': ('signal_log_ratio_high', _fixed(1)),
    'CHPChange': ('change', _calls(CHANGE_CALLS)),
    'CHPChangePvalue': ('change_pvalue', _fixed(5)),
    'CHPAllele': ('allele', _calls(ALLELE_CALLS)),
    'CHPAllelePvalue': ('allele_pvalue', _fixed(6)),
    'CHPAlleleRAS1': ('ras1', _fixed(4)),
    'CHPAlleleRAS2': ('ras2', _fixed(4)),
    'CHPAllelePvalueAA': ('pvalue_aa', _fixed(6)),
    'CHPAllelePvalueAB': ('pvalue_ab', _fixed(6)),
    'CHPAllelePvalueBB': ('pvalue_bb', _fixed(6)),
    'CHPAllelePvalueNoCall': ('pvalue_no_call', _fixed(6)),
    'CHPSequence': ('sequence', str),
    'CHPBaseCallScores': ('scores', _scores),
    'CHPBackground': ('background', records.format_compact),
}


def build_results(cls: type, raw: np.ndarray, rounding: Optional[dict[str, int]] = None) -> tuple:
    """
    Builds one `cls` instance per decoded record.

    Only the fields `cls` declares are taken from `raw`; any other record
    fields (unused slots) are dropped.
    """
    rounding = rounding or {}
    columns = []
    for result_field in fields(cls):
        values = raw[result_field.name]
        if result_field.name in rounding:
            values = records.round_half_away(values, rounding[result_field.name])
        columns.append(np.asarray(values).tolist())
    return tuple(cls(*values) for values in zip(*columns))


class ChpParser(TabularParser):
    """Common result storage, table building and export of every CHP layout."""

    def __init__(self, stream, *, owns_stream: bool = False):
        super().__init__(stream, owns_stream=owns_stream)
        self.variant: Optional[ResultVariant] = None
        self._results: Optional[tuple] = None

    @property
    def parsed(self) -> bool:
        return self._results is not None

    @property
    def results(self) -> tuple:
        """One result dataclass per probe set, in CDF unit order."""
        if self._results is None:
            self.parse()
        return self._results

    def _store(self, variant: ResultVariant, results: Sequence) -> None:
        self.variant = variant
        self.headings = HEADINGS[variant]
        self._results = tuple(results)
        logger.debug("Decoded %d %s records", len(self._results), variant.value)

    def _probeset_names(self, cdf: DatafileParser) -> list[str]:
        if cdf is None:
            raise ValueError("A parsed CDF is required to name the probe sets of a CHP file.")
        ids = cdf.probeset_ids
        names = []
        for index in range(len(self.results)):
            name = ids[index] if index < len(ids) else ''
            if not name:
                logger.warning("No CDF data for CHP unit %d. Incorrect CDF file used?", index + 1)
            names.append(name or '')
        return names

    def table(self, cdf: Optional[DatafileParser] = None) -> DataTable:
        names = self._probeset_names(cdf)
        columns = [COLUMNS[heading] for heading in self.headings[1:]]
        rows = []
        for name, result in zip(names, self.results):
            row = [name]
            for attribute, formatter in columns:
                value = getattr(result, attribute)
                row.append('' if value is None else formatter(value))
            rows.append(tuple(row))
        return DataTable(headings=self.headings, rows=tuple(rows))

    def design_elements(self, cdf: DatafileParser, chip_type: Optional[str] = None) -> list[str]:
        """Composite sequence identifiers for each probe set, in table order."""
        names = self._probeset_names(cdf)
        chip_type = chip_type or self.chip_type or cdf.chip_type
        if not chip_type:
            raise ValueError("No chip type information available for this CHP file.")
        return [f"Affymetrix:CompositeSequence:{chip_type}:{name}" for name in names]


# =============================================================================
# XDA (binary)
# =============================================================================

class XdaChp(ChpParser):
    """Decoder for the binary (XDA) CHP layout."""

    def __init__(self, stream, *, owns_stream: bool = False):
        super().__init__(stream, owns_stream=owns_stream)
        self.results_type: Optional[ResultsType] = None
        self.program_id: Optional[str] = None
        self.cel_file: Optional[str] = None
        self.algorithm_version: Optional[str] = None
        self.analysis_type: Optional[int] = None
        self.smooth_factor: Optional[float] = None
        self.background_zones: tuple[BackgroundZone, ...] = ()

    def parse_header(self, reader: BinaryReader) -> None:
        reader.seek(0)
        magic = reader.int32()
        if magic != FileFormat.XDA_CHP:
            raise UnrecognizedFormat(f"Not an XDA CHP file (magic {magic})", offset=0)
        self.version = reader.int32()
        num_columns = reader.uint16()
        num_rows = reader.uint16()
        num_cells = reader.int32()
        num_qc = reader.int32()
        self.geometry = ChipGeometry(num_columns, num_rows, num_cells, num_qc)

        offset = reader.tell()
        code = reader.int32()
        try:
            self.results_type = ResultsType(code)
        except ValueError:
            raise UnrecognizedFormat(f"Unrecognized CHP results type {code}", offset=offset) from None

        self.program_id = reader.string()
        self.cel_file = reader.string()
        self.chip_type = reader.string()
        self.algorithm = reader.string()
        self.algorithm_version = reader.string()

        num_parameters = reader.int32()
        self.add_parameters(strip_values(
            (reader.string(), reader.string()) for _ in range(num_parameters)
        ))
        num_stats = reader.int32()
        for name, value in strip_values(
            (reader.string(), reader.string()) for _ in range(num_stats)
        ).items():
            self.add_stats(split_statistic(name, value))
        logger.debug(
            "XDA CHP %s: %s, results type %s, algorithm %s %s",
            self.chip_type, self.geometry, self.results_type.name,
            self.algorithm, self.algorithm_version,
        )

    def parse(self) -> None:
        reader = BinaryReader(self.stream, '<')
        self.parse_header(reader)
        num_cells = self.geometry.num_cells

        num_zones = reader.int32()
        self.smooth_factor = reader.float32()
        zones = reader.records(records.CHP_BACKGROUND_ZONE, num_zones)
        self.background_zones = tuple(BackgroundZone(*values) for values in zones.tolist())

        self.analysis_type = None
        if self.results_type == ResultsType.EXPRESSION:
            self.analysis_type = reader.uint8()
        record_size = reader.int32()

        match self.results_type:
            case ResultsType.EXPRESSION if self.analysis_type in COMPARISON_ANALYSIS_TYPES:
                variant = ResultVariant.EXPRESSION_COMPARISON
                raw = reader.records(records.CHP_EXPRESSION_COMPARISON, num_cells)
                results = build_results(ExpressionComparisonResult, raw, EXPRESSION_ROUNDING)
            case ResultsType.EXPRESSION:
                variant = ResultVariant.EXPRESSION
                raw = reader.records(records.CHP_EXPRESSION, num_cells)
                results = build_results(ExpressionResult, raw, EXPRESSION_ROUNDING)
            case ResultsType.GENOTYPING if num_cells < LARGE_CHIP_THRESHOLD:
                variant = ResultVariant.GENOTYPING_10K
                raw = reader.records(records.CHP_GENOTYPING_10K, num_cells)
                results = build_results(GenotypingResult10k, raw)
            case ResultsType.GENOTYPING:
                variant = ResultVariant.GENOTYPING_100K
                raw = reader.records(records.CHP_GENOTYPING_100K, num_cells)
                results = build_results(GenotypingResult100k, raw)
            case ResultsType.RESEQUENCING:
                variant = ResultVariant.RESEQUENCING
                results = tuple(
                    self._resequencing_record(reader, record_size, index)
                    for index in range(num_cells)
                )
            case ResultsType.UNIVERSAL:
                variant = ResultVariant.UNIVERSAL
                raw = reader.records(records.CHP_UNIVERSAL, num_cells)
                results = build_results(UniversalResult, raw)
        self._store(variant, results)

    @staticmethod
    def _resequencing_record(reader: BinaryReader, record_size: int, index: int) -> ResequencingResult:
        offset = reader.tell()
        length = reader.int32()
        sequence = reader.ascii(length)
        score_bytes = record_size - length - 4
        if score_bytes < 0 or score_bytes % 4:
            raise MalformedSection(
                f"Base-call score block of {score_bytes} bytes "
                f"(record size {record_size}, sequence length {length})",
                offset=offset,
                record=index,
            )
        scores = reader.records([('score', 'f4')], score_bytes // 4)
        return ResequencingResult(sequence=sequence, scores=tuple(scores['score'].tolist()))


# =============================================================================
# GDAC (legacy)
# =============================================================================

GDAC_CHP_LABEL = 'GeneChip Sequence File'
GDAC_CHP_VERSIONS = (8, 12, 13)

# Fixed-width text fields of the legacy header.
PROBE_ARRAY_TYPE_WIDTH = 256
PARENT_CEL_WIDTH = 256

EXPRESSION_UNIT_TYPE = 3

_PROBE_ARRAY_TYPE = re.compile(r'[\w-]*')


def probe_array_type(field_text: str) -> str:
    """Extracts the chip type from the padded probe-array-type field."""
    first_line = re.split(r'[\n\r]+', field_text)[0]
    return _PROBE_ARRAY_TYPE.match(first_line).group(0)


class GdacChp(ChpParser):
    """
    Header decoder shared by the GDAC CHP versions.

    On its own this class is the header probe used for version dispatch:
    `parse_header()` reads the label and version, then whatever header
    fields that version defines. Body decoding lives in the per-version
    subclasses.
    """

    def __init__(self, stream, *, owns_stream: bool = False):
        super().__init__(stream, owns_stream=owns_stream)
        self.algorithm_version: Optional[str] = None
        self.parent_cel: Optional[str] = None
        self.program_id: Optional[str] = None

    def parse_header(self, reader: Optional[BinaryReader] = None) -> BinaryReader:
        """
        Reads the header and returns the reader positioned at the body.

        Raises:
            UnrecognizedFormat: If the label or version is not recognized.
        """
        reader = reader or BinaryReader(self.stream, '<')
        reader.seek(0)
        label = reader.ascii(len(GDAC_CHP_LABEL))
        if label != GDAC_CHP_LABEL:
            raise UnrecognizedFormat(f"Unknown CHP file format: {label!r}", offset=0)
        offset = reader.tell()
        self.version = reader.int32()
        if self.version not in GDAC_CHP_VERSIONS:
            raise UnrecognizedFormat(f"Unrecognized CHP file version {self.version}", offset=offset)

        self.headings = EXPRESSION_HEADINGS
        self.algorithm = reader.string()
        if self.version == 8:
            self.add_parameters(parse_whitespace_parameters(reader.string()))
            num_columns = reader.int32()
            num_rows = reader.int32()
            num_cells = reader.int32()
            max_cell_no = reader.int32()
            num_qc = reader.int32()
            self.geometry = ChipGeometry(num_columns, num_rows, num_cells, num_qc)
            # Deprecated per-cell tables up to the probe array type.
            reader.skip((max_cell_no + num_cells) * 2 * 4)
            self.chip_type = probe_array_type(reader.ascii(PROBE_ARRAY_TYPE_WIDTH))
        else:
            self.algorithm_version = reader.string()
            self.add_parameters(parse_whitespace_parameters(reader.string()))
            self.add_stats(parse_legacy_statistics(reader.string()))
            num_columns = reader.int32()
            num_rows = reader.int32()
            num_cells = reader.int32()
            self.geometry = ChipGeometry(num_columns, num_rows, num_cells)
        logger.debug("GDAC CHP version %d: %s, algorithm %s", self.version, self.geometry, self.algorithm)
        return reader

    def parse(self) -> None:
        reader = self.parse_header()
        self._read_body(reader)

    def _read_body(self, reader: BinaryReader) -> None:
        raise UnsupportedLayout(
            f"Version {self.version} CHP bodies are decoded by the version-specific parser",
            offset=reader.tell(),
        )


class ChpV8(GdacChp):
    """
    Version 8 GDAC CHP. Only the header (algorithm, parameters, geometry,
    chip type) can be decoded.
    """

    def _read_body(self, reader: BinaryReader) -> None:
        raise UnsupportedLayout("CHP file version 8 bodies are not supported", offset=reader.tell())


class ChpV12(GdacChp):
    """Version 12 GDAC CHP with expression results."""

    def _read_body(self, reader: BinaryReader) -> None:
        num_cells = self.geometry.num_cells
        offset = reader.tell()
        max_cell_no = reader.int32()
        num_qc = reader.int32()
        if num_cells > max_cell_no:
            raise MalformedSection(
                f"{num_cells} probe sets exceed the maximum of {max_cell_no}", offset=offset
            )
        self.geometry = ChipGeometry(
            self.geometry.num_columns, self.geometry.num_rows, num_cells, num_qc
        )

        unused = (max_cell_no - num_cells) * 4
        reader.records(records.INT32_VALUE, num_cells)   # cell numbers
        reader.records(records.INT32_VALUE, num_cells)   # pair counts
        reader.skip(unused)
        unit_types = reader.records(records.INT32_VALUE, num_cells)['value'].tolist()
        reader.skip(unused)
        reader.records(records.INT32_VALUE, num_cells)   # probe counts

        self.chip_type = probe_array_type(reader.ascii(PROBE_ARRAY_TYPE_WIDTH))
        self.parent_cel = re.split(r'[\x00\r\n]', reader.ascii(PARENT_CEL_WIDTH))[0].strip()
        self.program_id = reader.string()

        results = []
        for index, unit_type in enumerate(unit_types):
            if unit_type != EXPRESSION_UNIT_TYPE:
                raise UnsupportedLayout(
                    f"CHP unit type {unit_type} is not supported",
                    offset=reader.tell(),
                    record=index,
                )
            results.append(self._expression_unit(reader))

        offset = reader.tell()
        if reader.int32():
            raise UnsupportedLayout("Resequencing data in CHP files is not supported", offset=offset)
        for _ in range(num_qc):
            num_probes = reader.int32()
            reader.int32()   # QC unit type
            reader.records(records.GDAC_QC_PROBE, num_probes)

        if any(result.change is not None for result in results):
            self._store(ResultVariant.EXPRESSION_COMPARISON, results)
        else:
            self._store(ResultVariant.EXPRESSION, [
                ExpressionResult(r.detection, r.detection_pvalue, r.signal, r.pairs, r.pairs_used)
                for r in results
            ])

    @staticmethod
    def _expression_unit(reader: BinaryReader) -> ExpressionComparisonResult:
        pairs = reader.int32()
        pairs_used = reader.int32()
        reader.skip(5 * 4)
        detection_pvalue = records.round_half_away(reader.float32(), 5)
        reader.float32()
        signal = records.round_half_away(reader.float32(), 1)
        detection = reader.int32()
        reader.records(records.GDAC_PROBE_PAIR, pairs)

        if not reader.int32():
            return ExpressionComparisonResult(detection, detection_pvalue, signal, pairs, pairs_used)

        common_pairs = reader.int32()
        reader.skip(3 * 4)
        change = reader.int32()
        reader.int8()      # baseline absent
        reader.int8()
        reader.skip(2 * 4)
        signal_log_ratio_high = reader.int32() / 1000
        reader.skip(2 * 4)
        signal_log_ratio = reader.int32() / 1000
        reader.skip(4)
        signal_log_ratio_low = reader.int32() / 1000
        change_pvalue = reader.float32()
        return ExpressionComparisonResult(
            detection=detection,
            detection_pvalue=detection_pvalue,
            signal=signal,
            pairs=pairs,
            pairs_used=pairs_used,
            change=change,
            change_pvalue=records.round_half_away(change_pvalue, 5),
            signal_log_ratio=records.round_half_away(signal_log_ratio, 1),
            signal_log_ratio_low=records.round_half_away(signal_log_ratio_low, 1),
            signal_log_ratio_high=records.round_half_away(signal_log_ratio_high, 1),
            common_pairs=common_pairs,
        )


class ChpV13(ChpV12):
    """Version 13 GDAC CHP; the body layout is that of version 12."""
