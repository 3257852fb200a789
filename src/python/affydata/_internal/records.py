# affydata/_internal/records.py

"""
Internal record layouts and numeric helpers.

Record layouts are numpy structured dtypes declared without a byte order;
`BinaryReader.records` applies the stream's byte order when decoding.
All layouts are packed (no alignment padding), matching the on-disk format.
"""

from typing import TypeAlias
import numpy as np

RecordLayout: TypeAlias = list[tuple[str, str]]

# --- CEL ---

CEL_V4_CELL: RecordLayout = [
    ('intensity', 'f4'),
    ('stddev', 'f4'),
    ('pixels', 'u2'),
]

CEL_COORDINATE: RecordLayout = [
    ('x', 'u2'),
    ('y', 'u2'),
]

CEL_SUBGRID: RecordLayout = [
    ('row', 'i4'),
    ('column', 'i4'),
    ('upper_left_x', 'f4'),
    ('upper_left_y', 'f4'),
    ('upper_right_x', 'f4'),
    ('upper_right_y', 'f4'),
    ('lower_left_x', 'f4'),
    ('lower_left_y', 'f4'),
    ('lower_right_x', 'f4'),
    ('lower_right_y', 'f4'),
    ('left_cell', 'i4'),
    ('top_cell', 'i4'),
    ('right_cell', 'i4'),
    ('bottom_cell', 'i4'),
]

# In-memory cell table shared by all CEL decoders (native byte order).
CEL_TABLE = np.dtype([
    ('column', 'u4'),
    ('row', 'u4'),
    ('intensity', 'f8'),
    ('stddev', 'f8'),
    ('pixels', 'u4'),
    ('masked', '?'),
    ('outlier', '?'),
])

# --- CDF (XDA) ---

CDF_QC_PROBE: RecordLayout = [
    ('x', 'u2'),
    ('y', 'u2'),
    ('probe_length', 'u1'),
    ('match', 'i1'),
    ('background', 'u1'),
]

CDF_CELL: RecordLayout = [
    ('atom', 'i4'),
    ('x', 'u2'),
    ('y', 'u2'),
    ('index_pos', 'i4'),
    ('probe_base', 'S1'),
    ('target_base', 'S1'),
]

# Version 2 and later append probe length and probe grouping.
CDF_CELL_V2: RecordLayout = CDF_CELL + [
    ('probe_length', 'u2'),
    ('probe_grouping', 'u2'),
]

# --- CHP (XDA) ---

CHP_BACKGROUND_ZONE: RecordLayout = [
    ('x', 'f4'),
    ('y', 'f4'),
    ('value', 'f4'),
]

CHP_EXPRESSION: RecordLayout = [
    ('detection', 'u1'),
    ('detection_pvalue', 'f4'),
    ('signal', 'f4'),
    ('pairs', 'u2'),
    ('pairs_used', 'u2'),
]

CHP_EXPRESSION_COMPARISON: RecordLayout = CHP_EXPRESSION + [
    ('change', 'u1'),
    ('change_pvalue', 'f4'),
    ('signal_log_ratio', 'f4'),
    ('signal_log_ratio_low', 'f4'),
    ('signal_log_ratio_high', 'f4'),
    ('common_pairs', 'u2'),
]

CHP_GENOTYPING_100K: RecordLayout = [
    ('allele', 'u1'),
    ('allele_pvalue', 'f4'),
    ('pvalue_aa', 'f4'),
    ('pvalue_ab', 'f4'),
    ('pvalue_bb', 'f4'),
    ('pvalue_no_call', 'f4'),
]

# The two trailing floats are present on disk but carry nothing.
CHP_GENOTYPING_10K: RecordLayout = [
    ('allele', 'u1'),
    ('allele_pvalue', 'f4'),
    ('ras1', 'f4'),
    ('ras2', 'f4'),
    ('unused1', 'f4'),
    ('unused2', 'f4'),
]

CHP_UNIVERSAL: RecordLayout = [
    ('background', 'f4'),
]

# --- CHP (GDAC v12/v13) ---

GDAC_PROBE_PAIR: RecordLayout = [
    ('background', 'f4'),
    ('used', 'i4'),
    ('pm_x', 'i4'),
    ('pm_y', 'i4'),
    ('pm_intensity', 'f4'),
    ('pm_stdev', 'f4'),
    ('pm_pixels', 'i4'),
    ('pm_masked', 'i1'),
    ('pm_outlier', 'i1'),
    ('mm_x', 'i4'),
    ('mm_y', 'i4'),
    ('mm_intensity', 'f4'),
    ('mm_stdev', 'f4'),
    ('mm_pixels', 'i4'),
    ('mm_masked', 'i1'),
    ('mm_outlier', 'i1'),
]

GDAC_QC_PROBE: RecordLayout = [
    ('x', 'i4'),
    ('y', 'i4'),
    ('intensity', 'f4'),
    ('stdev', 'f4'),
    ('pixels', 'i4'),
    ('background', 'f4'),
]


# --- Shared ---

# A run of plain 32-bit integers (offset and cell-number tables).
INT32_VALUE: RecordLayout = [
    ('value', 'i4'),
]

# --- Functions ---

def itemsize(layout: RecordLayout) -> int:
    """The packed on-disk size of one record."""
    return np.dtype(layout).itemsize

def round_half_away(values: np.ndarray | float, precision: int) -> np.ndarray | float:
    """
    Rounds half away from zero to `precision` decimal places.

    numpy's own `round` rounds half to even, which disagrees with the
    legacy text exports for values such as 0.25.
    """
    scale = 10.0 ** precision
    scaled = np.asarray(values, dtype=np.float64) * scale
    rounded = np.sign(scaled) * np.floor(np.abs(scaled) + 0.5) / scale
    if np.ndim(rounded) == 0:
        return float(rounded)
    return rounded

def format_float(value: float, precision: int) -> str:
    """Fixed-precision formatting used by the tab-delimited exports."""
    return f'{value:.{precision}f}'

def format_compact(value: float, precision: int = 5) -> str:
    """
    Formats a float with at most `precision` decimals, trimming trailing
    zeros (e.g. 5.5 -> '5.5', 3.0 -> '3').
    """
    return np.format_float_positional(
        np.float32(value), precision=precision, unique=True, trim='-'
    )
