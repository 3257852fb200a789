# affydata/dataclasses.py
"""
Dataclasses for structured data within the affydata library.
"""
from dataclasses import dataclass, field
from typing import Optional, Tuple

@dataclass(frozen=True, slots=True)
class ChipGeometry:
    """Array dimensions as declared by a file header."""
    num_columns: int
    num_rows: int
    num_cells: int
    num_qc_cells: int = 0

    @property
    def expected_cells(self) -> int:
        return self.num_columns * self.num_rows

    @property
    def consistent(self) -> bool:
        return self.num_cells == self.expected_cells

# --- CDF ---

@dataclass(frozen=True, slots=True)
class ProbeCell:
    """A single probe cell within a block."""
    atom: int
    x: int
    y: int
    probe_base: str
    target_base: str
    index_pos: Optional[int] = None # binary layout only

@dataclass(frozen=True, slots=True)
class ProbeBlock:
    name: str
    cells: Tuple[ProbeCell, ...] = ()

@dataclass(frozen=True, slots=True)
class ProbeUnit:
    """A probe set (unit) and the blocks it owns."""
    unit_number: int
    name: str
    unit_type: int = 0
    blocks: Tuple[ProbeBlock, ...] = ()

    @property
    def num_cells(self) -> int:
        return sum(len(b.cells) for b in self.blocks)

@dataclass(frozen=True, slots=True)
class QcProbe:
    x: int
    y: int
    probe_length: int
    match: int
    background: int

@dataclass(frozen=True, slots=True)
class QcUnit:
    qc_type: int
    probes: Tuple[QcProbe, ...] = ()

# --- CEL ---

@dataclass(frozen=True, slots=True)
class IntensityCell:
    """One feature of an intensity file, keyed by (column, row)."""
    column: int
    row: int
    intensity: float
    stddev: float
    pixels: int
    masked: bool = False
    outlier: bool = False

@dataclass(frozen=True, slots=True)
class Subgrid:
    """
    Subgrid alignment record from a v4 CEL file.

    The field semantics have never been checked against instrument output;
    values are carried through as read.
    """
    row: int
    column: int
    upper_left_x: float
    upper_left_y: float
    upper_right_x: float
    upper_right_y: float
    lower_left_x: float
    lower_left_y: float
    lower_right_x: float
    lower_right_y: float
    left_cell: int
    top_cell: int
    right_cell: int
    bottom_cell: int

# --- CHP ---

@dataclass(frozen=True, slots=True)
class BackgroundZone:
    x: float
    y: float
    value: float

@dataclass(frozen=True, slots=True)
class ExpressionResult:
    detection: int
    detection_pvalue: float
    signal: float
    pairs: int
    pairs_used: int

@dataclass(frozen=True, slots=True)
class ExpressionComparisonResult:
    """
    Expression result with comparison analysis fields.

    Legacy files record the comparison block per unit, so the comparison
    fields may be None for individual units of such files.
    """
    detection: int
    detection_pvalue: float
    signal: float
    pairs: int
    pairs_used: int
    change: Optional[int] = None
    change_pvalue: Optional[float] = None
    signal_log_ratio: Optional[float] = None
    signal_log_ratio_low: Optional[float] = None
    signal_log_ratio_high: Optional[float] = None
    common_pairs: Optional[int] = None

@dataclass(frozen=True, slots=True)
class GenotypingResult10k:
    allele: int
    allele_pvalue: float
    ras1: float
    ras2: float

@dataclass(frozen=True, slots=True)
class GenotypingResult100k:
    allele: int
    allele_pvalue: float
    pvalue_aa: float
    pvalue_ab: float
    pvalue_bb: float
    pvalue_no_call: float

@dataclass(frozen=True, slots=True)
class ResequencingResult:
    sequence: str
    scores: Tuple[float, ...] = ()

@dataclass(frozen=True, slots=True)
class UniversalResult:
    background: float

# --- Shared ---

@dataclass(frozen=True, slots=True)
class Parameter:
    """A typed name/value parameter from a generic container header."""
    name: str
    value: str
    mime_type: str

@dataclass(frozen=True, slots=True)
class DataTable:
    """The normalized row/column view of a parsed file."""
    headings: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...] = field(default=())

    def __len__(self) -> int:
        return len(self.rows)
