# affydata/types.py

"""
Core type-safe enumerations for the affydata library.
"""
from enum import Enum, IntEnum

class FileFormat(IntEnum):
    """
    Enumeration of every recognized file signature.

    Values are the first four bytes of the file read as a little-endian
    unsigned integer.
    """
    # Probe layout
    GDAC_CDF = 1178878811  # "[CDF"
    XDA_CDF = 67

    # Intensities
    CEL_V3 = 1279607643    # "[CEL"
    CEL_V4 = 64

    # Results
    GDAC_CHP = 1701733703  # "Gene"
    XDA_CHP = 65

    # Self-describing container (magic byte 59, version byte 1)
    GENERIC = 315

    # Experiment information
    EXP = 2036753985       # "Affy"


class ResultsType(IntEnum):
    """The analysis that produced an XDA CHP file's body records."""
    EXPRESSION = 0
    GENOTYPING = 1
    RESEQUENCING = 2
    UNIVERSAL = 3


class ResultVariant(Enum):
    """The record shape active for a whole CHP file."""
    EXPRESSION = "expression"
    EXPRESSION_COMPARISON = "expression_comparison"
    GENOTYPING_10K = "genotyping_10k"
    GENOTYPING_100K = "genotyping_100k"
    RESEQUENCING = "resequencing"
    UNIVERSAL = "universal"


class ColumnType(IntEnum):
    """
    Column type tags used by the generic container.

    These correspond directly to the one-byte tag stored in each data set's
    column descriptor.
    """
    INT8 = 0
    UINT8 = 1
    INT16 = 2
    UINT16 = 3
    INT32 = 4
    UINT32 = 5
    FLOAT = 6
    STRING = 7
    WSTRING = 8
