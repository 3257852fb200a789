# affydata/__init__.py
"""
Decoders for Affymetrix microarray data files (CDF, CEL, CHP, EXP and the
generic container).
"""
from .file import open, detect_format, make_parser
from .convenience import parse_file, export_file
from .abc import DatafileParser, TabularParser
from .cdf import GdacCdf, XdaCdf
from .cel import CelV3, CelV4
from .chp import ChpV8, ChpV12, ChpV13, XdaChp
from .exp import Exp
from .generic import GenericCel, GenericChp
from .types import FileFormat, ResultVariant, ColumnType
from .dataclasses import ChipGeometry, DataTable
from .exceptions import (
    AffyError,
    UnrecognizedFormat,
    TruncatedInput,
    OutOfRangeCoordinate,
    MalformedSection,
    UnsupportedLayout,
    GeometryMismatch,
)

__version__ = "0.0.1"

# Define what gets imported with 'from affydata import *'
__all__ = [
    'open',
    'detect_format',
    'make_parser',
    'parse_file',
    'export_file',
    'DatafileParser',
    'TabularParser',
    'GdacCdf',
    'XdaCdf',
    'CelV3',
    'CelV4',
    'ChpV8',
    'ChpV12',
    'ChpV13',
    'XdaChp',
    'Exp',
    'GenericCel',
    'GenericChp',
    'FileFormat',
    'ResultVariant',
    'ColumnType',
    'ChipGeometry',
    'DataTable',
    'AffyError',
    'UnrecognizedFormat',
    'TruncatedInput',
    'OutOfRangeCoordinate',
    'MalformedSection',
    'UnsupportedLayout',
    'GeometryMismatch',
    '__version__',
]
