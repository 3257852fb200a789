# affydata/generic/__init__.py
"""Generic ("Calvin") container decoding and its CEL/CHP views."""

from .container import (
    DataColumn,
    DataGroup,
    DataHeader,
    DataSet,
    GenericFile,
    decode_parameter_value,
    encode_column_descriptors,
    read_data_type,
)
from .facade import GenericCel, GenericChp, INTENSITY_DATA_TYPE, MAS5_CALL_MAPPING

__all__ = [
    "DataColumn",
    "DataGroup",
    "DataHeader",
    "DataSet",
    "GenericFile",
    "decode_parameter_value",
    "encode_column_descriptors",
    "read_data_type",
    "GenericCel",
    "GenericChp",
    "INTENSITY_DATA_TYPE",
    "MAS5_CALL_MAPPING",
]
