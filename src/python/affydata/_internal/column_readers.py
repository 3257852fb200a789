# affydata/_internal/column_readers.py

"""
Internal logic for building a typed reader for a generic-container column.
"""

from typing import Callable, TypeAlias

from ..exceptions import MalformedSection, UnrecognizedFormat
from ..lowlevel import BinaryReader
from ..types import ColumnType

ColumnValue: TypeAlias = int | float | str
ColumnReader: TypeAlias = Callable[[BinaryReader], ColumnValue]

# Natural on-disk widths of the numeric column types.
NUMERIC_WIDTHS: dict[ColumnType, int] = {
    ColumnType.INT8: 1,
    ColumnType.UINT8: 1,
    ColumnType.INT16: 2,
    ColumnType.UINT16: 2,
    ColumnType.INT32: 4,
    ColumnType.UINT32: 4,
    ColumnType.FLOAT: 4,
}

def reader_for(type_tag: int, size: int) -> ColumnReader:
    """
    Returns the decode function for one column descriptor.

    Every returned reader consumes exactly `size` bytes: numeric columns
    read their natural width and skip any declared padding, string columns
    read their length prefix and skip to the end of the field.

    Args:
        type_tag: The one-byte type tag from the column descriptor.
        size: The declared byte width of the column.

    Raises:
        UnrecognizedFormat: If the tag is not a known column type.
        MalformedSection: If the declared width cannot hold the type.
    """
    try:
        column_type = ColumnType(type_tag)
    except ValueError:
        raise UnrecognizedFormat(f"Unknown column type tag {type_tag}") from None

    decode: ColumnReader
    match column_type:
        case ColumnType.STRING:
            return lambda reader: reader.string(total=size)
        case ColumnType.WSTRING:
            return lambda reader: reader.wstring(total=size)
        case ColumnType.INT8:
            decode = BinaryReader.int8
        case ColumnType.UINT8:
            decode = BinaryReader.uint8
        case ColumnType.INT16:
            decode = BinaryReader.int16
        case ColumnType.UINT16:
            decode = BinaryReader.uint16
        case ColumnType.INT32:
            decode = BinaryReader.int32
        case ColumnType.UINT32:
            decode = BinaryReader.uint32
        case ColumnType.FLOAT:
            decode = BinaryReader.float32

    width = NUMERIC_WIDTHS[column_type]
    if size < width:
        raise MalformedSection(
            f"Column width {size} is too small for {column_type.name} ({width} bytes)"
        )
    if size == width:
        return decode

    def padded(reader: BinaryReader) -> ColumnValue:
        value = decode(reader)
        reader.skip(size - width)
        return value

    return padded
