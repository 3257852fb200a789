# affydata/generic/container.py
"""
Reader for the self-describing generic ("Calvin") container.

Layout (big-endian throughout):

    file header     magic u8 (59), version u8, group count i32,
                    first group offset u32
    data header     at offset 10: data type, file id, creation time,
                    locale, parameters, nested parent headers
    data groups     linked by forward offsets, each owning a linked list
                    of data sets
    data sets       name, parameters, column descriptors, row count and
                    the offset of the row table

No schema is assumed: every column is decoded with a reader chosen from
its own type tag and width.
"""

import logging
import struct
from dataclasses import dataclass, field
from typing import BinaryIO, Iterable, Iterator, Mapping, Optional, TextIO

from ..dataclasses import Parameter
from ..exceptions import MalformedSection, UnrecognizedFormat
from ..lowlevel import BinaryReader
from ..types import ColumnType
from .._internal import records
from .._internal.column_readers import ColumnReader, ColumnValue, reader_for

logger = logging.getLogger(__name__)

MAGIC = 59
GROUP_COUNT_OFFSET = 2
DATA_HEADER_OFFSET = 10

# Per-column value relabelling: column index -> {decoded value: label}.
ValueMapping = Mapping[int, Mapping[ColumnValue, str]]

# MIME type -> (struct format, byte slice of the raw value to unpack).
_MIME_NUMBERS: dict[str, tuple[str, slice]] = {
    'text/x-calvin-float': ('>f', slice(0, 4)),
    'text/x-calvin-integer-32': ('>i', slice(0, 4)),
    'text/x-calvin-unsigned-integer-32': ('>I', slice(0, 4)),
    'text/x-calvin-integer-16': ('>h', slice(2, 4)),
    'text/x-calvin-unsigned-integer-16': ('>H', slice(2, 4)),
    'text/x-calvin-integer-8': ('>b', slice(3, 4)),
    'text/x-calvin-unsigned-integer-8': ('>B', slice(3, 4)),
}


def decode_parameter_value(raw: bytes, mime_type: str) -> str:
    """
    Decodes a MIME-typed parameter value to text.

    Floats are rendered with 5 decimal places; `text/plain` values are
    UTF-16 with trailing NUL padding removed.

    Raises:
        UnrecognizedFormat: For an unknown MIME type.
        MalformedSection: If a numeric value is shorter than 4 bytes.
    """
    match mime_type:
        case 'text/ascii':
            return raw.decode('latin-1').rstrip('\x00')
        case 'text/plain':
            return raw.decode('utf-16-be', errors='replace').rstrip('\x00')
        case _ if mime_type in _MIME_NUMBERS:
            fmt, window = _MIME_NUMBERS[mime_type]
            if len(raw) < 4:
                raise MalformedSection(f"{mime_type} value of {len(raw)} bytes")
            value = struct.unpack(fmt, raw[window])[0]
            if mime_type == 'text/x-calvin-float':
                return records.format_float(value, 5)
            return str(value)
        case _:
            raise UnrecognizedFormat(f"Unrecognized MIME type: {mime_type}")


def read_parameters(reader: BinaryReader) -> tuple[Parameter, ...]:
    """Reads an i32 count followed by (name, value, MIME type) triples."""
    parameters = []
    for index in range(reader.int32()):
        name = reader.wstring()
        length = reader.int32()
        value_offset = reader.tell()
        raw = reader.read_bytes(length)
        mime_type = reader.wstring()
        try:
            value = decode_parameter_value(raw, mime_type)
        except (MalformedSection, UnrecognizedFormat) as e:
            raise type(e)(f"Parameter '{name}': {e.message}", offset=value_offset, record=index) from None
        parameters.append(Parameter(name, value, mime_type))
    return tuple(parameters)


@dataclass(frozen=True, slots=True)
class DataColumn:
    """A column descriptor and the reader bound to it."""
    name: str
    type_tag: int
    size: int
    decode: ColumnReader = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'decode', reader_for(self.type_tag, self.size))

    @property
    def column_type(self) -> ColumnType:
        return ColumnType(self.type_tag)


def read_column_descriptors(reader: BinaryReader, count: int) -> tuple[DataColumn, ...]:
    columns = []
    for index in range(count):
        offset = reader.tell()
        name = reader.wstring()
        type_tag = reader.int8()
        size = reader.int32()
        try:
            columns.append(DataColumn(name, type_tag, size))
        except (MalformedSection, UnrecognizedFormat) as e:
            raise type(e)(f"Column '{name}': {e.message}", offset=offset, record=index) from None
    return tuple(columns)


def encode_column_descriptors(columns: Iterable[DataColumn]) -> bytes:
    """Serializes column descriptors exactly as they are stored on disk."""
    chunks = []
    for column in columns:
        name = column.name.encode('utf-16-be')
        chunks.append(struct.pack('>i', len(column.name)))
        chunks.append(name)
        chunks.append(struct.pack('>bi', column.type_tag, column.size))
    return b''.join(chunks)


def format_value(value: ColumnValue) -> str:
    """Text form of a decoded cell: floats trimmed to at most 5 decimals."""
    if isinstance(value, float):
        return records.format_compact(value)
    return str(value)


@dataclass(frozen=True, slots=True)
class DataHeader:
    data_type: str
    file_id: str
    creation_time: str
    locale: str
    parameters: tuple[Parameter, ...] = ()
    parents: tuple["DataHeader", ...] = ()

    @classmethod
    def read(cls, reader: BinaryReader) -> "DataHeader":
        """Reads a header (and, recursively, its parents) at the current position."""
        data_type = reader.string()
        file_id = reader.string()
        creation_time = reader.wstring()
        locale = reader.wstring()
        parameters = read_parameters(reader)
        parents = tuple(cls.read(reader) for _ in range(reader.int32()))
        return cls(data_type, file_id, creation_time, locale, parameters, parents)

    def parameter(self, name: str) -> Optional[str]:
        for parameter in self.parameters:
            if parameter.name == name:
                return parameter.value
        return None


@dataclass(frozen=True, slots=True)
class DataSet:
    """
    One table of a data group.

    The row table itself is not read until `rows()` is called; it starts
    at `data_table_start` and holds `num_rows` fixed-width rows.
    """
    name: str
    data_table_start: int
    next_set_position: int
    parameters: tuple[Parameter, ...]
    columns: tuple[DataColumn, ...]
    num_rows: int

    @classmethod
    def read(cls, reader: BinaryReader, position: int) -> "DataSet":
        reader.seek(position)
        data_table_start = reader.uint32()
        next_set_position = reader.uint32()
        name = reader.wstring()
        parameters = read_parameters(reader)
        columns = read_column_descriptors(reader, reader.uint32())
        num_rows = reader.uint32()
        return cls(name, data_table_start, next_set_position, parameters, columns, num_rows)

    @property
    def headings(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    @property
    def row_size(self) -> int:
        return sum(column.size for column in self.columns)

    def rows(self, stream: BinaryIO) -> Iterator[tuple[ColumnValue, ...]]:
        """Decodes the row table, applying each column's reader left to right."""
        reader = BinaryReader(stream, '>')
        reader.seek(self.data_table_start)
        for _ in range(self.num_rows):
            yield tuple(column.decode(reader) for column in self.columns)

    def text_rows(
        self,
        stream: BinaryIO,
        value_mapping: Optional[ValueMapping] = None
    ) -> Iterator[tuple[str, ...]]:
        """
        Decodes the row table as text. Columns listed in `value_mapping`
        have their decoded value replaced by its label; values without a
        label pass through unchanged.
        """
        value_mapping = value_mapping or {}
        for row in self.rows(stream):
            yield tuple(
                value_mapping[index].get(value, format_value(value))
                if index in value_mapping else format_value(value)
                for index, value in enumerate(row)
            )

    def export(
        self,
        stream: BinaryIO,
        fh: TextIO,
        value_mapping: Optional[ValueMapping] = None
    ) -> None:
        """Writes the row table as tab-delimited text in column order."""
        for row in self.text_rows(stream, value_mapping):
            fh.write('\t'.join(row) + '\n')


@dataclass(frozen=True, slots=True)
class DataGroup:
    name: str
    position: int
    next_group_position: int
    data_sets: tuple[DataSet, ...] = ()

    @classmethod
    def read(cls, reader: BinaryReader, position: int) -> "DataGroup":
        reader.seek(position)
        next_group_position = reader.uint32()
        set_position = reader.uint32()
        num_sets = reader.int32()
        name = reader.wstring()

        data_sets = []
        for index in range(num_sets):
            if index and not set_position:
                raise MalformedSection(
                    f"Data group '{name}' gives no position for data set {index}",
                    offset=position,
                    record=index,
                )
            data_set = DataSet.read(reader, set_position)
            data_sets.append(data_set)
            set_position = data_set.next_set_position
        return cls(name, position, next_group_position, tuple(data_sets))

    def find(self, name: str) -> Optional[DataSet]:
        for data_set in self.data_sets:
            if data_set.name == name:
                return data_set
        return None

    def data_set(self, name: str) -> DataSet:
        data_set = self.find(name)
        if data_set is not None:
            return data_set
        raise MalformedSection(
            f"Data group '{self.name}' has no '{name}' data set", offset=self.position
        )


@dataclass(frozen=True, slots=True)
class GenericFile:
    """The decoded structure (not the row data) of a generic container."""
    version: int
    data_header: DataHeader
    groups: tuple[DataGroup, ...] = ()

    @classmethod
    def read(cls, stream: BinaryIO) -> "GenericFile":
        """
        Reads the file header, the data header and every group and data
        set header by following their forward offsets.

        Raises:
            UnrecognizedFormat: If the magic byte is not 59.
            TruncatedInput: If any header runs past the end of the stream.
        """
        reader = BinaryReader(stream, '>')
        reader.seek(0)
        magic = reader.uint8()
        if magic != MAGIC:
            raise UnrecognizedFormat(f"Unrecognized file magic number: {magic}", offset=0)
        version = reader.uint8()
        num_groups = reader.int32()
        group_position = reader.uint32()

        data_header = DataHeader.read(reader)

        groups = []
        for index in range(num_groups):
            if index and not group_position:
                raise MalformedSection(
                    f"No position given for data group {index}",
                    offset=groups[-1].position,
                    record=index,
                )
            group = DataGroup.read(reader, group_position)
            groups.append(group)
            group_position = group.next_group_position
        logger.debug(
            "Generic container '%s': %d groups, %d data sets",
            data_header.data_type, len(groups), sum(len(g.data_sets) for g in groups),
        )
        return cls(version, data_header, tuple(groups))


def read_data_type(stream: BinaryIO) -> str:
    """Reads only the data type identifier of a generic container."""
    reader = BinaryReader(stream, '>')
    reader.seek(DATA_HEADER_OFFSET)
    return reader.string()
