# affydata/file.py
"""Format detection and the main `open` factory function."""

import builtins
import logging
import os
import struct
from typing import BinaryIO, Union

from .abc import DatafileParser
from .cdf import GdacCdf, XdaCdf
from .cel import CelV3, CelV4
from .chp import ChpV8, ChpV12, ChpV13, GdacChp, XdaChp
from .exp import Exp
from .exceptions import UnrecognizedFormat
from .generic import GenericCel, GenericChp, INTENSITY_DATA_TYPE, read_data_type
from .types import FileFormat

logger = logging.getLogger(__name__)

GDAC_CHP_PARSERS: dict[int, type[GdacChp]] = {
    8: ChpV8,
    12: ChpV12,
    13: ChpV13,
}


def detect_format(stream: BinaryIO) -> FileFormat:
    """
    Identifies a file from its leading 4-byte little-endian signature.

    The stream is left at offset 0.

    Raises:
        UnrecognizedFormat: If the signature matches no known layout.
    """
    stream.seek(0)
    signature = stream.read(4)
    stream.seek(0)
    if len(signature) != 4:
        raise UnrecognizedFormat(
            f"Stream too short to identify ({len(signature)} bytes)", offset=0
        )
    magic = struct.unpack('<I', signature)[0]
    try:
        file_format = FileFormat(magic)
    except ValueError:
        raise UnrecognizedFormat(f"Unrecognized file magic number: {magic}", offset=0) from None
    logger.debug("Signature %d identifies %s", magic, file_format.name)
    return file_format


def make_parser(stream: BinaryIO, *, owns_stream: bool = False) -> DatafileParser:
    """
    Builds the (unparsed) decoder for a stream.

    Legacy CHP files are told apart by the version in their header, and
    generic containers by their data type.

    Raises:
        UnrecognizedFormat: For unknown signatures or CHP versions.
    """
    file_format = detect_format(stream)
    match file_format:
        case FileFormat.GDAC_CDF:
            parser_class = GdacCdf
        case FileFormat.XDA_CDF:
            parser_class = XdaCdf
        case FileFormat.CEL_V3:
            parser_class = CelV3
        case FileFormat.CEL_V4:
            parser_class = CelV4
        case FileFormat.XDA_CHP:
            parser_class = XdaChp
        case FileFormat.GDAC_CHP:
            probe = GdacChp(stream)
            probe.parse_header()
            parser_class = GDAC_CHP_PARSERS[probe.version]
        case FileFormat.EXP:
            parser_class = Exp
        case FileFormat.GENERIC:
            data_type = read_data_type(stream)
            parser_class = GenericCel if data_type == INTENSITY_DATA_TYPE else GenericChp
            logger.debug("Generic container of data type '%s'", data_type)
        case _:
            raise UnrecognizedFormat(f"No decoder for {file_format!r}", offset=0)

    stream.seek(0)
    logger.debug("Using %s", parser_class.__name__)
    return parser_class(stream, owns_stream=owns_stream)


def open(source: Union[str, os.PathLike, BinaryIO]) -> DatafileParser:
    """
    Opens an Affymetrix data file and returns its decoder.
    This function is the primary entry point for the library.

    Args:
        source: A path, or an already-opened seekable binary stream. A
                decoder opened from a path owns the file handle and closes
                it on `close()`.

    Returns:
        An unparsed decoder, typically used within a `with` statement.

    Raises:
        UnrecognizedFormat: If the file type cannot be determined.
    """
    if isinstance(source, (str, os.PathLike)):
        stream = builtins.open(source, 'rb')
        try:
            return make_parser(stream, owns_stream=True)
        except BaseException:
            stream.close()
            raise
    return make_parser(source)
