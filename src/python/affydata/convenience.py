# affydata/convenience.py
"""
High-level convenience functions for common single-file operations.
"""
import os
from typing import Optional, TextIO, Union

from .abc import DatafileParser, TabularParser
from .file import open as affy_open

PathLike = Union[str, os.PathLike]


def parse_file(path: PathLike) -> DatafileParser:
    """
    Opens and fully decodes a file.

    The returned decoder has already released its file handle; its
    decoded body and header attributes remain available.
    """
    with affy_open(path) as parser:
        parser.parse()
    return parser


def export_file(
    path: PathLike,
    out: TextIO,
    cdf: Optional[Union[DatafileParser, PathLike]] = None,
    *,
    include_headings: bool = False
) -> None:
    """
    Writes the tab-delimited table of a CEL or CHP file to `out`.

    Args:
        path: The CEL or CHP file.
        out: A text stream to write to.
        cdf: A parsed CDF decoder, or the path of a CDF file. Only legacy
             results files need one.
        include_headings: Write the column headings as a first line.

    Raises:
        TypeError: If the file has no table (a CDF file).
    """
    if cdf is not None and not isinstance(cdf, DatafileParser):
        cdf = parse_file(cdf)
    with affy_open(path) as parser:
        if not isinstance(parser, TabularParser):
            raise TypeError(f"{type(parser).__name__} files have no tabular export.")
        parser.parse()
        parser.export(out, cdf, include_headings=include_headings)
