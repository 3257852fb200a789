# affydata/generic/facade.py
"""
CEL- and CHP-like views over a generic container.

Both views take the header parameters of the container as their header
attributes (algorithm, chip type, algorithm parameters and summary
statistics) and their body from the first data group.
"""

import logging
from typing import Optional

import numpy as np

from ..abc import DatafileParser, TabularParser
from ..cel import CelParser, set_flags, new_cell_table
from ..dataclasses import ChipGeometry, DataTable
from ..exceptions import MalformedSection
from .container import (
    DATA_HEADER_OFFSET,
    GROUP_COUNT_OFFSET,
    DataGroup,
    DataSet,
    GenericFile,
    ValueMapping,
)

logger = logging.getLogger(__name__)

INTENSITY_DATA_TYPE = 'affymetrix-calvin-intensity'
EXPRESSION_DATA_TYPE = 'affymetrix-expression-probeset-analysis'

ALGORITHM_NAME = 'affymetrix-algorithm-name'
ARRAY_TYPE = 'affymetrix-array-type'
CEL_COLUMNS = 'affymetrix-cel-cols'
CEL_ROWS = 'affymetrix-cel-rows'
ALGORITHM_PARAMETER_PREFIX = 'affymetrix-algorithm-param-'
CHIP_SUMMARY_PREFIX = 'affymetrix-chipsummary-'

# Detection codes of the second column of expression results.
MAS5_CALL_MAPPING: ValueMapping = {1: {0: 'Present', 1: 'Marginal', 2: 'Absent'}}


def read_container(parser: DatafileParser) -> GenericFile:
    """Reads a parser's container and applies its header parameters."""
    container = GenericFile.read(parser.stream)
    parser.version = container.version
    for parameter in container.data_header.parameters:
        name, value = parameter.name, parameter.value
        if name == ALGORITHM_NAME:
            parser.algorithm = value
        elif name == ARRAY_TYPE:
            parser.chip_type = value
        elif name.startswith(ALGORITHM_PARAMETER_PREFIX):
            parser.add_parameters({name.removeprefix(ALGORITHM_PARAMETER_PREFIX): value})
        elif name.startswith(CHIP_SUMMARY_PREFIX):
            parser.add_stats({name.removeprefix(CHIP_SUMMARY_PREFIX): value})
    return container


def first_group(container: GenericFile) -> DataGroup:
    if not container.groups:
        raise MalformedSection("Generic file has no data groups", offset=GROUP_COUNT_OFFSET)
    return container.groups[0]


def first_data_set(container: GenericFile) -> DataSet:
    group = first_group(container)
    if not group.data_sets:
        raise MalformedSection(f"Data group '{group.name}' has no data sets", offset=group.position)
    return group.data_sets[0]


class GenericChp(TabularParser):
    """
    Results-file view of a generic container.

    The table is the first data set of the first group, one row per
    record with the set's column names as headings. Expression analysis
    files have their detection column relabelled with the MAS5 calls.
    """

    def __init__(self, stream, *, owns_stream: bool = False):
        super().__init__(stream, owns_stream=owns_stream)
        self.container: Optional[GenericFile] = None
        self._table: Optional[DataTable] = None

    @property
    def parsed(self) -> bool:
        return self._table is not None

    @property
    def data_type(self) -> Optional[str]:
        return self.container.data_header.data_type if self.container else None

    @property
    def value_mapping(self) -> Optional[ValueMapping]:
        return MAS5_CALL_MAPPING if self.data_type == EXPRESSION_DATA_TYPE else None

    def parse(self) -> None:
        container = read_container(self)
        self.container = container
        data_set = first_data_set(container)
        self.headings = data_set.headings
        rows = tuple(data_set.text_rows(self.stream, self.value_mapping))
        self._table = DataTable(headings=self.headings, rows=rows)
        logger.debug("Decoded %d rows of '%s'", len(rows), data_set.name)

    def table(self, cdf: Optional[DatafileParser] = None) -> DataTable:
        """The first data set as text. Probe-set names are in the file, so `cdf` is ignored."""
        if self._table is None:
            self.parse()
        return self._table

    def design_elements(
        self,
        cdf: Optional[DatafileParser] = None,
        chip_type: Optional[str] = None
    ) -> list[str]:
        """Composite sequence identifiers built from the first column."""
        table = self.table(cdf)
        chip_type = chip_type or self.chip_type
        if not chip_type:
            raise ValueError("No chip type information available for this CHP file.")
        return [f"Affymetrix:CompositeSequence:{chip_type}:{row[0]}" for row in table.rows]


class GenericCel(CelParser):
    """
    Intensity-file view of a generic container.

    The `Intensity`, `StdDev` and `Pixel` data sets hold one value per
    feature in row-major order; `Outlier` and `Mask` list (x, y) pairs.
    """

    def __init__(self, stream, *, owns_stream: bool = False):
        super().__init__(stream, owns_stream=owns_stream)
        self.container: Optional[GenericFile] = None

    def _geometry(self, container: GenericFile) -> ChipGeometry:
        header = container.data_header
        try:
            num_columns = int(header.parameter(CEL_COLUMNS))
            num_rows = int(header.parameter(CEL_ROWS))
        except (TypeError, ValueError):
            raise MalformedSection(
                f"Missing or non-integer '{CEL_COLUMNS}'/'{CEL_ROWS}' parameters",
                offset=DATA_HEADER_OFFSET,
            ) from None
        return ChipGeometry(num_columns, num_rows, num_columns * num_rows)

    def _values(self, data_set: Optional[DataSet], expected: int) -> Optional[np.ndarray]:
        if data_set is None:
            return None
        values = np.array([row[0] for row in data_set.rows(self.stream)])
        if len(values) != expected:
            raise MalformedSection(
                f"Data set '{data_set.name}' has {len(values)} values for {expected} cells",
                offset=data_set.data_table_start,
            )
        return values

    def _flag(self, table: np.ndarray, flag: str, data_set: Optional[DataSet]) -> int:
        if data_set is None:
            return 0
        pairs = list(data_set.rows(self.stream))
        set_flags(
            table, flag,
            [pair[0] for pair in pairs], [pair[1] for pair in pairs],
            self.geometry,
            offset=data_set.data_table_start, record_size=data_set.row_size,
        )
        return len(pairs)

    def parse(self) -> None:
        container = read_container(self)
        self.container = container
        self.geometry = self._geometry(container)
        self.add_stats({
            'Number of Cells': str(self.geometry.num_cells),
            'Rows': str(self.geometry.num_rows),
            'Columns': str(self.geometry.num_columns),
        })

        group = first_group(container)
        expected = self.geometry.expected_cells
        table = new_cell_table(self.geometry.num_columns, self.geometry.num_rows)
        table['intensity'] = self._values(group.data_set('Intensity'), expected)
        for name, column in (('StdDev', 'stddev'), ('Pixel', 'pixels')):
            values = self._values(group.find(name), expected)
            if values is not None:
                table[column] = values

        self.num_outliers = self._flag(table, 'outlier', group.find('Outlier'))
        self.num_masked = self._flag(table, 'masked', group.find('Mask'))
        self.add_stats({
            'Number Cells Masked': str(self.num_masked),
            'Number Outlier Cells': str(self.num_outliers),
        })
        self._store(table)
