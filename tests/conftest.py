# tests/conftest.py
"""
Pytest configuration and shared fixtures for the test suite.

Every fixture file is synthesized with `struct` (see `builders.py`) and
written once per session.
"""
import pytest
from pathlib import Path

import builders
from builders import (
    CDF_UNITS,
    CEL_CELLS,
    CEL_COLS,
    CEL_MASKED,
    CEL_OUTLIERS,
    CEL_ROWS,
    EXPRESSION_RECORDS,
)


def _write(tmp_path_factory, name: str, data: bytes) -> Path:
    filepath = tmp_path_factory.getbasetemp() / name
    filepath.write_bytes(data)
    return filepath


@pytest.fixture(scope="session")
def cel_v4_file(tmp_path_factory) -> Path:
    """A binary v4 CEL file with one masked and one outlier cell."""
    return _write(tmp_path_factory, "sample_v4.CEL", builders.cel_v4(
        CEL_COLS, CEL_ROWS, CEL_CELLS, masked=CEL_MASKED, outliers=CEL_OUTLIERS,
    ))


@pytest.fixture(scope="session")
def cel_v3_file(tmp_path_factory) -> Path:
    """The same chip as `cel_v4_file` in the legacy text layout."""
    return _write(tmp_path_factory, "sample_v3.CEL", builders.cel_v3(
        CEL_COLS, CEL_ROWS, CEL_CELLS, masked=CEL_MASKED, outliers=CEL_OUTLIERS,
    ))


@pytest.fixture(scope="session")
def generic_cel_file(tmp_path_factory) -> Path:
    """The same chip as `cel_v4_file` inside a generic container."""
    return _write(tmp_path_factory, "sample_calvin.CEL", builders.generic_cel(
        CEL_COLS, CEL_ROWS, CEL_CELLS, masked=CEL_MASKED, outliers=CEL_OUTLIERS,
    ))


@pytest.fixture(scope="session")
def xda_cdf_file(tmp_path_factory) -> Path:
    return _write(tmp_path_factory, "sample_xda.CDF", builders.xda_cdf(
        CEL_COLS, CEL_ROWS, CDF_UNITS, qc_units=[(1, [(0, 0)])],
    ))


@pytest.fixture(scope="session")
def gdac_cdf_file(tmp_path_factory) -> Path:
    return _write(tmp_path_factory, "sample_gdac.CDF", builders.gdac_cdf(
        CEL_COLS, CEL_ROWS, CDF_UNITS,
    ))


@pytest.fixture(scope="session")
def xda_chp_file(tmp_path_factory) -> Path:
    """An XDA expression CHP (no comparison) matching `xda_cdf_file`."""
    return _write(tmp_path_factory, "sample_xda.CHP", builders.xda_chp_expression(EXPRESSION_RECORDS))


@pytest.fixture(scope="session")
def gdac_chp_v12_file(tmp_path_factory) -> Path:
    return _write(tmp_path_factory, "sample_v12.CHP", builders.gdac_chp_v12([
        builders.gdac_chp_unit(1, 1, 0.000123, 1234.56, 0),
        builders.gdac_chp_unit(2, 2, 0.5, 12.34, 2),
    ]))


@pytest.fixture(scope="session")
def generic_chp_file(tmp_path_factory) -> Path:
    """The expression CHP scenario: two records with MAS5 detection codes."""
    return _write(tmp_path_factory, "sample_calvin.CHP", builders.generic_expression_chp([
        (1, 0, 5.5),
        (2, 2, 1.1),
    ]))


@pytest.fixture(scope="session")
def exp_file(tmp_path_factory) -> Path:
    return _write(tmp_path_factory, "sample.EXP", builders.exp_file())
