# tests/test_exp.py
"""
Tests for the experiment information (EXP) decoder.
"""
import io

import pytest
from pathlib import Path

import affydata
from affydata.exceptions import MalformedSection, UnrecognizedFormat
from affydata.exp import Exp

import builders


def test_exp_fields(exp_file: Path):
    with affydata.open(exp_file) as exp:
        assert isinstance(exp, Exp)
        exp.parse()
        assert exp.parsed
        assert exp.version == 1
        assert exp.chip_type == 'HG-U133A'
        assert exp.chip_lot == '4012345'
        assert exp.operator == 'jdoe'
        assert exp.protocol == 'EukGE-WS2v4'
        assert exp.station == '1'
        assert exp.module == '2'
        assert exp.hyb_date == 'Jan 09 2004 04:30PM'
        assert exp.pixel_size == '3'
        assert exp.filter == '570'
        assert exp.scan_temp == ''
        assert exp.scan_date == 'Jan 10 2004 10:00AM'
        assert exp.scanner_id == '50205880'
        assert exp.num_scans == '1'


def test_fluidics_steps_become_parameters(exp_file: Path):
    with affydata.open(exp_file) as exp:
        exp.parse()
        assert exp.hyb_parameters == (
            ('Wash A1 Recovery Mixes', '0'),
            ('Wash A1 Temperature (C)', '25'),
        )
        assert exp.parameters == {
            'HybridizationStep0-EukGE-WS2v4': '0',
            'HybridizationStep1-EukGE-WS2v4': '25',
        }


def test_export_reproduces_layout(exp_file: Path):
    out = io.StringIO()
    with affydata.open(exp_file) as exp:
        exp.export(out)
    expected = builders.exp_file().decode('latin-1').replace('\r\n', '\n')
    assert out.getvalue() == expected.rstrip('\n') + '\n'


def test_trailing_whitespace_after_label():
    data = builders.exp_file(label='Affymetrix GeneChip Experiment Information  ')
    exp = Exp(io.BytesIO(data))
    exp.parse()
    assert exp.chip_type == 'HG-U133A'


def test_wrong_label():
    data = builders.exp_file(label='Affymetrix GeneChip Something Else')
    with pytest.raises(UnrecognizedFormat, match="EXP file label"):
        Exp(io.BytesIO(data)).parse()


def test_missing_section_leaves_nothing_parsed():
    data = builders.exp_file(sections=('Sample Info', 'Fluidics'))
    exp = Exp(io.BytesIO(data))
    with pytest.raises(MalformedSection, match=r"Missing \[Scanner\] section") as excinfo:
        exp.parse()
    assert excinfo.value.record is not None
    assert not exp.parsed
    assert exp.chip_type is None
    assert exp.parameters == {}
