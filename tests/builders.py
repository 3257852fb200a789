# tests/builders.py
"""
Byte-level builders for synthetic Affymetrix files.

Each builder returns the complete file content as bytes, laid out field by
field with `struct` so tests can also compute expected offsets.
"""
import struct
from typing import Iterable, Optional, Sequence

DAT_HEADER = (
    '[0..65535]  test:CLS=2 RWS=2 XIN=3 YIN=3 VE=17 2.0 01/01/04 10:00:00 '
    '50205880  M10   HG-U133A.1sq  6'
)


# --- Primitive fields ---

def lstr(text: str) -> bytes:
    """int32 (LE) length-prefixed single-byte string."""
    data = text.encode('latin-1')
    return struct.pack('<i', len(data)) + data


def bstr(text: str) -> bytes:
    """int32 (BE) length-prefixed single-byte string."""
    data = text.encode('latin-1')
    return struct.pack('>i', len(data)) + data


def bwstr(text: str) -> bytes:
    """int32 (BE) character-count-prefixed UTF-16BE string."""
    return struct.pack('>i', len(text)) + text.encode('utf-16-be')


def padded(text: str, width: int) -> bytes:
    return text.encode('latin-1').ljust(width, b'\x00')


# --- CEL ---

def cel_header_text(cols: int, rows: int) -> str:
    return '\n'.join([
        f'Cols={cols}',
        f'Rows={rows}',
        f'TotalX={cols}',
        f'TotalY={rows}',
        f'DatHeader={DAT_HEADER}',
        'Algorithm=Percentile',
        'AlgorithmParameters=Percentile:75;CellMargin:2',
    ]) + '\n'


def cel_v4(
    cols: int,
    rows: int,
    cells: Sequence[tuple[float, float, int]],
    *,
    masked: Sequence[tuple[int, int]] = (),
    outliers: Sequence[tuple[int, int]] = (),
    num_cells: Optional[int] = None,
    header_text: Optional[str] = None,
) -> bytes:
    num_cells = cols * rows if num_cells is None else num_cells
    header = struct.pack('<iiiii', 64, 4, cols, rows, num_cells)
    header += lstr(cel_header_text(cols, rows) if header_text is None else header_text)
    header += lstr('Percentile')
    header += lstr('Percentile:75;CellMargin:2;OutlierHigh:1.500')
    header += struct.pack('<iIIi', 2, len(outliers), len(masked), 0)
    body = b''.join(struct.pack('<ffH', *cell) for cell in cells)
    body += b''.join(struct.pack('<HH', x, y) for x, y in masked)
    body += b''.join(struct.pack('<HH', x, y) for x, y in outliers)
    return header + body


def cel_v4_header_size(cols: int, rows: int) -> int:
    """Byte offset of the first cell record of a `cel_v4()` file."""
    return len(cel_v4(cols, rows, []))


def cel_v3(
    cols: int,
    rows: int,
    cells: Sequence[tuple[float, float, int]],
    *,
    masked: Sequence[tuple[int, int]] = (),
    outliers: Sequence[tuple[int, int]] = (),
) -> bytes:
    lines = ['[CEL]', 'Version=3', '', '[HEADER]']
    lines += cel_header_text(cols, rows).rstrip('\n').split('\n')
    lines += ['', '[INTENSITY]', f'NumberCells={cols * rows}', 'CellHeader=X\tY\tMEAN\tSTDV\tNPIXELS']
    for index, (intensity, stddev, pixels) in enumerate(cells):
        x, y = index % cols, index // cols
        lines.append(f'{x:>3}\t{y:>3}\t{intensity:.1f}\t{stddev:.1f}\t{pixels:>3}')
    for section, pairs in (('MASKS', masked), ('OUTLIERS', outliers)):
        lines += ['', f'[{section}]', f'NumberCells={len(pairs)}', 'CellHeader=X\tY']
        lines += [f'{x}\t{y}' for x, y in pairs]
    lines += ['', '[MODIFIED]', 'NumberCells=0', 'CellHeader=X\tY\tORIGMEAN', '']
    return '\r\n'.join(lines).encode('latin-1')


# --- CDF ---

def xda_cdf(
    cols: int,
    rows: int,
    units: Sequence[tuple[str, int, Sequence[tuple[str, Sequence[tuple[int, int]]]]]],
    *,
    qc_units: Sequence[tuple[int, Sequence[tuple[int, int]]]] = (),
    version: int = 1,
) -> bytes:
    """
    `units` holds (name, unit_number, blocks); each block is
    (name, [(x, y), ...]). `qc_units` holds (type, [(x, y), ...]).
    """
    out = struct.pack('<iiHHii', 67, version, cols, rows, len(units), len(qc_units))
    out += lstr('')
    out += b''.join(padded(name, 64) for name, _, _ in units)
    out += struct.pack(f'<{len(qc_units)}i', *range(len(qc_units)))
    out += struct.pack(f'<{len(units)}i', *range(len(units)))
    for qc_type, probes in qc_units:
        out += struct.pack('<Hi', qc_type, len(probes))
        out += b''.join(struct.pack('<HHBbB', x, y, 25, 1, 0) for x, y in probes)
    for name, unit_number, blocks in units:
        num_cells = sum(len(cells) for _, cells in blocks)
        out += struct.pack('<HBiiiiB', 3, 1, 1, len(blocks), num_cells, unit_number, 2)
        for block_name, cells in blocks:
            out += struct.pack('<iiBBii', 1, len(cells), 2, 1, 0, 0)
            out += padded(block_name, 64)
            if version >= 2:
                out += struct.pack('<HH', 0, 0)
            for index, (x, y) in enumerate(cells):
                out += struct.pack('<iHHicc', index, x, y, index, b'A', b'T')
                if version >= 2:
                    out += struct.pack('<HH', 25, 0)
    return out


GDAC_BLOCK_HEADER = (
    'X\tY\tPROBE\tFEAT\tQUAL\tEXPOS\tPOS\tCBASE\tPBASE\tTBASE\tATOM\tINDEX'
    '\tCODONIND\tCODON\tREGIONTYPE\tREGION'
)


def gdac_cdf(
    cols: int,
    rows: int,
    units: Sequence[tuple[str, int, Sequence[tuple[str, Sequence[tuple[int, int]]]]]],
    *,
    num_units: Optional[int] = None,
    version: str = 'GC3.0',
) -> bytes:
    num_units = len(units) if num_units is None else num_units
    lines = [
        '[CDF]', f'Version={version}', '',
        '[Chip]', 'Name=Test3', f'Rows={rows}', f'Cols={cols}',
        f'NumberOfUnits={num_units}', f'MaxUnit={num_units}', 'NumQCUnits=1', 'ChipReference=', '',
        '[QC1]', 'Type=1', 'NumberCells=1',
        'CellHeader=X\tY\tPROBE\tPLEN\tATOM\tINDEX\tMATCH\tBG',
        'Cell1=0\t0\tN\t25\t0\t0\t0\t0', '',
    ]
    for name, unit_number, blocks in units:
        lines += [
            f'[Unit{unit_number}]', f'Name={name}', 'Direction=1',
            f'UnitNumber={unit_number}', 'UnitType=3', f'NumberBlocks={len(blocks)}', '',
        ]
        for block_number, (block_name, cells) in enumerate(blocks, start=1):
            lines += [
                f'[Unit{unit_number}_Block{block_number}]', f'Name={block_name}',
                f'BlockNumber={block_number}', f'NumCells={len(cells)}',
                f'CellHeader={GDAC_BLOCK_HEADER}',
            ]
            for index, (x, y) in enumerate(cells, start=1):
                lines.append(
                    f'Cell{index}={x}\t{y}\tN\tcontrol\t{block_name}\t0\t13\tA\tA\tT\t{index - 1}\t0\t-1\t-1\t99\t'
                )
            lines.append('')
    return '\n'.join(lines).encode('latin-1')


# --- CHP ---

def xda_chp_header(
    results_type: int,
    num_cells: int,
    *,
    cols: int = 2,
    rows: int = 2,
    parameters: Sequence[tuple[str, str]] = (('Alpha1', '0.04 '), ('Tau', '0.015')),
    stats: Sequence[tuple[str, str]] = (('Background', 'avg:52.4,stdev:1.3'), ('Noise', '2.1')),
) -> bytes:
    out = struct.pack('<iiHHiii', 65, 1, cols, rows, num_cells, 0, results_type)
    out += lstr('GeneChip') + lstr('sample.CEL') + lstr('HG-U133A')
    out += lstr('ExpressionStat') + lstr('5.0')
    out += struct.pack('<i', len(parameters))
    out += b''.join(lstr(name) + lstr(value) for name, value in parameters)
    out += struct.pack('<i', len(stats))
    out += b''.join(lstr(name) + lstr(value) for name, value in stats)
    out += struct.pack('<if', 1, 100.0) + struct.pack('<fff', 1.0, 2.0, 3.0)
    return out


def xda_chp_expression(records: Sequence[tuple], *, analysis_type: int = 0) -> bytes:
    """`records` hold (detection, pvalue, signal, pairs, used[, change, cpvalue, slr, low, high, common])."""
    comparison = analysis_type in (1, 3)
    fmt = '<BffHHBffffH' if comparison else '<BffHH'
    out = xda_chp_header(0, len(records))
    out += struct.pack('<Bi', analysis_type, struct.calcsize(fmt))
    out += b''.join(struct.pack(fmt, *record) for record in records)
    return out


def xda_chp_genotyping(num_cells: int) -> bytes:
    out = xda_chp_header(1, num_cells)
    out += struct.pack('<i', 21)
    record = struct.pack('<Bfffff', 6, 0.000123, 0.25, 0.5, 0.75, 1.0)
    return out + record * num_cells


def xda_chp_resequencing(
    entries: Sequence[tuple[str, Sequence[float]]],
    *,
    record_size: Optional[int] = None,
) -> bytes:
    if record_size is None:
        record_size = 4 + len(entries[0][0]) + 4 * len(entries[0][1])
    out = xda_chp_header(2, len(entries))
    out += struct.pack('<i', record_size)
    for sequence, scores in entries:
        out += lstr(sequence) + struct.pack(f'<{len(scores)}f', *scores)
    return out


def xda_chp_universal(backgrounds: Sequence[float]) -> bytes:
    out = xda_chp_header(3, len(backgrounds))
    out += struct.pack('<i', 4)
    return out + b''.join(struct.pack('<f', value) for value in backgrounds)


def gdac_chp_header(version: int, num_cells: int, *, cols: int = 2, rows: int = 2) -> bytes:
    out = b'GeneChip Sequence File' + struct.pack('<i', version)
    out += lstr('ExpressionStat')
    if version == 8:
        out += lstr('Alpha1=0.04 Alpha2=0.06')
        out += struct.pack('<iiiii', cols, rows, num_cells, num_cells, 0)
        out += b'\x00' * (2 * num_cells * 2 * 4)
        out += padded('HG-U133A\nextra', 256)
        return out
    out += lstr('5.0')
    out += lstr('Alpha1=0.04 Alpha2=0.06')
    out += lstr('Background=avg:52.4,stdev:1.3 Noise=2.1')
    out += struct.pack('<iii', cols, rows, num_cells)
    return out


def gdac_chp_unit(
    pairs: int,
    pairs_used: int,
    detection_pvalue: float,
    signal: float,
    detection: int,
    comparison: Optional[tuple[int, int, float, float, float, float]] = None,
) -> bytes:
    """`comparison` holds (common_pairs, change, slr, slr_low, slr_high, change_pvalue)."""
    out = struct.pack('<ii', pairs, pairs_used) + b'\x00' * 20
    out += struct.pack('<fffi', detection_pvalue, 0.0, signal, detection)
    out += b'\x00' * (52 * pairs)
    if comparison is None:
        return out + struct.pack('<i', 0)
    common_pairs, change, slr, slr_low, slr_high, change_pvalue = comparison
    out += struct.pack('<ii', 1, common_pairs) + b'\x00' * 12
    out += struct.pack('<ibb', change, 0, 0) + b'\x00' * 8
    out += struct.pack('<i', round(slr_high * 1000)) + b'\x00' * 8
    out += struct.pack('<i', round(slr * 1000)) + b'\x00' * 4
    out += struct.pack('<if', round(slr_low * 1000), change_pvalue)
    return out


def gdac_chp_v12(units: Sequence[bytes], *, version: int = 12, unit_type: int = 3) -> bytes:
    num_cells = len(units)
    max_cell_no = num_cells + 1
    unused = b'\x00' * ((max_cell_no - num_cells) * 4)
    out = gdac_chp_header(version, num_cells)
    out += struct.pack('<ii', max_cell_no, 0)
    out += struct.pack(f'<{num_cells}i', *range(num_cells))        # cell numbers
    out += struct.pack(f'<{num_cells}i', *([1] * num_cells))       # pair counts
    out += unused
    out += struct.pack(f'<{num_cells}i', *([unit_type] * num_cells))
    out += unused
    out += struct.pack(f'<{num_cells}i', *([2] * num_cells))       # probe counts
    out += padded('HG-U133A', 256)
    out += padded('C:\\data\\sample.CEL\r\n', 256)
    out += lstr('GeneChip 5.0')
    out += b''.join(units)
    out += struct.pack('<i', 0)
    return out


# --- Generic container ---

def calvin_int32(value: int) -> bytes:
    return struct.pack('>i', value)


def calvin_text(value: str) -> bytes:
    return value.encode('utf-16-be') + b'\x00\x00'


def generic_data_header(
    data_type: str,
    parameters: Iterable[tuple[str, bytes, str]] = (),
    parents: Sequence[bytes] = (),
) -> bytes:
    parameters = list(parameters)
    out = bstr(data_type) + bstr('0000-file-id')
    out += bwstr('2006-01-01T10:00:00Z') + bwstr('en-US')
    out += struct.pack('>i', len(parameters))
    for name, raw, mime_type in parameters:
        out += bwstr(name) + struct.pack('>i', len(raw)) + raw + bwstr(mime_type)
    out += struct.pack('>i', len(parents)) + b''.join(parents)
    return out


def column_descriptors(columns: Sequence[tuple[str, int, int]]) -> bytes:
    return b''.join(bwstr(name) + struct.pack('>bi', type_tag, size) for name, type_tag, size in columns)


def generic_file(
    data_type: str,
    parameters: Iterable[tuple[str, bytes, str]] = (),
    groups: Sequence[tuple[str, Sequence[tuple[str, Sequence[tuple[str, int, int]], bytes, int]]]] = (),
    parents: Sequence[bytes] = (),
) -> bytes:
    """
    `groups` holds (name, data_sets); each data set is
    (name, columns, packed row table, row count).
    """
    header = generic_data_header(data_type, parameters, parents)
    position = 10 + len(header)
    first_group = position if groups else 0

    blobs = []
    for group_index, (group_name, data_sets) in enumerate(groups):
        group_name_bytes = bwstr(group_name)
        position += 12 + len(group_name_bytes)
        first_set = position if data_sets else 0
        set_blobs = []
        for set_index, (set_name, columns, table, num_rows) in enumerate(data_sets):
            meta = bwstr(set_name) + struct.pack('>i', 0)
            meta += struct.pack('>I', len(columns)) + column_descriptors(columns)
            meta += struct.pack('>I', num_rows)
            data_table_start = position + 8 + len(meta)
            position = data_table_start + len(table)
            next_set = position if set_index < len(data_sets) - 1 else 0
            set_blobs.append(struct.pack('>II', data_table_start, next_set) + meta + table)
        next_group = position if group_index < len(groups) - 1 else 0
        blobs.append(
            struct.pack('>IIi', next_group, first_set, len(data_sets)) + group_name_bytes
            + b''.join(set_blobs)
        )
    return struct.pack('>BBiI', 59, 1, len(groups), first_group) + header + b''.join(blobs)


EXPRESSION_COLUMNS = [('ProbeSetId', 5, 4), ('Detection', 1, 1), ('Signal', 6, 4)]


def generic_expression_chp(rows: Sequence[tuple[int, int, float]]) -> bytes:
    table = b''.join(struct.pack('>IBf', *row) for row in rows)
    return generic_file(
        'affymetrix-expression-probeset-analysis',
        [
            ('affymetrix-algorithm-name', 'ExpressionStat'.encode('latin-1'), 'text/ascii'),
            ('affymetrix-array-type', calvin_text('HG-U133A'), 'text/plain'),
            ('affymetrix-algorithm-param-Alpha1', struct.pack('>f', 0.04), 'text/x-calvin-float'),
            ('affymetrix-chipsummary-Noise', struct.pack('>f', 2.5), 'text/x-calvin-float'),
        ],
        [('Default Group', [('Expression', EXPRESSION_COLUMNS, table, len(rows))])],
    )


def generic_cel(
    cols: int,
    rows: int,
    cells: Sequence[tuple[float, float, int]],
    *,
    masked: Sequence[tuple[int, int]] = (),
    outliers: Sequence[tuple[int, int]] = (),
) -> bytes:
    def coordinates(pairs):
        return b''.join(struct.pack('>hh', x, y) for x, y in pairs)

    xy_columns = [('X', 2, 2), ('Y', 2, 2)]
    data_sets = [
        ('Intensity', [('Intensity', 6, 4)], b''.join(struct.pack('>f', c[0]) for c in cells), len(cells)),
        ('StdDev', [('StdDev', 6, 4)], b''.join(struct.pack('>f', c[1]) for c in cells), len(cells)),
        ('Pixel', [('Pixel', 2, 2)], b''.join(struct.pack('>h', c[2]) for c in cells), len(cells)),
        ('Outlier', xy_columns, coordinates(outliers), len(outliers)),
        ('Mask', xy_columns, coordinates(masked), len(masked)),
    ]
    return generic_file(
        'affymetrix-calvin-intensity',
        [
            ('affymetrix-algorithm-name', calvin_text('Feature Extraction'), 'text/plain'),
            ('affymetrix-array-type', calvin_text('HG-U133A'), 'text/plain'),
            ('affymetrix-cel-cols', calvin_int32(cols), 'text/x-calvin-integer-32'),
            ('affymetrix-cel-rows', calvin_int32(rows), 'text/x-calvin-integer-32'),
            ('affymetrix-algorithm-param-Percentile', calvin_int32(75), 'text/x-calvin-integer-32'),
        ],
        [('Default Group', data_sets)],
    )


# --- EXP ---

def exp_file(
    fluidics: Optional[Sequence[tuple[str, str]]] = None,
    *,
    label: str = 'Affymetrix GeneChip Experiment Information',
    sections: Sequence[str] = ('Sample Info', 'Fluidics', 'Scanner'),
) -> bytes:
    bodies = {
        'Sample Info': [('Chip Type', 'HG-U133A'), ('Chip Lot', '4012345'), ('Operator', 'jdoe')],
        'Fluidics': list(EXP_FLUIDICS if fluidics is None else fluidics),
        'Scanner': [
            ('Pixel Size', '3'),
            ('Filter', '570'),
            ('Scan Temperature', ''),
            ('Scan Date', 'Jan 10 2004 10:00AM'),
            ('Scanner ID', '50205880'),
            ('Number of Scans', '1'),
            ('Scanner Type', ''),
        ],
    }
    lines = [label, 'Version\t1', '']
    for section in sections:
        lines.append(f'[{section}]')
        lines += [f'{key}\t{value}' for key, value in bodies[section]]
        lines.append('')
    return '\r\n'.join(lines).encode('latin-1')


# --- Shared fixture data ---

# A 3 x 2 chip: intensities 100.04, 200.05, ... with two flagged cells.
CEL_COLS, CEL_ROWS = 3, 2
CEL_CELLS = [
    (100.04, 10.0, 16),
    (200.05, 20.0, 16),
    (300.0, 30.0, 25),
    (400.0, 40.0, 25),
    (500.0, 50.0, 36),
    (600.0, 60.0, 36),
]
CEL_MASKED = [(1, 0)]
CEL_OUTLIERS = [(2, 1)]

# Two expression units, the first named by its block only.
CDF_UNITS = [
    ('NONE', 1000, [('1000_at', [(0, 0), (1, 0)])]),
    ('1001_at', 1001, [('1001_at', [(2, 0), (0, 1)])]),
]

EXPRESSION_RECORDS = [
    (0, 0.000123, 1234.56, 11, 11),
    (2, 0.5, 12.34, 11, 10),
]

EXP_FLUIDICS = [
    ('Protocol', 'EukGE-WS2v4'),
    ('Wash A1 Recovery Mixes', '0'),
    ('Wash A1 Temperature (C)', '25'),
    ('Station', '1'),
    ('Module', '2'),
    ('Hybridize Date', 'Jan 09 2004 04:30PM'),
]
