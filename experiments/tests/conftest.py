import csv
import os
import zipfile

from xml.sax.saxutils import escape

import openpyxl  # type: ignore
import pytest

W_NS = 'http://schemas.openxmlformats.org/wordprocessingml/2006/main'

# List formats available to test documents, by numbering instance
NUM_IDS = {'decimal': '1', 'upperLetter': '2', 'lowerLetter': '3', 'bullet': '4'}

DOCUMENT_XML = ('<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
                '<w:document xmlns:w="{}"><w:body>{}<w:sectPr/></w:body></w:document>')

NUMBERING_XML = ('<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
                 '<w:numbering xmlns:w="{}">{}</w:numbering>')


def _numbering() -> str:
    abstracts = ''.join(
        '<w:abstractNum w:abstractNumId="{0}"><w:lvl w:ilvl="0"><w:start w:val="1"/>'
        '<w:numFmt w:val="{1}"/></w:lvl></w:abstractNum>'.format(int(num_id) + 10, fmt)
        for fmt, num_id in NUM_IDS.items())
    nums = ''.join(
        '<w:num w:numId="{0}"><w:abstractNumId w:val="{1}"/></w:num>'.format(num_id, int(num_id) + 10)
        for num_id in NUM_IDS.values())
    return NUMBERING_XML.format(W_NS, abstracts + nums)


def _paragraph(text: str, fmt=None) -> str:
    ppr = ''
    if fmt is not None:
        ppr = ('<w:pPr><w:numPr><w:ilvl w:val="0"/><w:numId w:val="{}"/></w:numPr></w:pPr>'
               .format(NUM_IDS[fmt]))
    return '<w:p>{}<w:r><w:t xml:space="preserve">{}</w:t></w:r></w:p>'.format(ppr, escape(text))


def write_docx(path, paragraphs) -> str:
    """
    Writes a word document. Each paragraph is a string, or a (text, format)
    pair for a list item.
    """
    body = ''.join(_paragraph(p) if isinstance(p, str) else _paragraph(*p) for p in paragraphs)
    with zipfile.ZipFile(str(path), 'w') as archive:
        archive.writestr('word/document.xml', DOCUMENT_XML.format(W_NS, body).encode('utf-8'))
        archive.writestr('word/numbering.xml', _numbering().encode('utf-8'))
    return str(path)


def write_xlsx(path, rows=(), cells=None) -> str:
    """
    Writes a one-sheet workbook from a list of rows and/or a map of 0-based
    (row, col) positions to values.
    """
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    for r, row in enumerate(rows):
        for c, value in enumerate(row):
            if value is not None:
                sheet.cell(row=r + 1, column=c + 1, value=value)
    for (r, c), value in (cells or {}).items():
        sheet.cell(row=r + 1, column=c + 1, value=value)
    workbook.save(str(path))
    return str(path)


def write_csv(path, rows) -> str:
    with open(str(path), 'w', newline='') as handle:
        csv.writer(handle, quoting=csv.QUOTE_ALL).writerows(rows)
    return str(path)


def production_rows(samples, values):
    """
    Rows of a production spreadsheet. Both arguments map a row letter to
    the cells of that row of the big plate.
    """
    header = [None] + list(range(1, 25))
    rows = [['Threonine assay'], ['Sample'], header]
    rows += [[label] + list(cells) for label, cells in samples.items()]
    rows += [[], ['mg/L'], header]
    rows += [[label] + list(cells) for label, cells in values.items()]
    return rows


# Column 4 uses Word's symbol-font delta
S4_LAYOUT = [
    'Threonine production layout',
    'Layout for sets S4A0, D1.',
    'A1.  277 control',
] + [('926 col{}'.format(c), 'decimal') for c in (1, 2, 3)] + [
    ('926\uf044thrABC\uf044asd\uf044dapA', 'decimal'),
] + [('926 col{}'.format(c), 'decimal') for c in range(5, 13)] + [
    ('0', 'upperLetter'),
    ('pfb6.4.2', 'upperLetter'),
    ('pfb6.4.3', 'upperLetter'),
    ('0 DrhtA', 'upperLetter'),
    '',
    'IPTG E=A, F=B, G=C, H=D',
    'Measured on the plate reader.',
]


def make_s4(group_dir) -> str:
    """A group with two plates sharing an outline layout."""
    os.makedirs(str(group_dir), exist_ok=True)
    open(os.path.join(str(group_dir), 'MULTI'), 'w').close()
    write_docx(os.path.join(str(group_dir), 'layout S4.docx'), S4_LAYOUT)
    write_csv(os.path.join(str(group_dir), 'growth D1.csv'), [
        ['New assay 1', ''],
        ['Plate D1 ', ''],
        ['', ''],
        ['10-fold dilution', ''],
        ['Results by well', ''],
        ['Well', 'Sample', 'OD(600)'],
        ['A1', 'x', '0.5'],
        ['B4', 'x', '0.631'],
        ['F4', 'x', '0.335'],
        ['H12', 'x', '0.2'],
        ['Z99', 'x', '0.2'],
    ])
    write_xlsx(os.path.join(str(group_dir), 'S4_24h_prod.xlsx'), production_rows(
        {'A': ['D1 B4', 'D1 24h F4', 'Blank', 'S4A0 A1', 'nopl A1'],
         'B': ['plate D1 A1']},
        {'A': [19, 59, 5, 7, 3],
         'B': [11]}))
    with open(os.path.join(str(group_dir), 'badWells.txt'), 'w') as handle:
        handle.write('D1\tF4\n')
    return str(group_dir)


def make_s2(group_dir) -> str:
    """A group with one spreadsheet layout and two plasmid plates."""
    os.makedirs(str(group_dir), exist_ok=True)
    open(os.path.join(str(group_dir), 'SET'), 'w').close()
    cells = {(3, 1): 'Strain layout'}
    cells.update({(4, c + 1): c for c in range(1, 13)})
    for r, letter in enumerate('ABCDEFGH'):
        cells[(5 + r, 1)] = letter
    cells[(5, 2)] = '277 base'
    cells[(5, 9)] = '277\nbase'
    cells[(9, 3)] = '277 DrhtA ptac-thrABC'
    cells[(12, 2)] = 'Blank'
    cells[(12, 3)] = 'blak'
    cells[(23, 2)] = 'Supplemental plasmids'
    cells[(24, 2)] = 'P6. rhtA'
    cells[(25, 2)] = 'P0 No plasmid'
    write_xlsx(os.path.join(str(group_dir), 'layout S2.xlsx'), cells=cells)
    write_csv(os.path.join(str(group_dir), 'P6.csv'), [
        ['OD600 readings'],
        ['Plasmid P6'],
        ['Results by well'],
        ['Well', 'Sample', 'OD(600)'],
        ['E2', 'x', '0.707'],
        ['A8', 'x', '0.3'],
    ])
    write_csv(os.path.join(str(group_dir), 'none.csv'), [
        ['OD600 readings'],
        ['No plasmid control'],
        ['20-fold dilution'],
        ['Well', 'Sample', 'OD(600)'],
        ['A1', 'x', '0.09'],
    ])
    write_xlsx(os.path.join(str(group_dir), 'S2 production.xlsx'), production_rows(
        {'A': ['Set 2 P6 E2', 'mfm nopl A1', 'MFM P6 A8']},
        {'A': [0, 12.5]}))
    return str(group_dir)


def make_single(group_dir) -> str:
    """A group with one plate read at two time points."""
    os.makedirs(str(group_dir), exist_ok=True)
    open(os.path.join(str(group_dir), 'SINGLE'), 'w').close()
    write_xlsx(os.path.join(str(group_dir), 'P1 layout 1.xlsx'), [
        ['Well', 'Strain'],
        ['A1', '7_0_0_A_asdO'],
        ['B2', '7_0_0_B_asdT'],
    ])
    header = [None, None] + list(range(1, 13))
    for time_name, values in (('4p5', (0.1, 0.2)), ('24', (0.3, 0.4))):
        write_xlsx(os.path.join(str(group_dir), '96well P1 {}.xlsx'.format(time_name)), [
            ['Growth of P1'],
            ['OD(600)'],
            header,
            [None, 'A', values[0]],
            [None, 'E', values[1]],
        ])
    write_xlsx(os.path.join(str(group_dir), 'P1 production.xlsx'), production_rows(
        {'A': ['4p5h A1', '24h A1', '24 E1', 'seed B2']},
        {'A': [30, 45, 60, 5]}))
    return str(group_dir)


@pytest.fixture
def s4_dir(tmp_path):
    return make_s4(tmp_path / 'S4')


@pytest.fixture
def s2_dir(tmp_path):
    return make_s2(tmp_path / 'S2')


@pytest.fixture
def single_dir(tmp_path):
    return make_single(tmp_path / 'G1')
