"""
Cell access helpers for lab spreadsheets read with openpyxl.

Row and column indices are 0-based throughout, as is the row iteration.
Iterated rows are tuples of raw cell values that always start at column A.
"""
import doctest
import logging
import zipfile

from contextlib import contextmanager
from typing import Any, Iterator, Optional, Sequence

import openpyxl  # type: ignore

from openpyxl.utils.exceptions import InvalidFileException  # type: ignore
from openpyxl.worksheet.worksheet import Worksheet  # type: ignore

logger = logging.getLogger(__name__)


def value_text(value: Any) -> str:
    """
    Returns the text in a cell value, or an empty string if it has none.
    Numbers are rendered as decimals.

    >>> value_text('  Sample ')
    'Sample'
    >>> value_text(926)
    '926.0'
    >>> value_text(None)
    ''
    >>> value_text(True)
    ''
    """
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(float(value))
    return ''


def value_number(value: Any) -> Optional[float]:
    """
    Returns the number in a cell value, or None if it has none.

    >>> value_number(59)
    59.0
    >>> value_number('59') is None
    True
    >>> value_number(None) is None
    True
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return None


def row_text(row: Sequence[Any], col: int) -> str:
    """
    >>> row_text(('A', ' 24h B4 '), 1)
    '24h B4'
    >>> row_text(('A',), 5)
    ''
    """
    return value_text(row[col]) if col < len(row) else ''


def row_number(row: Sequence[Any], col: int) -> Optional[float]:
    """
    >>> row_number(('A', 0.631), 1)
    0.631
    >>> row_number(('A',), 3) is None
    True
    """
    return value_number(row[col]) if col < len(row) else None


def cell_text(sheet: Worksheet, row: int, col: int) -> str:
    return value_text(sheet.cell(row=row + 1, column=col + 1).value)


def cell_number(sheet: Worksheet, row: int, col: int) -> Optional[float]:
    return value_number(sheet.cell(row=row + 1, column=col + 1).value)


def iter_rows(sheet: Worksheet) -> Iterator[tuple]:
    """
    Iterates over every row of a sheet from the first, including empty ones.
    """
    return sheet.iter_rows(min_row=1, min_col=1, values_only=True)


def find_marker(rows: Iterator[Sequence[Any]], marker: str) -> bool:
    """
    Advances the row iterator past the first row whose first cell holds
    the marker text. Returns False if the rows ran out first.

    >>> rows = iter([('Plate 1',), (), ('Sample', 1, 2), ('A', 'x')])
    >>> find_marker(rows, 'Sample')
    True
    >>> next(rows)
    ('A', 'x')
    >>> find_marker(rows, 'mg/L')
    False
    """
    for row in rows:
        if row_text(row, 0) == marker:
            return True
    return False


@contextmanager
def first_sheet(path) -> Iterator[Worksheet]:
    """
    Opens a workbook and yields its first worksheet. Formula cells hold
    their cached values.
    """
    try:
        workbook = openpyxl.load_workbook(str(path), data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError) as e:
        raise IOError('Cannot read workbook "{}": {}'.format(path, e)) from e
    try:
        yield workbook.worksheets[0]
    finally:
        workbook.close()


if __name__ == '__main__':
    doctest.testmod()
