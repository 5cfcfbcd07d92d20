"""
Well plate geometry. Experiments are grown on small 96-well plates and
production is measured on big 384-well plates.
"""
import doctest
import re

from abc import abstractproperty
from typing import List, Tuple

WELL_REGEX = r'[A-Z]\d+'


class AbstractPlateLayout:
    """
    Represents the grid layout of a well plate for biological research.
    """

    @abstractproperty
    def end_char(self):
        """Last character in sequence of Y-coordinates"""

    @abstractproperty
    def end_int(self):
        """Last integer in sequence of X-coordinates"""

    @classmethod
    def row_letters(cls) -> List[str]:
        """
        >>> Plate96Layout.row_letters()
        ['A', 'B', 'C', 'D', 'E', 'F', 'G', 'H']
        >>> Plate384Layout.row_letters()[-1]
        'P'
        """
        return [chr(i) for i in range(ord('A'), ord(cls.end_char) + 1)]

    @classmethod
    def col_labels(cls) -> List[str]:
        """
        >>> Plate96Layout.col_labels()[-3:]
        ['10', '11', '12']
        """
        return [str(i) for i in range(1, cls.end_int + 1)]


class Plate96Layout(AbstractPlateLayout):
    """
    96-well plate.
    """

    end_char = 'H'
    end_int = 12


class Plate384Layout(AbstractPlateLayout):
    """
    384-well plate.
    """

    end_char = 'P'
    end_int = 24


def is_well_label(value: str) -> bool:
    """
    >>> is_well_label('B4')
    True
    >>> is_well_label('H16')
    True
    >>> is_well_label('b4')
    False
    >>> is_well_label('Well')
    False
    """
    return re.fullmatch(WELL_REGEX, value) is not None


def well_sort_key(well: str) -> Tuple[str, int]:
    """
    Sorts wells row by row in column number order.

    >>> sorted(['B1', 'A10', 'A2'], key=well_sort_key)
    ['A2', 'A10', 'B1']
    """
    return well[0], int(well[1:])


def iptg_well(well: str) -> str:
    """
    Rows E through H of a small plate mirror rows A through D with IPTG
    added, so the IPTG twin of a well is four rows down.

    >>> iptg_well('A12')
    'E12'
    >>> iptg_well('D7')
    'H7'
    """
    return chr(ord(well[0]) + 4) + well[1:]


if __name__ == '__main__':
    doctest.testmod()
