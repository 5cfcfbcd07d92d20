"""
Results for one experiment, that is one small plate. The experiment starts
on a 96-well plate that is measured for growth at one or more time points and
ends on a 384-well plate that is measured for threonine production. The
purpose of these classes is to associate the growth and production with a
fully-described strain, IPTG status and time point.
"""
import doctest
import functools
import logging
import re

from typing import Dict, Iterator, Optional, Tuple

from utils.platelayout import well_sort_key

logger = logging.getLogger(__name__)

KEY_REGEX = r'\s*([0-9.]+)h\s+([A-Z]\d+)\s*'

# Only ASCII whitespace. Some strain names contain non-breaking spaces that
# must survive.
SPACES_REGEX = r'[ \t\n\r\f\v]+'

IPTG_SUFFIX = ' +IPTG'


@functools.total_ordering
class ResultKey:
    """
    The key of an experiment result: the small-plate well and the time point.
    Keys sort by well and then time point, so all the results for a well are
    clustered together.

    >>> ResultKey('A1', 24.0) < ResultKey('A2', 4.5) < ResultKey('B1', 0.0)
    True
    >>> ResultKey('A1', 4.5) < ResultKey('A1', 24.0)
    True
    >>> ResultKey('A1', 24.0) == ResultKey('A1', 24)
    True
    >>> ResultKey('A1', 24.0)
    ResultKey('A1', 24.0)
    """

    __slots__ = ('_well', '_time_point')

    def __init__(self, well: str, time_point: float) -> None:
        self._well = well
        self._time_point = float(time_point)

    @classmethod
    def create(cls, value: str) -> Optional['ResultKey']:
        """
        Parses a key string made of a time point, "h" and a well. Returns
        None if the string is not a key.

        >>> ResultKey.create('  4.5h A1')
        ResultKey('A1', 4.5)
        >>> ResultKey.create('24h H16  ')
        ResultKey('H16', 24.0)
        >>> ResultKey.create('') is None
        True
        """
        matches = re.fullmatch(KEY_REGEX, value)
        if not matches:
            return None
        try:
            time_point = float(matches[1])
        except ValueError:
            return None
        return cls(matches[2], time_point)

    @property
    def well(self) -> str:
        return self._well

    @property
    def time_point(self) -> float:
        return self._time_point

    def _tuple(self):
        return (self._well, self._time_point)

    def __eq__(self, other):
        if not isinstance(other, ResultKey):
            return NotImplemented
        return self._tuple() == other._tuple()

    def __lt__(self, other):
        if not isinstance(other, ResultKey):
            return NotImplemented
        return self._tuple() < other._tuple()

    def __hash__(self):
        return hash(self._tuple())

    def __repr__(self):
        return 'ResultKey({!r}, {!r})'.format(self._well, self._time_point)


class Result:
    """
    Growth and production for one well at one time point. Growth is optical
    density and production is threonine in g/L. Both are None until set.

    >>> r = Result('926  DthrABC\\tpfb6.4.2 ', ResultKey('B4', 24.0), False)
    >>> r.strain
    '926 DthrABC pfb6.4.2'
    >>> r.is_complete
    False
    >>> r.growth = 5.91
    >>> r.production = 0.019
    >>> r.is_complete
    True
    """

    def __init__(self, strain: str, key: ResultKey, iptg: bool) -> None:
        self.strain = re.sub(SPACES_REGEX, ' ', strain).strip(' ')
        self.key = key
        self.iptg = iptg
        self.growth: Optional[float] = None
        self.production: Optional[float] = None
        self.suspect = False

    @property
    def well(self) -> str:
        return self.key.well

    @property
    def time_point(self) -> float:
        return self.key.time_point

    @property
    def is_complete(self) -> bool:
        return self.growth is not None and self.production is not None

    def __repr__(self):
        return 'Result({!r}, {!r}, iptg={}, growth={}, production={}, suspect={})'.format(
            self.strain, self.key, self.iptg, self.growth, self.production, self.suspect)


class ExperimentData:
    """
    All the results for one small plate, keyed by well and time point.

    >>> exp = ExperimentData('S4D1')
    >>> exp.store('926 pfb6.4.2', 'B4', 24.0, False)
    >>> exp.store('926 pfb6.4.2', 'F4', 24.0, True)
    >>> list(exp.layout())
    [('B4', '926 pfb6.4.2'), ('F4', '926 pfb6.4.2 +IPTG')]
    >>> exp.get_result('B4', 24.0) is exp.get(ResultKey('B4', 24.0))
    True
    >>> exp.get_result('B4', 9.0) is None
    True
    >>> [r.well for r in exp]
    ['B4', 'F4']
    """

    # A well with this growth or less at the check time is dead
    min_growth = 0.001
    check_time = 24.0

    def __init__(self, experiment_id: str) -> None:
        self.id = experiment_id
        # Last strain stored for each well, with the IPTG suffix
        self._strains: Dict[str, str] = {}
        self._results: Dict[ResultKey, Result] = {}

    def store(self, strain: str, well: str, time_point: float, iptg: bool) -> None:
        """
        Creates the result for a well and time point. Growth and production
        are filled in later.
        """
        key = ResultKey(well, time_point)
        result = Result(strain, key, iptg)
        self._results[key] = result
        self._strains[well] = result.strain + (IPTG_SUFFIX if iptg else '')

    def layout(self) -> Iterator[Tuple[str, str]]:
        """
        Yields each well with a strain and that strain, row by row in column
        number order.
        """
        for well in sorted(self._strains, key=well_sort_key):
            yield well, self._strains[well]

    def get(self, key: ResultKey) -> Optional[Result]:
        return self._results.get(key)

    def get_result(self, well: str, time_point: float) -> Optional[Result]:
        return self._results.get(ResultKey(well, time_point))

    def remove_bad_wells(self) -> int:
        """
        Removes every result for each well that had no real growth at the
        check time. Returns the number of bad wells.

        >>> exp = ExperimentData('X')
        >>> for time_point in (9.0, 24.0):
        ...     for well in ('A1', 'A2', 'A3'):
        ...         exp.store('277', well, time_point, False)
        >>> exp.get_result('A1', 24.0).growth = 0.0005
        >>> exp.get_result('A2', 24.0).growth = 1.2
        >>> exp.get_result('A3', 9.0).growth = 0.0
        >>> exp.remove_bad_wells()
        1
        >>> sorted({r.well for r in exp})
        ['A2', 'A3']
        """
        bad_wells = {key.well for key, result in self._results.items()
                     if key.time_point == self.check_time
                     and result.growth is not None
                     and result.growth <= self.min_growth}
        logger.info('{} bad wells found in experiment {}.'.format(len(bad_wells), self.id))
        self._results = {key: result for key, result in self._results.items()
                         if key.well not in bad_wells}
        logger.info('{} results left after bad-well removal.'.format(len(self._results)))
        return len(bad_wells)

    def __iter__(self) -> Iterator[Result]:
        return iter([self._results[key] for key in sorted(self._results)])

    def __len__(self):
        return len(self._results)

    def __repr__(self):
        return 'ExperimentData({!r})'.format(self.id)


if __name__ == '__main__':
    doctest.testmod()
