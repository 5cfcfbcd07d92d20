"""
Readers for the data files shared by all experiment group types: the
delimited growth assay export, the two-grid production spreadsheet and the
bad-well list.

Each reader parses its whole file before touching any result, so a file
that fails to parse leaves the group exactly as it was.
The text files are UTF-8, optionally with a byte order mark.

The growth file is comma-delimited and quoted. Its first cell starts with
"New assay" or "OD". The second line names the plate. Further on there is a
dilution line such as "10-fold dilution", or else a "Results by well" line
that implies a factor of 10. Below that, every row starting with a well label
has the optical density in its third column.

The production spreadsheet has two grids of identical shape describing a
384-well plate. The first is below the word "Sample" in the first column and
each cell describes the content of the well in a format determined by the
group type. The second is below "mg/L" and each cell holds the threonine
production in mg/L, which is converted to g/L. The grids are matched by
position.

The bad-well list is named "badWells.txt". Each line is a plate ID, a tab
and a comma-delimited list of wells on that plate that should be marked
suspicious.

See also experiments/tests/test_readers.py.
"""
import csv
import doctest
import logging
import re

from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Set, Tuple

from experiments.errors import ExperimentFormatError
from experiments.experimentdata import Result
from utils.excelutils import find_marker, first_sheet, iter_rows, row_number, row_text
from utils.platelayout import is_well_label

if TYPE_CHECKING:
    from experiments.group import ExperimentGroup  # noqa

logger = logging.getLogger(__name__)

DILUTION_REGEX = r'(\d+)[- ]fold\s+dilution'
RESULTS_MARKER = 'results by well'
DEFAULT_DILUTION = 10.0

# Plate marker in a growth file for the plate without a plasmid
NONE_STRING = 'NO PLASMID'
NONE_PLATE = 'NONE'

SAMPLE_MARKER = 'Sample'
PRODUCTION_MARKER = 'mg/L'

# Excel's UTF-8 text exports start with a byte order mark
TEXT_ENCODING = 'utf-8-sig'


def dilution_factor(line: str) -> Optional[float]:
    """
    >>> dilution_factor('10-fold dilution')
    10.0
    >>> dilution_factor('20 fold  dilution')
    20.0
    >>> dilution_factor('results by well')
    10.0
    >>> dilution_factor('Plate D1') is None
    True
    """
    line = line.lower()
    matches = re.fullmatch(DILUTION_REGEX, line)
    if matches:
        return float(matches[1])
    if line == RESULTS_MARKER:
        return DEFAULT_DILUTION
    return None


def read_bad_well_file(path) -> Dict[str, Set[str]]:
    bad_wells: Dict[str, Set[str]] = {}
    count = 0
    logger.info('Reading bad-well data from "{}".'.format(path))
    try:
        with open(str(path), encoding=TEXT_ENCODING) as handle:
            for line in handle:
                if not line.strip():
                    continue
                parts = line.rstrip('\r\n').split('\t')
                if len(parts) < 2:
                    raise ExperimentFormatError(
                        'Bad-well line "{}" in "{}" has no tab-delimited well list.'.format(line.strip(), path))
                wells = {well.strip() for well in parts[1].split(',') if well.strip()}
                bad_wells[parts[0].strip()] = wells
                count += len(wells)
    except UnicodeDecodeError as e:
        raise ExperimentFormatError('Bad-well file "{}" is not UTF-8 text: {}'.format(path, e)) from e
    logger.info('{} bad wells found in {} plates.'.format(count, len(bad_wells)))
    return bad_wells


def _first(record: Sequence[str]) -> str:
    return record[0].strip() if record else ''


def _parse_growth_csv(group: 'ExperimentGroup', path,
                      time_point: float) -> Tuple[str, List[Tuple[Result, float]], int]:
    """Returns the plate, the growth for each result found and the count of unknown wells."""
    growths: List[Tuple[Result, float]] = []
    skip_count = 0
    with open(str(path), newline='', encoding=TEXT_ENCODING) as handle:
        records = csv.reader(handle)
        label = _first(next(records, []))
        if not label.startswith(('New assay', 'OD')):
            raise ExperimentFormatError('"{}" does not appear to be a valid growth file.'.format(path))
        logger.info('Reading growth information from "{}".'.format(path))

        marker = _first(next(records, [])).upper()
        plate = None
        if NONE_STRING in marker:
            plate = NONE_PLATE
        else:
            for part in marker.split():
                if group.get_experiment(part) is not None:
                    plate = part
        if plate is None:
            raise ExperimentFormatError('Could not find plate ID in growth file "{}".'.format(path))
        experiment = group.get_experiment(plate)
        if experiment is None:
            raise ExperimentFormatError('Could not find experiment plate {} for "{}".'.format(plate, path))

        factor = None
        for record in records:
            factor = dilution_factor(_first(record))
            if factor is not None:
                break
        if factor is None:
            raise ExperimentFormatError('No dilution line found in growth file "{}".'.format(path))

        for record in records:
            well = _first(record)
            if not is_well_label(well):
                continue
            try:
                value = float(record[2])
            except (IndexError, ValueError) as e:
                raise ExperimentFormatError('Invalid growth value for well {} in "{}".'.format(
                    well, path)) from e
            result = experiment.get_result(well, time_point)
            if result is None:
                skip_count += 1
            else:
                growths.append((result, (value - group.norm_factor) * factor))
    return plate, growths, skip_count


def read_growth_csv(group: 'ExperimentGroup', path, time_point: float) -> None:
    """
    Stores growth for the plate named in a growth file. The value is
    normalized by subtracting the group's offset and multiplying by the
    dilution factor. The file must be UTF-8 text, with or without a byte
    order mark.
    """
    try:
        plate, growths, skip_count = _parse_growth_csv(group, path, time_point)
    except UnicodeDecodeError as e:
        raise ExperimentFormatError('Growth file "{}" is not UTF-8 text: {}'.format(path, e)) from e
    for result, growth in growths:
        result.growth = growth
    logger.info('{} values stored, {} values skipped for plate {}.'.format(
        len(growths), skip_count, plate))


def _sample_result(group: 'ExperimentGroup', data: str,
                   time_point: float) -> Optional[Tuple[Result, bool]]:
    """Returns the result described by a sample cell and whether its well is suspect."""
    sample = group.layout.parse_sample_name(group, data, time_point)
    if sample is None:
        return None
    plate = sample.plate
    if plate.lower() == 'nopl':
        plate = NONE_PLATE
    experiment = group.get_experiment(plate)
    if experiment is None:
        logger.warning('Invalid plate ID "{}" in sample map.'.format(plate))
        return None
    result = experiment.get_result(sample.well, sample.time)
    if result is None:
        return None
    return result, group.is_bad_well(plate, sample.well)


def read_production_file(group: 'ExperimentGroup', path, time_point: float) -> None:
    """
    Stores production and suspect flags from a production spreadsheet.
    The row-letter label of each grid row is in the group's start column and
    the data cells are the big-plate columns to its right.
    """
    label_col = group.start_col
    # Row letter to the results in that row of the big plate, None where unmapped
    cell_maps: Dict[str, List[Optional[Tuple[Result, bool]]]] = {}
    productions: List[Tuple[Result, float]] = []
    with first_sheet(path) as sheet:
        logger.info('Processing production sheet in "{}".'.format(path))
        rows = iter_rows(sheet)
        if not find_marker(rows, SAMPLE_MARKER):
            raise ExperimentFormatError('Could not find Sample section in "{}".'.format(path))
        # Skip the column headers
        next(rows, None)
        at_production = False
        for row in rows:
            label = row_text(row, label_col)
            if len(label) != 1:
                at_production = row_text(row, 0) == PRODUCTION_MARKER
                break
            cell_maps[label] = [
                _sample_result(group, row_text(row, label_col + 1 + c).replace('\n', ' ').upper(), time_point)
                for c in range(group.big_cols)]
        mapped = sum(r is not None for results in cell_maps.values() for r in results)
        logger.info('{} well mappings found.'.format(mapped))

        if not at_production and not find_marker(rows, PRODUCTION_MARKER):
            raise ExperimentFormatError('Could not find Production section in "{}".'.format(path))
        next(rows, None)
        for row in rows:
            label = row_text(row, label_col)
            if len(label) != 1:
                break
            results = cell_maps.get(label)
            if results is None:
                raise ExperimentFormatError('Production row {} in "{}" has no sample mapping row.'.format(
                    label, path))
            for c, mapping in enumerate(results):
                if mapping is None:
                    continue
                value = row_number(row, label_col + 1 + c)
                if value is not None:
                    productions.append((mapping[0], value / 1000.0))

    for results in cell_maps.values():
        for mapping in results:
            if mapping is not None:
                mapping[0].suspect = mapping[1]
    for result, production in productions:
        result.production = production
    logger.info('{} production values stored.'.format(len(productions)))


if __name__ == '__main__':
    doctest.testmod()
