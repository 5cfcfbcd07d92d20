"""
The lab formats for an experiment group. Each format knows how to recognize
its layout files, how to read them into the group's results, how to find the
time point of a data file and how to parse a sample description in a
production spreadsheet. The group takes a format object as its strategy.

    SINGLE  one plate, spreadsheet layout, many time points
    MULTI   many plates sharing an outline-document layout
    SET     one spreadsheet layout shared by many plasmid plates

See also experiments/tests/test_layouts.py.
"""
import doctest
import logging
import os
import re

from abc import abstractmethod
from typing import TYPE_CHECKING, Dict, List, NamedTuple, Optional, Tuple

from experiments import readers
from experiments.errors import ExperimentFormatError
from experiments.experimentdata import IPTG_SUFFIX
from utils.docxutils import read_paragraphs
from utils.excelutils import cell_text, find_marker, first_sheet, iter_rows, row_number, row_text
from utils.platelayout import Plate96Layout, iptg_well, is_well_label

if TYPE_CHECKING:
    from experiments.group import ExperimentGroup  # noqa

logger = logging.getLogger(__name__)

BLANK = 'Blank'
NONE_PLATE = 'NONE'


class SampleDesc(NamedTuple):
    """The plate, well and time point named by a production sample cell."""
    plate: str
    well: str
    time: float


class AbstractLayout:
    """
    Format-specific behavior for an experiment group. There are three
    abstract methods to override: is_layout_file, read_layout_file and
    parse_sample_name. The remaining methods have defaults that suit most
    formats.
    """

    @abstractmethod
    def is_layout_file(self, name: str) -> bool:
        """Returns True if the named file describes the plate layout."""

    @abstractmethod
    def read_layout_file(self, group: 'ExperimentGroup', path) -> None:
        """Creates the group's experiments and results from a layout file."""

    @abstractmethod
    def parse_sample_name(self, group: 'ExperimentGroup', data: str,
                          default_time: Optional[float] = None) -> Optional[SampleDesc]:
        """
        Parses an upper-cased production sample cell. Returns None for a cell
        that does not describe a sample.
        """

    def is_growth_file(self, name: str) -> bool:
        return name.endswith('.csv')

    def time_point_files(self, group: 'ExperimentGroup') -> List[str]:
        """Returns the files whose names determine the group's time series."""
        return group.prod_files

    def compute_time_point(self, group: 'ExperimentGroup', path) -> float:
        return group.time_point

    def read_growth_file(self, group: 'ExperimentGroup', path, time_point: float) -> None:
        readers.read_growth_csv(group, path, time_point)

    def read_production_file(self, group: 'ExperimentGroup', path, time_point: float) -> None:
        readers.read_production_file(group, path, time_point)


class MultiLayout(AbstractLayout):
    """
    Many plates with the same layout, described in a word document.

    A heading paragraph "Layout for set XXXX" (or "Plates labelled XXXX")
    names the plates, comma-delimited. Numbered paragraphs in decimal
    format give the base strain for each column, and numbered paragraphs in
    letter format give the modifier for each row, with "0" meaning no
    modifier. Paragraphs like "B4.  926 pfb6.4.2" override a single well.
    "Blank" means no organism in the well.

    Abbreviation paragraphs "A=ptac thrABC" may precede the columns. A
    letter at the end of a column's strain number is replaced, so "926A ppc"
    becomes "926 ptac thrABC ppc".

    The last paragraph may be "IPTG E=A, F=B, ...", which copies each row on
    the right (and its overrides) to the row on the left with IPTG added.

    The time point is in the data file names, as in "S4_24h_prod.xlsx".
    """

    ABBR_REGEX = r'([A-Z])=(.+)'
    ABBR_CALL_REGEX = r'(\d+)([A-Z])(\s.+)'
    OVERRIDE_REGEX = r'([A-Z]\d+)\.\s+(.+)'
    IPTG_REGEX = r'IPTG\s+(.+)'
    IPTG_MAP_REGEX = r'([A-Z])=([A-Z])'
    PLATE_REGEX = r'(?:Layout for sets?|Plates labell?ed)\s+(.+)'
    TIME_REGEX = r'.+_(\d+)h.+'
    # Set ID, optional time and well
    SAMPLE_REGEX = r'0?(.+?)(?:\s+(\d+)[Hh])?\s+([A-Z]\d+)'
    NO_PLASMID_REGEX = r'no plasmid (\d+)(.+)'
    NON_ASCII_REGEX = r'[^\x00-\x7F]'
    # Word's symbol-font delta
    WORD_DELTA = '\uf044'

    ROW_FORMATS = ('upperLetter', 'lowerLetter')
    COLUMN_FORMATS = ('decimal',)

    def is_layout_file(self, name: str) -> bool:
        return name.endswith('.docx') and name.lower().startswith('layout')

    def compute_time_point(self, group: 'ExperimentGroup', path) -> float:
        """
        >>> from types import SimpleNamespace
        >>> group = SimpleNamespace(time_point=24.0)
        >>> MultiLayout().compute_time_point(group, '/data/S4/S4_9h_prod.xlsx')
        9.0
        >>> MultiLayout().compute_time_point(group, 'S4 production.xlsx')
        24.0
        """
        matches = re.fullmatch(self.TIME_REGEX, os.path.basename(str(path)))
        if matches:
            return float(matches[1])
        return group.time_point

    @classmethod
    def clean_line(cls, text: str) -> str:
        """
        >>> MultiLayout.clean_line(' 926\\uf044thrABC\\u00a0pfb6.4.2 ')
        '926DthrABC pfb6.4.2'
        >>> MultiLayout.clean_line('No plasmid control')
        ''
        """
        line = text.replace(cls.WORD_DELTA, 'D')
        line = re.sub(cls.NON_ASCII_REGEX, ' ', line).strip()
        if line.startswith('No plasmid'):
            return ''
        return line

    def is_layout_data(self, num_fmt: Optional[str], line: str) -> bool:
        """
        Returns True for a paragraph that means something in a layout.

        >>> MultiLayout().is_layout_data('decimal', '926 pfb6.4.2')
        True
        >>> MultiLayout().is_layout_data(None, 'B4.  Blank')
        True
        >>> MultiLayout().is_layout_data(None, 'Measured by the robot.')
        False
        >>> MultiLayout().is_layout_data('decimal', '')
        False
        """
        if not line:
            return False
        if num_fmt in self.ROW_FORMATS or num_fmt in self.COLUMN_FORMATS:
            return True
        return any(re.fullmatch(regex, line) for regex in (
            self.ABBR_REGEX, self.OVERRIDE_REGEX, self.PLATE_REGEX, self.IPTG_REGEX))

    def read_layout_file(self, group: 'ExperimentGroup', path) -> None:
        row_letters = Plate96Layout.row_letters()
        col_labels = Plate96Layout.col_labels()
        row_strings: List[Optional[str]] = [None] * len(row_letters)
        col_strings: List[Optional[str]] = [None] * len(col_labels)
        # Overrides go directly in here
        strain_map: Dict[str, str] = {}
        abbreviations: Dict[str, str] = {}
        plates: List[str] = []
        row = 0
        col = 0
        iptg_found = False

        for para in read_paragraphs(path):
            line = self.clean_line(para.text)
            if iptg_found:
                if self.is_layout_data(para.num_fmt, line):
                    raise ExperimentFormatError('Layout data "{}" follows the IPTG paragraph in "{}".'.format(
                        line, path))
                continue
            if para.num_fmt in self.ROW_FORMATS:
                if row >= len(row_strings):
                    raise ExperimentFormatError('Too many row paragraphs in "{}".'.format(path))
                row_strings[row] = line
                row += 1
            elif para.num_fmt in self.COLUMN_FORMATS:
                if col >= len(col_strings):
                    raise ExperimentFormatError('Too many column paragraphs in "{}".'.format(path))
                col_strings[col] = self._expand_abbreviation(abbreviations, line, path)
                col += 1
            elif para.num_fmt is not None:
                continue
            elif re.fullmatch(self.ABBR_REGEX, line):
                letter, replacement = re.fullmatch(self.ABBR_REGEX, line).groups()
                abbreviations[letter] = replacement
            elif re.fullmatch(self.OVERRIDE_REGEX, line):
                well, strain = re.fullmatch(self.OVERRIDE_REGEX, line).groups()
                strain_map[well] = strain
            elif re.fullmatch(self.PLATE_REGEX, line):
                plate_string = re.fullmatch(self.PLATE_REGEX, line)[1]
                if plate_string.endswith('.'):
                    plate_string = plate_string[:-1]
                # Sample cells and growth markers are matched upper-cased
                for plate in re.split(r',\s*', plate_string.upper()):
                    if plate.strip() and plate.strip() not in plates:
                        plates.append(plate.strip())
                logger.info('Processing plate layout.  Experiment list: {}.'.format(', '.join(plates)))
            elif re.fullmatch(self.IPTG_REGEX, line):
                self._copy_iptg_rows(re.fullmatch(self.IPTG_REGEX, line)[1], row_strings, strain_map, path)
                iptg_found = True

        for r, row_string in enumerate(row_strings):
            if row_string is None:
                continue
            # "0" means no modifier, anything else becomes a suffix
            if row_string.startswith('0'):
                suffix = row_string.replace('0', '', 1)
            else:
                suffix = ' ' + row_string
            for c, col_string in enumerate(col_strings):
                well = row_letters[r] + col_labels[c]
                if col_string is not None and col_string != BLANK and well not in strain_map:
                    strain_map[well] = col_string + suffix
        logger.info('{} row mappings, {} column mappings, {} strain mappings.'.format(
            row, col, len(strain_map)))

        if not plates:
            raise ExperimentFormatError('No plate ID found in "{}".'.format(path))
        for plate in plates:
            group.create_experiment(plate)
        for well, strain in sorted(strain_map.items()):
            if strain == BLANK:
                continue
            iptg = IPTG_SUFFIX in strain
            if iptg:
                strain = strain.replace(IPTG_SUFFIX, '')
            for plate in plates:
                group.store(plate, strain, well, iptg)

    def _expand_abbreviation(self, abbreviations: Dict[str, str], line: str, path) -> str:
        """
        >>> MultiLayout()._expand_abbreviation({'A': 'ptac thrABC'}, '926A ppc aspC', 'x')
        '926 ptac thrABC ppc aspC'
        >>> MultiLayout()._expand_abbreviation({}, '926 ppc aspC', 'x')
        '926 ppc aspC'
        """
        matches = re.fullmatch(self.ABBR_CALL_REGEX, line)
        if not matches:
            return line
        replacement = abbreviations.get(matches[2])
        if replacement is None:
            raise ExperimentFormatError('Invalid abbreviation character in "{}" of "{}".'.format(line, path))
        return matches[1] + ' ' + replacement + matches[3]

    def _copy_iptg_rows(self, mappings: str, row_strings: List[Optional[str]],
                        strain_map: Dict[str, str], path) -> None:
        """
        Copies each source row, and the overrides in it, to its IPTG row.
        Blank overrides stay blank.
        """
        row_letters = Plate96Layout.row_letters()
        for mapping in re.split(r',\s*', mappings.strip()):
            matches = re.fullmatch(self.IPTG_MAP_REGEX, mapping.strip())
            if not matches or matches[1] not in row_letters or matches[2] not in row_letters:
                raise ExperimentFormatError('Invalid IPTG mapping "{}" in "{}".'.format(mapping, path))
            target, source = matches.groups()
            overrides = [well for well in strain_map if well[0] == source]
            source_string = row_strings[row_letters.index(source)]
            if source_string is None and not overrides:
                raise ExperimentFormatError('IPTG mapping "{}" in "{}" copies a row with no strain data.'.format(
                    mapping, path))
            if source_string is not None:
                row_strings[row_letters.index(target)] = source_string + IPTG_SUFFIX
            for well in overrides:
                strain = strain_map[well]
                if strain != BLANK:
                    strain += IPTG_SUFFIX
                strain_map[target + well[1:]] = strain

    def parse_sample_name(self, group: 'ExperimentGroup', data: str,
                          default_time: Optional[float] = None) -> Optional[SampleDesc]:
        """
        >>> from types import SimpleNamespace
        >>> group = SimpleNamespace(time_point=24.0)
        >>> MultiLayout().parse_sample_name(group, 'D1 B4')
        SampleDesc(plate='D1', well='B4', time=24.0)
        >>> MultiLayout().parse_sample_name(group, 'PLATE S4 A0 9H C12')
        SampleDesc(plate='S4A0', well='C12', time=9.0)
        >>> MultiLayout().parse_sample_name(group, 'NO PLASMID 2 H1', 4.0)
        SampleDesc(plate='NONE2', well='H1', time=4.0)
        >>> MultiLayout().parse_sample_name(group, 'BLANK') is None
        True
        """
        trimmed = data[len('PLATE '):] if data.startswith('PLATE ') else data
        matches = re.fullmatch(self.NO_PLASMID_REGEX, trimmed, re.IGNORECASE)
        if matches:
            trimmed = NONE_PLATE + matches[1] + matches[2]
        matches = re.fullmatch(self.SAMPLE_REGEX, trimmed)
        if not matches:
            return None
        if matches[2] is not None:
            time_point = float(matches[2])
        elif default_time is not None:
            time_point = default_time
        else:
            time_point = group.time_point
        return SampleDesc(matches[1].replace(' ', ''), matches[3], time_point)


class SetLayout(AbstractLayout):
    """
    One layout for all plates, but each plate has a different gene insertion
    plasmid.

    The layout is a spreadsheet. The strains are in a grid whose rows have a
    single row letter in column B, with small-plate columns 1 to 12 in
    columns C onward. Columns 7 and up have IPTG. Below a header containing
    "mental plasmids" in C24 is a list of plasmids, each a plate ID, a period
    or space and the insertion gene.

    The sample names contain a short tag ("SET N" or "MFM") before the plate
    ID and well, and no time point.
    """

    SAMPLE_REGEX = r'0?(?:SET \d+|MFM)\s+(\S+)\s+([A-Z]\d+)'
    BLANK_REGEX = r'blank|blak'
    HEADER_MARKER = 'mental plasmids'
    # Gene names that mean the plate has no insertion
    none_names = frozenset(['NO PLASMID', 'NONE', 'EMPTY'])

    header_row = 23
    plasmid_col = 2
    label_col = 1
    first_iptg_col = 8

    def is_layout_file(self, name: str) -> bool:
        return name.endswith('.xlsx') and name.lower().startswith('layout')

    def plasmid_entry(self, value: str) -> Tuple[str, str]:
        """
        Returns the plate ID and strain suffix for a plasmid list entry.

        >>> SetLayout().plasmid_entry('p6. rhtA')
        ('P6', ' rhtA')
        >>> SetLayout().plasmid_entry('P0 No plasmid')
        ('NONE', '')
        """
        parts = re.split(r'\.?\s+', value, maxsplit=1)
        if len(parts) < 2:
            raise ExperimentFormatError('Invalid plasmid list entry "{}".'.format(value))
        plate, gene = parts[0], parts[1].strip()
        if gene.upper() in self.none_names:
            return NONE_PLATE, ''
        return plate.upper(), ' ' + gene

    def read_layout_file(self, group: 'ExperimentGroup', path) -> None:
        plate_map: Dict[str, str] = {}
        cells: List[Tuple[str, str, bool]] = []
        with first_sheet(path) as sheet:
            if self.HEADER_MARKER not in cell_text(sheet, self.header_row, self.plasmid_col):
                raise ExperimentFormatError('"{}" is not a valid layout file.  C24 does not have a '
                                            'recognized header.'.format(path))
            row = self.header_row + 1
            value = cell_text(sheet, row, self.plasmid_col)
            while value:
                plate, suffix = self.plasmid_entry(value)
                plate_map[plate] = suffix
                row += 1
                value = cell_text(sheet, row, self.plasmid_col)
            logger.info('{} plates found in plate list.'.format(len(plate_map)))

            for sheet_row in iter_rows(sheet):
                label = row_text(sheet_row, self.label_col)
                if len(label) != 1:
                    continue
                for c, col_label in enumerate(Plate96Layout.col_labels(), self.label_col + 1):
                    # Some strain names are split over lines for readability
                    strain = row_text(sheet_row, c).replace('\n', ' ').strip()
                    if strain and not re.fullmatch(self.BLANK_REGEX, strain, re.IGNORECASE):
                        cells.append((label + col_label, strain, c >= self.first_iptg_col))
            logger.info('{} cells found in layout file.'.format(len(cells)))

        for plate in plate_map:
            group.create_experiment(plate)
        for well, strain, iptg in cells:
            for plate, suffix in plate_map.items():
                group.store(plate, strain + suffix, well, iptg)

    def parse_sample_name(self, group: 'ExperimentGroup', data: str,
                          default_time: Optional[float] = None) -> Optional[SampleDesc]:
        """
        >>> from types import SimpleNamespace
        >>> group = SimpleNamespace(time_point=24.0)
        >>> SetLayout().parse_sample_name(group, '0SET 2 P6 E2')
        SampleDesc(plate='P6', well='E2', time=24.0)
        >>> SetLayout().parse_sample_name(group, 'MFM NOPL A1')
        SampleDesc(plate='NOPL', well='A1', time=24.0)
        >>> SetLayout().parse_sample_name(group, 'P6 E2') is None
        True
        """
        matches = re.fullmatch(self.SAMPLE_REGEX, data)
        if not matches:
            return None
        return SampleDesc(matches[1], matches[2], group.time_point)


class SingleLayout(AbstractLayout):
    """
    One plate measured at many time points, all in spreadsheets.

    The layout spreadsheet "<plate> layout <n>.xlsx" has a well label in the
    first column and a new-format strain ID in the second. Rows E to H of the
    plate repeat rows A to D with IPTG. Growth spreadsheets are named
    "96well <plate> <time>.xlsx" and hold an optical density matrix shaped
    like the plate. Sample names in the production sheet are a time point
    and a well.
    """

    LAYOUT_FILE_REGEX = r'(\S+)\s+layout\s+\d+\.xlsx'
    GROWTH_FILE_REGEX = r'96well\s+(\S+)\s+(\d+|\d+p\d+|seed)(?:\s*hrs?.+)?\.xlsx'
    SAMPLE_REGEX = r'(\d+|\d+p\d+|seed)h?\s+(\S+)'
    DEFAULT_PLATE = 'P1'
    # Marks a strain ID as new-format
    STRAIN_PREFIX = 'str '

    GROWTH_MARKER = 'OD(600)'
    # The matrix has a blank column and a row-letter column before the plate columns
    matrix_cols = Plate96Layout.end_int + 2
    growth_factor = 10.0

    def __init__(self) -> None:
        self.plate_id = self.DEFAULT_PLATE

    def is_layout_file(self, name: str) -> bool:
        return re.fullmatch(self.LAYOUT_FILE_REGEX, name) is not None

    def is_growth_file(self, name: str) -> bool:
        return super().is_growth_file(name) or re.fullmatch(self.GROWTH_FILE_REGEX, name) is not None

    def time_point_files(self, group: 'ExperimentGroup') -> List[str]:
        return group.growth_files

    @staticmethod
    def parse_time(value: str) -> float:
        """
        >>> SingleLayout.parse_time('4p5')
        4.5
        >>> SingleLayout.parse_time('4P5')
        4.5
        >>> SingleLayout.parse_time('seed')
        0.0
        >>> SingleLayout.parse_time('24')
        24.0
        """
        if value.lower() == 'seed':
            return 0.0
        return float(value.lower().replace('p', '.'))

    def compute_time_point(self, group: 'ExperimentGroup', path) -> float:
        """
        >>> from types import SimpleNamespace
        >>> group = SimpleNamespace(time_point=24.0)
        >>> SingleLayout().compute_time_point(group, '96well P1 4p5 hrs later.xlsx')
        4.5
        >>> SingleLayout().compute_time_point(group, 'production.xlsx')
        24.0
        """
        matches = re.fullmatch(self.GROWTH_FILE_REGEX, os.path.basename(str(path)))
        if matches:
            return self.parse_time(matches[2])
        return group.time_point

    def read_layout_file(self, group: 'ExperimentGroup', path) -> None:
        matches = re.fullmatch(self.LAYOUT_FILE_REGEX, os.path.basename(str(path)))
        plate = matches[1] if matches else self.DEFAULT_PLATE
        wells: List[Tuple[str, str]] = []
        with first_sheet(path) as sheet:
            for row in iter_rows(sheet):
                well = row_text(row, 0)
                if is_well_label(well):
                    wells.append((well, self.STRAIN_PREFIX + row_text(row, 1)))
        logger.info('{} wells found in layout for plate {}.'.format(len(wells), plate))

        self.plate_id = plate
        group.create_experiment(plate)
        for well, strain in wells:
            group.store(plate, strain, well, False)
            group.store(plate, strain, iptg_well(well), True)

    def parse_sample_name(self, group: 'ExperimentGroup', data: str,
                          default_time: Optional[float] = None) -> Optional[SampleDesc]:
        """
        >>> layout = SingleLayout()
        >>> layout.parse_sample_name(None, '4P5H B4')
        SampleDesc(plate='P1', well='B4', time=4.5)
        >>> layout.parse_sample_name(None, 'SEED A1')
        SampleDesc(plate='P1', well='A1', time=0.0)
        >>> layout.parse_sample_name(None, 'BLANK') is None
        True
        """
        matches = re.fullmatch(self.SAMPLE_REGEX, data, re.IGNORECASE)
        if not matches:
            return None
        return SampleDesc(self.plate_id, matches[2], self.parse_time(matches[1]))

    def read_growth_file(self, group: 'ExperimentGroup', path, time_point: float) -> None:
        """
        Reads a growth matrix. The values are diluted by a fixed factor that
        is multiplied back in. Delimited growth files use the common reader.
        """
        matches = re.fullmatch(self.GROWTH_FILE_REGEX, os.path.basename(str(path)))
        if not matches:
            super().read_growth_file(group, path, time_point)
            return
        plate = matches[1]
        experiment = group.get_experiment(plate)
        if experiment is None:
            raise ExperimentFormatError('Could not find experiment plate {} for "{}".'.format(plate, path))
        growths = []
        with first_sheet(path) as sheet:
            rows = iter_rows(sheet)
            if not find_marker(rows, self.GROWTH_MARKER):
                raise ExperimentFormatError('No OD marker found in growth file "{}".'.format(path))
            header = next(rows, ())
            col_labels = [_col_label(row_number(header, i)) for i in range(self.matrix_cols)]
            for row in rows:
                letter = row_text(row, 1)
                for i in range(2, self.matrix_cols):
                    value = row_number(row, i)
                    if value is None or not col_labels[i]:
                        continue
                    result = experiment.get_result(letter + col_labels[i], time_point)
                    if result is not None:
                        growths.append((result, value * self.growth_factor))
        for result, growth in growths:
            result.growth = growth
        logger.info('{} growth values stored from "{}".'.format(len(growths), path))


def _col_label(value: Optional[float]) -> str:
    """
    >>> _col_label(4.0)
    '4'
    >>> _col_label(None)
    ''
    """
    return '' if value is None else str(int(value))


# Group formats by the name of the marker file in a group directory
LAYOUT_FORMATS = {
    'MULTI': MultiLayout,
    'SET': SetLayout,
    'SINGLE': SingleLayout,
}


if __name__ == '__main__':
    doctest.testmod()
