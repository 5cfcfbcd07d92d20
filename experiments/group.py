"""
An experiment group is a directory containing one or more experiments. Each
experiment has an ID, a layout, a growth assay and production data.
Frequently a single production run covers four experiments, due to the
differing plate sizes. An experiment is represented by a small 96-well plate,
and its ID is the group ID followed by the small plate's ID.

There are several lab formats for a group. The format is a layout object
(see experiments/layouts.py) that the group consults to classify files, to
read layouts and to parse sample names. Everything else is done here.

Files are processed in three phases: all layout files, then all growth
files, then all production files. Later phases only look up results that
the layout phase created.
"""
import logging
import os

from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Set

from experiments.experimentdata import ExperimentData, Result
from experiments.readers import read_bad_well_file
from utils.platelayout import Plate384Layout

if TYPE_CHECKING:
    from experiments.layouts import AbstractLayout  # noqa

logger = logging.getLogger(__name__)

BAD_WELL_FILE = 'badWells.txt'


class ExperimentGroup:
    """
    Runs the ingestion for one group directory. The class attributes are
    defaults that may be overridden on a subclass or an instance.
    """

    norm_factor = 0.04  # Optical density offset subtracted from growth readings
    big_cols = Plate384Layout.end_int  # Columns in a production plate grid
    time_point = 24.0  # Default time point
    start_col = 0  # Column of the row-letter labels in production grids
    iptg_time = 5.0  # IPTG is added at this time point

    def __init__(self, in_dir, group_id: str, layout: 'AbstractLayout',
                 start_col: Optional[int] = None,
                 time_point: Optional[float] = None) -> None:
        self.in_dir = in_dir
        self.id = group_id
        self.layout = layout
        if start_col is not None:
            self.start_col = start_col
        if time_point is not None:
            self.time_point = time_point
        self.experiment_map: Dict[str, ExperimentData] = {}
        self.bad_wells: Dict[str, Set[str]] = {}
        self.layout_files: List[str] = []
        self.growth_files: List[str] = []
        self.prod_files: List[str] = []

        logger.info('Analyzing files in input directory {}.'.format(in_dir))
        for name in sorted(os.listdir(str(in_dir))):
            path = os.path.join(str(in_dir), name)
            # Skip subdirectories and the lock files left by open spreadsheets
            if not os.path.isfile(path) or name.startswith('~$'):
                continue
            if layout.is_growth_file(name):
                self.growth_files.append(path)
            elif layout.is_layout_file(name):
                self.layout_files.append(path)
            elif name.endswith('.xlsx'):
                self.prod_files.append(path)
            elif name == BAD_WELL_FILE:
                self.bad_wells.update(read_bad_well_file(path))

        self.time_series = sorted({layout.compute_time_point(self, path)
                                   for path in layout.time_point_files(self)}) or [self.time_point]
        logger.info('{} time points will be used for this run.'.format(len(self.time_series)))

    def read_layout_files(self) -> None:
        for path in self.layout_files:
            logger.info('Analyzing layout file "{}".'.format(path))
            self.layout.read_layout_file(self, path)

    def process_files(self) -> None:
        """
        Reads every layout file, then every growth file, then every
        production file.
        """
        self.read_layout_files()
        for path in self.growth_files:
            logger.info('Analyzing growth file "{}".'.format(path))
            self.layout.read_growth_file(self, path, self.layout.compute_time_point(self, path))
        for path in self.prod_files:
            logger.info('Analyzing production spreadsheet "{}".'.format(path))
            self.layout.read_production_file(self, path, self.layout.compute_time_point(self, path))

    def create_experiment(self, plate: str) -> ExperimentData:
        experiment = self.experiment_map.get(plate)
        if experiment is None:
            experiment = ExperimentData(self.id + plate)
            self.experiment_map[plate] = experiment
        return experiment

    def get_experiment(self, plate: str) -> Optional[ExperimentData]:
        return self.experiment_map.get(plate)

    def store(self, plate: str, strain: str, well: str, iptg: bool) -> None:
        """
        Creates results for a well at every time point of the run. IPTG is
        only in effect once it has been added.
        """
        experiment = self.experiment_map[plate]
        for time_point in self.time_series:
            experiment.store(strain, well, time_point, iptg and time_point >= self.iptg_time)

    def get_result(self, plate: str, well: str, time_point: float) -> Optional[Result]:
        experiment = self.experiment_map.get(plate)
        if experiment is None:
            return None
        return experiment.get_result(well, time_point)

    def is_bad_well(self, plate: str, well: str) -> bool:
        return well in self.bad_wells.get(plate, ())

    def remove_bad_wells(self) -> int:
        return sum(experiment.remove_bad_wells() for experiment in self)

    def __iter__(self) -> Iterator[ExperimentData]:
        return iter([self.experiment_map[plate] for plate in sorted(self.experiment_map)])

    def __len__(self):
        return len(self.experiment_map)

    def __repr__(self):
        return 'ExperimentGroup({!r}, {})'.format(self.id, type(self.layout).__name__)
