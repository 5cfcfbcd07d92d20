"""
Provides to-dataframe functionality to experiment groups.
"""
import logging

from pandas import DataFrame

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from experiments.group import ExperimentGroup  # noqa

logger = logging.getLogger(__name__)

# The odd titles are for compatibility with legacy training files
COLUMNS = ['strain_lower', 'iptg', 'time', 'Thr', 'Growth', 'Suspect', 'experiment', 'Sample_y']


def group_to_df(group: 'ExperimentGroup', complete_only: bool = True) -> DataFrame:
    """
    Returns a flattened representation of the results in a processed group,
    one row per plate, well and time point. Results missing growth or
    production are left out unless complete_only is False.
    """
    records = []
    skip_count = 0
    bad_count = 0
    for experiment in group:
        logger.info('Writing results from experiment group {}.'.format(experiment.id))
        for result in experiment:
            if complete_only and not result.is_complete:
                logger.debug('Skipping incomplete result {}.'.format(result.well))
                skip_count += 1
                continue
            if result.suspect:
                bad_count += 1
            records.append((
                result.strain,
                'TRUE' if result.iptg else 'FALSE',
                result.time_point,
                result.production,
                result.growth,
                '1' if result.suspect else '0',
                experiment.id,
                result.well,
            ))
    logger.info('{} output data lines.  {} bad wells, {} incomplete wells.'.format(
        len(records), bad_count, skip_count))
    return DataFrame.from_records(records, columns=COLUMNS)

LAYOUT_COLUMNS = ['plate', 'well', 'strain']


def layout_to_df(group: 'ExperimentGroup') -> DataFrame:
    """
    Returns the strain in each populated well of each plate in a group,
    with IPTG wells marked by a " +IPTG" suffix.
    """
    records = [(experiment.id, well, strain)
               for experiment in group
               for well, strain in experiment.layout()]
    logger.info('{} layout lines for experiment group {}.'.format(len(records), group.id))
    return DataFrame.from_records(records, columns=LAYOUT_COLUMNS)
