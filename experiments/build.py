"""
Builds the threonine production table from a directory of experiment groups.

Each subdirectory is a group. Its type is given by an empty marker file named
MULTI, SET or SINGLE (see experiments/layouts.py). Subdirectories without a
marker are skipped.

The layout table lists the strain in each well of each plate, for checking
a group's layout files before its data arrives.
"""
import logging
import os

from typing import Iterator, Optional

import pandas

from experiments.group import ExperimentGroup
from experiments.layouts import LAYOUT_FORMATS
from experiments.to_df import COLUMNS, LAYOUT_COLUMNS, group_to_df, layout_to_df

logger = logging.getLogger(__name__)


def group_type(group_dir) -> Optional[str]:
    """Returns the format name marked in a group directory, or None."""
    for name in LAYOUT_FORMATS:
        if os.path.exists(os.path.join(str(group_dir), name)):
            return name
    return None


def load_group(group_dir, group_id: Optional[str] = None, start_col: int = 0,
               remove_bad: bool = False, layouts_only: bool = False) -> ExperimentGroup:
    """
    Reads all the files of one group, or only its layout files if
    layouts_only is set. The group ID defaults to the directory name.
    """
    kind = group_type(group_dir)
    if kind is None:
        raise ValueError('No type marker found in {}.'.format(group_dir))
    if group_id is None:
        group_id = os.path.basename(os.path.normpath(str(group_dir)))
    group = ExperimentGroup(group_dir, group_id, LAYOUT_FORMATS[kind](), start_col=start_col)
    logger.info('Processing experiment group {}.'.format(group.id))
    if layouts_only:
        group.read_layout_files()
        return group
    group.process_files()
    if remove_bad:
        group.remove_bad_wells()
    return group


def load_groups(in_dir, start_col: int = 0, remove_bad: bool = False,
                layouts_only: bool = False) -> Iterator[ExperimentGroup]:
    sub_dirs = sorted(name for name in os.listdir(str(in_dir))
                      if os.path.isdir(os.path.join(str(in_dir), name)))
    logger.info('{} subdirectories found in {}.'.format(len(sub_dirs), in_dir))
    for name in sub_dirs:
        sub_dir = os.path.join(str(in_dir), name)
        if group_type(sub_dir) is None:
            logger.info('Subdirectory {} does not appear to contain an experiment group:  '
                        'no type marker found.'.format(sub_dir))
            continue
        yield load_group(sub_dir, name, start_col, remove_bad, layouts_only)


def build_table(in_dir, start_col: int = 0, remove_bad: bool = False) -> pandas.DataFrame:
    frames = [group_to_df(group) for group in load_groups(in_dir, start_col, remove_bad)]
    if not frames:
        return pandas.DataFrame(columns=COLUMNS)
    return pandas.concat(frames, ignore_index=True)


def build_layout_table(in_dir) -> pandas.DataFrame:
    """Returns the well layout of every plate, reading only layout files."""
    frames = [layout_to_df(group) for group in load_groups(in_dir, layouts_only=True)]
    if not frames:
        return pandas.DataFrame(columns=LAYOUT_COLUMNS)
    return pandas.concat(frames, ignore_index=True)
