"""
Errors raised while reading an experiment group.
"""


class ExperimentFormatError(IOError):
    """
    An input file does not have the structure its group type requires:
    a marker is missing, a plate ID is unknown, a layout paragraph is out
    of place, and so on. The message names the file. These always abort
    processing of the whole group.
    """
