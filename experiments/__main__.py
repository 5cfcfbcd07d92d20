"""
Builds a tab-delimited threonine production table from a directory of
experiment groups. With --layout, writes the strain in each well of each
plate instead.

    python -m experiments IN_DIR OUT_FILE [--col N] [--remove-bad] [--layout] [-v]
"""
import argparse
import logging

from experiments.build import build_layout_table, build_table


def get_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Builds a threonine production table from experiment groups')
    parser.add_argument('in_dir',
                        help='directory containing one subdirectory per experiment group')
    parser.add_argument('out_file',
                        help='output file for the tab-delimited table')
    parser.add_argument('-c', '--col',
                        type=int,
                        default=0,
                        help='0-based column of the row labels in production spreadsheets')
    parser.add_argument('--remove-bad',
                        action='store_true',
                        help='remove wells with no growth at 24 hours')
    parser.add_argument('--layout',
                        action='store_true',
                        help='write the plate, well and strain of each layout well instead')
    parser.add_argument('-v', '--verbose',
                        action='store_true',
                        help='show progress messages')
    return parser


def main(argv=None) -> None:
    args = get_parser().parse_args(argv)
    if args.col < 0:
        raise ValueError('Start column must be 0 or more.')
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format='%(asctime)s %(name)s %(levelname)s %(message)s')
    if args.layout:
        table = build_layout_table(args.in_dir)
    else:
        table = build_table(args.in_dir, start_col=args.col, remove_bad=args.remove_bad)
    table.to_csv(args.out_file, sep='\t', index=False, float_format='%.6f')
    logging.getLogger(__name__).info('{} rows written to {}.'.format(len(table), args.out_file))


if __name__ == '__main__':
    main()
