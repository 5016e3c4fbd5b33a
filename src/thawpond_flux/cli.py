# src/thawpond_flux/cli.py

"""
CLI wrapper for the thaw pond ebullition analysis.

Sub-commands:
  prepare : Load both tables, expand the daily calendar, compute rolling
            flux, join onto the survey table and run the reference checks
  windows : Compare the six rolling-window variants against water area
  analyze : Full run (tests, correlations, summaries, JSON and figures)
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from thawpond_flux.analysis import compare_window_variants, prepare, run_analysis
from thawpond_flux.config import read_config
from thawpond_flux.exceptions import ThawPondDataError

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def _add_common_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument('--config', default=None,
                   help='YAML configuration file (defaults are used for missing keys)')
    p.add_argument('--survey-csv', default=None,
                   help='Path to the UAS polygon CSV')
    p.add_argument('--flux-csv', default=None,
                   help='Path to the daily average bubble flux CSV')
    p.add_argument('--output-dir', default=None,
                   help='Directory for the JSON summary and figures')
    p.add_argument('--no-figures', action='store_true',
                   help='Skip figure rendering')
    p.add_argument('--verbose', action='store_true',
                   help='Log at DEBUG level')


def _config_from_args(args: argparse.Namespace):
    return read_config(
        args.config,
        survey_csv=args.survey_csv,
        flux_csv=args.flux_csv,
        output_dir=args.output_dir,
        figures=False if args.no_figures else None,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='thawpond-flux',
        description='Thaw pond methane ebullition analysis'
    )
    sub = parser.add_subparsers(dest='command', required=True)

    # prepare sub-command
    p_prepare = sub.add_parser('prepare', help='Build the daily calendar and enriched survey table')
    _add_common_arguments(p_prepare)
    p_prepare.add_argument('--export-dir', default=None,
                           help='Write daily_flux.csv, survey_enriched.csv and fill_ratio.csv here')

    # windows sub-command
    p_windows = sub.add_parser('windows', help='Compare rolling-window variants against water area')
    _add_common_arguments(p_windows)

    # analyze sub-command
    p_analyze = sub.add_parser('analyze', help='Run the full analysis')
    _add_common_arguments(p_analyze)

    return parser


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = _config_from_args(args)

        if args.command == 'prepare':
            prepared = prepare(config)
            daily = prepared.daily
            print(f"Daily calendar: {len(daily)} pond-days "
                  f"({config.total_season_days} season days x {len(config.ponds)} ponds)")
            print(f"  with flux: {int(daily['daily_avg_flux'].notna().sum())}")
            print(f"  raw records outside the season window: {len(prepared.ignored)}")
            print(f"  duplicate raw records dropped: {prepared.n_duplicates}")
            rt = prepared.round_trip
            print(f"Centered median vs reference: {rt.n_compared} compared, {rt.n_mismatched} mismatched "
                  f"(tolerance {rt.tolerance})")
            cc = prepared.cumulative_check
            print(f"Cumulative flux vs reference: {cc.n_compared} compared, {cc.n_mismatched} mismatched")

            if args.export_dir:
                os.makedirs(args.export_dir, exist_ok=True)
                for name, df in [('daily_flux', daily), ('survey_enriched', prepared.survey),
                                 ('fill_ratio', prepared.fill)]:
                    path = os.path.join(args.export_dir, f"{name}.csv")
                    df.to_csv(path, index=False, date_format='%Y-%m-%d')
                    logger.info(f"Wrote {path}")

        elif args.command == 'windows':
            prepared = prepare(config)
            table = compare_window_variants(prepared.survey)
            print(table[['variant', 'n', 'tau', 'p_display', 'selected']].to_string(index=False))

        elif args.command == 'analyze':
            run_analysis(config)

    except (FileNotFoundError, PermissionError, KeyError, ThawPondDataError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        sys.exit(1)
    except ValueError as e:
        logger.error(f"Invalid input: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
