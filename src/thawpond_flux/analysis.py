# src/thawpond_flux/analysis.py
"""
Module: analysis.py
Responsibilities:
- Run the full preparation chain: load, expand to the daily calendar,
  rolling-window flux, joins and the reference-column checks
- Compare the six rolling-window variants against quadcopter water area
- Answer the grouped (Kruskal-Wallis) and correlation (Kendall) questions
- Produce the descriptive summary tables
- Print a console report and write analysis_summary.json
"""
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from thawpond_flux.config import PipelineConfig
from thawpond_flux.data_io import (
    FIXED_WING, POND_DEPRESSION, QUADCOPTER, WATER,
    load_flux_table, load_survey_table, subset, validate_paths
)
from thawpond_flux.matching import (
    RoundTripReport, attach_cumulative_flux, attach_quad_area_means,
    attach_rolling_flux, check_round_trip, fill_ratio_table
)
from thawpond_flux.rolling import (
    ROLLING_COLUMNS, add_rolling_columns, cumulative_flux, defined_windows,
    suggest_window_length
)
from thawpond_flux.season_calendar import DATE_POND_KEY, POND_YEAR_KEY, check_density, expand_daily_flux
from thawpond_flux.stats_tests import (
    CorrelationResult, KruskalResult, dunn_pairwise, grouped_kendall,
    grouped_kruskal, kendall_correlation, kruskal_groups
)
from thawpond_flux.summary import describe, group_summary, pond_multi_year_summary, two_level_summary

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

SUMMARY_FILENAME = 'analysis_summary.json'


@dataclass
class PreparedData:
    """Everything the analysis questions read from."""
    config: PipelineConfig
    survey: pd.DataFrame
    daily: pd.DataFrame
    ignored: pd.DataFrame
    cumulative: pd.DataFrame
    fill: pd.DataFrame
    round_trip: RoundTripReport
    cumulative_check: RoundTripReport
    window_suggestion: Dict[str, Any] = field(default_factory=dict)
    n_duplicates: int = 0

    def polygons(self, polygon_type: str) -> pd.DataFrame:
        """Polygons of one type from both UAS types."""
        return subset(self.survey, polygon_type=polygon_type)

    def quad(self, polygon_type: str) -> pd.DataFrame:
        """Quadcopter polygons of one type."""
        return subset(self.survey, uas_type=QUADCOPTER, polygon_type=polygon_type)

    def fixed_wing(self, polygon_type: str) -> pd.DataFrame:
        """Fixed-wing polygons of one type."""
        return subset(self.survey, uas_type=FIXED_WING, polygon_type=polygon_type)


@dataclass
class AnalysisResults:
    prepared: PreparedData
    window_variants: pd.DataFrame
    group_tests: Dict[str, KruskalResult]
    dunn: Dict[str, pd.DataFrame]
    correlations: Dict[str, CorrelationResult]
    summaries: Dict[str, pd.DataFrame]


def prepare(config: PipelineConfig) -> PreparedData:
    """
    Load both tables and build the enriched survey table.

    Parameters
    ----------
    config : PipelineConfig
        Input paths, pond set, season window and rolling window

    Returns
    -------
    PreparedData

    Raises
    ------
    FileNotFoundError
        If an input table is missing
    ThawPondDataError
        If the inputs contain unknown ponds, bad dates or the calendar
        fails its density check
    """
    config.validate()
    validate_paths(config.survey_csv, config.flux_csv)

    survey = load_survey_table(config.survey_csv, config.ponds)
    flux = load_flux_table(config.flux_csv, config.ponds, decimals=config.flux_decimals)

    calendar = expand_daily_flux(flux, config)
    check_density(calendar.daily, config)
    daily = add_rolling_columns(calendar.daily, window=config.window, decimals=config.flux_decimals)
    # raw records, including days outside the season window; first duplicate kept
    cumulative = cumulative_flux(flux.drop_duplicates(DATE_POND_KEY), decimals=config.flux_decimals,
                                 years=config.season_years)

    survey = attach_rolling_flux(survey, daily)
    survey = attach_cumulative_flux(survey, cumulative)
    survey = attach_quad_area_means(survey)

    round_trip = check_round_trip(survey, tolerance=config.match_tolerance)
    cumulative_check = check_round_trip(
        survey, computed='cumulative_flux_check', reference='cumulative_flux_season',
        tolerance=config.match_tolerance
    )

    return PreparedData(
        config=config,
        survey=survey,
        daily=daily,
        ignored=calendar.ignored,
        cumulative=cumulative,
        fill=fill_ratio_table(survey),
        round_trip=round_trip,
        cumulative_check=cumulative_check,
        window_suggestion=suggest_window_length(survey),
        n_duplicates=calendar.n_duplicates,
    )


def compare_window_variants(survey: pd.DataFrame, columns: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Kendall tau between quadcopter water area and each rolling-window flux variant.

    Returns
    -------
    pd.DataFrame
        variant, n, tau, p_value, p_display, defined, selected; the selected
        variant is the defined one with the lowest p-value
    """
    columns = columns or ROLLING_COLUMNS
    water = subset(survey, uas_type=QUADCOPTER, polygon_type=WATER)
    rows = []
    for col in columns:
        res = kendall_correlation(water, 'area_m2', col)
        rows.append({
            'variant': col,
            'n': res.n,
            'tau': res.tau,
            'p_value': res.p_value,
            'p_display': res.p_display,
            'defined': res.defined,
        })
    table = pd.DataFrame(rows)
    table['selected'] = False
    defined = table[table['defined']]
    if not defined.empty:
        best = defined['p_value'].idxmin()
        table.loc[best, 'selected'] = True
        logger.info(f"Window variant with strongest association: {table.at[best, 'variant']} "
                    f"(tau = {table.at[best, 'tau']:.3f}, p = {table.at[best, 'p_display']})")
    return table


def _flatten(prefix: str, results: Dict[Any, Any]) -> Dict[str, Any]:
    return {f"{prefix}[{level}]": res for level, res in results.items()}


def run_group_tests(prepared: PreparedData) -> Dict[str, KruskalResult]:
    """
    Kruskal-Wallis questions on polygon areas and fill ratios from both UAS types.

    Keys name the response and the grouping; split tests carry the split
    level in brackets, e.g. ``water_area_by_month[2017]``.
    """
    alpha = prepared.config.alpha
    method = prepared.config.p_adjust
    water = prepared.polygons(WATER)
    depression = prepared.polygons(POND_DEPRESSION)
    fill = prepared.fill

    def kw(df: pd.DataFrame, value: str, group: str) -> KruskalResult:
        return kruskal_groups(df, value, group, alpha=alpha, p_adjust=method)

    tests: Dict[str, KruskalResult] = {
        'water_area_by_pond': kw(water, 'area_m2', 'pond_id'),
        'pond_depression_area_by_pond': kw(depression, 'area_m2', 'pond_id'),
        'fill_percent_by_pond': kw(fill, 'water_fill_percent', 'pond_id'),
        'water_area_by_month': kw(water, 'area_m2', 'month'),
        'pond_depression_area_by_year': kw(depression, 'area_m2', 'year'),
        'water_area_by_year': kw(water, 'area_m2', 'year'),
        'water_area_by_pond_type': kw(water, 'area_m2', 'pond_type'),
    }
    tests.update(_flatten('water_area_by_month',
                          grouped_kruskal(water, 'area_m2', 'month', 'year', alpha=alpha, p_adjust=method)))
    tests.update(_flatten('pond_water_area_by_month',
                          grouped_kruskal(water, 'area_m2', 'month', 'pond_id', alpha=alpha, p_adjust=method)))
    tests.update(_flatten('pond_depression_area_by_year',
                          grouped_kruskal(depression, 'area_m2', 'year', 'pond_id', alpha=alpha, p_adjust=method)))

    n_undefined = sum(not r.defined for r in tests.values())
    logger.info(f"Ran {len(tests)} Kruskal-Wallis tests ({n_undefined} undefined)")
    return tests


def run_dunn_tests(prepared: PreparedData) -> Dict[str, pd.DataFrame]:
    """Dunn's pairwise comparisons for the by-pond questions."""
    alpha = prepared.config.alpha
    method = prepared.config.p_adjust
    return {
        'water_area_by_pond': dunn_pairwise(prepared.polygons(WATER), 'area_m2', 'pond_id', alpha, method),
        'pond_depression_area_by_pond': dunn_pairwise(prepared.polygons(POND_DEPRESSION), 'area_m2', 'pond_id',
                                                      alpha, method),
        'fill_percent_by_pond': dunn_pairwise(prepared.fill, 'water_fill_percent', 'pond_id', alpha, method),
    }


def run_correlations(prepared: PreparedData) -> Dict[str, CorrelationResult]:
    """
    Kendall tau questions.

    - fixed-wing area against the quadcopter season and July means
    - water fill percentage (both UAS types) against 8-day preflight precipitation
    - centered median flux against quadcopter water area
    - centered median flux against 8-day preflight precipitation
    """
    water = prepared.quad(WATER)
    fill = prepared.fill
    results: Dict[str, CorrelationResult] = {}

    for polygon_type, name in [(WATER, 'water'), (POND_DEPRESSION, 'pond_depression')]:
        fw = prepared.fixed_wing(polygon_type)
        results[f"{name}_fixed_wing_vs_quad_season"] = kendall_correlation(fw, 'quad_mean_area_season', 'area_m2')
        results[f"{name}_fixed_wing_vs_quad_july"] = kendall_correlation(fw, 'quad_mean_area_july', 'area_m2')

    results['fill_percent_vs_precipitation'] = kendall_correlation(
        fill, 'precipitation_8d_preflight', 'water_fill_percent')
    results.update(_flatten('fill_percent_vs_precipitation',
                            grouped_kendall(fill, 'precipitation_8d_preflight', 'water_fill_percent', 'pond_id')))

    results['flux_vs_water_area'] = kendall_correlation(water, 'area_m2', 'median_center')
    results.update(_flatten('flux_vs_water_area', grouped_kendall(water, 'area_m2', 'median_center', 'pond_id')))

    results['flux_vs_precipitation'] = kendall_correlation(water, 'precipitation_8d_preflight', 'median_center')
    results.update(_flatten('flux_vs_precipitation',
                            grouped_kendall(water, 'precipitation_8d_preflight', 'median_center', 'pond_id')))

    n_undefined = sum(not r.defined for r in results.values())
    logger.info(f"Ran {len(results)} Kendall correlations ({n_undefined} undefined)")
    return results


def run_summaries(prepared: PreparedData) -> Dict[str, pd.DataFrame]:
    """
    Descriptive tables for areas, fill ratios and flux.

    By-pond and by-month water tables use quadcopter polygons; the year,
    year-month and fill-ratio tables use both UAS types.
    """
    quad_water = prepared.quad(WATER)
    water = prepared.polygons(WATER)
    depression = prepared.polygons(POND_DEPRESSION)
    fill = prepared.fill
    daily = prepared.daily

    return {
        'pond_multi_year': pond_multi_year_summary(prepared.survey),
        'water_area_by_pond': group_summary(quad_water, 'pond_id', 'area_m2'),
        'water_area_by_month': group_summary(quad_water, 'month', 'area_m2'),
        'pond_depression_area_by_pond': group_summary(depression, 'pond_id', 'area_m2'),
        'pond_depression_area_by_year': group_summary(depression, 'year', 'area_m2'),
        'water_area_by_year_month': group_summary(water, ['year', 'month'], 'area_m2'),
        'fill_percent_by_pond': group_summary(fill, 'pond_id', 'water_fill_percent'),
        'fill_percent_by_year_month': group_summary(fill, ['year', 'month'], 'water_fill_percent'),
        'daily_flux_by_pond_year': group_summary(daily, POND_YEAR_KEY, 'daily_avg_flux'),
        'daily_flux_by_pond': two_level_summary(daily, POND_YEAR_KEY, 'pond_id', 'daily_avg_flux'),
        'cumulative_flux_by_pond': group_summary(prepared.cumulative, 'pond_id', 'cumulative_flux'),
        'median_center_by_pond': group_summary(quad_water, 'pond_id', 'median_center'),
    }


def ensure_json_serializable(obj):
    """Recursively convert numpy/pandas values to plain JSON types (NaN -> None)."""
    if obj is None or obj is pd.NaT or obj is pd.NA:
        return None
    elif isinstance(obj, (str, bool)):
        return obj
    elif isinstance(obj, int):
        return obj
    elif isinstance(obj, float):
        return obj if np.isfinite(obj) else None
    elif isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        if np.isnan(obj) or np.isinf(obj):
            return None
        return float(obj)
    elif isinstance(obj, (datetime, pd.Timestamp)):
        return obj.isoformat()
    elif isinstance(obj, pd.DataFrame):
        return ensure_json_serializable(obj.to_dict(orient='records'))
    elif isinstance(obj, np.ndarray):
        return [ensure_json_serializable(x) for x in obj.tolist()]
    elif isinstance(obj, (list, tuple)):
        return [ensure_json_serializable(x) for x in obj]
    elif isinstance(obj, dict):
        return {str(k): ensure_json_serializable(v) for k, v in obj.items()}
    elif hasattr(obj, 'to_dict'):
        return ensure_json_serializable(obj.to_dict())
    else:
        return str(obj)


def results_to_dict(results: AnalysisResults) -> Dict[str, Any]:
    """JSON-ready view of an analysis run."""
    prepared = results.prepared
    cfg = prepared.config
    return ensure_json_serializable({
        'generated': datetime.now().isoformat(timespec='seconds'),
        'config': {
            'survey_csv': str(cfg.survey_csv),
            'flux_csv': str(cfg.flux_csv),
            'ponds': list(cfg.ponds),
            'season_years': list(cfg.season_years),
            'season_start': list(cfg.season_start),
            'season_end': list(cfg.season_end),
            'window': cfg.window,
            'alpha': cfg.alpha,
            'p_adjust': cfg.p_adjust,
        },
        'calendar': {
            'n_days': len(prepared.daily),
            'n_with_flux': int(prepared.daily['daily_avg_flux'].notna().sum()),
            'n_ignored': len(prepared.ignored),
            'n_duplicates': prepared.n_duplicates,
            'daily_flux': describe(prepared.daily['daily_avg_flux']),
            'defined_windows': defined_windows(prepared.daily),
        },
        'window_suggestion': prepared.window_suggestion,
        'round_trip': prepared.round_trip.to_dict(),
        'cumulative_check': prepared.cumulative_check.to_dict(),
        'window_variants': results.window_variants,
        'group_tests': {k: v.to_dict() for k, v in results.group_tests.items()},
        'dunn': results.dunn,
        'correlations': {k: v.to_dict() for k, v in results.correlations.items()},
        'summaries': results.summaries,
    })


def write_summary(results: AnalysisResults, output_dir: os.PathLike) -> str:
    """Write analysis_summary.json and return its path."""
    os.makedirs(output_dir, exist_ok=True)
    output_file = os.path.join(output_dir, SUMMARY_FILENAME)
    with open(output_file, 'w') as f:
        json.dump(results_to_dict(results), f, indent=2, allow_nan=False)
    logger.info(f"Saved results to {output_file}")
    return output_file


def print_report(results: AnalysisResults) -> None:
    """Console report of the checks, window comparison and test outcomes."""
    prepared = results.prepared
    rt = prepared.round_trip
    print("=" * 72)
    print("Thaw pond ebullition analysis")
    print("=" * 72)
    print(f"Daily calendar: {len(prepared.daily)} pond-days, "
          f"{int(prepared.daily['daily_avg_flux'].notna().sum())} with flux, "
          f"{len(prepared.ignored)} raw records outside the season window")
    suggestion = prepared.window_suggestion
    if suggestion.get('window') is not None:
        print(f"Mean quadcopter flight interval: {suggestion['mean_interval_days']:.3f} days "
              f"-> {suggestion['window']}-day window")
    status = "OK" if rt.ok else f"{rt.n_mismatched} mismatches"
    print(f"Centered median vs reference: {rt.n_compared} rows compared, {status}")

    print("\nWindow variants (quadcopter water area vs flux):")
    for row in results.window_variants.itertuples(index=False):
        mark = '*' if row.selected else ' '
        tau = f"{row.tau:.3f}" if row.defined else 'n/a'
        print(f" {mark} {row.variant:<14} n = {row.n:<4} tau = {tau:<7} p = {row.p_display}")

    print("\nKruskal-Wallis tests:")
    for res in results.group_tests.values():
        print(f"  {res.summary_line()}")

    print("\nKendall correlations:")
    for res in results.correlations.values():
        print(f"  {res.summary_line()}")


def analyze(prepared: PreparedData) -> AnalysisResults:
    """Run every analysis question on prepared data."""
    return AnalysisResults(
        prepared=prepared,
        window_variants=compare_window_variants(prepared.survey),
        group_tests=run_group_tests(prepared),
        dunn=run_dunn_tests(prepared),
        correlations=run_correlations(prepared),
        summaries=run_summaries(prepared),
    )


def run_analysis(config: PipelineConfig) -> AnalysisResults:
    """
    Prepare the data, answer every analysis question, report and save.

    Figures are rendered into ``config.output_dir`` when ``config.figures``
    is set.
    """
    prepared = prepare(config)
    results = analyze(prepared)
    print_report(results)
    write_summary(results, config.output_dir)

    if config.figures:
        from thawpond_flux import viz
        viz.render_all(results, config.output_dir, fmt=config.figure_format, dpi=config.dpi)
    return results


if __name__ == '__main__':
    import argparse
    import sys

    from thawpond_flux.config import read_config

    parser = argparse.ArgumentParser(description='Run the thaw pond analysis')
    parser.add_argument('--config', help='YAML configuration file')
    parser.add_argument('--output-dir', help='Directory for the JSON summary and figures')
    parser.add_argument('--no-figures', action='store_true', help='Skip figure rendering')
    args = parser.parse_args()

    try:
        cfg = read_config(args.config, output_dir=args.output_dir,
                          figures=False if args.no_figures else None)
        run_analysis(cfg)
        print("✓ Analysis completed successfully.")
    except Exception as e:
        print(f"Error during analysis: {type(e).__name__}: {e}", file=sys.stderr)
        sys.exit(1)
