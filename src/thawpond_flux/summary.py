# src/thawpond_flux/summary.py
"""
Module: summary.py
Responsibilities:
- Grouped descriptive statistics (count, median, mean, std, min, max,
  25th/75th percentile) that skip missing values
- Two-level summaries: aggregate within an inner grouping (e.g. pond-year)
  first, then summarise those results across an outer grouping (e.g. pond)
- Per-pond multi-year summaries of pond depression area, edge/area ratio
  and cumulative flux
"""
import logging
from typing import Callable, Dict, List, Sequence, Union

import numpy as np
import pandas as pd

from thawpond_flux.data_io import POND_DEPRESSION
from thawpond_flux.season_calendar import POND_YEAR_KEY

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

GroupKey = Union[str, Sequence[str]]


def _q25(x: pd.Series) -> float:
    return x.quantile(0.25)


def _q75(x: pd.Series) -> float:
    return x.quantile(0.75)


# pandas skips NaN in all of these; quantiles use linear interpolation
STAT_FUNCS: Dict[str, Union[str, Callable]] = {
    'count': 'count',
    'median': 'median',
    'mean': 'mean',
    'std': 'std',
    'min': 'min',
    'max': 'max',
    'q25': _q25,
    'q75': _q75,
}

DEFAULT_STATS = ('count', 'median', 'mean', 'min', 'max', 'q25', 'q75')


def _as_list(by: GroupKey) -> List[str]:
    return [by] if isinstance(by, str) else list(by)


def group_summary(
    df: pd.DataFrame,
    by: GroupKey,
    column: str,
    stats: Sequence[str] = DEFAULT_STATS,
    prefix: str = ''
) -> pd.DataFrame:
    """
    Descriptive statistics of ``column`` for each group.

    Parameters
    ----------
    df : pd.DataFrame
        Input table
    by : str or list of str
        Grouping column(s)
    column : str
        Numeric column to summarise
    stats : sequence of str
        Any of count, median, mean, std, min, max, q25, q75
    prefix : str
        Optional prefix for the statistic column names

    Returns
    -------
    pd.DataFrame
        One row per group, sorted by the grouping columns. Groups whose
        values are all missing get NaN statistics and count 0.
    """
    unknown = [s for s in stats if s not in STAT_FUNCS]
    if unknown:
        raise ValueError(f"Unknown statistic(s) {unknown}; choose from {list(STAT_FUNCS)}")
    keys = _as_list(by)
    missing = [c for c in keys + [column] if c not in df.columns]
    if missing:
        raise KeyError(f"Columns not found: {', '.join(missing)}")

    values = pd.to_numeric(df[column], errors='coerce')
    grouped = values.groupby([df[k] for k in keys], sort=True)
    agg = grouped.agg([(f"{prefix}{s}", STAT_FUNCS[s]) for s in stats])
    if 'count' in stats:
        agg[f"{prefix}count"] = agg[f"{prefix}count"].astype(int)
    return agg.reset_index()


def two_level_summary(
    df: pd.DataFrame,
    inner: GroupKey,
    outer: GroupKey,
    column: str,
    inner_stat: str = 'median',
    outer_stats: Sequence[str] = ('median', 'q25', 'q75')
) -> pd.DataFrame:
    """
    Summarise within ``inner`` groups first, then across them by ``outer``.

    For example inner=['pond_id', 'year'], outer='pond_id' gives the median
    across seasons of each season's median. The raw rows are never pooled
    across inner groups, so seasons with many flights weigh the same as
    seasons with one.
    """
    inner_keys = _as_list(inner)
    outer_keys = _as_list(outer)
    if not set(outer_keys) <= set(inner_keys):
        raise ValueError(f"Outer grouping {outer_keys} must be a subset of inner grouping {inner_keys}")

    inner_col = f"{inner_stat}_{column}"
    level1 = group_summary(df, inner_keys, column, stats=[inner_stat])
    level1 = level1.rename(columns={inner_stat: inner_col})
    level2 = group_summary(level1, outer_keys, inner_col, stats=outer_stats, prefix=f"{inner_col}_")
    return level2


def pond_year_medians(survey: pd.DataFrame, polygon_type: str = POND_DEPRESSION) -> pd.DataFrame:
    """
    Per pond-year median polygon area and edge/area ratio, plus that season's cumulative flux.
    """
    part = survey[survey['polygon_type'] == polygon_type]
    grouped = part.groupby(POND_YEAR_KEY)
    out = pd.DataFrame({
        'median_area_m2': grouped['area_m2'].median(),
        'median_edge_to_area_ratio': grouped['edge_to_area_ratio'].median(),
        # every row of a pond-year carries the same seasonal total
        'cumulative_flux_season': grouped['cumulative_flux_season'].first(),
    })
    return out.reset_index()


def pond_multi_year_summary(survey: pd.DataFrame, polygon_type: str = POND_DEPRESSION) -> pd.DataFrame:
    """
    Median and interquartile range across seasons of the per-season values from pond_year_medians.
    """
    per_year = pond_year_medians(survey, polygon_type)
    frames = []
    for col in ['median_area_m2', 'median_edge_to_area_ratio', 'cumulative_flux_season']:
        s = group_summary(per_year, 'pond_id', col, stats=('median', 'q25', 'q75'), prefix=f"{col}_")
        frames.append(s.set_index('pond_id'))
    out = pd.concat(frames, axis=1).reset_index()
    out.insert(1, 'n_seasons', per_year.groupby('pond_id').size().reindex(out['pond_id']).to_numpy())
    return out


def describe(values: pd.Series) -> Dict[str, float]:
    """Ungrouped version of group_summary, returned as a dict."""
    v = pd.to_numeric(values, errors='coerce').dropna()
    if v.empty:
        return {s: (0 if s == 'count' else float('nan')) for s in DEFAULT_STATS}
    return {
        'count': int(v.size),
        'median': float(v.median()),
        'mean': float(v.mean()),
        'min': float(v.min()),
        'max': float(v.max()),
        'q25': float(np.quantile(v, 0.25)),
        'q75': float(np.quantile(v, 0.75)),
    }
