# src/thawpond_flux/rolling.py
"""
Module: rolling.py
Responsibilities:
- Strict rolling median and sum of daily flux over an 8-day window in three
  alignments (right, center, left)
- Compute windows independently within each pond-year so no window spans
  two seasons or two ponds
- Seasonal cumulative flux per pond-year
- Mean spacing between quadcopter flights, used to pick the window length
"""
import logging
import math
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from thawpond_flux.data_io import QUADCOPTER
from thawpond_flux.season_calendar import CALENDAR_ORDER, POND_YEAR_KEY

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

ALIGNMENTS = ('right', 'center', 'left')
STATISTICS = ('median', 'sum')
ROLLING_COLUMNS = [f"{stat}_{align}" for stat in STATISTICS for align in ALIGNMENTS]


def window_offsets(window: int, align: str) -> Tuple[int, int]:
    """
    First and last day of the window relative to the labelled day.

    For an 8-day window: right (-7, 0), center (-3, +4), left (0, +7).
    Even-length centered windows put the extra day after the labelled day.
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")
    if align == 'right':
        return -(window - 1), 0
    if align == 'left':
        return 0, window - 1
    if align == 'center':
        return -((window - 1) // 2), window // 2
    raise ValueError(f"align must be one of {ALIGNMENTS}, got {align!r}")


def rolling_window(values: pd.Series, window: int, align: str, stat: str) -> pd.Series:
    """
    Rolling statistic that is NaN unless every value in the window is present.

    Parameters
    ----------
    values : pd.Series
        One contiguous, date-ordered daily series
    window : int
        Window length in days
    align : {'right', 'center', 'left'}
        Position of the labelled day within the window
    stat : {'median', 'sum'}
        Window statistic

    Returns
    -------
    pd.Series
        Same index as ``values``; NaN where the window is incomplete or runs
        past either end of the series
    """
    if stat not in STATISTICS:
        raise ValueError(f"stat must be one of {STATISTICS}, got {stat!r}")
    _, last = window_offsets(window, align)

    # trailing window ending at position i, then relabel so day d sees [d+first, d+last]
    trailing = values.astype(float).rolling(window=window, min_periods=window)
    trailing = trailing.median() if stat == 'median' else trailing.sum()
    return trailing.shift(-last)


def add_rolling_columns(daily: pd.DataFrame, window: int = 8, decimals: int = 3) -> pd.DataFrame:
    """
    Add the six rolling-window flux columns to the dense daily table.

    Parameters
    ----------
    daily : pd.DataFrame
        Output of season_calendar.expand_daily_flux (date, pond_id, year,
        daily_avg_flux)
    window : int, default=8
        Window length in days
    decimals : int, default=3
        Rounding applied to window sums

    Returns
    -------
    pd.DataFrame
        Sorted copy of ``daily`` with median_right, median_center,
        median_left, sum_right, sum_center and sum_left
    """
    missing = [c for c in CALENDAR_ORDER + ['daily_avg_flux'] if c not in daily.columns]
    if missing:
        raise KeyError(f"Daily table missing required columns: {', '.join(missing)}")

    out = daily.sort_values(CALENDAR_ORDER, kind='mergesort').reset_index(drop=True)
    grouped = out.groupby(POND_YEAR_KEY, sort=False)['daily_avg_flux']

    for stat in STATISTICS:
        for align in ALIGNMENTS:
            col = f"{stat}_{align}"
            out[col] = grouped.transform(rolling_window, window, align, stat)
            if stat == 'sum':
                out[col] = out[col].round(decimals)
            logger.debug(f"{col}: {int(out[col].notna().sum())} defined values")

    logger.info(f"Computed {len(ROLLING_COLUMNS)} rolling-window columns (window={window}) "
                f"over {out.groupby(POND_YEAR_KEY).ngroups} pond-years")
    return out


def cumulative_flux(flux: pd.DataFrame, decimals: int = 3, years: Optional[Iterable[int]] = None) -> pd.DataFrame:
    """
    Seasonal cumulative flux per pond-year (sum of the measured days).

    Takes the raw flux table, so records outside the season window still
    count toward their year. Pond-years with no measured day get NaN
    rather than zero.

    Parameters
    ----------
    flux : pd.DataFrame
        Columns pond_id, year, daily_avg_flux
    decimals : int
        Rounding of the totals
    years : iterable of int, optional
        Keep only these seasons
    """
    if years is not None:
        flux = flux[flux['year'].isin(list(years))]
    out = (flux.groupby(POND_YEAR_KEY)['daily_avg_flux']
           .sum(min_count=1)
           .round(decimals)
           .rename('cumulative_flux')
           .reset_index())
    return out


def mean_flight_interval(survey: pd.DataFrame) -> float:
    """
    Mean number of days between consecutive quadcopter flight dates within a season.

    Returns NaN when no season has two quadcopter flights.
    """
    flights = survey.loc[survey['uas_type'] == QUADCOPTER, ['flight_date']].drop_duplicates()
    flights = flights.sort_values('flight_date')
    flights['year'] = flights['flight_date'].dt.year
    gaps = flights.groupby('year')['flight_date'].diff().dt.days
    gaps = gaps.dropna()
    if gaps.empty:
        return float('nan')
    return float(gaps.mean())


def suggest_window_length(survey: pd.DataFrame) -> Dict[str, float]:
    """Window length implied by quadcopter flight spacing (mean gap rounded up)."""
    interval = mean_flight_interval(survey)
    suggested = int(math.ceil(interval)) if np.isfinite(interval) else None
    logger.info(f"Mean quadcopter flight interval: {interval:.3f} days -> window {suggested}")
    return {'mean_interval_days': interval, 'window': suggested}


def defined_windows(daily: pd.DataFrame, columns: List[str] = None) -> pd.DataFrame:
    """Count of defined rolling values per pond-year and column."""
    columns = columns or ROLLING_COLUMNS
    return daily.groupby(POND_YEAR_KEY)[columns].count().reset_index()
