# src/thawpond_flux/season_calendar.py
"""
Module: season_calendar.py
Responsibilities:
- Build a complete daily calendar (June 1 - Sept 30 by default) for every
  pond and field season
- Place raw daily flux records onto that calendar, leaving NaN where no
  measurement exists
- Report raw records that fall outside every season window
- Enforce the ascending date order the rolling windows depend on
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Sequence, Tuple

import numpy as np
import pandas as pd

from thawpond_flux.config import PipelineConfig
from thawpond_flux.data_io import check_ponds
from thawpond_flux.exceptions import ThawPondDataError

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Composite keys; joins always use all columns, never a pasted string
DATE_POND_KEY = ['date', 'pond_id']
POND_YEAR_KEY = ['pond_id', 'year']
CALENDAR_ORDER = ['pond_id', 'year', 'date']


@dataclass
class CalendarResult:
    """Dense daily flux table plus the raw records that were not placed on it."""
    daily: pd.DataFrame
    ignored: pd.DataFrame
    n_duplicates: int = 0

    @property
    def n_ignored(self) -> int:
        return len(self.ignored)


def season_dates(year: int, start: Tuple[int, int], end: Tuple[int, int]) -> pd.DatetimeIndex:
    """Every calendar day of one season window, inclusive at both ends."""
    first = date(year, *start)
    last = date(year, *end)
    if last < first:
        raise ValueError(f"Season window ends before it starts: {first} > {last}")
    return pd.date_range(first, last, freq='D')


def build_calendar(
    ponds: Sequence[str],
    years: Iterable[int],
    start: Tuple[int, int],
    end: Tuple[int, int]
) -> pd.DataFrame:
    """
    Build the dense (pond x season x day) skeleton.

    Parameters
    ----------
    ponds : sequence of str
        Pond identifiers
    years : iterable of int
        Field seasons
    start, end : (month, day)
        Inclusive season window

    Returns
    -------
    pd.DataFrame
        Columns date, pond_id, year; one row per pond, season and day,
        sorted by pond, year and date
    """
    frames = []
    for pond in ponds:
        for year in years:
            days = season_dates(int(year), start, end)
            frames.append(pd.DataFrame({
                'date': days,
                'pond_id': pond,
                'year': int(year),
            }))
    skeleton = pd.concat(frames, ignore_index=True)
    return skeleton.sort_values(CALENDAR_ORDER, kind='mergesort').reset_index(drop=True)


def expand_daily_flux(flux: pd.DataFrame, config: PipelineConfig) -> CalendarResult:
    """
    Place raw daily flux onto the complete seasonal calendar.

    Parameters
    ----------
    flux : pd.DataFrame
        Raw records with columns date, pond_id, daily_avg_flux
    config : PipelineConfig
        Supplies the pond set, season years and season window

    Returns
    -------
    CalendarResult
        ``daily`` has exactly one row per pond, season and day with
        ``daily_avg_flux`` NaN where nothing was measured. ``ignored`` holds
        raw records outside every season window.

    Raises
    ------
    UnknownPondError
        If a raw record names a pond outside ``config.ponds``
    """
    required = ['date', 'pond_id', 'daily_avg_flux']
    missing = [c for c in required if c not in flux.columns]
    if missing:
        raise KeyError(f"Flux table missing required columns: {', '.join(missing)}")

    raw = flux[required].copy()
    raw['pond_id'] = check_ponds(raw['pond_id'], config.ponds)
    raw['date'] = pd.to_datetime(raw['date']).dt.normalize()

    n_before = len(raw)
    raw = raw.drop_duplicates(subset=DATE_POND_KEY, keep='first')
    n_duplicates = n_before - len(raw)
    if n_duplicates:
        logger.warning(f"Dropped {n_duplicates} duplicate (date, pond) flux records; kept the first of each")

    skeleton = build_calendar(config.ponds, config.season_years, config.season_start, config.season_end)

    placed = raw.merge(skeleton[DATE_POND_KEY], on=DATE_POND_KEY, how='left', indicator=True)
    ignored = placed.loc[placed['_merge'] == 'left_only', required].reset_index(drop=True)
    if len(ignored):
        logger.warning(f"Ignored {len(ignored)} flux records outside the season windows "
                       f"{config.season_start}-{config.season_end} of {list(config.season_years)}")

    daily = skeleton.merge(raw, on=DATE_POND_KEY, how='left', validate='one_to_one')
    daily['daily_avg_flux'] = daily['daily_avg_flux'].astype(float)
    daily = daily.sort_values(CALENDAR_ORDER, kind='mergesort').reset_index(drop=True)

    n_obs = int(daily['daily_avg_flux'].notna().sum())
    logger.info(f"Expanded calendar: {len(daily)} pond-days "
                f"({n_obs} with flux, {len(daily) - n_obs} missing)")
    return CalendarResult(daily=daily, ignored=ignored, n_duplicates=n_duplicates)


def check_density(daily: pd.DataFrame, config: PipelineConfig) -> bool:
    """
    Verify the calendar has one row per pond, season and day in date order.

    Raises
    ------
    ThawPondDataError
        If a pond-year is incomplete, duplicated or out of order
    """
    expected = {year: config.season_days(year) for year in config.season_years}
    counts = daily.groupby(POND_YEAR_KEY).size()
    for pond in config.ponds:
        for year in config.season_years:
            n = int(counts.get((pond, year), 0))
            if n != expected[year]:
                raise ThawPondDataError(f"Pond-year ({pond}, {year}) has {n} days, expected {expected[year]}")

    if daily.duplicated(DATE_POND_KEY).any():
        raise ThawPondDataError("Calendar contains duplicate (date, pond) rows")

    for key, part in daily.groupby(POND_YEAR_KEY, sort=False):
        steps = np.diff(part['date'].to_numpy()).astype('timedelta64[D]').astype(int)
        if (steps != 1).any():
            raise ThawPondDataError(f"Pond-year {key} is not a contiguous ascending daily series")
    return True
