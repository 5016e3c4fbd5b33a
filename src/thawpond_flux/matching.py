# src/thawpond_flux/matching.py
"""
Module: matching.py
Responsibilities:
- Left-join rolling-window flux onto survey polygons by (flight date, pond)
- Left-join seasonal cumulative flux by (pond, year)
- Enrich fixed-wing polygons with quadcopter mean areas (whole season and
  July only) by (pond, year, polygon type)
- Check recomputed centered median flux against the reference column
- Build the per-flight water / pond-depression fill ratio table
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

import numpy as np
import pandas as pd

from thawpond_flux.data_io import FIXED_WING, POND_DEPRESSION, QUADCOPTER, WATER
from thawpond_flux.rolling import ROLLING_COLUMNS
from thawpond_flux.season_calendar import POND_YEAR_KEY

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

FLIGHT_POND_KEY = ['flight_date', 'pond_id']
FLIGHT_UNIT_KEY = ['flight_date', 'pond_id', 'uas_type']
QUAD_MEAN_KEY = POND_YEAR_KEY + ['polygon_type']


def _left_join(left: pd.DataFrame, right: pd.DataFrame, on: List[str]) -> pd.DataFrame:
    """Left join that keeps the left index and row count; right keys must be unique."""
    overlap = [c for c in right.columns if c in left.columns and c not in on]
    base = left.drop(columns=overlap)
    out = base.merge(right, on=on, how='left', validate='many_to_one')
    if len(out) != len(left):
        raise RuntimeError(f"Join on {on} changed row count from {len(left)} to {len(out)}")
    out.index = left.index
    return out


def attach_rolling_flux(
    survey: pd.DataFrame,
    daily: pd.DataFrame,
    columns: Optional[Iterable[str]] = None
) -> pd.DataFrame:
    """
    Look up rolling-window flux for each survey polygon by (flight date, pond).

    Parameters
    ----------
    survey : pd.DataFrame
        Survey polygons (flight_date, pond_id, ...)
    daily : pd.DataFrame
        Output of rolling.add_rolling_columns
    columns : iterable of str, optional
        Rolling columns to attach; defaults to all six

    Returns
    -------
    pd.DataFrame
        ``survey`` with the requested columns; NaN where no calendar day
        matches or where the window was incomplete
    """
    columns = list(columns or ROLLING_COLUMNS)
    lookup = daily[['date', 'pond_id'] + columns].rename(columns={'date': 'flight_date'})
    out = _left_join(survey, lookup, FLIGHT_POND_KEY)

    keys = survey[FLIGHT_POND_KEY].merge(lookup[FLIGHT_POND_KEY], on=FLIGHT_POND_KEY, how='left', indicator=True)
    n_unmatched = int((keys['_merge'] == 'left_only').sum())
    if n_unmatched:
        logger.warning(f"{n_unmatched} survey rows have no calendar day for their (flight date, pond)")
    for col in columns:
        logger.info(f"  {col}: matched {int(out[col].notna().sum())}/{len(out)} survey rows")
    return out


def attach_cumulative_flux(
    survey: pd.DataFrame,
    cumulative: pd.DataFrame,
    column: str = 'cumulative_flux_check'
) -> pd.DataFrame:
    """Attach the recomputed seasonal cumulative flux by (pond, year)."""
    lookup = cumulative[POND_YEAR_KEY + ['cumulative_flux']].rename(columns={'cumulative_flux': column})
    return _left_join(survey, lookup, POND_YEAR_KEY)


def quad_area_means(survey: pd.DataFrame, months: Optional[Iterable[int]] = None) -> pd.DataFrame:
    """
    Mean quadcopter polygon area per (pond, year, polygon type).

    Parameters
    ----------
    survey : pd.DataFrame
        Survey polygons
    months : iterable of int, optional
        Restrict to flights in these months (e.g. [7] for July only)

    Returns
    -------
    pd.DataFrame
        Columns pond_id, year, polygon_type, mean_area
    """
    quad = survey[survey['uas_type'] == QUADCOPTER]
    if months is not None:
        quad = quad[quad['month'].isin(list(months))]
    return quad.groupby(QUAD_MEAN_KEY)['area_m2'].mean().rename('mean_area').reset_index()


def attach_quad_area_means(survey: pd.DataFrame) -> pd.DataFrame:
    """
    Enrich fixed-wing polygons with quadcopter mean areas.

    Adds ``quad_mean_area_season`` (all quadcopter flights in that season)
    and ``quad_mean_area_july`` (July flights only). Both are matched on
    pond, year and polygon type, are NaN for quadcopter rows, and are NaN
    where the quadcopter never flew that pond in that scope.
    """
    season = quad_area_means(survey).rename(columns={'mean_area': 'quad_mean_area_season'})
    july = quad_area_means(survey, months=[7]).rename(columns={'mean_area': 'quad_mean_area_july'})

    out = _left_join(survey, season, QUAD_MEAN_KEY)
    out = _left_join(out, july, QUAD_MEAN_KEY)

    not_fw = out['uas_type'] != FIXED_WING
    out.loc[not_fw, ['quad_mean_area_season', 'quad_mean_area_july']] = np.nan

    fw = ~not_fw
    logger.info(f"Quadcopter means matched to {int(out.loc[fw, 'quad_mean_area_season'].notna().sum())}"
                f"/{int(fw.sum())} fixed-wing polygons (season), "
                f"{int(out.loc[fw, 'quad_mean_area_july'].notna().sum())} (July only)")
    return out


@dataclass
class RoundTripReport:
    """Comparison of a recomputed column against its reference column."""
    computed: str
    reference: str
    tolerance: float
    n_rows: int
    n_compared: int
    n_mismatched: int
    max_abs_diff: float
    mismatches: pd.DataFrame = field(repr=False, default_factory=pd.DataFrame)

    @property
    def ok(self) -> bool:
        return self.n_mismatched == 0

    def to_dict(self) -> dict:
        return {
            'computed': self.computed,
            'reference': self.reference,
            'tolerance': self.tolerance,
            'n_rows': self.n_rows,
            'n_compared': self.n_compared,
            'n_mismatched': self.n_mismatched,
            'max_abs_diff': self.max_abs_diff,
        }


def check_round_trip(
    survey: pd.DataFrame,
    computed: str = 'median_center',
    reference: str = 'median_center_ref',
    tolerance: float = 0.001
) -> RoundTripReport:
    """
    Compare a recomputed column to the reference column in the survey table.

    Only rows where both values are present are compared. A row mismatches
    when the absolute difference exceeds ``tolerance``.
    """
    both = survey[[computed, reference]].notna().all(axis=1)
    diff = (survey.loc[both, computed] - survey.loc[both, reference]).abs()
    bad = diff > tolerance + 1e-9
    cols = [c for c in FLIGHT_POND_KEY + ['uas_type', 'polygon_type', computed, reference] if c in survey.columns]
    mismatches = survey.loc[bad[bad].index, cols]

    report = RoundTripReport(
        computed=computed,
        reference=reference,
        tolerance=tolerance,
        n_rows=len(survey),
        n_compared=int(both.sum()),
        n_mismatched=int(bad.sum()),
        max_abs_diff=float(diff.max()) if len(diff) else float('nan'),
        mismatches=mismatches,
    )
    if report.ok:
        logger.info(f"Round-trip check {computed} vs {reference}: {report.n_compared} rows agree "
                    f"within {tolerance}")
    else:
        logger.warning(f"Round-trip check {computed} vs {reference}: {report.n_mismatched}/{report.n_compared} "
                       f"rows differ by more than {tolerance} (max {report.max_abs_diff:.4f})")
    return report


def fill_ratio_table(survey: pd.DataFrame) -> pd.DataFrame:
    """
    Water area as a percentage of pond depression area for each flight.

    One row per unique (flight date, pond, UAS type). Areas are taken from
    the first polygon of each type; precipitation is the 8-day preflight
    total recorded for the flight date.

    Returns
    -------
    pd.DataFrame
        Columns flight_date, pond_id, uas_type, pond_type, month, year,
        pond_depression_area, water_area, water_fill_percent,
        precipitation_8d_preflight
    """
    units = survey.drop_duplicates(FLIGHT_UNIT_KEY)[FLIGHT_UNIT_KEY + ['pond_type', 'month', 'year']]

    def first_area(polygon_type: str, name: str) -> pd.DataFrame:
        part = survey[survey['polygon_type'] == polygon_type].drop_duplicates(FLIGHT_UNIT_KEY)
        return part[FLIGHT_UNIT_KEY + ['area_m2']].rename(columns={'area_m2': name})

    precip = survey.drop_duplicates('flight_date')[['flight_date', 'precipitation_8d_preflight']]

    out = units.merge(first_area(POND_DEPRESSION, 'pond_depression_area'), on=FLIGHT_UNIT_KEY, how='left')
    out = out.merge(first_area(WATER, 'water_area'), on=FLIGHT_UNIT_KEY, how='left')
    out['water_fill_percent'] = out['water_area'] / out['pond_depression_area'] * 100.0
    out = out.merge(precip, on='flight_date', how='left', validate='many_to_one')

    n_ratio = int(out['water_fill_percent'].notna().sum())
    logger.info(f"Fill ratio table: {len(out)} flights, {n_ratio} with both polygons")
    return out.reset_index(drop=True)
