# src/thawpond_flux/data_io.py
"""
Module: data_io.py
Responsibilities:
- Validate survey and flux input paths
- Load the UAS polygon survey table into canonical column names
- Load the daily average bubble flux table
- Reject unparseable dates and unknown pond identifiers
"""
import os
import logging
from typing import Dict, Iterable, List

import numpy as np
import pandas as pd

from thawpond_flux.exceptions import InvalidDateError, ThawPondDataError, UnknownPondError

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

DATE_FORMAT = '%Y-%m-%d'

# UAS platform and polygon vocabularies
FIXED_WING = 'FixedWing'
QUADCOPTER = 'Quadcopter'
POND_DEPRESSION = 'PondDepression'
WATER = 'Water'

UAS_TYPES = {'FWing': FIXED_WING, 'Quad': QUADCOPTER}
POLYGON_TYPES = {'pondedge': POND_DEPRESSION, 'water': WATER}
POND_TYPES = (1, 2, 3, 4)

SURVEY_COLUMNS: Dict[str, str] = {
    'FlightDate': 'flight_date',
    'Field_ID': 'field_id',
    'Burkeetal2019_ID': 'pond_id',
    'UAStype': 'uas_type',
    'PolygonType': 'polygon_type',
    'PondType': 'pond_type',
    'area_m2': 'area_m2',
    'edge_m': 'edge_m',
    'edge.area': 'edge_to_area_ratio',
    'Median8dC_BubFlux': 'median_center_ref',
    'Cumulative_BubFlux': 'cumulative_flux_season',
    'TotPrec_8dpreflight': 'precipitation_8d_preflight',
}

FLUX_COLUMNS: Dict[str, str] = {
    'Date': 'date',
    'Field_ID': 'field_id',
    'Burkeetal2019_ID': 'pond_id',
    'DailyAvgBubbleFlux': 'daily_avg_flux',
}

SURVEY_NUMERIC = [
    'area_m2', 'edge_m', 'edge_to_area_ratio', 'median_center_ref',
    'cumulative_flux_season', 'precipitation_8d_preflight',
]


def validate_paths(*paths: os.PathLike) -> bool:
    """
    Ensure every input table exists and is readable.

    Parameters
    ----------
    *paths : path-like
        Input CSV files

    Returns
    -------
    bool
        True if all paths are valid, raises otherwise

    Raises
    ------
    FileNotFoundError
        If a file doesn't exist
    PermissionError
        If a file exists but isn't readable
    """
    logger.info("Verifying paths...")
    for path in paths:
        if not os.path.isfile(path):
            raise FileNotFoundError(f"Input file not found: {path}")
        if not os.access(path, os.R_OK):
            raise PermissionError(f"Input file is not readable: {path}")
        logger.info(f"  {path}")
    logger.info("  OK: paths are valid.")
    return True


def _read_csv(path: os.PathLike, required: Iterable[str]) -> pd.DataFrame:
    try:
        df = pd.read_csv(path, dtype={'Field_ID': str, 'Burkeetal2019_ID': str})
    except pd.errors.EmptyDataError:
        raise ValueError(f"Input file is empty: {path}")
    except pd.errors.ParserError as e:
        raise ValueError(f"Error parsing {path}: {e}")

    if df.empty:
        raise ValueError(f"Input file contains no data: {path}")

    missing = [c for c in required if c not in df.columns]
    if missing:
        raise KeyError(f"{os.path.basename(str(path))} missing required columns: {', '.join(missing)}")
    return df


def parse_dates(values: pd.Series, column: str) -> pd.Series:
    """
    Parse YYYY-MM-DD strings strictly.

    Parameters
    ----------
    values : pd.Series
        Raw date strings
    column : str
        Column name, used in the error message

    Returns
    -------
    pd.Series
        datetime64 values normalized to midnight

    Raises
    ------
    InvalidDateError
        If any value is missing or cannot be parsed
    """
    parsed = pd.to_datetime(values, format=DATE_FORMAT, errors='coerce')
    bad = parsed.isna()
    if bad.any():
        raise InvalidDateError(column, values.index[bad.to_numpy()].tolist(), values[bad].tolist())
    return parsed.dt.normalize()


def check_ponds(values: pd.Series, ponds: Iterable[str]) -> pd.Series:
    """Raise UnknownPondError if a pond identifier is outside the known set."""
    known = tuple(ponds)
    values = values.astype(str).str.strip()
    unknown = ~values.isin(known)
    if unknown.any():
        raise UnknownPondError(values[unknown].unique(), known)
    return values


def _map_vocabulary(values: pd.Series, mapping: Dict[str, str], column: str) -> pd.Series:
    stripped = values.astype(str).str.strip()
    mapped = stripped.map(mapping)
    bad = mapped.isna()
    if bad.any():
        raise ThawPondDataError(
            f"Unrecognised {column} value(s) {sorted(stripped[bad].unique())}; "
            f"expected one of {sorted(mapping)}"
        )
    return mapped


def add_calendar_fields(df: pd.DataFrame, date_column: str) -> pd.DataFrame:
    """Add numeric year, month and day-of-year columns derived from a date column."""
    df['year'] = df[date_column].dt.year.astype(int)
    df['month'] = df[date_column].dt.month.astype(int)
    df['doy'] = df[date_column].dt.dayofyear.astype(int)
    return df


def load_survey_table(path: os.PathLike, ponds: Iterable[str]) -> pd.DataFrame:
    """
    Load the UAS polygon table.

    Parameters
    ----------
    path : path-like
        StordalenMire_ThawPond_UASPolygons CSV
    ponds : iterable of str
        Known pond identifiers

    Returns
    -------
    pd.DataFrame
        One row per flight date, pond and polygon type with canonical
        column names plus year, month and doy

    Raises
    ------
    KeyError
        If required columns are missing
    InvalidDateError
        If a flight date is missing or unparseable
    UnknownPondError
        If a pond identifier is not in ``ponds``
    ThawPondDataError
        If UAS type, polygon type or pond type is unrecognised
    """
    raw = _read_csv(path, SURVEY_COLUMNS.keys())
    df = raw[list(SURVEY_COLUMNS)].rename(columns=SURVEY_COLUMNS).copy()

    df['flight_date'] = parse_dates(df['flight_date'], 'FlightDate')
    df['pond_id'] = check_ponds(df['pond_id'], ponds)
    df['uas_type'] = _map_vocabulary(df['uas_type'], UAS_TYPES, 'UAStype')
    df['polygon_type'] = _map_vocabulary(df['polygon_type'], POLYGON_TYPES, 'PolygonType')

    pond_type = pd.to_numeric(df['pond_type'], errors='coerce')
    bad = ~pond_type.isin(POND_TYPES)
    if bad.any():
        raise ThawPondDataError(
            f"PondType must be one of {list(POND_TYPES)}; found {sorted(df.loc[bad, 'pond_type'].astype(str).unique())}"
        )
    df['pond_type'] = pond_type.astype(int)

    for col in SURVEY_NUMERIC:
        df[col] = pd.to_numeric(df[col], errors='coerce').astype(float)

    add_calendar_fields(df, 'flight_date')
    df = df.reset_index(drop=True)

    logger.info(f"Loaded survey table: {len(df)} polygons, "
                f"{df['flight_date'].nunique()} flight dates, {df['pond_id'].nunique()} ponds")
    return df


def load_flux_table(path: os.PathLike, ponds: Iterable[str], decimals: int = 3) -> pd.DataFrame:
    """
    Load the daily average bubble flux table.

    Flux values are rounded to ``decimals`` places, the precision of the
    measurement. Rows with an empty flux value are kept as NaN.

    Parameters
    ----------
    path : path-like
        StordalenMire_ThawPond_DailyAvgBubbleFlux CSV
    ponds : iterable of str
        Known pond identifiers
    decimals : int, default=3
        Rounding applied to DailyAvgBubbleFlux

    Returns
    -------
    pd.DataFrame
        Columns: date, field_id, pond_id, daily_avg_flux, year

    Raises
    ------
    InvalidDateError
        If a date is missing or unparseable
    UnknownPondError
        If a pond identifier is not in ``ponds``
    """
    raw = _read_csv(path, FLUX_COLUMNS.keys())
    df = raw[list(FLUX_COLUMNS)].rename(columns=FLUX_COLUMNS).copy()

    df['date'] = parse_dates(df['date'], 'Date')
    df['pond_id'] = check_ponds(df['pond_id'], ponds)
    df['daily_avg_flux'] = pd.to_numeric(df['daily_avg_flux'], errors='coerce').astype(float).round(decimals)
    df['year'] = df['date'].dt.year.astype(int)
    df = df.reset_index(drop=True)

    n_missing = int(df['daily_avg_flux'].isna().sum())
    logger.info(f"Loaded flux table: {len(df)} daily records for {df['pond_id'].nunique()} ponds "
                f"({n_missing} without a flux value)")
    return df


def subset(df: pd.DataFrame, **criteria) -> pd.DataFrame:
    """Return rows matching every column == value criterion (lists mean isin)."""
    mask = np.ones(len(df), dtype=bool)
    for col, value in criteria.items():
        if isinstance(value, (list, tuple, set)):
            mask &= df[col].isin(list(value)).to_numpy()
        else:
            mask &= (df[col] == value).to_numpy()
    return df.loc[mask]


def list_ponds(df: pd.DataFrame) -> List[str]:
    """Sorted pond identifiers present in a table."""
    return sorted(df['pond_id'].dropna().unique().tolist())


if __name__ == '__main__':
    import argparse
    import sys

    parser = argparse.ArgumentParser(description='Smoke-test data_io module')
    parser.add_argument('--survey-csv', required=True, help='Path to the UAS polygon CSV')
    parser.add_argument('--flux-csv', required=True, help='Path to the daily flux CSV')
    args = parser.parse_args()

    try:
        from thawpond_flux.config import DEFAULT_PONDS

        validate_paths(args.survey_csv, args.flux_csv)
        survey = load_survey_table(args.survey_csv, DEFAULT_PONDS)
        print(f"✓ Survey table loaded: {len(survey)} rows; ponds {list_ponds(survey)}")
        flux = load_flux_table(args.flux_csv, DEFAULT_PONDS)
        print(f"✓ Flux table loaded: {len(flux)} rows; {flux['date'].min()} to {flux['date'].max()}")
        print("data_io smoke test completed successfully.")
    except Exception as e:
        print(f"Error during test: {type(e).__name__}: {e}", file=sys.stderr)
        sys.exit(1)
