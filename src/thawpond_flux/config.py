# src/thawpond_flux/config.py
"""
Module: config.py
Responsibilities:
- Hold every pipeline setting in one explicit configuration object
- Read overrides from a YAML file
- Validate the pond set, sampling seasons and season window
"""
import logging
from dataclasses import dataclass, fields, replace
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Ponds with daily flux records (Burke et al. 2019 identifiers)
DEFAULT_PONDS = ('A', 'B', 'C', 'D', 'E', 'F', 'G', 'H')
# Field seasons with ebullition measurements
DEFAULT_SEASON_YEARS = tuple(range(2012, 2019))
# Season window as (month, day), inclusive
DEFAULT_SEASON_START = (6, 1)
DEFAULT_SEASON_END = (9, 30)
DEFAULT_WINDOW = 8

PathLike = Union[str, Path]


@dataclass(frozen=True)
class PipelineConfig:
    """Configuration for one run of the thaw pond analysis.

    Parameters:
        survey_csv: UAS polygon table (one row per flight, pond and polygon type).
        flux_csv: Daily average bubble flux table.
        output_dir: Directory for figures and the JSON summary.
        ponds: Fixed set of known pond identifiers.
        season_years: Field seasons expanded onto the daily calendar.
        season_start: First day of each season window as (month, day).
        season_end: Last day of each season window as (month, day), inclusive.
        window: Rolling window length in days.
        alpha: Significance level for tests and letter groupings.
        p_adjust: Multiple-comparison correction passed to statsmodels.
        flux_decimals: Measurement precision of daily flux values.
        match_tolerance: Allowed difference for the reference-column check.
        figures: Render figures at the end of the analysis.
        figure_format: File extension for saved figures.
        dpi: Resolution for saved figures.
    """

    survey_csv: Path = Path('data/StordalenMire_ThawPond_UASPolygons_2014to2018.csv')
    flux_csv: Path = Path('data/StordalenMire_ThawPond_DailyAvgBubbleFlux_2012-2018.csv')
    output_dir: Path = Path('outputs')
    ponds: Tuple[str, ...] = DEFAULT_PONDS
    season_years: Tuple[int, ...] = DEFAULT_SEASON_YEARS
    season_start: Tuple[int, int] = DEFAULT_SEASON_START
    season_end: Tuple[int, int] = DEFAULT_SEASON_END
    window: int = DEFAULT_WINDOW
    alpha: float = 0.05
    p_adjust: str = 'bonferroni'
    flux_decimals: int = 3
    match_tolerance: float = 0.001
    figures: bool = True
    figure_format: str = 'png'
    dpi: int = 300

    def season_days(self, year: int) -> int:
        """Number of calendar days in the season window of one year."""
        start = date(year, *self.season_start)
        end = date(year, *self.season_end)
        return (end - start).days + 1

    @property
    def total_season_days(self) -> int:
        """Calendar days summed over every configured season."""
        return sum(self.season_days(year) for year in self.season_years)

    def validate(self) -> 'PipelineConfig':
        """Raise ValueError if the configuration cannot describe a valid run."""
        if not self.ponds:
            raise ValueError("Configuration must list at least one pond")
        if len(set(self.ponds)) != len(self.ponds):
            raise ValueError(f"Duplicate pond identifiers in configuration: {list(self.ponds)}")
        if not self.season_years:
            raise ValueError("Configuration must list at least one season year")
        if self.window < 1:
            raise ValueError(f"window must be >= 1, got {self.window}")
        try:
            # 2000 is a leap year, so February 29 is accepted here
            start = date(2000, *self.season_start)
            end = date(2000, *self.season_end)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid season window {self.season_start} to {self.season_end}: {e}")
        if end < start:
            raise ValueError(f"Season window ends before it starts: {self.season_start} > {self.season_end}")
        for year in self.season_years:
            try:
                self.season_days(year)
            except ValueError as e:
                raise ValueError(f"Season window {self.season_start} to {self.season_end} is not valid in {year}: {e}")
        if not 0.0 < self.alpha < 1.0:
            raise ValueError(f"alpha must be in (0, 1), got {self.alpha}")
        return self

    def with_overrides(self, **overrides: Any) -> 'PipelineConfig':
        """Return a copy with the non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return _coerce(replace(self, **changes))


def _coerce(cfg: PipelineConfig) -> PipelineConfig:
    """Normalize YAML/CLI values (lists, strings) to the declared types."""
    return replace(
        cfg,
        survey_csv=Path(cfg.survey_csv),
        flux_csv=Path(cfg.flux_csv),
        output_dir=Path(cfg.output_dir),
        ponds=tuple(str(p) for p in cfg.ponds),
        season_years=tuple(int(y) for y in cfg.season_years),
        season_start=(int(cfg.season_start[0]), int(cfg.season_start[1])),
        season_end=(int(cfg.season_end[0]), int(cfg.season_end[1])),
        window=int(cfg.window),
        alpha=float(cfg.alpha),
        flux_decimals=int(cfg.flux_decimals),
        match_tolerance=float(cfg.match_tolerance),
        figures=bool(cfg.figures),
        dpi=int(cfg.dpi),
    )


def read_config(path: Optional[PathLike] = None, **overrides: Any) -> PipelineConfig:
    """Read pipeline configuration from YAML.

    Parameters:
        path: YAML file; when None or missing, defaults are used.
        overrides: Values that take precedence over the file (None is ignored).

    Returns:
        Validated configuration.
    """
    raw: Dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        if path.exists():
            with path.open('r', encoding='utf-8') as f:
                raw = yaml.safe_load(f) or {}
            logger.info(f"Loaded configuration from {path}")
        else:
            logger.warning(f"Configuration file not found: {path}; using defaults")

    known = {f.name for f in fields(PipelineConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")

    values = {k: v for k, v in raw.items() if k in known}
    values.update({k: v for k, v in overrides.items() if v is not None})
    cfg = _coerce(PipelineConfig(**values))
    return cfg.validate()
