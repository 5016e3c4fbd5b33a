"""
Shared fixtures: small synthetic survey and flux tables for two ponds over
one season.
"""

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from thawpond_flux.config import PipelineConfig

SEASON_START = pd.Timestamp("2016-06-01")
QUAD_DATES = ["2016-06-10", "2016-06-20", "2016-07-01", "2016-07-10",
              "2016-07-20", "2016-08-01", "2016-08-10"]
FW_DATE = "2016-07-15"
# daily flux on day index d (0 = June 1) is SCALE[pond] * (d + 1)
SCALE = {"A": 0.1, "B": 0.2}


def day_index(date_str):
    return (pd.Timestamp(date_str) - SEASON_START).days


def expected_center_median(pond, date_str):
    """Centered 8-day median of the linear synthetic series: average of days d and d+1."""
    d = day_index(date_str)
    return round(SCALE[pond] * (d + 1.5), 3)


OUT_OF_WINDOW_FLUX = 9.9


def expected_cumulative(pond):
    # pond A also has one raw record before June 1
    extra = OUT_OF_WINDOW_FLUX if pond == "A" else 0.0
    return round(SCALE[pond] * 122 * 123 / 2 + extra, 3)


def make_flux_frame():
    rows = []
    for pond, scale in SCALE.items():
        for d, day in enumerate(pd.date_range("2016-06-01", "2016-09-30", freq="D")):
            rows.append({
                "Date": day.strftime("%Y-%m-%d"),
                "Field_ID": f"F{pond}",
                "Burkeetal2019_ID": pond,
                "DailyAvgBubbleFlux": round(scale * (d + 1), 3),
            })
    # one record outside the season window
    rows.append({"Date": "2016-05-15", "Field_ID": "FA", "Burkeetal2019_ID": "A", "DailyAvgBubbleFlux": OUT_OF_WINDOW_FLUX})
    return pd.DataFrame(rows)


def make_survey_frame():
    rows = []
    precip = {d: float(i % 4) * 2.5 + 1.0 for i, d in enumerate(QUAD_DATES + [FW_DATE])}
    for pond in SCALE:
        offset = 0 if pond == "A" else 100
        flights = [(d, "Quad") for d in QUAD_DATES] + [(FW_DATE, "FWing")]
        for i, (flight, uas) in enumerate(flights):
            for polygon in ("pondedge", "water"):
                if polygon == "water":
                    area = 100.0 + offset + 3 * i + (5 if uas == "FWing" else 0)
                else:
                    area = 300.0 + offset + i
                rows.append({
                    "FlightDate": flight,
                    "Field_ID": f"F{pond}",
                    "Burkeetal2019_ID": pond,
                    "UAStype": uas,
                    "PolygonType": polygon,
                    "PondType": 1 if pond == "A" else 2,
                    "area_m2": area,
                    "edge_m": 40.0 + i,
                    "edge.area": (40.0 + i) / area,
                    "Median8dC_BubFlux": expected_center_median(pond, flight),
                    "Cumulative_BubFlux": expected_cumulative(pond),
                    "TotPrec_8dpreflight": precip[flight],
                })
    return pd.DataFrame(rows)


@pytest.fixture
def flux_frame():
    return make_flux_frame()


@pytest.fixture
def survey_frame():
    return make_survey_frame()


@pytest.fixture
def input_files(tmp_path):
    """Write the synthetic tables to CSV and return their paths."""
    survey_csv = tmp_path / "survey.csv"
    flux_csv = tmp_path / "flux.csv"
    make_survey_frame().to_csv(survey_csv, index=False)
    make_flux_frame().to_csv(flux_csv, index=False)
    return survey_csv, flux_csv


@pytest.fixture
def small_config(input_files, tmp_path):
    survey_csv, flux_csv = input_files
    return PipelineConfig(
        survey_csv=survey_csv,
        flux_csv=flux_csv,
        output_dir=tmp_path / "outputs",
        ponds=("A", "B"),
        season_years=(2016,),
        figures=False,
    )
