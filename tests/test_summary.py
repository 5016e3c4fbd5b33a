"""
Unit tests for summary module.
"""

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from thawpond_flux.data_io import POND_DEPRESSION, WATER
from thawpond_flux.summary import (
    describe, group_summary, pond_multi_year_summary, pond_year_medians, two_level_summary
)


def test_group_summary_skips_nulls():
    df = pd.DataFrame({
        "pond_id": ["A", "A", "A", "B", "B"],
        "value": [1.0, np.nan, 3.0, np.nan, np.nan],
    })
    out = group_summary(df, "pond_id", "value").set_index("pond_id")

    assert out.loc["A", "count"] == 2
    assert out.loc["A", "median"] == 2.0
    assert out.loc["A", "mean"] == 2.0
    assert out.loc["A", "min"] == 1.0
    assert out.loc["A", "max"] == 3.0
    assert out.loc["A", "q25"] == pytest.approx(1.5)
    assert out.loc["A", "q75"] == pytest.approx(2.5)
    assert out.loc["B", "count"] == 0
    assert np.isnan(out.loc["B", "median"])


def test_group_summary_multiple_keys():
    df = pd.DataFrame({
        "year": [2016, 2016, 2017, 2017],
        "month": [7, 6, 6, 6],
        "value": [1.0, 2.0, 3.0, 5.0],
    })
    out = group_summary(df, ["year", "month"], "value", stats=("median",), prefix="v_")
    assert list(out.columns) == ["year", "month", "v_median"]
    assert list(zip(out["year"], out["month"])) == [(2016, 6), (2016, 7), (2017, 6)]
    assert out["v_median"].tolist() == [2.0, 1.0, 4.0]


def test_group_summary_rejects_unknown_stat():
    df = pd.DataFrame({"g": ["a"], "v": [1.0]})
    with pytest.raises(ValueError):
        group_summary(df, "g", "v", stats=("mode",))
    with pytest.raises(KeyError):
        group_summary(df, "g", "missing")


def test_two_level_median_of_medians():
    # season medians 10, 20 and 1000; pooled median of the raw rows would be 21
    df = pd.DataFrame({
        "pond_id": ["A"] * 7,
        "year": [1, 2, 2, 2, 3, 3, 3],
        "flux": [10.0, 19.0, 20.0, 21.0, 999.0, 1000.0, 1001.0],
    })
    out = two_level_summary(df, ["pond_id", "year"], "pond_id", "flux")
    assert out.loc[0, "median_flux_median"] == 20.0
    assert df["flux"].median() == 21.0


def test_two_level_requires_nested_groups():
    df = pd.DataFrame({"a": [1], "b": [1], "v": [1.0]})
    with pytest.raises(ValueError):
        two_level_summary(df, "a", "b", "v")


def test_pond_multi_year_summary():
    rows = []
    for year, area, ratio, cum in [(2016, 100.0, 0.1, 5.0), (2017, 120.0, 0.2, 7.0), (2018, 200.0, 0.3, 9.0)]:
        for extra in (0.0, 10.0):
            rows.append({"pond_id": "A", "year": year, "polygon_type": POND_DEPRESSION,
                         "area_m2": area + extra, "edge_to_area_ratio": ratio,
                         "cumulative_flux_season": cum})
        rows.append({"pond_id": "A", "year": year, "polygon_type": WATER,
                     "area_m2": 1.0, "edge_to_area_ratio": 9.0, "cumulative_flux_season": cum})
    survey = pd.DataFrame(rows)

    per_year = pond_year_medians(survey)
    assert per_year["median_area_m2"].tolist() == [105.0, 125.0, 205.0]

    out = pond_multi_year_summary(survey).set_index("pond_id")
    assert out.loc["A", "n_seasons"] == 3
    assert out.loc["A", "median_area_m2_median"] == 125.0
    assert out.loc["A", "median_edge_to_area_ratio_median"] == pytest.approx(0.2)
    assert out.loc["A", "cumulative_flux_season_median"] == 7.0
    assert out.loc["A", "cumulative_flux_season_q25"] == pytest.approx(6.0)


def test_describe():
    out = describe(pd.Series([1.0, 2.0, np.nan, 4.0]))
    assert out["count"] == 3
    assert out["median"] == 2.0
    empty = describe(pd.Series([np.nan]))
    assert empty["count"] == 0
    assert np.isnan(empty["mean"])
