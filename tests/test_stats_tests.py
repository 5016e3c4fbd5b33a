"""
Unit tests for stats_tests module.
"""

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest
from scipy import stats

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from thawpond_flux.stats_tests import (
    compact_letters, dunn_pairwise, format_pvalue, grouped_kendall,
    grouped_kruskal, kendall_correlation, kruskal_groups
)


def _groups(**values):
    rows = [(g, v) for g, vs in values.items() for v in vs]
    return pd.DataFrame(rows, columns=["pond_id", "area"])


@pytest.fixture
def separated():
    return _groups(A=[1, 2, 3, 4, 5], B=[6, 7, 8, 9, 10], C=[11, 12, 13, 14, 15])


def test_format_pvalue():
    assert format_pvalue(0.00001) == "< 0.0001"
    assert format_pvalue(1e-30) == "< 0.0001"
    assert format_pvalue(0.0001) == "0.0001"
    assert format_pvalue(0.01234) == "0.0123"
    assert format_pvalue(float("nan")) == "undefined"
    assert format_pvalue(None) == "undefined"


def test_kruskal_statistic(separated):
    res = kruskal_groups(separated, "area", "pond_id")

    assert res.defined
    assert res.n == 15 and res.k == 3 and res.df == 2
    assert res.statistic == pytest.approx(12.5)
    expected = stats.kruskal([1, 2, 3, 4, 5], [6, 7, 8, 9, 10], [11, 12, 13, 14, 15])
    assert res.statistic == pytest.approx(expected.statistic)
    assert res.p_value == pytest.approx(expected.pvalue)
    assert res.p_value_check == pytest.approx(expected.pvalue)
    assert res.significant


def test_kruskal_ties_match_scipy():
    df = _groups(A=[1, 1, 2, 3, 3], B=[3, 4, 4, 5, 5, 5], C=[2, 2, 6, 7])
    res = kruskal_groups(df, "area", "pond_id")
    expected = stats.kruskal([1, 1, 2, 3, 3], [3, 4, 4, 5, 5, 5], [2, 2, 6, 7])
    assert res.statistic == pytest.approx(expected.statistic)
    assert res.p_value == pytest.approx(expected.pvalue)


def test_kruskal_posthoc_letters(separated):
    res = kruskal_groups(separated, "area", "pond_id")

    pairs = res.pairwise.set_index(["group_a", "group_b"])
    assert pairs.loc[("A", "B"), "difference"] == pytest.approx(-5.0)
    # MSE = 20 * (14 - 12.5) / 12 = 2.5, so the standard error is 1
    assert pairs.loc[("A", "B"), "std_error"] == pytest.approx(1.0)
    raw = 2 * stats.t.sf(5.0, 12)
    assert pairs.loc[("A", "B"), "p_raw"] == pytest.approx(raw)
    assert pairs.loc[("A", "B"), "p_adj"] == pytest.approx(min(1.0, 3 * raw))
    assert pairs["significant"].all()

    # highest mean rank gets 'a'
    assert res.letters == {"C": "a", "B": "b", "A": "c"}
    gs = res.group_stats.set_index("pond_id")
    assert gs.loc["B", "mean_rank"] == pytest.approx(8.0)
    assert gs.loc["C", "letters"] == "a"


def test_kruskal_no_difference_shares_letter():
    df = _groups(A=[1, 4, 7, 10], B=[2, 5, 8, 11], C=[3, 6, 9, 12])
    res = kruskal_groups(df, "area", "pond_id")
    assert res.defined
    assert not res.significant
    assert set(res.letters.values()) == {"a"}


def test_kruskal_undefined_cases():
    one_group = kruskal_groups(_groups(A=[1, 2, 3]), "area", "pond_id")
    assert not one_group.defined
    assert "2" in one_group.reason

    null_group = _groups(A=[np.nan, np.nan], B=[1.0, 2.0])
    res = kruskal_groups(null_group, "area", "pond_id")
    assert not res.defined
    assert res.k == 1

    tied = kruskal_groups(_groups(A=[1, 1], B=[1, 1]), "area", "pond_id")
    assert not tied.defined
    assert "tied" in tied.reason
    assert "undefined" in tied.summary_line()
    assert tied.p_display == "undefined"


def test_kruskal_single_values_have_no_posthoc():
    res = kruskal_groups(_groups(A=[1], B=[2], C=[3]), "area", "pond_id")
    assert res.defined
    assert res.pairwise.empty
    assert res.letters == {}


def test_compact_letters_overlap():
    letters = compact_letters(["A", "B", "C"], [("A", "C")])
    assert letters == {"A": "a", "B": "ab", "C": "b"}


def test_compact_letters_no_pairs():
    assert compact_letters(["X", "Y"], []) == {"X": "a", "Y": "a"}


def test_compact_letters_chain():
    # A differs from C and D, B differs from D
    letters = compact_letters(["A", "B", "C", "D"], [("A", "C"), ("A", "D"), ("B", "D")])
    assert letters == {"A": "a", "B": "ab", "C": "bc", "D": "c"}


def test_dunn_pairwise(separated):
    out = dunn_pairwise(separated, "area", "pond_id")
    assert list(out.columns) == ["group_a", "group_b", "z", "p_raw", "p_adj", "significant"]
    assert len(out) == 3
    ab = out[(out["group_a"] == "A") & (out["group_b"] == "B")].iloc[0]
    # no ties: variance N(N+1)/12 = 20, se = sqrt(20 * 0.4)
    assert ab["z"] == pytest.approx(-5.0 / np.sqrt(8.0))
    assert ab["p_raw"] == pytest.approx(2 * stats.norm.sf(5.0 / np.sqrt(8.0)))
    assert ab["p_adj"] == pytest.approx(min(1.0, 3 * ab["p_raw"]))
    assert dunn_pairwise(_groups(A=[1, 2]), "area", "pond_id").empty


def test_kendall_perfect_rank_agreement():
    df = pd.DataFrame({"x": np.arange(10.0), "y": np.arange(10.0) ** 2})
    res = kendall_correlation(df, "x", "y")
    assert res.defined
    assert res.tau == pytest.approx(1.0)
    assert res.method == "exact"
    assert res.p_display == "< 0.0001"


def test_kendall_pairwise_complete():
    df = pd.DataFrame({
        "x": [1.0, 2.0, 3.0, 4.0, np.nan, 6.0],
        "y": [2.0, 1.0, 4.0, np.nan, 5.0, 6.0],
    })
    res = kendall_correlation(df, "x", "y")
    assert res.n == 4
    expected = stats.kendalltau([1, 2, 3, 6], [2, 1, 4, 6])
    assert res.tau == pytest.approx(expected.statistic)


def test_kendall_with_ties_uses_normal_approximation():
    df = pd.DataFrame({"x": [1, 1, 2, 3, 4, 5], "y": [2, 3, 3, 5, 4, 6]})
    res = kendall_correlation(df, "x", "y")
    assert res.method == "asymptotic"
    expected = stats.kendalltau(df["x"], df["y"], method="asymptotic")
    assert res.tau == pytest.approx(expected.statistic)
    assert res.p_value == pytest.approx(expected.pvalue)


def test_kendall_undefined():
    short = kendall_correlation(pd.DataFrame({"x": [1.0, 2.0], "y": [1.0, 2.0]}), "x", "y")
    assert not short.defined
    constant = kendall_correlation(pd.DataFrame({"x": [1.0, 2.0, 3.0], "y": [5.0, 5.0, 5.0]}), "x", "y")
    assert not constant.defined
    assert constant.to_dict()["defined"] is False


def test_grouped_helpers():
    df = pd.DataFrame({
        "pond_id": ["A"] * 6 + ["B"] * 2,
        "month": [6, 6, 6, 7, 7, 7, 6, 7],
        "area": [1.0, 2.0, 3.0, 7.0, 8.0, 9.0, 1.0, 1.0],
        "flux": [1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 1.0, 2.0],
    })
    kw = grouped_kruskal(df, "area", "month", "pond_id")
    assert set(kw) == {"A", "B"}
    assert kw["A"].defined
    assert kw["A"].letters == {7: "a", 6: "b"}
    assert kendall_correlation(df[df["pond_id"] == "A"], "area", "flux").tau == pytest.approx(1.0)
    corr = grouped_kendall(df, "area", "flux", "pond_id")
    assert not corr["B"].defined
