import pandas as pd
import pytest

from re_estimation.estimate.summary import summarize_estimates


def make_results(replicate, r_mean):
    rows = []
    for variable, value in (("R_mean", r_mean), ("R_highHPD", r_mean + 1), ("R_lowHPD", r_mean - 0.5)):
        rows.append({
            "date": pd.Timestamp("2020-03-10"), "region": "ZH", "country": "CHE",
            "source": "FOPH", "data_type": "confirmed", "estimate_type": "Cori_slidingWindow",
            "replicate": replicate, "value": value, "variable": variable,
        })
    return pd.DataFrame(rows)


def test_median_over_replicates():
    results = pd.concat([make_results(1, 1.0), make_results(2, 3.0), make_results(3, 1.5)])
    summary = summarize_estimates(results)
    assert len(summary) == 1
    row = summary.iloc[0]
    assert row["median_R_mean"] == pytest.approx(1.5)
    assert row["median_R_highHPD"] == pytest.approx(2.5)
    assert row["median_R_lowHPD"] == pytest.approx(1.0)


def test_empty_results():
    summary = summarize_estimates(pd.DataFrame())
    assert len(summary) == 0
    assert "median_R_mean" in summary.columns


def test_windows_without_cases_give_nan_medians():
    """Wallinga-Teunis reports NaN for windows with zero cases."""
    no_cases = make_results(1, float("nan"))
    no_cases["date"] = pd.Timestamp("2020-03-11")
    results = pd.concat([make_results(1, 1.0), no_cases, make_results(2, 2.0)])

    summary = summarize_estimates(results)
    assert len(summary) == 2
    first, second = summary.iloc[0], summary.iloc[1]
    assert first["median_R_mean"] == pytest.approx(1.5)
    assert second["date"] == pd.Timestamp("2020-03-11")
    assert pd.isna(second["median_R_mean"])
    assert pd.isna(second["median_R_lowHPD"])


def test_only_nan_estimates():
    summary = summarize_estimates(make_results(1, float("nan")))
    assert len(summary) == 1
    assert summary[["median_R_mean", "median_R_highHPD", "median_R_lowHPD"]].isna().to_numpy().all()
