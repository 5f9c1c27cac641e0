import json
import logging

import numpy as np
import pandas as pd
import pytest

from re_estimation.estimate.engine import LocalAndImported, LocalOnly
from re_estimation.estimate.orchestrator import (
    RESULT_COLUMNS,
    EstimationConfig,
    do_all_re_estimations,
    incidence_input_from_frame,
    load_estimation_config,
)


def make_stratum(region, replicate, values, local=True, data_type="confirmed"):
    n = len(values)
    return pd.DataFrame({
        "date": pd.date_range("2020-03-01", periods=n, freq="D"),
        "region": region,
        "country": "CHE",
        "source": "FOPH",
        "data_type": data_type,
        "replicate": replicate,
        "local_infection": local,
        "value": values,
    })


def make_config(**kwargs):
    cfg = EstimationConfig(
        sliding_window=3,
        methods=["Cori"],
        variation_types=["slidingWindow", "step"],
        delays={"confirmed": {"Cori": 0}},
        truncations={"left": {"Cori": 0}, "right": {"Cori": 0}},
    )
    for key, value in kwargs.items():
        setattr(cfg, key, value)
    return cfg


def test_all_strata_are_estimated():
    data = pd.concat([
        make_stratum("ZH", 1, np.full(30, 20)),
        make_stratum("ZH", 2, np.full(30, 25)),
        make_stratum("GE", 1, np.full(30, 30)),
    ], ignore_index=True)

    res = do_all_re_estimations(data, make_config(), interval_ends=["2020-03-15"],
                                rng=np.random.default_rng(0))
    assert list(res.columns) == RESULT_COLUMNS
    assert set(res["region"]) == {"ZH", "GE"}
    assert set(res["replicate"]) == {1, 2}
    assert set(res["estimate_type"]) == {"Cori_slidingWindow", "Cori_step"}
    assert set(res["variable"]) == {"R_mean", "R_highHPD", "R_lowHPD"}

    # sliding: 27 windows per stratum; step: days 2..30
    per_stratum = res.groupby(["region", "replicate", "estimate_type"]).size()
    assert per_stratum[("ZH", 1, "Cori_slidingWindow")] == 27 * 3
    assert per_stratum[("ZH", 1, "Cori_step")] == 29 * 3


def test_empty_strata_are_skipped():
    data = pd.concat([
        make_stratum("ZH", 1, np.full(30, 20)),
        make_stratum("TI", 1, np.zeros(30)),
    ], ignore_index=True)
    res = do_all_re_estimations(data, make_config(), rng=np.random.default_rng(0))
    assert set(res["region"]) == {"ZH"}


def test_everything_empty_gives_empty_table():
    data = make_stratum("TI", 1, np.zeros(30))
    res = do_all_re_estimations(data, make_config(), rng=np.random.default_rng(0))
    assert len(res) == 0
    assert list(res.columns) == RESULT_COLUMNS


def test_unknown_tags_do_not_abort(caplog):
    data = make_stratum("ZH", 1, np.full(30, 20))
    cfg = make_config(methods=["Cori", "Bayes"], variation_types=["slidingWindow", "weekly"])
    with caplog.at_level(logging.WARNING):
        res = do_all_re_estimations(data, cfg, rng=np.random.default_rng(0))
    assert set(res["estimate_type"]) == {"Cori_slidingWindow"}
    assert "Unknown" in caplog.text


def test_reporting_offset_shifts_dates():
    data = make_stratum("ZH", 1, np.full(30, 20))
    base = do_all_re_estimations(data, make_config(variation_types=["slidingWindow"]),
                                 rng=np.random.default_rng(0))
    shifted = do_all_re_estimations(
        data,
        make_config(variation_types=["slidingWindow"], delays={"confirmed": {"Cori": 7}}),
        rng=np.random.default_rng(0),
    )
    assert shifted["date"].min() == base["date"].min() - pd.Timedelta(days=7)


def test_imported_cases_give_two_columns():
    local = make_stratum("ZH", 1, np.full(10, 5))
    imported = make_stratum("ZH", 1, np.full(10, 2), local=False)
    assert isinstance(incidence_input_from_frame(pd.concat([local, imported])), LocalAndImported)
    assert isinstance(incidence_input_from_frame(local), LocalOnly)


def test_imported_strata_are_estimated():
    data = pd.concat([
        make_stratum("ZH", 1, np.full(30, 20)),
        make_stratum("ZH", 1, np.full(30, 5), local=False),
    ], ignore_index=True)
    res = do_all_re_estimations(data, make_config(variation_types=["slidingWindow"]),
                                rng=np.random.default_rng(0))
    assert len(res) == 27 * 3


def test_load_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"sliding_window": 7, "methods": ["Cori"]}))
    cfg = load_estimation_config(path)
    assert cfg.sliding_window == 7
    assert cfg.methods == ["Cori"]

    path.write_text(json.dumps({"window": 7}))
    with pytest.raises(ValueError):
        load_estimation_config(path)


def test_imported_cases_on_some_days_are_aligned_by_date():
    local = make_stratum("ZH", 1, np.full(30, 20))
    imported = make_stratum("ZH", 1, np.full(10, 3), local=False)
    imported["date"] = pd.date_range("2020-03-10", periods=10, freq="D")

    incidence = incidence_input_from_frame(pd.concat([local, imported], ignore_index=True))
    assert isinstance(incidence, LocalAndImported)
    assert incidence.imported.shape == (30,)
    # 2020-03-10 is the tenth local day
    assert np.all(incidence.imported[9:19] == 3)
    assert incidence.imported[:9].sum() == 0
    assert incidence.imported[19:].sum() == 0


def test_partial_imports_do_not_abort_other_regions():
    imported = make_stratum("GE", 1, np.full(10, 3), local=False)
    imported["date"] = pd.date_range("2020-03-10", periods=10, freq="D")
    data = pd.concat([
        make_stratum("ZH", 1, np.full(30, 20)),
        make_stratum("GE", 1, np.full(30, 20)),
        imported,
    ], ignore_index=True)

    res = do_all_re_estimations(data, make_config(variation_types=["slidingWindow"]),
                                rng=np.random.default_rng(0))
    assert set(res["region"]) == {"ZH", "GE"}
    assert (res.groupby("region").size() == 27 * 3).all()
