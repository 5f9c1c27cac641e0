import numpy as np
import pandas as pd

from re_estimation.estimate.orchestrator import EstimationConfig, do_all_re_estimations
from re_estimation.estimate.windows import estimate_re
from re_estimation.simulate.re_trajectory import build_piecewise
from re_estimation.simulate.renewal import simulate_infections
from re_estimation.simulate.simulate_ts import SimConfig, simulate_ts


def simulate_drop(seed=2020):
    """60 days at Re 2, dropping to 0.5 after day 30."""
    cfg = SimConfig(shift_times=(0, 30, 31, 60), r_levels=(2.0, 0.5), init_infection=(20,),
                    noise={"noiseless": True}, seed=seed)
    return simulate_ts(cfg)


def test_incidence_falls_after_the_drop():
    sim = simulate_drop()
    infections = sim["infections"].to_numpy()
    assert infections.size == 60
    assert infections[:30].sum() > infections[30:].sum()


def test_ramp_trajectory_from_two_anchors():
    """Anchors (0, 30, 60): 30 days at 2, then a linear ramp down to 0.5."""
    re_ts = build_piecewise((0, 30, 60), (2.0, 0.5))
    assert re_ts.shape == (60,)
    assert np.all(re_ts[:30] == 2.0)
    assert re_ts[-1] == 0.5
    infections = simulate_infections(re_ts, init_infection=20, rng=np.random.default_rng(1))
    assert infections.shape == (60,)


def test_cori_sliding_window_recovers_the_drop():
    sim = simulate_drop()
    res = estimate_re(
        sim["date"], sim["infections"].to_numpy(),
        method="Cori", variation="slidingWindow",
        estimate_offsetting=0, left_truncation=0, right_truncation=0,
        window_length=4,
    )
    means = res[res["variable"] == "R_mean"].set_index("date")["value"]
    dates = sim["date"]

    early = means[(means.index >= dates.iloc[4]) & (means.index <= dates.iloc[9])]
    late = means[(means.index >= dates.iloc[34]) & (means.index <= dates.iloc[39])]
    assert len(early) == 6
    assert len(late) == 6
    assert late.mean() < early.mean()
    assert late.mean() < 1.0 < early.mean()


def test_cori_estimates_fall_along_the_ramp():
    """Anchors (0, 30, 60): Re is still above 1 on days 35-40 but below 2."""
    cfg = SimConfig(shift_times=(0, 30, 60), r_levels=(2.0, 0.5), init_infection=(50,),
                    noise={"noiseless": True}, seed=7)
    sim = simulate_ts(cfg)
    assert len(sim) == 60

    res = estimate_re(
        sim["date"], sim["infections"].to_numpy(),
        method="Cori", variation="slidingWindow",
        estimate_offsetting=0, left_truncation=0, right_truncation=0,
        window_length=4,
    )
    means = res[res["variable"] == "R_mean"].set_index("date")["value"]
    dates = sim["date"]

    early = means[(means.index >= dates.iloc[4]) & (means.index <= dates.iloc[9])]
    late = means[(means.index >= dates.iloc[34]) & (means.index <= dates.iloc[39])]
    assert len(early) == 6
    assert len(late) == 6
    assert late.mean() < early.mean()


def test_orchestrated_run_on_simulated_replicates():
    frames = []
    for replicate in (1, 2):
        sim = simulate_drop(seed=replicate)
        frames.append(pd.DataFrame({
            "date": sim["date"], "value": sim["infections"], "region": "Simulated",
            "country": "Simulated", "source": "ETH", "data_type": "infection_Simulated",
            "local_infection": True, "replicate": replicate,
        }))
    data = pd.concat(frames, ignore_index=True)

    cfg = EstimationConfig(
        sliding_window=4, methods=["Cori"], variation_types=["slidingWindow"],
        delays={"infection_Simulated": {"Cori": 0}},
        truncations={"left": {"Cori": 5}, "right": {"Cori": 0}},
    )
    res = do_all_re_estimations(data, cfg, interval_ends=[sim["date"].max()],
                                rng=np.random.default_rng(0))
    assert set(res["replicate"]) == {1, 2}
    # 56 sliding windows (offset 2, width 4) less 5 truncated days, three statistics
    assert (res.groupby("replicate").size() == 51 * 3).all()
