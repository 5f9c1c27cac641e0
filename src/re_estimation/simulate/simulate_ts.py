# src/re_estimation/simulate/simulate_ts.py
"""
Master simulation: Re trajectory -> infections -> observations.
Also stacks replicates and writes them to CSV.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Sequence
import datetime
import logging
import pathlib

import numpy as np
import pandas as pd
from numpy.random import default_rng

from .delays import (
    INCUBATION_MEAN,
    INCUBATION_SD,
    ONSET_TO_COUNT_MEAN,
    ONSET_TO_COUNT_SD,
    gamma_params_from_moments,
)
from .observations import synthesize_observations
from .re_trajectory import build_piecewise, build_smoothed
from .renewal import simulate_infections
from .serial_interval import discrete_serial_interval

# Start logger
logger = logging.getLogger(__name__)


@dataclass
class SimConfig:
    shift_times: Sequence[float] = (0, 30, 40, 50, 60, 80)
    r_levels: Sequence[float] = (4.0, 0.5, 1.2)
    incubation_mean: float = INCUBATION_MEAN
    incubation_sd: float = INCUBATION_SD
    onset_to_count_mean: float = ONSET_TO_COUNT_MEAN
    onset_to_count_sd: float = ONSET_TO_COUNT_SD
    noise: Dict[str, Any] = field(default_factory=dict)
    timevarying: bool = False
    smooth_r: bool = False
    days_incl: int = 14
    shape_g: float = 2.73
    scale_g: float = 1.39
    init_infection: Iterable[int] = (1,)
    start_date: datetime.date = datetime.date(2020, 2, 1)
    seed: Optional[int] = None
    n_replicates: int = 1
    out_path: str = "data/simulated_ts.csv"


def simulate_ts(cfg: SimConfig, rng=None) -> pd.DataFrame:
    """Simulate one (Re, infections, observations) time series.

    Dates run from the day after cfg.start_date.
    """
    if rng is None:
        rng = default_rng(cfg.seed)

    if cfg.smooth_r:
        re_ts = build_smoothed(cfg.shift_times, cfg.r_levels, days_incl=cfg.days_incl)
    else:
        re_ts = build_piecewise(cfg.shift_times, cfg.r_levels)

    si = discrete_serial_interval(cfg.shape_g, cfg.scale_g)
    infections = simulate_infections(re_ts, init_infection=list(cfg.init_infection),
                                     serial_interval=si, rng=rng)

    incubation = gamma_params_from_moments(cfg.incubation_mean, cfg.incubation_sd)
    onset_to_count = gamma_params_from_moments(cfg.onset_to_count_mean, cfg.onset_to_count_sd)
    observations = synthesize_observations(infections, incubation, onset_to_count,
                                           noise=cfg.noise, timevarying=cfg.timevarying, rng=rng)

    n_re = re_ts.size
    dates = pd.Timestamp(cfg.start_date) + pd.to_timedelta(np.arange(1, n_re + 1), unit="D")
    return pd.DataFrame({
        "date": dates,
        "Re": re_ts,
        "infections": infections,
        "observations": observations[:n_re],
    })


def simulation_incidence(simulation: pd.DataFrame, replicate=0) -> pd.DataFrame:
    """Long-form incidence frame of the simulated observations."""
    return pd.DataFrame({
        "date": simulation["date"].to_numpy(),
        "value": simulation["observations"].to_numpy(),
        "data_type": "Simulated",
        "source": "ETH",
        "variable": "incidence",
        "region": "Simulated",
        "country": "Simulated",
        "date_type": "report",
        "local_infection": True,
        "replicate": replicate,
    })


def simulate_replicates(cfg: SimConfig, n_replicates=None, rng=None) -> pd.DataFrame:
    """Simulate n replicates sharing one random generator."""
    if rng is None:
        rng = default_rng(cfg.seed)
    n = cfg.n_replicates if n_replicates is None else n_replicates
    if n < 1:
        raise ValueError("n_replicates must be >= 1")

    frames = []
    for replicate in range(1, n + 1):
        sim = simulate_ts(cfg, rng=rng)
        sim.insert(0, "replicate", replicate)
        frames.append(sim)
    return pd.concat(frames, ignore_index=True)


def write_simulations_csv(cfg: SimConfig, n_replicates=None):
    """Run the replicate simulation and write it to cfg.out_path."""
    out_path = pathlib.Path(cfg.out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    sims = simulate_replicates(cfg, n_replicates=n_replicates)
    sims.to_csv(out_path, index=False)

    logger.info("Simulated replicates shape: %s", sims.shape)
    logger.info("CSV written to: %s", out_path)
    return sims, out_path
