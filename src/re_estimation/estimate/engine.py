# src/re_estimation/estimate/engine.py
"""
Re estimation engines.

Input: daily incidence (local only, or local + imported), serial interval
mean / sd and 1-indexed inclusive (start, end) windows with start >= 2.
Output: one (mean, 97.5% bound, 2.5% bound) triple per window.

Cori: gamma posterior of the instantaneous reproduction number
(Cori et al. 2013), prior mean 1 / sd 5.
WallingaTeunis: case reproduction number, credible bounds from n_sim
multinomial resimulations of who-infected-whom.
"""

from dataclasses import dataclass
from typing import Optional, Union
import logging

import numpy as np
from scipy.stats import gamma

from ..simulate.serial_interval import compute_weight

logger = logging.getLogger(__name__)

MEAN_PRIOR = 1.0
STD_PRIOR = 5.0
CRED_LOW = 0.025
CRED_HIGH = 0.975


# ---------- incidence input ----------

@dataclass(frozen=True)
class LocalOnly:
    series: np.ndarray

    @property
    def local(self):
        return self.series

    @property
    def total(self):
        return self.series


@dataclass(frozen=True)
class LocalAndImported:
    local: np.ndarray
    imported: np.ndarray

    def __post_init__(self):
        if len(self.local) != len(self.imported):
            raise ValueError("local and imported series must have the same length")

    @property
    def total(self):
        return np.asarray(self.local) + np.asarray(self.imported)


IncidenceInput = Union[LocalOnly, LocalAndImported]


# ---------- methods ----------

@dataclass(frozen=True)
class Cori:
    tag = "Cori"


@dataclass(frozen=True)
class WallingaTeunis:
    n_sim: int = 10
    tag = "WallingaTeunis"


Method = Union[Cori, WallingaTeunis]


def parse_method(tag, n_sim=10) -> Optional[Method]:
    """Method for a string tag, or None (with a warning) if unknown."""
    if isinstance(tag, (Cori, WallingaTeunis)):
        return tag
    if tag == "Cori":
        return Cori()
    if tag == "WallingaTeunis":
        return WallingaTeunis(n_sim=n_sim)
    logger.warning("Unknown estimation method: %r", tag)
    return None


@dataclass
class EngineResult:
    mean: np.ndarray
    high: np.ndarray
    low: np.ndarray


def discretized_si(n, mean_si, std_si):
    """Serial interval weights for lags 0..n-1 (SI - 1 gamma distributed), normalized."""
    if mean_si <= 1 or std_si <= 0:
        raise ValueError("mean_si must be > 1 and std_si > 0")
    shape = ((mean_si - 1) / std_si) ** 2
    scale = std_si ** 2 / (mean_si - 1)
    w = np.atleast_1d(compute_weight(np.arange(n), shape, scale))
    total = w.sum()
    if total > 0:
        w = w / total
    return w


def _infectiousness(total, w):
    """Lambda_t = sum_{k>=1} I_{t-k} w_k"""
    w = w.copy()
    w[0] = 0.0
    return np.convolve(total, w)[:total.size]


def _check_windows(t_start, t_end, n):
    t_start = np.asarray(t_start, dtype=int)
    t_end = np.asarray(t_end, dtype=int)
    if t_start.shape != t_end.shape:
        raise ValueError("t_start and t_end must have the same length")
    if np.any(t_start < 2) or np.any(t_end < t_start) or np.any(t_end > n):
        raise ValueError("Windows must satisfy 2 <= start <= end <= len(incidence)")
    return t_start, t_end


def estimate_cori(incidence: IncidenceInput, t_start, t_end, mean_si, std_si):
    local = np.asarray(incidence.local, dtype=float)
    total = np.asarray(incidence.total, dtype=float)
    t_start, t_end = _check_windows(t_start, t_end, local.size)

    w = discretized_si(local.size, mean_si, std_si)
    lam = _infectiousness(total, w)

    a_prior = (MEAN_PRIOR / STD_PRIOR) ** 2
    b_prior = STD_PRIOR ** 2 / MEAN_PRIOR

    cum_local = np.concatenate([[0.0], np.cumsum(local)])
    cum_lam = np.concatenate([[0.0], np.cumsum(lam)])
    shape = a_prior + cum_local[t_end] - cum_local[t_start - 1]
    post_scale = 1.0 / (1.0 / b_prior + cum_lam[t_end] - cum_lam[t_start - 1])

    return EngineResult(
        mean=shape * post_scale,
        high=gamma.ppf(CRED_HIGH, a=shape, scale=post_scale),
        low=gamma.ppf(CRED_LOW, a=shape, scale=post_scale),
    )


def estimate_wallinga_teunis(incidence: IncidenceInput, t_start, t_end, mean_si, std_si,
                             n_sim=10, rng=None):
    if rng is None:
        rng = np.random.default_rng()
    local = np.asarray(incidence.local, dtype=int)
    total = np.asarray(incidence.total, dtype=float)
    n = local.size
    t_start, t_end = _check_windows(t_start, t_end, n)

    w = discretized_si(n, mean_si, std_si)
    w[0] = 0.0

    # pair[j, k]: relative likelihood that a case on day k infected a case on day j
    lags = np.arange(n)[:, None] - np.arange(n)[None, :]
    pair = np.where(lags > 0, w[np.clip(lags, 0, n - 1)], 0.0) * total[None, :]
    lam = pair.sum(axis=1)

    infectees = np.flatnonzero((local > 0) & (lam > 0))
    probs = pair[infectees] / lam[infectees, None]
    offspring = (local[infectees, None] * probs).sum(axis=0)

    sim_offspring = np.zeros((n_sim, n), dtype=float)
    for s in range(n_sim):
        for row, j in enumerate(infectees):
            p = probs[row] / probs[row].sum()
            sim_offspring[s] += rng.multinomial(local[j], p)

    mean = np.empty(t_start.size)
    high = np.empty(t_start.size)
    low = np.empty(t_start.size)
    for i, (s, e) in enumerate(zip(t_start, t_end)):
        cases = total[s - 1:e].sum()
        if cases <= 0:
            mean[i] = high[i] = low[i] = np.nan
            continue
        mean[i] = offspring[s - 1:e].sum() / cases
        sims = sim_offspring[:, s - 1:e].sum(axis=1) / cases
        high[i] = np.quantile(sims, CRED_HIGH)
        low[i] = np.quantile(sims, CRED_LOW)

    return EngineResult(mean=mean, high=high, low=low)


def run_engine(method: Method, incidence: IncidenceInput, t_start, t_end,
               mean_si=4.8, std_si=2.3, rng=None) -> EngineResult:
    """Dispatch to the engine for `method`."""
    if isinstance(method, Cori):
        return estimate_cori(incidence, t_start, t_end, mean_si, std_si)
    if isinstance(method, WallingaTeunis):
        return estimate_wallinga_teunis(incidence, t_start, t_end, mean_si, std_si,
                                        n_sim=method.n_sim, rng=rng)
    raise TypeError(f"Unsupported method: {method!r}")
