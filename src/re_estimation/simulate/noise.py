# src/re_estimation/simulate/noise.py
"""
Observation noise for simulated count series.

Active terms are applied in a fixed order: weekly, gaussian,
fitted_noise_model, iid_noise_sd, noiseless. The result is rounded and
clamped at zero.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional
import logging

import numpy as np

logger = logging.getLogger(__name__)

# Days shifted forward by the weekend reporting effect
WEEKEND_SHIFT = 2


@dataclass(frozen=True)
class NoiseSpec:
    """Which noise terms are active; None / False means inactive."""
    weekly: Optional[float] = None
    gaussian: Optional[float] = None
    fitted_noise_model: Optional[Any] = None
    iid_noise_sd: Optional[float] = None
    noiseless: bool = False

    @classmethod
    def from_dict(cls, noise: Optional[Mapping[str, Any]]) -> "NoiseSpec":
        """Build from a mapping such as {"weekly": 0.3, "gaussian": 0.1}."""
        if not noise:
            return cls()
        unknown = set(noise) - {"weekly", "gaussian", "fitted_noise_model", "iid_noise_sd", "noiseless"}
        if unknown:
            raise ValueError(f"Unknown noise terms: {sorted(unknown)}")
        return cls(
            weekly=noise.get("weekly"),
            gaussian=noise.get("gaussian"),
            fitted_noise_model=noise.get("fitted_noise_model"),
            iid_noise_sd=noise.get("iid_noise_sd"),
            noiseless="noiseless" in noise and noise["noiseless"] is not False,
        )


class ARLogResidualModel:
    """AR(1) model of log-scale residuals, y_t = phi * y_{t-1} + e_t.

    Stands in for an externally fitted time series model: `simulate(n, rng)`
    returns one log residual per time step.
    """

    def __init__(self, phi=0.0, sigma=0.1, n_steps=None):
        if not -1.0 < phi < 1.0:
            raise ValueError("phi must lie in (-1, 1)")
        if sigma < 0:
            raise ValueError("sigma must be >= 0")
        self.phi = float(phi)
        self.sigma = float(sigma)
        self.n_steps = n_steps

    @classmethod
    def fit(cls, log_residuals):
        """Least-squares AR(1) fit to a series of log residuals."""
        y = np.asarray(log_residuals, dtype=float)
        if y.size < 3:
            raise ValueError("Need at least 3 residuals to fit an AR(1) model")
        y = y - y.mean()
        x_prev, x_next = y[:-1], y[1:]
        denom = float(np.dot(x_prev, x_prev))
        phi = float(np.dot(x_prev, x_next) / denom) if denom > 0 else 0.0
        phi = float(np.clip(phi, -0.99, 0.99))
        sigma = float(np.std(x_next - phi * x_prev))
        return cls(phi=phi, sigma=sigma, n_steps=y.size)

    def simulate(self, n=None, rng=None):
        if n is None:
            n = self.n_steps
        if n is None:
            raise ValueError("Number of steps must be given")
        if rng is None:
            rng = np.random.default_rng()
        eps = rng.normal(0.0, self.sigma, size=n)
        out = np.zeros(n, dtype=float)
        prev = 0.0
        for t in range(n):
            prev = self.phi * prev + eps[t]
            out[t] = prev
        return out


def _weekend_effect(orig, weekly, rng):
    """Keep a Normal(weekly, weekly/10) fraction on each weekend day and move
    the rest two days later; mass moved past the end is dropped."""
    n = orig.size
    out = orig.copy()
    days = np.arange(1, n + 1)

    # 7-day pattern only, not which calendar day is a weekend
    for phase in (0, 1):
        anchors = np.flatnonzero(days % 7 == phase)
        kept = rng.normal(weekly, weekly / 10.0, size=anchors.size)
        kept = np.clip(kept, 0.0, 1.0)

        out[anchors] = kept * orig[anchors]
        targets = anchors + WEEKEND_SHIFT
        inside = targets < n
        out[targets[inside]] = orig[targets[inside]] + (1.0 - kept[inside]) * orig[anchors[inside]]
    return out


def add_noise(series, noise, rng):
    """Apply the active noise terms, then round and clamp negatives to zero."""
    if isinstance(noise, Mapping) or noise is None:
        noise = NoiseSpec.from_dict(noise)

    obs = np.asarray(series, dtype=float).copy()
    n = obs.size

    if noise.weekly is not None:
        obs = _weekend_effect(obs, float(noise.weekly), rng)

    if noise.gaussian is not None:
        obs = obs * rng.normal(1.0, noise.gaussian, size=n)

    if noise.fitted_noise_model is not None:
        # noise model is on log-scale: y = mu * exp(residual)
        residuals = np.asarray(noise.fitted_noise_model.simulate(n, rng), dtype=float)
        if residuals.size != n:
            logger.warning(
                "Fitted noise model returned %d residuals for a series of length %d",
                residuals.size, n,
            )
        m = min(residuals.size, n)
        obs[:m] = obs[:m] * np.exp(residuals[:m])

    if noise.iid_noise_sd is not None:
        # iid log-normal error
        obs = obs * np.exp(rng.normal(0.0, noise.iid_noise_sd, size=n))

    # noiseless: identity

    obs = np.round(obs)
    obs[obs < 0] = 0
    return obs.astype(int)
