# src/re_estimation/simulate/serial_interval.py
# This will compute discrete-time serial interval weights w_k
# from a continuous gamma distribution (SI - 1 is gamma distributed)
from functools import lru_cache
import logging

import numpy as np
from scipy.stats import gamma

logger = logging.getLogger(__name__)

# Longest lag evaluated before looking for the cutoff
MAX_LAG = 1000


def compute_weight(k, shape_g, scale_g):
    """Discrete serial interval weight for lag k
    Closed form from Cori et al. 2013 (web appendix 11). Accepts a scalar or an
    array of lags; negative round-off values are clamped to zero.
    Args:
        k (int or array): lag(s) in days
        shape_g (float): gamma shape
        scale_g (float): gamma scale
    Returns:
        w_k (float or nparray): weight(s) for the given lag(s)
    """
    if shape_g <= 0 or scale_g <= 0:
        raise ValueError("shape_g and scale_g must be > 0")

    k = np.asarray(k, dtype=float)
    cdf = lambda x: gamma.cdf(x, a=shape_g, scale=scale_g)
    cdf_plus = lambda x: gamma.cdf(x, a=shape_g + 1, scale=scale_g)

    w_k = (k * cdf(k)
           + (k - 2) * cdf(k - 2)
           - 2 * (k - 1) * cdf(k - 1)
           + shape_g * scale_g * (2 * cdf_plus(k - 1) - cdf_plus(k - 2) - cdf_plus(k)))

    w_k = np.where(w_k < 0.0, 0.0, w_k)
    if w_k.ndim == 0:
        return float(w_k)
    return w_k


@lru_cache(maxsize=64)
def _cached_serial_interval(shape_g, scale_g):
    long_si = compute_weight(np.arange(0, MAX_LAG + 1), shape_g, scale_g)

    # first lag in 1..MAX_LAG-1 where the weight vanishes
    zeros = np.flatnonzero(long_si[1:MAX_LAG] == 0.0)
    if zeros.size == 0:
        raise RuntimeError(
            f"Serial interval (shape={shape_g}, scale={scale_g}) does not reach zero within {MAX_LAG} days"
        )
    cut = int(zeros[0]) + 1
    return long_si[:cut]


def discrete_serial_interval(shape_g=2.73, scale_g=1.39):
    """Serial interval weights for lags 0..K
    The weights are evaluated for k = 0..1000 and truncated at the first lag
    (k >= 1) whose weight is exactly zero.
    Returns:
        w (nparray(K+1,)): weights indexed by lag, summing to ~1
    Raises:
        ValueError, RuntimeError
    """
    w = _cached_serial_interval(float(shape_g), float(scale_g)).copy()
    logger.debug("Computed discrete serial interval (len=%d, sum=%.6f)", len(w), w.sum())
    return w
