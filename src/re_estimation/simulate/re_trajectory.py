# src/re_estimation/simulate/re_trajectory.py
"""
Target Re trajectories for simulation.

Between consecutive anchor times, odd segments (1st, 3rd, ...) are plateaus
and even segments are linear ramps joining the neighbouring plateau levels.
"""

from typing import Sequence

import numpy as np


def _normalized_anchors(shift_times):
    t = np.asarray(shift_times, dtype=float)
    if t.ndim != 1 or t.size < 2:
        raise ValueError("shift_times needs at least two anchors")
    t_norm = t - t[0]
    if np.any(np.diff(t_norm) <= 0):
        raise ValueError("shift_times must be strictly increasing")
    if not np.allclose(t_norm, np.round(t_norm)):
        raise ValueError("shift_times must be whole days")
    return np.round(t_norm).astype(int)


def build_piecewise(shift_times: Sequence[float], r_levels: Sequence[float]) -> np.ndarray:
    """Piecewise Re trajectory, one value per day

    Example: shift_times=(0, 30, 40, 50, 60, 80), r_levels=(4, 0.5, 1.2) holds
    4 for 30 days, ramps down to 0.5 over days 30..40, holds 0.5, ramps up to
    1.2 and holds 1.2 until day 80.
    """
    t_norm = _normalized_anchors(shift_times)
    levels = np.asarray(r_levels, dtype=float)

    n_segments = t_norm.size - 1
    needed = n_segments // 2 + 1
    if levels.size < needed:
        raise ValueError(f"{n_segments} segments need at least {needed} R levels, got {levels.size}")

    re_ts = np.zeros(t_norm[-1], dtype=float)
    r_count = 0
    for seg in range(1, n_segments + 1):
        left, right = t_norm[seg - 1], t_norm[seg]
        if seg % 2 == 1:
            # plateau on days left+1..right
            re_ts[left:right] = levels[r_count]
            r_count += 1
        else:
            # ramp on days left..right (inclusive)
            re_ts[left - 1:right] = np.linspace(levels[r_count - 1], levels[r_count], right - left + 1)
    return re_ts


def _local_linear_smooth(y, span):
    """Degree-1 local regression with tricube weights (loess without robustness steps)."""
    n = y.size
    x = np.arange(1, n + 1, dtype=float)
    q = int(np.floor(n * span))
    q = min(max(q, 2), n)

    fitted = np.empty(n, dtype=float)
    for i in range(n):
        dist = np.abs(x - x[i])
        h = np.sort(dist)[q - 1]
        if span > 1:
            h *= span
        h = max(h, 1e-12)

        u = np.clip(dist / h, 0.0, 1.0)
        wts = (1.0 - u ** 3) ** 3

        sw = wts.sum()
        x_bar = np.dot(wts, x) / sw
        y_bar = np.dot(wts, y) / sw
        sxx = np.dot(wts, (x - x_bar) ** 2)
        if sxx <= 0:
            fitted[i] = y_bar
            continue
        slope = np.dot(wts, (x - x_bar) * (y - y_bar)) / sxx
        fitted[i] = y_bar + slope * (x[i] - x_bar)
    return fitted


def build_smoothed(shift_times, r_levels, days_incl=14):
    """Piecewise trajectory smoothed with local linear regression (span = days_incl / length)."""
    if days_incl <= 0:
        raise ValueError("days_incl must be > 0")
    re_ts = build_piecewise(shift_times, r_levels)
    return _local_linear_smooth(re_ts, days_incl / re_ts.size)
