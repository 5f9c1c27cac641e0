# src/re_estimation/estimate/windows.py
"""
Estimation window planning and Re estimation for one incidence series.

    dates, incidence -> cumulative check -> bounds check -> windows
        -> date offset -> engine -> expand -> truncate -> long-form rows

Any failed check gives the empty estimate (zero rows) instead of raising.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union
import logging

import numpy as np
import pandas as pd

from .engine import IncidenceInput, LocalOnly, parse_method, run_engine

logger = logging.getLogger(__name__)

ESTIMATE_COLUMNS = ["date", "variable", "value", "estimate_type"]
STAT_NAMES = ["R_mean", "R_highHPD", "R_lowHPD"]


# ---------- variations ----------

@dataclass(frozen=True)
class SlidingWindow:
    tag = "slidingWindow"


@dataclass(frozen=True)
class Step:
    interval_ends: Sequence = field(default_factory=tuple)
    tag = "step"


Variation = Union[SlidingWindow, Step]


def parse_variation(tag, interval_ends=()) -> Optional[Variation]:
    """Variation for a string tag, or None (with a warning) if unknown."""
    if isinstance(tag, (SlidingWindow, Step)):
        return tag
    if tag == "slidingWindow":
        return SlidingWindow()
    if tag == "step":
        return Step(interval_ends=tuple(interval_ends))
    logger.warning("Unknown time variation: %r", tag)
    return None


@dataclass
class WindowPlan:
    starts: List[int]           # 1-indexed, inclusive
    ends: List[int]
    output_dates: pd.DatetimeIndex
    variation: Variation


def empty_estimate() -> pd.DataFrame:
    return pd.DataFrame({c: pd.Series(dtype=object) for c in ESTIMATE_COLUMNS})


def _as_incidence(incidence) -> IncidenceInput:
    if hasattr(incidence, "total"):
        return incidence
    return LocalOnly(np.asarray(incidence, dtype=float))


def find_offset(local, minimum_cumul):
    """First 1-based day where cumulative incidence reaches minimum_cumul, at least 2.

    None if the series never gets there.
    """
    cumulative = np.cumsum(np.asarray(local, dtype=float))
    reached = np.flatnonzero(cumulative >= minimum_cumul)
    if reached.size == 0:
        return None
    return max(2, int(reached[0]) + 1)


def _step_windows(dates, interval_ends, offset, n):
    """Windows between interval end dates, trimmed to [offset, n]."""
    matched = []
    for end in pd.to_datetime(list(interval_ends)):
        hits = np.flatnonzero(dates == end)
        if hits.size:
            matched.append(int(hits[0]) + 1)
    matched = sorted(set(matched))

    starts = [offset] + [i + 1 for i in matched]
    ends = matched + [n]

    # drop intervals that end before the offset
    while ends and offset > ends[0]:
        starts = starts[1:]
        ends = ends[1:]
        if starts:
            starts[0] = offset

    # no intervals beyond the length of the data
    while starts and starts[-1] >= n:
        starts = starts[:-1]
        ends = ends[:-1]

    return starts, ends


def plan_windows(dates, incidence, variation: Variation, window_length=4,
                 minimum_cumul=5) -> Optional[WindowPlan]:
    """Window boundaries for the engine, or None if no valid window exists."""
    dates = pd.DatetimeIndex(pd.to_datetime(dates))
    incidence = _as_incidence(incidence)
    n = len(incidence.local)

    offset = find_offset(incidence.local, minimum_cumul)
    if offset is None:
        logger.debug("Cumulative incidence never reaches %s", minimum_cumul)
        return None

    right_bound = n - (window_length - 1)
    if right_bound < offset:
        return None

    if isinstance(variation, Step):
        if offset >= n:
            return None
        starts, ends = _step_windows(dates, variation.interval_ends, offset, n)
        if not starts:
            return None
        output_dates = dates[starts[0] - 1:ends[-1]]
    elif isinstance(variation, SlidingWindow):
        starts = list(range(offset, right_bound + 1))
        ends = [s + window_length - 1 for s in starts]
        output_dates = dates[np.asarray(ends) - 1]
    else:
        logger.warning("Unknown time variation: %r", variation)
        return None

    logger.debug("Planned %d %s windows from offset %d", len(starts), variation.tag, offset)
    return WindowPlan(starts=starts, ends=ends, output_dates=output_dates, variation=variation)


def _truncate(output_dates, stats, right_truncation, left_truncation):
    """Drop trailing then leading days; None if nothing would remain."""
    if right_truncation > 0:
        if right_truncation >= len(output_dates):
            return None
        output_dates = output_dates[:-right_truncation]
        stats = [s[:-right_truncation] for s in stats]

    if left_truncation > 0:
        if left_truncation >= len(output_dates):
            return None
        output_dates = output_dates[left_truncation:]
        stats = [s[left_truncation:] for s in stats]

    return output_dates, stats


def estimate_re(
    dates,
    incidence,
    method="Cori",
    variation="slidingWindow",
    estimate_offsetting=10,
    right_truncation=0,
    left_truncation=5,
    interval_ends=("2020-03-13", "2020-03-16", "2020-03-20"),
    minimum_cumul=5,
    window_length=4,
    mean_si=4.8,
    std_si=2.3,
    n_sim=10,
    rng=None,
) -> pd.DataFrame:
    """Re estimates for one incidence series as long-form rows

    'estimate_offsetting' is the number of days the estimates are shifted
    towards the past (delay between infection and report).
    'left_truncation' / 'right_truncation' are the number of days of
    estimates dropped at the start / end of the series.
    'minimum_cumul' is the cumulative count needed before the first window.

    Returns columns date, variable, value, estimate_type; empty when no
    estimate can be made.
    """
    variation = parse_variation(variation, interval_ends)
    if variation is None:
        return empty_estimate()

    incidence = _as_incidence(incidence)
    plan = plan_windows(dates, incidence, variation,
                        window_length=window_length, minimum_cumul=minimum_cumul)
    if plan is None:
        return empty_estimate()

    # shift to account for delay between infection and recorded event
    output_dates = plan.output_dates - pd.Timedelta(days=estimate_offsetting)

    method = parse_method(method, n_sim=n_sim)
    if method is None:
        return empty_estimate()

    res = run_engine(method, incidence, plan.starts, plan.ends,
                     mean_si=mean_si, std_si=std_si, rng=rng)
    stats = [np.asarray(res.mean), np.asarray(res.high), np.asarray(res.low)]

    if isinstance(variation, Step):
        # one value per day covered by each window
        reps = np.asarray(plan.ends) - np.asarray(plan.starts) + 1
        stats = [np.repeat(s, reps) for s in stats]

    truncated = _truncate(output_dates, stats, right_truncation, left_truncation)
    if truncated is None:
        return empty_estimate()
    output_dates, stats = truncated

    wide = pd.DataFrame({"date": output_dates, **dict(zip(STAT_NAMES, stats))})
    result = wide.melt(id_vars="date", var_name="variable", value_name="value")
    result["estimate_type"] = f"{method.tag}_{variation.tag}"
    return result[ESTIMATE_COLUMNS]
