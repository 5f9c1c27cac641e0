# src/re_estimation/simulate/observations.py
# Turn an infection time series into observed counts: every infected
# individual gets a reporting delay, counts are tallied per report day and
# noise is added on top.
import datetime
import logging

import numpy as np
import pandas as pd

from .delays import time_varying_onset_to_count
from .noise import add_noise

logger = logging.getLogger(__name__)


def draw_reporting_delay(n, incubation_params, onset_to_count_params, rng):
    """Draw n infection-to-report delays from the double gamma distribution."""
    if n < 0:
        raise ValueError("n must be >= 0")
    onset_to_count = rng.gamma(onset_to_count_params.shape, onset_to_count_params.scale, size=n)
    incubation = rng.gamma(incubation_params.shape, incubation_params.scale, size=n)
    return np.round(onset_to_count + incubation).astype(int)


def _draw_time_varying_counts(infection_date, n, incubation_params, onset_to_count_params, rng):
    """Onset dates and onset-to-count delays for n people infected on infection_date."""
    sampled_onsets = np.round(
        rng.gamma(incubation_params.shape, incubation_params.scale, size=n)
    ).astype(int)
    onset_dates = infection_date + sampled_onsets

    delays = np.empty(n, dtype=int)
    for i, onset_date in enumerate(onset_dates):
        delay_dist = time_varying_onset_to_count(onset_date, onset_to_count_params)
        delays[i] = int(round(rng.gamma(delay_dist.shape, delay_dist.scale)))
    return onset_dates, delays


def synthesize_observations(infections, incubation_params, onset_to_count_params,
                            noise=None, timevarying=False, rng=None):
    """Observed counts per day for an infection time series

    Days are 1-based. The tally is cut to the length of the infection series
    before noise is applied.
    """
    if rng is None:
        rng = np.random.default_rng()

    infections = np.asarray(infections, dtype=int)
    n_ts = infections.size

    count_dates = []
    for infection_date in range(1, n_ts + 1):
        n_inf = int(infections[infection_date - 1])
        if n_inf <= 0:
            continue

        if timevarying:
            onset_dates, delays = _draw_time_varying_counts(
                infection_date, n_inf, incubation_params, onset_to_count_params, rng
            )
            count_dates.append(onset_dates + delays)
        else:
            delays = draw_reporting_delay(n_inf, incubation_params, onset_to_count_params, rng)
            count_dates.append(infection_date + delays)

    if count_dates:
        all_dates = np.concatenate(count_dates)
        tally = np.bincount(all_dates, minlength=n_ts + 1)[1:]
    else:
        tally = np.zeros(n_ts, dtype=int)

    observations = tally[:n_ts]
    logger.debug("Tallied %d observations over %d days", int(observations.sum()), n_ts)
    return add_noise(observations, noise, rng)


def empirical_delays(infections, incubation_params, onset_to_count_params,
                     subsample=0.4, start_date=None, rng=None):
    """Table of individual onset and count dates under time-varying delays

    Each infection day is kept with a random subsampling fraction
    min(|Normal(subsample, 1)|, 1); days where the subsampled count rounds to
    zero are skipped.
    """
    if rng is None:
        rng = np.random.default_rng()
    if start_date is None:
        start_date = datetime.date.today()
    start = pd.Timestamp(start_date)

    infections = np.asarray(infections, dtype=int)
    frames = []
    for infection_date in range(1, infections.size + 1):
        n_inf = int(infections[infection_date - 1])
        subsample_frac = min(abs(rng.normal(subsample, 1.0)), 1.0)
        if round(n_inf * subsample_frac) <= 0:
            continue

        onset_dates, delays = _draw_time_varying_counts(
            infection_date, n_inf, incubation_params, onset_to_count_params, rng
        )
        frames.append(pd.DataFrame({
            "data_type": "Simulated",
            "onset_date": start + pd.to_timedelta(onset_dates, unit="D"),
            "count_date": start + pd.to_timedelta(onset_dates + delays, unit="D"),
            "delay": delays,
            "source": "ETH",
            "region": "Simulated",
            "country": "Simulated",
        }))

    if not frames:
        return pd.DataFrame(columns=["data_type", "onset_date", "count_date", "delay",
                                     "source", "region", "country"])
    return pd.concat(frames, ignore_index=True)
