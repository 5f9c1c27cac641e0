# ###
# **renewal.py**

# Purpose: this file produces a sequence of daily infection counts I_t for a
# given Re trajectory, using the renewal equation with Poisson draws.

# Functions:
# - infections_on_day()

#   - Input: Re on day t, all infections strictly before day t, discrete serial interval.
#   - Output: I_t, an integer.

# - simulate_infections()

#   - Input: Re trajectory, initial infections (scalar or short prefix).
#   - Output: array of integers with the same length as the Re trajectory.
# ###

import numpy as np
from numpy.random import default_rng

from .serial_interval import discrete_serial_interval


def infections_on_day(Rt, past_infections, serial_interval, rng):
    """Draw new infections for one day

    The serial interval starts at lag 0; lag 0 is never used.
    """
    past = np.asarray(past_infections, dtype=float)
    si = np.asarray(serial_interval, dtype=float)

    memory = min(past.size, si.size - 1)
    if memory <= 0:
        lam = 0.0
    else:
        recent = past[::-1][:memory]          # I_{t-1}..I_{t-memory}
        lam = float(Rt) * float(np.dot(recent, si[1:memory + 1]))

    if lam <= 0.0:
        return 0
    return int(round(rng.poisson(lam)))


def simulate_infections(re_trajectory, init_infection=1, serial_interval=None,
                        shape_g=2.73, scale_g=1.39, rng=None):
    """Simulate an infection time series from an Re trajectory

    result : np.ndarray of ints, same length as re_trajectory. Day 1 holds the
    (last) initial infection value; earlier prefix values only serve as history.
    """
    re_arr = np.asarray(re_trajectory, dtype=float)
    if re_arr.ndim != 1 or re_arr.size < 1:
        raise ValueError("re_trajectory must be a non-empty 1D sequence")

    if rng is None:
        rng = default_rng()

    if serial_interval is None:
        serial_interval = discrete_serial_interval(shape_g, scale_g)

    init = np.atleast_1d(np.asarray(init_infection, dtype=int))
    if init.size < 1:
        raise ValueError("init_infection must hold at least one value")
    if np.any(init < 0):
        raise ValueError("init_infection must be non-negative")

    n_ts = re_arr.size
    n_init = init.size

    # Seeds followed by the simulated days
    infections = np.zeros(n_ts + n_init - 1, dtype=int)
    infections[:n_init] = init

    for i in range(1, n_ts):
        t = n_init - 1 + i
        infections[t] = infections_on_day(re_arr[i], infections[:t], serial_interval, rng)

    return infections[n_init - 1:]
