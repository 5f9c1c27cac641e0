# src/re_estimation/simulate/delays.py
# Gamma delay distributions: incubation and onset-to-count (report)
from dataclasses import dataclass
import math

# Incubation period and onset to count (Linton et al. onset to death fit)
INCUBATION_MEAN = 5.3
INCUBATION_SD = 3.2
ONSET_TO_COUNT_MEAN = 15.0
ONSET_TO_COUNT_SD = 6.9

# Time-varying onset-to-count: mean drops 1/20 day per calendar day, floored
TV_DECREASE_PER_DAY = 1.0 / 20.0
TV_MIN_MEAN = 2.0


@dataclass(frozen=True)
class GammaParams:
    shape: float
    scale: float

    @property
    def mean(self) -> float:
        return self.shape * self.scale

    @property
    def sd(self) -> float:
        return math.sqrt(self.scale ** 2 * self.shape)


def gamma_params_from_moments(mean, sd):
    """Find gamma shape/scale from the mean and sd of the distribution."""
    if mean <= 0 or sd <= 0:
        raise ValueError("Mean and sd must be > 0")
    return GammaParams(shape=mean ** 2 / sd ** 2, scale=sd ** 2 / mean)


def moments_from_gamma_params(shape, scale):
    """Find (mean, sd) of a gamma distribution from its shape/scale."""
    if shape <= 0 or scale <= 0:
        raise ValueError("Shape and scale must be > 0")
    return shape * scale, math.sqrt(scale ** 2 * shape)


def time_varying_onset_to_count(day, base_params):
    """Onset-to-count parameters for an onset on `day` (1-based)

    The mean shrinks by day/20 and never goes below 2 days; sd is kept.
    """
    mean, sd = moments_from_gamma_params(base_params.shape, base_params.scale)
    new_mean = max(mean - day * TV_DECREASE_PER_DAY, TV_MIN_MEAN)
    return gamma_params_from_moments(new_mean, sd)


def default_incubation():
    return gamma_params_from_moments(INCUBATION_MEAN, INCUBATION_SD)


def default_onset_to_count():
    return gamma_params_from_moments(ONSET_TO_COUNT_MEAN, ONSET_TO_COUNT_SD)
