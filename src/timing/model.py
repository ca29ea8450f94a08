"""
Progress estimation for operations of unknown duration

A radio's past round-trip durations (milliseconds) are turned into a two-piece
curve: a linear ramp up to 90% of the median duration, then an exponential
creep towards 1 that never reaches it before the operation actually settles.
"""

import math
import statistics
from dataclasses import dataclass
from typing import Callable, Sequence

from errors import InsufficientHistoryError

# Normal-distribution consistency factor for the median absolute deviation
MAD_SCALE = 1.4826
# Asymptotic floor of the remaining-time scale, in ms
TAIL_FLOOR_MS = 50.0

# Largest float below 1.0
PROGRESS_CEILING = math.nextafter(1.0, 0.0)


@dataclass(frozen=True)
class ProgressEstimate:
    """Curve parameters derived from a duration history"""
    median: float
    mad: float
    t90: float
    r0: float
    tau: float


def median_absolute_deviation(values: Sequence[float], center: float) -> float:
    return statistics.median(abs(v - center) for v in values)


def estimate(history: Sequence[float]) -> ProgressEstimate:
    """
    Derive a ProgressEstimate from a duration history.
    Raises InsufficientHistoryError for fewer than two samples or a zero median.
    """
    if len(history) < 2:
        raise InsufficientHistoryError(f"Need at least 2 samples, got {len(history)}")

    median = statistics.median(history)
    if median <= 0:
        raise InsufficientHistoryError(f"Median duration is {median}")

    mad = median_absolute_deviation(history, median)
    t90 = 0.9 * median
    r0 = 0.1 * median

    # |ln| keeps tau positive for medians under 500 ms
    divisor = abs(math.log(r0 / TAIL_FLOOR_MS)) or 1.0
    tau = r0 * (1 + MAD_SCALE * mad / median) / divisor

    return ProgressEstimate(median=median, mad=mad, t90=t90, r0=r0, tau=tau)


def progress(est: ProgressEstimate, elapsed: float) -> float:
    """Progress in [0, 1) after `elapsed` ms"""
    if elapsed <= 0:
        return 0.0
    if elapsed < est.t90:
        return elapsed / est.median
    value = 1 - 0.1 * math.exp((est.t90 - elapsed) / est.tau)
    return min(value, PROGRESS_CEILING)


def fallback_progress(elapsed: float, default_duration: float) -> float:
    """Linear ramp to a conservative default duration, for radios without history"""
    if elapsed <= 0:
        return 0.0
    return min(elapsed / default_duration, PROGRESS_CEILING)


def progress_curve(history: Sequence[float], default_duration: float) -> Callable[[float], float]:
    """Return elapsed -> progress, falling back to a linear ramp on short history"""
    try:
        est = estimate(history)
    except InsufficientHistoryError:
        return lambda elapsed: fallback_progress(elapsed, default_duration)
    return lambda elapsed: progress(est, elapsed)
