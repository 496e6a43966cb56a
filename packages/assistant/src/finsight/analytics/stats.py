"""Small numeric helpers with a zero-denominator policy.

Every helper returns 0 instead of raising or producing NaN when its
denominator is zero or its input is empty.
"""

import math
from collections.abc import Sequence


def safe_divide(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator


def mean(values: Sequence[float]) -> float:
    return safe_divide(sum(values), len(values))


def population_stddev(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    avg = mean(values)
    return math.sqrt(sum((v - avg) ** 2 for v in values) / len(values))


def coefficient_of_variation(values: Sequence[float]) -> float:
    """Population stddev over mean, as a percentage."""
    return safe_divide(population_stddev(values), mean(values)) * 100


def percent_change(values: Sequence[float]) -> float:
    """Percent change from the first to the last value.

    Zero when there are fewer than two values or the first value is zero.
    """
    if len(values) < 2:
        return 0.0
    return safe_divide(values[-1] - values[0], values[0]) * 100


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))
