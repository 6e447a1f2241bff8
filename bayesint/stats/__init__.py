"""
Summary Statistics and Distances
================================
Primitives consumed by the ABC engine: reductions of a time series to a
fixed-length vector (ACF, periodogram, Welch and Lomb-Scargle PSD) and
scalar distances between two such vectors.
"""

from bayesint.stats.summary import (
    SummaryStatistic,
    ACFStatistic,
    PeriodogramStatistic,
    WelchStatistic,
    LombScargleStatistic,
    build_statistic,
    compute_summary,
)

from bayesint.stats.distances import (
    DistanceMetric,
    LinearDistance,
    LogarithmicDistance,
    linear_distance,
    logarithmic_distance,
    build_distance,
)

__all__ = [
    "SummaryStatistic",
    "ACFStatistic",
    "PeriodogramStatistic",
    "WelchStatistic",
    "LombScargleStatistic",
    "build_statistic",
    "compute_summary",
    "DistanceMetric",
    "LinearDistance",
    "LogarithmicDistance",
    "linear_distance",
    "logarithmic_distance",
    "build_distance",
]
