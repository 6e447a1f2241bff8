import numpy as np
import pytest

from bayesint.config import DistanceConfig
from bayesint.errors import DomainError, ShapeMismatch
from bayesint.stats.distances import (
    LinearDistance,
    LogarithmicDistance,
    build_distance,
    linear_distance,
    logarithmic_distance,
)

NORMS = ["mse", "mae", "euclidean"]


@pytest.mark.parametrize("norm", NORMS)
@pytest.mark.parametrize("metric_cls", [LinearDistance, LogarithmicDistance])
def test_distance_is_symmetric_and_zero_on_identical(metric_cls, norm):
    rng = np.random.default_rng(0)
    metric = metric_cls(norm)
    for _ in range(20):
        a = rng.uniform(0.01, 5.0, size=16)
        b = rng.uniform(0.01, 5.0, size=16)
        assert metric.compute(a, b) == metric.compute(b, a)
        assert metric.compute(a, b) >= 0
        assert metric.compute(a, a) == 0.0


def test_linear_distance_values():
    a, b = np.array([0.0, 0.0]), np.array([1.0, 3.0])
    assert linear_distance(a, b) == pytest.approx(5.0)
    assert linear_distance(a, b, norm="mae") == pytest.approx(2.0)
    assert linear_distance(a, b, norm="euclidean") == pytest.approx(np.sqrt(10.0))


def test_linear_distance_accepts_negative_entries():
    assert linear_distance([-1.0, -2.0], [1.0, 0.5]) > 0


def test_logarithmic_distance_values():
    assert logarithmic_distance([1.0, 10.0], [10.0, 100.0]) == pytest.approx(1.0)


@pytest.mark.parametrize("bad", [[1.0, 0.0], [1.0, -0.5], [np.nan, 1.0]])
def test_logarithmic_distance_rejects_non_positive(bad):
    with pytest.raises(DomainError):
        logarithmic_distance(bad, [1.0, 1.0])
    with pytest.raises(DomainError):
        logarithmic_distance([1.0, 1.0], bad)


def test_shape_mismatch():
    with pytest.raises(ShapeMismatch):
        LinearDistance().compute(np.ones(3), np.ones(4))


def test_unknown_norm():
    with pytest.raises(ValueError):
        LinearDistance("chebyshev")


def test_build_distance():
    metric = build_distance(DistanceConfig(method="logarithmic", norm="mae"))
    assert isinstance(metric, LogarithmicDistance)
    assert metric.norm == "mae"
