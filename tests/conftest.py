import numpy as np
import pytest

from bayesint.config import ABCConfig
from bayesint.data import TimeSeries
from bayesint.models.ou_process import generate_ou_process


def make_ou_series(tau: float, n: int, seed: int, dt: float = 1.0, n_trials: int = 1) -> TimeSeries:
    rng = np.random.default_rng(seed)
    return TimeSeries.from_array(generate_ou_process(tau, dt, n, rng, n_trials=n_trials), dt=dt)


def make_abc_config(**overrides) -> ABCConfig:
    settings = dict(
        n_particles=40,
        n_rounds=3,
        quantile=0.5,
        kernel_scale=2.0,
        max_attempts=500,
        seed=7,
        executor="serial",
    )
    settings.update(overrides)
    return ABCConfig(**settings)


@pytest.fixture
def ou_series():
    """Single-trial OU series with tau=10, 300 points."""
    return make_ou_series(tau=10.0, n=300, seed=3)


@pytest.fixture
def masked_series():
    """OU series with roughly 10% of its entries missing."""
    series = make_ou_series(tau=10.0, n=300, seed=4)
    rng = np.random.default_rng(5)
    mask = rng.random(series.values.shape) < 0.1
    return TimeSeries.from_array(series.values, dt=1.0, mask=mask)
