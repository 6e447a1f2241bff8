import numpy as np
import pytest

from bayesint.models.ou_process import generate_oscillation, generate_ou_process


def test_ou_process_is_stationary_unit_variance():
    paths = generate_ou_process(5.0, 1.0, 500, np.random.default_rng(0), n_trials=200)
    assert paths.shape == (200, 500)
    assert np.mean(paths**2) == pytest.approx(1.0, abs=0.1)
    assert np.mean(paths[:, 0] ** 2) == pytest.approx(1.0, abs=0.35)


def test_ou_process_lag_one_correlation():
    tau, dt = 5.0, 1.0
    paths = generate_ou_process(tau, dt, 500, np.random.default_rng(1), n_trials=200)
    rho = np.corrcoef(paths[:, :-1].ravel(), paths[:, 1:].ravel())[0, 1]
    assert rho == pytest.approx(np.exp(-dt / tau), abs=0.02)


def test_ou_process_is_reproducible():
    a = generate_ou_process(3.0, 0.5, 100, np.random.default_rng(9))
    b = generate_ou_process(3.0, 0.5, 100, np.random.default_rng(9))
    assert np.array_equal(a, b)


def test_ou_process_rejects_non_positive_timescale():
    with pytest.raises(ValueError):
        generate_ou_process(0.0, 1.0, 10, np.random.default_rng(0))


def test_oscillation_unit_variance():
    osc = generate_oscillation(0.05, 1.0, 1000, np.random.default_rng(2), n_trials=50)
    assert osc.shape == (50, 1000)
    assert np.mean(osc**2) == pytest.approx(1.0, abs=0.02)
