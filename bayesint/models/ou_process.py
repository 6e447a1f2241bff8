"""
Ornstein-Uhlenbeck process generation.

Paths use the exact AR(1) discretisation of the OU process,
``x[t+1] = a x[t] + sqrt(1 - a^2) noise[t]`` with ``a = exp(-dt / tau)``,
started from the stationary distribution, so every sample is N(0, 1).
"""

from __future__ import annotations

import numpy as np
from scipy import signal


def generate_ou_process(
    tau: float,
    dt: float,
    n_timepoints: int,
    rng: np.random.Generator,
    n_trials: int = 1,
) -> np.ndarray:
    """Unit-variance, zero-mean OU paths of shape ``(n_trials, n_timepoints)``."""
    if tau <= 0:
        raise ValueError(f"Timescale must be positive, got {tau}")
    a = np.exp(-dt / tau)
    x0 = rng.standard_normal(n_trials)
    noise = rng.standard_normal((n_trials, n_timepoints)) * np.sqrt(1.0 - a**2)
    paths, _ = signal.lfilter([1.0], [1.0, -a], noise, axis=1, zi=a * x0[:, np.newaxis])
    return paths


def generate_oscillation(
    freq: float,
    dt: float,
    n_timepoints: int,
    rng: np.random.Generator,
    n_trials: int = 1,
) -> np.ndarray:
    """Unit-variance sinusoids with a random phase per trial."""
    times = np.arange(n_timepoints) * dt
    phases = rng.uniform(0.0, 2 * np.pi, size=(n_trials, 1))
    return np.sqrt(2.0) * np.cos(2 * np.pi * freq * times[np.newaxis, :] + phases)


def rescale(paths: np.ndarray, mean: float, std: float) -> np.ndarray:
    """Map unit-variance paths onto the observed mean and standard deviation."""
    return paths * std + mean
