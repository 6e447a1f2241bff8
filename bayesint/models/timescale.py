from __future__ import annotations

from typing import Mapping, Optional

import numpy as np

from bayesint.data import TimeSeries
from bayesint.errors import InvalidParameter
from bayesint.models.base import Model, ModelKind
from bayesint.models.ou_process import generate_oscillation, generate_ou_process
from bayesint.models.priors import ParameterPrior
from bayesint.stats.summary import SummaryStatistic


def _timescale_prior(name: str, dt: float, n_timepoints: int) -> ParameterPrior:
    return ParameterPrior(
        name=name,
        distribution="uniform",
        params=(dt, 0.5 * n_timepoints * dt),
        description="Decay timescale (time units of dt)",
    )


def _coeff_prior(name: str, description: str) -> ParameterPrior:
    return ParameterPrior(name=name, distribution="uniform", params=(0.0, 1.0), description=description)


def _check_coeff(coeff: float) -> None:
    if not 0.0 <= coeff <= 1.0:
        raise InvalidParameter(f"Mixing coefficient must be in [0, 1], got {coeff}")


class OneTimescaleModel(Model):
    """OU process with a single timescale ``tau``."""

    kind = ModelKind.ONE_TIMESCALE
    parameter_names = ("tau",)

    def default_prior(self, name: str) -> ParameterPrior:
        return _timescale_prior(name, self.dt, self.n_timepoints)

    def _check_domain(self, theta: np.ndarray) -> None:
        if theta[0] <= 0:
            raise InvalidParameter(f"Timescale must be positive, got {theta[0]}")

    def _generate(self, theta, rng, length, dt):
        return generate_ou_process(theta[0], dt, length, rng, n_trials=self.n_trials)


class OneTimescaleAndOscModel(Model):
    """OU process mixed with a sinusoid: ``sqrt(1-coeff) OU(tau) + sqrt(coeff) osc(freq)``."""

    kind = ModelKind.ONE_TIMESCALE_AND_OSC
    parameter_names = ("tau", "freq", "coeff")

    def default_prior(self, name: str) -> ParameterPrior:
        if name == "tau":
            return _timescale_prior(name, self.dt, self.n_timepoints)
        elif name == "freq":
            return ParameterPrior(
                name=name,
                distribution="uniform",
                params=(1.0 / (self.n_timepoints * self.dt), 0.5 / self.dt),
                description="Oscillation frequency",
            )
        return _coeff_prior(name, "Fraction of variance carried by the oscillation")

    def _check_domain(self, theta: np.ndarray) -> None:
        tau, freq, coeff = theta
        if tau <= 0:
            raise InvalidParameter(f"Timescale must be positive, got {tau}")
        nyquist = 0.5 / self.dt
        if not 0 < freq <= nyquist:
            raise InvalidParameter(f"Frequency must be in (0, {nyquist}], got {freq}")
        _check_coeff(coeff)

    def _generate(self, theta, rng, length, dt):
        tau, freq, coeff = theta
        ou = generate_ou_process(tau, dt, length, rng, n_trials=self.n_trials)
        osc = generate_oscillation(freq, dt, length, rng, n_trials=self.n_trials)
        return np.sqrt(1.0 - coeff) * ou + np.sqrt(coeff) * osc


class TwoTimescaleModel(Model):
    """Mixture of a fast (``tau1``) and a slow (``tau2``) OU process."""

    kind = ModelKind.TWO_TIMESCALE
    parameter_names = ("tau1", "tau2", "coeff")

    def default_prior(self, name: str) -> ParameterPrior:
        if name in ("tau1", "tau2"):
            return _timescale_prior(name, self.dt, self.n_timepoints)
        return _coeff_prior(name, "Fraction of variance carried by the fast component")

    def _check_domain(self, theta: np.ndarray) -> None:
        tau1, tau2, coeff = theta
        if tau1 <= 0 or tau2 <= 0:
            raise InvalidParameter(f"Timescales must be positive, got {tau1}, {tau2}")
        if tau1 >= tau2:
            raise InvalidParameter(f"tau1 must be the faster timescale, got tau1={tau1} >= tau2={tau2}")
        _check_coeff(coeff)

    def _generate(self, theta, rng, length, dt):
        tau1, tau2, coeff = theta
        fast = generate_ou_process(tau1, dt, length, rng, n_trials=self.n_trials)
        slow = generate_ou_process(tau2, dt, length, rng, n_trials=self.n_trials)
        return np.sqrt(coeff) * fast + np.sqrt(1.0 - coeff) * slow


def build_model(
    kind: ModelKind | str,
    observed: TimeSeries,
    statistic: SummaryStatistic,
    priors: Optional[Mapping[str, ParameterPrior]] = None,
) -> Model:
    kind = ModelKind(kind)
    if kind is ModelKind.ONE_TIMESCALE:
        return OneTimescaleModel(observed, statistic, priors)
    elif kind is ModelKind.ONE_TIMESCALE_AND_OSC:
        return OneTimescaleAndOscModel(observed, statistic, priors)
    elif kind is ModelKind.TWO_TIMESCALE:
        return TwoTimescaleModel(observed, statistic, priors)
    raise ValueError(f"Unknown model kind: {kind}")
