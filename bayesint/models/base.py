"""
base.py
-------

Model contract shared by every timescale model variant.

A model binds together a joint prior, a simulator that produces synthetic
series with the observed shape, and the summary statistic used to compare
synthetic and observed data. Variants form a closed set tagged by
``ModelKind``; whether a model runs in missing-data mode is decided by the
observed series it is built for.

Models are immutable after construction and hold no per-call state, so one
instance can be shared by all workers of an ABC run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import ClassVar, Dict, Mapping, Optional, Tuple

import numpy as np

from bayesint.data import TimeSeries, as_trials
from bayesint.errors import InvalidParameter, ShapeMismatch, UnsupportedInput
from bayesint.models.ou_process import rescale
from bayesint.models.priors import JointPrior, ParameterPrior
from bayesint.stats.summary import SummaryStatistic


class ModelKind(str, Enum):
    ONE_TIMESCALE = "one_timescale"
    ONE_TIMESCALE_AND_OSC = "one_timescale_and_osc"
    TWO_TIMESCALE = "two_timescale"


class Model(ABC):
    """
    Abstract timescale model.

    Parameters
    ----------
    observed : TimeSeries
        Data the model is fitted to. Supplies ``dt``, the series shape, the
        mean and standard deviation synthetic series are rescaled to, and
        the missing-entry pattern (if any).
    statistic : SummaryStatistic
        Reduction applied by ``summary``. Must support missing entries when
        the observed series has any.
    priors : mapping, optional
        Per-parameter overrides of the default prior.
    """

    kind: ClassVar[ModelKind]
    parameter_names: ClassVar[Tuple[str, ...]]

    def __init__(
        self,
        observed: TimeSeries,
        statistic: SummaryStatistic,
        priors: Optional[Mapping[str, ParameterPrior]] = None,
    ) -> None:
        self.dt = observed.dt
        self.n_timepoints = observed.n_timepoints
        self.n_trials = observed.n_trials
        self.data_mean = observed.mean
        self.data_std = observed.std
        self.missing_mask: Optional[np.ndarray] = None
        if observed.has_missing_data:
            if not statistic.supports_missing:
                raise UnsupportedInput(
                    f"Observed series has missing entries; {statistic.name} cannot handle them"
                )
            self.missing_mask = observed.mask.copy()
            self.missing_mask.flags.writeable = False
        self.statistic = statistic
        self.summary_size = statistic.output_size(self.n_timepoints)

        overrides: Dict[str, ParameterPrior] = dict(priors or {})
        unknown = set(overrides) - set(self.parameter_names)
        if unknown:
            raise ValueError(f"Priors given for unknown parameters {sorted(unknown)} of {self.kind.value}")
        self._prior = JointPrior(
            [overrides.get(name) or self.default_prior(name) for name in self.parameter_names]
        )

    @property
    def has_missing_data(self) -> bool:
        return self.missing_mask is not None

    @property
    def ndim(self) -> int:
        return len(self.parameter_names)

    def prior(self) -> JointPrior:
        return self._prior

    @abstractmethod
    def default_prior(self, name: str) -> ParameterPrior:
        ...

    @abstractmethod
    def _check_domain(self, theta: np.ndarray) -> None:
        """Raise InvalidParameter if ``theta`` is outside the model's domain."""

    @abstractmethod
    def _generate(
        self, theta: np.ndarray, rng: np.random.Generator, length: int, dt: float
    ) -> np.ndarray:
        """Unit-variance, zero-mean paths of shape ``(n_trials, length)``."""

    def check_parameters(self, parameters) -> np.ndarray:
        theta = np.asarray(parameters, dtype=float)
        if theta.shape != (self.ndim,):
            raise InvalidParameter(
                f"{self.kind.value} expects {self.ndim} parameters {self.parameter_names}, got shape {theta.shape}"
            )
        if not np.all(np.isfinite(theta)):
            raise InvalidParameter(f"Non-finite parameters: {theta}")
        self._check_domain(theta)
        return theta

    def simulate(
        self,
        parameters,
        rng: np.random.Generator,
        length: Optional[int] = None,
        dt: Optional[float] = None,
    ) -> np.ndarray:
        """Draw one synthetic realisation with the observed shape and missing pattern."""
        theta = self.check_parameters(parameters)
        length = self.n_timepoints if length is None else length
        dt = self.dt if dt is None else dt
        if self.missing_mask is not None and length != self.n_timepoints:
            raise ShapeMismatch(
                f"Missing-data model is tied to {self.n_timepoints} time points, got {length}"
            )
        series = rescale(self._generate(theta, rng, length, dt), self.data_mean, self.data_std)
        if self.missing_mask is not None:
            series[self.missing_mask] = np.nan
        return series

    def summary(self, series) -> np.ndarray:
        values = as_trials(series)
        if values.shape[1] != self.n_timepoints:
            raise ShapeMismatch(
                f"Series has {values.shape[1]} time points, model is configured for {self.n_timepoints}"
            )
        result = self.statistic.compute(values)
        if result.shape != (self.summary_size,):
            raise ShapeMismatch(f"Summary has shape {result.shape}, expected ({self.summary_size},)")
        return result

    def __repr__(self) -> str:
        missing = ", missing" if self.has_missing_data else ""
        return f"{type(self).__name__}({self.statistic.name}{missing}, prior={self._prior!r})"
