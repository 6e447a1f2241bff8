"""
Posterior Results
=================
Accepted particle populations, per-round diagnostics and the weighted
summaries (mean, quantiles, credible intervals, MAP) computed from them.

Everything here is read-only once the engine hands it over.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats


def _readonly(values, dtype=float) -> np.ndarray:
    array = np.array(values, dtype=dtype, copy=True)
    array.flags.writeable = False
    return array


def _finite_or_none(value) -> Optional[float]:
    """JSON has no infinity; the unbounded first-round threshold is reported as None."""
    value = float(value)
    return value if np.isfinite(value) else None


def normalize_weights(weights) -> np.ndarray:
    weights = np.asarray(weights, dtype=float)
    total = weights.sum()
    if weights.size == 0:
        return weights
    if not np.isfinite(total) or total <= 0:
        raise ValueError("Weights must have a positive, finite sum")
    return weights / total


def effective_sample_size(weights) -> float:
    """Kish effective sample size ``1 / sum(w^2)`` of normalised weights."""
    weights = normalize_weights(weights)
    if weights.size == 0:
        return 0.0
    return float(1.0 / np.sum(weights**2))


def weighted_covariance(parameters: np.ndarray, weights) -> np.ndarray:
    parameters = np.asarray(parameters, dtype=float)
    weights = normalize_weights(weights)
    mean = weights @ parameters
    centred = parameters - mean
    return np.atleast_2d((centred * weights[:, np.newaxis]).T @ centred)


def weighted_quantile(values, weights, q):
    """
    Quantile of a weighted sample.

    Each sample sits at the midpoint of its cumulative weight step, and the
    quantile is linearly interpolated between them. With equal weights this
    reduces to the Hazen plotting position.
    """
    values = np.asarray(values, dtype=float)
    weights = normalize_weights(weights)
    if values.size == 0:
        raise ValueError("Cannot take a quantile of an empty sample")
    order = np.argsort(values, kind="stable")
    sorted_values = values[order]
    sorted_weights = weights[order]
    cdf = np.cumsum(sorted_weights) - 0.5 * sorted_weights
    return np.interp(q, cdf, sorted_values)


@dataclass(frozen=True)
class Particle:
    parameters: np.ndarray
    distance: float
    weight: float


@dataclass(frozen=True)
class Population:
    """The accepted particles of one round."""

    parameters: np.ndarray
    distances: np.ndarray
    weights: np.ndarray
    threshold: float
    round_index: int
    complete: bool = True

    def __post_init__(self) -> None:
        parameters = np.array(self.parameters, dtype=float)
        if parameters.ndim == 1:
            parameters = parameters.reshape(-1, 1) if parameters.size else parameters.reshape(0, 0)
        object.__setattr__(self, "parameters", _readonly(parameters))
        object.__setattr__(self, "distances", _readonly(self.distances))
        object.__setattr__(self, "weights", _readonly(normalize_weights(self.weights)))
        if not (len(self.parameters) == len(self.distances) == len(self.weights)):
            raise ValueError("Parameters, distances and weights must have the same length")

    def __len__(self) -> int:
        return len(self.distances)

    @property
    def size(self) -> int:
        return len(self)

    @property
    def effective_sample_size(self) -> float:
        return effective_sample_size(self.weights)

    def particles(self) -> List[Particle]:
        return [
            Particle(p, float(d), float(w))
            for p, d, w in zip(self.parameters, self.distances, self.weights)
        ]

    def _require_particles(self) -> None:
        if len(self) == 0:
            raise ValueError(f"Round {self.round_index} population is empty")

    def mean(self) -> np.ndarray:
        self._require_particles()
        return self.weights @ self.parameters

    def covariance(self) -> np.ndarray:
        self._require_particles()
        return weighted_covariance(self.parameters, self.weights)

    def quantile(self, q) -> np.ndarray:
        self._require_particles()
        return np.array(
            [weighted_quantile(column, self.weights, q) for column in self.parameters.T]
        )

    def credible_interval(self, index: int, level: float = 0.95) -> Tuple[float, float]:
        self._require_particles()
        if not 0 < level < 1:
            raise ValueError(f"Credible level must be in (0, 1), got {level}")
        alpha = (1 - level) / 2
        lower, upper = weighted_quantile(self.parameters[:, index], self.weights, [alpha, 1 - alpha])
        return float(lower), float(upper)


@dataclass(frozen=True)
class RoundDiagnostics:
    round_index: int
    threshold: float
    n_accepted: int
    n_simulations: int
    acceptance_rate: float
    elapsed_seconds: float
    effective_sample_size: float
    complete: bool = True


class RunStatus(str, Enum):
    CONVERGED = "converged"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PosteriorResult:
    """Results from an ABC-SMC run."""

    parameter_names: Tuple[str, ...]
    population: Population
    history: Tuple[Population, ...]
    rounds: Tuple[RoundDiagnostics, ...]
    status: RunStatus
    shortfall: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameter_names", tuple(self.parameter_names))
        object.__setattr__(self, "history", tuple(self.history))
        object.__setattr__(self, "rounds", tuple(self.rounds))

    @property
    def complete(self) -> bool:
        return self.status is RunStatus.CONVERGED and self.population.complete

    @property
    def samples(self) -> np.ndarray:
        return self.population.parameters

    @property
    def weights(self) -> np.ndarray:
        return self.population.weights

    @property
    def distances(self) -> np.ndarray:
        return self.population.distances

    @property
    def thresholds(self) -> np.ndarray:
        return _readonly([r.threshold for r in self.rounds])

    @property
    def n_simulations(self) -> int:
        return int(sum(r.n_simulations for r in self.rounds))

    @property
    def effective_sample_size(self) -> float:
        return self.population.effective_sample_size

    def _index(self, param_name: str) -> int:
        try:
            return self.parameter_names.index(param_name)
        except ValueError:
            raise KeyError(f"Unknown parameter {param_name!r}; have {self.parameter_names}") from None

    def _by_name(self, values: Sequence[float]) -> Dict[str, float]:
        return {name: float(v) for name, v in zip(self.parameter_names, values)}

    def posterior_mean(self) -> Dict[str, float]:
        """Compute weighted posterior mean."""
        return self._by_name(self.population.mean())

    def posterior_std(self) -> Dict[str, float]:
        """Compute weighted posterior standard deviation."""
        return self._by_name(np.sqrt(np.diag(self.population.covariance())))

    def quantile(self, q: float) -> Dict[str, float]:
        return self._by_name(self.population.quantile(q))

    def credible_interval(self, param_name: str, level: float = 0.95) -> Tuple[float, float]:
        """Equal-tailed weighted credible interval for a parameter."""
        return self.population.credible_interval(self._index(param_name), level)

    def credible_intervals(self, level: float = 0.95) -> Dict[str, Tuple[float, float]]:
        return {name: self.credible_interval(name, level) for name in self.parameter_names}

    def map_estimate(self, grid_size: int = 1000) -> Dict[str, float]:
        """
        Maximum of a weighted Gaussian KDE of the posterior.

        One-parameter posteriors are evaluated on a regular grid spanning the
        particles; higher-dimensional ones at the particle locations. A
        population too small or too degenerate for a KDE (no more particles
        or effective samples than parameters, or a singular covariance)
        reports its highest-weight particle instead.
        """
        population = self.population
        population._require_particles()
        n, ndim = population.parameters.shape
        if (
            n <= ndim
            or population.effective_sample_size <= ndim
            or np.linalg.matrix_rank(population.covariance()) < ndim
        ):
            return self._by_name(population.parameters[np.argmax(population.weights)])
        kde = stats.gaussian_kde(population.parameters.T, weights=population.weights)
        if population.parameters.shape[1] == 1:
            column = population.parameters[:, 0]
            grid = np.linspace(column.min(), column.max(), grid_size)
            return self._by_name([grid[np.argmax(kde(grid))]])
        density = kde(population.parameters.T)
        return self._by_name(population.parameters[np.argmax(density)])

    def resample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        """Draw ``n`` parameter vectors from the weighted population."""
        self.population._require_particles()
        idx = rng.choice(len(self.population), size=n, p=self.weights)
        return self.samples[idx]

    def to_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame(np.asarray(self.samples), columns=list(self.parameter_names))
        frame["distance"] = np.asarray(self.distances)
        frame["weight"] = np.asarray(self.weights)
        return frame

    def diagnostics_frame(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(r) for r in self.rounds])

    def summary(self, level: float = 0.95) -> Dict[str, object]:
        out: Dict[str, object] = {
            "status": self.status.value,
            "complete": self.complete,
            "shortfall": self.shortfall,
            "n_rounds": len(self.rounds),
            "n_simulations": self.n_simulations,
            "thresholds": [_finite_or_none(t) for t in self.thresholds],
        }
        if len(self.population) > 0:
            out["mean"] = self.posterior_mean()
            out["std"] = self.posterior_std()
            out["credible_interval"] = {
                name: list(ci) for name, ci in self.credible_intervals(level).items()
            }
            out["map"] = self.map_estimate()
            out["effective_sample_size"] = self.effective_sample_size
        return out


def empty_population(ndim: int, threshold: float, round_index: int) -> Population:
    return Population(
        parameters=np.empty((0, ndim)),
        distances=np.empty(0),
        weights=np.empty(0),
        threshold=threshold,
        round_index=round_index,
        complete=False,
    )


def population_from_particles(
    particles: Sequence[Particle],
    ndim: int,
    threshold: float,
    round_index: int,
    complete: bool = True,
    weights: Optional[np.ndarray] = None,
) -> Population:
    if len(particles) == 0:
        return empty_population(ndim, threshold, round_index)
    if weights is None:
        weights = np.array([p.weight for p in particles])
    return Population(
        parameters=np.vstack([p.parameters for p in particles]),
        distances=np.array([p.distance for p in particles]),
        weights=weights,
        threshold=threshold,
        round_index=round_index,
        complete=complete,
    )
