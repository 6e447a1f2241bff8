"""
Prior Distributions
===================
Independent per-parameter priors combined into an ordered joint prior.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import numpy as np
from scipy import special

DISTRIBUTIONS = ("uniform", "normal", "beta", "loguniform")


@dataclass(frozen=True)
class ParameterPrior:
    """Prior distribution for a single parameter."""

    name: str
    distribution: str  # "uniform", "normal", "beta", "loguniform"
    params: Tuple[float, float]
    description: str = ""

    def __post_init__(self) -> None:
        if self.distribution not in DISTRIBUTIONS:
            raise ValueError(f"Unknown distribution: {self.distribution}")
        a, b = self.params
        if self.distribution in ("uniform", "loguniform") and not a < b:
            raise ValueError(f"{self.name}: lower bound must be below upper bound, got {self.params}")
        if self.distribution == "loguniform" and a <= 0:
            raise ValueError(f"{self.name}: loguniform bounds must be positive")
        if self.distribution == "normal" and b <= 0:
            raise ValueError(f"{self.name}: normal scale must be positive")
        if self.distribution == "beta" and (a <= 0 or b <= 0):
            raise ValueError(f"{self.name}: beta shape parameters must be positive")

    def sample(self, rng: np.random.Generator, n: int = 1) -> np.ndarray:
        """Sample n values from prior."""
        if self.distribution == "uniform":
            low, high = self.params
            return rng.uniform(low, high, size=n)
        elif self.distribution == "normal":
            mean, std = self.params
            return rng.normal(mean, std, size=n)
        elif self.distribution == "beta":
            alpha, beta = self.params
            return rng.beta(alpha, beta, size=n)
        else:
            log_low, log_high = np.log10(self.params[0]), np.log10(self.params[1])
            return 10 ** rng.uniform(log_low, log_high, size=n)

    def log_prob(self, value: float) -> float:
        """Compute log probability of value under prior."""
        if self.distribution == "uniform":
            low, high = self.params
            if low <= value <= high:
                return -np.log(high - low)
            return -np.inf
        elif self.distribution == "normal":
            mean, std = self.params
            return -0.5 * ((value - mean) / std) ** 2 - np.log(std * np.sqrt(2 * np.pi))
        elif self.distribution == "beta":
            alpha, beta = self.params
            if 0 < value < 1:
                return (
                    (alpha - 1) * np.log(value)
                    + (beta - 1) * np.log(1 - value)
                    - special.betaln(alpha, beta)
                )
            return -np.inf
        else:
            low, high = self.params
            if low <= value <= high:
                return -np.log(value) - np.log(np.log(high / low))
            return -np.inf

    def support(self) -> Tuple[float, float]:
        if self.distribution in ("uniform", "loguniform"):
            return self.params
        elif self.distribution == "beta":
            return (0.0, 1.0)
        return (-np.inf, np.inf)


class JointPrior:
    """Ordered product of independent parameter priors."""

    def __init__(self, priors: Sequence[ParameterPrior]) -> None:
        if len(priors) == 0:
            raise ValueError("A joint prior needs at least one parameter")
        names = [p.name for p in priors]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate parameter names: {names}")
        self.priors: Tuple[ParameterPrior, ...] = tuple(priors)

    @property
    def names(self) -> List[str]:
        return [p.name for p in self.priors]

    @property
    def ndim(self) -> int:
        return len(self.priors)

    def sample(self, rng: np.random.Generator) -> np.ndarray:
        return np.array([float(p.sample(rng, n=1)[0]) for p in self.priors])

    def log_density(self, theta) -> float:
        theta = np.asarray(theta, dtype=float)
        if theta.shape != (self.ndim,):
            raise ValueError(f"Expected {self.ndim} parameters, got shape {theta.shape}")
        total = 0.0
        for prior, value in zip(self.priors, theta):
            total += prior.log_prob(float(value))
            if total == -np.inf:
                break
        return float(total)

    def in_support(self, theta) -> bool:
        return bool(np.isfinite(self.log_density(theta)))

    def as_dict(self) -> Dict[str, ParameterPrior]:
        return {p.name: p for p in self.priors}

    def __eq__(self, other: object) -> bool:
        return isinstance(other, JointPrior) and self.priors == other.priors

    def __repr__(self) -> str:
        inner = ", ".join(f"{p.name}~{p.distribution}{p.params}" for p in self.priors)
        return f"JointPrior({inner})"
