from __future__ import annotations

from typing import ClassVar

import numpy as np

from bayesint.errors import DomainError, ShapeMismatch

NORMS = ("mse", "mae", "euclidean")


def _reduce(diff: np.ndarray, norm: str) -> float:
    if norm == "mse":
        return float(np.mean(diff**2))
    elif norm == "mae":
        return float(np.mean(np.abs(diff)))
    elif norm == "euclidean":
        return float(np.sqrt(np.sum(diff**2)))
    raise ValueError(f"Unknown norm: {norm}")


class DistanceMetric:
    name: ClassVar[str]

    def __init__(self, norm: str = "mse") -> None:
        if norm not in NORMS:
            raise ValueError(f"Unknown norm: {norm} (expected one of {NORMS})")
        self.norm = norm

    def _transform(self, summary: np.ndarray) -> np.ndarray:
        return summary

    def compute(self, summary_a, summary_b) -> float:
        a = np.asarray(summary_a, dtype=float)
        b = np.asarray(summary_b, dtype=float)
        if a.shape != b.shape:
            raise ShapeMismatch(f"Summary shapes differ: {a.shape} vs {b.shape}")
        # |x - y| keeps the result exactly symmetric in floating point.
        return _reduce(np.abs(self._transform(a) - self._transform(b)), self.norm)

    __call__ = compute

    def __repr__(self) -> str:
        return f"{type(self).__name__}(norm={self.norm!r})"


class LinearDistance(DistanceMetric):
    name = "linear"


class LogarithmicDistance(DistanceMetric):
    """Distance between ``log10`` of strictly positive summaries (e.g. PSDs)."""

    name = "logarithmic"

    def _transform(self, summary: np.ndarray) -> np.ndarray:
        if np.any(~(summary > 0)):
            raise DomainError("Logarithmic distance requires strictly positive summaries")
        return np.log10(summary)


def linear_distance(summary_a, summary_b, norm: str = "mse") -> float:
    return LinearDistance(norm).compute(summary_a, summary_b)


def logarithmic_distance(summary_a, summary_b, norm: str = "mse") -> float:
    return LogarithmicDistance(norm).compute(summary_a, summary_b)


def build_distance(cfg) -> DistanceMetric:
    if cfg.method == "linear":
        return LinearDistance(cfg.norm)
    elif cfg.method == "logarithmic":
        return LogarithmicDistance(cfg.norm)
    raise ValueError(f"Unknown distance metric: {cfg.method}")
