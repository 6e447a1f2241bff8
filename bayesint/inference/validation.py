"""
Validation Module
==================
Posterior predictive checks for a fitted timescale model.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import numpy as np

from bayesint.errors import DomainError, InvalidParameter, ShapeMismatch
from bayesint.inference.posterior import PosteriorResult
from bayesint.models.base import Model
from bayesint.stats.distances import DistanceMetric


def posterior_predictive_distances(
    result: PosteriorResult,
    model: Model,
    distance: DistanceMetric,
    observed_summary: np.ndarray,
    n_simulations: int = 100,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Distances to the observed summary of series simulated from posterior draws."""
    if rng is None:
        rng = np.random.default_rng()
    if len(result.population) == 0:
        return np.empty(0)

    distances = []
    for theta in result.resample(n_simulations, rng):
        try:
            summary = model.summary(model.simulate(theta, rng))
            distances.append(distance.compute(summary, observed_summary))
        except (InvalidParameter, ShapeMismatch, DomainError) as exc:
            logging.debug("Posterior predictive draw %s skipped: %s", theta, exc)
            continue
    return np.array(distances)


def posterior_predictive_check(
    result: PosteriorResult,
    model: Model,
    distance: DistanceMetric,
    observed_summary: np.ndarray,
    n_simulations: int = 100,
    rng: Optional[np.random.Generator] = None,
) -> Dict[str, float]:
    """
    Perform a posterior predictive check.

    Simulates from the weighted posterior and reports how far the synthetic
    summaries fall from the observed one. A well fitted model keeps most
    predictive distances within the final acceptance threshold.
    """
    distances = posterior_predictive_distances(
        result, model, distance, observed_summary, n_simulations, rng
    )
    if distances.size == 0:
        return {"n_simulations": 0}

    final_threshold = float(result.thresholds[-1]) if len(result.rounds) else float("inf")
    return {
        "n_simulations": int(distances.size),
        "mean_distance": float(np.mean(distances)),
        "std_distance": float(np.std(distances)),
        "median_distance": float(np.median(distances)),
        "q05_distance": float(np.percentile(distances, 5)),
        "q95_distance": float(np.percentile(distances, 95)),
        "final_threshold": final_threshold if np.isfinite(final_threshold) else None,
        "fraction_within_threshold": float(np.mean(distances <= final_threshold)),
    }
