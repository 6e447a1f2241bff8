"""
Bayesian Timescale Inference
============================
Approximate Bayesian Computation for the timescales of a time series.

Key components:
1. ABCEngine: ABC-SMC with adaptive thresholds and importance reweighting
2. PosteriorResult: accepted populations, round diagnostics, summaries
3. Posterior predictive checks

References:
- Toni, T., et al. (2009). Approximate Bayesian computation scheme for
  parameter inference and model selection in dynamical systems
- Beaumont, M. A., et al. (2009). Adaptive approximate Bayesian computation
- Zeraati, R., et al. (2022). A flexible Bayesian framework for unbiased
  estimation of timescales
"""

from bayesint.inference.posterior import (
    Particle,
    Population,
    PosteriorResult,
    RoundDiagnostics,
    RunStatus,
    effective_sample_size,
    weighted_covariance,
    weighted_quantile,
)

from bayesint.inference.abc import (
    ABCEngine,
    EngineState,
    Proposal,
    run_abc,
    validate_config,
)

from bayesint.inference.validation import (
    posterior_predictive_check,
    posterior_predictive_distances,
)

__all__ = [
    "Particle",
    "Population",
    "PosteriorResult",
    "RoundDiagnostics",
    "RunStatus",
    "effective_sample_size",
    "weighted_covariance",
    "weighted_quantile",
    "ABCEngine",
    "EngineState",
    "Proposal",
    "run_abc",
    "validate_config",
    "posterior_predictive_check",
    "posterior_predictive_distances",
]
