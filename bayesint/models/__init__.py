"""
Timescale Models
================
Generative models whose parameters ABC infers.

Variants (each also runs on series with missing entries):
1. one_timescale: OU process, parameter tau
2. one_timescale_and_osc: OU process plus oscillation, tau/freq/coeff
3. two_timescale: fast and slow OU mixture, tau1/tau2/coeff
"""

from bayesint.models.priors import (
    ParameterPrior,
    JointPrior,
)

from bayesint.models.ou_process import (
    generate_ou_process,
    generate_oscillation,
)

from bayesint.models.base import (
    Model,
    ModelKind,
)

from bayesint.models.timescale import (
    OneTimescaleModel,
    OneTimescaleAndOscModel,
    TwoTimescaleModel,
    build_model,
)

__all__ = [
    "ParameterPrior",
    "JointPrior",
    "generate_ou_process",
    "generate_oscillation",
    "Model",
    "ModelKind",
    "OneTimescaleModel",
    "OneTimescaleAndOscModel",
    "TwoTimescaleModel",
    "build_model",
]
