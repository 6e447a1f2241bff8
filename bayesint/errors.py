from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from bayesint.inference.posterior import PosteriorResult


class BayesINTError(Exception):
    pass


class ConfigError(BayesINTError):
    pass


class InvalidParameter(BayesINTError, ValueError):
    """A parameter vector violates a model's domain constraints."""


class ShapeMismatch(BayesINTError, ValueError):
    """A series or summary vector does not have the configured shape."""


class UnsupportedInput(BayesINTError, ValueError):
    """A statistic was given a series with missing entries it cannot handle."""


class DomainError(BayesINTError, ValueError):
    """A summary entry is outside the domain of the distance (e.g. log of <= 0)."""


class ConvergenceFailure(BayesINTError, RuntimeError):
    """
    Raised when a round cannot fill its population within its attempt limit.

    The partial population and the diagnostics of every round run so far are
    attached as ``result``.
    """

    def __init__(
        self,
        message: str,
        result: Optional["PosteriorResult"] = None,
        shortfall: int = 0,
        round_index: int = 0,
    ) -> None:
        super().__init__(message)
        self.result = result
        self.shortfall = shortfall
        self.round_index = round_index
