"""
Observed time series container.

Series are stored as ``(n_trials, n_timepoints)`` float arrays; missing
entries are ``NaN``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from bayesint.errors import ShapeMismatch


def as_trials(series) -> np.ndarray:
    """Return ``series`` as a 2-D float array with ``NaN`` for masked entries."""
    if isinstance(series, np.ma.MaskedArray):
        values = series.astype(float).filled(np.nan)
    else:
        values = np.asarray(series, dtype=float)
    if values.ndim == 1:
        values = values[np.newaxis, :]
    if values.ndim != 2:
        raise ShapeMismatch(f"Expected a 1-D or 2-D series, got {values.ndim} dimensions")
    return values


@dataclass(frozen=True)
class TimeSeries:
    values: np.ndarray
    dt: float

    def __post_init__(self) -> None:
        if self.dt <= 0:
            raise ValueError(f"Sampling interval must be positive, got {self.dt}")
        values = as_trials(self.values).copy()
        if values.shape[1] < 2:
            raise ShapeMismatch("A time series needs at least two time points")
        if np.isnan(values).all(axis=1).any():
            raise ShapeMismatch("Every trial needs at least one observed entry")
        values.flags.writeable = False
        object.__setattr__(self, "values", values)

    @classmethod
    def from_array(
        cls, series, dt: float = 1.0, mask: Optional[np.ndarray] = None
    ) -> "TimeSeries":
        """Build from raw data; ``mask`` marks missing entries with True."""
        values = as_trials(series).copy()
        if mask is not None:
            mask = np.asarray(mask, dtype=bool)
            if mask.ndim == 1:
                mask = mask[np.newaxis, :]
            if mask.shape != values.shape:
                raise ShapeMismatch(f"Mask shape {mask.shape} does not match series shape {values.shape}")
            values[mask] = np.nan
        return cls(values=values, dt=float(dt))

    @property
    def n_trials(self) -> int:
        return self.values.shape[0]

    @property
    def n_timepoints(self) -> int:
        return self.values.shape[1]

    @property
    def mask(self) -> np.ndarray:
        return np.isnan(self.values)

    @property
    def has_missing_data(self) -> bool:
        return bool(self.mask.any())

    @property
    def mean(self) -> float:
        return float(np.nanmean(self.values))

    @property
    def std(self) -> float:
        return float(np.nanstd(self.values))
