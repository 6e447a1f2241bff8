"""
Summary Statistics
==================
Reduce a (possibly multi-trial) time series to a fixed-length vector.

Available statistics:
1. ACF: autocorrelation at lags 0..L computed with the FFT
2. Periodogram PSD
3. Welch PSD (segment length, overlap, window)
4. Lomb-Scargle PSD on an explicit frequency grid

Only Lomb-Scargle handles missing entries; the others raise
UnsupportedInput when the series contains NaN.
Multi-trial input ``(n_trials, n_timepoints)`` is reduced per trial and
averaged across trials.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar, Optional, Sequence, Tuple

import numpy as np
from scipy import fft, signal

from bayesint.data import as_trials
from bayesint.errors import ShapeMismatch, UnsupportedInput


class SummaryStatistic(ABC):
    name: ClassVar[str]
    supports_missing: ClassVar[bool] = False

    def compute(self, series) -> np.ndarray:
        values = as_trials(series)
        if not self.supports_missing and np.isnan(values).any():
            raise UnsupportedInput(
                f"{self.name} cannot be computed on a series with missing entries; use lombscargle"
            )
        return self._compute(values)

    @abstractmethod
    def _compute(self, values: np.ndarray) -> np.ndarray:
        ...

    @abstractmethod
    def output_size(self, n_timepoints: int) -> int:
        """Length of the summary vector for a series of ``n_timepoints``."""


class ACFStatistic(SummaryStatistic):
    name = "acf"

    def __init__(self, n_lags: Optional[int] = None, bias_correct: bool = False) -> None:
        if n_lags is not None and n_lags < 0:
            raise ValueError(f"n_lags must be non-negative, got {n_lags}")
        self.n_lags = n_lags
        self.bias_correct = bias_correct

    def _max_lag(self, n_timepoints: int) -> int:
        if self.n_lags is None:
            return n_timepoints - 1
        if self.n_lags >= n_timepoints:
            raise ShapeMismatch(
                f"ACF up to lag {self.n_lags} needs more than {n_timepoints} time points"
            )
        return self.n_lags

    def output_size(self, n_timepoints: int) -> int:
        return self._max_lag(n_timepoints) + 1

    def _compute(self, values: np.ndarray) -> np.ndarray:
        n = values.shape[1]
        max_lag = self._max_lag(n)
        centred = values - values.mean(axis=1, keepdims=True)
        nfft = fft.next_fast_len(2 * n - 1)
        spectrum = np.fft.rfft(centred, nfft, axis=1)
        acov = np.fft.irfft(spectrum * np.conj(spectrum), nfft, axis=1)[:, : max_lag + 1]
        if self.bias_correct:
            acov = acov / (n - np.arange(max_lag + 1))
        else:
            acov = acov / n
        if np.any(acov[:, 0] <= 0):
            raise UnsupportedInput("ACF is undefined for a trial with zero variance")
        return (acov / acov[:, :1]).mean(axis=0)


class _SpectralStatistic(SummaryStatistic):
    def __init__(self, dt: float, freq_limits: Optional[Tuple[float, float]] = None) -> None:
        if dt <= 0:
            raise ValueError(f"dt must be positive, got {dt}")
        if freq_limits is not None and freq_limits[0] > freq_limits[1]:
            raise ValueError(f"Invalid frequency limits {freq_limits}")
        self.dt = dt
        self.freq_limits = freq_limits

    def _band(self, freqs: np.ndarray) -> np.ndarray:
        # Without limits the zero-frequency bin is dropped; it is ~0 after detrending.
        if self.freq_limits is None:
            return freqs > 0
        low, high = self.freq_limits
        return (freqs >= low) & (freqs <= high)

    @abstractmethod
    def _frequencies(self, n_timepoints: int) -> np.ndarray:
        ...

    def frequencies(self, n_timepoints: int) -> np.ndarray:
        freqs = self._frequencies(n_timepoints)
        return freqs[self._band(freqs)]

    def output_size(self, n_timepoints: int) -> int:
        size = int(self._band(self._frequencies(n_timepoints)).sum())
        if size == 0:
            raise ShapeMismatch(f"No frequency bins fall inside {self.freq_limits}")
        return size


class PeriodogramStatistic(_SpectralStatistic):
    name = "periodogram"

    def _frequencies(self, n_timepoints: int) -> np.ndarray:
        return np.fft.rfftfreq(n_timepoints, d=self.dt)

    def _compute(self, values: np.ndarray) -> np.ndarray:
        freqs, power = signal.periodogram(values, fs=1.0 / self.dt, axis=-1)
        return power[:, self._band(freqs)].mean(axis=0)


class WelchStatistic(_SpectralStatistic):
    name = "welch"

    def __init__(
        self,
        dt: float,
        freq_limits: Optional[Tuple[float, float]] = None,
        nperseg: Optional[int] = None,
        noverlap: Optional[int] = None,
        window: str = "hann",
    ) -> None:
        super().__init__(dt, freq_limits)
        if nperseg is not None and nperseg < 2:
            raise ValueError(f"nperseg must be at least 2, got {nperseg}")
        if nperseg is not None and noverlap is not None and noverlap >= nperseg:
            raise ValueError("noverlap must be smaller than nperseg")
        self.nperseg = nperseg
        self.noverlap = noverlap
        self.window = window

    def _segment_length(self, n_timepoints: int) -> int:
        return min(self.nperseg or 256, n_timepoints)

    def _frequencies(self, n_timepoints: int) -> np.ndarray:
        return np.fft.rfftfreq(self._segment_length(n_timepoints), d=self.dt)

    def _compute(self, values: np.ndarray) -> np.ndarray:
        freqs, power = signal.welch(
            values,
            fs=1.0 / self.dt,
            window=self.window,
            nperseg=self._segment_length(values.shape[1]),
            noverlap=self.noverlap,
            axis=-1,
        )
        return power[:, self._band(freqs)].mean(axis=0)


class LombScargleStatistic(SummaryStatistic):
    name = "lombscargle"
    supports_missing = True

    def __init__(self, dt: float, frequencies: Sequence[float]) -> None:
        freqs = np.asarray(frequencies, dtype=float)
        if freqs.ndim != 1 or freqs.size == 0:
            raise ValueError("Lomb-Scargle needs a non-empty 1-D frequency grid")
        if np.any(freqs <= 0):
            raise ValueError("Lomb-Scargle frequencies must be positive")
        self.dt = dt
        self.freqs = freqs
        self._angular = 2 * np.pi * freqs

    @classmethod
    def from_limits(
        cls,
        dt: float,
        n_timepoints: int,
        freq_limits: Optional[Tuple[float, float]] = None,
        n_frequencies: int = 256,
    ) -> "LombScargleStatistic":
        if freq_limits is None:
            freq_limits = (1.0 / (n_timepoints * dt), 1.0 / (2.0 * dt))
        return cls(dt, np.linspace(freq_limits[0], freq_limits[1], n_frequencies))

    def output_size(self, n_timepoints: int) -> int:
        return self.freqs.size

    def _compute(self, values: np.ndarray) -> np.ndarray:
        times = np.arange(values.shape[1]) * self.dt
        power = np.empty((values.shape[0], self.freqs.size))
        for i, trial in enumerate(values):
            observed = ~np.isnan(trial)
            if observed.sum() < 2:
                raise UnsupportedInput("Lomb-Scargle needs at least two observed points per trial")
            y = trial[observed] - trial[observed].mean()
            power[i] = signal.lombscargle(times[observed], y, self._angular)
        return power.mean(axis=0)


def build_statistic(cfg, dt: float, n_timepoints: int) -> SummaryStatistic:
    """Construct the statistic named by a SummaryConfig."""
    if cfg.method == "acf":
        return ACFStatistic(n_lags=cfg.n_lags, bias_correct=cfg.bias_correct)
    elif cfg.method == "periodogram":
        return PeriodogramStatistic(dt, freq_limits=cfg.freq_limits)
    elif cfg.method == "welch":
        return WelchStatistic(
            dt,
            freq_limits=cfg.freq_limits,
            nperseg=cfg.nperseg,
            noverlap=cfg.noverlap,
            window=cfg.window,
        )
    elif cfg.method == "lombscargle":
        if cfg.frequencies:
            return LombScargleStatistic(dt, cfg.frequencies)
        return LombScargleStatistic.from_limits(
            dt, n_timepoints, freq_limits=cfg.freq_limits, n_frequencies=cfg.n_frequencies
        )
    else:
        raise ValueError(f"Unknown summary statistic: {cfg.method}")


def compute_summary(series, cfg, dt: float) -> np.ndarray:
    values = as_trials(series)
    return build_statistic(cfg, dt, values.shape[1]).compute(values)
