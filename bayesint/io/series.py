from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd

from bayesint.data import TimeSeries


def load_series(path: str | Path, dt: float) -> TimeSeries:
    """Read a series file; csv/txt hold one trial per row, empty cells are missing."""
    path = Path(path)
    if path.suffix == ".npy":
        values = np.load(path)
    else:
        sep = "," if path.suffix == ".csv" else r"\s+"
        frame = pd.read_csv(path, header=None, sep=sep, engine="python")
        values = frame.to_numpy(dtype=float)
    return TimeSeries.from_array(values, dt=dt)


def save_series(series: TimeSeries | np.ndarray, path: str | Path) -> None:
    path = Path(path)
    values = series.values if isinstance(series, TimeSeries) else np.atleast_2d(series)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix == ".npy":
        np.save(path, values)
        return
    if path.suffix == ".csv":
        pd.DataFrame(values).to_csv(path, header=False, index=False, na_rep="")
    else:
        pd.DataFrame(values).to_csv(path, header=False, index=False, sep=" ", na_rep="nan")
