import numpy as np
import pytest

from bayesint.data import TimeSeries
from bayesint.errors import ShapeMismatch
from bayesint.io.series import load_series, save_series


@pytest.mark.parametrize("suffix", [".csv", ".txt", ".npy"])
def test_series_file_keeps_values_and_gaps(tmp_path, suffix, masked_series):
    path = tmp_path / f"series{suffix}"
    save_series(masked_series, path)
    loaded = load_series(path, dt=1.0)
    assert loaded.values.shape == masked_series.values.shape
    np.testing.assert_array_equal(loaded.mask, masked_series.mask)
    np.testing.assert_allclose(
        loaded.values[~loaded.mask], masked_series.values[~masked_series.mask]
    )


def test_time_series_validation():
    with pytest.raises(ValueError):
        TimeSeries.from_array(np.arange(10.0), dt=0.0)
    with pytest.raises(ValueError):
        TimeSeries.from_array([1.0])
    with pytest.raises(ShapeMismatch):
        TimeSeries.from_array(np.zeros((2, 3, 4)))


def test_time_series_is_read_only(ou_series):
    assert ou_series.n_trials == 1
    assert ou_series.n_timepoints == 300
    assert not ou_series.has_missing_data
    with pytest.raises(ValueError):
        ou_series.values[0, 0] = 1.0
