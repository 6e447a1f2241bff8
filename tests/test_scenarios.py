"""End-to-end inference runs on synthetic data with known timescales."""

import numpy as np
import pytest

from bayesint.config import ABCConfig, RunConfig, SummaryConfig
from bayesint.errors import ConvergenceFailure, UnsupportedInput
from bayesint.inference.abc import ABCEngine, EngineState
from bayesint.inference.posterior import RunStatus
from bayesint.models import ModelKind, OneTimescaleModel, build_model
from bayesint.pipeline import build_run
from bayesint.stats.distances import LinearDistance, LogarithmicDistance
from bayesint.stats.summary import ACFStatistic, LombScargleStatistic, PeriodogramStatistic

from conftest import make_abc_config, make_ou_series


RECOVERY_TRIALS = 20


@pytest.mark.parametrize("data_seed", [12, 13, 14])
def test_single_timescale_recovery(data_seed):
    # 20 trials of 1000 points: one trial alone barely constrains tau.
    observed = make_ou_series(tau=20.0, n=1000, seed=data_seed, n_trials=RECOVERY_TRIALS)
    model = OneTimescaleModel(observed, ACFStatistic(n_lags=30))
    cfg = ABCConfig(
        n_particles=500,
        n_rounds=5,
        quantile=0.5,
        kernel_scale=2.0,
        max_attempts=1000,
        seed=42,
        executor="thread",
        n_workers=4,
    )
    result = ABCEngine(model, LinearDistance(), observed, cfg).run()

    assert result.status is RunStatus.CONVERGED
    assert len(result.rounds) == 5
    assert abs(result.posterior_mean()["tau"] - 20.0) < 8.0

    widths = []
    for population in result.history:
        low, high = population.credible_interval(0, level=0.9)
        widths.append(high - low)
    for previous, current in zip(widths, widths[1:]):
        assert current < previous
    assert widths[-1] < widths[0] / 10


def test_missing_data_with_lombscargle(masked_series):
    statistic = LombScargleStatistic.from_limits(dt=1.0, n_timepoints=300, n_frequencies=100)
    model = build_model(ModelKind.ONE_TIMESCALE, masked_series, statistic)
    cfg = make_abc_config(n_particles=100, n_rounds=3, seed=3)
    result = ABCEngine(model, LogarithmicDistance(), masked_series, cfg).run()

    assert result.complete
    assert len(result.rounds) == 3
    assert len(result.population) == 100
    assert np.all(result.distances <= result.thresholds[-1])


@pytest.mark.parametrize("statistic", [ACFStatistic(n_lags=10), PeriodogramStatistic(dt=1.0)])
def test_missing_data_rejected_by_complete_data_statistics(statistic, masked_series):
    with pytest.raises(UnsupportedInput):
        build_model(ModelKind.ONE_TIMESCALE, masked_series, statistic)


@pytest.mark.parametrize("method", ["acf", "periodogram"])
def test_missing_data_rejected_when_building_run(method, masked_series):
    cfg = RunConfig(summary=SummaryConfig(method=method, n_lags=10), abc=make_abc_config())
    with pytest.raises(UnsupportedInput):
        build_run(cfg, masked_series)


def test_unreachable_threshold_reports_shortfall(ou_series):
    model = OneTimescaleModel(ou_series, ACFStatistic(n_lags=20))
    cfg = make_abc_config(n_particles=50, max_attempts=1, epsilon_0=1e-12)
    engine = ABCEngine(model, LinearDistance(), ou_series, cfg)

    with pytest.raises(ConvergenceFailure) as info:
        engine.run()

    failure = info.value
    result = failure.result
    assert failure.shortfall > 0
    assert failure.round_index == 1
    assert failure.shortfall == 50 - len(result.population)
    assert result.shortfall == failure.shortfall
    assert result.status is RunStatus.FAILED
    assert not result.complete
    assert len(result.rounds) == 1
    assert result.rounds[0].n_simulations == 50
    assert engine.state is EngineState.FAILED
