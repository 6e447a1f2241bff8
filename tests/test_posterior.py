import numpy as np
import pytest

from bayesint.inference.posterior import (
    Population,
    PosteriorResult,
    RoundDiagnostics,
    RunStatus,
    effective_sample_size,
    empty_population,
    weighted_covariance,
    weighted_quantile,
)


def make_result(parameters, weights=None, names=("tau",)):
    parameters = np.asarray(parameters, dtype=float)
    n = len(parameters)
    weights = np.ones(n) if weights is None else weights
    population = Population(
        parameters=parameters,
        distances=np.linspace(0.0, 1.0, n),
        weights=weights,
        threshold=1.0,
        round_index=1,
    )
    diag = RoundDiagnostics(
        round_index=1,
        threshold=1.0,
        n_accepted=n,
        n_simulations=2 * n,
        acceptance_rate=0.5,
        elapsed_seconds=0.1,
        effective_sample_size=population.effective_sample_size,
    )
    return PosteriorResult(
        parameter_names=names,
        population=population,
        history=(population,),
        rounds=(diag,),
        status=RunStatus.CONVERGED,
    )


def test_weighted_quantile_equal_weights():
    assert weighted_quantile([3.0, 1.0, 2.0], [1, 1, 1], 0.5) == pytest.approx(2.0)


def test_weighted_quantile_follows_weights():
    values = [0.0, 10.0]
    assert weighted_quantile(values, [0.9, 0.1], 0.5) < weighted_quantile(values, [0.1, 0.9], 0.5)


def test_effective_sample_size():
    assert effective_sample_size(np.ones(50)) == pytest.approx(50.0)
    assert effective_sample_size([1.0, 0.0, 0.0]) == pytest.approx(1.0)


def test_weighted_covariance_matches_numpy():
    rng = np.random.default_rng(0)
    params = rng.standard_normal((100, 2))
    weights = rng.random(100)
    expected = np.cov(params.T, aweights=weights, bias=True)
    assert np.allclose(weighted_covariance(params, weights), expected)


def test_population_is_read_only():
    result = make_result([[1.0], [2.0], [3.0]])
    with pytest.raises(ValueError):
        result.samples[0, 0] = 5.0
    with pytest.raises(ValueError):
        result.weights[0] = 1.0
    assert result.weights.sum() == pytest.approx(1.0)


def test_posterior_summaries():
    rng = np.random.default_rng(1)
    samples = rng.normal(5.0, 1.0, size=(4000, 1))
    result = make_result(samples)
    assert result.posterior_mean()["tau"] == pytest.approx(5.0, abs=0.1)
    assert result.posterior_std()["tau"] == pytest.approx(1.0, abs=0.1)
    low, high = result.credible_interval("tau", 0.9)
    assert low == pytest.approx(5.0 - 1.645, abs=0.15)
    assert high == pytest.approx(5.0 + 1.645, abs=0.15)
    assert result.map_estimate()["tau"] == pytest.approx(5.0, abs=0.4)
    assert result.quantile(0.5)["tau"] == pytest.approx(5.0, abs=0.1)
    with pytest.raises(KeyError):
        result.credible_interval("sigma")


def test_map_estimate_multivariate():
    rng = np.random.default_rng(2)
    samples = rng.multivariate_normal([1.0, 10.0], [[0.1, 0.0], [0.0, 1.0]], size=2000)
    result = make_result(samples, names=("tau", "freq"))
    estimate = result.map_estimate()
    assert estimate["tau"] == pytest.approx(1.0, abs=0.3)
    assert estimate["freq"] == pytest.approx(10.0, abs=1.0)


def test_map_estimate_of_collapsed_population():
    result = make_result([[4.0], [4.0], [4.0]])
    assert result.map_estimate() == {"tau": 4.0}


def test_frames():
    result = make_result([[1.0], [2.0], [3.0], [4.0]])
    frame = result.to_frame()
    assert list(frame.columns) == ["tau", "distance", "weight"]
    assert len(frame) == 4
    diagnostics = result.diagnostics_frame()
    assert diagnostics.loc[0, "n_simulations"] == 8
    assert result.thresholds.tolist() == [1.0]
    assert result.complete


def test_resample_uses_weights():
    result = make_result([[1.0], [2.0]], weights=np.array([0.0, 1.0]))
    draws = result.resample(50, np.random.default_rng(3))
    assert np.all(draws == 2.0)


def test_empty_population_accessors_raise():
    population = empty_population(ndim=1, threshold=0.1, round_index=2)
    result = PosteriorResult(
        parameter_names=("tau",),
        population=population,
        history=(population,),
        rounds=(),
        status=RunStatus.FAILED,
        shortfall=10,
    )
    assert not result.complete
    with pytest.raises(ValueError):
        result.posterior_mean()
    summary = result.summary()
    assert summary["status"] == "failed"
    assert "mean" not in summary


def test_particles_view():
    result = make_result([[1.0], [2.0]], weights=np.array([1.0, 3.0]))
    particles = result.population.particles()
    assert [p.weight for p in particles] == [0.25, 0.75]
    assert particles[1].parameters.tolist() == [2.0]


def test_summary_of_small_partial_population():
    population = Population(
        parameters=np.array([[5.0, 60.0, 0.3], [8.0, 40.0, 0.6]]),
        distances=np.array([0.01, 0.02]),
        weights=np.array([0.4, 0.6]),
        threshold=0.05,
        round_index=2,
        complete=False,
    )
    result = PosteriorResult(
        parameter_names=("tau1", "tau2", "coeff"),
        population=population,
        history=(population,),
        rounds=(),
        status=RunStatus.FAILED,
        shortfall=48,
    )
    assert result.map_estimate() == {"tau1": 8.0, "tau2": 40.0, "coeff": 0.6}
    summary = result.summary()
    assert summary["map"] == {"tau1": 8.0, "tau2": 40.0, "coeff": 0.6}
    assert summary["shortfall"] == 48


def test_map_estimate_of_singular_population():
    # Particles on a line: enough of them, but the covariance is rank one.
    line = np.linspace(1.0, 5.0, 10)
    samples = np.column_stack([line, 2.0 * line])
    weights = np.ones(10)
    weights[3] = 5.0
    result = make_result(samples, weights=weights, names=("tau", "freq"))
    assert result.map_estimate() == {"tau": line[3], "freq": 2.0 * line[3]}


def test_summary_reports_unbounded_threshold_as_none():
    result = make_result([[1.0], [2.0], [3.0]])
    population = result.population
    rounds = (
        RoundDiagnostics(1, float("inf"), 3, 3, 1.0, 0.1, 3.0),
        RoundDiagnostics(2, 0.5, 3, 6, 0.5, 0.1, 3.0),
    )
    result = PosteriorResult(("tau",), population, (population, population), rounds, RunStatus.CONVERGED)
    assert result.summary()["thresholds"] == [None, 0.5]
