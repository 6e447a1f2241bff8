"""
Approximate Bayesian Computation
=================================
ABC-SMC (population Monte Carlo) inference of model parameters.

ABC-SMC works by:
1. Sampling a population of N particles from the prior
2. Simulating each particle and summarising the synthetic series
3. Accepting particles whose summary is within epsilon of the observed one
4. Shrinking epsilon to a quantile of the accepted distances
5. Resampling the population by weight, perturbing with a Gaussian kernel
   and reweighting by prior / proposal density (Toni et al. 2009)

Each particle slot of a round is an independent task with its own random
stream, so the accepted population does not depend on how a worker pool
schedules the slots.

References:
- Toni, T., et al. (2009). Approximate Bayesian computation scheme for
  parameter inference and model selection in dynamical systems
- Beaumont, M. A., et al. (2009). Adaptive approximate Bayesian computation
"""

from __future__ import annotations

import contextlib
import logging
import os
import threading
import time
from concurrent.futures import (
    FIRST_COMPLETED,
    Executor,
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    wait,
)
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

import numpy as np
from scipy import special, stats

from bayesint.config import ABCConfig
from bayesint.data import TimeSeries
from bayesint.errors import (
    ConfigError,
    ConvergenceFailure,
    DomainError,
    InvalidParameter,
    ShapeMismatch,
)
from bayesint.inference.posterior import (
    Particle,
    Population,
    PosteriorResult,
    RoundDiagnostics,
    RunStatus,
    effective_sample_size,
    population_from_particles,
    weighted_covariance,
)
from bayesint.models.base import Model
from bayesint.rng import candidate_seed
from bayesint.stats.distances import DistanceMetric

# Candidate-level failures: the candidate is discarded and the slot retries.
CANDIDATE_ERRORS = (InvalidParameter, ShapeMismatch, DomainError)


class EngineState(str, Enum):
    INITIALIZED = "initialized"
    ROUND_RUNNING = "round_running"
    ROUND_ACCEPTED = "round_accepted"
    CONVERGED = "converged"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Proposal:
    """Resample-and-perturb proposal built from the previous round's population."""

    parameters: np.ndarray
    weights: np.ndarray
    covariance: np.ndarray

    @classmethod
    def from_population(cls, population: Population, kernel_scale: float) -> "Proposal":
        cov = kernel_scale * weighted_covariance(population.parameters, population.weights)
        # Keeps the kernel proper when the population has collapsed onto one point.
        jitter = max(1e-10 * np.trace(cov) / cov.shape[0], 1e-12)
        cov = cov + jitter * np.eye(cov.shape[0])
        return cls(
            parameters=np.asarray(population.parameters),
            weights=np.asarray(population.weights),
            covariance=cov,
        )

    def draw(self, rng: np.random.Generator) -> np.ndarray:
        """Perturb a parent chosen by weight."""
        parent = self.parameters[rng.choice(len(self.parameters), p=self.weights)]
        return rng.multivariate_normal(parent, self.covariance)

    def log_density(self, thetas: np.ndarray) -> np.ndarray:
        """Log of ``sum_j w_j K(theta | theta_j)`` for each row of ``thetas``."""
        thetas = np.atleast_2d(thetas)
        m, n, d = thetas.shape[0], self.parameters.shape[0], self.parameters.shape[1]
        kernel = stats.multivariate_normal(mean=np.zeros(d), cov=self.covariance, allow_singular=True)
        diffs = (thetas[:, np.newaxis, :] - self.parameters[np.newaxis, :, :]).reshape(m * n, d)
        log_k = np.reshape(kernel.logpdf(diffs), (m, n))
        return special.logsumexp(log_k, b=self.weights[np.newaxis, :], axis=1)


@dataclass(frozen=True)
class SlotTask:
    """Everything a worker needs to fill one particle slot of a round."""

    model: Model
    distance: DistanceMetric
    observed_summary: np.ndarray
    proposal: Optional[Proposal]
    threshold: float
    max_attempts: int
    seed: int
    round_index: int


@dataclass(frozen=True)
class SlotOutcome:
    slot: int
    particle: Optional[Particle]
    n_attempts: int
    n_simulations: int
    abandoned: bool = False


def fill_slot(
    task: SlotTask, slot: int, stop_event: Optional[threading.Event] = None
) -> SlotOutcome:
    """Propose, simulate and score candidates until one is accepted or attempts run out."""
    rng = np.random.default_rng(candidate_seed(task.seed, task.round_index, slot))
    prior = task.model.prior()
    n_simulations = 0
    for attempt in range(task.max_attempts):
        if stop_event is not None and stop_event.is_set():
            return SlotOutcome(slot, None, attempt, n_simulations, abandoned=True)
        if task.proposal is None:
            theta = prior.sample(rng)
        else:
            theta = task.proposal.draw(rng)
            # An out-of-support perturbation uses up the attempt without a simulation.
            if not prior.in_support(theta):
                continue
        try:
            series = task.model.simulate(theta, rng)
            n_simulations += 1
            summary = task.model.summary(series)
            distance = task.distance.compute(summary, task.observed_summary)
        except CANDIDATE_ERRORS as exc:
            logging.debug("Round %d slot %d: discarded %s (%s)", task.round_index, slot, theta, exc)
            continue
        if distance <= task.threshold:
            return SlotOutcome(slot, Particle(theta, distance, 1.0), attempt + 1, n_simulations)
    return SlotOutcome(slot, None, task.max_attempts, n_simulations)


def validate_config(cfg: ABCConfig) -> None:
    """Reject configurations that cannot run, before any simulation happens."""
    errors: List[str] = []
    if cfg.n_particles < 1:
        errors.append(f"n_particles must be positive, got {cfg.n_particles}")
    if not 0 < cfg.quantile <= 1:
        errors.append(f"quantile must be in (0, 1], got {cfg.quantile}")
    if cfg.kernel_scale <= 0:
        errors.append(f"kernel_scale must be positive, got {cfg.kernel_scale}")
    if cfg.max_attempts < 1:
        errors.append(f"max_attempts must be positive, got {cfg.max_attempts}")
    if cfg.n_rounds is not None and cfg.n_rounds < 1:
        errors.append(f"n_rounds must be positive, got {cfg.n_rounds}")
    if cfg.epsilon_0 is not None and cfg.epsilon_0 < 0:
        errors.append(f"epsilon_0 must be non-negative, got {cfg.epsilon_0}")
    schedule = cfg.threshold_schedule
    if schedule is not None:
        if len(schedule) == 0:
            errors.append("threshold_schedule is empty")
        elif any(eps < 0 for eps in schedule):
            errors.append("threshold_schedule entries must be non-negative")
        elif any(b > a for a, b in zip(schedule, schedule[1:])):
            errors.append("threshold_schedule must be non-increasing")
        if cfg.epsilon_0 is not None:
            errors.append("give either epsilon_0 or threshold_schedule, not both")
        if cfg.n_rounds is not None and cfg.n_rounds > len(schedule):
            errors.append(f"n_rounds={cfg.n_rounds} exceeds the {len(schedule)} scheduled thresholds")
    if cfg.convergence_tolerance is not None and cfg.convergence_tolerance <= 0:
        errors.append(f"convergence_tolerance must be positive, got {cfg.convergence_tolerance}")
    if cfg.min_acceptance_rate is not None and not 0 <= cfg.min_acceptance_rate <= 1:
        errors.append(f"min_acceptance_rate must be in [0, 1], got {cfg.min_acceptance_rate}")
    if cfg.n_workers is not None and cfg.n_workers < 1:
        errors.append(f"n_workers must be positive, got {cfg.n_workers}")
    if cfg.n_rounds is None and schedule is None and cfg.convergence_tolerance is None:
        errors.append("one of n_rounds, threshold_schedule or convergence_tolerance is required")
    if errors:
        raise ConfigError("; ".join(errors))


class ABCEngine:
    """
    Sequential ABC engine.

    Parameters
    ----------
    model : Model
        Supplies the prior, the simulator and the summary statistic.
    distance : DistanceMetric
        Scores simulated summaries against the observed one.
    observed : TimeSeries
        Data to fit. Its summary is computed once here and reused.
    config : ABCConfig
        Sampler settings, validated eagerly.
    on_round : callable, optional
        Called with each completed round's RoundDiagnostics.
    """

    def __init__(
        self,
        model: Model,
        distance: DistanceMetric,
        observed: TimeSeries,
        config: ABCConfig,
        on_round: Optional[Callable[[RoundDiagnostics], None]] = None,
    ) -> None:
        validate_config(config)
        self.model = model
        self.distance = distance
        self.observed = observed
        self.config = config
        self.on_round = on_round
        summary = model.summary(observed.values)
        # Fails now (DomainError) if the observed summary is outside the distance's domain.
        distance.compute(summary, summary)
        summary.flags.writeable = False
        self.observed_summary = summary
        self.state = EngineState.INITIALIZED
        self.result: Optional[PosteriorResult] = None
        self._stop = threading.Event()
        self._history: List[Population] = []
        self._rounds: List[RoundDiagnostics] = []

    def stop(self) -> None:
        """Request cancellation; safe to call from any thread or callback."""
        self._stop.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def _initial_threshold(self) -> float:
        if self.config.threshold_schedule:
            return float(self.config.threshold_schedule[0])
        if self.config.epsilon_0 is not None:
            return float(self.config.epsilon_0)
        return float(np.inf)

    def _executor(self):
        cfg = self.config
        if cfg.executor == "serial":
            return contextlib.nullcontext(None)
        workers = cfg.n_workers or os.cpu_count() or 1
        if cfg.executor == "process":
            return ProcessPoolExecutor(max_workers=workers)
        return ThreadPoolExecutor(max_workers=workers)

    def _run_round(
        self,
        executor: Optional[Executor],
        round_index: int,
        threshold: float,
        proposal: Optional[Proposal],
    ) -> List[SlotOutcome]:
        task = SlotTask(
            model=self.model,
            distance=self.distance,
            observed_summary=self.observed_summary,
            proposal=proposal,
            threshold=threshold,
            max_attempts=self.config.max_attempts,
            seed=self.config.seed,
            round_index=round_index,
        )
        n = self.config.n_particles
        if executor is None:
            return [fill_slot(task, slot, self._stop) for slot in range(n)]

        # Events cannot cross process boundaries; those workers stop at dispatch only.
        stop_event = self._stop if isinstance(executor, ThreadPoolExecutor) else None
        futures: Dict[Future, int] = {
            executor.submit(fill_slot, task, slot, stop_event): slot for slot in range(n)
        }
        outcomes: List[Optional[SlotOutcome]] = [None] * n
        pending = set(futures)
        try:
            while pending:
                done, pending = wait(pending, timeout=0.1, return_when=FIRST_COMPLETED)
                for future in done:
                    slot = futures[future]
                    if future.cancelled():
                        outcomes[slot] = SlotOutcome(slot, None, 0, 0, abandoned=True)
                    else:
                        outcomes[slot] = future.result()
                if self._stop.is_set():
                    for future in pending:
                        future.cancel()
        except BaseException:
            for future in pending:
                future.cancel()
            raise
        return outcomes

    def _importance_weights(
        self, accepted: List[Particle], proposal: Optional[Proposal]
    ) -> Optional[np.ndarray]:
        if not accepted:
            return None
        if proposal is None:
            return np.full(len(accepted), 1.0 / len(accepted))
        thetas = np.vstack([p.parameters for p in accepted])
        prior = self.model.prior()
        log_prior = np.array([prior.log_density(theta) for theta in thetas])
        log_w = log_prior - proposal.log_density(thetas)
        weights = np.exp(log_w - np.max(log_w))
        return weights / weights.sum()

    def _next_threshold(self, round_index: int, threshold: float, population: Population) -> float:
        schedule = self.config.threshold_schedule
        if schedule:
            if round_index < len(schedule):
                return float(schedule[round_index])
            return threshold
        proposed = float(np.quantile(population.distances, self.config.quantile))
        return min(proposed, threshold)

    def _converged(
        self, round_index: int, threshold: float, next_threshold: float, diag: RoundDiagnostics
    ) -> Optional[str]:
        cfg = self.config
        if cfg.n_rounds is not None and round_index >= cfg.n_rounds:
            return f"completed {cfg.n_rounds} rounds"
        if cfg.threshold_schedule and round_index >= len(cfg.threshold_schedule):
            return "threshold schedule exhausted"
        if cfg.min_acceptance_rate is not None and diag.acceptance_rate < cfg.min_acceptance_rate:
            return f"acceptance rate {diag.acceptance_rate:.4f} below {cfg.min_acceptance_rate}"
        if cfg.convergence_tolerance is not None and np.isfinite(threshold):
            change = (threshold - next_threshold) / threshold if threshold > 0 else 0.0
            if change < cfg.convergence_tolerance:
                return f"threshold change {change:.4g} below tolerance {cfg.convergence_tolerance}"
        return None

    def _build_result(self, status: RunStatus, shortfall: int = 0) -> PosteriorResult:
        self.result = PosteriorResult(
            parameter_names=self.model.parameter_names,
            population=self._history[-1],
            history=tuple(self._history),
            rounds=tuple(self._rounds),
            status=status,
            shortfall=shortfall,
        )
        return self.result

    def run(self) -> PosteriorResult:
        """
        Run rounds until convergence.

        Returns
        -------
        PosteriorResult
            ``status`` is ``converged``, or ``cancelled`` if ``stop()`` was
            called; a cancelled mid-round population is marked incomplete.

        Raises
        ------
        ConvergenceFailure
            A round could not accept N particles within ``max_attempts`` per
            slot. The partial result is attached.
        """
        if self.state is not EngineState.INITIALIZED:
            raise RuntimeError(f"Engine has already run (state={self.state.value})")
        cfg = self.config
        n = cfg.n_particles
        threshold = self._initial_threshold()
        proposal: Optional[Proposal] = None
        round_index = 0

        with self._executor() as executor:
            while True:
                round_index += 1
                self.state = EngineState.ROUND_RUNNING
                logging.info("Round %d: threshold=%.6g, %d particles", round_index, threshold, n)
                start = time.perf_counter()
                outcomes = self._run_round(executor, round_index, threshold, proposal)
                elapsed = time.perf_counter() - start

                accepted = [o.particle for o in outcomes if o.particle is not None]
                n_simulations = sum(o.n_simulations for o in outcomes)
                weights = self._importance_weights(accepted, proposal)
                population = population_from_particles(
                    accepted,
                    self.model.ndim,
                    threshold,
                    round_index,
                    complete=len(accepted) == n,
                    weights=weights,
                )
                diag = RoundDiagnostics(
                    round_index=round_index,
                    threshold=threshold,
                    n_accepted=len(accepted),
                    n_simulations=n_simulations,
                    acceptance_rate=len(accepted) / n_simulations if n_simulations else 0.0,
                    elapsed_seconds=elapsed,
                    effective_sample_size=effective_sample_size(weights) if weights is not None else 0.0,
                    complete=len(accepted) == n,
                )
                self._history.append(population)
                self._rounds.append(diag)

                if len(accepted) < n:
                    shortfall = n - len(accepted)
                    if self._stop.is_set():
                        self.state = EngineState.CANCELLED
                        logging.warning(
                            "Round %d cancelled with %d/%d particles accepted", round_index, len(accepted), n
                        )
                        return self._build_result(RunStatus.CANCELLED, shortfall)
                    self.state = EngineState.FAILED
                    result = self._build_result(RunStatus.FAILED, shortfall)
                    logging.error(
                        "Round %d failed: %d of %d particles missing after %d attempts per slot",
                        round_index,
                        shortfall,
                        n,
                        cfg.max_attempts,
                    )
                    raise ConvergenceFailure(
                        f"Round {round_index} accepted {len(accepted)} of {n} particles "
                        f"(threshold {threshold:.6g}, {cfg.max_attempts} attempts per particle)",
                        result=result,
                        shortfall=shortfall,
                        round_index=round_index,
                    )

                self.state = EngineState.ROUND_ACCEPTED
                logging.info(
                    "Round %d done: accepted %d, %d simulations, acceptance rate %.4f, ESS %.1f (%.2fs)",
                    round_index,
                    n,
                    n_simulations,
                    diag.acceptance_rate,
                    diag.effective_sample_size,
                    elapsed,
                )
                if self.on_round is not None:
                    self.on_round(diag)

                next_threshold = self._next_threshold(round_index, threshold, population)
                reason = self._converged(round_index, threshold, next_threshold, diag)
                if reason is not None:
                    self.state = EngineState.CONVERGED
                    logging.info("Converged after %d rounds: %s", round_index, reason)
                    return self._build_result(RunStatus.CONVERGED)
                if self._stop.is_set():
                    self.state = EngineState.CANCELLED
                    logging.warning("Stopped after round %d", round_index)
                    return self._build_result(RunStatus.CANCELLED)
                if next_threshold >= threshold:
                    logging.warning("Round %d: threshold did not decrease (%.6g)", round_index, threshold)

                proposal = Proposal.from_population(population, cfg.kernel_scale)
                threshold = next_threshold


def run_abc(
    model: Model,
    distance: DistanceMetric,
    observed: TimeSeries,
    config: ABCConfig,
) -> PosteriorResult:
    return ABCEngine(model, distance, observed, config).run()
