"""
Composition root: builds the model, statistic, distance and engine for one
run from a RunConfig and the observed series.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional

from bayesint.config import PriorConfig, RunConfig
from bayesint.data import TimeSeries
from bayesint.inference.abc import ABCEngine
from bayesint.inference.posterior import PosteriorResult, RoundDiagnostics
from bayesint.models.base import Model
from bayesint.models.priors import ParameterPrior
from bayesint.models.timescale import build_model
from bayesint.stats.distances import DistanceMetric, build_distance
from bayesint.stats.summary import build_statistic


@dataclass
class InferenceRun:
    model: Model
    distance: DistanceMetric
    engine: ABCEngine


def build_priors(priors: Dict[str, PriorConfig]) -> Dict[str, ParameterPrior]:
    return {
        name: ParameterPrior(name=name, distribution=p.distribution, params=tuple(p.params))
        for name, p in priors.items()
    }


def build_run(
    cfg: RunConfig,
    observed: TimeSeries,
    on_round: Optional[Callable[[RoundDiagnostics], None]] = None,
) -> InferenceRun:
    if observed.dt != cfg.dt:
        observed = TimeSeries(values=observed.values, dt=cfg.dt)
    statistic = build_statistic(cfg.summary, cfg.dt, observed.n_timepoints)
    model = build_model(cfg.model.kind, observed, statistic, build_priors(cfg.model.priors))
    distance = build_distance(cfg.distance)
    engine = ABCEngine(model, distance, observed, cfg.abc, on_round=on_round)
    return InferenceRun(model=model, distance=distance, engine=engine)


def build_engine(cfg: RunConfig, observed: TimeSeries) -> ABCEngine:
    return build_run(cfg, observed).engine


def run_inference(cfg: RunConfig, observed: TimeSeries) -> PosteriorResult:
    return build_engine(cfg, observed).run()
