from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, ValidationError

from bayesint.errors import ConfigError
from bayesint.models.base import ModelKind


class PriorConfig(BaseModel):
    distribution: Literal["uniform", "normal", "beta", "loguniform"]
    params: Tuple[float, float]


class ModelConfig(BaseModel):
    kind: ModelKind = ModelKind.ONE_TIMESCALE
    # Overrides of the default prior, keyed by parameter name.
    priors: Dict[str, PriorConfig] = Field(default_factory=dict)


class SummaryConfig(BaseModel):
    method: Literal["acf", "periodogram", "welch", "lombscargle"] = "acf"
    n_lags: Optional[int] = None
    bias_correct: bool = False
    freq_limits: Optional[Tuple[float, float]] = None
    window: str = "hann"
    nperseg: Optional[int] = None
    noverlap: Optional[int] = None
    frequencies: Optional[List[float]] = None
    n_frequencies: int = 256


class DistanceConfig(BaseModel):
    method: Literal["linear", "logarithmic"] = "linear"
    norm: Literal["mse", "mae", "euclidean"] = "mse"


class ABCConfig(BaseModel):
    """Configuration for the ABC-SMC engine.

    The sampler settings have no defaults; optional fields left as ``None``
    switch the corresponding feature off.
    """

    n_particles: int
    quantile: float
    kernel_scale: float
    max_attempts: int
    seed: int

    n_rounds: Optional[int] = None
    epsilon_0: Optional[float] = None
    threshold_schedule: Optional[List[float]] = None
    convergence_tolerance: Optional[float] = None
    min_acceptance_rate: Optional[float] = None

    n_workers: Optional[int] = None
    executor: Literal["thread", "process", "serial"] = "thread"


class RunConfig(BaseModel):
    dt: float = 1.0
    model: ModelConfig = ModelConfig()
    summary: SummaryConfig = SummaryConfig()
    distance: DistanceConfig = DistanceConfig()
    abc: ABCConfig


def deep_merge(base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: str | Path) -> RunConfig:
    path = Path(path)
    data = yaml.safe_load(path.read_text()) or {}
    base_path = data.get("base")
    if base_path:
        base_data = yaml.safe_load((path.parent / base_path).read_text()) or {}
        data = deep_merge(base_data, data)
        data.pop("base", None)
    try:
        return RunConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc


def dump_config(cfg: RunConfig, path: str | Path) -> None:
    path = Path(path)
    path.write_text(yaml.safe_dump(cfg.model_dump(mode="json"), sort_keys=False))
