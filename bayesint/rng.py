from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class RNGManager:
    """Derives independent generators from one root seed."""

    seed: int

    def __post_init__(self) -> None:
        self.numpy = np.random.default_rng(self.seed)

    def stream(self, name: str) -> np.random.Generator:
        """Named auxiliary stream (e.g. posterior predictive checks)."""
        key = [ord(c) for c in name]
        return np.random.default_rng(np.random.SeedSequence([self.seed, *key]))


def candidate_seed(seed: int, round_index: int, slot: int) -> np.random.SeedSequence:
    """Seed of one particle slot.

    Keyed by ``(seed, round_index, slot)`` so results do not depend on the
    order in which a worker pool executes the slots.
    """
    return np.random.SeedSequence([seed, round_index, slot])
