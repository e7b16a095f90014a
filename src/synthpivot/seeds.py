# src/synthpivot/seeds.py
from __future__ import annotations

import os
from typing import Optional

import numpy as np

from .errors import ConfigError

SEED_ENV_VAR = "SYNTHPIVOT_SEED"


def resolve_seed(seed: Optional[int]) -> int:
    """Explicit seed, else $SYNTHPIVOT_SEED, else fresh OS entropy; returns the resolved seed."""
    if seed is not None:
        if isinstance(seed, bool) or int(seed) != seed or seed < 0:
            raise ConfigError(f"seed must be an int >= 0, got {seed!r}")
        return int(seed)
    env = os.environ.get(SEED_ENV_VAR, "").strip()
    if env:
        try:
            s = int(env)
        except ValueError as e:
            raise ConfigError(f"{SEED_ENV_VAR} must be an integer, got {env!r}") from e
        if s < 0:
            raise ConfigError(f"{SEED_ENV_VAR} must be >= 0, got {s}")
        return s
    # 63 bits keep the seed a plain non-negative int in JSON and YAML
    return int(np.random.SeedSequence().entropy) & ((1 << 63) - 1)


def rng_for_iteration(seed: int, iteration: int) -> np.random.Generator:
    """
    Stable per-iteration RNG keyed by (seed, iteration).

    Independent of execution order and worker count, so per-iteration runs are
    reproducible under any parallel schedule.
    """
    if not all(isinstance(x, (int, np.integer)) and not isinstance(x, bool) for x in (seed, iteration)):
        raise TypeError("seed/iteration must both be ints.")
    ss = np.random.SeedSequence([int(seed), int(iteration)])
    return np.random.default_rng(ss)
