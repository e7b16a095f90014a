# src/synthpivot/results.py
"""
Simulated null distributions and their summaries.

A NullDistribution pairs the simulated values with the parameters and seeding
that produced them. Values are stored read-only; quantiles are what callers
compare observed statistics against.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Sequence, Union

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from .config import DEFAULT_QUANTILES, SimulationParameters
from .statistics import PivotKind

__all__ = ["NullDistribution", "quantile_label", "summarize"]


def quantile_label(q: float) -> str:
    """0.95 -> 'q0950' (per mille, zero padded)."""
    return f"q{int(round(float(q) * 1000.0)):04d}"


@dataclass(frozen=True)
class NullDistribution:
    """Values of one simulated pivotal statistic, in iteration order."""

    params: SimulationParameters
    values: NDArray[np.float64] = field(repr=False)
    seed: Optional[int] = None
    seed_policy: str = "sequential"

    def __post_init__(self) -> None:
        vals = np.array(self.values, dtype=np.float64, copy=True)
        if vals.shape != (self.params.iterations,):
            raise ValueError(
                f"expected {self.params.iterations} values, got array of shape {vals.shape}"
            )
        vals.setflags(write=False)
        object.__setattr__(self, "values", vals)

    @property
    def kind(self) -> PivotKind:
        return self.params.kind

    def __len__(self) -> int:
        return int(self.values.shape[0])

    def quantile(self, q: Union[float, Sequence[float]]) -> Union[float, NDArray[np.float64]]:
        """Empirical quantile(s) (numpy 'linear' method, R type 7)."""
        out = np.quantile(self.values, q)
        return float(out) if np.ndim(out) == 0 else np.asarray(out, dtype=np.float64)

    def summary(self, quantiles: Iterable[float] = DEFAULT_QUANTILES) -> Dict[str, float]:
        v = self.values
        out: Dict[str, float] = {
            "mean": float(np.mean(v)),
            "std": float(np.std(v, ddof=1)) if v.size > 1 else float("nan"),
            "min": float(np.min(v)),
            "max": float(np.max(v)),
        }
        for q in quantiles:
            label = quantile_label(q)
            if label in out:
                raise ValueError(f"quantile {q} collides with another quantile under label {label!r}")
            out[label] = float(np.quantile(v, q))
        return out

    def to_dict(self, quantiles: Iterable[float] = DEFAULT_QUANTILES) -> Dict[str, Any]:
        """JSON-safe description (parameters, seeding, summary); values are not included."""
        return {
            "kind": self.kind.value,
            "label": self.kind.label,
            "nsample": self.params.nsample,
            "pvariates": self.params.pvariates,
            "iterations": self.params.iterations,
            "part": self.params.part,
            "seed": self.seed,
            "seed_policy": self.seed_policy,
            "summary": self.summary(quantiles),
        }


def summarize(
    dists: Iterable[NullDistribution],
    *,
    quantiles: Sequence[float] = DEFAULT_QUANTILES,
) -> pd.DataFrame:
    """One row per distribution: parameters plus summary statistics."""
    rows = []
    for d in dists:
        row: Dict[str, Any] = {
            "kind": d.kind.value,
            "label": d.kind.label,
            "nsample": d.params.nsample,
            "pvariates": d.params.pvariates,
            "part": d.params.part,
            "iterations": d.params.iterations,
            "seed": d.seed,
        }
        row.update(d.summary(quantiles))
        rows.append(row)
    return pd.DataFrame.from_records(rows)
