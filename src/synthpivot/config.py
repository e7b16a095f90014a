# src/synthpivot/config.py
"""
Module: config
Purpose: Typed, immutable simulation parameters and run configuration.
Dependencies: pydantic >= 2

Design notes
------------
- Frozen models: a parameter set is fixed for the lifetime of one run.
- extra="forbid": typos in YAML keys surface as validation errors instead of
  silently falling back to defaults.
- The split point range (1 <= part < pvariates) is owned by the partitioner,
  which raises InvalidPartition; here we only check that `part` is supplied
  exactly for the partitioned kinds.
"""
from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .statistics import PivotKind

SeedPolicy = Literal["sequential", "per_iteration"]
Executor = Literal["thread", "process"]

DEFAULT_ITERATIONS = 10_000
DEFAULT_QUANTILES = (0.05, 0.5, 0.95)

__all__ = [
    "SeedPolicy",
    "Executor",
    "DEFAULT_ITERATIONS",
    "DEFAULT_QUANTILES",
    "SimulationParameters",
    "RunConfig",
]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class SimulationParameters(_Frozen):
    """(kind, nsample, pvariates, iterations, part) for one simulated null distribution."""

    kind: PivotKind
    nsample: int = Field(gt=1, description="Sample size n of the released synthetic data.")
    pvariates: int = Field(ge=1, description="Number of variables p.")
    iterations: int = Field(default=DEFAULT_ITERATIONS, ge=1)
    part: Optional[int] = Field(
        default=None,
        description="Number of variables in the first subset (independence/canonical only).",
    )

    @field_validator("kind", mode="before")
    @classmethod
    def _parse_kind(cls, v: Any) -> PivotKind:
        return PivotKind.parse(v)

    @field_validator("nsample", "pvariates", "iterations", "part", mode="before")
    @classmethod
    def _strict_int(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("expected an integer, got bool")
        return v

    @model_validator(mode="after")
    def _check_shape(self) -> "SimulationParameters":
        if self.nsample <= self.pvariates:
            raise ValueError(
                f"nsample must exceed pvariates (Wishart dof n-1 >= p), got n={self.nsample}, p={self.pvariates}"
            )
        if self.kind.partitioned and self.part is None:
            raise ValueError(f"{self.kind.value} requires 'part'")
        if not self.kind.partitioned and self.part is not None:
            raise ValueError(f"{self.kind.value} does not take 'part' (got {self.part})")
        return self

    @property
    def dof(self) -> int:
        return self.nsample - 1


class RunConfig(_Frozen):
    """One or more simulations sharing seeding and execution settings."""

    runs: List[SimulationParameters] = Field(min_length=1)
    seed: Optional[int] = Field(default=None, ge=0)
    seed_policy: SeedPolicy = "sequential"
    jobs: int = Field(default=1, ge=1)
    executor: Executor = "thread"
    quantiles: List[float] = Field(default_factory=lambda: list(DEFAULT_QUANTILES), min_length=1)

    @field_validator("seed_policy", "executor", mode="before")
    @classmethod
    def _lower(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("quantiles")
    @classmethod
    def _check_quantiles(cls, v: List[float]) -> List[float]:
        for q in v:
            if not (0.0 <= q <= 1.0):
                raise ValueError(f"quantiles must lie in [0, 1], got {q}")
        labels = [round(float(q) * 1000.0) for q in v]
        if len(set(labels)) != len(labels):
            raise ValueError(f"quantiles must be distinct at per-mille resolution, got {v}")
        return v

    @model_validator(mode="after")
    def _check_parallel(self) -> "RunConfig":
        if self.jobs > 1 and self.seed_policy != "per_iteration":
            raise ValueError("jobs > 1 requires seed_policy='per_iteration'")
        return self
