# src/synthpivot/errors.py
"""
Error hierarchy for synthpivot.

Every failure raised by the simulation pipeline derives from SynthPivotError
and additionally from the builtin/numpy class callers would naturally catch
(ValueError for bad inputs, numpy.linalg.LinAlgError for numerical failures).
"""
from __future__ import annotations

from typing import Any, Optional

import numpy as np

__all__ = [
    "SynthPivotError",
    "InvalidPartition",
    "NonPositiveDefiniteScale",
    "SingularBlock",
    "ConfigError",
]


class SynthPivotError(Exception):
    """Base class. `iteration` is set when the error escaped a Monte Carlo iteration."""

    def __init__(self, message: str = "", *, iteration: Optional[int] = None, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.iteration = iteration
        self.context = dict(context)

    def with_iteration(self, iteration: int, detail: str = "") -> "SynthPivotError":
        """Copy of this error (same type) annotated with the failing iteration."""
        where = f"iteration {iteration}"
        if detail:
            where = f"{where} ({detail})"
        return type(self)(f"{where}: {self.message}", iteration=iteration, **self.context)


class InvalidPartition(SynthPivotError, ValueError):
    """Split point or matrix shape does not admit a 2x2 block partition."""


class NonPositiveDefiniteScale(SynthPivotError, np.linalg.LinAlgError):
    """Wishart scale matrix is not finite, symmetric and positive definite."""


class SingularBlock(SynthPivotError, np.linalg.LinAlgError):
    """A matrix that must be inverted (or have non-zero determinant) is singular."""


class ConfigError(SynthPivotError, ValueError):
    """User-fixable configuration error."""
