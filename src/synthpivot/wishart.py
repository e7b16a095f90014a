# src/synthpivot/wishart.py
"""
Random Wishart source.

Draws W ~ Wishart_p(dof, scale) with the Bartlett decomposition:

    L  lower triangular, L[i, j] ~ N(0, 1) for i > j,
                         L[i, i] = sqrt(chi2(dof - i))   (0-based i)
    C  lower Cholesky factor of scale
    W  = C L L^T C^T

The source is stateless: randomness comes only from the Generator passed in,
so nested draws (a scale built from an earlier draw) are plain sequential
calls.
"""
from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray
from scipy import linalg as sla

from .errors import NonPositiveDefiniteScale

__all__ = ["scale_cholesky", "draw_wishart"]

_SYMMETRY_RTOL = 1e-10


def scale_cholesky(scale: NDArray[np.float64]) -> NDArray[np.float64]:
    """Lower Cholesky factor of a Wishart scale matrix; NonPositiveDefiniteScale if there is none."""
    s = np.asarray(scale, dtype=np.float64)
    if s.ndim != 2 or s.shape[0] != s.shape[1] or s.shape[0] == 0:
        raise NonPositiveDefiniteScale(f"scale must be a non-empty square matrix, got shape {s.shape}")
    if not np.all(np.isfinite(s)):
        raise NonPositiveDefiniteScale("scale contains non-finite entries")
    tol = _SYMMETRY_RTOL * max(1.0, float(np.max(np.abs(s))))
    if not np.allclose(s, s.T, rtol=0.0, atol=tol):
        raise NonPositiveDefiniteScale("scale is not symmetric")
    try:
        return sla.cholesky(s, lower=True, check_finite=False)
    except np.linalg.LinAlgError as e:
        raise NonPositiveDefiniteScale(f"scale is not positive definite: {e}") from e


def draw_wishart(
    count: int,
    dof: float,
    scale: NDArray[np.float64],
    rng: np.random.Generator,
) -> NDArray[np.float64]:
    """
    Draw `count` independent Wishart_p(dof, scale) matrices.

    Returns an array of shape (count, p, p); each slice is exactly symmetric.
    Requires dof > p - 1 (every Bartlett chi-square needs positive degrees of
    freedom); callers wanting almost-sure invertibility use dof >= p.
    """
    if not isinstance(rng, np.random.Generator):
        raise TypeError(f"rng must be a numpy.random.Generator, got {type(rng).__name__}")
    if isinstance(count, bool) or not isinstance(count, (int, np.integer)) or count < 1:
        raise ValueError(f"count must be a positive int, got {count!r}")

    chol = scale_cholesky(scale)
    p = chol.shape[0]

    dof_f = float(dof)
    if not math.isfinite(dof_f) or dof_f <= p - 1:
        raise ValueError(f"dof must be finite and > p - 1 = {p - 1}, got {dof!r}")

    n = int(count)
    bartlett = np.zeros((n, p, p), dtype=np.float64)
    rows, cols = np.tril_indices(p, k=-1)
    if rows.size:
        bartlett[:, rows, cols] = rng.standard_normal((n, rows.size))
    diag = np.arange(p)
    bartlett[:, diag, diag] = np.sqrt(rng.chisquare(dof_f - diag, size=(n, p)))

    factor = chol @ bartlett
    draws = factor @ np.swapaxes(factor, -1, -2)
    return 0.5 * (draws + np.swapaxes(draws, -1, -2))
