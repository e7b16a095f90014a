# src/synthpivot/observed.py
"""
Observed statistics from a released synthetic data matrix.

These are the counterparts of the simulated pivots: compute the statistic on
the synthetic data V (n x p) and compare it with quantiles of the matching
simulated distribution.

    S*      = sum_i (v_i - v_bar)(v_i - v_bar)^T
    T2      = |S*|^(1/p) / (tr(S*) / p)
    T4      = |(D - D0) S*22 (D - D0)^T| / |S*11.2|,   D = S*12 S*22^{-1}
    T3      = T4 with D0 = 0
"""
from __future__ import annotations

from typing import Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .errors import SingularBlock
from .partition import check_split, partition, regression_part

__all__ = [
    "scatter_matrix",
    "regression_coefficients",
    "sphericity_statistic",
    "canonical_statistic",
    "independence_statistic",
]


def _as_data(data: ArrayLike) -> NDArray[np.float64]:
    v = np.asarray(data, dtype=np.float64)
    if v.ndim != 2:
        raise ValueError(f"data must be a 2-D (n x p) array, got shape {v.shape}")
    n, p = v.shape
    if n <= p:
        raise ValueError(f"need more observations than variables, got n={n}, p={p}")
    if not np.all(np.isfinite(v)):
        raise ValueError("data contains non-finite values")
    return v


def scatter_matrix(data: ArrayLike) -> NDArray[np.float64]:
    """Centered sums of squares and cross products, (n - 1) times the sample covariance."""
    v = _as_data(data)
    centered = v - v.mean(axis=0, keepdims=True)
    s = centered.T @ centered
    return 0.5 * (s + s.T)


def regression_coefficients(sigma: ArrayLike, part: int) -> NDArray[np.float64]:
    """Delta = Sigma12 Sigma22^{-1} for Sigma split at `part` (the usual H0 value Delta0)."""
    s = np.asarray(sigma, dtype=np.float64)
    _, s12, _, s22 = partition(s, part)
    try:
        # Delta = (Sigma22^{-1} Sigma12^T)^T, Sigma22 symmetric
        return np.linalg.solve(s22, s12.T).T
    except np.linalg.LinAlgError as e:
        raise SingularBlock(f"Sigma22 is singular: {e}", part=part) from e


def sphericity_statistic(data: ArrayLike) -> float:
    """Observed T2; compare with sphdist() quantiles."""
    s = scatter_matrix(data)
    p = s.shape[0]
    sign, logdet = np.linalg.slogdet(s)
    if sign <= 0:
        raise SingularBlock("scatter matrix is singular")
    return float(np.exp(logdet / p) / (np.trace(s) / p))


def canonical_statistic(data: ArrayLike, part: int, delta0: Optional[ArrayLike] = None) -> float:
    """
    Observed T4 for H0: Delta = delta0 (a part x (p - part) matrix; zeros when None).

    Compare with canodist(part, n, p) quantiles.
    """
    s = scatter_matrix(data)
    p = s.shape[0]
    k = check_split(p, part)
    _, s12, _, s22 = partition(s, k)
    s11, q = regression_part(s, k)

    d0 = np.zeros((k, p - k)) if delta0 is None else np.asarray(delta0, dtype=np.float64)
    if d0.shape != (k, p - k):
        raise ValueError(f"delta0 must have shape ({k}, {p - k}), got {d0.shape}")

    delta = np.linalg.solve(s22, s12.T).T
    diff = delta - d0
    denom = float(np.linalg.det(s11 - q))
    if denom == 0.0:
        raise SingularBlock("conditional scatter S11.2 is singular", part=k)
    return float(np.linalg.det(diff @ s22 @ diff.T)) / denom


def independence_statistic(data: ArrayLike, part: int) -> float:
    """Observed T3 (first `part` variables independent of the rest); compare with inddist()."""
    return canonical_statistic(data, part, delta0=None)
