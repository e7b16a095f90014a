# src/synthpivot/partition.py
"""
Module: partition
Purpose: 2x2 block partitioning of (scatter) matrices and the regression part
         Q = M12 M22^{-1} M21 shared by the independence and canonical pivots.
Dependencies: numpy, scipy.linalg

Notes
-----
Block names follow the usual convention for a matrix split at row/column k:

    M = [ M11  M12 ]     M11: k x k          M12: k x (p - k)
        [ M21  M22 ]     M21: (p - k) x k    M22: (p - k) x (p - k)

All blocks are returned as fresh arrays; callers may mutate them freely.
"""
from __future__ import annotations

import warnings
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray
from scipy import linalg as sla

from .errors import InvalidPartition, SingularBlock

Blocks = Tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]

__all__ = ["Blocks", "check_split", "partition", "assemble", "regression_part"]


def check_split(dim: int, k: int, *, name: str = "part") -> int:
    """Validate a split point for a dimension of size `dim`; returns it as int."""
    if isinstance(k, bool) or not isinstance(k, (int, np.integer)):
        raise InvalidPartition(f"{name} must be an integer, got {k!r}", dim=dim, k=k)
    if isinstance(dim, bool) or not isinstance(dim, (int, np.integer)) or dim < 2:
        raise InvalidPartition(f"cannot split a dimension of size {dim!r}; need at least 2", dim=dim, k=k)
    if not (1 <= int(k) < int(dim)):
        raise InvalidPartition(f"{name} must satisfy 1 <= {name} < {dim}, got {k}", dim=dim, k=k)
    return int(k)


def partition(M: NDArray[np.float64], k_rows: int, k_cols: Optional[int] = None) -> Blocks:
    """
    Split `M` into (M11, M12, M21, M22) at row `k_rows` and column `k_cols`.

    `k_cols` defaults to `k_rows` (the square, symmetric use case).
    Raises InvalidPartition for non-2-D input, matrices smaller than 2x2 or
    out-of-range split points.
    """
    arr = np.asarray(M, dtype=np.float64)
    if arr.ndim != 2:
        raise InvalidPartition(f"expected a 2-D matrix, got shape {arr.shape}")
    n_rows, n_cols = arr.shape
    if n_rows < 2 or n_cols < 2:
        raise InvalidPartition(f"matrix must be at least 2x2 to partition, got {n_rows}x{n_cols}")
    if k_cols is None:
        k_cols = k_rows
    r = check_split(n_rows, k_rows, name="k_rows")
    c = check_split(n_cols, k_cols, name="k_cols")

    m11 = arr[:r, :c].copy()
    m12 = arr[:r, c:].copy()
    m21 = arr[r:, :c].copy()
    m22 = arr[r:, c:].copy()
    return m11, m12, m21, m22


def assemble(m11: NDArray[np.float64], m12: NDArray[np.float64],
             m21: NDArray[np.float64], m22: NDArray[np.float64]) -> NDArray[np.float64]:
    """Inverse of partition()."""
    return np.block([[m11, m12], [m21, m22]])


def regression_part(M: NDArray[np.float64], part: int) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Return (M11, Q) with Q = M12 M22^{-1} M21 for `M` split at `part`.

    M22^{-1} M21 is obtained from a Cholesky solve instead of an explicit
    inverse. A singular, non positive definite or badly conditioned M22
    raises SingularBlock.
    """
    m11, m12, m21, m22 = partition(M, part)
    with warnings.catch_warnings():
        warnings.simplefilter("error", sla.LinAlgWarning)
        try:
            x = sla.solve(m22, m21, assume_a="pos", check_finite=True)
        except (np.linalg.LinAlgError, sla.LinAlgWarning, ValueError) as e:
            raise SingularBlock(
                f"M22 block ({m22.shape[0]}x{m22.shape[1]}) cannot be inverted: {e}",
                part=part,
            ) from e
    return m11, m12 @ x
