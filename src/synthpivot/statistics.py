# src/synthpivot/statistics.py
"""
Pivotal-statistic evaluators.

One evaluator per test family. Each is a pure function of the Wishart draws
handed to it by the simulator (see driver.py for the draw patterns):

    generalized_variance  T1   det(W)
    sphericity            T2   det(Q)^(1/p) / (tr(Q) / p),  Q = W1^T W2
    independence          T3   det(Q) / det(W11 - Q),       Q = W12 W22^{-1} W21
    canonical             T4   det(Q) / det(W11 - Q)        (on the nested draw)

Reference: Klein, M., Moura, R. and Sinha, B. (2021). Multivariate Normal
Inference based on Singly Imputed Synthetic Data under Plug-in Sampling.
Sankhya B 83, 273-287.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict

import numpy as np
from numpy.typing import NDArray

from .errors import SingularBlock
from .partition import regression_part

__all__ = [
    "PivotKind",
    "PARTITIONED_KINDS",
    "generalized_variance",
    "sphericity",
    "independence",
    "canonical",
    "determinant_ratio",
]


class PivotKind(str, Enum):
    """Hypothesis-test families with a simulated null distribution."""
    GENERALIZED_VARIANCE = "generalized_variance"
    SPHERICITY = "sphericity"
    INDEPENDENCE = "independence"
    CANONICAL = "canonical"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def partitioned(self) -> bool:
        return self in PARTITIONED_KINDS

    @classmethod
    def parse(cls, value: Any) -> "PivotKind":
        """Accept the value, the member name, a T1..T4 label, or 'regression'."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "_")
        try:
            return _ALIASES[key]
        except KeyError:
            known = sorted(_ALIASES)
            raise ValueError(f"unknown statistic kind {value!r}; expected one of {known}") from None


_LABELS: Dict[PivotKind, str] = {
    PivotKind.GENERALIZED_VARIANCE: "T1",
    PivotKind.SPHERICITY: "T2",
    PivotKind.INDEPENDENCE: "T3",
    PivotKind.CANONICAL: "T4",
}

_ALIASES: Dict[str, PivotKind] = {k.value: k for k in PivotKind}
_ALIASES.update({lab.lower(): k for k, lab in _LABELS.items()})
_ALIASES["regression"] = PivotKind.CANONICAL

PARTITIONED_KINDS = frozenset({PivotKind.INDEPENDENCE, PivotKind.CANONICAL})


def generalized_variance(w: NDArray[np.float64]) -> float:
    """T1: det(W)."""
    return float(np.linalg.det(w))


def sphericity(w1: NDArray[np.float64], w2: NDArray[np.float64]) -> float:
    """
    T2: ratio of geometric to arithmetic mean of the eigenvalues of Q = W1^T W2.

    Q is a product of two SPD matrices, so its eigenvalues are real and
    positive and the statistic lies in (0, 1]. A non-positive determinant
    means a singular draw and raises SingularBlock.
    """
    q = w1.T @ w2
    p = q.shape[0]
    sign, logdet = np.linalg.slogdet(q)
    if sign <= 0 or not np.isfinite(logdet):
        raise SingularBlock(f"product matrix W1^T W2 is singular (sign={sign}, logdet={logdet})")
    return float(np.exp(logdet / p) / (np.trace(q) / p))


def determinant_ratio(w: NDArray[np.float64], part: int) -> float:
    """det(Q) / det(W11 - Q) with Q = W12 W22^{-1} W21, W split at `part`."""
    w11, q = regression_part(w, part)
    denom = float(np.linalg.det(w11 - q))
    if denom == 0.0 or not np.isfinite(denom):
        raise SingularBlock(f"conditional block W11 - W12 W22^-1 W21 is singular (det={denom})", part=part)
    return float(np.linalg.det(q)) / denom


def independence(w: NDArray[np.float64], part: int) -> float:
    """T3: determinant ratio on a single W_p(n-1, I_p) draw."""
    return determinant_ratio(w, part)


def canonical(omega: NDArray[np.float64], part: int) -> float:
    """T4: determinant ratio on the second stage of the nested draw."""
    return determinant_ratio(omega, part)
