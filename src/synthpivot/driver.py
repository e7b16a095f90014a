# src/synthpivot/driver.py
"""
Distribution simulator (driver).

For each iteration: draw the Wishart matrices required by the test family,
hand them to the matching evaluator, and store the scalar at the iteration's
index. Public entry points:

    gvdist(nsample, pvariates, iterations)         T1 generalized variance
    sphdist(nsample, pvariates, iterations)        T2 sphericity
    inddist(part, nsample, pvariates, iterations)  T3 independence of two subsets
    canodist(part, nsample, pvariates, iterations) T4 regression / canonical

Seeding
-------
sequential     one Generator shared by all iterations in order (default).
               Reproducible for a fixed seed; single worker only.
per_iteration  iteration i draws from SeedSequence([seed, i]). Output is
               bit-identical for any `jobs`/`executor`, so this is the policy
               to use with parallel execution.

Failures are never retried: the first failing iteration aborts the run and
its error is re-raised with the iteration index attached.
"""
from __future__ import annotations

import logging
import time
from typing import Any, List, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from .config import (
    DEFAULT_ITERATIONS,
    RunConfig,
    SimulationParameters,
)
from .errors import ConfigError, SynthPivotError
from .partition import check_split
from .results import NullDistribution
from .seeds import resolve_seed, rng_for_iteration
from .statistics import PivotKind, canonical, generalized_variance, independence, sphericity
from .wishart import draw_wishart

LOG = logging.getLogger(__name__)

_SEED_POLICIES = ("sequential", "per_iteration")
_EXECUTORS = ("thread", "process")

__all__ = [
    "draw_statistic",
    "simulate",
    "gvdist",
    "sphdist",
    "inddist",
    "canodist",
    "run",
    "run_config",
]


def draw_statistic(
    kind: PivotKind,
    rng: np.random.Generator,
    nsample: int,
    pvariates: int,
    part: Optional[int] = None,
) -> float:
    """One Monte Carlo iteration: the draw pattern of `kind` followed by its evaluator."""
    dof = nsample - 1
    eye = np.eye(pvariates)

    if kind is PivotKind.GENERALIZED_VARIANCE:
        w = draw_wishart(1, dof, eye / dof, rng)[0]
        return generalized_variance(w)

    if kind is PivotKind.SPHERICITY:
        w1 = draw_wishart(1, dof, eye / dof, rng)[0]
        w2 = draw_wishart(1, dof, eye, rng)[0]
        return sphericity(w1, w2)

    if kind is PivotKind.INDEPENDENCE:
        w = draw_wishart(1, dof, eye, rng)[0]
        return independence(w, part)  # type: ignore[arg-type]

    if kind is PivotKind.CANONICAL:
        # Nested draw: the second scale is the realized first draw.
        omega1 = draw_wishart(1, dof, eye / dof, rng)[0]
        omega2 = draw_wishart(1, dof, omega1 / dof, rng)[0]
        return canonical(omega2, part)  # type: ignore[arg-type]

    raise ValueError(f"unsupported statistic kind: {kind!r}")


def _describe(kind: PivotKind, nsample: int, pvariates: int, part: Optional[int]) -> str:
    extra = f", part={part}" if part is not None else ""
    return f"{kind.value}, nsample={nsample}, pvariates={pvariates}{extra}"


def _iteration_value(
    kind: PivotKind,
    rng: np.random.Generator,
    i: int,
    nsample: int,
    pvariates: int,
    part: Optional[int],
) -> float:
    try:
        return draw_statistic(kind, rng, nsample, pvariates, part)
    except SynthPivotError as e:
        raise e.with_iteration(i, _describe(kind, nsample, pvariates, part)) from e


# Top-level so ProcessPoolExecutor can pickle it.
def _run_block(
    kind: PivotKind,
    nsample: int,
    pvariates: int,
    part: Optional[int],
    seed: int,
    start: int,
    stop: int,
) -> NDArray[np.float64]:
    out = np.empty(stop - start, dtype=np.float64)
    for j, i in enumerate(range(start, stop)):
        out[j] = _iteration_value(kind, rng_for_iteration(seed, i), i, nsample, pvariates, part)
    return out


def _check_buffer(out: Optional[NDArray[np.float64]], iterations: int) -> NDArray[np.float64]:
    if out is None:
        return np.empty(iterations, dtype=np.float64)
    if not isinstance(out, np.ndarray) or out.shape != (iterations,):
        shape = getattr(out, "shape", None)
        raise ValueError(f"out must be a numpy array of shape ({iterations},), got {shape}")
    if not np.issubdtype(out.dtype, np.floating):
        raise ValueError(f"out must have a floating dtype, got {out.dtype}")
    return out


def _simulate(
    params: SimulationParameters,
    *,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    seed_policy: str = "sequential",
    jobs: int = 1,
    executor: str = "thread",
    out: Optional[NDArray[np.float64]] = None,
) -> Tuple[NDArray[np.float64], Optional[int]]:
    """Run one simulation; returns (values, resolved seed or None when `rng` was supplied)."""
    if seed_policy not in _SEED_POLICIES:
        raise ConfigError(f"seed_policy must be one of {_SEED_POLICIES}, got {seed_policy!r}")
    if executor not in _EXECUTORS:
        raise ConfigError(f"executor must be one of {_EXECUTORS}, got {executor!r}")
    if isinstance(jobs, bool) or not isinstance(jobs, int) or jobs < 1:
        raise ConfigError(f"jobs must be a positive int, got {jobs!r}")
    if jobs > 1 and seed_policy != "per_iteration":
        raise ConfigError("jobs > 1 requires seed_policy='per_iteration'")
    if rng is not None:
        if seed_policy != "sequential":
            raise ConfigError("an explicit rng is only meaningful with seed_policy='sequential'")
        if seed is not None:
            raise ConfigError("pass either seed or rng, not both")
        if not isinstance(rng, np.random.Generator):
            raise TypeError(f"rng must be a numpy.random.Generator, got {type(rng).__name__}")

    kind, n, p, part = params.kind, params.nsample, params.pvariates, params.part
    iterations = params.iterations
    if kind.partitioned:
        check_split(p, part)  # type: ignore[arg-type]

    buf = _check_buffer(out, iterations)
    used_seed: Optional[int] = None
    if rng is None:
        used_seed = resolve_seed(seed)
        LOG.debug("Resolved seed %s for %s", used_seed, kind.value)

    LOG.info(
        "Simulating %s (%s): n=%s p=%s part=%s iterations=%s seed_policy=%s jobs=%s",
        kind.value, kind.label, n, p, part, iterations, seed_policy, jobs,
    )
    t0 = time.perf_counter()
    try:
        if seed_policy == "sequential":
            gen = rng if rng is not None else np.random.default_rng(used_seed)
            for i in range(iterations):
                buf[i] = _iteration_value(kind, gen, i, n, p, part)
        elif jobs <= 1:
            buf[:] = _run_block(kind, n, p, part, used_seed, 0, iterations)  # type: ignore[arg-type]
        else:
            _run_parallel(buf, kind, n, p, part, used_seed, jobs, executor)  # type: ignore[arg-type]
    except SynthPivotError as e:
        LOG.error("Simulation aborted at iteration %s: %s", e.iteration, e)
        raise

    LOG.info("Finished %s in %.3fs", kind.value, time.perf_counter() - t0)
    return buf, used_seed


def _run_parallel(
    buf: NDArray[np.float64],
    kind: PivotKind,
    n: int,
    p: int,
    part: Optional[int],
    seed: int,
    jobs: int,
    executor: str,
) -> None:
    if executor == "thread":
        from concurrent.futures import ThreadPoolExecutor as Executor
    else:
        from concurrent.futures import ProcessPoolExecutor as Executor

    iterations = buf.shape[0]
    edges = np.linspace(0, iterations, min(jobs, iterations) + 1).round().astype(int)
    bounds = [(int(a), int(b)) for a, b in zip(edges[:-1], edges[1:]) if b > a]

    with Executor(max_workers=jobs) as pool:
        futs = [pool.submit(_run_block, kind, n, p, part, seed, a, b) for a, b in bounds]
        # Collect in iteration order so the reported failure is the earliest one.
        try:
            for (a, b), fut in zip(bounds, futs):
                buf[a:b] = fut.result()
        except BaseException:
            for fut in futs:
                fut.cancel()
            raise


def simulate(
    kind: Any,
    nsample: int,
    pvariates: int,
    iterations: int = DEFAULT_ITERATIONS,
    part: Optional[int] = None,
    *,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    seed_policy: str = "sequential",
    jobs: int = 1,
    executor: str = "thread",
    out: Optional[NDArray[np.float64]] = None,
) -> NDArray[np.float64]:
    """
    Simulate the null distribution of the statistic `kind`.

    Args:
        kind: PivotKind or any alias accepted by PivotKind.parse ("sphericity", "T2", ...)
        nsample: Sample size n (Wishart degrees of freedom are n - 1)
        pvariates: Number of variables p
        iterations: Number of Monte Carlo repetitions
        part: Size of the first variable subset (independence/canonical only)
        seed: Seed for the random streams (None: $SYNTHPIVOT_SEED or OS entropy)
        rng: Explicit Generator for the sequential policy (mutually exclusive with seed)
        seed_policy: "sequential" or "per_iteration"
        jobs: Worker count; > 1 requires seed_policy="per_iteration"
        executor: "thread" or "process" pool for jobs > 1
        out: Optional pre-sized float buffer of shape (iterations,), filled in place

    Returns:
        Array of `iterations` values in iteration order.

    Raises:
        InvalidPartition, NonPositiveDefiniteScale, SingularBlock (with
        `.iteration` set when raised inside an iteration); pydantic
        ValidationError for invalid parameters; ConfigError for invalid
        seeding/execution settings.
    """
    params = SimulationParameters(
        kind=kind, nsample=nsample, pvariates=pvariates, iterations=iterations, part=part
    )
    values, _ = _simulate(
        params, seed=seed, rng=rng, seed_policy=seed_policy, jobs=jobs, executor=executor, out=out
    )
    return values


def gvdist(nsample: int, pvariates: int, iterations: int = DEFAULT_ITERATIONS, **kwargs: Any) -> NDArray[np.float64]:
    """Generalized variance: det(W), W ~ W_p(n-1, I_p/(n-1))."""
    return simulate(PivotKind.GENERALIZED_VARIANCE, nsample, pvariates, iterations, **kwargs)


def sphdist(nsample: int, pvariates: int, iterations: int = DEFAULT_ITERATIONS, **kwargs: Any) -> NDArray[np.float64]:
    """
    Sphericity: |W1 W2|^(1/p) / (tr(W1 W2)/p) with independent
    W1 ~ W_p(n-1, I_p/(n-1)) and W2 ~ W_p(n-1, I_p).

    The denominator is the mean eigenvalue tr(W1 W2)/p, so values lie in
    (0, 1]. Dividing by the bare trace instead gives values p times smaller,
    and R's Sphdist (which divides by the sum of all entries of W1 W2) is not
    on this scale either; compare observed values only with this function.

    The observed counterpart is observed.sphericity_statistic; under
    H0: Sigma = sigma^2 I_p small observed values are evidence against H0.
    """
    return simulate(PivotKind.SPHERICITY, nsample, pvariates, iterations, **kwargs)


def inddist(part: int, nsample: int, pvariates: int, iterations: int = DEFAULT_ITERATIONS, **kwargs: Any) -> NDArray[np.float64]:
    """Independence of the first `part` variables from the rest, W ~ W_p(n-1, I_p)."""
    return simulate(PivotKind.INDEPENDENCE, nsample, pvariates, iterations, part=part, **kwargs)


def canodist(part: int, nsample: int, pvariates: int, iterations: int = DEFAULT_ITERATIONS, **kwargs: Any) -> NDArray[np.float64]:
    """
    Regression of the first `part` variables on the rest.

    |O12 O22^-1 O21| / |O11 - O12 O22^-1 O21| where
    O ~ W_p(n-1, W/(n-1)) and W ~ W_p(n-1, I_p/(n-1)).
    """
    return simulate(PivotKind.CANONICAL, nsample, pvariates, iterations, part=part, **kwargs)


def run(
    params: SimulationParameters,
    *,
    seed: Optional[int] = None,
    seed_policy: str = "sequential",
    jobs: int = 1,
    executor: str = "thread",
) -> NullDistribution:
    """Simulate `params` and wrap the values with their provenance."""
    values, used_seed = _simulate(
        params, seed=seed, seed_policy=seed_policy, jobs=jobs, executor=executor
    )
    return NullDistribution(params=params, values=values, seed=used_seed, seed_policy=seed_policy)


def _run_seed(base: int, index: int) -> int:
    state = np.random.SeedSequence([base, index]).generate_state(1, dtype=np.uint64)
    return int(state[0] >> np.uint64(1))


def run_config(cfg: RunConfig) -> List[NullDistribution]:
    """
    Run every simulation in `cfg`.

    Run k is seeded with a value derived from (cfg.seed, k), so runs do not
    share random streams and adding a run does not change earlier ones.
    """
    base = resolve_seed(cfg.seed)
    LOG.debug("Run configuration base seed %s (%d runs)", base, len(cfg.runs))
    return [
        run(
            params,
            seed=_run_seed(base, k),
            seed_policy=cfg.seed_policy,
            jobs=cfg.jobs,
            executor=cfg.executor,
        )
        for k, params in enumerate(cfg.runs)
    ]
