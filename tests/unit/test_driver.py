import logging

import numpy as np
import pytest
from pydantic import ValidationError

from synthpivot import driver as sim
from synthpivot.config import RunConfig, SimulationParameters
from synthpivot.errors import ConfigError, InvalidPartition, SingularBlock
from synthpivot.seeds import rng_for_iteration
from synthpivot.statistics import PivotKind


@pytest.mark.parametrize(
    "fn,args",
    [
        (sim.gvdist, (20, 3)),
        (sim.sphdist, (20, 3)),
        (sim.inddist, (1, 20, 3)),
        (sim.canodist, (2, 20, 3)),
    ],
)
def test_entry_points_return_one_finite_value_per_iteration(fn, args):
    vals = fn(*args, iterations=40, seed=1)
    assert isinstance(vals, np.ndarray)
    assert vals.shape == (40,)
    assert vals.dtype == np.float64
    assert np.all(np.isfinite(vals))


def test_value_ranges(rng):
    assert np.all(sim.gvdist(15, 3, 100, rng=rng) > 0.0)
    t2 = sim.sphdist(15, 3, 100, rng=rng)
    assert np.all((t2 > 0.0) & (t2 <= 1.0 + 1e-12))
    assert np.all(sim.inddist(1, 15, 3, 100, rng=rng) >= -1e-12)
    assert np.all(sim.canodist(1, 15, 3, 100, rng=rng) >= -1e-12)


def test_same_seed_same_values():
    a = sim.canodist(2, 30, 4, 25, seed=11)
    b = sim.canodist(2, 30, 4, 25, seed=11)
    c = sim.canodist(2, 30, 4, 25, seed=12)
    assert np.array_equal(a, b)
    assert not np.array_equal(a, c)


def test_sequential_seed_matches_explicit_generator():
    a = sim.sphdist(12, 3, 20, seed=5)
    b = sim.sphdist(12, 3, 20, rng=np.random.default_rng(5))
    assert np.array_equal(a, b)


def test_env_seed_is_used_when_no_seed_given(monkeypatch):
    monkeypatch.setenv("SYNTHPIVOT_SEED", "42")
    assert np.array_equal(sim.gvdist(10, 2, 15), sim.gvdist(10, 2, 15, seed=42))


def test_per_iteration_values_are_keyed_by_index():
    vals = sim.inddist(2, 25, 5, 12, seed=3, seed_policy="per_iteration")
    for i in (0, 7, 11):
        expected = sim.draw_statistic(PivotKind.INDEPENDENCE, rng_for_iteration(3, i), 25, 5, 2)
        assert vals[i] == expected


def test_per_iteration_independent_of_jobs():
    serial = sim.canodist(1, 20, 3, 37, seed=9, seed_policy="per_iteration")
    threaded = sim.canodist(1, 20, 3, 37, seed=9, seed_policy="per_iteration", jobs=4)
    assert np.array_equal(serial, threaded)


def test_per_iteration_process_pool_matches_serial():
    serial = sim.sphdist(10, 2, 9, seed=4, seed_policy="per_iteration")
    pooled = sim.sphdist(10, 2, 9, seed=4, seed_policy="per_iteration", jobs=2, executor="process")
    assert np.array_equal(serial, pooled)


def test_more_jobs_than_iterations():
    vals = sim.gvdist(10, 2, 3, seed=1, seed_policy="per_iteration", jobs=8)
    assert vals.shape == (3,)
    assert np.array_equal(vals, sim.gvdist(10, 2, 3, seed=1, seed_policy="per_iteration"))


def test_fills_caller_buffer_in_place():
    out = np.full(10, np.nan)
    res = sim.gvdist(8, 2, 10, seed=2, out=out)
    assert res is out
    assert np.all(np.isfinite(out))


@pytest.mark.parametrize("out", [np.zeros(9), np.zeros((10, 1)), np.zeros(10, dtype=int), [0.0] * 10])
def test_rejects_bad_buffer(out):
    with pytest.raises(ValueError, match="out must"):
        sim.gvdist(8, 2, 10, seed=2, out=out)


def test_failure_reports_iteration_and_stops(monkeypatch, caplog):
    calls = {"n": 0}
    real = sim.sphericity

    def flaky(w1, w2):
        calls["n"] += 1
        if calls["n"] == 3:
            raise SingularBlock("product matrix W1^T W2 is singular")
        return real(w1, w2)

    monkeypatch.setattr(sim, "sphericity", flaky)
    out = np.full(10, np.nan)
    with caplog.at_level(logging.ERROR, logger="synthpivot.driver"):
        with pytest.raises(SingularBlock) as ei:
            sim.sphdist(12, 3, 10, seed=1, out=out)

    assert ei.value.iteration == 2
    assert "iteration 2" in str(ei.value)
    assert "sphericity" in str(ei.value)
    assert np.all(np.isfinite(out[:2]))
    assert np.all(np.isnan(out[3:]))
    assert calls["n"] == 3
    assert any("aborted at iteration 2" in r.getMessage() for r in caplog.records)


def test_failure_in_parallel_run_reports_earliest_iteration(monkeypatch):
    def boom(w, part):
        raise SingularBlock("conditional block is singular", part=part)

    monkeypatch.setattr(sim, "canonical", boom)
    with pytest.raises(SingularBlock) as ei:
        sim.canodist(1, 10, 3, 20, seed=1, seed_policy="per_iteration", jobs=3)
    assert ei.value.iteration == 0
    assert ei.value.context == {"part": 1}


@pytest.mark.parametrize("part", [0, 3, -1])
def test_invalid_part(part):
    with pytest.raises(InvalidPartition):
        sim.inddist(part, 10, 3, 5, seed=1)


def test_partitioned_kinds_need_two_variables():
    with pytest.raises(InvalidPartition):
        sim.canodist(1, 10, 1, 5, seed=1)


def test_invalid_parameters():
    with pytest.raises(ValidationError):
        sim.simulate("independence", 10, 3, 5)  # no part
    with pytest.raises(ValidationError):
        sim.gvdist(3, 3, 5)  # nsample must exceed pvariates
    with pytest.raises(ValidationError):
        sim.gvdist(10, 3, 0)
    with pytest.raises(ValueError):
        sim.simulate("trace", 10, 3, 5)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"jobs": 2},
        {"jobs": 0, "seed_policy": "per_iteration"},
        {"seed_policy": "random"},
        {"executor": "gpu"},
        {"seed": 1, "rng": np.random.default_rng(1)},
        {"seed_policy": "per_iteration", "rng": np.random.default_rng(1)},
    ],
)
def test_invalid_execution_settings(kwargs):
    with pytest.raises(ConfigError):
        sim.gvdist(10, 2, 5, **kwargs)


def test_logs_start_and_finish(caplog):
    with caplog.at_level(logging.INFO, logger="synthpivot.driver"):
        sim.gvdist(10, 2, 5, seed=1)
    msgs = [r.getMessage() for r in caplog.records]
    assert any(m.startswith("Simulating generalized_variance (T1)") for m in msgs)
    assert any(m.startswith("Finished generalized_variance") for m in msgs)


def test_run_records_provenance():
    params = SimulationParameters(kind="T4", nsample=20, pvariates=4, iterations=30, part=2)
    d = sim.run(params, seed=8)
    assert len(d) == 30
    assert d.seed == 8
    assert d.seed_policy == "sequential"
    assert np.array_equal(d.values, sim.canodist(2, 20, 4, 30, seed=8))


def test_run_resolves_seed_when_missing():
    params = SimulationParameters(kind="t1", nsample=10, pvariates=2, iterations=5)
    d = sim.run(params)
    assert isinstance(d.seed, int) and d.seed >= 0
    assert np.array_equal(d.values, sim.gvdist(10, 2, 5, seed=d.seed))


def test_run_config_seeds_runs_independently():
    runs = [
        {"kind": "sphericity", "nsample": 15, "pvariates": 3, "iterations": 20},
        {"kind": "sphericity", "nsample": 15, "pvariates": 3, "iterations": 20},
    ]
    cfg = RunConfig(runs=runs, seed=77)
    first = sim.run_config(cfg)
    again = sim.run_config(cfg)
    assert [d.seed for d in first] == [d.seed for d in again]
    assert first[0].seed != first[1].seed
    assert not np.array_equal(first[0].values, first[1].values)
    assert np.array_equal(first[1].values, again[1].values)

    # appending a run does not disturb earlier ones
    longer = sim.run_config(RunConfig(runs=runs + [runs[0]], seed=77))
    assert np.array_equal(longer[0].values, first[0].values)


def test_driver_module_is_not_shadowed_by_simulate_function():
    import synthpivot

    assert sim.__name__ == "synthpivot.driver"
    assert callable(synthpivot.simulate)
    assert synthpivot.simulate is sim.simulate
    assert synthpivot.driver is sim


def test_bad_seed_is_config_error():
    with pytest.raises(ConfigError, match="seed must be"):
        sim.gvdist(10, 2, 5, seed=-1)
