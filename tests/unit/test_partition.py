import numpy as np
import pytest
from hypothesis import given, seed, settings
from hypothesis import strategies as st

from synthpivot.errors import InvalidPartition, SingularBlock
from synthpivot.partition import assemble, check_split, partition, regression_part


def _spd(p: int, rng: np.random.Generator) -> np.ndarray:
    a = rng.standard_normal((p, p))
    return a @ a.T + p * np.eye(p)


def test_partition_block_shapes():
    m = np.arange(16, dtype=float).reshape(4, 4)
    m11, m12, m21, m22 = partition(m, 1)
    assert m11.shape == (1, 1)
    assert m12.shape == (1, 3)
    assert m21.shape == (3, 1)
    assert m22.shape == (3, 3)
    assert m11[0, 0] == 0.0
    assert np.array_equal(m22, m[1:, 1:])


def test_partition_rectangular_split():
    m = np.arange(20, dtype=float).reshape(4, 5)
    m11, m12, m21, m22 = partition(m, 3, 2)
    assert m11.shape == (3, 2)
    assert m12.shape == (3, 3)
    assert m21.shape == (1, 2)
    assert m22.shape == (1, 3)


def test_partition_blocks_do_not_alias_input():
    m = np.eye(3)
    m11, _, _, _ = partition(m, 1)
    m11[0, 0] = 99.0
    assert m[0, 0] == 1.0


@seed(0)
@settings(max_examples=50, deadline=None)
@given(p=st.integers(min_value=2, max_value=8), data=st.data())
def test_partition_then_assemble_is_identity(p: int, data) -> None:
    k = data.draw(st.integers(min_value=1, max_value=p - 1))
    m = np.random.default_rng(p * 31 + k).standard_normal((p, p))
    assert np.array_equal(assemble(*partition(m, k)), m)


@pytest.mark.parametrize("k", [0, 4, -1, 10])
def test_partition_rejects_out_of_range_split(k):
    with pytest.raises(InvalidPartition):
        partition(np.eye(4), k)


@pytest.mark.parametrize("bad", [np.eye(1), np.zeros((1, 5)), np.zeros(4), np.zeros((2, 2, 2))])
def test_partition_rejects_bad_shapes(bad):
    with pytest.raises(InvalidPartition):
        partition(bad, 1)


def test_check_split_rejects_non_integers():
    with pytest.raises(InvalidPartition):
        check_split(4, 1.5)  # type: ignore[arg-type]
    with pytest.raises(InvalidPartition):
        check_split(4, True)  # type: ignore[arg-type]
    assert check_split(4, np.int64(2)) == 2


def test_invalid_partition_is_a_value_error():
    with pytest.raises(ValueError):
        check_split(3, 3)


def test_regression_part_matches_explicit_inverse(rng):
    m = _spd(5, rng)
    m11, q = regression_part(m, 2)
    expected = m[:2, 2:] @ np.linalg.inv(m[2:, 2:]) @ m[2:, :2]
    assert np.allclose(m11, m[:2, :2])
    assert np.allclose(q, expected, rtol=1e-10, atol=1e-12)


def test_regression_part_block_diagonal_gives_zero():
    m = np.diag([1.0, 2.0, 3.0, 4.0])
    _, q = regression_part(m, 2)
    assert np.allclose(q, 0.0)


def test_regression_part_singular_lower_block():
    m = np.eye(3)
    m[1:, 1:] = 0.0
    with pytest.raises(SingularBlock):
        regression_part(m, 1)


def test_symmetric_input_gives_transposed_off_diagonal_blocks(rng):
    m = _spd(6, rng)
    m = 0.5 * (m + m.T)
    for k in range(1, 6):
        _, m12, m21, _ = partition(m, k)
        assert np.array_equal(m21, m12.T)
