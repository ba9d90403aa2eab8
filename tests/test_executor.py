import numpy as np
import pytest

from einplan.core.backends import NumpyBackend
from einplan.core.exceptions import ShapeError
from einplan.core.executor import contract_pair

xp = NumpyBackend()


@pytest.fixture
def rng():
    return np.random.default_rng(7)


def test_matrix_product(rng):
    a = rng.standard_normal((2, 3))
    b = rng.standard_normal((3, 4))
    out = contract_pair(xp, a, "ij", b, "jk", "ik")
    np.testing.assert_allclose(out, a @ b)


def test_result_follows_target_order(rng):
    a = rng.standard_normal((2, 3))
    b = rng.standard_normal((3, 4))
    out = contract_pair(xp, a, "ij", b, "jk", "ki")
    assert out.shape == (4, 2)
    np.testing.assert_allclose(out, (a @ b).T)


def test_outer_product(rng):
    u = rng.standard_normal(2)
    v = rng.standard_normal(3)
    out = contract_pair(xp, u, "i", v, "j", "ij")
    np.testing.assert_allclose(out, np.outer(u, v))


def test_batched_product(rng):
    a = rng.standard_normal((5, 2, 3))
    b = rng.standard_normal((5, 3, 4))
    out = contract_pair(xp, a, "bij", b, "bjk", "bik")
    np.testing.assert_allclose(out, np.matmul(a, b))


def test_dot_product_gives_zero_rank(rng):
    u = rng.standard_normal(6)
    v = rng.standard_normal(6)
    out = contract_pair(xp, u, "i", v, "i", "")
    assert np.shape(out) == ()
    assert float(out) == pytest.approx(float(u @ v))


def test_scalar_times_tensor(rng):
    s = np.asarray(2.5)
    m = rng.standard_normal((2, 3))
    out = contract_pair(xp, s, "", m, "ij", "ji")
    np.testing.assert_allclose(out, 2.5 * m.T)


def test_hadamard_with_permuted_operand(rng):
    a = rng.standard_normal((2, 3))
    b = rng.standard_normal((3, 2))
    out = contract_pair(xp, a, "ij", b, "ji", "ij")
    np.testing.assert_allclose(out, a * b.T)


def test_hadamard_broadcasts_size_one_axis(rng):
    a = rng.standard_normal((2, 1))
    b = rng.standard_normal((2, 3))
    out = contract_pair(xp, a, "ij", b, "ij", "ij")
    np.testing.assert_allclose(out, a * b)


def test_batch_axis_of_extent_one_broadcasts(rng):
    a = rng.standard_normal((1, 2, 3))
    b = rng.standard_normal((4, 3, 5))
    out = contract_pair(xp, a, "bij", b, "bjk", "bik")
    assert out.shape == (4, 2, 5)
    np.testing.assert_allclose(out, np.matmul(a, b))


def test_private_labels_are_summed_first(rng):
    a = rng.standard_normal((2, 3))
    b = rng.standard_normal((3, 4))
    out = contract_pair(xp, a, "ij", b, "jk", "k")
    np.testing.assert_allclose(out, a.sum(axis=0) @ b)


def test_mismatched_shared_extent_raises(rng):
    a = rng.standard_normal((2, 3))
    b = rng.standard_normal((4, 5))
    with pytest.raises(ShapeError) as excinfo:
        contract_pair(xp, a, "ij", b, "jk", "ik", subscripts="ij,jk->ik")
    assert excinfo.value.label == "j"
    assert "ij,jk->ik" in str(excinfo.value)


def test_repeated_label_rejected(rng):
    a = rng.standard_normal((3, 3))
    b = rng.standard_normal(3)
    with pytest.raises(ValueError, match="repeats a label"):
        contract_pair(xp, a, "ii", b, "i", "i")


def test_unknown_target_label_rejected(rng):
    a = rng.standard_normal((2, 3))
    b = rng.standard_normal((3, 4))
    with pytest.raises(ValueError, match="neither pairwise operand"):
        contract_pair(xp, a, "ij", b, "jk", "iz")


def test_integer_operands_stay_integer():
    a = np.arange(6, dtype=np.int64).reshape(2, 3)
    b = np.arange(12, dtype=np.int64).reshape(3, 4)
    out = contract_pair(xp, a, "ij", b, "jk", "ik")
    assert out.dtype == np.int64
    np.testing.assert_array_equal(out, a @ b)
