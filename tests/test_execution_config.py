import numpy as np
import pytest

from einplan import ExecutionConfig, einsum, einsum_path


def test_normalization_folds_case():
    cfg = ExecutionConfig(optimize="Greedy", backend="NumPy", optimal_limit="5").normalized()
    assert cfg.optimize == "greedy"
    assert cfg.backend == "numpy"
    assert cfg.optimal_limit == 5


def test_empty_values_fall_back_to_defaults():
    cfg = ExecutionConfig(optimize="", backend="").normalized()
    assert cfg.optimize == "greedy"
    assert cfg.backend == "auto"


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"optimize": "dp"}, "Unsupported optimize strategy"),
        ({"backend": "jax"}, "Unsupported backend"),
        ({"optimal_limit": 1}, "optimal_limit"),
        ({"max_live_operands": 1}, "max_live_operands"),
    ],
)
def test_invalid_settings_rejected(kwargs, message):
    with pytest.raises(ValueError, match=message):
        ExecutionConfig(**kwargs).normalized()


def test_invalid_optimize_keyword_rejected():
    with pytest.raises(ValueError, match="Unsupported optimize strategy"):
        einsum("ij,jk", np.ones((2, 2)), np.ones((2, 2)), optimize="fastest")


def test_optimal_limit_applies_to_planning():
    ops = [np.ones((2, 2)) for _ in range(5)]
    cfg = ExecutionConfig(optimize="optimal", optimal_limit=5)
    assert einsum_path("ab,bc,cd,de,ef->af", *ops, config=cfg).path.method == "optimal"
    cfg = ExecutionConfig(optimize="optimal")
    assert einsum_path("ab,bc,cd,de,ef->af", *ops, config=cfg).path.method == "greedy"


def test_backend_keyword_overrides_config():
    out = einsum("i->", np.arange(4.0), backend="numpy", config=ExecutionConfig(backend="auto"))
    assert float(out) == 6.0


def test_copy_singleton_can_return_views():
    m = np.arange(6.0).reshape(2, 3)
    view = einsum("ij->ji", m, config=ExecutionConfig(copy_singleton=False))
    assert np.shares_memory(view, m)
    fresh = einsum("ij->ji", m)
    assert not np.shares_memory(fresh, m)
