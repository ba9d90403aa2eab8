import json

import numpy as np
import pytest

from einplan import (
    CompiledEinsum,
    ContractionPath,
    ExecutionConfig,
    RankMismatchError,
    ShapeError,
    einsum_path,
)


@pytest.fixture
def chain():
    rng = np.random.default_rng(3)
    return [rng.standard_normal((10, 2)), rng.standard_normal((2, 10)), rng.standard_normal((10, 2))]


def test_compiled_einsum_reuses_its_plan(chain):
    compiled = einsum_path("ij,jk,kl->il", *chain)
    assert isinstance(compiled, CompiledEinsum)
    assert compiled.linear_path() == [(1, 2), (0, 1)]
    expected = np.einsum("ij,jk,kl->il", *chain)
    np.testing.assert_allclose(compiled(*chain), expected)
    again = [op * 2.0 for op in chain]
    np.testing.assert_allclose(compiled.contract(*again), expected * 8.0)


def test_shapes_alone_are_enough_to_plan():
    compiled = einsum_path("ij,jk->ik", np.empty((2, 3)), np.empty((3, 4)))
    assert compiled.plan.output_shape == (2, 4)
    assert len(compiled.steps) == 1


def test_contract_rejects_other_shapes(chain):
    compiled = einsum_path("ij,jk,kl->il", *chain)
    with pytest.raises(ShapeError, match="planned shape on axis 1") as excinfo:
        compiled(chain[0], chain[1], np.ones((10, 3)))
    assert excinfo.value.extents == (2, 3)
    assert excinfo.value.label == "l"
    assert excinfo.value.operand == 2
    assert "extents 2 vs 3" in str(excinfo.value)
    with pytest.raises(RankMismatchError):
        compiled(chain[0], chain[1])
    with pytest.raises(RankMismatchError) as excinfo:
        compiled(chain[0], chain[1], np.ones(10))
    assert excinfo.value.operand == 2


def test_explain_text_lists_every_step(chain):
    text = einsum_path("ij,jk,kl->il", *chain).explain()
    lines = text.splitlines()
    assert lines[0] == "einsum 'ij,jk,kl->il' as ij,jk,kl->il"
    assert "  method: greedy" in lines
    assert "  path: [[1, 2], [0, 1]]" in lines
    assert "  output shape: (10, 2)" in lines
    assert sum(1 for line in lines if line.startswith("  [step ")) == 2
    assert "jk,kl->jl" in text


def test_explain_json_is_serialisable(chain):
    info = einsum_path("ij,jk,kl->il", *chain, optimize="naive").explain(json=True)
    assert info["method"] == "naive"
    assert info["path"] == [[0, 1], [0, 1]]
    assert info["output_shape"] == [10, 2]
    assert [step["operands"] for step in info["steps"]] == [[0, 1], [3, 2]]
    assert info["steps"][0]["contracted"] == ["j"]
    assert info["largest_intermediate"] == 100
    assert info["total_flops"] == pytest.approx(sum(step["flops"] for step in info["steps"]))
    json.dumps(info)


def test_explain_single_operand():
    info = einsum_path("ii->i", np.ones((3, 3))).explain(json=True)
    assert info["path"] == []
    assert info["steps"][0]["equation"] == "ii->i"
    assert info["steps"][0]["result_shape"] == [3]


def test_explain_names_broadcast_axes():
    compiled = einsum_path("...ij,...jk->...ik", np.ones((4, 2, 3)), np.ones((4, 3, 5)))
    info = compiled.explain(json=True)
    assert info["equation"] == "...ij,...jk->...ik"
    assert info["output_shape"] == [4, 2, 5]


def test_path_round_trips_through_explicit_optimize(chain):
    first = einsum_path("ij,jk,kl->il", *chain, optimize="reverse")
    replay = einsum_path("ij,jk,kl->il", *chain, optimize=first.path)
    assert isinstance(first.path, ContractionPath)
    assert replay.path.method == "explicit"
    assert replay.path.ssa_path() == first.path.ssa_path()
    payload = first.path.to_dict()
    assert payload["path"] == [[1, 2], [0, 1]]
    assert payload["steps"][0]["equation"] == first.steps[0].equation()


def test_config_strategy_is_used_without_optimize(chain):
    compiled = einsum_path("ij,jk,kl->il", *chain, config=ExecutionConfig(optimize="naive"))
    assert compiled.path.method == "naive"
    assert "naive" in repr(compiled)


def test_plan_round_trips_through_dict(chain):
    compiled = einsum_path("ij,jk,kl->il", *chain)
    payload = json.loads(json.dumps(compiled.plan.to_dict()))
    assert type(compiled.plan).from_dict(payload) == compiled.plan
