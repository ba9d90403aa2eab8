import logging

import pytest

from einplan.core.ir import ContractionPath, linear_to_ssa
from einplan.core.planner import (
    merged_spec,
    path_from_pairs,
    plan_contraction,
    prepared_specs,
)


def _specs(*terms):
    return tuple(tuple(term) for term in terms)


def test_prepared_specs_drop_private_and_repeated_labels():
    specs = prepared_specs(_specs("iij", "jkz", "k"), tuple("ik"))
    assert specs == (("i", "j"), ("j", "k"), ("k",))


def test_merged_spec_keeps_labels_needed_later_in_first_seen_order():
    assert merged_spec(tuple("ij"), tuple("jk"), [tuple("kl")], tuple("il")) == ("i", "k")
    assert merged_spec(tuple("ab"), tuple("bc"), [tuple("b")], ()) == ("b",)


def test_greedy_prefers_smallest_intermediate():
    # chain a(10x2) b(2x10) c(10x2): merging (a, b) makes 10x10, (b, c) makes 2x2
    specs = _specs("ij", "jk", "kl")
    sizes = {"i": 10, "j": 2, "k": 10, "l": 2}
    path = plan_contraction(specs, tuple("il"), sizes)
    assert path.method == "greedy"
    assert path.ssa_path() == [(1, 2), (0, 3)]
    assert path.steps[0].result_spec == ("j", "l")
    assert path.steps[-1].result_spec == ("i", "l")
    assert path.linear_path() == [(1, 2), (0, 1)]


def test_greedy_breaks_ties_leftmost():
    specs = _specs("ij", "jk", "kl")
    sizes = {label: 3 for label in "ijkl"}
    path = plan_contraction(specs, tuple("il"), sizes)
    assert path.ssa_path()[0] == (0, 1)


def test_final_step_targets_output_order():
    specs = _specs("ij", "jk")
    path = plan_contraction(specs, tuple("ki"), {"i": 2, "j": 3, "k": 4})
    assert len(path.steps) == 1
    assert path.steps[0].result_spec == ("k", "i")
    assert path.steps[0].contracted_labels() == ["j"]


def test_naive_goes_left_to_right():
    specs = _specs("ij", "jk", "kl", "lm")
    sizes = {label: 2 for label in "ijklm"}
    path = plan_contraction(specs, tuple("im"), sizes, method="naive")
    assert path.ssa_path() == [(0, 1), (4, 2), (5, 3)]
    assert path.linear_path() == [(0, 1), (0, 2), (0, 1)]


def test_reverse_goes_right_to_left():
    specs = _specs("ij", "jk", "kl", "lm")
    sizes = {label: 2 for label in "ijklm"}
    path = plan_contraction(specs, tuple("im"), sizes, method="reverse")
    assert path.ssa_path() == [(2, 3), (1, 4), (0, 5)]


def test_optimal_never_costs_more_than_greedy():
    specs = _specs("ab", "bc", "cd", "da")
    sizes = {"a": 7, "b": 2, "c": 9, "d": 3}
    output = ()

    def total(path):
        cost = 0
        for step in path.steps:
            size = 1
            for label in step.result_spec:
                size *= sizes[label]
            cost += size
        return cost

    optimal = plan_contraction(specs, output, sizes, method="optimal")
    greedy = plan_contraction(specs, output, sizes, method="greedy")
    assert optimal.method == "optimal"
    assert len(optimal.steps) == 3
    assert total(optimal) <= total(greedy)


def test_optimal_falls_back_to_greedy_above_limit(caplog):
    specs = _specs("ab", "bc", "cd", "de", "ef")
    sizes = {label: 2 for label in "abcdef"}
    with caplog.at_level(logging.WARNING, logger="einplan.core.planner"):
        path = plan_contraction(specs, tuple("af"), sizes, method="optimal", optimal_limit=4)
    assert path.method == "greedy"
    assert "using greedy" in caplog.text


def test_max_live_operands_restricts_greedy_window():
    specs = _specs("ij", "kl", "jk")
    sizes = {"i": 2, "j": 2, "k": 2, "l": 2}
    path = plan_contraction(specs, tuple("il"), sizes, max_live_operands=2)
    assert path.ssa_path()[0] == (0, 1)


def test_unknown_method_rejected():
    with pytest.raises(ValueError, match="Unknown contraction method"):
        plan_contraction(_specs("i", "i"), (), {"i": 2}, method="fastest")


def test_single_operand_has_no_steps():
    path = plan_contraction(_specs("ij"), tuple("ji"), {"i": 2, "j": 3})
    assert path.steps == ()
    assert path.linear_path() == []


def test_path_from_linear_pairs_matches_numpy_form():
    specs = _specs("ij", "jk", "kl")
    path = path_from_pairs(specs, tuple("il"), [(1, 2), (0, 1)])
    assert isinstance(path, ContractionPath)
    assert path.method == "explicit"
    assert path.ssa_path() == [(1, 2), (0, 3)]


def test_path_from_pairs_accepts_numpy_einsum_path_header():
    specs = _specs("ij", "jk", "kl")
    path = path_from_pairs(specs, tuple("il"), ["einsum_path", (0, 1), (0, 1)])
    assert path.ssa_path() == [(0, 1), (2, 3)]


@pytest.mark.parametrize("pairs", [[(0, 1)], [(0, 0), (0, 1)], [(0, 5), (0, 1)]])
def test_path_from_pairs_rejects_bad_paths(pairs):
    with pytest.raises(ValueError):
        path_from_pairs(_specs("ij", "jk", "kl"), tuple("il"), pairs)


def test_linear_to_ssa_recycles_positions():
    assert linear_to_ssa([(0, 3), (1, 2), (0, 1)], 4) == [(0, 3), (2, 4), (1, 5)]


def test_single_operand_numpy_path_is_empty():
    path = path_from_pairs(_specs("ii"), (), ["einsum_path", (0,)])
    assert path.steps == ()
    assert path.method == "explicit"


@pytest.mark.parametrize("pairs", [[(0,)], [(0, 1, 2), (0, 1)]])
def test_path_entries_must_be_pairs(pairs):
    with pytest.raises(ValueError, match="must be pairs"):
        path_from_pairs(_specs("ij", "jk", "kl"), tuple("il"), pairs)
