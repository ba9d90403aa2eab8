"""Pairwise contraction ordering.

Every strategy produces a :class:`~einplan.core.ir.ContractionPath` over SSA
ids: the ``n`` prepared operands are ``0..n-1`` and each merge result takes the
next free id. The greedy strategy is a heuristic, not a guaranteed optimum;
``"optimal"`` searches every pair sequence and is only affordable for a handful
of operands.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .ir import ContractionPath, ContractionStep, Label, Subscript, linear_to_ssa
from .stats import subscript_size

logger = logging.getLogger(__name__)

METHODS = ("greedy", "naive", "reverse", "optimal")


def prepared_specs(inputs: Sequence[Subscript], output: Subscript) -> Tuple[Subscript, ...]:
    """Labels each operand still carries once it enters a pairwise step.

    Repeated labels collapse to one axis and labels seen in no other operand
    and not in ``output`` are dropped (they get summed before pairing).
    """
    prepared: List[Subscript] = []
    for position, spec in enumerate(inputs):
        others = set(output)
        for other, other_spec in enumerate(inputs):
            if other != position:
                others.update(other_spec)
        kept: List[Label] = []
        for label in spec:
            if label in others and label not in kept:
                kept.append(label)
        prepared.append(tuple(kept))
    return tuple(prepared)


def merged_spec(
    lhs: Subscript,
    rhs: Subscript,
    others: Sequence[Subscript],
    output: Subscript,
) -> Subscript:
    """Union of ``lhs`` and ``rhs`` labels still needed after merging them, first-seen order."""
    needed = set(output)
    for spec in others:
        needed.update(spec)
    labels: List[Label] = []
    for label in lhs + rhs:
        if label in needed and label not in labels:
            labels.append(label)
    return tuple(labels)


class _LiveSet:
    """Live operands during planning, in live order."""

    def __init__(self, specs: Sequence[Subscript], output: Subscript):
        self.output = output
        self.order: List[int] = list(range(len(specs)))
        self.specs: Dict[int, Subscript] = dict(enumerate(specs))
        self.next_id = len(specs)
        self.steps: List[ContractionStep] = []

    def __len__(self) -> int:
        return len(self.order)

    def candidate(self, lhs: int, rhs: int) -> Subscript:
        if len(self.order) == 2:
            return self.output
        others = [self.specs[i] for i in self.order if i not in (lhs, rhs)]
        return merged_spec(self.specs[lhs], self.specs[rhs], others, self.output)

    def merge(self, lhs: int, rhs: int, *, front: bool = False) -> int:
        result_spec = self.candidate(lhs, rhs)
        result = self.next_id
        self.next_id += 1
        self.steps.append(
            ContractionStep(
                lhs=lhs,
                rhs=rhs,
                lhs_spec=self.specs[lhs],
                rhs_spec=self.specs[rhs],
                result_spec=result_spec,
                result=result,
            )
        )
        self.order = [i for i in self.order if i not in (lhs, rhs)]
        if front:
            self.order.insert(0, result)
        else:
            self.order.append(result)
        del self.specs[lhs]
        del self.specs[rhs]
        self.specs[result] = result_spec
        return result


def _greedy(live: _LiveSet, sizes: Mapping[Label, int], max_live: Optional[int]) -> None:
    while len(live) > 1:
        window = live.order[:max_live] if max_live else list(live.order)
        best: Optional[Tuple[int, int, int]] = None
        for x, lhs in enumerate(window):
            for rhs in window[x + 1 :]:
                cost = subscript_size(live.candidate(lhs, rhs), sizes)
                # strict comparison keeps the leftmost pair on ties
                if best is None or cost < best[0]:
                    best = (cost, lhs, rhs)
        assert best is not None
        cost, lhs, rhs = best
        logger.debug("greedy merge (%d, %d) -> size %d", lhs, rhs, cost)
        live.merge(lhs, rhs)


def _naive(live: _LiveSet) -> None:
    while len(live) > 1:
        live.merge(live.order[0], live.order[1], front=True)


def _reverse(live: _LiveSet) -> None:
    while len(live) > 1:
        live.merge(live.order[-2], live.order[-1])


def _optimal_pairs(
    specs: Sequence[Subscript],
    output: Subscript,
    sizes: Mapping[Label, int],
) -> List[Tuple[int, int]]:
    best_cost: Optional[int] = None
    best_path: List[Tuple[int, int]] = []

    def search(live: Tuple[Tuple[int, Subscript], ...], next_id: int, cost: int, path):
        nonlocal best_cost, best_path
        if best_cost is not None and cost >= best_cost:
            return
        if len(live) == 1:
            best_cost, best_path = cost, list(path)
            return
        for x in range(len(live)):
            for y in range(x + 1, len(live)):
                (lhs, lhs_spec), (rhs, rhs_spec) = live[x], live[y]
                rest = live[:x] + live[x + 1 : y] + live[y + 1 :]
                if rest:
                    spec = merged_spec(lhs_spec, rhs_spec, [s for _, s in rest], output)
                else:
                    spec = output
                step_cost = subscript_size(spec, sizes)
                search(
                    rest + ((next_id, spec),),
                    next_id + 1,
                    cost + step_cost,
                    path + [(lhs, rhs)],
                )

    search(tuple(enumerate(specs)), len(specs), 0, [])
    return best_path


def plan_contraction(
    specs: Sequence[Subscript],
    output: Subscript,
    sizes: Mapping[Label, int],
    *,
    method: str = "greedy",
    optimal_limit: int = 4,
    max_live_operands: Optional[int] = None,
) -> ContractionPath:
    """Choose the order of pairwise merges reducing ``specs`` to ``output``."""
    specs = tuple(tuple(spec) for spec in specs)
    output = tuple(output)
    if method not in METHODS:
        raise ValueError(f"Unknown contraction method '{method}'; expected one of {METHODS}")

    if method == "optimal" and len(specs) > optimal_limit:
        logger.warning(
            "optimal ordering limited to %d operands, got %d; using greedy",
            optimal_limit,
            len(specs),
        )
        method = "greedy"

    live = _LiveSet(specs, output)
    if method == "greedy":
        _greedy(live, sizes, max_live_operands)
    elif method == "naive":
        _naive(live)
    elif method == "reverse":
        _reverse(live)
    else:
        for lhs, rhs in _optimal_pairs(specs, output, sizes):
            live.merge(lhs, rhs)

    return ContractionPath(inputs=specs, output=output, steps=tuple(live.steps), method=method)


def path_from_pairs(
    specs: Sequence[Subscript],
    output: Subscript,
    pairs: Sequence[Sequence[int]],
    *,
    ssa: bool = False,
) -> ContractionPath:
    """Build a path from caller-supplied pairs (NumPy linear form unless ``ssa``)."""
    specs = tuple(tuple(spec) for spec in specs)
    output = tuple(output)
    pairs = [tuple(p) for p in pairs if not isinstance(p, str)]
    if len(specs) == 1 and pairs == [(0,)]:
        # NumPy spells the single-operand path as [(0,)]
        pairs = []
    for pair in pairs:
        if len(pair) != 2:
            raise ValueError(f"Contraction path entries must be pairs, got {pair}")
    if len(pairs) != max(len(specs) - 1, 0):
        raise ValueError(
            f"A contraction path over {len(specs)} operands needs {max(len(specs) - 1, 0)} "
            f"pairs, got {len(pairs)}"
        )
    ssa_pairs = [tuple(int(i) for i in p) for p in pairs] if ssa else linear_to_ssa(pairs, len(specs))
    live = _LiveSet(specs, output)
    for lhs, rhs in ssa_pairs:
        if lhs not in live.specs or rhs not in live.specs or lhs == rhs:
            raise ValueError(f"Contraction path pair ({lhs}, {rhs}) does not name two live operands")
        live.merge(lhs, rhs)
    return ContractionPath(inputs=specs, output=output, steps=tuple(live.steps), method="explicit")
