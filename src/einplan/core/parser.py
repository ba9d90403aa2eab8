from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List, Sequence, Tuple

from .exceptions import (
    DuplicateOutputLabelError,
    RankMismatchError,
    UnknownOutputLabelError,
)
from .grammar import ELLIPSIS, ParsedSubscripts, Term, parse_subscripts
from .ir import EinsumPlan, Label, Subscript, broadcast_label, label_sort_key
from .shape_checker import resolve_label_extents

logger = logging.getLogger(__name__)


def _check_operand_count(parsed: ParsedSubscripts, num_operands: int) -> None:
    expected = len(parsed.inputs)
    if expected == num_operands:
        return
    if num_operands < expected:
        raise RankMismatchError(
            f"Subscripts describe {expected} operands but only {num_operands} were given; "
            f"missing operand for '{parsed.inputs[num_operands].text()}'",
            subscripts=parsed.source,
            operand=num_operands,
            expected=expected,
            actual=num_operands,
        )
    raise RankMismatchError(
        f"Subscripts describe {expected} operands but {num_operands} were given",
        subscripts=parsed.source,
        operand=expected,
        expected=expected,
        actual=num_operands,
    )


def _ellipsis_width(term: Term, rank: int, *, subscripts: str, operand: int) -> int:
    explicit = len(term.labels)
    if term.has_ellipsis:
        width = rank - explicit
        if width < 0:
            raise RankMismatchError(
                f"Subscript '{term.text()}' names {explicit} axes but the operand has rank {rank}",
                subscripts=subscripts,
                operand=operand,
                expected=explicit,
                actual=rank,
            )
        return width
    if explicit != rank:
        raise RankMismatchError(
            f"Subscript '{term.text()}' names {explicit} axes but the operand has rank {rank}",
            subscripts=subscripts,
            operand=operand,
            expected=explicit,
            actual=rank,
        )
    return 0


def _expand(term: Term, width: int, num_slots: int) -> Subscript:
    labels: List[Label] = []
    for atom in term.atoms:
        if atom == ELLIPSIS:
            # right-align this operand's broadcast axes against the widest ellipsis
            first = num_slots - width
            labels.extend(broadcast_label(first + k) for k in range(width))
        else:
            labels.append(atom)
    return tuple(labels)


def _explicit_output(
    parsed: ParsedSubscripts,
    num_slots: int,
    occurrences: Dict[Label, Tuple[Tuple[int, int], ...]],
) -> Subscript:
    assert parsed.output is not None
    output = _expand(parsed.output, num_slots, num_slots)
    seen = set()
    for label in output:
        if label in seen:
            raise DuplicateOutputLabelError(label, subscripts=parsed.source)
        seen.add(label)
        if label not in occurrences:
            raise UnknownOutputLabelError(label, subscripts=parsed.source)
    return output


def _implicit_output(
    num_slots: int,
    specs: Sequence[Subscript],
) -> Subscript:
    counts: Counter = Counter()
    for spec in specs:
        counts.update(spec)
    slots = [broadcast_label(k) for k in range(num_slots)]
    once = sorted(
        (label for label, count in counts.items() if count == 1 and label not in slots),
        key=label_sort_key,
    )
    return tuple(slots) + tuple(once)


def build_plan(subscripts: str, shapes: Sequence[Sequence[int]]) -> EinsumPlan:
    """Parse ``subscripts`` and validate it against the operand ``shapes``.

    Raises :class:`SubscriptSyntaxError`, :class:`RankMismatchError`,
    :class:`UnknownOutputLabelError`, :class:`DuplicateOutputLabelError` or
    :class:`~einplan.core.exceptions.ShapeError`.
    """
    parsed = parse_subscripts(subscripts)
    shapes = [tuple(int(d) for d in shape) for shape in shapes]
    _check_operand_count(parsed, len(shapes))

    widths = [
        _ellipsis_width(term, len(shape), subscripts=subscripts, operand=operand)
        for operand, (term, shape) in enumerate(zip(parsed.inputs, shapes))
    ]
    num_slots = max(widths, default=0)
    specs = tuple(
        _expand(term, width, num_slots) for term, width in zip(parsed.inputs, widths)
    )

    sizes, occurrences = resolve_label_extents(subscripts, specs, shapes)

    if parsed.output is not None:
        output = _explicit_output(parsed, num_slots, occurrences)
    else:
        output = _implicit_output(num_slots, specs)

    plan = EinsumPlan(
        subscripts=subscripts,
        inputs=specs,
        output=output,
        sizes=sizes,
        occurrences=occurrences,
        input_shapes=tuple(shapes),
        explicit_output=parsed.explicit_output,
    )
    logger.debug("parsed einsum %r as %s", subscripts, plan.equation())
    return plan

