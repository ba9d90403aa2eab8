from __future__ import annotations

from typing import Any, List, Optional, Sequence, Tuple

from .backends import ArrayBackend
from .ir import Label, Subscript
from .shape_checker import check_pair_extents
from .simplifier import simplify_singleton


def _check_step(lhs_spec: Subscript, rhs_spec: Subscript, target: Subscript) -> None:
    for name, spec in (("left", lhs_spec), ("right", rhs_spec), ("target", target)):
        if len(set(spec)) != len(spec):
            raise ValueError(f"Pairwise {name} subscript {spec} repeats a label")
    missing = [label for label in target if label not in lhs_spec and label not in rhs_spec]
    if missing:
        raise ValueError(f"Target labels {missing} appear in neither pairwise operand")


def _sum_private(
    backend: ArrayBackend,
    tensor: Any,
    spec: Subscript,
    other: Subscript,
    target: Subscript,
) -> Tuple[Any, Subscript]:
    axes = [axis for axis, label in enumerate(spec) if label not in other and label not in target]
    if not axes:
        return tensor, spec
    kept = tuple(label for label in spec if label in other or label in target)
    return backend.sum(tensor, axes), kept


def _arrange(
    backend: ArrayBackend,
    tensor: Any,
    spec: Subscript,
    order: Sequence[Label],
    extents: dict,
) -> Any:
    """Permute ``tensor`` into ``order`` and stretch size-1 axes to ``extents``."""
    perm = [spec.index(label) for label in order]
    if perm != list(range(len(spec))):
        tensor = backend.transpose(tensor, perm)
    shape = backend.shape(tensor)
    wanted = [extents[label] for label in order]
    if list(shape) != wanted:
        tensor = backend.broadcast_to(tensor, wanted)
    return tensor


def contract_pair(
    backend: ArrayBackend,
    lhs: Any,
    lhs_spec: Sequence[Label],
    rhs: Any,
    rhs_spec: Sequence[Label],
    target: Sequence[Label],
    *,
    subscripts: Optional[str] = None,
) -> Any:
    """Contract two operands into ``target`` through one batched matrix multiply.

    Neither subscript may repeat a label. Labels shared by both operands and
    the target are batch axes, shared labels missing from the target are
    summed, the rest are free on one side. Size-1 extents broadcast against
    the other operand; any other mismatch raises
    :class:`~einplan.core.exceptions.ShapeError`.
    """
    lhs_spec, rhs_spec, target = tuple(lhs_spec), tuple(rhs_spec), tuple(target)
    _check_step(lhs_spec, rhs_spec, target)

    lhs, lhs_spec = _sum_private(backend, lhs, lhs_spec, rhs_spec, target)
    rhs, rhs_spec = _sum_private(backend, rhs, rhs_spec, lhs_spec, target)

    extents = check_pair_extents(
        lhs_spec,
        backend.shape(lhs),
        rhs_spec,
        backend.shape(rhs),
        subscripts=subscripts,
    )

    if not lhs_spec or not rhs_spec:
        # scalar times tensor
        product = backend.multiply(lhs, rhs)
        spec = rhs_spec if not lhs_spec else lhs_spec
        return simplify_singleton(backend, product, spec, target, copy=False)

    if set(lhs_spec) == set(rhs_spec) and all(label in target for label in lhs_spec):
        # Hadamard product; elementwise broadcasting covers size-1 axes
        rhs = backend.transpose(rhs, [rhs_spec.index(label) for label in lhs_spec])
        product = backend.multiply(lhs, rhs)
        return simplify_singleton(backend, product, lhs_spec, target, copy=False)

    batch = [label for label in lhs_spec if label in rhs_spec and label in target]
    contracted = [label for label in lhs_spec if label in rhs_spec and label not in target]
    free_lhs = [label for label in lhs_spec if label not in rhs_spec]
    free_rhs = [label for label in rhs_spec if label not in lhs_spec]

    batch_size = _exact_size(extents, batch)
    contract_size = _exact_size(extents, contracted)
    lhs_free_size = _exact_size(extents, free_lhs)
    rhs_free_size = _exact_size(extents, free_rhs)

    a = _arrange(backend, lhs, lhs_spec, batch + free_lhs + contracted, extents)
    b = _arrange(backend, rhs, rhs_spec, batch + contracted + free_rhs, extents)
    a = backend.reshape(a, (batch_size, lhs_free_size, contract_size))
    b = backend.reshape(b, (batch_size, contract_size, rhs_free_size))

    product = backend.matmul(a, b)

    labels: List[Label] = batch + free_lhs + free_rhs
    product = backend.reshape(product, [extents[label] for label in labels])
    perm = [labels.index(label) for label in target]
    if perm != list(range(len(labels))):
        product = backend.transpose(product, perm)
    return product


def _exact_size(extents: dict, labels: Sequence[Label]) -> int:
    size = 1
    for label in labels:
        size *= int(extents[label])
    return size
