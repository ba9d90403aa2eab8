from __future__ import annotations

from typing import Any, List, Optional, Sequence, Tuple

from .backends import ArrayBackend
from .exceptions import ShapeError
from .ir import Label, Subscript


def _first_repeat(spec: Sequence[Label]) -> Optional[Tuple[int, int]]:
    seen = {}
    for axis, label in enumerate(spec):
        if label in seen:
            return seen[label], axis
        seen[label] = axis
    return None


def take_diagonals(
    backend: ArrayBackend,
    tensor: Any,
    spec: Sequence[Label],
    *,
    subscripts: Optional[str] = None,
) -> Tuple[Any, Subscript]:
    """Collapse every label repeated inside ``spec`` onto a single diagonal axis.

    Each collapsed label moves to the end of the returned subscript.
    """
    labels: List[Label] = list(spec)
    shape = backend.shape(tensor)
    while True:
        repeat = _first_repeat(labels)
        if repeat is None:
            return tensor, tuple(labels)
        first, second = repeat
        if shape[first] != shape[second]:
            raise ShapeError(
                "Diagonal needs equal extents on repeated label",
                subscripts=subscripts,
                label=labels[first],
                extents=[shape[first], shape[second]],
            )
        label = labels[first]
        tensor = backend.diagonal(tensor, first, second)
        labels = [lab for axis, lab in enumerate(labels) if axis not in (first, second)]
        labels.append(label)
        shape = backend.shape(tensor)


def simplify_singleton(
    backend: ArrayBackend,
    tensor: Any,
    spec: Sequence[Label],
    target: Sequence[Label],
    *,
    copy: bool = True,
    subscripts: Optional[str] = None,
) -> Any:
    """Reduce one operand from ``spec`` to ``target``.

    Diagonals first, then sums over labels missing from ``target``, then a
    permutation into ``target`` order with size-1 axes for target labels the
    operand lacks. With ``copy`` the result is freshly allocated even when
    every step was a view of ``tensor``.
    """
    allocated = False
    tensor, labels = take_diagonals(backend, tensor, spec, subscripts=subscripts)

    summed = [axis for axis, label in enumerate(labels) if label not in target]
    if summed:
        tensor = backend.sum(tensor, summed)
        allocated = True
        labels = tuple(label for label in labels if label in target)

    present = [label for label in target if label in labels]
    perm = [labels.index(label) for label in present]
    if perm != list(range(len(labels))):
        tensor = backend.transpose(tensor, perm)

    if len(present) != len(target):
        extents = dict(zip(present, backend.shape(tensor)))
        tensor = backend.reshape(tensor, [extents.get(label, 1) for label in target])

    if copy and not allocated:
        tensor = backend.copy(tensor)
    return tensor
