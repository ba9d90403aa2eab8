from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from .exceptions import ShapeError
from .ir import Label, Subscript


def broadcast_extent(
    label: Label,
    extents: Sequence[int],
    *,
    subscripts: Optional[str] = None,
    operand: Optional[int] = None,
) -> int:
    """Common extent of ``extents`` where size-1 axes stretch to match any other."""
    distinct = sorted({int(e) for e in extents if int(e) != 1})
    if len(distinct) > 1:
        raise ShapeError(
            "Incompatible extents for broadcast label",
            subscripts=subscripts,
            label=label,
            extents=distinct,
            operand=operand,
        )
    return distinct[0] if distinct else 1


def resolve_label_extents(
    subscripts: str,
    specs: Sequence[Subscript],
    shapes: Sequence[Sequence[int]],
) -> Tuple[Dict[Label, int], Dict[Label, Tuple[Tuple[int, int], ...]]]:
    """Map every label to its broadcast extent and its ``(operand, axis)`` positions.

    Repeats of a label inside one operand describe a diagonal and must have
    exactly equal extents. Across operands size-1 axes broadcast.
    """
    per_label: Dict[Label, List[Tuple[int, int]]] = {}
    occurrences: Dict[Label, List[Tuple[int, int]]] = {}

    for operand, (spec, shape) in enumerate(zip(specs, shapes)):
        local: Dict[Label, int] = {}
        for axis, (label, extent) in enumerate(zip(spec, shape)):
            extent = int(extent)
            if extent < 0:
                raise ShapeError(
                    "Negative axis extent",
                    subscripts=subscripts,
                    label=label,
                    extents=[extent],
                    operand=operand,
                )
            seen = local.get(label)
            if seen is not None and seen != extent:
                raise ShapeError(
                    "Repeated label inside one operand needs equal extents for a diagonal",
                    subscripts=subscripts,
                    label=label,
                    extents=[seen, extent],
                    operand=operand,
                )
            local[label] = extent
            occurrences.setdefault(label, []).append((operand, axis))
        for label, extent in local.items():
            per_label.setdefault(label, []).append((operand, extent))

    sizes: Dict[Label, int] = {}
    for label, entries in per_label.items():
        resolved = 1
        for operand, extent in entries:
            if extent == 1:
                continue
            if resolved != 1 and extent != resolved:
                raise ShapeError(
                    "Incompatible extents for label shared between operands",
                    subscripts=subscripts,
                    label=label,
                    extents=[resolved, extent],
                    operand=operand,
                )
            resolved = extent
        sizes[label] = resolved
    return sizes, {label: tuple(pos) for label, pos in occurrences.items()}


def check_pair_extents(
    lhs_spec: Subscript,
    lhs_shape: Sequence[int],
    rhs_spec: Subscript,
    rhs_shape: Sequence[int],
    *,
    subscripts: Optional[str] = None,
) -> Dict[Label, int]:
    """Resolved extent of every label of a pairwise step."""
    sizes: Dict[Label, int] = {}
    lhs_extents = dict(zip(lhs_spec, (int(d) for d in lhs_shape)))
    rhs_extents = dict(zip(rhs_spec, (int(d) for d in rhs_shape)))
    for label, extent in lhs_extents.items():
        if label in rhs_extents:
            sizes[label] = broadcast_extent(
                label, (extent, rhs_extents[label]), subscripts=subscripts
            )
        else:
            sizes[label] = extent
    for label, extent in rhs_extents.items():
        sizes.setdefault(label, extent)
    return sizes
