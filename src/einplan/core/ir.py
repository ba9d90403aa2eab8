from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

Label = str
Subscript = Tuple[Label, ...]

BROADCAST_PREFIX = "..."


def broadcast_label(slot: int) -> Label:
    """Synthetic label for the ``slot``-th broadcast axis of an ellipsis."""
    return f"{BROADCAST_PREFIX}{int(slot)}"


def is_broadcast_label(label: Label) -> bool:
    return label.startswith(BROADCAST_PREFIX)


def label_sort_key(label: Label) -> Tuple[int, Any]:
    # broadcast slots sort before explicit labels, in slot order
    if is_broadcast_label(label):
        return (0, int(label[len(BROADCAST_PREFIX):]))
    return (1, label)


def format_subscript(labels: Iterable[Label]) -> str:
    """Render a label sequence, collapsing each run of broadcast slots to ``...``."""
    parts: List[str] = []
    in_run = False
    for label in labels:
        if is_broadcast_label(label):
            if not in_run:
                parts.append("...")
            in_run = True
            continue
        in_run = False
        parts.append(label)
    return "".join(parts)


def format_equation(inputs: Sequence[Sequence[Label]], output: Sequence[Label]) -> str:
    lhs = ",".join(format_subscript(spec) for spec in inputs)
    return f"{lhs}->{format_subscript(output)}"


@dataclass(frozen=True)
class EinsumPlan:
    """Validated form of one einsum call.

    ``inputs`` holds one label tuple per operand with ellipses already expanded
    into broadcast labels, ``output`` the explicit or inferred output labels,
    ``sizes`` the broadcast-resolved extent of every label and
    ``occurrences`` every ``(operand, axis)`` position a label occupies.
    """

    subscripts: str
    inputs: Tuple[Subscript, ...]
    output: Subscript
    sizes: Mapping[Label, int] = field(hash=False)
    occurrences: Mapping[Label, Tuple[Tuple[int, int], ...]] = field(hash=False)
    input_shapes: Tuple[Tuple[int, ...], ...] = ()
    explicit_output: bool = True

    @property
    def num_operands(self) -> int:
        return len(self.inputs)

    @property
    def output_shape(self) -> Tuple[int, ...]:
        return tuple(self.sizes[label] for label in self.output)

    @property
    def labels(self) -> List[Label]:
        return sorted(self.sizes, key=label_sort_key)

    def equation(self) -> str:
        return format_equation(self.inputs, self.output)

    def summed_labels(self) -> List[Label]:
        return [label for label in self.labels if label not in self.output]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subscripts": self.subscripts,
            "inputs": [list(spec) for spec in self.inputs],
            "output": list(self.output),
            "sizes": {label: int(size) for label, size in self.sizes.items()},
            "occurrences": {
                label: [list(pos) for pos in positions]
                for label, positions in self.occurrences.items()
            },
            "input_shapes": [list(shape) for shape in self.input_shapes],
            "explicit_output": self.explicit_output,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "EinsumPlan":
        return cls(
            subscripts=str(payload["subscripts"]),
            inputs=tuple(tuple(spec) for spec in payload["inputs"]),
            output=tuple(payload["output"]),
            sizes={str(k): int(v) for k, v in payload["sizes"].items()},
            occurrences={
                str(k): tuple((int(op), int(ax)) for op, ax in v)
                for k, v in payload["occurrences"].items()
            },
            input_shapes=tuple(tuple(int(d) for d in s) for s in payload.get("input_shapes", ())),
            explicit_output=bool(payload.get("explicit_output", True)),
        )


@dataclass(frozen=True)
class ContractionStep:
    """One pairwise merge. Ids are SSA: inputs are ``0..n-1``, results count up from ``n``."""

    lhs: int
    rhs: int
    lhs_spec: Subscript
    rhs_spec: Subscript
    result_spec: Subscript
    result: int

    def equation(self) -> str:
        return format_equation([self.lhs_spec, self.rhs_spec], self.result_spec)

    def contracted_labels(self) -> List[Label]:
        return [
            label
            for label in self.lhs_spec
            if label in self.rhs_spec and label not in self.result_spec
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operands": [self.lhs, self.rhs],
            "lhs": list(self.lhs_spec),
            "rhs": list(self.rhs_spec),
            "result": list(self.result_spec),
            "result_id": self.result,
            "equation": self.equation(),
        }


@dataclass(frozen=True)
class ContractionPath:
    """Ordered pairwise merges that reduce ``inputs`` to ``output``.

    ``inputs`` are the operand subscripts after single-operand preparation
    (diagonals taken, labels private to one operand summed away).
    """

    inputs: Tuple[Subscript, ...]
    output: Subscript
    steps: Tuple[ContractionStep, ...]
    method: str

    def ssa_path(self) -> List[Tuple[int, int]]:
        return [(step.lhs, step.rhs) for step in self.steps]

    def linear_path(self) -> List[Tuple[int, int]]:
        """The path in NumPy's ``einsum_path`` form, with positions recycled."""
        ids = list(range(len(self.inputs)))
        path: List[Tuple[int, int]] = []
        for step in self.steps:
            con = sorted(bisect.bisect_left(ids, s) for s in (step.lhs, step.rhs))
            for j in reversed(con):
                ids.pop(j)
            ids.append(step.result)
            path.append((con[0], con[1]))
        return path

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "inputs": [list(spec) for spec in self.inputs],
            "output": list(self.output),
            "steps": [step.to_dict() for step in self.steps],
            "path": [list(pair) for pair in self.linear_path()],
        }


def linear_to_ssa(path: Sequence[Sequence[int]], num_inputs: int) -> List[Tuple[int, int]]:
    """Convert NumPy-style pairs with recycled positions to SSA id pairs."""
    ids = list(range(num_inputs))
    ssa = num_inputs
    ssa_path: List[Tuple[int, int]] = []
    for con in path:
        if len(con) != 2:
            raise ValueError(f"Contraction path entries must be pairs, got {tuple(con)}")
        first, second = (int(c) for c in con)
        if first == second:
            raise ValueError(f"Contraction path pair {tuple(con)} names one operand twice")
        if not all(0 <= c < len(ids) for c in (first, second)):
            raise ValueError(
                f"Contraction path pair {tuple(con)} out of range for {len(ids)} live operands"
            )
        lo, hi = sorted((first, second))
        pair = (ids[lo], ids[hi])
        ids.pop(hi)
        ids.pop(lo)
        ids.append(ssa)
        ssa_path.append(pair)
        ssa += 1
    return ssa_path


def json_ready(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if hasattr(value, "to_dict"):
        return json_ready(value.to_dict())
    if hasattr(value, "item") and callable(value.item) and getattr(value, "ndim", 1) == 0:
        return value.item()
    if isinstance(value, dict):
        return {str(k): json_ready(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [json_ready(v) for v in value]
    return str(value)
