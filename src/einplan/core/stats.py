from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Sequence

from .ir import Label


def _prod(values: Iterable[int]) -> int:
    result = 1
    for value in values:
        result *= int(max(1, value))
    return int(result)


def subscript_size(labels: Iterable[Label], sizes: Mapping[Label, int]) -> int:
    """Element count of a tensor carrying ``labels``."""
    return _prod(sizes[label] for label in labels)


def compute_einsum_stats(
    operand_specs: Sequence[Sequence[Label]],
    output_spec: Sequence[Label],
    sizes: Mapping[Label, int],
    itemsize: int = 8,
) -> Dict[str, Any]:
    """Cost estimate of one contraction of ``operand_specs`` into ``output_spec``."""
    involved: List[Label] = []
    for spec in operand_specs:
        for label in spec:
            if label not in involved:
                involved.append(label)
    contracted = [label for label in involved if label not in output_spec]

    output_size = subscript_size(output_spec, sizes)
    contract_size = subscript_size(contracted, sizes)

    if contracted:
        flops = float(2 * output_size * contract_size)
        reductions = int(max(contract_size - 1, 0) * output_size)
    elif len(operand_specs) > 1:
        flops = float(output_size)
        reductions = 0
    else:
        flops = 0.0
        reductions = 0

    bytes_in = 0
    for spec in operand_specs:
        bytes_in += subscript_size(spec, sizes) * int(itemsize)
    bytes_out = output_size * int(itemsize)

    return {
        "flops": flops,
        "bytes_in": int(bytes_in),
        "bytes_out": int(bytes_out),
        "bytes_total": int(bytes_in + bytes_out),
        "contracted": contracted,
        "output_indices": list(output_spec),
        "output_size": int(output_size),
        "reductions": reductions,
    }
