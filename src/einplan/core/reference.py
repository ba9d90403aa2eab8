from __future__ import annotations

import itertools
from typing import Any

import numpy as np

from .parser import build_plan


def reference_einsum(subscripts: str, *operands: Any) -> np.ndarray:
    """Direct sum over every label assignment.

    Cost is the product of all label extents, so this is only meant as a
    correctness oracle on small inputs. Size-1 axes broadcast by always being
    read at index 0.
    """
    arrays = [np.asarray(op) for op in operands]
    plan = build_plan(subscripts, [a.shape for a in arrays])
    labels = plan.labels
    position = {label: i for i, label in enumerate(labels)}
    dtype = np.result_type(*arrays) if arrays else np.float64
    out = np.zeros(plan.output_shape, dtype=dtype)

    for values in itertools.product(*(range(plan.sizes[label]) for label in labels)):
        term = None
        for array, spec in zip(arrays, plan.inputs):
            index = tuple(
                values[position[label]] if extent != 1 else 0
                for label, extent in zip(spec, array.shape)
            )
            factor = array[index]
            term = factor if term is None else term * factor
        out_index = tuple(values[position[label]] for label in plan.output)
        out[out_index] += term
    return out
