import json

import numpy as np

from einplan import ExecutionConfig, einsum, einsum_path, reference_einsum

# Ring of four tensors with uneven bond sizes.
sizes = {"a": 7, "b": 2, "c": 9, "d": 3}
equation = "ab,bc,cd,da->"
rng = np.random.default_rng(2)
operands = [rng.normal(size=(sizes[t[0]], sizes[t[1]])) for t in equation.split("->")[0].split(",")]

for method in ("greedy", "optimal", "reverse"):
    compiled = einsum_path(equation, *operands, config=ExecutionConfig(optimize=method))
    info = compiled.explain(json=True)
    print(method, "path", info["path"], "flops", info["total_flops"])

best = einsum_path(equation, *operands, optimize="optimal")
print(json.dumps(best.path.to_dict(), indent=2))

value = einsum(equation, *operands, optimize=best.path)
print("ring value:", float(value), "reference:", float(reference_einsum(equation, *operands)))
