import numpy as np

from einplan import einsum, einsum_path

# A(10x2) B(2x10) C(10x2): left to right builds a 10x10 intermediate,
# greedy merges B and C first and never leaves 2x2.
rng = np.random.default_rng(0)
A = rng.normal(size=(10, 2))
B = rng.normal(size=(2, 10))
C = rng.normal(size=(10, 2))

for method in ("naive", "greedy"):
    compiled = einsum_path("ij,jk,kl->il", A, B, C, optimize=method)
    print(compiled.explain())
    print()

out = einsum("ij,jk,kl->il", A, B, C)
print("max |einsum - A@B@C|:", float(np.max(np.abs(out - A @ B @ C))))
