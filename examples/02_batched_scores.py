import numpy as np

from einplan import einsum

# Attention-style scores over arbitrary leading batch axes.
rng = np.random.default_rng(1)
Q = rng.normal(size=(2, 4, 5, 8))  # batch, heads, queries, dim
K = rng.normal(size=(4, 7, 8))  # heads, keys, dim (shared across the batch)
V = rng.normal(size=(4, 7, 3))

scores = einsum("...qd,...kd->...qk", Q, K) / np.sqrt(Q.shape[-1])
weights = np.exp(scores - scores.max(axis=-1, keepdims=True))
weights /= weights.sum(axis=-1, keepdims=True)
attn = einsum("...qk,...kv->...qv", weights, V)
print("scores:", scores.shape, "attention:", attn.shape)

# Diagonal and trace through repeated labels
M = rng.normal(size=(6, 6))
print("trace:", float(einsum("ii", M)), "diag:", einsum("ii->i", M)[:3])
