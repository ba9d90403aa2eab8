from __future__ import annotations

from typing import Any, Optional, Sequence, Tuple

import numpy as np

from .exceptions import BackendError

BACKEND_NAMES = ("auto", "numpy", "torch")


class ArrayBackend:
    """Primitive dense-array operations the contraction engine relies on.

    Every method returns a new array or a read-only view; operands handed in by
    callers are never written to.
    """

    name = "abstract"

    def asarray(self, value: Any) -> Any:
        raise NotImplementedError

    def shape(self, x: Any) -> Tuple[int, ...]:
        raise NotImplementedError

    def transpose(self, x: Any, axes: Sequence[int]) -> Any:
        raise NotImplementedError

    def reshape(self, x: Any, shape: Sequence[int]) -> Any:
        raise NotImplementedError

    def broadcast_to(self, x: Any, shape: Sequence[int]) -> Any:
        raise NotImplementedError

    def sum(self, x: Any, axes: Sequence[int]) -> Any:
        raise NotImplementedError

    def multiply(self, a: Any, b: Any) -> Any:
        raise NotImplementedError

    def matmul(self, a: Any, b: Any) -> Any:
        raise NotImplementedError

    def diagonal(self, x: Any, axis1: int, axis2: int) -> Any:
        """Diagonal over two axes, appended as the last axis (NumPy convention)."""
        raise NotImplementedError

    def copy(self, x: Any) -> Any:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class NumpyBackend(ArrayBackend):
    name = "numpy"

    def asarray(self, value: Any) -> np.ndarray:
        return np.asarray(value)

    def shape(self, x: np.ndarray) -> Tuple[int, ...]:
        return tuple(int(d) for d in x.shape)

    def transpose(self, x: np.ndarray, axes: Sequence[int]) -> np.ndarray:
        return np.transpose(x, tuple(axes))

    def reshape(self, x: np.ndarray, shape: Sequence[int]) -> np.ndarray:
        return np.reshape(x, tuple(shape))

    def broadcast_to(self, x: np.ndarray, shape: Sequence[int]) -> np.ndarray:
        # stride-0 view, materialized only if a later reshape needs it
        return np.broadcast_to(x, tuple(shape))

    def sum(self, x: np.ndarray, axes: Sequence[int]) -> np.ndarray:
        if not axes:
            return x
        return np.asarray(np.sum(x, axis=tuple(axes), dtype=x.dtype))

    def multiply(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        return np.asarray(np.multiply(a, b))

    def matmul(self, a: np.ndarray, b: np.ndarray) -> np.ndarray:
        return np.matmul(a, b)

    def diagonal(self, x: np.ndarray, axis1: int, axis2: int) -> np.ndarray:
        return np.diagonal(x, axis1=axis1, axis2=axis2)

    def copy(self, x: np.ndarray) -> np.ndarray:
        return np.array(x, copy=True)


class TorchBackend(ArrayBackend):
    name = "torch"

    def __init__(self) -> None:
        try:
            import torch
        except ImportError as exc:
            raise BackendError(
                "The torch backend requires PyTorch; install einplan[torch]"
            ) from exc
        self._torch = torch

    def asarray(self, value: Any) -> Any:
        return self._torch.as_tensor(value)

    def shape(self, x: Any) -> Tuple[int, ...]:
        return tuple(int(d) for d in x.shape)

    def transpose(self, x: Any, axes: Sequence[int]) -> Any:
        return x.permute(*axes)

    def reshape(self, x: Any, shape: Sequence[int]) -> Any:
        return x.reshape(tuple(shape))

    def broadcast_to(self, x: Any, shape: Sequence[int]) -> Any:
        return x.expand(*shape)

    def sum(self, x: Any, axes: Sequence[int]) -> Any:
        if not axes:
            return x
        # torch widens integer sums to int64; keep the operand dtype
        return self._torch.sum(x, dim=tuple(axes)).to(x.dtype)

    def multiply(self, a: Any, b: Any) -> Any:
        return self._torch.mul(a, b)

    def matmul(self, a: Any, b: Any) -> Any:
        return self._torch.matmul(a, b)

    def diagonal(self, x: Any, axis1: int, axis2: int) -> Any:
        return self._torch.diagonal(x, dim1=axis1, dim2=axis2)

    def copy(self, x: Any) -> Any:
        return x.clone()


def _is_torch_tensor(value: Any) -> bool:
    return type(value).__module__.split(".", 1)[0] == "torch"


def get_backend(name: Optional[str] = "auto", operands: Sequence[Any] = ()) -> ArrayBackend:
    """Resolve a backend by name; ``"auto"`` picks torch when any operand is a tensor."""
    if isinstance(name, ArrayBackend):
        return name
    key = (name or "auto").strip().lower()
    if key not in BACKEND_NAMES:
        raise BackendError(
            f"Unknown array backend '{name}'; expected one of {', '.join(BACKEND_NAMES)}"
        )
    if key == "auto":
        key = "torch" if any(_is_torch_tensor(op) for op in operands) else "numpy"
    if key == "torch":
        return TorchBackend()
    return NumpyBackend()
