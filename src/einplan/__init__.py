import logging
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _load_version

from .core.backends import ArrayBackend, NumpyBackend, TorchBackend, get_backend
from .core.engine import (
    CompiledEinsum,
    ExecutionConfig,
    einsum,
    einsum_path,
    parse_einsum,
    tensordot,
)
from .core.exceptions import (
    BackendError,
    DuplicateOutputLabelError,
    EinsumError,
    RankMismatchError,
    ShapeError,
    SubscriptSyntaxError,
    UnknownOutputLabelError,
)
from .core.ir import ContractionPath, ContractionStep, EinsumPlan
from .core.reference import reference_einsum

logging.getLogger(__name__).addHandler(logging.NullHandler())

try:
    __version__ = _load_version("einplan")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "einsum",
    "einsum_path",
    "parse_einsum",
    "tensordot",
    "reference_einsum",
    "CompiledEinsum",
    "ExecutionConfig",
    "EinsumPlan",
    "ContractionPath",
    "ContractionStep",
    "ArrayBackend",
    "NumpyBackend",
    "TorchBackend",
    "get_backend",
    "EinsumError",
    "SubscriptSyntaxError",
    "RankMismatchError",
    "UnknownOutputLabelError",
    "DuplicateOutputLabelError",
    "ShapeError",
    "BackendError",
    "__version__",
]
