from __future__ import annotations

import logging
import string
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from .backends import BACKEND_NAMES, ArrayBackend, get_backend
from .exceptions import RankMismatchError, ShapeError
from .executor import contract_pair
from .ir import ContractionPath, EinsumPlan, format_equation, format_subscript, json_ready
from .parser import build_plan
from .planner import METHODS, path_from_pairs, plan_contraction, prepared_specs
from .simplifier import simplify_singleton
from .stats import compute_einsum_stats

logger = logging.getLogger(__name__)

OptimizeArg = Union[None, bool, str, Sequence[Any], ContractionPath]


@dataclass
class ExecutionConfig:
    """
    Switches shared by :func:`einsum`, :func:`einsum_path` and :func:`tensordot`.

    * ``optimize`` picks the pairwise ordering strategy: ``"greedy"`` (default),
      ``"naive"`` (left to right), ``"reverse"`` (right to left) or
      ``"optimal"`` (exhaustive, capped by ``optimal_limit`` operands).
    * ``backend`` is ``"auto"``, ``"numpy"`` or ``"torch"``.
    * ``max_live_operands`` bounds how many live operands one greedy step scores.
    * ``copy_singleton`` makes single-operand results fresh arrays even when
      the subscripts leave the operand unchanged.
    """

    optimize: str = "greedy"
    backend: str = "auto"
    optimal_limit: int = 4
    max_live_operands: Optional[int] = None
    copy_singleton: bool = True

    def normalized(self) -> "ExecutionConfig":
        optimize = (self.optimize or "greedy").lower()
        if optimize not in METHODS:
            raise ValueError(f"Unsupported optimize strategy: {self.optimize}")
        backend = (self.backend or "auto").lower()
        if backend not in BACKEND_NAMES:
            raise ValueError(f"Unsupported backend: {self.backend}")
        limit = int(self.optimal_limit)
        if limit < 2:
            raise ValueError("optimal_limit must be at least 2")
        max_live = self.max_live_operands
        if max_live is not None:
            max_live = int(max_live)
            if max_live < 2:
                raise ValueError("max_live_operands must be at least 2 when provided")
        return replace(
            self,
            optimize=optimize,
            backend=backend,
            optimal_limit=limit,
            max_live_operands=max_live,
            copy_singleton=bool(self.copy_singleton),
        )


def _resolve_config(
    config: Optional[ExecutionConfig],
    *,
    optimize: OptimizeArg = None,
    backend: Optional[str] = None,
) -> Tuple[ExecutionConfig, OptimizeArg]:
    cfg = config or ExecutionConfig()
    explicit_path: OptimizeArg = None
    if optimize is True:
        cfg = replace(cfg, optimize="greedy")
    elif optimize is False:
        cfg = replace(cfg, optimize="naive")
    elif isinstance(optimize, str):
        cfg = replace(cfg, optimize=optimize)
    elif optimize is not None:
        explicit_path = optimize
    if backend is not None and not isinstance(backend, ArrayBackend):
        cfg = replace(cfg, backend=backend)
    return cfg.normalized(), explicit_path


def _shape_of(operand: Any) -> Tuple[int, ...]:
    shape = getattr(operand, "shape", None)
    if shape is None:
        shape = np.shape(operand)
    return tuple(int(d) for d in shape)


def parse_einsum(subscripts: str, *shapes: Sequence[int]) -> EinsumPlan:
    """Validated :class:`EinsumPlan` for operands of the given ``shapes``."""
    return build_plan(subscripts, shapes)


class CompiledEinsum:
    """A planned einsum: validated subscripts plus the chosen contraction path.

    Call it (or :meth:`contract`) with operands shaped like the ones it was
    planned for.
    """

    def __init__(self, plan: EinsumPlan, path: ContractionPath, config: ExecutionConfig):
        self.plan = plan
        self.path = path
        self.config = config

    @property
    def steps(self):
        return self.path.steps

    def linear_path(self) -> List[Tuple[int, int]]:
        return self.path.linear_path()

    def __call__(self, *operands: Any, backend: Union[None, str, ArrayBackend] = None) -> Any:
        return self.contract(*operands, backend=backend)

    def _check_operands(self, shapes: Sequence[Tuple[int, ...]]) -> None:
        plan = self.plan
        if len(shapes) != plan.num_operands:
            raise RankMismatchError(
                f"Planned for {plan.num_operands} operands but {len(shapes)} were given",
                subscripts=plan.subscripts,
                operand=min(len(shapes), plan.num_operands),
                expected=plan.num_operands,
                actual=len(shapes),
            )
        for operand, (shape, planned) in enumerate(zip(shapes, plan.input_shapes)):
            if len(shape) != len(planned):
                raise RankMismatchError(
                    f"Operand has rank {len(shape)}, planned rank {len(planned)}",
                    subscripts=plan.subscripts,
                    operand=operand,
                    expected=len(planned),
                    actual=len(shape),
                )
            for axis, (want, got) in enumerate(zip(planned, shape)):
                if want != got:
                    raise ShapeError(
                        f"Operand shape differs from the planned shape on axis {axis}",
                        subscripts=plan.subscripts,
                        label=format_subscript([plan.inputs[operand][axis]]),
                        extents=[want, got],
                        operand=operand,
                    )

    def contract(self, *operands: Any, backend: Union[None, str, ArrayBackend] = None) -> Any:
        plan = self.plan
        xp = get_backend(backend if backend is not None else self.config.backend, operands)
        arrays = [xp.asarray(op) for op in operands]
        self._check_operands([xp.shape(a) for a in arrays])

        if plan.num_operands == 1:
            return simplify_singleton(
                xp,
                arrays[0],
                plan.inputs[0],
                plan.output,
                copy=self.config.copy_singleton,
                subscripts=plan.subscripts,
            )

        live: Dict[int, Any] = {}
        for position, (array, spec, kept) in enumerate(zip(arrays, plan.inputs, self.path.inputs)):
            live[position] = simplify_singleton(
                xp, array, spec, kept, copy=False, subscripts=plan.subscripts
            )
        for step in self.path.steps:
            lhs = live.pop(step.lhs)
            rhs = live.pop(step.rhs)
            live[step.result] = contract_pair(
                xp,
                lhs,
                step.lhs_spec,
                rhs,
                step.rhs_spec,
                step.result_spec,
                subscripts=plan.subscripts,
            )
            logger.debug("step %s -> id %d", step.equation(), step.result)

        (result,) = live.values()
        return result

    def step_stats(self, itemsize: int = 8) -> List[Dict[str, Any]]:
        sizes = self.plan.sizes
        stats: List[Dict[str, Any]] = []
        if not self.path.steps:
            stats.append(
                compute_einsum_stats(self.plan.inputs, self.plan.output, sizes, itemsize)
            )
            return stats
        for step in self.path.steps:
            stats.append(
                compute_einsum_stats(
                    [step.lhs_spec, step.rhs_spec], step.result_spec, sizes, itemsize
                )
            )
        return stats

    def explain(self, *, json: bool = False) -> Any:
        plan = self.plan
        stats = self.step_stats()
        steps: List[Dict[str, Any]] = []
        if self.path.steps:
            for index, (step, info) in enumerate(zip(self.path.steps, stats)):
                steps.append(
                    {
                        "index": index,
                        "operands": [step.lhs, step.rhs],
                        "result_id": step.result,
                        "equation": step.equation(),
                        "result_shape": [plan.sizes[label] for label in step.result_spec],
                        "size": info["output_size"],
                        "flops": info["flops"],
                        "contracted": [format_subscript([c]) for c in info["contracted"]],
                    }
                )
        else:
            info = stats[0]
            steps.append(
                {
                    "index": 0,
                    "operands": [0],
                    "result_id": 0,
                    "equation": plan.equation(),
                    "result_shape": list(plan.output_shape),
                    "size": info["output_size"],
                    "flops": info["flops"],
                    "contracted": [format_subscript([c]) for c in info["contracted"]],
                }
            )

        payload = {
            "subscripts": plan.subscripts,
            "equation": plan.equation(),
            "method": self.path.method,
            "path": [list(pair) for pair in self.path.linear_path()],
            "output_shape": list(plan.output_shape),
            "total_flops": float(sum(entry["flops"] for entry in steps)),
            "largest_intermediate": max((entry["size"] for entry in steps), default=1),
            "steps": steps,
        }
        if json:
            return json_ready(payload)

        lines = [
            f"einsum '{plan.subscripts}' as {payload['equation']}",
            f"  method: {payload['method']}",
            f"  path: {payload['path']}",
            f"  output shape: {tuple(payload['output_shape'])}",
            f"  estimated flops: {payload['total_flops']:.3e}",
            f"  largest intermediate: {payload['largest_intermediate']} elements",
        ]
        for entry in steps:
            lines.append(
                f"  [step {entry['index']}] {tuple(entry['operands'])} {entry['equation']}"
                f" -> shape {tuple(entry['result_shape'])}, flops {entry['flops']:.3e}"
            )
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"CompiledEinsum({self.plan.subscripts!r}, method={self.path.method!r})"


def _build_path(
    plan: EinsumPlan, cfg: ExecutionConfig, explicit_path: OptimizeArg
) -> ContractionPath:
    specs = prepared_specs(plan.inputs, plan.output)
    if isinstance(explicit_path, ContractionPath):
        return path_from_pairs(specs, plan.output, explicit_path.ssa_path(), ssa=True)
    if explicit_path is not None:
        return path_from_pairs(specs, plan.output, list(explicit_path))
    return plan_contraction(
        specs,
        plan.output,
        plan.sizes,
        method=cfg.optimize,
        optimal_limit=cfg.optimal_limit,
        max_live_operands=cfg.max_live_operands,
    )


def einsum_path(
    subscripts: str,
    *operands: Any,
    optimize: OptimizeArg = None,
    config: Optional[ExecutionConfig] = None,
) -> CompiledEinsum:
    """Validate and plan an einsum without running it.

    ``operands`` may be arrays or anything with a ``shape``; only shapes are
    read. ``optimize`` takes a strategy name, ``True``/``False``, a NumPy-style
    list of position pairs, or a :class:`ContractionPath`.
    """
    cfg, explicit_path = _resolve_config(config, optimize=optimize)
    plan = build_plan(subscripts, [_shape_of(op) for op in operands])
    path = _build_path(plan, cfg, explicit_path)
    logger.debug("planned %s with %s: %s", subscripts, path.method, path.linear_path())
    return CompiledEinsum(plan, path, cfg)


def einsum(
    subscripts: str,
    *operands: Any,
    optimize: OptimizeArg = None,
    backend: Union[None, str, ArrayBackend] = None,
    config: Optional[ExecutionConfig] = None,
) -> Any:
    """Evaluate the Einstein summation ``subscripts`` over ``operands``.

    >>> import numpy as np
    >>> einsum("ab->a", np.array([[1, 2, 3], [4, 5, 6]]))
    array([ 6, 15])
    """
    cfg, explicit_path = _resolve_config(config, optimize=optimize, backend=backend)
    xp = get_backend(backend if isinstance(backend, ArrayBackend) else cfg.backend, operands)
    arrays = [xp.asarray(op) for op in operands]
    plan = build_plan(subscripts, [xp.shape(a) for a in arrays])
    path = _build_path(plan, cfg, explicit_path)
    return CompiledEinsum(plan, path, cfg).contract(*arrays, backend=xp)


def tensordot(
    a: Any,
    b: Any,
    axes: Union[int, Sequence[Sequence[int]]] = 2,
    *,
    backend: Union[None, str, ArrayBackend] = None,
) -> Any:
    """NumPy-style ``tensordot`` routed through the pairwise executor.

    ``axes`` is either the number of trailing axes of ``a`` matched with the
    leading axes of ``b``, or a pair of equal-length axis sequences.
    """
    xp = get_backend(backend if backend is not None else "auto", (a, b))
    a, b = xp.asarray(a), xp.asarray(b)
    a_rank, b_rank = len(xp.shape(a)), len(xp.shape(b))

    if isinstance(axes, int):
        if axes < 0 or axes > min(a_rank, b_rank):
            raise ValueError(f"tensordot axes={axes} out of range for ranks {a_rank} and {b_rank}")
        a_axes = list(range(a_rank - axes, a_rank))
        b_axes = list(range(axes))
    else:
        a_axes, b_axes = (list(ax) if not isinstance(ax, int) else [ax] for ax in axes)
        if len(a_axes) != len(b_axes):
            raise ValueError("tensordot axis lists must have equal length")
    a_axes = [ax % a_rank if a_rank else ax for ax in a_axes]
    b_axes = [ax % b_rank if b_rank else ax for ax in b_axes]
    if len(set(a_axes)) != len(a_axes) or len(set(b_axes)) != len(b_axes):
        raise ValueError("tensordot axis lists must not repeat an axis")

    if a_rank + b_rank - len(a_axes) > len(string.ascii_letters):
        raise ValueError("tensordot operands have too many axes to label")
    letters = iter(string.ascii_letters)
    a_spec = [next(letters) for _ in range(a_rank)]
    b_spec = [""] * b_rank
    for a_ax, b_ax in zip(a_axes, b_axes):
        b_spec[b_ax] = a_spec[a_ax]
    for position, label in enumerate(b_spec):
        if not label:
            b_spec[position] = next(letters)
    contracted = {a_spec[ax] for ax in a_axes}
    out_spec = [lab for lab in a_spec if lab not in contracted] + [
        lab for lab in b_spec if lab not in contracted
    ]
    subscripts = format_equation([a_spec, b_spec], out_spec)
    logger.debug("tensordot as %s", subscripts)
    return contract_pair(xp, a, a_spec, b, b_spec, out_spec, subscripts=subscripts)
