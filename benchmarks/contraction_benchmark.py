#!/usr/bin/env python3
"""
Contraction-order benchmark.

Times ``einplan.einsum`` on a matrix chain and a tensor ring under each
ordering strategy, next to ``numpy.einsum`` with ``optimize="greedy"``.
Planning cost is reported separately from execution.
"""

from __future__ import annotations

import argparse
import math
import sys
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Sequence

import numpy as np

from einplan import ExecutionConfig, einsum_path

WORKLOADS = {
    "chain": "ab,bc,cd,de,ef->af",
    "ring": "ab,bc,cd,da->",
    "batched": "...ij,...jk,...kl->...il",
}


@dataclass
class BenchmarkResult:
    workload: str
    method: str
    plan_s: float
    min_s: float
    mean_s: float
    iterations: int
    flops: Optional[float]


def build_operands(workload: str, *, dim: int, bond: int, batch: int, seed: int) -> List[Any]:
    rng = np.random.default_rng(seed)
    if workload == "chain":
        shapes = [(dim, bond), (bond, dim), (dim, bond), (bond, dim), (dim, bond)]
    elif workload == "ring":
        shapes = [(dim, bond), (bond, dim), (dim, bond), (bond, dim)]
    else:
        shapes = [(batch, dim, bond), (batch, bond, dim), (batch, dim, bond)]
    return [rng.normal(size=shape) for shape in shapes]


def bench(fn: Callable[[], Any], *, iterations: int, warmup: int) -> Iterable[float]:
    timings = []
    for step in range(iterations + warmup):
        start = time.perf_counter()
        fn()
        elapsed = time.perf_counter() - start
        if step >= warmup:
            timings.append(elapsed)
    return timings


def run_einplan(
    workload: str,
    operands: Sequence[Any],
    *,
    method: str,
    iterations: int,
    warmup: int,
) -> BenchmarkResult:
    subscripts = WORKLOADS[workload]
    start = time.perf_counter()
    compiled = einsum_path(
        subscripts, *operands, config=ExecutionConfig(optimize=method, optimal_limit=5)
    )
    plan_s = time.perf_counter() - start
    timings = list(bench(lambda: compiled(*operands), iterations=iterations, warmup=warmup))
    return BenchmarkResult(
        workload=workload,
        method=compiled.path.method,
        plan_s=plan_s,
        min_s=min(timings),
        mean_s=sum(timings) / len(timings),
        iterations=iterations,
        flops=compiled.explain(json=True)["total_flops"],
    )


def run_numpy(
    workload: str,
    operands: Sequence[Any],
    *,
    iterations: int,
    warmup: int,
) -> BenchmarkResult:
    subscripts = WORKLOADS[workload]
    start = time.perf_counter()
    path, _ = np.einsum_path(subscripts, *operands, optimize="greedy")
    plan_s = time.perf_counter() - start
    timings = list(
        bench(
            lambda: np.einsum(subscripts, *operands, optimize=path),
            iterations=iterations,
            warmup=warmup,
        )
    )
    return BenchmarkResult(
        workload=workload,
        method="numpy",
        plan_s=plan_s,
        min_s=min(timings),
        mean_s=sum(timings) / len(timings),
        iterations=iterations,
        flops=None,
    )


def format_results(results: Iterable[BenchmarkResult]) -> str:
    header = f"{'workload':<9} {'method':<8} {'plan (ms)':>10} {'min (ms)':>10} {'mean (ms)':>10} {'iters':>6} {'flops':>10}"
    rows = [header]
    for result in results:
        flops = result.flops if result.flops is not None else math.nan
        rows.append(
            f"{result.workload:<9} {result.method:<8} {result.plan_s * 1e3:10.3f} "
            f"{result.min_s * 1e3:10.3f} {result.mean_s * 1e3:10.3f} {result.iterations:6d} {flops:10.3e}"
        )
    return "\n".join(rows)


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Benchmark einplan contraction orderings against numpy.einsum."
    )
    parser.add_argument(
        "--workload",
        choices=(*WORKLOADS, "all"),
        default="all",
        help="Workload(s) to benchmark (default: all).",
    )
    parser.add_argument(
        "--method",
        action="append",
        choices=("greedy", "naive", "reverse", "optimal"),
        help="Ordering strategy; repeat to compare several (default: all four).",
    )
    parser.add_argument("--dim", type=int, default=256, help="Large axis extent (default: 256).")
    parser.add_argument("--bond", type=int, default=8, help="Small axis extent (default: 8).")
    parser.add_argument("--batch", type=int, default=16, help="Batch extent (default: 16).")
    parser.add_argument(
        "--seed", type=int, default=2024, help="Random seed for inputs (default: 2024)."
    )
    parser.add_argument(
        "--iterations", type=int, default=20, help="Timed iterations per method (default: 20)."
    )
    parser.add_argument(
        "--warmup", type=int, default=3, help="Warmup iterations to discard (default: 3)."
    )
    return parser.parse_args(argv)


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)
    workloads = tuple(WORKLOADS) if args.workload == "all" else (args.workload,)
    methods = args.method or ["greedy", "naive", "reverse", "optimal"]

    results: List[BenchmarkResult] = []
    for workload in workloads:
        operands = build_operands(
            workload, dim=args.dim, bond=args.bond, batch=args.batch, seed=args.seed
        )
        for method in methods:
            results.append(
                run_einplan(
                    workload,
                    operands,
                    method=method,
                    iterations=args.iterations,
                    warmup=args.warmup,
                )
            )
        results.append(
            run_numpy(workload, operands, iterations=args.iterations, warmup=args.warmup)
        )

    if not results:
        print("No workloads were benchmarked.", file=sys.stderr)
        return 1

    print(format_results(results))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
