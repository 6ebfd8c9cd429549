#!/usr/bin/env python3
"""
RPH Benchmark: Compare progressive hedging drivers against the direct solve
"""

import time
import numpy as np

import rph
from rph.examples import random_quadratic_problem

print(f"rph version: {rph.__version__}")
print()

ALGORITHMS = [
    ("progressive_hedging", {"eps_primal": 1e-8, "eps_dual": 1e-8, "maxiter": 5000}),
    ("randomized_sync", {"nworkers": 4, "eps_primal": 1e-8, "eps_dual": 1e-8, "maxiter": 100000}),
    ("randomized_async", {"nworkers": 4, "step": 0.8, "eps_primal": 1e-8, "eps_dual": 1e-8,
                          "maxiter": 200000}),
]

SEEDS = [1, 2, 3]


def run_algorithm(problem, method, params, seed):
    """Run one driver and time it."""
    start = time.perf_counter()
    result = rph.solve(problem, method=method, seed=seed, maxtime=60.0, **params)
    elapsed = time.perf_counter() - start
    return {
        'time': elapsed,
        'objective': result.objective,
        'status': result.status.value,
        'iterations': result.iterations,
        'primal': result.primal_residual,
        'dual': result.dual_residual,
    }


def benchmark_single(depth, nbranching, dim_per_stage, seed=42):
    """Benchmark every driver on a single problem instance."""
    problem = random_quadratic_problem(depth, nbranching, dim_per_stage, seed=seed)
    print(f"  Problem: {problem.nscenarios} scenarios, {problem.nstages} stages, "
          f"dim={problem.dim}")

    start = time.perf_counter()
    direct = rph.solve_direct(problem)
    direct_time = time.perf_counter() - start
    print(f"    direct:              {direct_time*1000:8.1f} ms, obj={direct.objective:12.6f}")

    results = {'direct': {'time': direct_time, 'objective': direct.objective}}

    for method, params in ALGORITHMS:
        runs = [run_algorithm(problem, method, params, s) for s in SEEDS]
        mean_time = np.mean([r['time'] for r in runs])
        gap = max(abs(r['objective'] - direct.objective) for r in runs)
        iters = int(np.mean([r['iterations'] for r in runs]))
        results[method] = {'time': mean_time, 'gap': gap, 'runs': runs}
        print(f"    {method + ':':20} {mean_time*1000:8.1f} ms, |obj gap|={gap:9.2e}, "
              f"iters={iters}, status={runs[0]['status']}")

    return results


def benchmark_scaling():
    """Benchmark across different scenario tree sizes."""
    print("=" * 70)
    print("Progressive Hedging Scaling Benchmark")
    print("=" * 70)

    sizes = [
        (2, 4, 2),
        (3, 3, 2),
        (4, 3, 2),
        (5, 2, 3),
    ]

    all_results = []

    for depth, nbranching, dim_per_stage in sizes:
        print(f"\nTree: depth={depth}, branching={nbranching}")
        res = benchmark_single(depth, nbranching, dim_per_stage)
        all_results.append((depth, nbranching, res))

    # Summary table
    print("\n" + "=" * 70)
    print("Summary")
    print("=" * 70)
    print(f"{'depth':>6} {'branch':>7} {'direct (ms)':>12} {'PH (ms)':>10} "
          f"{'sync (ms)':>10} {'async (ms)':>11}")
    print("-" * 70)

    for depth, nbranching, res in all_results:
        print(f"{depth:>6} {nbranching:>7} "
              f"{res['direct']['time']*1000:>12.1f} "
              f"{res['progressive_hedging']['time']*1000:>10.1f} "
              f"{res['randomized_sync']['time']*1000:>10.1f} "
              f"{res['randomized_async']['time']*1000:>11.1f}")


if __name__ == "__main__":
    benchmark_scaling()
