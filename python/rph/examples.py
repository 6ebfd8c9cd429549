"""
Example Problems
================

Small problems for tests, benchmarks and documentation.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from .oracle import QuadraticOracle, SubproblemOracle
from .problem import Problem
from .tree import ScenarioTree


class BoxProjectionOracle(SubproblemOracle):
    """
    Scenarios whose only requirement is lb <= x <= ub.

    The subproblem reduces to the projection clip(x̄ - u/ρ, lb, ub) and
    every feasible point has objective 0.
    """

    def __init__(self, lb: float = 0.0, ub: float = 10.0) -> None:
        self.lb = lb
        self.ub = ub

    def solve(self, scenario_id, consensus, dual, rho):
        return np.clip(consensus - dual / rho, self.lb, self.ub)

    def objective(self, scenario_id, x):
        return 0.0


def simple_problem(
    probabilities: Sequence[float] = (0.5, 0.5),
    lb: float = 0.0,
    ub: float = 10.0,
) -> Problem:
    """
    Two-stage, two-scenario problem with one decision per stage.

    Each scenario solves clip(x̄ - u/ρ, lb, ub).
    """
    return Problem(
        scenarios=2,
        tree=ScenarioTree.two_stage(2),
        stage_to_dim=[range(0, 1), range(1, 2)],
        oracle=BoxProjectionOracle(lb, ub),
        probabilities=list(probabilities),
    )


def random_quadratic_problem(
    depth: int = 3,
    nbranching: int = 2,
    dim_per_stage: int = 2,
    seed: Optional[int] = None,
    bounds: Tuple[float, float] = (-10.0, 10.0),
    diagonal: bool = True,
    uniform: bool = False,
) -> Problem:
    """
    Random strongly convex quadratic problem on a perfect scenario tree.

    Args:
        depth: Number of stages
        nbranching: Branching factor of the tree
        dim_per_stage: Decisions per stage
        seed: Random seed
        bounds: Box bounds on every decision
        diagonal: Diagonal (closed-form) or dense quadratic costs
        uniform: Uniform scenario probabilities

    Returns:
        Problem backed by a QuadraticOracle
    """
    rng = np.random.default_rng(seed)
    tree = ScenarioTree.perfect(depth, nbranching)
    n = tree.nscenarios
    dim = depth * dim_per_stage

    if diagonal:
        P = [rng.uniform(0.5, 2.0, dim) for _ in range(n)]
    else:
        P = []
        for _ in range(n):
            L = rng.standard_normal((dim, dim))
            P.append(L @ L.T / dim + 0.5 * np.eye(dim))
    c = [rng.standard_normal(dim) * 5.0 for _ in range(n)]

    if uniform:
        probabilities = np.full(n, 1.0 / n)
    else:
        probabilities = rng.uniform(0.5, 1.5, n)
        probabilities /= probabilities.sum()

    oracle = QuadraticOracle(P=P, c=c, lb=bounds[0], ub=bounds[1])
    stage_to_dim = [
        range(t * dim_per_stage, (t + 1) * dim_per_stage) for t in range(depth)
    ]

    return Problem(
        scenarios=n,
        tree=tree,
        stage_to_dim=stage_to_dim,
        oracle=oracle,
        probabilities=probabilities,
    )
