"""
Direct Solve
============

Solves the extensive form of a problem in one oracle call, with
non-anticipativity enforced exactly: every scenario of a tree group reads
its stage decisions from the same variables. Used as ground truth for the
iterative drivers.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

import numpy as np

from .exceptions import DimensionError, OracleFailure, RPHError
from .problem import Problem
from .result import DirectResult, Status


@dataclass
class ExtensiveForm:
    """
    Extensive form handed to ``SubproblemOracle.solve_extensive``.

    Attributes:
        index: (nscenarios, dim) map from scenario decisions to the shared
            variables; ``x_s = y[index[s]]``
        nvars: Number of shared variables (one per stage, group and
            stage dimension)
        probabilities: Scenario probabilities, (nscenarios,)
    """

    index: np.ndarray
    nvars: int
    probabilities: np.ndarray

    @property
    def nscenarios(self) -> int:
        return self.index.shape[0]

    @property
    def dim(self) -> int:
        return self.index.shape[1]

    @classmethod
    def from_problem(cls, problem: Problem) -> ExtensiveForm:
        """Number the shared variables stage by stage, group by group."""
        tree = problem.tree
        index = np.empty((problem.nscenarios, problem.dim), dtype=np.int64)

        offset = 0
        for t in range(problem.nstages):
            sl = problem.stage_dims(t)
            size = problem.stage_size(t)
            for g in tree.groups_at(t):
                index[tree.members(t, g), sl] = offset + np.arange(size)
                offset += size

        return cls(
            index=index,
            nvars=offset,
            probabilities=problem.probability_vector.copy(),
        )


def solve_direct(problem: Problem, verbose: bool = False) -> DirectResult:
    """
    Solve the extensive form with the problem's oracle.

    Args:
        problem: Problem to solve
        verbose: Print a one-line summary

    Returns:
        DirectResult with the non-anticipative decision matrix

    Raises:
        InfeasibleProblem: If the oracle reports infeasibility
        OracleFailure: On any other oracle failure
    """
    start_time = time.perf_counter()

    form = ExtensiveForm.from_problem(problem)
    try:
        X = problem.oracle.solve_extensive(form)
    except (RPHError, NotImplementedError):
        raise
    except Exception as exc:
        raise OracleFailure(f"extensive solve failed: {type(exc).__name__}: {exc}") from exc

    X = np.asarray(X, dtype=np.float64)
    if X.shape != (problem.nscenarios, problem.dim):
        raise DimensionError(
            f"extensive solve returned {X.shape}, expected ({problem.nscenarios}, {problem.dim})"
        )

    result = DirectResult(
        status=Status.OPTIMAL,
        objective=problem.objective(X),
        x=X,
        solve_time=time.perf_counter() - start_time,
    )
    if verbose:
        print(result)
    return result
