"""
RPH Result Classes
==================

Data classes for solve status, per-iteration diagnostics and results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np


class Status(Enum):
    """
    Solver status codes.

    Attributes:
        OPTIMAL: Primal and dual residuals below tolerance
        MAX_ITERATIONS: Iteration (or update) limit reached
        TIME_LIMIT: Time limit exceeded
        UNSOLVED: Problem not yet solved
    """
    OPTIMAL = "optimal"
    MAX_ITERATIONS = "max_iterations"
    TIME_LIMIT = "time_limit"
    UNSOLVED = "unsolved"

    def __str__(self) -> str:
        return self.value

    @property
    def is_successful(self) -> bool:
        """True if the residuals reached tolerance."""
        return self == Status.OPTIMAL

    @property
    def has_solution(self) -> bool:
        """True if a (possibly unconverged) consensus is available."""
        return self in (
            Status.OPTIMAL,
            Status.MAX_ITERATIONS,
            Status.TIME_LIMIT,
        )


@dataclass
class IterationRecord:
    """
    Diagnostics produced at each synchronization point.

    In the asynchronous driver a record is produced at each residual
    checkpoint and ``staleness`` holds the largest delay observed since
    the previous checkpoint.

    Attributes:
        iteration: Iteration (sequential/sync) or update count (async)
        primal_residual: Weighted norm of x_s - x̄ over touched scenarios
        dual_residual: Weighted norm of the change in x̄ since last checkpoint
        objective_estimate: Weighted objective of the current consensus
        elapsed: Seconds since the solve started
        staleness: Largest staleness since the previous checkpoint (async)
    """

    iteration: int
    primal_residual: float
    dual_residual: float
    objective_estimate: float
    elapsed: float = 0.0
    staleness: Optional[int] = None


@dataclass
class UpdateRecord:
    """
    A single scenario update in the asynchronous driver.

    Attributes:
        scenario_id: Scenario that was re-solved
        k_read: Global update count when the consensus was read
        k_apply: Global update count when the result was applied
        staleness: ``k_apply - k_read``
        applied: False when the update was dropped (stale or abandoned)
    """

    scenario_id: int
    k_read: int
    k_apply: int
    staleness: int
    applied: bool = True


@dataclass
class PHResult:
    """
    Result of a progressive hedging solve.

    Attributes:
        status: Solver status
        objective: Weighted scenario objective at the final decisions
        x: Final non-anticipative decision matrix (nscenarios, dim)
        scenario_x: Last per-scenario oracle solutions (nscenarios, dim)
        u: Final dual variables (nscenarios, dim)
        x_bar: Consensus per stage, one (ngroups, stage_dim) array each
        iterations: Iterations (sequential/sync) or applied updates (async)
        solve_time: Wall clock time in seconds
        primal_residual: Final primal residual
        dual_residual: Final dual residual
        method: Driver that produced the result

    Example:
        >>> result = rph.solve_progressive_hedging(problem, rho=1.0)
        >>> if result.status.is_successful:
        ...     print(result.objective)
    """

    status: Status
    objective: float
    x: np.ndarray
    scenario_x: np.ndarray
    u: np.ndarray
    x_bar: List[np.ndarray]
    iterations: int
    solve_time: float

    primal_residual: float = float("inf")
    dual_residual: float = float("inf")
    method: str = ""

    history: List[IterationRecord] = field(default_factory=list)
    updates: List[UpdateRecord] = field(default_factory=list)

    # Asynchronous bookkeeping
    n_oracle_calls: int = 0
    n_failures: int = 0
    n_applied: int = 0
    n_dropped_stale: int = 0
    n_abandoned: int = 0
    max_staleness_seen: int = 0

    problem_info: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        return (
            f"PHResult(status={self.status}, "
            f"objective={self.objective:.6g}, "
            f"iterations={self.iterations}, "
            f"time={self.solve_time:.4f}s)"
        )

    @property
    def converged(self) -> bool:
        """True if both residuals reached tolerance."""
        return self.status.is_successful

    def summary(self) -> str:
        """Return a formatted summary of the solve result."""
        lines = [
            "=" * 50,
            f"Progressive Hedging Summary ({self.method})",
            "=" * 50,
            f"Status:           {self.status}",
            f"Objective:        {self.objective:.10g}",
            f"Iterations:       {self.iterations}",
            f"Solve time:       {self.solve_time:.4f} s",
            "-" * 50,
            f"Primal residual:  {self.primal_residual:.6e}",
            f"Dual residual:    {self.dual_residual:.6e}",
        ]
        if self.n_oracle_calls:
            lines += [
                "-" * 50,
                f"Oracle calls:     {self.n_oracle_calls}",
                f"Applied updates:  {self.n_applied}",
                f"Failures:         {self.n_failures}",
                f"Dropped (stale):  {self.n_dropped_stale}",
                f"Abandoned:        {self.n_abandoned}",
                f"Max staleness:    {self.max_staleness_seen}",
            ]
        lines.append("=" * 50)
        return "\n".join(lines)


@dataclass
class DirectResult:
    """
    Result of the direct (extensive form) solve.

    Attributes:
        status: Solver status
        objective: Weighted scenario objective at the decisions
        x: Non-anticipative decision matrix (nscenarios, dim)
        solve_time: Wall clock time in seconds
    """

    status: Status
    objective: float
    x: np.ndarray
    solve_time: float

    def __repr__(self) -> str:
        return (
            f"DirectResult(status={self.status}, "
            f"objective={self.objective:.6g}, "
            f"time={self.solve_time:.4f}s)"
        )
