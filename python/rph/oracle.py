"""
Subproblem Oracles
==================

The consensus engine never models scenarios itself. It hands each
scenario's subproblem to an oracle:

    x_s = argmin  f_s(x) + u_s'x + (ρ/2)||x - x̄_s||²

where x̄_s is the consensus restricted to the scenario (expanded to a full
decision vector) and u_s its dual multipliers.

Classes:
- SubproblemOracle: abstract interface consumed by the drivers
- QuadraticOracle: scipy-backed oracle for box-constrained quadratic scenarios
- FunctionOracle: wraps plain callables
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Optional, Sequence, Union

import numpy as np
from scipy import sparse
from scipy.optimize import minimize

from .exceptions import DimensionError, InfeasibleProblem, OracleFailure

if TYPE_CHECKING:
    from .direct import ExtensiveForm


class SubproblemOracle(ABC):
    """
    Per-scenario subproblem solver.

    Implementations must be thread-safe when used with the threaded
    worker pool, and picklable when used with the process backend.
    """

    @abstractmethod
    def solve(
        self,
        scenario_id: int,
        consensus: np.ndarray,
        dual: np.ndarray,
        rho: float,
    ) -> np.ndarray:
        """
        Solve the augmented subproblem of one scenario.

        Args:
            scenario_id: Scenario to solve
            consensus: Consensus restricted to the scenario, (dim,)
            dual: Dual multipliers of the scenario, (dim,)
            rho: Penalty parameter

        Returns:
            New decision vector of the scenario, (dim,)

        Raises:
            InfeasibleProblem: If the subproblem is infeasible
            OracleFailure: On any other solver failure
        """

    @abstractmethod
    def objective(self, scenario_id: int, x: np.ndarray) -> float:
        """Scenario objective f_s(x) (without penalty terms)."""

    def solve_extensive(self, form: ExtensiveForm) -> np.ndarray:
        """
        Solve all scenarios at once with non-anticipativity enforced.

        Args:
            form: Extensive form description (variable index map and
                probabilities)

        Returns:
            Decision matrix (nscenarios, dim)
        """
        raise NotImplementedError(
            f"{type(self).__name__} does not support the extensive form"
        )


class QuadraticOracle(SubproblemOracle):
    """
    Box-constrained quadratic scenarios.

        f_s(x) = (1/2) x'P_s x + c_s'x,    lb_s <= x <= ub_s

    Diagonal costs (P_s given as a vector) are solved in closed form;
    dense costs go through L-BFGS-B.

    Args:
        P: Per-scenario quadratic costs, each (dim, dim) or a (dim,) diagonal
        c: Per-scenario linear costs, each (dim,)
        lb: Lower bounds, scalar, (dim,) or one per scenario
        ub: Upper bounds, scalar, (dim,) or one per scenario

    Example:
        >>> oracle = QuadraticOracle(
        ...     P=[np.ones(1), np.ones(1)],
        ...     c=[np.array([-1.0]), np.array([-3.0])],
        ...     lb=0.0, ub=10.0,
        ... )
        >>> oracle.solve(0, np.zeros(1), np.zeros(1), rho=1.0)
        array([0.5])
    """

    def __init__(
        self,
        P: Sequence[np.ndarray],
        c: Sequence[np.ndarray],
        lb: Union[float, np.ndarray, Sequence[np.ndarray]] = -np.inf,
        ub: Union[float, np.ndarray, Sequence[np.ndarray]] = np.inf,
    ) -> None:
        self.c = [np.asarray(ci, dtype=np.float64).ravel() for ci in c]
        self.nscenarios = len(self.c)
        if self.nscenarios == 0:
            raise DimensionError("at least one scenario is required")
        self.dim = len(self.c[0])

        if len(P) != self.nscenarios:
            raise DimensionError(f"{len(P)} quadratic costs for {self.nscenarios} scenarios")

        self.P = [np.asarray(Pi, dtype=np.float64) for Pi in P]
        self.diagonal = all(Pi.ndim == 1 for Pi in self.P)

        for s, (Pi, ci) in enumerate(zip(self.P, self.c)):
            if len(ci) != self.dim:
                raise DimensionError(f"c[{s}] has {len(ci)} elements, expected {self.dim}")
            expected = (self.dim,) if Pi.ndim == 1 else (self.dim, self.dim)
            if Pi.shape != expected:
                raise DimensionError(f"P[{s}] has shape {Pi.shape}, expected {expected}")

        self.lb = self._expand_bounds(lb, "lb")
        self.ub = self._expand_bounds(ub, "ub")

    def _expand_bounds(self, bound, name: str) -> np.ndarray:
        b = np.asarray(bound, dtype=np.float64)
        if b.ndim == 0:
            return np.full((self.nscenarios, self.dim), float(b))
        if b.shape == (self.dim,):
            return np.tile(b, (self.nscenarios, 1))
        if b.shape == (self.nscenarios, self.dim):
            return b.copy()
        raise DimensionError(f"{name} has shape {b.shape}")

    def _dense_P(self, s: int) -> np.ndarray:
        Pi = self.P[s]
        return np.diag(Pi) if Pi.ndim == 1 else Pi

    def solve(
        self,
        scenario_id: int,
        consensus: np.ndarray,
        dual: np.ndarray,
        rho: float,
    ) -> np.ndarray:
        s = scenario_id
        lb, ub = self.lb[s], self.ub[s]
        if np.any(lb > ub):
            raise InfeasibleProblem("lower bounds exceed upper bounds", scenario_id=s)

        # min (1/2) x'(P + ρI)x + (c + u - ρx̄)'x
        g = self.c[s] + dual - rho * consensus
        if self.P[s].ndim == 1:
            return np.clip(-g / (self.P[s] + rho), lb, ub)

        H = self.P[s] + rho * np.eye(self.dim)
        return _box_qp(H, g, lb, ub, scenario_id=s)

    def objective(self, scenario_id: int, x: np.ndarray) -> float:
        Pi = self.P[scenario_id]
        quad = float(x @ (Pi * x)) if Pi.ndim == 1 else float(x @ Pi @ x)
        return 0.5 * quad + float(self.c[scenario_id] @ x)

    def solve_extensive(self, form: ExtensiveForm) -> np.ndarray:
        nvars = form.nvars
        H = sparse.csr_matrix((nvars, nvars))
        g = np.zeros(nvars)
        lb = np.full(nvars, -np.inf)
        ub = np.full(nvars, np.inf)

        for s in range(form.nscenarios):
            idx = form.index[s]
            M = sparse.csr_matrix(
                (np.ones(self.dim), (np.arange(self.dim), idx)),
                shape=(self.dim, nvars),
            )
            p = form.probabilities[s]
            H = H + p * (M.T @ sparse.csr_matrix(self._dense_P(s)) @ M)
            g += p * (M.T @ self.c[s])
            np.maximum.at(lb, idx, self.lb[s])
            np.minimum.at(ub, idx, self.ub[s])

        if np.any(lb > ub):
            raise InfeasibleProblem("non-anticipative bounds are inconsistent")

        y = _box_qp(H.toarray(), g, lb, ub)
        return y[form.index]


class FunctionOracle(SubproblemOracle):
    """
    Oracle built from plain callables.

    Args:
        solve_fn: ``solve_fn(scenario_id, consensus, dual, rho) -> x``
        objective_fn: ``objective_fn(scenario_id, x) -> float``; defaults to 0
        extensive_fn: Optional ``extensive_fn(form) -> (nscenarios, dim)``

    Example:
        >>> oracle = FunctionOracle(
        ...     lambda s, xbar, u, rho: np.clip(xbar - u, 0, 10),
        ... )
    """

    def __init__(
        self,
        solve_fn: Callable[[int, np.ndarray, np.ndarray, float], np.ndarray],
        objective_fn: Optional[Callable[[int, np.ndarray], float]] = None,
        extensive_fn: Optional[Callable[[ExtensiveForm], np.ndarray]] = None,
    ) -> None:
        self.solve_fn = solve_fn
        self.objective_fn = objective_fn
        self.extensive_fn = extensive_fn

    def solve(
        self,
        scenario_id: int,
        consensus: np.ndarray,
        dual: np.ndarray,
        rho: float,
    ) -> np.ndarray:
        return np.asarray(self.solve_fn(scenario_id, consensus, dual, rho), dtype=np.float64)

    def objective(self, scenario_id: int, x: np.ndarray) -> float:
        if self.objective_fn is None:
            return 0.0
        return float(self.objective_fn(scenario_id, x))

    def solve_extensive(self, form: ExtensiveForm) -> np.ndarray:
        if self.extensive_fn is None:
            return super().solve_extensive(form)
        return np.asarray(self.extensive_fn(form), dtype=np.float64)


def _box_qp(
    H: np.ndarray,
    g: np.ndarray,
    lb: np.ndarray,
    ub: np.ndarray,
    scenario_id: Optional[int] = None,
) -> np.ndarray:
    """Minimize (1/2) x'Hx + g'x subject to lb <= x <= ub."""
    if np.all(np.isinf(lb)) and np.all(np.isinf(ub)):
        try:
            return np.linalg.solve(H, -g)
        except np.linalg.LinAlgError as exc:
            raise OracleFailure("singular quadratic cost", scenario_id=scenario_id) from exc

    x0 = np.clip(np.zeros(len(g)), lb, ub)
    bounds = [
        (None if np.isinf(lo) else lo, None if np.isinf(hi) else hi)
        for lo, hi in zip(lb, ub)
    ]
    result = minimize(
        lambda x: 0.5 * x @ H @ x + g @ x,
        x0,
        method="L-BFGS-B",
        jac=lambda x: H @ x + g,
        bounds=bounds,
        options={"maxiter": 10000, "ftol": 1e-15, "gtol": 1e-12},
    )
    if not np.all(np.isfinite(result.x)):
        raise OracleFailure(f"L-BFGS-B failed: {result.message}", scenario_id=scenario_id)
    return result.x
