"""
Consensus State
===============

Shared iterate of the progressive hedging drivers.

Each scenario owns an anchor z_s (the Douglas-Rachford form of PH); the
consensus of a tree group is the probability-weighted average of the
anchors of the group's contributed scenarios:

    x̄_g = Σ_{s∈g} p_s z_s / Σ_{s∈g} p_s

A scenario update reads (x̄_s, u_s) with u_s = ρ(z_s - x̄_s), which is the
dual ascent u_s + ρ(x_s - x̄_s) for a unit step, calls the oracle, then
moves its anchor:

    z_s <- x̄_s + u_s/ρ + η(x_s - x̄_s)

and refreshes the consensus of every group it belongs to. When every
scenario updates against the same consensus (classic PH), x̄ is exactly
the weighted average of the x_s and the duals stay centered within
every group.

Writes to a group's consensus are serialized by a per-group lock; a
scenario update holds the locks of all its groups, taken in stage order.
"""

from __future__ import annotations

import threading
from contextlib import ExitStack
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from ..exceptions import DimensionError
from ..problem import Problem
from ..result import UpdateRecord


@dataclass
class Snapshot:
    """
    Consensus and dual values read for one scenario update.

    Attributes:
        scenario_id: Scenario being updated
        consensus: Consensus restricted to the scenario, (dim,)
        dual: Dual multipliers handed to the oracle, (dim,)
        k_read: Global update count at read time
    """

    scenario_id: int
    consensus: np.ndarray
    dual: np.ndarray
    k_read: int


class ConsensusState:
    """
    Consensus, per-scenario decisions and duals, with per-group locks.

    Args:
        problem: Problem being solved
        rho: Penalty parameter
        step: Relaxation η of the anchor step
        warm_start: Initial duals (nscenarios, dim); zero when omitted
        warm_start_x_bar: Initial decisions (nscenarios, dim), projected
            onto the non-anticipative subspace; zero when omitted
    """

    def __init__(
        self,
        problem: Problem,
        rho: float,
        step: float = 1.0,
        warm_start: Optional[np.ndarray] = None,
        warm_start_x_bar: Optional[np.ndarray] = None,
    ) -> None:
        self.problem = problem
        self.rho = float(rho)
        self.step = float(step)

        tree = problem.tree
        n, dim = problem.nscenarios, problem.dim
        self._p = problem.probability_vector
        self._table = tree.group_table()
        self._slices = [problem.stage_dims(t) for t in range(problem.nstages)]
        self._members = [
            [np.asarray(tree.members(t, g)) for g in tree.groups_at(t)]
            for t in range(problem.nstages)
        ]

        if warm_start_x_bar is not None:
            self.x_bar = problem.project(warm_start_x_bar)
        else:
            self.x_bar = [
                np.zeros((tree.ngroups(t), problem.stage_size(t)))
                for t in range(problem.nstages)
            ]

        if warm_start is not None:
            u0 = np.asarray(warm_start, dtype=np.float64)
            if u0.shape != (n, dim):
                raise DimensionError(f"warm_start must be ({n}, {dim}), got {u0.shape}")
            self._u0 = u0.copy()
        else:
            self._u0 = np.zeros((n, dim))

        self.x = np.zeros((n, dim))
        self.contributed = np.zeros(n, dtype=bool)
        self._anchor = np.zeros((n, dim))

        self._group_locks = [
            [threading.Lock() for _ in tree.groups_at(t)]
            for t in range(problem.nstages)
        ]
        self._counter_lock = threading.Lock()
        self.n_updates = 0

        # Residual bookkeeping
        self._touched = np.zeros(n, dtype=bool)
        self._x_bar_checkpoint = self.problem.expand(self.x_bar)

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def _scenario_locks(self, s: int) -> List[threading.Lock]:
        return [self._group_locks[t][self._table[t, s]] for t in range(len(self._slices))]

    def _all_locks(self) -> List[threading.Lock]:
        return [lock for stage in self._group_locks for lock in stage]

    @staticmethod
    def _hold(stack: ExitStack, locks: List[threading.Lock]) -> None:
        for lock in locks:
            stack.enter_context(lock)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _restricted(self, s: int) -> np.ndarray:
        out = np.empty(self.problem.dim)
        for t, sl in enumerate(self._slices):
            out[sl] = self.x_bar[t][self._table[t, s]]
        return out

    def _dual(self, s: int, consensus: np.ndarray) -> np.ndarray:
        if self.contributed[s]:
            # u_s + ρ(x_s - x̄_s) for a unit step
            return self.rho * (self._anchor[s] - consensus)
        return self._u0[s].copy()

    def read(self, s: int) -> Snapshot:
        """Read the consensus and dual values for updating scenario ``s``."""
        with ExitStack() as stack:
            self._hold(stack, self._scenario_locks(s))
            consensus = self._restricted(s)
            dual = self._dual(s, consensus)
            with self._counter_lock:
                k_read = self.n_updates
        return Snapshot(scenario_id=s, consensus=consensus, dual=dual, k_read=k_read)

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def apply(
        self,
        snapshot: Snapshot,
        x_new: np.ndarray,
        max_staleness: Optional[int] = None,
        drop_stale: bool = False,
    ) -> UpdateRecord:
        """
        Apply an oracle result atomically.

        The anchor, decision and consensus of every group of the scenario
        are updated while holding the locks of those groups.

        Args:
            snapshot: Values the oracle was called with
            x_new: Oracle solution, (dim,)
            max_staleness: Staleness bound for ``drop_stale``
            drop_stale: Discard the update when staleness exceeds the bound

        Returns:
            UpdateRecord with the staleness of the update
        """
        s = snapshot.scenario_id
        x_new = np.asarray(x_new, dtype=np.float64)

        with ExitStack() as stack:
            self._hold(stack, self._scenario_locks(s))

            with self._counter_lock:
                k_apply = self.n_updates
                staleness = k_apply - snapshot.k_read
                if drop_stale and max_staleness is not None and staleness > max_staleness:
                    return UpdateRecord(s, snapshot.k_read, k_apply, staleness, applied=False)
                self.n_updates += 1

            xb = snapshot.consensus
            self._anchor[s] = xb + snapshot.dual / self.rho + self.step * (x_new - xb)
            self.x[s] = x_new
            self.contributed[s] = True
            self._touched[s] = True

            for t, sl in enumerate(self._slices):
                g = self._table[t, s]
                members = self._members[t][g]
                members = members[self.contributed[members]]
                p = self._p[members]
                self.x_bar[t][g] = p @ self._anchor[members, sl] / p.sum()

        return UpdateRecord(s, snapshot.k_read, k_apply, staleness)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    @property
    def all_contributed(self) -> bool:
        """True once every scenario has been updated at least once."""
        return bool(self.contributed.all())

    def consensus_matrix(self) -> np.ndarray:
        """Consensus expanded to a (nscenarios, dim) decision matrix."""
        with ExitStack() as stack:
            self._hold(stack, self._all_locks())
            return self.problem.expand(self.x_bar)

    def duals(self) -> np.ndarray:
        """Dual variables against the current consensus, (nscenarios, dim)."""
        with ExitStack() as stack:
            self._hold(stack, self._all_locks())
            X_bar = self.problem.expand(self.x_bar)
            u = self._u0.copy()
            c = self.contributed
            u[c] = self.rho * (self._anchor[c] - X_bar[c])
            return u

    def checkpoint(self) -> Tuple[float, float]:
        """
        Compute residuals and start a new checkpoint window.

        Returns:
            (primal_residual, dual_residual): weighted norm of x_s - x̄_s
            over scenarios touched since the last checkpoint, and weighted
            norm of the consensus change since the last checkpoint
        """
        with ExitStack() as stack:
            self._hold(stack, self._all_locks())
            X_bar = self.problem.expand(self.x_bar)

            touched = self._touched
            diff = self.x[touched] - X_bar[touched]
            primal = float(np.sqrt(self._p[touched] @ np.sum(diff ** 2, axis=1)))

            drift = X_bar - self._x_bar_checkpoint
            dual = float(np.sqrt(self._p @ np.sum(drift ** 2, axis=1)))

            self._x_bar_checkpoint = X_bar
            self._touched = np.zeros_like(touched)

        return primal, dual

    def scenario_decisions(self) -> np.ndarray:
        """Last oracle solutions; rows of untouched scenarios hold the consensus."""
        X = self.consensus_matrix()
        X[self.contributed] = self.x[self.contributed]
        return X
