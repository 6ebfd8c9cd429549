"""
Multistage Stochastic Problems
==============================

A problem ties together the scenarios, their probabilities, the
stage-to-dimension mapping, the scenario tree and the subproblem oracle.
It is validated once at construction and read-only afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from .exceptions import DimensionError, ProblemValidationError
from .oracle import SubproblemOracle
from .tree import ScenarioTree
from .utils.validation import validate_probabilities, validate_stage_ranges


@dataclass(frozen=True)
class Scenario:
    """
    A single scenario.

    Args:
        id: Scenario index in ``[0, nscenarios)``
        data: Domain data, only consumed by the oracle
        name: Optional scenario label
    """

    id: int
    data: Optional[Dict[str, Any]] = None
    name: Optional[str] = None


class Problem:
    """
    Multistage stochastic problem.

    The decision vector of each scenario has ``dim`` entries;
    ``stage_to_dim[t]`` lists the entries decided at stage ``t``.

    Args:
        scenarios: Scenario list, or the number of scenarios
        tree: Scenario tree (one partition per stage)
        stage_to_dim: One dimension range per stage, disjoint and covering
            ``range(dim)``. Ranges may be given as ``range``, ``slice`` or
            ``(start, stop)`` pairs
        oracle: Subproblem oracle
        probabilities: Mapping or sequence of scenario probabilities
            (uniform when omitted)
        tol: Tolerance on the probability sum

    Raises:
        ProblemValidationError: On inconsistent probabilities or stage ranges

    Example:
        >>> tree = ScenarioTree.two_stage(2)
        >>> problem = Problem(
        ...     scenarios=2,
        ...     tree=tree,
        ...     stage_to_dim=[range(0, 1), range(1, 2)],
        ...     oracle=oracle,
        ...     probabilities=[0.5, 0.5],
        ... )
    """

    def __init__(
        self,
        scenarios: Union[int, Sequence[Scenario]],
        tree: ScenarioTree,
        stage_to_dim: Sequence[Any],
        oracle: SubproblemOracle,
        probabilities: Optional[Union[Mapping[int, float], Sequence[float]]] = None,
        tol: float = 1e-6,
    ) -> None:
        if isinstance(scenarios, (int, np.integer)):
            scenarios = [Scenario(id=s) for s in range(int(scenarios))]
        self._scenarios = tuple(scenarios)
        n = len(self._scenarios)

        if n == 0:
            raise ProblemValidationError("no scenarios defined")

        for s, scen in enumerate(self._scenarios):
            if scen.id != s:
                raise ProblemValidationError(f"scenario at position {s} has id {scen.id}")

        if tree.nscenarios != n:
            raise ProblemValidationError(
                f"tree has {tree.nscenarios} scenarios, problem has {n}"
            )
        self._tree = tree

        # Probabilities
        if probabilities is None:
            p = np.full(n, 1.0 / n)
        elif isinstance(probabilities, Mapping):
            if sorted(probabilities) != list(range(n)):
                raise ProblemValidationError("probability map must have one entry per scenario")
            p = np.array([probabilities[s] for s in range(n)], dtype=np.float64)
        else:
            p = np.asarray(probabilities, dtype=np.float64)
            if p.shape != (n,):
                raise ProblemValidationError(f"expected {n} probabilities, got shape {p.shape}")

        ok, msg = validate_probabilities(p, tol)
        if not ok:
            raise ProblemValidationError(msg)
        self._probabilities = p
        self._probabilities.setflags(write=False)

        # Stage ranges
        ranges = [_as_range(r) for r in stage_to_dim]
        if len(ranges) != tree.nstages:
            raise ProblemValidationError(
                f"{len(ranges)} stage ranges for a tree with {tree.nstages} stages"
            )
        dim = max(r.stop for r in ranges)
        ok, msg = validate_stage_ranges(ranges, dim)
        if not ok:
            raise ProblemValidationError(msg)
        self._ranges = ranges
        self._dim = dim

        oracle_dim = getattr(oracle, "dim", None)
        if oracle_dim is not None and oracle_dim != dim:
            raise ProblemValidationError(f"oracle dimension {oracle_dim} != {dim}")
        self._oracle = oracle

    @property
    def scenarios(self) -> tuple:
        """Scenarios, indexed by id."""
        return self._scenarios

    @property
    def nscenarios(self) -> int:
        """Number of scenarios."""
        return len(self._scenarios)

    @property
    def nstages(self) -> int:
        """Number of stages."""
        return self._tree.nstages

    @property
    def dim(self) -> int:
        """Length of each scenario's decision vector."""
        return self._dim

    @property
    def tree(self) -> ScenarioTree:
        return self._tree

    @property
    def oracle(self) -> SubproblemOracle:
        return self._oracle

    @property
    def probabilities(self) -> Dict[int, float]:
        """Probability map scenario id -> probability."""
        return {s: float(p) for s, p in enumerate(self._probabilities)}

    @property
    def probability_vector(self) -> np.ndarray:
        """Read-only array of scenario probabilities."""
        return self._probabilities

    @property
    def stage_to_dim(self) -> List[range]:
        return list(self._ranges)

    def stage_dims(self, stage: int) -> slice:
        """Slice of the decision vector decided at ``stage``."""
        r = self._ranges[stage]
        return slice(r.start, r.stop)

    def stage_size(self, stage: int) -> int:
        return len(self._ranges[stage])

    def group_probability(self, stage: int, group: int) -> float:
        """Total probability of a tree group."""
        return float(self._probabilities[self._tree.members(stage, group)].sum())

    def expand(self, x_bar: Sequence[np.ndarray]) -> np.ndarray:
        """
        Expand a per-(stage, group) consensus to a decision matrix.

        Args:
            x_bar: For each stage, an array (ngroups, stage_size)

        Returns:
            Matrix (nscenarios, dim) whose row ``s`` is the consensus seen
            by scenario ``s``
        """
        table = self._tree.group_table()
        out = np.empty((self.nscenarios, self._dim))
        for t in range(self.nstages):
            out[:, self.stage_dims(t)] = x_bar[t][table[t]]
        return out

    def project(self, X: np.ndarray) -> List[np.ndarray]:
        """
        Probability-weighted group averages of a decision matrix.

        This is the projection onto the non-anticipative subspace, in
        per-(stage, group) form.
        """
        X = np.asarray(X, dtype=np.float64)
        if X.shape != (self.nscenarios, self._dim):
            raise DimensionError(f"expected ({self.nscenarios}, {self._dim}), got {X.shape}")

        x_bar = []
        for t in range(self.nstages):
            block = X[:, self.stage_dims(t)]
            avg = np.empty((self._tree.ngroups(t), self.stage_size(t)))
            for g in self._tree.groups_at(t):
                members = self._tree.members(t, g)
                p = self._probabilities[members]
                avg[g] = p @ block[members] / p.sum()
            x_bar.append(avg)
        return x_bar

    def is_nonanticipative(self, X: np.ndarray, atol: float = 1e-8) -> bool:
        """True if decisions coincide within every tree group."""
        return bool(np.allclose(self.expand(self.project(X)), X, atol=atol))

    def objective(self, X: np.ndarray) -> float:
        """
        Probability-weighted scenario objective of a decision matrix.

        Args:
            X: Decisions (nscenarios, dim)

        Returns:
            Σ_s p_s f_s(X[s])
        """
        X = np.asarray(X, dtype=np.float64)
        if X.shape != (self.nscenarios, self._dim):
            raise DimensionError(f"expected ({self.nscenarios}, {self._dim}), got {X.shape}")
        return float(sum(
            p * self._oracle.objective(s, X[s]) for s, p in enumerate(self._probabilities)
        ))

    def __repr__(self) -> str:
        return (
            f"Problem(nscenarios={self.nscenarios}, nstages={self.nstages}, "
            f"dim={self._dim})"
        )


def _as_range(r: Any) -> range:
    if isinstance(r, range):
        if r.step != 1:
            raise ProblemValidationError("stage ranges must be contiguous")
        return r
    if isinstance(r, slice):
        if r.step not in (None, 1) or r.start is None or r.stop is None:
            raise ProblemValidationError("stage ranges must be contiguous with explicit bounds")
        return range(r.start, r.stop)
    start, stop = r
    return range(int(start), int(stop))
