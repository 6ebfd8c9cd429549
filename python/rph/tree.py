"""
Scenario Trees
==============

Non-anticipativity structure of a multistage problem.

At each stage the scenarios are partitioned into groups of scenarios
that cannot be told apart yet; decisions of that stage must coincide
within a group. Stage 0 is the root (a single group holding every
scenario) and each stage refines the previous one.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np

from .exceptions import TreeConstructionError
from .utils.validation import validate_partition, validate_refinement


class ScenarioTree:
    """
    Scenario tree given as one partition of the scenarios per stage.

    Args:
        partitions: For each stage, the ordered list of groups (each a
            sequence of scenario ids). Group ids are positions in the list.
        nscenarios: Number of scenarios (inferred when omitted)

    Raises:
        TreeConstructionError: If a stage does not partition the scenario
            set, the root is not a single group, or a stage does not
            refine the previous one.

    Example:
        >>> tree = ScenarioTree.perfect(depth=3, nbranching=2)
        >>> tree.nscenarios, tree.nstages
        (4, 3)
        >>> tree.group_of(3, 1)
        1
        >>> tree.members(1, 0)
        [0, 1]
    """

    def __init__(
        self,
        partitions: Sequence[Sequence[Sequence[int]]],
        nscenarios: Optional[int] = None,
    ) -> None:
        if len(partitions) == 0:
            raise TreeConstructionError("at least one stage is required")

        if nscenarios is None:
            nscenarios = sum(len(g) for g in partitions[0])

        self._nscenarios = int(nscenarios)
        self._members: List[List[List[int]]] = []

        for t, groups in enumerate(partitions):
            groups = [sorted(int(s) for s in g) for g in groups]

            ok, msg = validate_partition(groups, self._nscenarios)
            if not ok:
                raise TreeConstructionError(f"stage {t}: {msg}")

            if t == 0 and len(groups) != 1:
                raise TreeConstructionError(
                    f"stage 0 must be a single group, got {len(groups)}"
                )

            if t > 0:
                ok, msg = validate_refinement(self._members[t - 1], groups, self._nscenarios)
                if not ok:
                    raise TreeConstructionError(f"stage {t}: {msg}")

            self._members.append(groups)

        # group_of lookup table, (nstages, nscenarios)
        self._group_of = np.empty((len(self._members), self._nscenarios), dtype=np.int64)
        for t, groups in enumerate(self._members):
            for g, members in enumerate(groups):
                self._group_of[t, members] = g

    @classmethod
    def perfect(cls, depth: int, nbranching: int) -> ScenarioTree:
        """
        Perfect ``nbranching``-ary tree with ``depth`` stages.

        There are ``nbranching ** (depth - 1)`` scenarios and scenario ``s``
        belongs to group ``s // nbranching ** (depth - 1 - t)`` at stage ``t``.

        Args:
            depth: Number of stages (>= 1)
            nbranching: Branching factor (>= 1)
        """
        if depth < 1:
            raise TreeConstructionError(f"depth must be >= 1, got {depth}")
        if nbranching < 1:
            raise TreeConstructionError(f"nbranching must be >= 1, got {nbranching}")

        n = nbranching ** (depth - 1)
        scenarios = np.arange(n)

        partitions = []
        for t in range(depth):
            width = nbranching ** (depth - 1 - t)
            labels = scenarios // width
            partitions.append([scenarios[labels == g].tolist() for g in range(n // width)])

        return cls(partitions, nscenarios=n)

    @classmethod
    def from_partitions(
        cls,
        partitions: Sequence[Sequence[Sequence[int]]],
    ) -> ScenarioTree:
        """Build a tree from explicit per-stage partitions."""
        return cls(partitions)

    @classmethod
    def two_stage(cls, nscenarios: int) -> ScenarioTree:
        """Root group followed by one group per scenario."""
        return cls(
            [[list(range(nscenarios))], [[s] for s in range(nscenarios)]],
            nscenarios=nscenarios,
        )

    @property
    def nscenarios(self) -> int:
        """Number of scenarios."""
        return self._nscenarios

    @property
    def nstages(self) -> int:
        """Number of stages."""
        return len(self._members)

    def group_of(self, scenario_id: int, stage: int) -> int:
        """Group of ``scenario_id`` at ``stage``."""
        return int(self._group_of[stage, scenario_id])

    def groups_at(self, stage: int) -> range:
        """Group ids at ``stage``."""
        return range(len(self._members[stage]))

    def ngroups(self, stage: int) -> int:
        """Number of groups at ``stage``."""
        return len(self._members[stage])

    def members(self, stage: int, group: int) -> List[int]:
        """Sorted scenario ids of ``group`` at ``stage``."""
        return list(self._members[stage][group])

    def partition(self, stage: int) -> List[List[int]]:
        """All groups at ``stage``."""
        return [list(g) for g in self._members[stage]]

    def group_table(self) -> np.ndarray:
        """Copy of the (nstages, nscenarios) group lookup table."""
        return self._group_of.copy()

    def is_leaf_stage(self, stage: int) -> bool:
        """True if every group at ``stage`` holds a single scenario."""
        return len(self._members[stage]) == self._nscenarios

    def __repr__(self) -> str:
        sizes = [len(groups) for groups in self._members]
        return f"ScenarioTree(nscenarios={self._nscenarios}, groups_per_stage={sizes})"
