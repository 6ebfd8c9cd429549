"""Scenario sampling for the randomized drivers."""

from __future__ import annotations

from typing import Collection, List, Optional, Sequence

import numpy as np

from ..exceptions import InvalidInputError


class ScenarioSampler:
    """
    Draws scenarios to update from a fixed distribution.

    Args:
        nscenarios: Number of scenarios
        distribution: Sampling probabilities (uniform when omitted)
        seed: Random seed

    Example:
        >>> sampler = ScenarioSampler(4, seed=0)
        >>> len(sampler.sample(2))
        2
    """

    def __init__(
        self,
        nscenarios: int,
        distribution: Optional[Sequence[float]] = None,
        seed: Optional[int] = None,
    ) -> None:
        if distribution is None:
            q = np.full(nscenarios, 1.0 / nscenarios)
        else:
            q = np.asarray(distribution, dtype=np.float64)
            if q.shape != (nscenarios,):
                raise InvalidInputError(
                    f"sampling distribution has shape {q.shape}, expected ({nscenarios},)"
                )
            q = q / q.sum()
        self.q = q
        self.rng = np.random.default_rng(seed)

    def sample(self, k: int, exclude: Collection[int] = ()) -> List[int]:
        """
        Draw up to ``k`` distinct scenarios, skipping ``exclude``.

        Fewer than ``k`` scenarios are returned when not enough scenarios
        with positive probability remain.
        """
        mask = self.q > 0
        if exclude:
            mask[list(exclude)] = False
        candidates = np.flatnonzero(mask)
        k = min(k, len(candidates))
        if k == 0:
            return []

        p = self.q[candidates]
        picked = self.rng.choice(candidates, size=k, replace=False, p=p / p.sum())
        return [int(s) for s in picked]
