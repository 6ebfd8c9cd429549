"""
Solver Parameters
=================

Options recognized by the progressive hedging drivers.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional, Sequence

import numpy as np

from .exceptions import InvalidInputError

BACKENDS = ("thread", "process")
STALENESS_POLICIES = ("warn", "drop", "sync")

# Aliases accepted by ``PHParams.from_dict``
_ALIASES = {
    "max_iterations": "maxiter",
    "max_iters": "maxiter",
    "time_limit": "maxtime",
    "mu": "rho",
    "ϵ_primal": "eps_primal",
    "ϵ_dual": "eps_dual",
    "n_workers": "nworkers",
    "workers": "nworkers",
}


@dataclass
class PHParams:
    """
    Progressive hedging options.

    Args:
        rho: Penalty / dual step parameter (> 0)
        eps_primal: Primal residual tolerance
        eps_dual: Dual residual tolerance
        maxiter: Iteration limit (update limit for the async driver)
        maxtime: Time limit in seconds; ``math.inf`` disables it
        printstep: Print diagnostics every ``printstep`` checkpoints
        verbose: Print progress
        seed: Seed for scenario sampling
        sampling: Sampling distribution over scenarios (randomized modes)
        nworkers: Worker pool size (randomized modes)
        backend: 'thread' or 'process' worker pool
        step: Relaxation of the consensus step in (0, 2)
        residual_every: Updates between residual checkpoints (async);
            defaults to the number of scenarios
        max_staleness: Staleness above which ``staleness_policy`` applies.
            None tolerates any staleness; the largest one observed is still
            reported as ``max_staleness_seen`` and in the result summary
        staleness_policy: 'warn', 'drop' or 'sync'
        max_failures: Oracle failures tolerated by the async driver
        hard_timeout: Seconds to wait for in-flight calls after stopping;
            calls still running are abandoned. None waits indefinitely
        warm_start: Optional initial duals, (nscenarios, dim)
        warm_start_x_bar: Optional initial consensus, (nscenarios, dim)
    """

    rho: float = 1.0
    eps_primal: float = 1e-6
    eps_dual: float = 1e-6
    maxiter: int = 1000
    maxtime: float = 60.0
    printstep: int = 1
    verbose: bool = False
    seed: Optional[int] = None
    sampling: Optional[Sequence[float]] = None
    nworkers: int = 2
    backend: str = "thread"
    step: float = 1.0
    residual_every: Optional[int] = None
    max_staleness: Optional[int] = None
    staleness_policy: str = "warn"
    max_failures: int = 10
    hard_timeout: Optional[float] = None
    warm_start: Optional[np.ndarray] = None
    warm_start_x_bar: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        self.maxiter = int(self.maxiter)
        if self.rho <= 0:
            raise InvalidInputError(f"rho must be positive, got {self.rho}")
        if self.eps_primal < 0 or self.eps_dual < 0:
            raise InvalidInputError("tolerances must be non-negative")
        if self.maxiter < 1:
            raise InvalidInputError(f"maxiter must be >= 1, got {self.maxiter}")
        if self.maxtime <= 0:
            raise InvalidInputError(f"maxtime must be positive, got {self.maxtime}")
        if self.printstep < 1:
            raise InvalidInputError(f"printstep must be >= 1, got {self.printstep}")
        if self.nworkers < 1:
            raise InvalidInputError(f"nworkers must be >= 1, got {self.nworkers}")
        if self.backend not in BACKENDS:
            raise InvalidInputError(f"backend must be one of {BACKENDS}, got '{self.backend}'")
        if not 0 < self.step < 2:
            raise InvalidInputError(f"step must be in (0, 2), got {self.step}")
        if self.residual_every is not None and self.residual_every < 1:
            raise InvalidInputError("residual_every must be >= 1")
        if self.max_staleness is not None and self.max_staleness < 0:
            raise InvalidInputError("max_staleness must be >= 0")
        if self.staleness_policy not in STALENESS_POLICIES:
            raise InvalidInputError(
                f"staleness_policy must be one of {STALENESS_POLICIES}, "
                f"got '{self.staleness_policy}'"
            )
        if self.max_failures < 0:
            raise InvalidInputError("max_failures must be >= 0")
        if self.hard_timeout is not None and self.hard_timeout < 0:
            raise InvalidInputError("hard_timeout must be >= 0")
        if self.sampling is not None:
            q = np.asarray(self.sampling, dtype=np.float64)
            if q.ndim != 1 or np.any(q < 0) or q.sum() <= 0:
                raise InvalidInputError("sampling must be a non-negative 1D distribution")
            self.sampling = q / q.sum()

    @classmethod
    def from_dict(cls, params: Optional[Dict[str, Any]] = None) -> PHParams:
        """
        Build parameters from a plain dict.

        Accepts the aliases ``max_iterations``/``max_iters``,
        ``time_limit``, ``mu`` and ``tolerance``/``tol`` (sets both
        epsilons). Unknown keys raise ``InvalidInputError``.
        """
        params = dict(params or {})
        tol = params.pop("tolerance", params.pop("tol", None))
        if tol is not None:
            params.setdefault("eps_primal", tol)
            params.setdefault("eps_dual", tol)

        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in params.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                raise InvalidInputError(f"unknown option '{key}'")
            kwargs[name] = value
        return cls(**kwargs)
