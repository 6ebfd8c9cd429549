"""
Progressive Hedging Drivers
===========================

Consensus iteration for multistage stochastic programs decomposed by
scenario. All drivers share one update routine and one termination
policy; they differ only in how scenario updates are scheduled.

>>> from rph.ph import solve_progressive_hedging, solve_randomized_async
>>>
>>> # Classic PH: every scenario each iteration
>>> result = solve_progressive_hedging(problem, rho=1.0, eps_primal=1e-6)
>>>
>>> # Asynchronous PH with four workers
>>> result = solve_randomized_async(problem, nworkers=4, maxiter=10_000)
>>> print(result.max_staleness_seen)

Classes
-------
ConsensusState
    Consensus, per-scenario decisions and duals with per-group locks
ConsensusEngine
    Barrier-synchronized drivers (sequential, randomized synchronous)
AsyncConsensusEngine
    Randomized asynchronous driver
UpdateStrategy
    ALL, SAMPLED_BARRIER or SAMPLED_NO_BARRIER

References
----------
- Rockafellar & Wets (1991): "Scenarios and Policy Aggregation in
  Optimization Under Uncertainty"
- Bareilles, Laguel, Grishchenko, Iutzeler & Malick (2020): "Randomized
  Progressive Hedging methods for Multi-stage Stochastic Programming"
"""

from .asynchronous import AsyncConsensusEngine, solve_randomized_async
from .engine import (
    ConsensusEngine,
    UpdateStrategy,
    call_oracle,
    solve_progressive_hedging,
    solve_randomized_sync,
)
from .sampling import ScenarioSampler
from .state import ConsensusState, Snapshot
from .termination import check_termination

__all__ = [
    # State
    "ConsensusState",
    "Snapshot",
    # Engines
    "ConsensusEngine",
    "AsyncConsensusEngine",
    "UpdateStrategy",
    "ScenarioSampler",
    "call_oracle",
    "check_termination",
    # Drivers
    "solve_progressive_hedging",
    "solve_randomized_sync",
    "solve_randomized_async",
]
