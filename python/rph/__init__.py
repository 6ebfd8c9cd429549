"""
RPH: Progressive Hedging for Multistage Stochastic Programs
===========================================================

rph decomposes a multistage stochastic program by scenario and drives
the per-scenario solutions to a non-anticipative consensus with
progressive hedging, in four modes:

- direct: one extensive-form solve, the ground truth
- progressive_hedging: classic sequential PH
- randomized_sync: sampled scenarios per round, with a barrier
- randomized_async: workers update continuously against a possibly stale
  consensus

Quick Start
-----------
>>> import numpy as np
>>> import rph
>>> tree = rph.ScenarioTree.perfect(depth=2, nbranching=2)
>>> oracle = rph.QuadraticOracle(
...     P=[np.ones(2), np.ones(2)],
...     c=[np.array([-1.0, -2.0]), np.array([-3.0, 0.0])],
...     lb=0.0, ub=10.0,
... )
>>> problem = rph.Problem(
...     scenarios=2, tree=tree, stage_to_dim=[(0, 1), (1, 2)],
...     oracle=oracle, probabilities=[0.5, 0.5],
... )
>>> result = rph.solve(problem, method="progressive_hedging", rho=1.0)
>>> print(result.status, result.x[:, 0])
optimal [2. 2.]
"""

__version__ = "0.1.0"
__author__ = "rph Contributors"

from .tree import ScenarioTree
from .problem import Problem, Scenario
from .oracle import FunctionOracle, QuadraticOracle, SubproblemOracle
from .params import PHParams
from .direct import ExtensiveForm, solve_direct
from .ph import (
    ConsensusState,
    UpdateStrategy,
    solve_progressive_hedging,
    solve_randomized_async,
    solve_randomized_sync,
)
from .solver import solve, solve_batch
from .result import DirectResult, IterationRecord, PHResult, Status, UpdateRecord
from .exceptions import (
    RPHError,
    TreeConstructionError,
    ProblemValidationError,
    DimensionError,
    InvalidInputError,
    OracleFailure,
    InfeasibleProblem,
)

__all__ = [
    # Version
    "__version__",

    # Problem definition
    "ScenarioTree",
    "Problem",
    "Scenario",
    "SubproblemOracle",
    "QuadraticOracle",
    "FunctionOracle",
    "ExtensiveForm",

    # Solving
    "solve",
    "solve_batch",
    "solve_direct",
    "solve_progressive_hedging",
    "solve_randomized_sync",
    "solve_randomized_async",
    "PHParams",
    "ConsensusState",
    "UpdateStrategy",

    # Results
    "PHResult",
    "DirectResult",
    "IterationRecord",
    "UpdateRecord",
    "Status",

    # Exceptions
    "RPHError",
    "TreeConstructionError",
    "ProblemValidationError",
    "DimensionError",
    "InvalidInputError",
    "OracleFailure",
    "InfeasibleProblem",
]


def info() -> str:
    """Return information about the rph installation."""
    import os
    import platform

    import numpy
    import scipy

    lines = [
        f"rph version: {__version__}",
        f"Python version: {platform.python_version()}",
        f"Platform: {platform.platform()}",
        f"NumPy version: {numpy.__version__}",
        f"SciPy version: {scipy.__version__}",
        f"CPU count: {os.cpu_count()}",
    ]
    return "\n".join(lines)
