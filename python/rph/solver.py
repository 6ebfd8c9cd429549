"""RPH Solver Interface."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from .direct import solve_direct
from .exceptions import InvalidInputError
from .params import PHParams
from .ph.asynchronous import AsyncConsensusEngine
from .ph.engine import ConsensusEngine, UpdateStrategy
from .problem import Problem
from .result import DirectResult, PHResult

METHODS = {
    "direct": "direct",
    "extensive": "direct",
    "progressive_hedging": UpdateStrategy.ALL,
    "sequential": UpdateStrategy.ALL,
    "randomized_sync": UpdateStrategy.SAMPLED_BARRIER,
    "sync": UpdateStrategy.SAMPLED_BARRIER,
    "randomized_async": UpdateStrategy.SAMPLED_NO_BARRIER,
    "async": UpdateStrategy.SAMPLED_NO_BARRIER,
    "parallel": UpdateStrategy.SAMPLED_NO_BARRIER,
}


def solve(
    problem: Problem,
    method: str = "progressive_hedging",
    params: Optional[Dict[str, Any]] = None,
    **kwargs: Any,
) -> Union[PHResult, DirectResult]:
    """
    Solve a multistage stochastic problem.

    Args:
        problem: Problem to solve
        method: 'direct', 'progressive_hedging' ('sequential'),
            'randomized_sync' ('sync') or 'randomized_async'
            ('async', 'parallel')
        params: Options dict, see ``PHParams.from_dict``
        **kwargs: Options, override ``params``

    Returns:
        PHResult, or DirectResult for the direct method
    """
    try:
        kind = METHODS[method]
    except KeyError:
        raise InvalidInputError(
            f"unknown method '{method}', expected one of {sorted(METHODS)}"
        ) from None

    options = {**(params or {}), **kwargs}

    if kind == "direct":
        return solve_direct(problem, verbose=options.get("verbose", False))

    ph_params = PHParams.from_dict(options)
    if kind is UpdateStrategy.SAMPLED_NO_BARRIER:
        return AsyncConsensusEngine(problem, ph_params).solve()
    return ConsensusEngine(problem, ph_params, kind).solve()


def solve_batch(
    problems: List[Problem],
    method: str = "progressive_hedging",
    params: Optional[Dict[str, Any]] = None,
) -> List[Union[PHResult, DirectResult]]:
    """Solve multiple problems with the same method and options."""
    return [solve(p, method=method, params=params) for p in problems]
