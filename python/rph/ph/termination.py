"""Termination policy shared by all iterative drivers."""

from __future__ import annotations

from typing import Optional

from ..params import PHParams
from ..result import IterationRecord, Status


def check_termination(
    params: PHParams,
    record: Optional[IterationRecord],
    count: int,
    elapsed: float,
    all_contributed: bool = True,
) -> Optional[Status]:
    """
    Decide whether a driver should stop.

    Stops on whichever comes first: both residuals below tolerance, the
    iteration (or update) limit, or the time limit. Tolerance is only
    tested once every scenario has contributed a decision. The check is
    pure; calling it again after termination has no effect on the state.

    Args:
        params: Solver parameters
        record: Latest residual checkpoint, if any
        count: Iterations (sequential/sync) or applied updates (async)
        elapsed: Seconds since the solve started
        all_contributed: Whether every scenario has been updated

    Returns:
        Status to stop with, or None to continue
    """
    if (
        all_contributed
        and record is not None
        and record.primal_residual < params.eps_primal
        and record.dual_residual < params.eps_dual
    ):
        return Status.OPTIMAL

    if count >= params.maxiter:
        return Status.MAX_ITERATIONS

    if elapsed >= params.maxtime:
        return Status.TIME_LIMIT

    return None
