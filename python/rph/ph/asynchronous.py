"""
Randomized Asynchronous Progressive Hedging
===========================================

Workers update scenarios continuously, with no round barrier. Each update
reads the consensus of its scenario, calls the oracle and applies the
result under the locks of the scenario's tree groups, so updates touching
disjoint groups do not contend. Every applied update records its
staleness: the number of updates applied between its read and its apply.

Two worker topologies share the same coordination contract:

- ``backend="thread"``: workers read, solve and apply in shared memory
- ``backend="process"``: workers only solve; the driver thread reads the
  consensus at dispatch and applies results as they come back

Failed oracle calls are dropped and the scenario is retried against a
fresh consensus; the solve aborts once failures exceed ``max_failures``.
"""

from __future__ import annotations

import threading
import time
import warnings
from concurrent.futures import FIRST_COMPLETED, Executor, Future, wait
from typing import Dict, List, Optional, Tuple

from ..exceptions import OracleFailure
from ..params import PHParams
from ..problem import Problem
from ..result import IterationRecord, PHResult, Status, UpdateRecord
from .engine import ConsensusEngine, UpdateStrategy, call_oracle, wait_timeout
from .state import ConsensusState, Snapshot
from .termination import check_termination


class AsyncConsensusEngine(ConsensusEngine):
    """
    Progressive hedging with asynchronous, possibly stale updates.

    Args:
        problem: Problem to solve
        params: Solver parameters; ``nworkers``, ``backend``,
            ``residual_every``, ``max_staleness``, ``staleness_policy``,
            ``max_failures`` and ``hard_timeout`` are specific to this driver
    """

    def __init__(self, problem: Problem, params: PHParams) -> None:
        super().__init__(problem, params, UpdateStrategy.SAMPLED_NO_BARRIER)
        self._abandon = threading.Event()
        self._catch_up = False

        self.n_oracle_calls = 0
        self.n_failures = 0
        self.n_applied = 0
        self.n_dropped_stale = 0
        self.n_abandoned = 0
        self.max_staleness_seen = 0
        self._window_staleness = 0

    @property
    def _drop_stale(self) -> bool:
        return self.params.staleness_policy == "drop"

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    def _solve_and_apply(self, state: ConsensusState, s: int) -> Optional[UpdateRecord]:
        """Thread-backend task: read, solve and apply one scenario."""
        p = self.params
        snapshot = state.read(s)
        x = call_oracle(self.problem.oracle, s, snapshot.consensus, snapshot.dual, p.rho)
        if self._abandon.is_set():
            return None
        return state.apply(snapshot, x, p.max_staleness, self._drop_stale)

    def _submit(
        self,
        executor: Executor,
        state: ConsensusState,
        s: int,
    ) -> Tuple[Future, Optional[Snapshot]]:
        if self.params.backend == "thread":
            return executor.submit(self._solve_and_apply, state, s), None

        snapshot = state.read(s)
        future = executor.submit(
            call_oracle,
            self.problem.oracle, s, snapshot.consensus, snapshot.dual, self.params.rho,
        )
        return future, snapshot

    # ------------------------------------------------------------------
    # Driver side
    # ------------------------------------------------------------------

    def _collect(
        self,
        state: ConsensusState,
        future: Future,
        snapshot: Optional[Snapshot],
        drop_stale: bool = True,
    ) -> Optional[UpdateRecord]:
        """
        Turn a finished future into an update record.

        Returns None when the oracle call failed and was dropped.

        Raises:
            OracleFailure: When failures exceed ``max_failures``
        """
        p = self.params
        self.n_oracle_calls += 1
        try:
            out = future.result()
        except OracleFailure as exc:
            self.n_failures += 1
            warnings.warn(f"Dropped failed update: {exc.message}", RuntimeWarning)
            if self.n_failures > p.max_failures:
                raise OracleFailure(
                    f"{self.n_failures} oracle failures exceed max_failures={p.max_failures}",
                    scenario_id=exc.scenario_id,
                ) from exc
            return None

        if snapshot is None:
            # Thread backend: the worker already applied the update
            return out
        return state.apply(snapshot, out, p.max_staleness, drop_stale and self._drop_stale)

    def _record(self, record: UpdateRecord) -> None:
        p = self.params
        self.updates.append(record)

        if not record.applied:
            self.n_dropped_stale += 1
            return

        self.n_applied += 1
        self.max_staleness_seen = max(self.max_staleness_seen, record.staleness)
        self._window_staleness = max(self._window_staleness, record.staleness)

        if p.max_staleness is not None and record.staleness > p.max_staleness:
            if p.staleness_policy == "sync":
                self._catch_up = True
            else:
                warnings.warn(
                    f"Applied update of scenario {record.scenario_id} with staleness "
                    f"{record.staleness} > max_staleness={p.max_staleness}",
                    RuntimeWarning,
                )

    def _synchronous_catch_up(self, state: ConsensusState, executor: Executor) -> None:
        """Update every scenario against one consensus read, then resume."""
        n = self.problem.nscenarios
        oracle, rho = self.problem.oracle, self.params.rho

        snapshots = [state.read(s) for s in range(n)]
        futures = [
            executor.submit(call_oracle, oracle, sn.scenario_id, sn.consensus, sn.dual, rho)
            for sn in snapshots
        ]
        wait(futures)
        for sn, f in zip(snapshots, futures):
            record = self._collect(state, f, sn, drop_stale=False)
            if record is not None:
                self._record(record)

        self._catch_up = False

    def _counters(self) -> Dict[str, int]:
        return {
            "n_oracle_calls": self.n_oracle_calls,
            "n_failures": self.n_failures,
            "n_applied": self.n_applied,
            "n_dropped_stale": self.n_dropped_stale,
            "n_abandoned": self.n_abandoned,
            "max_staleness_seen": self.max_staleness_seen,
        }

    def _checkpoint_async(self, state: ConsensusState) -> IterationRecord:
        record = self._checkpoint(state, state.n_updates, staleness=self._window_staleness)
        self._window_staleness = 0
        return record

    def solve(self) -> PHResult:
        """Run workers until a termination condition fires."""
        self._start = time.perf_counter()
        state = self._make_state()
        p = self.params
        every = p.residual_every or self.problem.nscenarios

        executor = self._make_executor()
        in_flight: Dict[Future, Tuple[int, Optional[Snapshot]]] = {}
        retry: List[int] = []

        status: Optional[Status] = None
        stop_time = 0.0
        last: Optional[IterationRecord] = None
        since_checkpoint = 0
        abandoned = False
        try:
            while True:
                # Dispatch
                if status is None and not self._catch_up:
                    busy = {s for s, _ in in_flight.values()}
                    free = p.nworkers - len(in_flight)
                    picks = []
                    for s in list(retry):
                        if len(picks) < free and s not in busy:
                            picks.append(s)
                            retry.remove(s)
                    picks += self.sampler.sample(free - len(picks), exclude=busy | set(picks))
                    for s in picks:
                        future, snapshot = self._submit(executor, state, s)
                        in_flight[future] = (s, snapshot)

                if not in_flight:
                    if self._catch_up and status is None:
                        before = state.n_updates
                        self._synchronous_catch_up(state, executor)
                        since_checkpoint += state.n_updates - before
                    elif status is not None:
                        break

                # Wait for the next completion
                if in_flight:
                    if status is None:
                        timeout = wait_timeout(p.maxtime - self.elapsed())
                    elif p.hard_timeout is not None:
                        timeout = wait_timeout(stop_time + p.hard_timeout - self.elapsed())
                    else:
                        timeout = None
                    done, _ = wait(list(in_flight), timeout=timeout, return_when=FIRST_COMPLETED)

                    for future in done:
                        s, snapshot = in_flight.pop(future)
                        record = self._collect(state, future, snapshot)
                        if record is None:
                            retry.append(s)
                            continue
                        self._record(record)
                        if record.applied:
                            since_checkpoint += 1

                checkpointed = False
                if since_checkpoint >= every:
                    last = self._checkpoint_async(state)
                    since_checkpoint = 0
                    checkpointed = True

                if status is None:
                    status = check_termination(
                        p, last if checkpointed else None,
                        state.n_updates, self.elapsed(), state.all_contributed,
                    )
                    if status is not None:
                        stop_time = self.elapsed()
                elif (
                    in_flight
                    and p.hard_timeout is not None
                    and self.elapsed() >= stop_time + p.hard_timeout
                ):
                    self._abandon.set()
                    abandoned = True
                    self.n_abandoned += len(in_flight)
                    warnings.warn(
                        f"Abandoned {len(in_flight)} in-flight oracle calls "
                        f"after hard timeout of {p.hard_timeout}s",
                        RuntimeWarning,
                    )
                    in_flight.clear()
                    break
        except BaseException:
            self._abandon.set()
            abandoned = True
            raise
        finally:
            executor.shutdown(wait=not abandoned, cancel_futures=True)

        if last is None or last.iteration != state.n_updates:
            last = self._checkpoint_async(state)

        return self._result(state, status, state.n_updates, last)


def solve_randomized_async(problem: Problem, **params) -> PHResult:
    """
    Randomized asynchronous progressive hedging.

    ``nworkers`` workers pull scenarios (from ``sampling``, uniform by
    default) and apply their updates as soon as they finish. ``maxiter``
    bounds the number of applied updates; residuals are checked every
    ``residual_every`` updates (default: the number of scenarios).

    Args:
        problem: Problem to solve
        **params: Options of ``PHParams``

    Returns:
        PHResult with per-update records in ``updates``

    Example:
        >>> result = solve_randomized_async(problem, nworkers=4, maxiter=5000)
        >>> max(u.staleness for u in result.updates)
        3
    """
    return AsyncConsensusEngine(problem, PHParams.from_dict(params)).solve()
