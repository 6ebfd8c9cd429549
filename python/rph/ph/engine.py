"""
Progressive Hedging Engine
==========================

One update routine shared by every iterative driver, parameterized by a
scheduling strategy:

- ALL: every scenario against the same consensus, then a barrier
  (sequential progressive hedging)
- SAMPLED_BARRIER: a sampled subset per round dispatched to a worker
  pool, then a barrier (randomized synchronous PH)
- SAMPLED_NO_BARRIER: workers update continuously against a possibly
  stale consensus (randomized asynchronous PH, see ``asynchronous.py``)
"""

from __future__ import annotations

import math
import threading
import time
import warnings
from concurrent.futures import (
    FIRST_EXCEPTION,
    Executor,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    wait,
)
from enum import Enum
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..exceptions import OracleFailure, RPHError
from ..oracle import SubproblemOracle
from ..params import PHParams
from ..problem import Problem
from ..result import IterationRecord, PHResult, Status, UpdateRecord
from .sampling import ScenarioSampler
from .state import ConsensusState
from .termination import check_termination


class UpdateStrategy(Enum):
    """Scheduling of scenario updates."""
    ALL = "all"
    SAMPLED_BARRIER = "sampled_barrier"
    SAMPLED_NO_BARRIER = "sampled_no_barrier"

    def __str__(self) -> str:
        return self.value


class RoundAbandoned(RPHError):
    """Raised when a barrier round outlives the hard timeout."""

    def __init__(self, records: List[UpdateRecord]) -> None:
        self.records = records
        super().__init__("round abandoned after hard timeout")


def wait_timeout(remaining: float) -> Optional[float]:
    """Clamp a remaining time budget to what ``threading`` waits accept."""
    if math.isinf(remaining):
        return None
    return min(max(0.0, remaining), threading.TIMEOUT_MAX)


def call_oracle(
    oracle: SubproblemOracle,
    scenario_id: int,
    consensus: np.ndarray,
    dual: np.ndarray,
    rho: float,
) -> np.ndarray:
    """
    Call the oracle and check its answer.

    Module-level so it can be shipped to a process pool. Non-rph
    exceptions are wrapped in ``OracleFailure``.
    """
    try:
        x = oracle.solve(scenario_id, consensus, dual, rho)
    except RPHError:
        raise
    except Exception as exc:
        raise OracleFailure(f"{type(exc).__name__}: {exc}", scenario_id=scenario_id) from exc

    x = np.asarray(x, dtype=np.float64).ravel()
    if x.shape != consensus.shape:
        raise OracleFailure(
            f"oracle returned shape {x.shape}, expected {consensus.shape}",
            scenario_id=scenario_id,
        )
    if not np.all(np.isfinite(x)):
        raise OracleFailure("oracle returned non-finite values", scenario_id=scenario_id)
    return x


class ConsensusEngine:
    """
    Barrier-synchronized progressive hedging.

    Each round reads the consensus for the round's scenarios, solves them
    (in a worker pool for the sampled strategy), applies every result and
    only then checks termination. Oracle failures are fatal.

    Args:
        problem: Problem to solve
        params: Solver parameters
        strategy: ALL or SAMPLED_BARRIER
    """

    def __init__(
        self,
        problem: Problem,
        params: PHParams,
        strategy: UpdateStrategy = UpdateStrategy.ALL,
    ) -> None:
        self.problem = problem
        self.params = params
        self.strategy = strategy
        self.sampler = ScenarioSampler(problem.nscenarios, params.sampling, params.seed)

        self.history: List[IterationRecord] = []
        self.updates: List[UpdateRecord] = []
        self._start = 0.0

    @property
    def method(self) -> str:
        return {
            UpdateStrategy.ALL: "progressive_hedging",
            UpdateStrategy.SAMPLED_BARRIER: "randomized_sync",
            UpdateStrategy.SAMPLED_NO_BARRIER: "randomized_async",
        }[self.strategy]

    def elapsed(self) -> float:
        return time.perf_counter() - self._start

    # ------------------------------------------------------------------
    # Shared pieces
    # ------------------------------------------------------------------

    def _make_state(self) -> ConsensusState:
        p = self.params
        return ConsensusState(
            self.problem,
            rho=p.rho,
            step=p.step,
            warm_start=p.warm_start,
            warm_start_x_bar=p.warm_start_x_bar,
        )

    def _make_executor(self) -> Executor:
        if self.params.backend == "process":
            return ProcessPoolExecutor(max_workers=self.params.nworkers)
        return ThreadPoolExecutor(
            max_workers=self.params.nworkers,
            thread_name_prefix="rph-worker",
        )

    def _round(
        self,
        state: ConsensusState,
        scenarios: Sequence[int],
        executor: Optional[Executor] = None,
        deadline: Optional[float] = None,
    ) -> List[UpdateRecord]:
        """
        Solve ``scenarios`` against one consensus read, then apply.

        Workers only return oracle solutions; the consensus is mutated by
        the calling thread once every solution is in.

        Raises:
            OracleFailure: On the first failed oracle call
            RoundAbandoned: If ``deadline`` passes before the round completes;
                the solutions that did arrive are applied first
        """
        oracle, rho = self.problem.oracle, self.params.rho
        snapshots = [state.read(s) for s in scenarios]

        if executor is None:
            results = [
                call_oracle(oracle, sn.scenario_id, sn.consensus, sn.dual, rho)
                for sn in snapshots
            ]
            return [state.apply(sn, x) for sn, x in zip(snapshots, results)]

        futures = [
            executor.submit(call_oracle, oracle, sn.scenario_id, sn.consensus, sn.dual, rho)
            for sn in snapshots
        ]
        timeout = None if deadline is None else wait_timeout(deadline - time.perf_counter())
        done, pending = wait(futures, timeout=timeout, return_when=FIRST_EXCEPTION)

        for f in futures:
            if f in done and f.exception() is not None:
                for other in futures:
                    other.cancel()
                raise f.exception()

        records = [
            state.apply(sn, f.result())
            for sn, f in zip(snapshots, futures)
            if f in done
        ]
        if pending:
            for f in pending:
                f.cancel()
            raise RoundAbandoned(records)
        return records

    def _checkpoint(
        self,
        state: ConsensusState,
        count: int,
        staleness: Optional[int] = None,
    ) -> IterationRecord:
        primal, dual = state.checkpoint()
        X = state.consensus_matrix()
        record = IterationRecord(
            iteration=count,
            primal_residual=primal,
            dual_residual=dual,
            objective_estimate=self.problem.objective(X),
            elapsed=self.elapsed(),
            staleness=staleness,
        )
        self.history.append(record)
        self._print(record)
        return record

    def _print(self, record: IterationRecord) -> None:
        if not self.params.verbose:
            return
        if len(self.history) == 1:
            print(f"{'iter':>8} {'primal':>12} {'dual':>12} {'objective':>14} {'time':>9}"
                  + (f" {'stale':>6}" if record.staleness is not None else ""))
        if (len(self.history) - 1) % self.params.printstep == 0:
            line = (
                f"{record.iteration:8d} {record.primal_residual:12.4e} "
                f"{record.dual_residual:12.4e} {record.objective_estimate:14.6e} "
                f"{record.elapsed:8.2f}s"
            )
            if record.staleness is not None:
                line += f" {record.staleness:6d}"
            print(line)

    def _counters(self) -> Dict[str, int]:
        """Extra PHResult fields filled in by a driver."""
        return {}

    def _result(
        self,
        state: ConsensusState,
        status: Status,
        count: int,
        last: Optional[IterationRecord],
    ) -> PHResult:
        X = state.consensus_matrix()
        result = PHResult(
            status=status,
            objective=self.problem.objective(X),
            x=X,
            scenario_x=state.scenario_decisions(),
            u=state.duals(),
            x_bar=[xb.copy() for xb in state.x_bar],
            iterations=count,
            solve_time=self.elapsed(),
            primal_residual=last.primal_residual if last else float("inf"),
            dual_residual=last.dual_residual if last else float("inf"),
            method=self.method,
            history=self.history,
            updates=self.updates,
            problem_info={
                "nscenarios": self.problem.nscenarios,
                "nstages": self.problem.nstages,
                "dim": self.problem.dim,
                "rho": self.params.rho,
            },
            **self._counters(),
        )
        if self.params.verbose:
            print(result.summary())
        return result

    # ------------------------------------------------------------------
    # Driver loop
    # ------------------------------------------------------------------

    def _rounds_per_checkpoint(self) -> int:
        if self.strategy is UpdateStrategy.ALL:
            return 1
        if self.params.residual_every is not None:
            return self.params.residual_every
        return math.ceil(self.problem.nscenarios / self.params.nworkers)

    def solve(self) -> PHResult:
        """Run the driver until a termination condition fires."""
        self._start = time.perf_counter()
        state = self._make_state()
        n = self.problem.nscenarios
        p = self.params

        every = self._rounds_per_checkpoint()
        executor = self._make_executor() if self.strategy is UpdateStrategy.SAMPLED_BARRIER else None
        deadline = None
        if p.hard_timeout is not None and not math.isinf(p.maxtime):
            deadline = self._start + p.maxtime + p.hard_timeout

        iteration = 0
        last: Optional[IterationRecord] = None
        abandoned = False
        try:
            while True:
                if self.strategy is UpdateStrategy.ALL:
                    scenarios = list(range(n))
                else:
                    scenarios = self.sampler.sample(p.nworkers)

                try:
                    self._round(state, scenarios, executor, deadline)
                except RoundAbandoned as exc:
                    warnings.warn(
                        f"Abandoned {len(scenarios) - len(exc.records)} oracle calls "
                        f"after hard timeout of {p.hard_timeout}s",
                        RuntimeWarning,
                    )
                    abandoned = True
                    iteration += 1
                    status = Status.TIME_LIMIT
                    break
                iteration += 1

                if iteration % every == 0:
                    last = self._checkpoint(state, iteration)

                status = check_termination(
                    p, last if iteration % every == 0 else None,
                    iteration, self.elapsed(), state.all_contributed,
                )
                if status is not None:
                    break
        except BaseException:
            abandoned = True
            raise
        finally:
            if executor is not None:
                executor.shutdown(wait=not abandoned, cancel_futures=True)

        if last is None or last.iteration != iteration:
            last = self._checkpoint(state, iteration)

        return self._result(state, status, iteration, last)


def solve_progressive_hedging(problem: Problem, **params) -> PHResult:
    """
    Sequential progressive hedging.

    Every iteration solves all scenarios against the same consensus, then
    refreshes the consensus and duals. Single-threaded and deterministic.

    Args:
        problem: Problem to solve
        **params: Options of ``PHParams`` (rho, eps_primal, eps_dual,
            maxiter, maxtime, printstep, verbose, ...)

    Returns:
        PHResult

    Example:
        >>> result = solve_progressive_hedging(problem, rho=1.0, maxiter=200)
        >>> result.status
        <Status.OPTIMAL: 'optimal'>
    """
    return ConsensusEngine(problem, PHParams.from_dict(params), UpdateStrategy.ALL).solve()


def solve_randomized_sync(problem: Problem, **params) -> PHResult:
    """
    Randomized synchronous progressive hedging.

    Each round samples ``nworkers`` distinct scenarios (from ``sampling``,
    uniform by default), solves them in a worker pool against the same
    consensus and waits for all of them before refreshing the consensus.

    Args:
        problem: Problem to solve
        **params: Options of ``PHParams``

    Returns:
        PHResult
    """
    return ConsensusEngine(
        problem, PHParams.from_dict(params), UpdateStrategy.SAMPLED_BARRIER
    ).solve()
