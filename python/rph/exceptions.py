"""
RPH Exception Classes
=====================

Custom exceptions for rph error handling.
"""

from typing import Optional


class RPHError(Exception):
    """Base exception for all rph errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class TreeConstructionError(RPHError):
    """
    Raised when a scenario tree partition is malformed.

    Either a stage's groups do not partition the scenario index set, or
    they do not refine the groups of the previous stage.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid scenario tree: {message}")


class ProblemValidationError(RPHError):
    """
    Raised when problem data is inconsistent.

    Examples: probabilities not summing to one, stage dimension ranges
    that overlap or leave part of the decision vector uncovered.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid problem: {message}")


class DimensionError(RPHError):
    """
    Raised when vector/matrix dimensions are incompatible.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Dimension mismatch: {message}")


class InvalidInputError(RPHError):
    """
    Raised when a solver option is invalid.

    Examples: negative penalty, unknown backend, malformed sampling
    distribution.
    """

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid input: {message}")


class OracleFailure(RPHError):
    """
    Raised when a subproblem oracle call fails.

    The sequential and synchronous drivers propagate it immediately. The
    asynchronous driver drops the failed update and only raises once the
    number of failures exceeds ``max_failures``.
    """

    def __init__(
        self,
        message: str = "Subproblem oracle failed",
        scenario_id: Optional[int] = None,
    ) -> None:
        self.scenario_id = scenario_id
        self._base_message = message
        if scenario_id is not None:
            message = f"{message} (scenario {scenario_id})"
        super().__init__(message)

    def __reduce__(self):
        # Failures cross process boundaries with the process backend
        return (type(self), (self._base_message, self.scenario_id))


class InfeasibleProblem(OracleFailure):
    """
    Raised when the oracle reports an infeasible subproblem.
    """

    def __init__(
        self,
        message: str = "Subproblem is infeasible",
        scenario_id: Optional[int] = None,
    ) -> None:
        super().__init__(message, scenario_id)
