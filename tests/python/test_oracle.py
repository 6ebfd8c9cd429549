"""
Tests for Subproblem Oracles.

Tests covering:
1. QuadraticOracle closed form (diagonal) and L-BFGS-B (dense) paths
2. Extensive form solves
3. FunctionOracle wrapping
4. Error handling in call_oracle
"""

import numpy as np
import pytest


class TestQuadraticOracle:
    """Test QuadraticOracle."""

    def test_diagonal_closed_form(self):
        """Diagonal costs: x = clip(-(c + u - ρx̄) / (P + ρ), lb, ub)."""
        from rph import QuadraticOracle

        oracle = QuadraticOracle(
            P=[np.ones(1), np.ones(1)],
            c=[np.array([-1.0]), np.array([-3.0])],
            lb=0.0, ub=10.0,
        )

        x = oracle.solve(0, np.zeros(1), np.zeros(1), rho=1.0)
        np.testing.assert_allclose(x, [0.5])

        x = oracle.solve(1, np.array([2.0]), np.array([1.0]), rho=2.0)
        np.testing.assert_allclose(x, [(3.0 - 1.0 + 4.0) / 3.0])

    def test_bounds_are_active(self):
        """Solutions are clipped to the box."""
        from rph import QuadraticOracle

        oracle = QuadraticOracle(P=[np.ones(2)], c=[np.array([-100.0, 100.0])], lb=0.0, ub=10.0)

        x = oracle.solve(0, np.zeros(2), np.zeros(2), rho=1.0)
        np.testing.assert_allclose(x, [10.0, 0.0])

    def test_dense_matches_diagonal(self):
        """Dense and diagonal paths agree on a diagonal cost."""
        from rph import QuadraticOracle

        d = np.array([1.0, 2.0, 0.5])
        c = np.array([-4.0, 3.0, -1.0])
        diag = QuadraticOracle(P=[d], c=[c], lb=-1.0, ub=2.0)
        dense = QuadraticOracle(P=[np.diag(d)], c=[c], lb=-1.0, ub=2.0)

        xb = np.array([0.5, 0.0, 1.0])
        u = np.array([0.1, -0.2, 0.0])
        np.testing.assert_allclose(
            dense.solve(0, xb, u, 1.5), diag.solve(0, xb, u, 1.5), atol=1e-6
        )

    def test_dense_unbounded(self):
        """Unbounded dense costs are solved with a linear solve."""
        from rph import QuadraticOracle

        P = np.array([[2.0, 1.0], [1.0, 2.0]])
        c = np.array([-1.0, 1.0])
        oracle = QuadraticOracle(P=[P], c=[c])

        x = oracle.solve(0, np.zeros(2), np.zeros(2), rho=1.0)
        np.testing.assert_allclose((P + np.eye(2)) @ x, -c)

    def test_objective(self):
        """Objective is (1/2)x'Px + c'x."""
        from rph import QuadraticOracle

        P = np.array([[2.0, 0.0], [0.0, 4.0]])
        oracle = QuadraticOracle(P=[P], c=[np.array([1.0, -1.0])])

        assert oracle.objective(0, np.array([1.0, 1.0])) == pytest.approx(3.0)

    def test_infeasible_bounds(self):
        """lb > ub raises InfeasibleProblem."""
        from rph import InfeasibleProblem, QuadraticOracle

        oracle = QuadraticOracle(P=[np.ones(1)], c=[np.zeros(1)], lb=1.0, ub=0.0)

        with pytest.raises(InfeasibleProblem) as info:
            oracle.solve(0, np.zeros(1), np.zeros(1), 1.0)
        assert info.value.scenario_id == 0

    def test_per_scenario_bounds(self):
        """Bounds may differ by scenario."""
        from rph import QuadraticOracle

        oracle = QuadraticOracle(
            P=[np.ones(1), np.ones(1)],
            c=[np.array([-5.0]), np.array([-5.0])],
            lb=np.array([[0.0], [0.0]]),
            ub=np.array([[1.0], [2.0]]),
        )

        assert oracle.solve(0, np.zeros(1), np.zeros(1), 1.0)[0] == pytest.approx(1.0)
        assert oracle.solve(1, np.zeros(1), np.zeros(1), 1.0)[0] == pytest.approx(2.0)

    def test_dimension_validation(self):
        """Inconsistent sizes raise DimensionError."""
        from rph import DimensionError, QuadraticOracle

        with pytest.raises(DimensionError):
            QuadraticOracle(P=[np.ones(2)], c=[np.zeros(3)])
        with pytest.raises(DimensionError):
            QuadraticOracle(P=[np.ones(2), np.ones(2)], c=[np.zeros(2)])
        with pytest.raises(DimensionError):
            QuadraticOracle(P=[np.ones(2)], c=[np.zeros(2)], lb=np.zeros(5))


class TestExtensiveForm:
    """Test QuadraticOracle.solve_extensive through ExtensiveForm."""

    def test_index_numbering(self, three_stage_problem):
        """Shared variables are numbered stage by stage, group by group."""
        from rph import ExtensiveForm

        form = ExtensiveForm.from_problem(three_stage_problem)

        # 1 + 2 + 4 groups, 2 decisions each
        assert form.nvars == 14
        assert form.index.shape == (4, 6)
        np.testing.assert_array_equal(form.index[:, 0:2], [[0, 1]] * 4)
        np.testing.assert_array_equal(form.index[2, 2:4], [4, 5])
        np.testing.assert_array_equal(form.index[3, 4:6], [12, 13])

    def test_two_stage_solution(self, two_stage_quadratic):
        """Extensive form reproduces the known solution."""
        from rph import ExtensiveForm

        problem = two_stage_quadratic["problem"]
        X = problem.oracle.solve_extensive(ExtensiveForm.from_problem(problem))

        np.testing.assert_allclose(X, two_stage_quadratic["expected_x"], atol=1e-6)

    def test_inconsistent_shared_bounds(self):
        """Disjoint bounds on a shared variable are infeasible."""
        from rph import ExtensiveForm, InfeasibleProblem, Problem, QuadraticOracle, ScenarioTree

        oracle = QuadraticOracle(
            P=[np.ones(1), np.ones(1)],
            c=[np.zeros(1), np.zeros(1)],
            lb=np.array([[0.0], [2.0]]),
            ub=np.array([[1.0], [3.0]]),
        )
        problem = Problem(2, ScenarioTree.from_partitions([[[0, 1]]]), [(0, 1)], oracle)

        with pytest.raises(InfeasibleProblem):
            oracle.solve_extensive(ExtensiveForm.from_problem(problem))


class TestFunctionOracle:
    """Test FunctionOracle."""

    def test_wraps_callables(self):
        """solve and objective delegate to the callables."""
        from rph import FunctionOracle

        oracle = FunctionOracle(
            lambda s, xb, u, rho: xb - u / rho + s,
            lambda s, x: float(x.sum()),
        )

        x = oracle.solve(1, np.ones(2), np.ones(2), 2.0)
        np.testing.assert_allclose(x, [1.5, 1.5])
        assert oracle.objective(0, np.array([1.0, 2.0])) == 3.0

    def test_default_objective(self):
        """Objective defaults to zero."""
        from rph import FunctionOracle

        oracle = FunctionOracle(lambda s, xb, u, rho: xb)
        assert oracle.objective(0, np.ones(3)) == 0.0

    def test_no_extensive_form(self):
        """Extensive form is unsupported without ``extensive_fn``."""
        from rph import FunctionOracle

        oracle = FunctionOracle(lambda s, xb, u, rho: xb)
        with pytest.raises(NotImplementedError):
            oracle.solve_extensive(None)


class TestCallOracle:
    """Test error handling around oracle calls."""

    def test_wraps_foreign_exceptions(self):
        """Non-rph exceptions become OracleFailure."""
        from rph import FunctionOracle, OracleFailure
        from rph.ph import call_oracle

        def boom(s, xb, u, rho):
            raise ZeroDivisionError("division by zero")

        with pytest.raises(OracleFailure, match="ZeroDivisionError") as info:
            call_oracle(FunctionOracle(boom), 4, np.zeros(2), np.zeros(2), 1.0)
        assert info.value.scenario_id == 4

    def test_passes_rph_exceptions(self):
        """InfeasibleProblem propagates unchanged."""
        from rph import FunctionOracle, InfeasibleProblem
        from rph.ph import call_oracle

        def infeasible(s, xb, u, rho):
            raise InfeasibleProblem(scenario_id=s)

        with pytest.raises(InfeasibleProblem):
            call_oracle(FunctionOracle(infeasible), 0, np.zeros(1), np.zeros(1), 1.0)

    def test_wrong_shape(self):
        """Solutions of the wrong length are failures."""
        from rph import FunctionOracle, OracleFailure
        from rph.ph import call_oracle

        oracle = FunctionOracle(lambda s, xb, u, rho: np.zeros(3))
        with pytest.raises(OracleFailure, match="shape"):
            call_oracle(oracle, 0, np.zeros(2), np.zeros(2), 1.0)

    def test_non_finite(self):
        """NaN solutions are failures."""
        from rph import FunctionOracle, OracleFailure
        from rph.ph import call_oracle

        oracle = FunctionOracle(lambda s, xb, u, rho: np.full(2, np.nan))
        with pytest.raises(OracleFailure, match="non-finite"):
            call_oracle(oracle, 0, np.zeros(2), np.zeros(2), 1.0)
