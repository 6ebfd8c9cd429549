"""
Tests for the direct (extensive form) solve.
"""

import numpy as np
import pytest


class TestSolveDirect:
    """Test solve_direct."""

    def test_known_solution(self, two_stage_quadratic):
        """Direct solve reproduces the known optimum."""
        from rph import Status, solve_direct

        result = solve_direct(two_stage_quadratic["problem"])

        assert result.status == Status.OPTIMAL
        np.testing.assert_allclose(result.x, two_stage_quadratic["expected_x"], atol=1e-6)
        assert result.objective == pytest.approx(two_stage_quadratic["expected_obj"], abs=1e-8)
        assert result.solve_time >= 0

    def test_nonanticipative(self, three_stage_problem, direct_solution):
        """Decisions coincide within every tree group."""
        assert direct_solution.x.shape == (4, 6)
        assert three_stage_problem.is_nonanticipative(direct_solution.x)

    def test_unconstrained_closed_form(self):
        """Unbounded quadratic scenarios: shared stage is the weighted minimizer."""
        from rph import Problem, QuadraticOracle, ScenarioTree, solve_direct

        P = [np.array([1.0, 1.0]), np.array([3.0, 1.0])]
        c = [np.array([-2.0, 1.0]), np.array([-6.0, -1.0])]
        problem = Problem(
            2, ScenarioTree.two_stage(2), [(0, 1), (1, 2)],
            QuadraticOracle(P=P, c=c), probabilities=[0.5, 0.5],
        )

        result = solve_direct(problem)

        # x0 = -(0.5 * -2 + 0.5 * -6) / (0.5 * 1 + 0.5 * 3)
        np.testing.assert_allclose(result.x[:, 0], [2.0, 2.0])
        np.testing.assert_allclose(result.x[:, 1], [-1.0, 1.0])

    def test_unsupported_oracle(self, simple_problem):
        """Oracles without an extensive form raise NotImplementedError."""
        from rph import solve_direct

        with pytest.raises(NotImplementedError):
            solve_direct(simple_problem)

    def test_function_oracle_extensive(self):
        """FunctionOracle delegates to ``extensive_fn``."""
        from rph import FunctionOracle, Problem, ScenarioTree, solve_direct

        def extensive(form):
            y = np.arange(form.nvars, dtype=float)
            return y[form.index]

        oracle = FunctionOracle(lambda s, xb, u, rho: xb, extensive_fn=extensive)
        problem = Problem(2, ScenarioTree.two_stage(2), [(0, 1), (1, 2)], oracle)

        result = solve_direct(problem)

        np.testing.assert_array_equal(result.x, [[0.0, 1.0], [0.0, 2.0]])

    def test_wrong_shape(self):
        """Extensive solutions of the wrong shape raise DimensionError."""
        from rph import DimensionError, FunctionOracle, Problem, ScenarioTree, solve_direct

        oracle = FunctionOracle(lambda s, xb, u, rho: xb, extensive_fn=lambda form: np.zeros(3))
        problem = Problem(2, ScenarioTree.two_stage(2), [(0, 1), (1, 2)], oracle)

        with pytest.raises(DimensionError):
            solve_direct(problem)

    def test_failure_wrapped(self):
        """Foreign exceptions become OracleFailure."""
        from rph import FunctionOracle, OracleFailure, Problem, ScenarioTree, solve_direct

        def broken(form):
            raise KeyError("missing")

        oracle = FunctionOracle(lambda s, xb, u, rho: xb, extensive_fn=broken)
        problem = Problem(2, ScenarioTree.two_stage(2), [(0, 1), (1, 2)], oracle)

        with pytest.raises(OracleFailure, match="extensive solve failed"):
            solve_direct(problem)

    def test_verbose(self, two_stage_quadratic, capsys):
        """Verbose prints the result."""
        from rph import solve_direct

        solve_direct(two_stage_quadratic["problem"], verbose=True)

        assert "DirectResult(status=optimal" in capsys.readouterr().out
