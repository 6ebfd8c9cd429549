"""
pytest configuration and fixtures for rph tests.
"""

import pytest
import numpy as np


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def simple_problem():
    """
    Two-stage, two-scenario box problem.

    Each scenario solves clip(x̄ - u/ρ, 0, 10) and has objective 0.
    From a zero start the consensus stays at zero, which is optimal.
    """
    from rph.examples import simple_problem
    return simple_problem()


@pytest.fixture
def two_stage_quadratic():
    """
    Two-stage quadratic problem with a known solution.

    minimize  (1/2)||x||² + c_s'x,  0 <= x <= 10,  scenario probabilities 1/2

    c_0 = [-1, -2], c_1 = [-3, 0]. The first decision is shared:
    x_0 = -(p_0 c_0[0] + p_1 c_1[0]) = 2; the second stage is per scenario:
    x_1 = clip(-c_s[1], 0, 10) = [2, 0].
    """
    import rph

    oracle = rph.QuadraticOracle(
        P=[np.ones(2), np.ones(2)],
        c=[np.array([-1.0, -2.0]), np.array([-3.0, 0.0])],
        lb=0.0,
        ub=10.0,
    )
    problem = rph.Problem(
        scenarios=2,
        tree=rph.ScenarioTree.two_stage(2),
        stage_to_dim=[(0, 1), (1, 2)],
        oracle=oracle,
        probabilities=[0.5, 0.5],
    )
    return {
        "problem": problem,
        "expected_x": np.array([[2.0, 2.0], [2.0, 0.0]]),
        # f_0 = 4 - 6, f_1 = 2 - 6
        "expected_obj": -3.0,
    }


@pytest.fixture
def three_stage_problem():
    """Random three-stage binary-tree quadratic problem (4 scenarios)."""
    from rph.examples import random_quadratic_problem
    return random_quadratic_problem(depth=3, nbranching=2, dim_per_stage=2, seed=7)


@pytest.fixture
def dense_problem():
    """Random three-stage problem with dense quadratic costs."""
    from rph.examples import random_quadratic_problem
    return random_quadratic_problem(
        depth=3, nbranching=2, dim_per_stage=1, seed=3, diagonal=False
    )


@pytest.fixture
def direct_solution(three_stage_problem):
    """Ground truth for ``three_stage_problem``."""
    import rph
    return rph.solve_direct(three_stage_problem)


# ============================================================================
# Markers
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "benchmark: marks benchmark tests")
    config.addinivalue_line("markers", "integration: marks integration tests")
