"""
Tests for scenario sampling.
"""

import numpy as np
import pytest


class TestScenarioSampler:
    """Test ScenarioSampler."""

    def test_distinct(self):
        """Samples are distinct scenarios."""
        from rph.ph import ScenarioSampler

        sampler = ScenarioSampler(10, seed=0)

        for _ in range(20):
            picks = sampler.sample(4)
            assert len(picks) == 4
            assert len(set(picks)) == 4
            assert all(0 <= s < 10 for s in picks)

    def test_exclude(self):
        """Excluded scenarios are never drawn."""
        from rph.ph import ScenarioSampler

        sampler = ScenarioSampler(5, seed=1)

        for _ in range(20):
            assert set(sampler.sample(3, exclude={0, 1})) == {2, 3, 4}

    def test_fewer_candidates(self):
        """Asking for more than available returns what remains."""
        from rph.ph import ScenarioSampler

        sampler = ScenarioSampler(3, seed=2)

        assert sorted(sampler.sample(10)) == [0, 1, 2]
        assert sampler.sample(2, exclude=[0, 1, 2]) == []

    def test_zero_weight_never_drawn(self):
        """Scenarios with zero sampling weight are skipped."""
        from rph.ph import ScenarioSampler

        sampler = ScenarioSampler(4, distribution=[1.0, 0.0, 1.0, 0.0], seed=3)

        drawn = {s for _ in range(50) for s in sampler.sample(2)}
        assert drawn == {0, 2}

    def test_seed_reproducible(self):
        """Same seed, same draws."""
        from rph.ph import ScenarioSampler

        a = ScenarioSampler(8, seed=42)
        b = ScenarioSampler(8, seed=42)

        assert [a.sample(3) for _ in range(5)] == [b.sample(3) for _ in range(5)]

    def test_follows_distribution(self):
        """Single draws follow the sampling distribution."""
        from rph.ph import ScenarioSampler

        q = np.array([0.7, 0.2, 0.1])
        sampler = ScenarioSampler(3, distribution=q, seed=0)

        counts = np.bincount([sampler.sample(1)[0] for _ in range(5000)], minlength=3)
        np.testing.assert_allclose(counts / 5000, q, atol=0.03)

    def test_wrong_shape(self):
        """Distribution must have one weight per scenario."""
        from rph import InvalidInputError
        from rph.ph import ScenarioSampler

        with pytest.raises(InvalidInputError):
            ScenarioSampler(3, distribution=[0.5, 0.5])
