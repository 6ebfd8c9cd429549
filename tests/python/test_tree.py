"""
Tests for Scenario Trees.

Tests covering:
1. Perfect trees and group lookup
2. Explicit partitions and two-stage trees
3. Construction errors
4. Partition and refinement properties
"""

import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st


class TestPerfectTree:
    """Test ScenarioTree.perfect."""

    def test_sizes(self):
        """Depth 3, branching 2 has 4 scenarios."""
        from rph import ScenarioTree

        tree = ScenarioTree.perfect(depth=3, nbranching=2)

        assert tree.nscenarios == 4
        assert tree.nstages == 3
        assert [tree.ngroups(t) for t in range(3)] == [1, 2, 4]

    def test_group_of(self):
        """Scenario s is in group s // b^(depth-1-t)."""
        from rph import ScenarioTree

        tree = ScenarioTree.perfect(depth=3, nbranching=3)

        for s in range(tree.nscenarios):
            assert tree.group_of(s, 0) == 0
            assert tree.group_of(s, 1) == s // 3
            assert tree.group_of(s, 2) == s

    def test_members(self):
        """Members are sorted scenario ids."""
        from rph import ScenarioTree

        tree = ScenarioTree.perfect(depth=3, nbranching=2)

        assert tree.members(0, 0) == [0, 1, 2, 3]
        assert tree.members(1, 0) == [0, 1]
        assert tree.members(1, 1) == [2, 3]
        assert tree.members(2, 3) == [3]

    def test_single_stage(self):
        """Depth 1 is a single scenario at the root."""
        from rph import ScenarioTree

        tree = ScenarioTree.perfect(depth=1, nbranching=5)

        assert tree.nscenarios == 1
        assert tree.is_leaf_stage(0)

    def test_leaf_stage(self):
        """Only the last stage of a perfect tree is a leaf stage."""
        from rph import ScenarioTree

        tree = ScenarioTree.perfect(depth=3, nbranching=2)

        assert not tree.is_leaf_stage(0)
        assert not tree.is_leaf_stage(1)
        assert tree.is_leaf_stage(2)

    def test_group_table(self):
        """Group table matches group_of and is a copy."""
        from rph import ScenarioTree

        tree = ScenarioTree.perfect(depth=3, nbranching=2)
        table = tree.group_table()

        assert table.shape == (3, 4)
        np.testing.assert_array_equal(table[1], [0, 0, 1, 1])

        table[1, 0] = 99
        assert tree.group_of(0, 1) == 0

    @pytest.mark.parametrize("depth,nbranching", [(0, 2), (2, 0)])
    def test_invalid_arguments(self, depth, nbranching):
        """Depth and branching must be positive."""
        from rph import ScenarioTree, TreeConstructionError

        with pytest.raises(TreeConstructionError):
            ScenarioTree.perfect(depth, nbranching)


class TestExplicitPartitions:
    """Test trees from explicit partitions."""

    def test_unbalanced_tree(self):
        """Groups may have different sizes."""
        from rph import ScenarioTree

        tree = ScenarioTree.from_partitions([
            [[0, 1, 2]],
            [[0], [1, 2]],
            [[0], [1], [2]],
        ])

        assert tree.nscenarios == 3
        assert tree.group_of(2, 1) == 1
        assert tree.partition(1) == [[0], [1, 2]]

    def test_unsorted_members(self):
        """Member lists are sorted on construction."""
        from rph import ScenarioTree

        tree = ScenarioTree([[[2, 0, 1]], [[2, 1], [0]]])

        assert tree.members(0, 0) == [0, 1, 2]
        assert tree.members(1, 0) == [1, 2]

    def test_two_stage(self):
        """Two-stage tree: root then one group per scenario."""
        from rph import ScenarioTree

        tree = ScenarioTree.two_stage(5)

        assert tree.nstages == 2
        assert tree.ngroups(0) == 1
        assert tree.ngroups(1) == 5
        assert list(tree.groups_at(1)) == [0, 1, 2, 3, 4]

    def test_repr(self):
        """Repr shows the group counts."""
        from rph import ScenarioTree

        assert "groups_per_stage=[1, 2]" in repr(ScenarioTree.two_stage(2))


class TestConstructionErrors:
    """Test TreeConstructionError cases."""

    def test_no_stages(self):
        """At least one stage is required."""
        from rph import ScenarioTree, TreeConstructionError

        with pytest.raises(TreeConstructionError):
            ScenarioTree([])

    def test_missing_scenario(self):
        """Every scenario must be covered."""
        from rph import ScenarioTree, TreeConstructionError

        with pytest.raises(TreeConstructionError, match="not covered"):
            ScenarioTree([[[0, 1, 2]], [[0], [1]]])

    def test_duplicate_scenario(self):
        """A scenario may belong to a single group per stage."""
        from rph import ScenarioTree, TreeConstructionError

        with pytest.raises(TreeConstructionError, match="more than one group"):
            ScenarioTree([[[0, 1]], [[0, 1], [1]]])

    def test_out_of_range(self):
        """Scenario ids must be in range."""
        from rph import ScenarioTree, TreeConstructionError

        with pytest.raises(TreeConstructionError, match="outside"):
            ScenarioTree([[[0, 1]], [[0], [5]]], nscenarios=2)

    def test_empty_group(self):
        """Empty groups are rejected."""
        from rph import ScenarioTree, TreeConstructionError

        with pytest.raises(TreeConstructionError, match="empty"):
            ScenarioTree([[[0, 1]], [[0, 1], []]])

    def test_root_not_single_group(self):
        """Stage 0 is a single group."""
        from rph import ScenarioTree, TreeConstructionError

        with pytest.raises(TreeConstructionError, match="single group"):
            ScenarioTree([[[0], [1]], [[0], [1]]])

    def test_not_a_refinement(self):
        """A stage must refine the previous one."""
        from rph import ScenarioTree, TreeConstructionError

        with pytest.raises(TreeConstructionError, match="straddles"):
            ScenarioTree([
                [[0, 1, 2, 3]],
                [[0, 1], [2, 3]],
                [[0], [1, 2], [3]],
            ])

    def test_error_is_rph_error(self):
        """TreeConstructionError derives from RPHError."""
        from rph import RPHError, ScenarioTree

        with pytest.raises(RPHError, match="Invalid scenario tree"):
            ScenarioTree([[[0], [1]]])


@st.composite
def nested_partitions(draw):
    """Random scenario tree as a list of nested partitions."""
    n = draw(st.integers(min_value=1, max_value=12))
    nstages = draw(st.integers(min_value=1, max_value=4))

    labels = [np.zeros(n, dtype=int)]
    for _ in range(1, nstages):
        # Split each group of the previous stage into up to 3 children
        child = draw(st.lists(st.integers(0, 2), min_size=n, max_size=n))
        labels.append(labels[-1] * 3 + np.asarray(child))

    partitions = []
    for lab in labels:
        keys = sorted(set(lab.tolist()))
        partitions.append([np.flatnonzero(lab == k).tolist() for k in keys])
    return n, partitions


class TestTreeProperties:
    """Property-based checks of the partition structure."""

    @given(nested_partitions())
    @settings(max_examples=50, deadline=None)
    def test_stages_partition_scenarios(self, data):
        """Each stage's groups partition the scenario set."""
        from rph import ScenarioTree

        n, partitions = data
        tree = ScenarioTree(partitions)

        for t in range(tree.nstages):
            members = sorted(s for g in tree.groups_at(t) for s in tree.members(t, g))
            assert members == list(range(n))

    @given(nested_partitions())
    @settings(max_examples=50, deadline=None)
    def test_stages_refine(self, data):
        """Scenarios sharing a group at t share a group at t - 1."""
        from rph import ScenarioTree

        _, partitions = data
        tree = ScenarioTree(partitions)

        for t in range(1, tree.nstages):
            for g in tree.groups_at(t):
                members = tree.members(t, g)
                parents = {tree.group_of(s, t - 1) for s in members}
                assert len(parents) == 1

    @given(nested_partitions())
    @settings(max_examples=50, deadline=None)
    def test_group_of_consistent_with_members(self, data):
        """group_of(s, t) == g iff s in members(t, g)."""
        from rph import ScenarioTree

        n, partitions = data
        tree = ScenarioTree(partitions)

        for t in range(tree.nstages):
            for s in range(n):
                assert s in tree.members(t, tree.group_of(s, t))
