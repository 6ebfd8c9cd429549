"""Input validation utilities."""

from typing import List, Sequence, Tuple

import numpy as np


def validate_partition(
    groups: Sequence[Sequence[int]],
    n: int,
) -> Tuple[bool, str]:
    """
    Check that ``groups`` partition ``{0, ..., n-1}``.

    Returns:
        (is_valid, error_message) tuple
    """
    seen = np.zeros(n, dtype=bool)
    for g, members in enumerate(groups):
        if len(members) == 0:
            return False, f"group {g} is empty"
        for s in members:
            if not 0 <= s < n:
                return False, f"group {g} has scenario {s} outside [0, {n})"
            if seen[s]:
                return False, f"scenario {s} appears in more than one group"
            seen[s] = True

    if not seen.all():
        missing = np.flatnonzero(~seen).tolist()
        return False, f"scenarios {missing} are not covered"

    return True, ""


def validate_refinement(
    coarse: Sequence[Sequence[int]],
    fine: Sequence[Sequence[int]],
    n: int,
) -> Tuple[bool, str]:
    """
    Check that partition ``fine`` refines partition ``coarse``.

    Returns:
        (is_valid, error_message) tuple
    """
    owner = np.empty(n, dtype=np.int64)
    for g, members in enumerate(coarse):
        owner[list(members)] = g

    for g, members in enumerate(fine):
        parents = set(owner[list(members)].tolist())
        if len(parents) > 1:
            return False, f"group {g} straddles groups {sorted(parents)} of the previous stage"

    return True, ""


def validate_probabilities(
    probabilities: np.ndarray,
    tol: float = 1e-6,
) -> Tuple[bool, str]:
    """
    Check that ``probabilities`` are positive and sum to one.

    Returns:
        (is_valid, error_message) tuple
    """
    if probabilities.ndim != 1:
        return False, "probabilities must be one-dimensional"

    if np.any(np.isnan(probabilities)):
        return False, "probabilities contain NaN values"

    if np.any(probabilities <= 0):
        return False, "probabilities must be strictly positive"

    total = probabilities.sum()
    if abs(total - 1.0) > tol:
        return False, f"probabilities sum to {total}, not 1.0"

    return True, ""


def validate_stage_ranges(
    ranges: List[range],
    dim: int,
) -> Tuple[bool, str]:
    """
    Check that ``ranges`` are disjoint and cover ``{0, ..., dim-1}``.

    Returns:
        (is_valid, error_message) tuple
    """
    covered = np.zeros(dim, dtype=np.int64)
    for t, r in enumerate(ranges):
        if len(r) == 0:
            return False, f"stage {t} has an empty dimension range"
        if r.start < 0 or r.stop > dim:
            return False, f"stage {t} range {r.start}:{r.stop} exceeds dimension {dim}"
        covered[r.start:r.stop] += 1

    if np.any(covered > 1):
        return False, f"dimensions {np.flatnonzero(covered > 1).tolist()} belong to several stages"

    if np.any(covered == 0):
        return False, f"dimensions {np.flatnonzero(covered == 0).tolist()} belong to no stage"

    return True, ""
