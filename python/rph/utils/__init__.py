"""Utility helpers."""

from .validation import (
    validate_partition,
    validate_probabilities,
    validate_refinement,
    validate_stage_ranges,
)

__all__ = [
    "validate_partition",
    "validate_probabilities",
    "validate_refinement",
    "validate_stage_ranges",
]
