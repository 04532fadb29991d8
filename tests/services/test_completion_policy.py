"""Tests for the completion policy (percentage + completed flag)."""

from __future__ import annotations

import pytest

from app.services import completion_policy
from app.services.completion_policy import CompletionResult

CASES = [
    # (position, duration, percentage, completed)
    (0.0, 120.0, 0, False),
    (60.0, 120.0, 50, False),
    (112.8, 120.0, 94, False),
    (114.0, 120.0, 95, True),
    (120.0, 120.0, 100, True),
    # short clips need the full play
    (24.75, 25.0, 99, False),
    (25.0, 25.0, 100, True),
    # within rounding of the end counts as the full play
    (24.88, 25.0, 100, True),
    (24.87, 25.0, 99, False),
    # exactly 30s is already a long video
    (28.5, 30.0, 95, True),
    (28.5, 29.9, 95, False),
]


@pytest.mark.parametrize("position,duration,percentage,completed", CASES)
def test_evaluate(
    position: float, duration: float, percentage: int, completed: bool
) -> None:
    assert completion_policy.evaluate(position, duration) == CompletionResult(
        percentage=percentage, completed=completed
    )


@pytest.mark.parametrize("duration", [0.0, -5.0])
def test_non_positive_duration_is_zero_and_incomplete(duration: float) -> None:
    result = completion_policy.evaluate(10.0, duration)
    assert result.percentage == 0
    assert result.completed is False


def test_percentage_rounds_half_up() -> None:
    # 15/120 is exactly 12.5%; banker's rounding would give 12
    assert completion_policy.completion_percentage(15.0, 120.0) == 13
    assert completion_policy.completion_percentage(45.0, 120.0) == 38


def test_percentage_is_clamped() -> None:
    assert completion_policy.completion_percentage(150.0, 120.0) == 100
    assert completion_policy.completion_percentage(-10.0, 120.0) == 0


def test_threshold_boundary() -> None:
    assert completion_policy.completion_threshold(29.999) == 100
    assert completion_policy.completion_threshold(30.0) == 95
    assert completion_policy.completion_threshold(3600.0) == 95


def test_short_clip_completes_when_rounded_to_full() -> None:
    """Completion uses the rounded percentage, not the raw ratio."""
    assert 24.88 / 25.0 < 1.0
    assert completion_policy.evaluate(24.88, 25.0) == CompletionResult(
        percentage=100, completed=True
    )
