"""When does watching a lesson count as finished?

  duration <  30s  -> completed only at 100%
  duration >= 30s  -> completed at 95% or more

Short clips need a full play because percentage rounding would otherwise
hand out completion after a few seconds; longer videos tolerate an
unwatched tail (credits, trailing silence).
"""

from __future__ import annotations

from dataclasses import dataclass

SHORT_VIDEO_SECONDS = 30.0
SHORT_VIDEO_THRESHOLD = 100
LONG_VIDEO_THRESHOLD = 95


@dataclass(frozen=True, slots=True)
class CompletionResult:
    percentage: int
    completed: bool


def completion_threshold(duration: float) -> int:
    if duration < SHORT_VIDEO_SECONDS:
        return SHORT_VIDEO_THRESHOLD
    return LONG_VIDEO_THRESHOLD


def completion_percentage(position: float, duration: float) -> int:
    """Rounded, clamped to 0..100.  Non-positive duration yields 0."""
    if duration <= 0:
        return 0
    # round-half-up; round() would send 94.5 to 94
    percentage = int(position / duration * 100 + 0.5)
    return max(0, min(100, percentage))


def evaluate(position: float, duration: float) -> CompletionResult:
    if duration <= 0:
        return CompletionResult(percentage=0, completed=False)
    # Judged on the rounded percentage: 24.88s of a 25s clip rounds to 100
    # and completes.
    percentage = completion_percentage(position, duration)
    return CompletionResult(
        percentage=percentage,
        completed=percentage >= completion_threshold(duration),
    )
