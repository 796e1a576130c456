"""Configuration models and helpers for writing sessions."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import timedelta

from .errors import InvalidDuration


@dataclass(slots=True)
class SessionSettings:
    """Runtime configuration for the session engine."""

    default_duration: timedelta = timedelta(minutes=15)
    min_duration: timedelta = timedelta(seconds=60)
    max_duration: timedelta = timedelta(minutes=60)
    tick_interval: timedelta = timedelta(seconds=1)
    inactivity_threshold: timedelta = timedelta(seconds=30)
    short_text_word_threshold: int = 50

    @classmethod
    def from_minutes(
        cls,
        duration_minutes: float,
        inactivity_seconds: float | None = None,
    ) -> "SessionSettings":
        inactivity = inactivity_seconds if inactivity_seconds is not None else 30.0
        return cls(
            default_duration=timedelta(minutes=duration_minutes),
            inactivity_threshold=timedelta(seconds=inactivity),
        )

    def clamp_duration(self, seconds: float | None) -> float:
        """Return the target duration in seconds for a new session."""
        if seconds is None:
            return self.default_duration.total_seconds()
        if not isinstance(seconds, (int, float)) or not math.isfinite(seconds) or seconds <= 0:
            raise InvalidDuration(seconds)
        low = self.min_duration.total_seconds()
        high = self.max_duration.total_seconds()
        return float(min(max(seconds, low), high))
