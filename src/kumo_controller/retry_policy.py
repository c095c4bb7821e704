"""Bounded rediscover-and-retry policy for the dispatcher.

A transport failure usually means the zone's LAN address changed or the cloud
token went stale, so the dispatcher rediscovers and tries again. The number of
such cycles is capped and spaced with exponential backoff.
"""

from __future__ import annotations

import random

from kumo_controller.const import KUMO_MAX_REDISCOVERIES, KUMO_RETRY_BASE_DELAY


class RetryPolicy:
    """Exponential backoff with jitter and a hard attempt cap."""

    def __init__(
        self,
        max_rediscoveries: int = KUMO_MAX_REDISCOVERIES,
        base_delay_seconds: float = KUMO_RETRY_BASE_DELAY,
        max_delay_seconds: float = 5.0,
        jitter_factor: float = 0.1,
    ):
        """Initialize retry policy.

        Args:
            max_rediscoveries: Rediscover-and-retry cycles allowed per call (0 disables retry)
            base_delay_seconds: Delay before the first retry
            max_delay_seconds: Upper bound for any single delay
            jitter_factor: Jitter as a fraction of the delay (0.1 = up to 10%)
        """
        self.max_rediscoveries = max(0, max_rediscoveries)
        self.base_delay_seconds = base_delay_seconds
        self.max_delay_seconds = max_delay_seconds
        self.jitter_factor = jitter_factor

    def should_retry(self, attempt: int) -> bool:
        """Whether rediscovery cycle ``attempt`` (0-indexed) is allowed."""
        return attempt < self.max_rediscoveries

    def get_delay(self, attempt: int) -> float:
        """Delay before retry ``attempt`` (0-indexed): base * 2**attempt, capped, plus jitter."""
        delay = min(self.base_delay_seconds * (2**attempt), self.max_delay_seconds)
        jitter = random.uniform(0, delay * self.jitter_factor)
        return delay + jitter

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_rediscoveries={self.max_rediscoveries}, "
            f"base_delay={self.base_delay_seconds}s, "
            f"max_delay={self.max_delay_seconds}s, "
            f"jitter_factor={self.jitter_factor})"
        )
