"""
Retry scheduling for failed claims.

Delays come from a fixed tier list indexed by the claim's retry count
(1 → first tier, 2 → second, ...; counts past the list reuse the last tier),
so the next attempt time is fully determined by the attempt time.
"""

from datetime import datetime, timedelta
from typing import Optional, Sequence

from faucet.core.config import RetryConfig


class RetryPolicy:
    """Fixed-tier backoff with a retry ceiling."""

    def __init__(self, max_retries: int = 4, backoff_seconds: Sequence[int] = (60, 300, 1800)):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if not backoff_seconds:
            raise ValueError("backoff_seconds must contain at least one tier")
        self.max_retries = max_retries
        self.backoff_seconds = tuple(backoff_seconds)

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(config.max_retries, config.backoff_seconds)

    def delay_for(self, retry_count: int) -> timedelta:
        """Backoff tier for a claim that has failed `retry_count` times."""
        if retry_count < 1:
            raise ValueError("retry_count must be at least 1")
        index = min(retry_count, len(self.backoff_seconds)) - 1
        return timedelta(seconds=self.backoff_seconds[index])

    def is_exhausted(self, retry_count: int) -> bool:
        return retry_count >= self.max_retries

    def next_attempt(self, retry_count: int, attempted_at: datetime) -> Optional[datetime]:
        """
        When a claim with `retry_count` failures becomes eligible again, or
        None once the ceiling is reached.
        """
        if self.is_exhausted(retry_count):
            return None
        return attempted_at + self.delay_for(retry_count)
