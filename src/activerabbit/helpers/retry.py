"""
Retry policy with exponential backoff.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class RetryConfig:
    """
    Retry settings for collector requests.

    Attributes:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        base_delay: Delay before the first retry, in seconds
    """

    max_retries: int = 3
    base_delay: float = 1.0


def calculate_backoff_delay(attempt: int, config: RetryConfig) -> float:
    """Delay before retry number ``attempt`` (1-based): base_delay * 2^(attempt-1)."""
    if attempt < 1:
        return 0.0
    return config.base_delay * (2 ** (attempt - 1))
