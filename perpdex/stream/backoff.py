"""Reconnect backoff with deterministic jitter."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

# Knuth multiplicative hash; spreads consecutive failure counts over [0, 1)
_GOLDEN = 2654435761
_MOD = 2**32


@dataclass(frozen=True)
class BackoffPolicy:
    base_s: float = 0.5
    cap_s: float = 30.0
    jitter_ratio: float = 0.1
    max_retries: Optional[int] = None  # None = retry forever

    def __post_init__(self):
        if self.base_s <= 0 or self.cap_s < self.base_s:
            raise ValueError("need 0 < base_s <= cap_s")
        if not 0 <= self.jitter_ratio < 1:
            raise ValueError("jitter_ratio must be in [0, 1)")
        if self.max_retries is not None and self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    def jitter(self, failures: int) -> float:
        return ((failures * _GOLDEN) % _MOD) / _MOD * self.jitter_ratio

    def delay(self, failures: int) -> float:
        """Delay before the next attempt after ``failures`` consecutive failures.

        Doubles per failure; the jitter stays below the doubling step so the
        sequence is non-decreasing until it reaches ``cap_s``.
        """
        if failures <= 0:
            return 0.0
        # exponent bounded to avoid float overflow on very long outages
        raw = self.base_s * (2 ** min(failures - 1, 64))
        return min(self.cap_s, raw * (1.0 + self.jitter(failures)))

    def exhausted(self, failures: int) -> bool:
        return self.max_retries is not None and failures > self.max_retries
