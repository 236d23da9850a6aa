"""Wall-clock budget shared by every stage of one scrape request."""

from __future__ import annotations

import time
from typing import Callable


class Deadline:
    """Absolute deadline = request start + hard limit.

    Stages ask :meth:`allows` before they begin. In-flight work is never
    interrupted here; only its own Playwright timeout can cut it short.
    """

    def __init__(self, hard_limit_ms: int = 15000, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.hard_limit_ms = int(hard_limit_ms)
        self.expires_at = clock() + self.hard_limit_ms / 1000.0

    def remaining_ms(self) -> int:
        return max(0, int((self.expires_at - self._clock()) * 1000))

    def allows(self, min_ms: int) -> bool:
        """True when at least ``min_ms`` remain for a new stage."""
        return self.remaining_ms() >= min_ms

    def __repr__(self) -> str:
        return f"Deadline(remaining_ms={self.remaining_ms()})"
