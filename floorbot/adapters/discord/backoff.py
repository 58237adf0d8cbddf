"""Reconnect delay policy: capped exponential backoff with full jitter."""

import random
from typing import Optional


class ReconnectBackoff:
    """Delay before each reconnect attempt.

    Attempt n (1-based) waits uniform(0, min(max_delay, base * 2**(n-1))).
    next_delay() returns None once max_attempts is used up (0 = unlimited).
    reset() is called after the session reaches READY again.
    """

    def __init__(
        self,
        base: float = 1.0,
        max_delay: float = 60.0,
        max_attempts: int = 10,
        rng: Optional[random.Random] = None,
    ):
        self.base = base
        self.max_delay = max_delay
        self.max_attempts = max_attempts
        self._rng = rng or random.Random()
        self._attempts = 0

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def exhausted(self) -> bool:
        return bool(self.max_attempts) and self._attempts >= self.max_attempts

    def ceiling(self, attempt: int) -> float:
        # Clamp the exponent so large attempt counts do not overflow
        return min(self.max_delay, self.base * (2 ** min(attempt - 1, 32)))

    def next_delay(self) -> Optional[float]:
        if self.exhausted:
            return None
        self._attempts += 1
        return self._rng.uniform(0, self.ceiling(self._attempts))

    def reset(self) -> None:
        self._attempts = 0
