"""
exponential backoff with jitter.
"""

import random
import time
from typing import Callable, Optional

JitterFn = Callable[[float, int], float]
SleepFn = Callable[[float], None]


class BackoffPolicy:
    """
    computes the wait before a retry attempt and performs the sleep.

    without a jitter function the delay is drawn uniformly from
    [delay/2, delay] (equal jitter). sleeper is injectable so tests
    don't actually wait.
    """

    def __init__(
        self,
        base_delay: float = 0.5,
        max_delay: float = 60.0,
        factor: float = 2.0,
        jitter: Optional[JitterFn] = None,
        sleeper: Optional[SleepFn] = None,
    ):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.factor = factor
        self.jitter = jitter
        self.sleeper = sleeper

    def duration(self, attempt: int) -> float:
        """seconds to wait before the given attempt."""
        attempt = max(0, attempt)
        try:
            delay = min(self.base_delay * (self.factor ** attempt), self.max_delay)
        except OverflowError:
            # growth past float range saturates at the cap
            delay = self.max_delay
        if delay <= 0:
            return 0.0

        if self.jitter is not None:
            return max(0.0, float(self.jitter(delay, attempt)))

        low = delay / 2
        return random.uniform(low, delay)

    def sleep(self, seconds: float):
        if seconds <= 0:
            return
        if self.sleeper is not None:
            self.sleeper(seconds)
        else:
            time.sleep(seconds)
