"""
Reliability Utilities.

Circuit breaker with a per-call timeout, used to keep best-effort
collaborators (notifications) from slowing down or failing a sale.
"""

import time
import asyncio
from typing import Callable, Any, Optional

from backend.app.core.config import settings


class CircuitOpenError(Exception):
    pass


class CircuitBreaker:
    """
    Simple Circuit Breaker implementation.
    If 'failure_threshold' consecutive failures occur, the circuit opens and
    rejects calls for 'reset_timeout' seconds. A timed-out call counts as a failure.
    """
    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: int = 60,
        call_timeout: Optional[float] = None
    ):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.call_timeout = call_timeout
        self.failures = 0
        self.last_failure_time = 0
        self.state = "CLOSED" # CLOSED, OPEN, HALF_OPEN

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        if self.state == "OPEN":
            if time.time() - self.last_failure_time > self.reset_timeout:
                self.state = "HALF_OPEN"
            else:
                raise CircuitOpenError("Circuit is OPEN")

        try:
            if self.call_timeout is not None:
                result = await asyncio.wait_for(func(*args, **kwargs), timeout=self.call_timeout)
            else:
                result = await func(*args, **kwargs)
            if self.state == "HALF_OPEN" or self.failures:
                self.reset_state()
            return result
        except Exception:
            self.record_failure()
            raise

    def record_failure(self):
        self.failures += 1
        self.last_failure_time = time.time()
        if self.failures >= self.failure_threshold:
            self.state = "OPEN"

    def reset_state(self):
        self.failures = 0
        self.state = "CLOSED"


# Global instance for post-sale notifications
notification_circuit_breaker = CircuitBreaker(
    failure_threshold=settings.notification_failure_threshold,
    reset_timeout=settings.notification_reset_timeout,
    call_timeout=settings.notification_timeout_seconds,
)
