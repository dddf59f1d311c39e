"""
Reliability Utilities.

Circuit breaker guarding calls to the billing provider.
"""

import logging
import time
from typing import Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger("barbershop.reliability")

T = TypeVar("T")


class CircuitOpenError(Exception):
    pass


class CircuitBreaker:
    """
    Simple Circuit Breaker implementation.
    After 'failure_threshold' consecutive failures the circuit opens and
    rejects calls for 'reset_timeout' seconds, then lets a single trial call
    through (HALF_OPEN) while rejecting concurrent callers. Only
    'tracked_exceptions' count as failures.
    """
    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        reset_timeout: float = 60,
        tracked_exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.tracked_exceptions = tracked_exceptions
        self.failures = 0
        self.last_failure_time = 0.0
        self.state = "CLOSED"  # CLOSED, OPEN, HALF_OPEN
        self.trial_in_flight = False

    async def call(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        trial = False
        if self.state == "OPEN":
            if time.monotonic() - self.last_failure_time > self.reset_timeout:
                self.state = "HALF_OPEN"
            else:
                raise CircuitOpenError(f"Circuit '{self.name}' is OPEN")

        if self.state == "HALF_OPEN":
            # One trial call at a time; everyone else is rejected until it settles
            if self.trial_in_flight:
                raise CircuitOpenError(f"Circuit '{self.name}' is HALF_OPEN, trial call in flight")
            self.trial_in_flight = True
            trial = True

        try:
            result = await func(*args, **kwargs)
        except self.tracked_exceptions:
            self.record_failure()
            raise
        finally:
            if trial:
                self.trial_in_flight = False

        if trial or self.failures:
            self.reset_state()
        return result

    def record_failure(self):
        self.failures += 1
        self.last_failure_time = time.monotonic()
        if self.state == "HALF_OPEN" or self.failures >= self.failure_threshold:
            if self.state != "OPEN":
                logger.warning("Circuit '%s' opened after %d failures", self.name, self.failures)
            self.state = "OPEN"

    def reset_state(self):
        self.failures = 0
        self.state = "CLOSED"
