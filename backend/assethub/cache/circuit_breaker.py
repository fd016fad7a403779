"""
AssetHub Backend — Circuit Breaker
===================================

What:  Skips a failing dependency for a cool-down period.
Why:   With the cache down, every request would otherwise pay the full socket
       timeout before falling back to the Store. Once the breaker opens,
       cache calls fail in well under a millisecond.
Who:   Wraps every call made by RedisCacheService.

State Machine:
    CLOSED (normal operation)
        → On failure: increment failure_count
        → When failure_count >= threshold: transition to OPEN

    OPEN (rejecting all calls)
        → can_execute raises CircuitBreakerOpenError immediately
        → After recovery_timeout seconds: transition to HALF_OPEN

    HALF_OPEN (testing recovery)
        → Allow calls through
        → On success: transition to CLOSED (reset failure_count)
        → On failure: transition back to OPEN (reset timer)

Thread Safety:
    Plain counters, no locks. All callers run on one event loop.
"""

import logging
import time
from typing import Optional

from assethub.exceptions import CircuitBreakerOpenError

logger = logging.getLogger(__name__)


class CircuitBreaker:

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 30, name: str = "cache"):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns:
            True if the call can proceed (CLOSED, or HALF_OPEN after timeout).

        Raises:
            CircuitBreakerOpenError if OPEN and the recovery timeout hasn't elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker '%s' transitioning to HALF_OPEN after %.1fs",
                    self.name,
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=remaining)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker '%s' transitioning to CLOSED (recovered)", self.name)
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker '%s' returning to OPEN (test call failed)", self.name)
            self.state = self.OPEN
        elif self.state == self.CLOSED and self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker '%s' OPENING after %d consecutive failures",
                self.name,
                self.failure_count,
            )
            self.state = self.OPEN
