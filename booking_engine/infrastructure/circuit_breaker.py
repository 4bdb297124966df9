"""
Circuit Breaker configuration for external service calls.

Pre-configured breakers for the blob store and the notification webhook so a
failing collaborator fails fast instead of piling up slow requests. Failures
that trip a breaker are absorbed by the retry queue.

Circuit Breaker Pattern:
- CLOSED: Normal operation, requests pass through
- OPEN: Too many failures, requests fail immediately
- HALF_OPEN: Testing if service recovered, limited requests allowed
"""

import logging

from pybreaker import STATE_OPEN, CircuitBreaker, CircuitBreakerError, CircuitBreakerListener

logger = logging.getLogger(__name__)


class StateChangeLogger(CircuitBreakerListener):
    """Logs circuit breaker state changes for monitoring and alerting."""

    def __init__(self, name: str):
        self.name = name

    def state_change(self, cb, old_state, new_state):
        logger.warning(
            "Circuit breaker state changed",
            extra={
                "breaker_name": self.name,
                "old_state": old_state.name if old_state else None,
                "new_state": new_state.name,
            },
        )


blob_store_breaker = CircuitBreaker(
    fail_max=5,
    reset_timeout=60,
    name="blob_store_circuit_breaker",
    listeners=[StateChangeLogger("blob_store")],
)

notification_breaker = CircuitBreaker(
    fail_max=5,
    reset_timeout=60,
    name="notification_circuit_breaker",
    listeners=[StateChangeLogger("notification")],
)


async def call_with_breaker(breaker: CircuitBreaker, func, *args, **kwargs):
    """
    Run an async callable under `breaker`.

    pybreaker only tracks synchronous callables, so the coroutine runs here
    and its outcome is replayed through the breaker to record it.
    """
    if breaker.current_state == STATE_OPEN:
        # Raises CircuitBreakerError until reset_timeout elapses, then half-opens
        breaker.call(lambda: None)

    try:
        result = await func(*args, **kwargs)
    except Exception as exc:
        _record_failure(breaker, exc)
        raise

    return breaker.call(lambda: result)


def _record_failure(breaker: CircuitBreaker, error: Exception) -> None:
    def _fail():
        raise error

    try:
        breaker.call(_fail)
    except CircuitBreakerError:
        logger.error("Circuit breaker opened", extra={"breaker_name": breaker.name})
    except Exception as recorded:
        if recorded is not error:
            raise


__all__ = [
    "blob_store_breaker",
    "notification_breaker",
    "call_with_breaker",
    "CircuitBreakerError",
]
