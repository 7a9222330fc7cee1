"""Circuit breaker guarding the notification webhook."""
import pybreaker
from loguru import logger

from src.deployer.monitoring.metrics import CIRCUIT_STATE


def on_circuit_open(cb, exc):
    """Called when circuit opens."""
    logger.error(f"🔴 Circuit OPEN for {cb.name}: {exc}")
    CIRCUIT_STATE.labels(service=cb.name).set(1)


def on_circuit_close(cb):
    """Called when circuit closes."""
    logger.info(f"🟢 Circuit CLOSED for {cb.name}")
    CIRCUIT_STATE.labels(service=cb.name).set(0)


def on_circuit_half_open(cb):
    """Called when circuit enters half-open state."""
    logger.warning(f"🟡 Circuit HALF-OPEN for {cb.name}")
    CIRCUIT_STATE.labels(service=cb.name).set(2)


class _StateListener(pybreaker.CircuitBreakerListener):
    def state_change(self, cb, old_state, new_state):
        if new_state.name == pybreaker.STATE_OPEN:
            on_circuit_open(cb, f"{cb.fail_counter} consecutive failures")
        elif new_state.name == pybreaker.STATE_CLOSED:
            on_circuit_close(cb)
        elif new_state.name == pybreaker.STATE_HALF_OPEN:
            on_circuit_half_open(cb)


# Notification webhook circuit breaker
webhook_breaker = pybreaker.CircuitBreaker(
    fail_max=3,              # Open after 3 consecutive failures
    reset_timeout=60,        # Try again after 60 seconds
    name="notification_webhook",
    listeners=[_StateListener()],
)
