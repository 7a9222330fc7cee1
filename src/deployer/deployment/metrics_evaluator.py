"""Rolling-window health evaluation for traffic switches and monitoring.

Implements the decision of whether the slot receiving traffic is healthy,
based on the average of the most recent samples against fixed thresholds.
"""
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional

from loguru import logger

from src.deployer.models.samples import HealthSample
from src.deployer.monitoring.metrics import WINDOW_AVERAGE


@dataclass
class HealthThresholds:
    """Limits applied to the averaged evaluation window."""
    max_response_time: float = 3000.0  # ms
    max_error_rate: float = 5.0        # percent
    min_success_rate: float = 95.0     # percent
    window: int = 5                    # samples averaged
    min_samples: int = 3               # grace period below this

    def __post_init__(self):
        """Validate thresholds are reasonable."""
        if self.max_response_time <= 0:
            raise ValueError("Response time threshold must be > 0")
        if not 0 <= self.max_error_rate <= 100:
            raise ValueError("Error rate threshold must be between 0 and 100")
        if not 0 <= self.min_success_rate <= 100:
            raise ValueError("Success rate threshold must be between 0 and 100")
        if self.window < 1 or self.min_samples < 1:
            raise ValueError("Window sizes must be positive")


@dataclass(frozen=True)
class WindowAverages:
    response_time: float
    error_rate: float
    success_rate: float
    samples: int


class MetricsEvaluator:
    """Bounded buffer of health samples with a healthy/degraded verdict."""

    capacity = 20

    def __init__(self, thresholds: Optional[HealthThresholds] = None):
        self.thresholds = thresholds or HealthThresholds()
        self._samples: Deque[HealthSample] = deque(maxlen=self.capacity)

    def __len__(self) -> int:
        return len(self._samples)

    def record(self, sample: HealthSample) -> None:
        """Append a sample, evicting the oldest beyond capacity."""
        self._samples.append(sample)
        logger.debug(
            f"Recorded sample: RT={sample.response_time:.0f}ms "
            f"ER={sample.error_rate}% SR={sample.success_rate}%"
        )

    def recent(self, count: int = 5) -> List[HealthSample]:
        """Return up to `count` of the newest samples, oldest first."""
        if count <= 0:
            return []
        return list(self._samples)[-count:]

    def averages(self) -> Optional[WindowAverages]:
        """Average the evaluation window, or None when there is no data."""
        window = self.recent(self.thresholds.window)
        if not window:
            return None
        n = len(window)
        return WindowAverages(
            response_time=sum(s.response_time for s in window) / n,
            error_rate=sum(s.error_rate for s in window) / n,
            success_rate=sum(s.success_rate for s in window) / n,
            samples=n,
        )

    def is_healthy(self) -> bool:
        """Evaluate the most recent window against the thresholds.

        Returns:
            True while fewer than `min_samples` samples exist, otherwise
            whether all averaged metrics are within their limits
        """
        if len(self._samples) < self.thresholds.min_samples:
            return True  # Not enough data yet

        avg = self.averages()
        WINDOW_AVERAGE.labels(metric="response_time_ms").set(avg.response_time)
        WINDOW_AVERAGE.labels(metric="error_rate").set(avg.error_rate)
        WINDOW_AVERAGE.labels(metric="success_rate").set(avg.success_rate)

        healthy = (
            avg.response_time <= self.thresholds.max_response_time
            and avg.error_rate <= self.thresholds.max_error_rate
            and avg.success_rate >= self.thresholds.min_success_rate
        )

        if not healthy:
            logger.warning(
                f"⚠️ Health metrics degraded - RT: {avg.response_time:.0f}ms, "
                f"ER: {avg.error_rate:.2f}%, SR: {avg.success_rate:.2f}%"
            )

        return healthy

    def clear(self) -> None:
        self._samples.clear()
