from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict


@dataclass(frozen=True)
class HealthSample:
    """A single health observation of a slot.

    Response time is in milliseconds, rates as percentages (0-100).
    """
    response_time: float
    error_rate: float = 0.0
    success_rate: float = 100.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "responseTime": self.response_time,
            "errorRate": self.error_rate,
            "successRate": self.success_rate,
            "timestamp": self.timestamp.isoformat(),
        }
