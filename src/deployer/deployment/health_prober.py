"""Health gate probing of a freshly deployed slot."""
import time
from typing import Optional, Tuple

import httpx
from loguru import logger
from pydantic import ValidationError

from src.deployer.core.scheduler import AsyncioScheduler, Scheduler
from src.deployer.models.samples import HealthSample
from src.deployer.models.schemas import HealthResponse
from src.deployer.monitoring.metrics import HEALTH_PROBE_ATTEMPTS, HEALTH_PROBE_LATENCY


class HealthProber:
    """Polls `{target}/api/health` with fixed-delay retries (no backoff growth)."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        scheduler: Optional[Scheduler] = None,
        timeout: float = 10.0,
    ):
        """Initialize health prober.

        Args:
            client: HTTP client, created on demand when omitted
            scheduler: Source of retry waits
            timeout: Per-request timeout in seconds
        """
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.scheduler = scheduler or AsyncioScheduler()

    async def probe(
        self,
        target_url: str,
        max_attempts: int = 10,
        retry_delay: float = 5.0,
    ) -> Tuple[Optional[HealthSample], bool]:
        """Probe a slot until it reports healthy or attempts run out.

        Args:
            target_url: Base URL of the slot
            max_attempts: Number of requests before giving up
            retry_delay: Seconds to wait between attempts

        Returns:
            Tuple of (sample of the successful attempt, ok)
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        url = f"{target_url.rstrip('/')}/api/health"
        logger.info(f"🏥 Performing health checks on {target_url}")

        for attempt in range(1, max_attempts + 1):
            try:
                started = time.perf_counter()
                response = await self.client.get(url)
                elapsed = time.perf_counter() - started

                if response.status_code == 200 and self._reports_healthy(response):
                    response_time = elapsed * 1000
                    HEALTH_PROBE_ATTEMPTS.labels(slot_url=target_url, result="healthy").inc()
                    HEALTH_PROBE_LATENCY.observe(elapsed)
                    logger.info(f"✅ Health check passed ({response_time:.0f}ms)")
                    return HealthSample(
                        response_time=response_time,
                        error_rate=0.0,
                        success_rate=100.0,
                    ), True

                HEALTH_PROBE_ATTEMPTS.labels(slot_url=target_url, result="unhealthy").inc()
                logger.warning(
                    f"⚠️ Health check attempt {attempt}/{max_attempts} failed "
                    f"(HTTP {response.status_code})"
                )

            except httpx.HTTPError as e:
                HEALTH_PROBE_ATTEMPTS.labels(slot_url=target_url, result="error").inc()
                logger.warning(f"⚠️ Health check attempt {attempt}/{max_attempts} error: {e}")

            if attempt < max_attempts:
                await self.scheduler.after(retry_delay)

        logger.error(f"❌ Health checks failed after {max_attempts} attempts")
        return None, False

    @staticmethod
    def _reports_healthy(response: httpx.Response) -> bool:
        try:
            body = HealthResponse.model_validate_json(response.content)
        except ValidationError:
            return False
        return body.status == "healthy"

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()
