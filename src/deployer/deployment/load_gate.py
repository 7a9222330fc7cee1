"""Load-test gate run against a slot before it receives traffic."""
import subprocess
from typing import Optional

from loguru import logger

from src.deployer.core.shell import run_command, split_command


class LoadGate:
    """Runs the external load-test suite once and reduces it to pass/fail."""

    def __init__(self, command: str, timeout: float = 180.0):
        self.command = command
        self.timeout = timeout

    def build_command(self, target_url: str) -> list:
        return split_command(self.command) + [f"--baseURL={target_url}"]

    async def run(self, target_url: str) -> bool:
        """Run the load test scoped to `target_url`.

        Returns:
            True only when the suite exits zero within the timeout
        """
        logger.info(f"⚡ Performing load testing on {target_url}")

        try:
            result = await run_command(self.build_command(target_url), timeout=self.timeout)
        except subprocess.TimeoutExpired:
            logger.error(f"❌ Load testing timed out after {self.timeout:.0f}s")
            return False
        except Exception as e:
            logger.error(f"❌ Load testing could not run: {e}")
            return False

        if not result.ok:
            logger.error(
                f"❌ Load testing failed for {target_url} (exit {result.returncode}): "
                f"{self._tail(result.stderr or result.stdout)}"
            )
            return False

        logger.info(f"✅ Load testing passed for {target_url}")
        return True

    @staticmethod
    def _tail(output: Optional[str], lines: int = 5) -> str:
        if not output:
            return ""
        return " | ".join(output.strip().splitlines()[-lines:])
