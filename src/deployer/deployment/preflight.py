"""Pre-deployment validation: quality gates, platform access, environment."""
import os
import subprocess
from pathlib import Path
from typing import Iterable, Mapping, Optional

from loguru import logger
from pydantic import ValidationError

from src.deployer.core.errors import PreflightFailure
from src.deployer.core.shell import run_command
from src.deployer.deployment.hosting import HostingProvider
from src.deployer.models.schemas import GateResults

REQUIRED_ENV = ("FIREBASE_TOKEN", "NODE_ENV")


class PreflightChecker:
    """Blocks a deployment before anything is published."""

    def __init__(
        self,
        hosting: HostingProvider,
        gate_command: str = "npm run gates:all",
        gate_timeout: float = 300.0,
        results_path: str = "dod-results.json",
        min_score: float = 85.0,
        required_env: Iterable[str] = REQUIRED_ENV,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.hosting = hosting
        self.gate_command = gate_command
        self.gate_timeout = gate_timeout
        self.results_path = Path(results_path)
        self.min_score = min_score
        self.required_env = tuple(required_env)
        self.environ = os.environ if environ is None else environ

    async def run(self) -> None:
        """Run all checks.

        Raises:
            PreflightFailure: On the first failed check
        """
        logger.info("🔍 Running pre-deployment checks...")

        if not await self.check_quality_gates():
            raise PreflightFailure("DoD gates failed - deployment blocked")

        if not await self.hosting.check_connection():
            raise PreflightFailure("Firebase CLI not authenticated or configured")

        self.validate_environment()
        logger.info("✅ Pre-deployment checks passed")

    async def check_quality_gates(self) -> bool:
        """Run the quality gate suite and read its results file."""
        logger.info("🎯 Checking DoD quality gates...")

        try:
            result = await run_command(self.gate_command, timeout=self.gate_timeout)
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.error(f"❌ DoD gate check failed: {e}")
            return False

        if not result.ok:
            logger.error(f"❌ DoD gate check exited with {result.returncode}")
            return False

        return self.read_gate_results()

    def read_gate_results(self) -> bool:
        if not self.results_path.exists():
            logger.error(f"❌ DoD results not found at {self.results_path}")
            return False

        try:
            results = GateResults.model_validate_json(self.results_path.read_bytes())
        except (OSError, ValidationError) as e:
            logger.error(f"❌ Unreadable DoD results {self.results_path}: {e}")
            return False

        score = results.overall_score
        if not results.approved or score < self.min_score:
            logger.error(f"❌ DoD gates failed - Score: {score:g}/100")
            return False

        logger.info(f"✅ DoD gates passed - Score: {score:g}/100")
        return True

    def validate_environment(self) -> None:
        for name in self.required_env:
            if not self.environ.get(name):
                raise PreflightFailure(f"Missing required environment variable: {name}")
