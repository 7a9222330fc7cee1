"""Hosting provider operations on blue/green slots.

Slots are Firebase Hosting preview channels named after the slot colour;
the live channel is pointed at a slot for cutover.
"""
import json
import subprocess
from abc import ABC, abstractmethod
from typing import Dict, Optional, Sequence

from loguru import logger

from src.deployer.core.errors import DeployFailure, HostingCommandError
from src.deployer.core.shell import CommandResult, run_command
from src.deployer.deployment.state_store import Slot
from src.deployer.monitoring.metrics import TRAFFIC_WEIGHT


class HostingProvider(ABC):
    """Operations the orchestrator needs from the hosting platform."""

    @abstractmethod
    def slot_url(self, slot: Slot) -> str:
        pass

    @abstractmethod
    async def check_connection(self) -> bool:
        """Whether the platform CLI is installed and authenticated."""

    @abstractmethod
    async def deploy_to_slot(self, slot: Slot) -> str:
        """Publish the current build to `slot`, returning its URL."""

    @abstractmethod
    async def cutover(self, slot: Slot) -> None:
        """Route all live traffic to `slot`."""

    @abstractmethod
    async def configure_traffic_split(self, slot: Slot, percentage: int) -> None:
        """Route `percentage` of live traffic to `slot`."""

    @abstractmethod
    async def delete_slot(self, slot: Slot) -> None:
        """Release the resources of `slot`."""


class FirebaseHosting(HostingProvider):
    """Drives the `firebase` CLI."""

    def __init__(
        self,
        environment: str,
        token: Optional[str] = None,
        url_template: str = "https://{slot}---{environment}-cuisinezen.web.app",
        command_timeout: float = 600.0,
    ):
        """Initialize Firebase hosting driver.

        Args:
            environment: Firebase project alias (staging or production)
            token: CI token handed to the CLI as FIREBASE_TOKEN
            url_template: Format string for slot URLs
            command_timeout: Timeout for a single CLI invocation in seconds
        """
        self.environment = environment
        self.token = token
        self.url_template = url_template
        self.command_timeout = command_timeout

    def slot_url(self, slot: Slot) -> str:
        return self.url_template.format(slot=slot.value, environment=self.environment)

    async def check_connection(self) -> bool:
        try:
            result = await self._run(["firebase", "projects:list"], check=False)
        except (HostingCommandError, OSError) as e:
            logger.error(f"Firebase CLI unavailable: {e}")
            return False
        return result.ok

    async def deploy_to_slot(self, slot: Slot) -> str:
        logger.info(f"🔄 Deploying to {slot.value} slot...")

        try:
            result = await self._run([
                "firebase", "hosting:channel:deploy", slot.value,
                "--project", self.environment, "--json",
            ])
            preview_url = self._preview_url(result.stdout) or self.slot_url(slot)
            logger.info(f"✅ Deployed to {slot.value} slot: {preview_url}")

            logger.info(f"🔧 Deploying functions to {slot.value}...")
            await self._run([
                "firebase", "deploy", "--only", "functions",
                "--project", f"{self.environment}-{slot.value}",
            ])
            logger.info(f"✅ Functions deployed to {slot.value}")

            logger.info(f"📊 Deploying Firestore config to {slot.value}...")
            await self._run([
                "firebase", "deploy", "--only", "firestore",
                "--project", f"{self.environment}-{slot.value}",
            ])
            logger.info(f"✅ Firestore config deployed to {slot.value}")

        except (HostingCommandError, OSError, ValueError) as e:
            raise DeployFailure(f"Failed to deploy to {slot.value} slot: {e}") from e

        return preview_url

    async def cutover(self, slot: Slot) -> None:
        logger.info(f"⚡ Routing live traffic to {slot.value}")
        await self._run([
            "firebase", "hosting:channel:deploy", "live",
            "--alias", slot.value, "--project", self.environment,
        ])
        self._record_weights(slot, 100)

    async def configure_traffic_split(self, slot: Slot, percentage: int) -> None:
        if not 0 <= percentage <= 100:
            raise ValueError(f"Invalid traffic percentage: {percentage}")

        # Firebase Hosting has no weighted channels; the final step is a cutover
        if percentage == 100:
            await self.cutover(slot)
            return

        logger.info(f"🔧 Configuring {percentage}% traffic to {slot.value}")
        self._record_weights(slot, percentage)

    async def delete_slot(self, slot: Slot) -> None:
        logger.info(f"🧹 Deleting {slot.value} channel...")
        await self._run([
            "firebase", "hosting:channel:delete", slot.value,
            "--project", self.environment, "--force",
        ])

    def _record_weights(self, slot: Slot, percentage: int) -> None:
        TRAFFIC_WEIGHT.labels(environment=self.environment, slot=slot.value).set(percentage)
        TRAFFIC_WEIGHT.labels(environment=self.environment, slot=slot.other.value).set(
            100 - percentage
        )

    def _preview_url(self, stdout: str) -> Optional[str]:
        """Extract the channel URL from `hosting:channel:deploy --json` output."""
        if not stdout.strip():
            return None
        data = json.loads(stdout)
        sites: Dict[str, Dict] = data.get("result") or {}
        for site in sites.values():
            if isinstance(site, dict) and site.get("url"):
                return site["url"]
        return None

    def _env(self) -> Optional[Dict[str, str]]:
        if self.token:
            return {"FIREBASE_TOKEN": self.token}
        return None

    async def _run(self, cmd: Sequence[str], check: bool = True) -> CommandResult:
        try:
            result = await run_command(cmd, timeout=self.command_timeout, env=self._env())
        except subprocess.TimeoutExpired as e:
            raise HostingCommandError(
                f"Command timed out after {self.command_timeout:.0f}s: {' '.join(cmd)}"
            ) from e

        if check and not result.ok:
            logger.error(f"Command failed (rc={result.returncode}): {result.stderr.strip()}")
            raise HostingCommandError(
                f"Command failed: {' '.join(cmd)}\nstderr: {result.stderr.strip()}"
            )
        return result
