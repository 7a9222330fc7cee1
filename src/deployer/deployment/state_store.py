"""Persistence of the blue/green deployment record.

The record lives in a single JSON file that is read at startup and
overwritten after every transition. Writes go through a temp file and
`os.replace` so a crash never leaves a half-written record, and every save
bumps a revision counter so a second orchestrator sharing the file cannot
silently clobber a newer record. `lock()` hands out an advisory lock the
orchestrator holds for the whole run.
"""
import json
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from src.deployer.core.errors import StaleStateError


class Slot(str, Enum):
    BLUE = "blue"
    GREEN = "green"

    @property
    def other(self) -> "Slot":
        return Slot.GREEN if self is Slot.BLUE else Slot.BLUE


class Status(str, Enum):
    DEPLOYING = "deploying"
    MONITORING = "monitoring"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled-back"

    @property
    def terminal(self) -> bool:
        return self in (Status.COMPLETED, Status.FAILED, Status.ROLLED_BACK)


@dataclass
class DeploymentState:
    """Current and previous slot of an environment plus run status."""
    current_slot: Slot = Slot.BLUE
    previous_slot: Slot = Slot.BLUE
    deployment_id: str = ""
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: Status = Status.DEPLOYING
    revision: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the on-disk JSON shape."""
        return {
            "currentSlot": self.current_slot.value,
            "previousSlot": self.previous_slot.value,
            "deploymentId": self.deployment_id,
            "startTime": self.start_time.isoformat(),
            "status": self.status.value,
            "revision": self.revision,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeploymentState":
        """Create from the on-disk JSON shape."""
        # Older records carry a trailing "Z" instead of an offset
        start_time = datetime.fromisoformat(data["startTime"].replace("Z", "+00:00"))
        return cls(
            current_slot=Slot(data["currentSlot"]),
            previous_slot=Slot(data["previousSlot"]),
            deployment_id=data["deploymentId"],
            start_time=start_time,
            status=Status(data["status"]),
            revision=int(data.get("revision", 0)),
        )


@dataclass
class FileLock:
    """Advisory lock file created with O_EXCL.

    Cooperative only: every orchestrator sharing the state file must take it.
    A lock left behind by a dead process, or older than `stale_after`
    seconds, is taken over.
    """
    lock_path: Path
    stale_after: float = 3600.0
    _acquired: bool = False

    def acquire(self) -> None:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = self._create()
        except FileExistsError:
            holder = self._read_holder()
            if not self._is_stale(holder):
                raise TimeoutError(f"Deployment lock held: {self.lock_path} ({holder})")

            logger.warning(f"Taking over stale deployment lock {self.lock_path} ({holder})")
            self.lock_path.unlink(missing_ok=True)
            try:
                fd = self._create()
            except FileExistsError:
                raise TimeoutError(f"Deployment lock held: {self.lock_path} ({self._read_holder()})")
        try:
            payload = f"pid={os.getpid()} ts={time.time():.3f}\n"
            os.write(fd, payload.encode("utf-8"))
        finally:
            os.close(fd)
        self._acquired = True

    def release(self) -> None:
        if not self._acquired:
            return
        try:
            self.lock_path.unlink(missing_ok=True)
        finally:
            self._acquired = False

    @property
    def acquired(self) -> bool:
        return self._acquired

    def _create(self) -> int:
        return os.open(str(self.lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)

    def _read_holder(self) -> str:
        try:
            return self.lock_path.read_text(encoding="utf-8").strip()
        except OSError:
            return "unknown holder"

    def _is_stale(self, holder: str) -> bool:
        fields = dict(part.split("=", 1) for part in holder.split() if "=" in part)

        try:
            created = float(fields["ts"])
        except (KeyError, ValueError):
            # Holder died before writing its payload
            try:
                created = self.lock_path.stat().st_mtime
            except OSError:
                return False
        if time.time() - created > self.stale_after:
            return True

        try:
            pid = int(fields["pid"])
        except (KeyError, ValueError):
            return False
        return not _pid_alive(pid)

    def __enter__(self) -> "FileLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def _pid_alive(pid: int) -> bool:
    """Whether `pid` names a running process on this host."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class StateStore(ABC):
    """Single point of persistence for `DeploymentState`."""

    @abstractmethod
    def load(self) -> DeploymentState:
        """Return the persisted state, or the default state when absent."""

    @abstractmethod
    def save(self, state: DeploymentState) -> None:
        """Persist `state`; failures are logged, never raised."""

    @abstractmethod
    def lock(self) -> FileLock:
        """Advisory lock serialising orchestrators for this environment."""


class JsonStateStore(StateStore):
    """JSON file backed state store."""

    def __init__(self, path: str = "deployment-state.json"):
        self.path = Path(path)

    def load(self) -> DeploymentState:
        if not self.path.exists():
            logger.info(f"No deployment state at {self.path}, starting fresh")
            return DeploymentState()

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            state = DeploymentState.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Failed to load deployment state from {self.path}: {e}")
            # Keep the unreadable record's revision so the default can replace it
            return DeploymentState(revision=self._persisted_revision() or 0)

        logger.debug(
            f"Loaded deployment state: current={state.current_slot.value} "
            f"status={state.status.value} revision={state.revision}"
        )
        return state

    def save(self, state: DeploymentState) -> None:
        try:
            self._check_revision(state)
            state.revision += 1
            self._write(state)
        except StaleStateError as e:
            logger.error(f"Refusing to overwrite deployment state: {e}")
        except OSError as e:
            logger.error(f"Failed to save deployment state to {self.path}: {e}")

    def lock(self) -> FileLock:
        return FileLock(lock_path=self.path.with_name(self.path.name + ".lock"))

    def _persisted_revision(self) -> Optional[int]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return int(data.get("revision", 0))
        except (OSError, ValueError, TypeError, AttributeError):
            return None

    def _check_revision(self, state: DeploymentState) -> None:
        persisted = self._persisted_revision()
        if persisted is not None and persisted > state.revision:
            raise StaleStateError(
                f"persisted revision {persisted} is newer than {state.revision}"
            )

    def _write(self, state: DeploymentState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(state.to_dict(), f, indent=2)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self.path)
