"""Subprocess execution for external CLIs (hosting, quality gates, load tests)."""
import asyncio
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Union

from loguru import logger


@dataclass
class CommandResult:
    """Outcome of an external command."""
    args: Sequence[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def split_command(cmd: Union[str, Sequence[str]]) -> list:
    if isinstance(cmd, str):
        return shlex.split(cmd)
    return list(cmd)


async def run_command(
    cmd: Union[str, Sequence[str]],
    timeout: Optional[float] = None,
    env: Optional[Dict[str, str]] = None,
) -> CommandResult:
    """Run a command in a worker thread and capture its output.

    Args:
        cmd: Command line or argument list
        timeout: Seconds before the process is killed
        env: Extra environment variables layered over the current environment

    Returns:
        CommandResult with exit code and captured output

    Raises:
        subprocess.TimeoutExpired: If the command exceeds `timeout`
        FileNotFoundError: If the executable does not exist
    """
    args = split_command(cmd)
    logger.debug(f"$ {' '.join(args)}")

    full_env = None
    if env:
        full_env = {**os.environ, **env}

    completed = await asyncio.to_thread(
        subprocess.run,
        args,
        capture_output=True,
        text=True,
        timeout=timeout,
        env=full_env,
    )

    result = CommandResult(
        args=args,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
    if not result.ok:
        logger.debug(f"Command exited with {result.returncode}: {result.stderr.strip()}")
    return result
