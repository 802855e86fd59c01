"""
Command execution for AutoCMD cycles.

Runs the configured command once, synchronously, capturing both output
streams in full. A non-zero exit code is a normal result; only a failure
to start the process is reported as a failure.
"""

import logging
import subprocess
from dataclasses import dataclass
from typing import Union

from autocmd.config import CommandSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandSucceeded:
    """
    The command was launched and ran to completion.

    stdout and stderr are decoded as UTF-8 for display; raw_stdout and
    raw_stderr keep the bytes exactly as the command wrote them.
    """
    stdout: str
    stderr: str
    exit_code: int
    raw_stdout: bytes = b""
    raw_stderr: bytes = b""

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True)
class LaunchFailure:
    """The command could not be started."""
    error: str


CycleResult = Union[CommandSucceeded, LaunchFailure]


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


class CommandExecutor:
    """
    Executes a command spec with no shell, no timeout and no retries.

    Every call spawns a fresh process; nothing is carried between calls.
    """

    def execute(self, spec: CommandSpec) -> CycleResult:
        """
        Execute a command and wait for it to exit.

        Args:
            spec: Command to execute

        Returns:
            CommandSucceeded with captured output and exit code, or
            LaunchFailure if the process could not be started
        """
        logger.info(f"Executing command: {spec.display}")

        try:
            completed = subprocess.run(spec.argv, capture_output=True)
        except (OSError, ValueError) as e:
            # ValueError covers arguments the OS refuses outright (e.g. NUL bytes)
            logger.info(f"Launch failed for {spec.display}: {e}")
            return LaunchFailure(error=str(e))

        logger.info(f"Command exited with code {completed.returncode}: {spec.display}")

        return CommandSucceeded(
            stdout=_decode(completed.stdout),
            stderr=_decode(completed.stderr),
            exit_code=completed.returncode,
            raw_stdout=completed.stdout or b"",
            raw_stderr=completed.stderr or b""
        )
