"""Subprocess execution with a deadline and an abort signal."""

import logging
import subprocess
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from netprobe.exceptions import (
    AttemptCancelled,
    BackendProcessError,
    DeadlineExceeded,
)


logger = logging.getLogger(__name__)

# How often a running command checks the abort signal
POLL_INTERVAL = 0.05


@dataclass(frozen=True)
class CommandOutput:
    """Captured output of a finished command."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def combined(self) -> str:
        return f"{self.stdout}\n{self.stderr}".strip()


def run_command(
    argv: Sequence[str],
    timeout: float,
    should_abort: Optional[Callable[[], bool]] = None,
) -> CommandOutput:
    """Run a command, killing it on deadline or abort.

    Args:
        argv: Command and arguments (no shell).
        timeout: Seconds before the process is killed.
        should_abort: Polled while the process runs; a True return kills it.

    Returns:
        CommandOutput: Exit code and decoded output.

    Raises:
        BackendProcessError: If the executable is missing or cannot start.
        DeadlineExceeded: If the command ran past the timeout.
        AttemptCancelled: If should_abort returned True.
    """
    try:
        proc = subprocess.Popen(
            list(argv),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL,
            text=True,
            errors="replace",
        )
    except OSError as e:
        raise BackendProcessError(f"{argv[0]}: {e}") from e

    deadline = time.monotonic() + timeout
    while True:
        try:
            stdout, stderr = proc.communicate(timeout=POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            if should_abort is not None and should_abort():
                _kill(proc)
                raise AttemptCancelled(f"{argv[0]} aborted")
            if time.monotonic() >= deadline:
                _kill(proc)
                raise DeadlineExceeded(f"{argv[0]} exceeded {timeout}s")

    logger.debug(
        "Command finished",
        extra={"argv": list(argv), "returncode": proc.returncode},
    )
    return CommandOutput(
        argv=tuple(argv),
        returncode=proc.returncode,
        stdout=stdout or "",
        stderr=stderr or "",
    )


def _kill(proc: subprocess.Popen) -> None:
    proc.kill()
    try:
        proc.communicate(timeout=1)
    except subprocess.TimeoutExpired:
        logger.warning("Process %s did not exit after kill", proc.pid)
