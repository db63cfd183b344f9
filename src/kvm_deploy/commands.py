"""Thin subprocess wrapper used for every external tool invocation."""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Sequence

from kvm_deploy.exceptions import CommandError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of a finished command."""

    args: List[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def which(name: str) -> Optional[str]:
    """Return the absolute path of an executable, or None."""
    return shutil.which(name)


def run_command(
    args: Sequence[str],
    *,
    check: bool = True,
    timeout: Optional[float] = None,
    echo: bool = True,
) -> CommandResult:
    """
    Run a command to completion and capture its output.

    Args:
        args: Command and arguments.
        check: Raise CommandError on non-zero exit.
        timeout: Seconds before the process is killed.
        echo: Re-log each non-empty output line at INFO.

    Returns:
        CommandResult with decoded stdout/stderr.

    Raises:
        CommandError: If the executable is missing, times out, or exits
            non-zero while ``check`` is set.
    """
    argv = [str(a) for a in args]
    logger.debug(f"Running: {' '.join(argv)}")
    try:
        proc = subprocess.run(argv, capture_output=True, text=True, timeout=timeout)
    except FileNotFoundError as e:
        raise CommandError(f"{argv[0]}: command not found") from e
    except subprocess.TimeoutExpired as e:
        raise CommandError(f"{argv[0]} timed out after {timeout}s") from e

    if echo:
        for line in (proc.stdout + proc.stderr).splitlines():
            if line.strip():
                logger.info(line.rstrip())

    result = CommandResult(argv, proc.returncode, proc.stdout, proc.stderr)
    if check and not result.ok:
        raise CommandError(
            f"{' '.join(argv)} exited with {proc.returncode}: {proc.stderr.strip()}",
            return_code=proc.returncode,
            stderr=proc.stderr,
        )
    return result
