"""Shell execution utilities.

Provides safe subprocess execution with proper error handling. Commands are
always run from an argument list; no shell is ever involved.
"""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass

from usrgrpctl.core.errors import CommandTimeoutError

logger = logging.getLogger(__name__)

# Exit statuses reported when the program is missing or cannot be started.
EXIT_NOT_FOUND = 127
EXIT_CANNOT_EXECUTE = 126


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Result of a command execution.

    Attributes:
        stdout: Standard output from the command.
        stderr: Standard error from the command.
        returncode: Exit code of the command.
    """

    stdout: str
    stderr: str
    returncode: int

    @property
    def success(self) -> bool:
        """Check if command executed successfully."""
        return self.returncode == 0


def run_command(
    args: list[str],
    *,
    timeout: float | None = 60.0,
    input_text: str | None = None,
    cwd: str | None = None,
) -> CommandResult:
    """Execute a command and return the result.

    Output is decoded as UTF-8 with replacement of undecodable bytes, and
    the locale is forced to ``C`` so error messages can be classified.

    Args:
        args: Command and arguments to execute.
        timeout: Maximum time in seconds to wait for command.
        input_text: Text written to the command's standard input. When None,
            standard input is closed so the command can never prompt.
        cwd: Working directory for the command. If None, uses current directory.

    Returns:
        CommandResult with stdout, stderr, and returncode.

    Raises:
        CommandTimeoutError: If the command exceeds the timeout; the child is killed.
        FileNotFoundError: If command executable is not found.
        OSError: If the executable exists but cannot be started.
    """
    env = {**os.environ, "LC_ALL": "C", "LANG": "C"}
    try:
        result = subprocess.run(
            args,
            capture_output=True,
            input=input_text,
            stdin=subprocess.DEVNULL if input_text is None else None,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
            timeout=timeout,
            cwd=cwd,
            env=env,
        )
    except subprocess.TimeoutExpired as e:
        # subprocess.run() kills the child before re-raising.
        raise CommandTimeoutError(args[0], timeout or 0.0) from e
    logger.debug("%s exited with status %d", args[0], result.returncode)
    return CommandResult(
        stdout=result.stdout,
        stderr=result.stderr,
        returncode=result.returncode,
    )


def command_exists(name: str) -> bool:
    """Check if a command exists in the system PATH.

    Args:
        name: Command name to check.

    Returns:
        True if command exists, False otherwise.
    """
    return shutil.which(name) is not None


def effective_uid() -> int:
    """Effective user id of the current process."""
    return os.geteuid()
