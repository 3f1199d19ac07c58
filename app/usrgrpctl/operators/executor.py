"""Command executor for privileged account tools.

Runs a :class:`CommandSpec` as a child process, optionally through
``sudo``, and turns the result into a classified :class:`CommandOutcome`.

When a sudo password is known it is written to ``sudo -S -v`` on standard
input to refresh the credential cache; the command itself then runs with
``sudo -n`` so its standard input carries only the command's own secret
input. Passwords never appear in an argument vector or in a log line.
"""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import SecretStr

from usrgrpctl.models.action import CommandFailureKind, CommandOutcome
from usrgrpctl.operators.builder import CommandSpec
from usrgrpctl.utils.shell import EXIT_CANNOT_EXECUTE, EXIT_NOT_FOUND, effective_uid, run_command

logger = logging.getLogger(__name__)

REDACTED = "[redacted]"

# Checked in order; the first matching kind wins.
_FAILURE_PATTERNS: tuple[tuple[CommandFailureKind, tuple[str, ...]], ...] = (
    (CommandFailureKind.PROGRAM_MISSING, ("command not found",)),
    (
        CommandFailureKind.AUTHENTICATION,
        (
            "authentication required",
            "authentication failure",
            "incorrect password",
            "sorry, try again",
            "a password is required",
            "no password was provided",
            "a terminal is required",
        ),
    ),
    (CommandFailureKind.LOCKED, ("cannot lock", "unable to lock", "try again later")),
    (
        CommandFailureKind.PERMISSION_DENIED,
        (
            "permission denied",
            "only root",
            "not in the sudoers",
            "is not allowed to",
            "operation not permitted",
        ),
    ),
    (CommandFailureKind.ALREADY_EXISTS, ("already exists", "is not unique", "already a member")),
    (
        CommandFailureKind.IN_USE,
        (
            "currently used by process",
            "currently logged in",
            "cannot remove the primary group",
            "in use",
        ),
    ),
    (
        CommandFailureKind.NOT_FOUND,
        ("does not exist", "not found", "unknown user", "unknown group", "no such", "is not a member"),
    ),
    (CommandFailureKind.UNSUPPORTED, ("not supported", "unsupported")),
)


def classify_failure(stderr: str) -> CommandFailureKind:
    """Map a tool's error output to a stable failure kind.

    Args:
        stderr: Standard error of the failed command.

    Returns:
        The first matching kind, or GENERIC when nothing matches.
    """
    text = stderr.casefold()
    for kind, needles in _FAILURE_PATTERNS:
        if any(needle in text for needle in needles):
            return kind
    return CommandFailureKind.GENERIC


def redact(text: str, secrets: list[str]) -> str:
    """Replace every occurrence of each secret in ``text``."""
    for secret in sorted(secrets, key=len, reverse=True):
        if secret:
            text = text.replace(secret, REDACTED)
    return text


class PrivilegeEscalation(str, Enum):
    """How commands gain root privileges.

    Attributes:
        NONE: The process already runs as root.
        SUDO: Commands are prefixed with ``sudo -n --``.
    """

    NONE = "none"
    SUDO = "sudo"

    @classmethod
    def detect(cls) -> PrivilegeEscalation:
        """Pick NONE when running as root, SUDO otherwise."""
        return cls.NONE if effective_uid() == 0 else cls.SUDO


class CommandExecutor:
    """Runs command specs with a bounded timeout.

    Commands are never retried: a privileged change must not be silently
    re-issued.

    Example:
        >>> executor = CommandExecutor(timeout=30)
        >>> outcome = executor.run(CommandSpec("groupadd", ("devs",)))
        >>> outcome.success
    """

    SUDO_PREFIX = ("sudo", "-n", "--")

    def __init__(
        self,
        timeout: float = 30.0,
        escalation: PrivilegeEscalation | None = None,
        sudo_password: SecretStr | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            timeout: Seconds each command may run before it is killed.
            escalation: Privilege escalation method. Detected when None.
            sudo_password: Password used to refresh the sudo credential cache.
        """
        self._timeout = timeout
        self._escalation = escalation if escalation is not None else PrivilegeEscalation.detect()
        self._sudo_password = sudo_password

    @property
    def timeout(self) -> float:
        """Per-command timeout in seconds."""
        return self._timeout

    @property
    def escalation(self) -> PrivilegeEscalation:
        """Privilege escalation method in use."""
        return self._escalation

    def argv_for(self, spec: CommandSpec) -> list[str]:
        """Argument vector actually executed for ``spec``."""
        if self._escalation == PrivilegeEscalation.SUDO:
            return [*self.SUDO_PREFIX, *spec.argv]
        return spec.argv

    def _secrets(self, spec: CommandSpec) -> list[str]:
        values = [s.get_secret_value() for s in spec.secrets]
        if spec.secret_input is not None:
            values.append(spec.secret_input.get_secret_value().strip())
        if self._sudo_password is not None:
            values.append(self._sudo_password.get_secret_value())
        return values

    def _outcome(
        self,
        returncode: int,
        stdout: str,
        stderr: str,
        command: str,
        secrets: list[str],
    ) -> CommandOutcome:
        stdout = redact(stdout, secrets)
        stderr = redact(stderr, secrets)
        error = None
        if returncode != 0 or stderr.strip():
            if returncode == EXIT_NOT_FOUND:
                error = CommandFailureKind.PROGRAM_MISSING
            else:
                error = classify_failure(stderr)
        outcome = CommandOutcome(
            exit_status=returncode,
            stdout=stdout,
            stderr=stderr,
            classified_error=error,
            command=command,
        )
        if outcome.failed:
            logger.debug("%s failed (exit %d): %s", command, returncode, stderr.strip())
        else:
            logger.debug("%s succeeded", command)
        return outcome

    def _refresh_sudo(self, secrets: list[str]) -> CommandOutcome | None:
        """Validate sudo credentials; return a failed outcome if that fails."""
        if self._escalation != PrivilegeEscalation.SUDO or self._sudo_password is None:
            return None
        command = "sudo -S -p '' -v"
        logger.debug("Refreshing sudo credentials")
        try:
            result = run_command(
                ["sudo", "-S", "-p", "", "-v"],
                timeout=self._timeout,
                input_text=self._sudo_password.get_secret_value() + "\n",
            )
        except FileNotFoundError:
            return self._outcome(EXIT_NOT_FOUND, "", "sudo: command not found", command, secrets)
        except OSError as e:
            return self._outcome(EXIT_CANNOT_EXECUTE, "", f"sudo: {e.strerror or e}", command, secrets)
        if result.success:
            return None
        outcome = self._outcome(result.returncode, result.stdout, result.stderr, command, secrets)
        if outcome.classified_error == CommandFailureKind.GENERIC:
            return CommandOutcome(
                exit_status=outcome.exit_status,
                stdout=outcome.stdout,
                stderr=outcome.stderr,
                classified_error=CommandFailureKind.AUTHENTICATION,
                command=command,
            )
        return outcome

    def run(self, spec: CommandSpec) -> CommandOutcome:
        """Run one command.

        Args:
            spec: Command to run; its secret input goes to standard input.

        Returns:
            Classified outcome with secrets redacted from both streams.

        Raises:
            CommandTimeoutError: If the command exceeds the timeout (it is killed).
        """
        secrets = self._secrets(spec)
        failed_auth = self._refresh_sudo(secrets)
        if failed_auth is not None:
            return failed_auth

        argv = self.argv_for(spec)
        command = spec.display()
        if self._escalation == PrivilegeEscalation.SUDO:
            command = f"{' '.join(self.SUDO_PREFIX)} {command}"
        logger.info("Running: %s", command)

        input_text = spec.secret_input.get_secret_value() if spec.secret_input is not None else None
        try:
            result = run_command(argv, timeout=self._timeout, input_text=input_text)
        except FileNotFoundError:
            return self._outcome(EXIT_NOT_FOUND, "", f"{argv[0]}: command not found", command, secrets)
        except OSError as e:
            return self._outcome(EXIT_CANNOT_EXECUTE, "", f"{argv[0]}: {e.strerror or e}", command, secrets)
        return self._outcome(result.returncode, result.stdout, result.stderr, command, secrets)
