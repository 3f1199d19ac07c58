"""Exception taxonomy for usrgrpctl.

Parser-level problems are never exceptions (see
:class:`usrgrpctl.models.snapshot.ParseWarning`). Everything else that can
abort a refresh or an in-flight action is raised as one of the classes below
and converted into an operator-facing message by the state machine or CLI.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from usrgrpctl.models.action import CommandFailureKind


class UsrgrpctlError(Exception):
    """Base exception for all usrgrpctl errors."""


class SourceUnavailableError(UsrgrpctlError):
    """Raised when an identity database cannot be read at all.

    A refresh that hits this error keeps the previous snapshot.
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read {path}: {reason}")


class ValidationFailedError(UsrgrpctlError):
    """Raised when modal input fails input-shape or existence validation.

    Attributes:
        field: Name of the offending input field, or None for whole-form errors.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        self.message = message
        super().__init__(message)


class StaleStateError(UsrgrpctlError):
    """Raised when the data an action was validated against changed before execution."""


class TargetVanishedError(UsrgrpctlError):
    """Raised when the entity an action targets no longer exists."""

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"{kind.capitalize()} '{name}' no longer exists")


class CommandTimeoutError(UsrgrpctlError):
    """Raised when an external command exceeds its timeout and was killed."""

    def __init__(self, command: str, timeout: float) -> None:
        self.command = command
        self.timeout = timeout
        super().__init__(f"{command} timed out after {timeout:g}s")


class CommandFailedError(UsrgrpctlError):
    """Raised by callers that want a failed outcome as an exception.

    Attributes:
        kind: Classified failure kind.
        stderr: Raw standard error of the failed command.
    """

    def __init__(self, kind: CommandFailureKind, stderr: str, command: str = "") -> None:
        self.kind = kind
        self.stderr = stderr
        self.command = command
        detail = stderr.strip() or "no error output"
        prefix = f"{command} failed" if command else "Command failed"
        super().__init__(f"{prefix} ({kind.value}): {detail}")


class BackendUnavailableError(UsrgrpctlError):
    """Raised when the selected privileged backend cannot be used on this system."""


class InvalidTransitionError(UsrgrpctlError):
    """Raised when a host asks the state machine for a transition its state forbids."""


class ConfigError(UsrgrpctlError):
    """Base exception for configuration errors."""


class ConfigParseError(ConfigError):
    """Raised when the configuration file is not valid TOML."""
