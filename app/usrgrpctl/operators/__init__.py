"""Privileged backends for usrgrpctl.

This module exports the operator interface, both backends, and the factory
that picks one from the configuration at startup.
"""

from pydantic import SecretStr

from usrgrpctl.core.config import Backend, ManagerConfig
from usrgrpctl.operators.base import Operator
from usrgrpctl.operators.builder import CommandBuilder, CommandSpec
from usrgrpctl.operators.executor import CommandExecutor, PrivilegeEscalation, classify_failure
from usrgrpctl.operators.files import FileOperator
from usrgrpctl.operators.system import SystemOperator

__all__ = [
    "CommandBuilder",
    "CommandExecutor",
    "CommandSpec",
    "FileOperator",
    "Operator",
    "PrivilegeEscalation",
    "SystemOperator",
    "classify_failure",
    "get_operator",
]


def get_operator(
    config: ManagerConfig,
    dry_run: bool = False,
    sudo_password: SecretStr | None = None,
) -> Operator:
    """Create the backend selected by the configuration.

    Args:
        config: Loaded configuration.
        dry_run: If True, the operator only simulates changes.
        sudo_password: Password for refreshing sudo credentials (system backend).

    Returns:
        The configured operator.

    Raises:
        ValueError: If the files backend is selected without a root directory.
    """
    if config.backend == Backend.FILES:
        if config.root is None:
            msg = "The files backend requires a root directory (--root)"
            raise ValueError(msg)
        return FileOperator(config.root, dry_run=dry_run)

    executor = CommandExecutor(
        timeout=float(config.command_timeout_seconds),
        sudo_password=sudo_password,
    )
    return SystemOperator(executor=executor, dry_run=dry_run)
