"""Shared plumbing for CLI commands.

Builds the configuration, snapshot loader, backend and state machine from
the global options, and drives one action through the machine the way an
interactive host would: open, edit, submit, confirm.
"""

from collections.abc import Mapping
from typing import Any

import typer
from pydantic import SecretStr, ValidationError
from rich.markup import escape

from usrgrpctl.core.config import Backend, ManagerConfig, load_config
from usrgrpctl.core.errors import (
    ConfigError,
    InvalidTransitionError,
    SourceUnavailableError,
    TargetVanishedError,
    ValidationFailedError,
)
from usrgrpctl.core.machine import ActionMachine, MachineState, MessageLevel
from usrgrpctl.core.state import StateManager
from usrgrpctl.models.action import ActionResult, ActionType, CommandFailureKind, FieldValue
from usrgrpctl.models.snapshot import DirectorySnapshot
from usrgrpctl.operators import get_operator
from usrgrpctl.operators.executor import PrivilegeEscalation
from usrgrpctl.scanners import DirectoryScanner, FileSourceReader
from usrgrpctl.utils.formatting import print_error, print_info, print_success, print_warning


def _options(ctx: typer.Context) -> dict[str, Any]:
    return ctx.obj if isinstance(ctx.obj, dict) else {}


def resolve_config(ctx: typer.Context) -> ManagerConfig:
    """Load the configuration file and apply command-line overrides.

    Exits with code 1 if the configuration is invalid.
    """
    options = _options(ctx)
    try:
        config = load_config(options.get("config_path"))
    except ConfigError as e:
        print_error(escape(str(e)))
        raise typer.Exit(code=1) from e

    overrides: dict[str, Any] = {}
    if options.get("backend") is not None:
        overrides["backend"] = options["backend"]
    if options.get("root") is not None:
        overrides["root"] = options["root"]
    if not overrides:
        return config
    try:
        return ManagerConfig.model_validate({**config.model_dump(), **overrides})
    except ValidationError as e:
        print_error(f"Invalid option: {e.errors()[0]['msg']}")
        raise typer.Exit(code=1) from e


def create_scanner(config: ManagerConfig) -> DirectoryScanner:
    """Snapshot loader reading the databases under the configured root."""
    return DirectoryScanner(FileSourceReader(config.root))


def load_snapshot(ctx: typer.Context) -> tuple[ManagerConfig, DirectorySnapshot]:
    """Load one snapshot for read-only commands.

    Parse warnings are reported on stderr; an unreadable database exits with code 1.
    """
    config = resolve_config(ctx)
    try:
        snapshot = create_scanner(config).load()
    except SourceUnavailableError as e:
        print_error(escape(str(e)))
        raise typer.Exit(code=1) from e
    if snapshot.warning_count and not _options(ctx).get("quiet"):
        print_warning(f"{snapshot.warning_count} malformed line(s) skipped or coerced (see --verbose)")
    return config, snapshot


def _sudo_password(ctx: typer.Context, config: ManagerConfig) -> SecretStr | None:
    options = _options(ctx)
    if not options.get("ask_sudo_pass") or options.get("dry_run"):
        return None
    if config.backend != Backend.SYSTEM or PrivilegeEscalation.detect() != PrivilegeEscalation.SUDO:
        return None
    return SecretStr(typer.prompt("sudo password", hide_input=True))


def create_machine(ctx: typer.Context) -> ActionMachine:
    """Build and start a state machine for the configured backend.

    Exits with code 1 if the backend cannot be set up or the databases
    cannot be read.
    """
    options = _options(ctx)
    dry_run = bool(options.get("dry_run"))
    config = resolve_config(ctx)
    try:
        operator = get_operator(config, dry_run=dry_run, sudo_password=_sudo_password(ctx, config))
    except ValueError as e:
        print_error(escape(str(e)))
        raise typer.Exit(code=1) from e

    # Simulated changes are not part of the audit trail.
    history = None if dry_run else StateManager()
    machine = ActionMachine(create_scanner(config), operator, config=config, history=history)
    try:
        machine.start()
    except SourceUnavailableError as e:
        print_error(escape(str(e)))
        raise typer.Exit(code=1) from e
    return machine


def run_action(
    ctx: typer.Context,
    action_type: ActionType,
    target: str | None = None,
    fields: Mapping[str, FieldValue] | None = None,
    yes: bool = False,
) -> ActionResult | None:
    """Drive one action through the state machine and report the outcome.

    Args:
        ctx: Typer context carrying the global options.
        action_type: Action to run.
        target: Existing entity to act on (None for create actions).
        fields: Input field values to fill in.
        yes: Skip the confirmation prompt for destructive actions.

    Returns:
        The executed result.

    Raises:
        typer.Exit: With code 0 when the user declines, 1 on any failure.
    """
    machine = create_machine(ctx)
    try:
        machine.open_modal(action_type, target)
        for name, value in (fields or {}).items():
            machine.edit(name, value)
        state = machine.submit()
    except (TargetVanishedError, InvalidTransitionError, ValidationFailedError) as e:
        print_error(escape(str(e)))
        raise typer.Exit(code=1) from e

    if state == MachineState.VALIDATING:
        pending = machine.pending
        print_error(escape(pending.error) if pending is not None and pending.error else "Invalid input")
        raise typer.Exit(code=1)

    if state == MachineState.CONFIRMING:
        pending = machine.pending
        description = pending.request.describe() if pending and pending.request else action_type.label
        if not yes and not typer.confirm(f"{description.capitalize()}?", default=False):
            machine.confirm(False)
            print_info("Aborted.")
            raise typer.Exit(code=0)
        machine.confirm(True)

    status = machine.status
    result = machine.last_result
    if status is not None and status.level == MessageLevel.ERROR:
        print_error(escape(status.text))
        failure = result.failure if result is not None else None
        if failure is not None and failure.classified_error == CommandFailureKind.AUTHENTICATION:
            print_info("sudo needs a password; re-run with --ask-sudo-pass.")
        raise typer.Exit(code=1)
    if status is not None and status.level == MessageLevel.WARNING:
        print_warning(escape(status.text))
    elif status is not None:
        print_success(escape(status.text))
    return result
