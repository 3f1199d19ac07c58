"""Live OS backend.

Applies requests with the host's account tools (useradd, usermod, gpasswd,
chpasswd, ...), escalating through sudo when not running as root.
"""

import logging

from usrgrpctl.core.config import Backend
from usrgrpctl.models.action import ActionRequest, CommandOutcome
from usrgrpctl.operators.base import Operator
from usrgrpctl.operators.builder import ACCOUNT_TOOLS, CommandBuilder
from usrgrpctl.operators.executor import CommandExecutor, PrivilegeEscalation
from usrgrpctl.utils.shell import command_exists

logger = logging.getLogger(__name__)


class SystemOperator(Operator):
    """Operator backed by the live OS account tools.

    Attributes:
        dry_run: If True, log each command and report success without running it.
    """

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        builder: CommandBuilder | None = None,
        dry_run: bool = False,
    ) -> None:
        """Initialize the operator.

        Args:
            executor: Command runner. Defaults to one with the default timeout.
            builder: Request-to-argv translator.
            dry_run: If True, only simulate actions without executing them.
        """
        super().__init__(dry_run=dry_run)
        self._executor = executor if executor is not None else CommandExecutor()
        self._builder = builder if builder is not None else CommandBuilder()

    @property
    def backend(self) -> Backend:
        """Return SYSTEM as the backend."""
        return Backend.SYSTEM

    @property
    def executor(self) -> CommandExecutor:
        """Command runner used by this operator."""
        return self._executor

    def is_available(self) -> bool:
        """Check if the account tools (and sudo, when needed) are on PATH.

        Individual missing tools are reported per command as PROGRAM_MISSING;
        the backend is unavailable only when none of them is installed.
        """
        if self._dry_run:
            return True
        if self._executor.escalation == PrivilegeEscalation.SUDO and not command_exists("sudo"):
            logger.debug("sudo is not installed")
            return False
        missing = [tool for tool in ACCOUNT_TOOLS if not command_exists(tool)]
        if missing:
            logger.debug("Missing account tools: %s", ", ".join(missing))
        return len(missing) < len(ACCOUNT_TOOLS)

    def run_steps(self, request: ActionRequest) -> list[CommandOutcome]:
        """Build and run the commands for a request, stopping at the first failure."""
        specs = self._builder.build(request)
        outcomes: list[CommandOutcome] = []
        for spec in specs:
            if self._dry_run:
                logger.info("[dry-run] %s", spec.display())
                outcomes.append(CommandOutcome(exit_status=0, command=spec.display()))
                continue
            outcome = self._executor.run(spec)
            outcomes.append(outcome)
            if outcome.failed:
                break
        return outcomes
