"""Abstract base class for privileged backends.

This module defines the Operator interface both backends implement. A
backend is selected once at startup and injected into the state machine,
which is the only component that calls :meth:`Operator.execute`.
"""

import logging
from abc import ABC, abstractmethod

from usrgrpctl.core.config import Backend
from usrgrpctl.core.errors import BackendUnavailableError
from usrgrpctl.models.action import ActionRequest, ActionResult, CommandOutcome

logger = logging.getLogger(__name__)


class Operator(ABC):
    """Abstract base class for all privileged backends.

    Attributes:
        dry_run: If True, only simulate actions without executing them.

    Example:
        >>> operator = SystemOperator(dry_run=True)
        >>> if operator.is_available():
        ...     result = operator.execute(CreateGroup("devs"))
        ...     print(result.success)
    """

    def __init__(self, dry_run: bool = False) -> None:
        """Initialize the operator.

        Args:
            dry_run: If True, only simulate actions without executing them.
        """
        self._dry_run = dry_run

    @property
    def dry_run(self) -> bool:
        """Check if operator is in dry-run mode."""
        return self._dry_run

    @property
    @abstractmethod
    def backend(self) -> Backend:
        """Return the backend this operator implements."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this backend can be used on the current system."""

    @abstractmethod
    def run_steps(self, request: ActionRequest) -> list[CommandOutcome]:
        """Apply a request, one outcome per step, stopping at the first failure.

        Raises:
            ValidationFailedError: If the request fails the second validation gate.
            CommandTimeoutError: If a step exceeds its timeout.
        """

    def execute(self, request: ActionRequest) -> ActionResult:
        """Execute one validated request.

        Args:
            request: Typed request to apply.

        Returns:
            ActionResult with one outcome per step.

        Raises:
            BackendUnavailableError: If the backend is not available.
            ValidationFailedError: If the request fails the second validation gate.
            CommandTimeoutError: If a step exceeds its timeout.
        """
        if not self.is_available():
            msg = f"The {self.backend.value} backend is not available"
            raise BackendUnavailableError(msg)

        outcomes = self.run_steps(request)
        result = ActionResult(request=request, outcomes=tuple(outcomes), dry_run=self._dry_run)
        if result.success:
            logger.info("Completed: %s", request.describe())
        else:
            failure = result.failure
            logger.warning(
                "Failed: %s (%s)",
                request.describe(),
                failure.classified_error.value if failure and failure.classified_error else "unknown",
            )
        return result
