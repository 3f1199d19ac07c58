"""Action state machine.

The :class:`ActionMachine` owns the interactive workflow around every
privileged change::

    BROWSING -> MODAL_OPEN -> VALIDATING -> [CONFIRMING] -> EXECUTING
             -> RECONCILING -> BROWSING

It holds the only reference to the current snapshot, the per-kind queries,
filters, views and selections, and the single in-flight pending action. It
is the only component that calls the privileged backend, and it does so
only after the request was validated, confirmed when destructive, and
re-checked against a freshly loaded snapshot.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from usrgrpctl.core.config import ManagerConfig
from usrgrpctl.core.errors import (
    CommandFailedError,
    InvalidTransitionError,
    SourceUnavailableError,
    StaleStateError,
    TargetVanishedError,
    UsrgrpctlError,
    ValidationFailedError,
)
from usrgrpctl.core.reconcile import Reconciler, Selection
from usrgrpctl.core.search import SearchView, ViewFilter, build_view, clamp_index
from usrgrpctl.core.state import StateManager
from usrgrpctl.core.validation import validate_pending
from usrgrpctl.models.account import EntityKind
from usrgrpctl.models.action import (
    ActionRequest,
    ActionResult,
    ActionType,
    FieldValue,
    PendingAction,
)
from usrgrpctl.models.snapshot import DirectorySnapshot
from usrgrpctl.operators.base import Operator
from usrgrpctl.scanners.directory import DirectoryScanner

logger = logging.getLogger(__name__)


class MachineState(str, Enum):
    """States of the action workflow."""

    BROWSING = "browsing"
    MODAL_OPEN = "modal_open"
    VALIDATING = "validating"
    CONFIRMING = "confirming"
    EXECUTING = "executing"
    RECONCILING = "reconciling"


class MessageLevel(str, Enum):
    """Severity of a status message."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class StatusMessage:
    """Operator-facing message produced by the last transition.

    Attributes:
        level: Severity.
        text: Message text; never contains secrets.
        error: Domain error behind the message, if any.
    """

    level: MessageLevel
    text: str
    error: UsrgrpctlError | None = None


# Intents


@dataclass(frozen=True, slots=True)
class SetQuery:
    query: str


@dataclass(frozen=True, slots=True)
class SwitchKind:
    kind: EntityKind


@dataclass(frozen=True, slots=True)
class MoveSelection:
    delta: int


@dataclass(frozen=True, slots=True)
class Select:
    name: str


@dataclass(frozen=True, slots=True)
class SetFilter:
    view_filter: ViewFilter
    kind: EntityKind | None = None


@dataclass(frozen=True, slots=True)
class Refresh:
    pass


@dataclass(frozen=True, slots=True)
class OpenModal:
    action_type: ActionType
    target: str | None = None


@dataclass(frozen=True, slots=True)
class EditField:
    name: str
    value: FieldValue = field(default=None)


@dataclass(frozen=True, slots=True)
class Submit:
    pass


@dataclass(frozen=True, slots=True)
class Confirm:
    affirmative: bool = True


@dataclass(frozen=True, slots=True)
class Cancel:
    pass


Intent = (
    SetQuery
    | SwitchKind
    | MoveSelection
    | Select
    | SetFilter
    | Refresh
    | OpenModal
    | EditField
    | Submit
    | Confirm
    | Cancel
)

_MODAL_STATES = (MachineState.MODAL_OPEN, MachineState.VALIDATING, MachineState.CONFIRMING)
_BUSY_STATES = (MachineState.EXECUTING, MachineState.RECONCILING)


class ActionMachine:
    """Sequences browsing and multi-step privileged actions.

    Example:
        >>> machine = ActionMachine(DirectoryScanner(), SystemOperator())
        >>> machine.start()
        >>> machine.open_modal(ActionType.CREATE_GROUP)
        >>> machine.edit("groupname", "devs")
        >>> machine.submit()
        <MachineState.BROWSING: 'browsing'>
    """

    def __init__(
        self,
        scanner: DirectoryScanner,
        operator: Operator,
        config: ManagerConfig | None = None,
        history: StateManager | None = None,
    ) -> None:
        """Initialize the machine.

        Args:
            scanner: Snapshot loader.
            operator: Privileged backend, selected at startup.
            config: Settings. Defaults to the built-in defaults.
            history: Audit trail. When None, nothing is recorded.
        """
        self._scanner = scanner
        self._operator = operator
        self._config = config if config is not None else ManagerConfig()
        self._history = history
        self._reconciler = Reconciler(scanner)

        self._state = MachineState.BROWSING
        self._snapshot: DirectorySnapshot | None = None
        self._kind = EntityKind.USERS
        self._queries: dict[EntityKind, str] = {kind: "" for kind in EntityKind}
        self._filters: dict[EntityKind, ViewFilter] = {kind: ViewFilter() for kind in EntityKind}
        self._views: dict[EntityKind, SearchView] = {}
        self._selection: dict[EntityKind, Selection] = {kind: Selection() for kind in EntityKind}
        self._pending: PendingAction | None = None
        self._status: StatusMessage | None = None
        self._last_result: ActionResult | None = None

    # Read-only state

    @property
    def state(self) -> MachineState:
        """Current workflow state."""
        return self._state

    @property
    def snapshot(self) -> DirectorySnapshot:
        """Currently published snapshot.

        Raises:
            InvalidTransitionError: If :meth:`start` has not been called.
        """
        if self._snapshot is None:
            msg = "The machine has not been started"
            raise InvalidTransitionError(msg)
        return self._snapshot

    @property
    def config(self) -> ManagerConfig:
        """Settings in use."""
        return self._config

    @property
    def operator(self) -> Operator:
        """Privileged backend in use."""
        return self._operator

    @property
    def kind(self) -> EntityKind:
        """Entity kind currently shown."""
        return self._kind

    @property
    def query(self) -> str:
        """Query of the current entity kind."""
        return self._queries[self._kind]

    @property
    def view_filter(self) -> ViewFilter:
        """Filter of the current entity kind."""
        return self._filters[self._kind]

    @property
    def view(self) -> SearchView:
        """View of the current entity kind."""
        return self.view_of(self._kind)

    def view_of(self, kind: EntityKind) -> SearchView:
        """View of an entity kind.

        Raises:
            InvalidTransitionError: If :meth:`start` has not been called.
        """
        if kind not in self._views:
            msg = "The machine has not been started"
            raise InvalidTransitionError(msg)
        return self._views[kind]

    @property
    def selection(self) -> int:
        """Selected index in the current view."""
        return self._selection[self._kind].index

    @property
    def selected_name(self) -> str | None:
        """Name of the selected entity in the current view."""
        return self.selected_of(self._kind)

    def selected_of(self, kind: EntityKind) -> str | None:
        """Name of the selected entity in the view of ``kind``."""
        return self._selection[kind].name

    @property
    def pending(self) -> PendingAction | None:
        """In-flight action, if a modal is open."""
        return self._pending

    @property
    def status(self) -> StatusMessage | None:
        """Message produced by the last transition."""
        return self._status

    @property
    def last_result(self) -> ActionResult | None:
        """Result of the last executed action."""
        return self._last_result

    # Helpers

    def _require(self, action: str, *states: MachineState) -> None:
        if self._state not in states:
            msg = f"Cannot {action} while {self._state.value}"
            raise InvalidTransitionError(msg)

    def _busy(self, intent: str) -> bool:
        if self._state in _BUSY_STATES:
            logger.info("Ignoring %s while %s", intent, self._state.value)
            return True
        return False

    def _set_status(self, level: MessageLevel, text: str, error: UsrgrpctlError | None = None) -> None:
        self._status = StatusMessage(level=level, text=text, error=error)
        log_level = logging.WARNING if level == MessageLevel.ERROR else logging.DEBUG
        logger.log(log_level, "%s", text)

    def _rebuild(self, kind: EntityKind, reset: bool) -> None:
        view = build_view(self.snapshot, kind, self._queries[kind], self._filters[kind])
        self._views[kind] = view
        previous = self._selection[kind]
        if reset:
            index = 0
        else:
            named = view.index_of(previous.name) if previous.name is not None else None
            index = named if named is not None else clamp_index(previous.index, len(view))
        self._selection[kind] = Selection(name=view.name_at(index), index=index)

    def _reconcile(self, follow: dict[EntityKind, str] | None = None) -> bool:
        result = self._reconciler.reconcile(
            self._snapshot,
            self._queries,
            self._filters,
            self._selection,
            follow,
        )
        self._snapshot = result.snapshot
        self._views = dict(result.views)
        self._selection = dict(result.selection)
        if result.error is not None:
            self._set_status(MessageLevel.ERROR, str(result.error), result.error)
        return result.reloaded

    # Browsing intents

    def start(self) -> DirectorySnapshot:
        """Load the first snapshot and build the initial views.

        Raises:
            SourceUnavailableError: If the identity databases cannot be read.
        """
        self._reconcile()
        self._state = MachineState.BROWSING
        return self.snapshot

    def set_query(self, query: str) -> None:
        """Replace the query of the current kind; the selection resets to the first row."""
        if self._busy("set_query"):
            return
        self._require("search", MachineState.BROWSING)
        self._queries[self._kind] = query
        self._rebuild(self._kind, reset=True)

    def switch_kind(self, kind: EntityKind) -> None:
        """Show users or groups."""
        if self._busy("switch_kind"):
            return
        self._require("switch views", MachineState.BROWSING)
        self._kind = kind

    def move_selection(self, delta: int) -> None:
        """Move the selection, clamped to the current view."""
        if self._busy("move_selection"):
            return
        self._require("move the selection", MachineState.BROWSING)
        view = self.view
        index = clamp_index(self._selection[self._kind].index + delta, len(view))
        self._selection[self._kind] = Selection(name=view.name_at(index), index=index)

    def select(self, name: str) -> bool:
        """Select an entity by name in the current view.

        Returns:
            False if the name is not shown in the current view.
        """
        if self._busy("select"):
            return False
        self._require("select", MachineState.BROWSING)
        index = self.view.index_of(name)
        if index is None:
            return False
        self._selection[self._kind] = Selection(name=name, index=index)
        return True

    def set_filter(self, view_filter: ViewFilter, kind: EntityKind | None = None) -> None:
        """Replace the view filter of a kind (the current one by default)."""
        if self._busy("set_filter"):
            return
        self._require("filter", MachineState.BROWSING)
        target = kind if kind is not None else self._kind
        self._filters[target] = view_filter
        self._rebuild(target, reset=False)

    def refresh(self) -> bool:
        """Reload the snapshot; a failed reload keeps the current one.

        Returns:
            True if a new snapshot was published.
        """
        if self._busy("refresh"):
            return False
        self._require("refresh", MachineState.BROWSING)
        reloaded = self._reconcile()
        if reloaded:
            self._set_status(MessageLevel.INFO, f"Reloaded ({self.snapshot.warning_count} warning(s))")
        return reloaded

    # Action intents

    def open_modal(self, action_type: ActionType, target: str | None = None) -> PendingAction | None:
        """Open the modal for an action.

        Args:
            action_type: Action to start.
            target: Entity to act on. Defaults to the selected row of the
                view of the action's entity kind. Ignored for create actions.

        Returns:
            The new pending action (None if the intent was ignored).

        Raises:
            InvalidTransitionError: If not browsing, or no entity is selected.
            TargetVanishedError: If the named target does not exist.
        """
        if self._busy("open_modal"):
            return None
        self._require("open a modal", MachineState.BROWSING)
        snapshot = self.snapshot
        kind = action_type.entity_kind

        fields: dict[str, FieldValue] = {}
        name: str | None = None
        if action_type.needs_target:
            name = target if target is not None else self.selected_of(kind)
            if name is None:
                msg = f"No {kind.singular} selected"
                raise InvalidTransitionError(msg)
            exists = snapshot.has_user(name) if kind == EntityKind.USERS else snapshot.has_group(name)
            if not exists:
                raise TargetVanishedError(kind.singular, name)
            if action_type == ActionType.CHANGE_FULLNAME:
                fields["fullname"] = snapshot.users[name].fullname
            elif action_type == ActionType.CHANGE_SHELL:
                fields["shell"] = snapshot.users[name].shell
        elif action_type == ActionType.CREATE_USER:
            fields["create_home"] = self._config.create_home

        self._pending = PendingAction(
            action_type=action_type,
            target=name,
            snapshot_version=snapshot.version,
            shells_at_open=snapshot.shells,
            fields=fields,
        )
        self._state = MachineState.MODAL_OPEN
        self._status = None
        logger.debug("Opened %s modal for %s", action_type.label, name or "new entity")
        return self._pending

    def _current_pending(self) -> PendingAction:
        if self._pending is None:
            msg = "No action in progress"
            raise InvalidTransitionError(msg)
        return self._pending

    def edit(self, name: str, value: FieldValue) -> None:
        """Change one input field; any earlier validation result is dropped.

        Raises:
            InvalidTransitionError: If no modal is open for editing.
            ValidationFailedError: If the action has no such field.
        """
        if self._busy("edit"):
            return
        self._require("edit", MachineState.MODAL_OPEN, MachineState.VALIDATING)
        pending = self._current_pending()
        try:
            pending.edit(name, value)
        except KeyError as e:
            raise ValidationFailedError(f"Unknown field {name!r}", name) from e
        self._state = MachineState.MODAL_OPEN

    def submit(self) -> MachineState:
        """Validate the input buffer.

        A validation failure stays in VALIDATING with an inline message.
        A valid destructive action (or any action, when every action must be
        confirmed) moves to CONFIRMING; anything else executes immediately.

        Returns:
            The state after the transition.
        """
        if self._busy("submit"):
            return self._state
        self._require("submit", MachineState.MODAL_OPEN, MachineState.VALIDATING)
        pending = self._current_pending()
        self._state = MachineState.VALIDATING
        try:
            request = validate_pending(pending, self.snapshot, self._config)
        except ValidationFailedError as e:
            pending.error = e.message
            pending.request = None
            self._set_status(MessageLevel.ERROR, e.message, e)
            return self._state

        pending.request = request
        pending.error = None
        if pending.action_type.is_destructive or self._config.confirm_all_actions:
            self._state = MachineState.CONFIRMING
            self._set_status(MessageLevel.WARNING, f"Confirm: {request.describe()}?")
            return self._state
        return self._execute(pending, request)

    def confirm(self, affirmative: bool = True) -> MachineState:
        """Answer the confirmation prompt; a negative answer cancels.

        Returns:
            The state after the transition.
        """
        if self._busy("confirm"):
            return self._state
        self._require("confirm", MachineState.CONFIRMING)
        pending = self._current_pending()
        if not affirmative:
            self.cancel()
            return self._state
        if pending.request is None:
            msg = "Nothing to confirm"
            raise InvalidTransitionError(msg)
        return self._execute(pending, pending.request)

    def cancel(self) -> None:
        """Abandon the open modal; the snapshot is left untouched."""
        if self._busy("cancel"):
            return
        self._require("cancel", *_MODAL_STATES)
        pending = self._current_pending()
        self._pending = None
        self._state = MachineState.BROWSING
        self._set_status(MessageLevel.INFO, f"Cancelled {pending.action_type.label}")

    def dispatch(self, intent: Intent) -> MachineState:
        """Apply an intent object.

        Returns:
            The state after the intent was applied.
        """
        match intent:
            case SetQuery(query=query):
                self.set_query(query)
            case SwitchKind(kind=kind):
                self.switch_kind(kind)
            case MoveSelection(delta=delta):
                self.move_selection(delta)
            case Select(name=name):
                self.select(name)
            case SetFilter(view_filter=view_filter, kind=kind):
                self.set_filter(view_filter, kind)
            case Refresh():
                self.refresh()
            case OpenModal(action_type=action_type, target=target):
                self.open_modal(action_type, target)
            case EditField(name=name, value=value):
                self.edit(name, value)
            case Submit():
                self.submit()
            case Confirm(affirmative=affirmative):
                self.confirm(affirmative)
            case Cancel():
                self.cancel()
            case _:
                msg = f"Unknown intent {intent!r}"
                raise InvalidTransitionError(msg)
        return self._state

    # Execution

    def _check_fresh(self, pending: PendingAction, request: ActionRequest, latest: DirectorySnapshot) -> None:
        """Re-check a validated request against the latest snapshot.

        Raises:
            TargetVanishedError: If the target no longer exists.
            StaleStateError: If the shell registry or any referenced entity changed.
        """
        target = request.target
        if target is not None:
            kind, name = target
            exists = latest.has_user(name) if kind == EntityKind.USERS else latest.has_group(name)
            if not exists:
                raise TargetVanishedError(kind.singular, name)

        if request.action_type == ActionType.CHANGE_SHELL and latest.shells != pending.shells_at_open:
            msg = "The list of allowed shells changed since the action was opened"
            raise StaleStateError(msg)

        if latest.version == pending.snapshot_version:
            return
        try:
            revalidated = validate_pending(pending, latest, self._config)
        except ValidationFailedError as e:
            msg = f"The data changed since the action was opened: {e.message}"
            raise StaleStateError(msg) from e
        if revalidated != request:
            msg = "The data changed since the action was opened"
            raise StaleStateError(msg)

    def _execute(self, pending: PendingAction, request: ActionRequest) -> MachineState:
        self._state = MachineState.EXECUTING
        follow: dict[EntityKind, str] = {}
        if request.target is not None:
            follow[request.target[0]] = request.target[1]
        try:
            latest = self._scanner.load()
            self._check_fresh(pending, request, latest)
            result = self._operator.execute(request)
        except (TargetVanishedError, StaleStateError, SourceUnavailableError) as e:
            self._set_status(MessageLevel.ERROR, f"Not executed: {e}", e)
        except UsrgrpctlError as e:
            self._set_status(MessageLevel.ERROR, f"Failed to {request.describe()}: {e}", e)
        except OSError as e:
            self._set_status(MessageLevel.ERROR, f"Failed to {request.describe()}: {e.strerror or e}")
        else:
            self._last_result = result
            if self._history is not None:
                self._history.record_result(result, self._operator.backend.value)
            self._report(result)
            if result.success:
                for kind, name in request.new_names:
                    follow[kind] = name
        finally:
            self._pending = None

        self._state = MachineState.RECONCILING
        status = self._status
        try:
            self._reconcile(follow)
        finally:
            self._state = MachineState.BROWSING
        reloaded_status = self._status
        if reloaded_status is not status and status is not None and reloaded_status is not None:
            if status.level == MessageLevel.ERROR:
                # A reload failure must not hide the action failure.
                self._status = status
            elif status.level == MessageLevel.SUCCESS:
                # The change was applied; only the view may be out of date.
                text = f"{status.text} (reload failed: {reloaded_status.text})"
                self._set_status(MessageLevel.WARNING, text, reloaded_status.error)
        return self._state

    def _report(self, result: ActionResult) -> None:
        description = result.request.describe()
        prefix = "[dry-run] " if result.dry_run else ""
        if result.success:
            self._set_status(MessageLevel.SUCCESS, f"{prefix}Done: {description}")
            return
        failure = result.failure
        if failure is None:
            self._set_status(MessageLevel.ERROR, f"Failed to {description}")
            return
        try:
            result.raise_for_failure()
        except CommandFailedError as e:
            detail = e.stderr.strip() or f"exit status {failure.exit_status}"
            steps = f" after {result.completed_steps} completed step(s)" if result.completed_steps else ""
            self._set_status(MessageLevel.ERROR, f"Failed to {description}{steps} ({e.kind.value}): {detail}", e)
