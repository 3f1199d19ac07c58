"""State management for the audit trail.

This module provides the StateManager class for persisting and querying
history entries in a JSONL file format.
"""

import json
import logging
from pathlib import Path

from usrgrpctl.core.paths import ensure_dir, get_state_dir
from usrgrpctl.models.action import ActionResult
from usrgrpctl.models.history import HistoryEntry, create_history_entry

logger = logging.getLogger(__name__)


class StateManager:
    """Manages the audit trail in a JSONL file.

    Storage location: ~/.local/state/usrgrpctl/history.jsonl

    Each line is a complete JSON object representing a HistoryEntry, so
    writes are append-only and a corrupt line never hides the others.
    """

    HISTORY_FILENAME = "history.jsonl"

    def __init__(self, state_dir: Path | None = None) -> None:
        """Initialize StateManager.

        Args:
            state_dir: Optional override for state directory.
                      Default: ~/.local/state/usrgrpctl
        """
        self._state_dir = state_dir if state_dir is not None else get_state_dir()

    @property
    def history_path(self) -> Path:
        """Path to history.jsonl file."""
        return self._state_dir / self.HISTORY_FILENAME

    def record_action(self, entry: HistoryEntry) -> None:
        """Append an entry to the history file.

        Creates file and parent directories if they don't exist.

        Raises:
            RuntimeError: If the state directory cannot be created.
            OSError: If the file cannot be written.
        """
        ensure_dir(self._state_dir, "state")
        with self.history_path.open(mode="a", encoding="utf-8") as f:
            f.write(entry.to_json_line() + "\n")
            f.flush()

    def record_result(self, result: ActionResult, backend: str) -> HistoryEntry | None:
        """Record an executed action, logging instead of raising on failure.

        A broken audit trail must not turn a completed privileged change
        into a reported failure.

        Args:
            result: Result of the executed action.
            backend: Name of the backend that executed it.

        Returns:
            The recorded entry, or None if it could not be written.
        """
        entry = create_history_entry(result, backend)
        try:
            self.record_action(entry)
        except (OSError, RuntimeError) as e:
            logger.warning("Could not record history entry %s: %s", entry.id, e)
            return None
        logger.debug("Recorded history entry %s (%s)", entry.id, entry.action_type.value)
        return entry

    def get_history(self, limit: int | None = None) -> list[HistoryEntry]:
        """Read history entries, newest first.

        Args:
            limit: Maximum number of entries to return.
                  If None, returns all entries.

        Returns:
            List of HistoryEntry, newest first.
            Returns empty list if file doesn't exist.
        """
        if not self.history_path.exists():
            return []

        entries: list[HistoryEntry] = []

        with self.history_path.open(encoding="utf-8") as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue

                try:
                    entries.append(HistoryEntry.from_json_line(line))
                except (json.JSONDecodeError, KeyError, ValueError) as e:
                    logger.warning(
                        "Skipping corrupt history line %d: %s",
                        line_num,
                        str(e),
                    )
                    continue

        entries.reverse()

        if limit is not None:
            return entries[:limit]

        return entries

    def get_entry_by_id(self, entry_id: str) -> HistoryEntry | None:
        """Find an entry by ID or ID prefix.

        The table view shows shortened IDs, so a prefix is accepted; the
        newest matching entry wins.

        Returns:
            The entry, or None if no ID starts with ``entry_id``.
        """
        if not entry_id:
            return None
        for entry in self.get_history():
            if entry.id.startswith(entry_id):
                return entry
        return None
