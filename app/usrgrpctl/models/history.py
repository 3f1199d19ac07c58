"""History entry model for the audit trail.

This module defines the record written for every privileged action that
reached the execution stage. Password values are never part of an entry.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from usrgrpctl.models.action import ActionResult, ActionType


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """Record of a single executed action.

    Attributes:
        id: Unique identifier (12-character hex string from UUID).
        timestamp: When the action finished (ISO 8601 format with timezone).
        action_type: Type of action that was executed.
        targets: Entity names the action touched (target first).
        description: Human-readable summary of the change.
        success: Whether every step completed successfully.
        failure_kind: Classified failure of the first failed step, if any.
        backend: Name of the privileged backend that ran the action.
        metadata: Additional context (commands, dry-run flag).
    """

    id: str
    timestamp: str
    action_type: ActionType
    targets: tuple[str, ...]
    description: str = ""
    success: bool = True
    failure_kind: str | None = None
    backend: str = "system"
    metadata: dict[str, Any] = field(default_factory=lambda: {})

    def __post_init__(self) -> None:
        """Validate entry data after initialization."""
        if not self.id:
            msg = "History entry ID cannot be empty"
            raise ValueError(msg)
        if not self.timestamp:
            msg = "Timestamp cannot be empty"
            raise ValueError(msg)
        if not self.targets:
            msg = "History entry must have at least one target"
            raise ValueError(msg)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        result: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "action_type": self.action_type.value,
            "targets": list(self.targets),
            "description": self.description,
            "success": self.success,
            "backend": self.backend,
            "metadata": self.metadata,
        }
        if self.failure_kind is not None:
            result["failure_kind"] = self.failure_kind
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryEntry:
        """Deserialize from dictionary.

        Raises:
            KeyError: If required fields are missing.
            ValueError: If action_type or other data is invalid.
        """
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            action_type=ActionType(data["action_type"]),
            targets=tuple(data["targets"]),
            description=data.get("description", ""),
            success=data.get("success", True),
            failure_kind=data.get("failure_kind"),
            backend=data.get("backend", "system"),
            metadata=data.get("metadata", {}),
        )

    def to_json_line(self) -> str:
        """Serialize to a single JSON line (no trailing newline)."""
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_json_line(cls, line: str) -> HistoryEntry:
        """Deserialize from a JSON line.

        Raises:
            json.JSONDecodeError: If line is not valid JSON.
            KeyError: If required fields are missing.
            ValueError: If data is invalid.
        """
        return cls.from_dict(json.loads(line.strip()))


def create_history_entry(result: ActionResult, backend: str) -> HistoryEntry:
    """Build a HistoryEntry from an action result.

    Automatically generates a unique ID and current timestamp. Only the
    displayable command lines are recorded; they never carry secrets.

    Args:
        result: Result of the executed action.
        backend: Name of the backend that executed it.

    Returns:
        New HistoryEntry.
    """
    request = result.request
    targets: list[str] = []
    if request.target is not None:
        targets.append(request.target[1])
    targets.extend(name for _, name in request.new_names if name not in targets)
    targets.extend(name for _, name in request.references if name not in targets)

    failure = result.failure
    metadata: dict[str, Any] = {"commands": [o.command for o in result.outcomes if o.command]}
    if result.dry_run:
        metadata["dry_run"] = True

    return HistoryEntry(
        id=uuid.uuid4().hex[:12],
        timestamp=datetime.now(UTC).isoformat(),
        action_type=request.action_type,
        targets=tuple(targets),
        description=request.describe(),
        success=result.success,
        failure_kind=failure.classified_error.value if failure and failure.classified_error else None,
        backend=backend,
        metadata=metadata,
    )
