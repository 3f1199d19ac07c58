"""Data models for usrgrpctl.

This module exports the core data structures used throughout the application.
"""

from usrgrpctl.models.account import (
    MAX_ID,
    SYSTEM_ID_LIMIT,
    EntityKind,
    Group,
    PasswordState,
    ShellRegistry,
    User,
)
from usrgrpctl.models.action import (
    ActionRequest,
    ActionResult,
    ActionType,
    AddGroupMembers,
    AddUserToGroups,
    ChangeFullname,
    ChangeShell,
    CommandFailureKind,
    CommandOutcome,
    CreateGroup,
    CreateUser,
    DeleteGroup,
    DeleteUser,
    PendingAction,
    RemoveGroupMembers,
    RemoveUserFromGroups,
    RenameGroup,
    RenameUser,
    ResetPassword,
    SetPassword,
)
from usrgrpctl.models.history import HistoryEntry, create_history_entry
from usrgrpctl.models.snapshot import DirectorySnapshot, ParseWarning

__all__ = [
    "MAX_ID",
    "SYSTEM_ID_LIMIT",
    "ActionRequest",
    "ActionResult",
    "ActionType",
    "AddGroupMembers",
    "AddUserToGroups",
    "ChangeFullname",
    "ChangeShell",
    "CommandFailureKind",
    "CommandOutcome",
    "CreateGroup",
    "CreateUser",
    "DeleteGroup",
    "DeleteUser",
    "DirectorySnapshot",
    "EntityKind",
    "Group",
    "HistoryEntry",
    "ParseWarning",
    "PasswordState",
    "PendingAction",
    "RemoveGroupMembers",
    "RemoveUserFromGroups",
    "RenameGroup",
    "RenameUser",
    "ResetPassword",
    "SetPassword",
    "ShellRegistry",
    "User",
    "create_history_entry",
]
