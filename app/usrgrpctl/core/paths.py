"""Path management for usrgrpctl.

Two kinds of paths live here: the tool's own XDG directories (configuration
and the audit trail) and the locations of the identity databases, which may
be resolved under an alternate root such as a chroot or an image tree.

XDG defaults:
- Config: ~/.config/usrgrpctl/
- State: ~/.local/state/usrgrpctl/
"""

import os
from pathlib import Path

APP_NAME = "usrgrpctl"

PASSWD_PATH = "/etc/passwd"
GROUP_PATH = "/etc/group"
SHADOW_PATH = "/etc/shadow"
GSHADOW_PATH = "/etc/gshadow"
SHELLS_PATH = "/etc/shells"


def _xdg_app_dir(env_var: str, default_subdir: str) -> Path:
    base = os.environ.get(env_var)
    if base:
        return Path(base) / APP_NAME
    return Path.home() / default_subdir / APP_NAME


def get_config_dir() -> Path:
    """Get the configuration directory (XDG_CONFIG_HOME/usrgrpctl/)."""
    return _xdg_app_dir("XDG_CONFIG_HOME", ".config")


def get_state_dir() -> Path:
    """Get the state directory (XDG_STATE_HOME/usrgrpctl/).

    Holds the audit trail of executed actions, which persists between runs
    but is not configuration.
    """
    return _xdg_app_dir("XDG_STATE_HOME", ".local/state")


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return get_config_dir() / "config.toml"


def get_history_path() -> Path:
    """Get the history file path."""
    return get_state_dir() / "history.jsonl"


def ensure_dir(path: Path, name: str) -> Path:
    """Create an application directory if it doesn't exist.

    Args:
        path: Directory to create, with parents.
        name: Short label used in the error message ("state", "config").

    Returns:
        The directory path.

    Raises:
        RuntimeError: If the directory cannot be created.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        msg = f"Cannot create {name} directory {path}: Permission denied"
        raise RuntimeError(msg) from e
    except OSError as e:
        msg = f"Cannot create {name} directory {path}: {e}"
        raise RuntimeError(msg) from e
    return path


def under_root(root: Path | None, path: str) -> Path:
    """Map an absolute database path onto an alternate root.

    Args:
        root: Root directory, or None for the live system.
        path: Path as seen by the host system (e.g. "/etc/passwd").

    Returns:
        ``path`` itself without a root, else the same path below ``root``.

    Example:
        >>> under_root(Path("/mnt/image"), "/etc/group")
        PosixPath('/mnt/image/etc/group')
    """
    if root is None:
        return Path(path)
    return root / path.lstrip("/")
