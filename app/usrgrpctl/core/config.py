"""Manager configuration and settings.

This module provides the configuration model and I/O functions for
usrgrpctl. Configuration is stored in ~/.config/usrgrpctl/config.toml and
every setting has a default, so a missing file is not an error.

The administrator group can also be set with the ``UGM_SUDO_GROUP``
environment variable, which takes precedence over the file.
"""

import logging
import os
import tomllib
from enum import Enum
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from usrgrpctl.core.errors import ConfigError, ConfigParseError
from usrgrpctl.core.paths import get_config_path
from usrgrpctl.models.account import NAME_PATTERN

logger = logging.getLogger(__name__)

ADMIN_GROUP_ENV = "UGM_SUDO_GROUP"

DEFAULT_TIMEOUT_SECONDS = 30


class Backend(str, Enum):
    """Privileged backend used to apply changes.

    Attributes:
        SYSTEM: Live OS account tools (useradd, usermod, gpasswd, ...).
        FILES: Direct edits of passwd/group/shadow under a root directory.
    """

    SYSTEM = "system"
    FILES = "files"


class ManagerConfig(BaseModel):
    """Configuration for the account manager.

    Attributes:
        backend: Privileged backend to use.
        root: Directory that identity databases are read from (and, for the
            files backend, written to). None means the live system.
        command_timeout_seconds: Timeout for every external command.
        admin_group: Group that "add to administrators" joins.
        protect_system_accounts: Refuse to delete or rename ids below 1000.
        confirm_all_actions: Ask for confirmation before every action,
            not only destructive ones.
        create_home: Default for the "create home directory" option.
    """

    model_config = ConfigDict(extra="forbid")

    backend: Annotated[
        Backend,
        Field(description="Privileged backend (system or files)"),
    ] = Backend.SYSTEM
    root: Annotated[
        Path | None,
        Field(description="Alternate root directory for the identity databases"),
    ] = None
    command_timeout_seconds: Annotated[
        int,
        Field(ge=1, le=600, description="Timeout in seconds (1-600)"),
    ] = DEFAULT_TIMEOUT_SECONDS
    admin_group: Annotated[
        str,
        Field(pattern=NAME_PATTERN, description="Administrator group name"),
    ] = "wheel"
    protect_system_accounts: Annotated[
        bool,
        Field(description="Refuse to delete or rename system accounts"),
    ] = True
    confirm_all_actions: Annotated[
        bool,
        Field(description="Confirm every action, not only destructive ones"),
    ] = False
    create_home: Annotated[
        bool,
        Field(description="Create home directories for new users by default"),
    ] = True


def apply_environment(config: ManagerConfig) -> ManagerConfig:
    """Apply environment overrides to a configuration.

    Args:
        config: Configuration loaded from file or defaults.

    Returns:
        A new configuration with overrides applied.

    Raises:
        ConfigError: If an override has an invalid value.
    """
    group = os.environ.get(ADMIN_GROUP_ENV, "").strip()
    if not group:
        return config
    data = config.model_dump()
    data["admin_group"] = group
    try:
        return ManagerConfig.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid {ADMIN_GROUP_ENV} value {group!r}: {e.errors()[0]['msg']}"
        raise ConfigError(msg) from e


def load_config(path: Path | None = None) -> ManagerConfig:
    """Load configuration from a TOML file.

    Args:
        path: Path to the config file. If None, uses the default config path.

    Returns:
        Validated ManagerConfig with environment overrides applied.
        Defaults are returned when the file does not exist.

    Raises:
        ConfigParseError: If the TOML syntax is invalid.
        ConfigError: If the file cannot be read or doesn't match the schema.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        logger.debug("No config file at %s, using defaults", config_path)
        return apply_environment(ManagerConfig())

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigParseError(f"Invalid TOML syntax in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config: {e}") from e

    try:
        config = ManagerConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config content in {config_path}: {e}") from e

    return apply_environment(config)


def save_config(config: ManagerConfig, path: Path | None = None) -> Path:
    """Save configuration to a TOML file.

    The file is written atomically by first writing to a temporary file
    and then using os.replace() for atomic rename.

    Args:
        config: The ManagerConfig object to save.
        path: Path to save the config. If None, uses the default config path.

    Returns:
        Path where the config was saved.

    Raises:
        ConfigError: If the file cannot be written.
    """
    config_path = path or get_config_path()
    data = _config_to_dict(config)

    tmp_path: Path | None = None
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with NamedTemporaryFile(
            mode="wb",
            dir=config_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        os.replace(str(tmp_path), str(config_path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise ConfigError(f"Failed to write config: {e}") from e

    return config_path


def _config_to_dict(config: ManagerConfig) -> dict[str, object]:
    """Convert ManagerConfig to a dictionary for TOML serialization.

    TOML has no null, so an unset root is omitted.
    """
    data = config.model_dump(mode="json", exclude_none=True)
    return dict(data)
