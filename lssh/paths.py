"""Utilities for resolving filesystem locations used by lssh."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_config_path, user_data_path

__all__ = ["config_dir", "data_dir", "logs_dir"]

_APP_NAME = "lssh"


def data_dir() -> Path:
    """Return the base directory for mutable application data.

    The path defaults to the platform-specific user data directory exposed by
    :mod:`platformdirs`. When the ``LSSH_DATA_DIR`` environment variable is
    set the value is treated as an override, allowing tests or alternative
    deployments to isolate their state.
    """

    override = os.getenv("LSSH_DATA_DIR")
    path = Path(override).expanduser() if override else user_data_path(_APP_NAME)

    path.mkdir(parents=True, exist_ok=True)
    return path


def logs_dir() -> Path:
    """Return the directory that receives bulk command logs."""

    path = data_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def config_dir() -> Path:
    """Return the directory holding the configuration and default hosts file."""

    return user_config_path(_APP_NAME)
