"""Platform-related utility functions."""

import logging
import os
from pathlib import Path

APP_NAME = "sshdb"

logger = logging.getLogger(__name__)


def _normalize_path(path: str) -> str:
    """Expand user references and return an absolute path."""
    return os.path.abspath(os.path.expanduser(path))


def _xdg_dir(env_var: str, fallback: str) -> str:
    base = os.environ.get(env_var)
    if base and base.strip():
        return _normalize_path(base)
    return _normalize_path(os.path.join("~", fallback))


def get_config_dir() -> str:
    """Return the per-user configuration directory for sshdb."""
    return os.path.join(_xdg_dir("XDG_CONFIG_HOME", ".config"), APP_NAME)


def get_data_dir() -> str:
    """Return the per-user data directory (logs live here)."""
    return os.path.join(_xdg_dir("XDG_DATA_HOME", os.path.join(".local", "share")), APP_NAME)


def get_config_path() -> str:
    """Return the registry file location.

    ``SSHDB_CONFIG`` overrides the default ``<config dir>/config.json``.
    """
    override = os.environ.get("SSHDB_CONFIG")
    if override:
        return _normalize_path(override)
    return os.path.join(get_config_dir(), "config.json")


def expand_tilde(path: str) -> str:
    """Expand a leading ``~/`` using ``$HOME``; other paths are returned as-is.

    Only the current user's home is expanded, ``~other/...`` is left alone
    because ssh itself resolves those.
    """
    if not path.startswith("~/"):
        return path
    home = os.environ.get("HOME")
    if not home:
        try:
            home = str(Path.home())
        except RuntimeError:
            logger.debug("Unable to determine home directory for %s", path)
            return path
    return os.path.join(home, path[2:])


__all__ = [
    "APP_NAME",
    "expand_tilde",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
]
