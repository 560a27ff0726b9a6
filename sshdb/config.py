"""
Registry storage for sshdb
Reads and writes the host registry as JSON and keeps a ``.bak`` copy of the
previous file on every save.
"""

import json
import logging
import os
import shutil
from typing import Optional

from .errors import PersistError
from .models import Config
from .platform_utils import get_config_path

logger = logging.getLogger(__name__)


class ConfigStore:
    """Loads and saves the host registry at a fixed path."""

    def __init__(self, path: Optional[str] = None):
        self.path = os.path.abspath(os.path.expanduser(path)) if path else get_config_path()

    @property
    def backup_path(self) -> str:
        return f"{self.path}.bak"

    def load_or_init(self) -> Config:
        """Load the registry, writing a default one first if the file is missing."""
        if os.path.exists(self.path):
            return self.load()

        logger.info("No registry at %s; creating an empty one", self.path)
        config = Config()
        self.save(config)
        return config

    def load(self) -> Config:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as exc:
            raise PersistError(f"config file {self.path} does not exist") from exc
        except OSError as exc:
            raise PersistError(f"failed to read config file: {exc}") from exc
        except ValueError as exc:
            raise PersistError(f"failed to parse config; fix or remove the file ({exc})") from exc

        if not isinstance(data, dict):
            raise PersistError("failed to parse config; fix or remove the file")
        try:
            config = Config.from_dict(data)
        except (TypeError, ValueError) as exc:
            raise PersistError(f"failed to parse config; fix or remove the file ({exc})") from exc

        logger.debug("Loaded %d host(s) from %s", len(config.hosts), self.path)
        return config

    def save(self, config: Config) -> None:
        """Write *config*, copying any existing file to ``<path>.bak`` first."""
        directory = os.path.dirname(self.path)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
        except OSError as exc:
            raise PersistError(f"failed to create config dir {directory}: {exc}") from exc

        if os.path.exists(self.path):
            try:
                shutil.copyfile(self.path, self.backup_path)
            except OSError as exc:
                # A missing backup should not block saving the registry itself
                logger.warning("Could not back up %s: %s", self.path, exc)

        try:
            payload = json.dumps(config.to_dict(), indent=2)
        except (TypeError, ValueError) as exc:
            raise PersistError(f"failed to serialize config: {exc}") from exc

        try:
            with open(self.path, "w", encoding="utf-8") as f:
                f.write(payload)
                f.write("\n")
        except OSError as exc:
            logger.error("Failed to write config %s: %s", self.path, exc)
            raise PersistError(f"failed to write config: {exc}") from exc

        logger.debug("Saved %d host(s) to %s", len(config.hosts), self.path)


__all__ = ["ConfigStore"]
