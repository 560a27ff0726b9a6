"""Host registry data model."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

CONFIG_VERSION = 1
MAX_PORT = 65535

# Sentinel for ``Config.default_key`` meaning "let ssh/the agent pick a key".
AGENT_KEY = "agent"


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def _str_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


def _port(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"port must be an integer, got {value!r}")
    if isinstance(value, str):
        if not value.strip().isdigit():
            raise ValueError(f"port must be an integer, got {value!r}")
        value = int(value)
    if not 0 <= value <= MAX_PORT:
        raise ValueError(f"port {value} is outside 0-{MAX_PORT}")
    return value


def _required_str(data: Dict[str, Any], key: str) -> str:
    text = str(data.get(key) or "").strip()
    if not text:
        raise ValueError(f"host entry is missing '{key}'")
    return text


@dataclass
class Host:
    """One named connection target.

    ``bastion`` is the *name* of another host in the same registry. It is
    looked up every time it is needed and never holds a reference to the
    other ``Host`` object.
    """

    name: str
    address: str
    user: Optional[str] = None
    port: Optional[int] = None
    key_path: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    options: List[str] = field(default_factory=list)
    remote_command: Optional[str] = None
    bastion: Optional[str] = None
    description: Optional[str] = None

    def display_label(self) -> str:
        if self.user:
            return f"{self.user}@{self.address}"
        return self.address

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "host": self.address,
            "user": self.user,
            "port": self.port,
            "key_path": self.key_path,
            "tags": list(self.tags),
            "options": list(self.options),
            "remote_command": self.remote_command,
            "bastion": self.bastion,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Host":
        return cls(
            name=_required_str(data, "name"),
            address=_required_str(data, "host"),
            user=_optional_str(data.get("user")),
            port=_port(data.get("port")),
            key_path=_optional_str(data.get("key_path")),
            tags=_str_list(data.get("tags")),
            options=_str_list(data.get("options")),
            remote_command=_optional_str(data.get("remote_command")),
            bastion=_optional_str(data.get("bastion")),
            description=_optional_str(data.get("description")),
        )


@dataclass
class Config:
    """The persisted registry: format version, default key and ordered hosts."""

    version: int = CONFIG_VERSION
    default_key: Optional[str] = None
    hosts: List[Host] = field(default_factory=list)

    def find_host(self, name: str) -> Optional[Host]:
        for host in self.hosts:
            if host.name == name:
                return host
        return None

    def index_of(self, name: str) -> Optional[int]:
        for idx, host in enumerate(self.hosts):
            if host.name == name:
                return idx
        return None

    def has_name(self, name: str) -> bool:
        return self.index_of(name) is not None

    def clone(self) -> "Config":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "default_key": self.default_key,
            "hosts": [host.to_dict() for host in self.hosts],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        hosts = [Host.from_dict(item) for item in (data.get("hosts") or []) if isinstance(item, dict)]
        return cls(
            version=int(data.get("version") or CONFIG_VERSION),
            default_key=_optional_str(data.get("default_key")),
            hosts=hosts,
        )


__all__ = ["AGENT_KEY", "CONFIG_VERSION", "Config", "Host"]
