"""
Helpers for preparing and running SSH commands for the TUI.

The session only decides *what* to run.  This module turns a stored host into
the ``ssh`` argument vector (bastion chain, port, identity, extra options,
target and trailing command), renders the same thing as a one-line preview
and runs the final command with the terminal handed over to ``ssh``.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Sequence

from sshdb.bastion import build_bastion_string
from sshdb.errors import BastionCycleError, NotFoundError
from sshdb.models import AGENT_KEY, Config, Host
from sshdb.platform_utils import expand_tilde

logger = logging.getLogger(__name__)

FALLBACK_KEYS = ("~/.ssh/id_ed25519", "~/.ssh/id_rsa")


def _agent_available() -> bool:
    return bool(os.environ.get("SSH_AUTH_SOCK"))


def select_key(host_key: Optional[str], default_key: Optional[str]) -> Optional[str]:
    """Return the identity file to pass with ``-i`` or ``None`` to let ssh decide.

    Order: the host's own key, then the registry default (``"agent"`` means
    never pass one), then nothing when an agent socket is available, then the
    first conventional key path.
    """
    if host_key:
        return expand_tilde(host_key)
    if default_key:
        if default_key == AGENT_KEY:
            return None
        return expand_tilde(default_key)
    if _agent_available():
        return None
    return expand_tilde(FALLBACK_KEYS[0])


def _trailing_command(host: Host, extra_command: Optional[str]) -> Optional[str]:
    if extra_command:
        return extra_command
    return host.remote_command or None


def _assemble(host: Host, config: Config, chain: Optional[str], extra_command: Optional[str]) -> List[str]:
    cmd: List[str] = ["ssh"]
    if chain:
        cmd.extend(["-J", chain])
    if host.port is not None:
        cmd.extend(["-p", str(host.port)])
    key = select_key(host.key_path, config.default_key)
    if key:
        cmd.extend(["-i", key])
    cmd.extend(host.options)
    cmd.append(host.display_label())
    trailing = _trailing_command(host, extra_command)
    if trailing:
        cmd.append(trailing)
    return cmd


def build_ssh_command(host: Host, config: Config, extra_command: Optional[str] = None) -> List[str]:
    """
    Return the argv list for connecting to *host*.

    Args:
        host: Host to connect to.
        config: Registry used for bastion lookups and the default key.
        extra_command: Overrides the host's stored remote command.

    Raises:
        NotFoundError: the bastion chain names a missing host.
        BastionCycleError: the bastion chain loops.
    """
    chain = build_bastion_string(config, host.bastion) if host.bastion else None
    return _assemble(host, config, chain, extra_command)


def command_preview(host: Host, config: Config, extra_command: Optional[str] = None) -> str:
    """Return the command as a single line; bastion errors are shown inline."""
    chain: Optional[str] = None
    if host.bastion:
        try:
            chain = build_bastion_string(config, host.bastion)
        except NotFoundError:
            chain = f"<error: bastion '{host.bastion}' not found>"
        except BastionCycleError as exc:
            chain = f"<error: {exc}>"
    return " ".join(_assemble(host, config, chain, extra_command))


@dataclass
class LaunchResult:
    """Outcome of running ssh: an exit status or the reason it never started."""

    returncode: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.returncode == 0


def run_ssh_command(cmd: Sequence[str]) -> LaunchResult:
    """Run *cmd* with inherited stdin/stdout/stderr and wait for it to exit."""
    try:
        completed = subprocess.run(list(cmd))
    except FileNotFoundError:
        logger.warning("ssh executable was not found on PATH")
        return LaunchResult(error="ssh executable was not found on PATH")
    except OSError as exc:
        logger.warning("Failed to start %s: %s", cmd[0] if cmd else "ssh", exc)
        return LaunchResult(error=str(exc))
    if completed.returncode != 0:
        logger.info("ssh exited with status %s", completed.returncode)
    return LaunchResult(returncode=completed.returncode)


__all__ = [
    "FALLBACK_KEYS",
    "LaunchResult",
    "build_ssh_command",
    "command_preview",
    "run_ssh_command",
    "select_key",
]
