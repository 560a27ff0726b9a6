"""Bastion (jump host) chain resolution and validation."""

from __future__ import annotations

import logging
from typing import List, Optional

from .errors import BastionCycleError, NotFoundError
from .models import Config, Host

logger = logging.getLogger(__name__)


def format_hop(host: Host) -> str:
    """Render *host* as one ``-J`` hop: ``[user@]address[:port]``."""
    hop = host.display_label()
    if host.port is not None:
        hop = f"{hop}:{host.port}"
    return hop


def build_bastion_string(config: Config, bastion_name: str, visited: Optional[List[str]] = None) -> str:
    """
    Return the ``ssh -J`` argument for reaching a host through *bastion_name*.

    The bastion's own bastion is resolved first, so the result lists the
    outermost hop first: ``outer,middle,inner``.

    Raises:
        BastionCycleError: a name was reached twice while walking the chain.
        NotFoundError: a bastion name is not in the registry.
    """
    if visited is None:
        visited = []
    if bastion_name in visited:
        raise BastionCycleError(f"circular bastion reference detected: {bastion_name}", bastion_name)
    visited.append(bastion_name)

    bastion = config.find_host(bastion_name)
    if bastion is None:
        raise NotFoundError(f"bastion host '{bastion_name}' not found")

    hops: List[str] = []
    if bastion.bastion:
        hops.append(build_bastion_string(config, bastion.bastion, visited))
    hops.append(format_hop(bastion))
    return ",".join(hops)


def validate_bastions(config: Config) -> None:
    """
    Check every bastion chain in *config* for self references and cycles.

    Chains are followed by name. A chain that ends at a name missing from the
    registry is accepted here; it only fails once somebody connects through it.

    Raises:
        BastionCycleError: on the first offending host.
    """
    for host in config.hosts:
        if not host.bastion:
            continue
        if host.bastion == host.name:
            logger.info("Rejected self-referencing bastion on %s", host.name)
            raise BastionCycleError(f"Host '{host.name}' cannot use itself as bastion.", host.name)

        seen = [host.name]
        current: Optional[str] = host.bastion
        while current:
            if current in seen:
                logger.info("Rejected bastion cycle through %s (from %s)", current, host.name)
                raise BastionCycleError(
                    f"Circular bastion reference detected involving '{current}'.", current
                )
            hop = config.find_host(current)
            if hop is None:
                break
            seen.append(current)
            current = hop.bastion


__all__ = ["build_bastion_string", "format_hop", "validate_bastions"]
