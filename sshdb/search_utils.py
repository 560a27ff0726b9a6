from __future__ import annotations

from typing import List, Optional, Sequence

from textual.fuzzy import Matcher

from .models import Host


def host_haystack(host: Host) -> str:
    """Return the text a search query is matched against.

    Name, address, tags and description, joined by single spaces.
    """
    return " ".join(
        [
            host.name,
            host.address,
            " ".join(host.tags),
            host.description or "",
        ]
    )


def rank_hosts(query: str, hosts: Sequence[Host], exclude: Optional[str] = None) -> List[int]:
    """Return indices into *hosts* ordered by how well they match *query*.

    An empty query keeps registry order. Otherwise non-matching hosts are
    dropped and the rest are sorted by descending fuzzy score; equal scores
    keep registry order. The host named *exclude* is never returned.
    """
    candidates = [idx for idx, host in enumerate(hosts) if exclude is None or host.name != exclude]
    if not query:
        return candidates

    matcher = Matcher(query)
    scored = []
    for idx in candidates:
        score = matcher.match(host_haystack(hosts[idx]))
        if score > 0:
            scored.append((score, idx))
    scored.sort(key=lambda item: -item[0])
    return [idx for _, idx in scored]


__all__ = ["host_haystack", "rank_hosts"]
