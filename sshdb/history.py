"""Bounded undo history of whole-registry snapshots."""

from __future__ import annotations

from collections import deque
from typing import Deque, Optional

from .models import Config

HISTORY_LIMIT = 20


class HistoryStack:
    """Keeps up to ``limit`` registry snapshots; the oldest is dropped first."""

    def __init__(self, limit: int = HISTORY_LIMIT):
        self._snapshots: Deque[Config] = deque(maxlen=limit)

    def push(self, config: Config) -> None:
        """Store a deep copy of *config* so later edits cannot leak into it."""
        self._snapshots.append(config.clone())

    def pop(self) -> Optional[Config]:
        if not self._snapshots:
            return None
        return self._snapshots.pop()

    def clear(self) -> None:
        self._snapshots.clear()

    @property
    def limit(self) -> int:
        return self._snapshots.maxlen or 0

    def __len__(self) -> int:
        return len(self._snapshots)

    def __bool__(self) -> bool:
        return bool(self._snapshots)


__all__ = ["HISTORY_LIMIT", "HistoryStack"]
