"""Key presses as seen by the session, independent of the terminal toolkit."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

ENTER = "enter"
ESCAPE = "escape"
BACKSPACE = "backspace"
TAB = "tab"
SHIFT_TAB = "shift+tab"
UP = "up"
DOWN = "down"
LEFT = "left"
RIGHT = "right"
CTRL_C = "ctrl+c"


@dataclass(frozen=True)
class KeyPress:
    """A key name (Textual naming, e.g. ``"enter"``, ``"ctrl+c"``) and the
    character it produces, if any."""

    key: str
    character: Optional[str] = None

    @property
    def printable(self) -> bool:
        return self.character is not None and len(self.character) == 1 and self.character.isprintable()

    @classmethod
    def char(cls, character: str) -> "KeyPress":
        name = "space" if character == " " else character
        return cls(name, character)

    @classmethod
    def named(cls, key: str) -> "KeyPress":
        return cls(key, None)

    @classmethod
    def from_event(cls, event) -> "KeyPress":
        """Build from a ``textual.events.Key``."""
        character = event.character if event.is_printable else None
        return cls(event.key, character)


__all__ = [
    "BACKSPACE",
    "CTRL_C",
    "DOWN",
    "ENTER",
    "ESCAPE",
    "KeyPress",
    "LEFT",
    "RIGHT",
    "SHIFT_TAB",
    "TAB",
    "UP",
]
