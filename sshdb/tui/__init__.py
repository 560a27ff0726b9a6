"""
Terminal UI package for sshdb.

This module exposes the public entry point for running the Textual TUI.
The actual app lives in ``sshdb.tui.app`` and the key handling it drives in
``sshdb.tui.session``. We import the app lazily so that importing the
session machinery (as the tests do) does not pull in Textual widgets.
"""

from __future__ import annotations

from typing import Any

__all__ = ["main"]


def main(*args: Any, **kwargs: Any) -> Any:
    """Entry point used by the ``sshdb`` console script."""
    from .app import main as _app_main

    return _app_main(*args, **kwargs)
