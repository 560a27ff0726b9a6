from __future__ import annotations

import argparse
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import List, Optional, Sequence

from rich.markup import escape
from textual import events
from textual.app import App, ComposeResult, SuspendNotSupported
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.widgets import DataTable, Static

from sshdb import __version__
from sshdb.config import ConfigStore
from sshdb.errors import PersistError
from sshdb.platform_utils import get_data_dir
from sshdb.tui.command_builder import LaunchResult, command_preview, run_ssh_command
from sshdb.tui.editor import FormField, FormKind, FormState
from sshdb.tui.keys import KeyPress
from sshdb.tui.session import HELP_ENTRIES, ActionKind, AppAction, ConfirmKind, Mode, Session, StatusLine

LOG = logging.getLogger(__name__)

DROPDOWN_ROWS = 8


class HostTable(DataTable):
    """Host list. Never takes focus; the session decides the highlighted row."""

    can_focus = False

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.cursor_type = "row"
        self.zebra_stripes = True


class HostBrowser(Horizontal, can_focus=True):
    """Focus holder that hands every key press to the session."""

    class KeyForwarded(Message):
        """Sent for each key press received while the browser has focus."""

        def __init__(self, key: KeyPress):
            super().__init__()
            self.key = key

    def on_key(self, event: events.Key) -> None:
        # Stop here so Textual's own bindings (tab focus, ctrl+c) never fire.
        event.stop()
        event.prevent_default()
        self.post_message(self.KeyForwarded(KeyPress.from_event(event)))


class DetailsPanel(Static):
    """Shows information about the selected host."""

    def show_empty(self, message: str = "No host selected.") -> None:
        self.update(message)

    def show_host(self, session: Session) -> None:
        host = session.current_host()
        if host is None:
            self.show_empty("No matches for current filter" if session.filter else "No hosts yet; press n to add one.")
            return

        lines = [
            f"[b]Name[/b]      {escape(host.name)}",
            f"[b]Target[/b]    {escape(host.display_label())}",
            f"[b]Port[/b]      {host.port if host.port is not None else 22}",
            f"[b]Key[/b]       {escape(host.key_path or 'default')}",
        ]
        if host.bastion:
            lines.append(f"[b]Bastion[/b]   {escape(host.bastion)}")
        if host.tags:
            lines.append(f"[b]Tags[/b]      {escape(', '.join(host.tags))}")
        if host.options:
            lines.append(f"[b]Options[/b]   {escape(' '.join(host.options))}")
        if host.remote_command:
            lines.append(f"[b]Remote cmd[/b] {escape(host.remote_command)}")
        if host.description:
            lines.append(f"[b]About[/b]     {escape(host.description)}")
        lines.append("")
        lines.append(f"[dim]{escape(command_preview(host, session.config))}[/dim]")
        self.update("\n".join(lines))


class StatusBar(Static):
    """Single-line status indicator."""

    def show(self, status: Optional[StatusLine]) -> None:
        kind = status.kind.value if status else "info"
        for name in ("info", "warn", "error"):
            self.set_class(name == kind, name)
        self.update(escape(status.text) if status else "")


class ModalPanel(Static):
    """Overlay for forms, confirmations, quick connect, help and about."""


def _render_line(buffer: FormField, active: bool = True) -> str:
    if not active:
        return escape(buffer.value)
    before = buffer.value[: buffer.cursor]
    under = buffer.value[buffer.cursor : buffer.cursor + 1] or " "
    after = buffer.value[buffer.cursor + 1 :]
    return f"{escape(before)}[reverse]{escape(under)}[/reverse]{escape(after)}"


def render_form(form: FormState, session: Session) -> str:
    title = "New host" if form.kind is FormKind.ADD else f"Edit {form.editing_host_name}"
    lines = [f"[b]{escape(title)}[/b]", ""]
    for idx, field in enumerate(form.fields):
        active = idx == form.index
        marker = "›" if active else " "
        lines.append(f"{marker} [b]{escape(field.label):<15}[/b] {_render_line(field, active)}")
        if active and idx == form.bastion_index and form.bastion_dropdown is not None:
            dropdown = form.bastion_dropdown
            if not dropdown.filtered_indices:
                lines.append("      [dim](no matching hosts)[/dim]")
            for row, host_idx in enumerate(dropdown.filtered_indices[:DROPDOWN_ROWS]):
                host = session.config.hosts[host_idx]
                label = f"{escape(host.name)}  [dim]{escape(host.display_label())}[/dim]"
                if row == dropdown.selected:
                    label = f"[reverse]{label}[/reverse]"
                lines.append(f"      {label}")
    lines.append("")
    hint = "Tab/Shift+Tab move · Space on Bastion opens picker · Enter save · Esc cancel"
    if form.dropdown_open:
        hint = "↑/↓ choose · Enter pick · Space/Esc close picker"
    lines.append(f"[dim]{hint}[/dim]")
    return "\n".join(lines)


def render_modal(session: Session) -> Optional[str]:
    if session.show_about:
        return "\n".join(
            [
                f"[b]sshdb v{__version__}[/b]",
                "",
                "A keyboard-driven registry of SSH hosts and bastion chains.",
                f"Registry: {escape(session.store.path)}",
                "",
                "[dim]Esc, q or a to close[/dim]",
            ]
        )
    if session.show_help:
        lines: List[str] = ["[b]Keys[/b]", ""]
        lines.extend(f"  [b]{escape(key):<14}[/b] {escape(desc)}" for key, desc in HELP_ENTRIES)
        lines.extend(["", "[dim]Esc, ? or h to close[/dim]"])
        return "\n".join(lines)
    if session.mode is Mode.FORM and session.form is not None:
        return render_form(session.form, session)
    if session.mode is Mode.CONFIRM:
        host = session.current_host()
        name = escape(host.name) if host else "?"
        if session.confirm is ConfirmKind.DELETE:
            return f"[b]Delete {name}?[/b]\n\n[dim]y/Enter delete · n/Esc cancel[/dim]"
        if session.connect_command is not None:
            return "\n".join(
                [
                    f"[b]Connect to {name}[/b]",
                    "",
                    f"Remote command (optional): {_render_line(session.connect_command)}",
                    "",
                    "[dim]Enter connect · Esc cancel[/dim]",
                ]
            )
    if session.mode is Mode.QUICK_CONNECT and session.quick_input is not None:
        return "\n".join(
            [
                "[b]Quick connect[/b]",
                "",
                f"ssh {_render_line(session.quick_input)}",
                "",
                "[dim]e.g. ssh -p 2222 deploy@10.0.0.5 · Enter connect · Esc cancel[/dim]",
            ]
        )
    return None


class SshdbApp(App[None]):
    """Textual front end: draws the session state and runs ssh when asked."""

    TITLE = "sshdb"
    ENABLE_COMMAND_PALETTE = False
    CSS = """
    Screen {
        layout: vertical;
        layers: base overlay;
    }

    #header {
        height: 1;
        padding: 0 1;
        background: $accent;
        color: $text;
        text-style: bold;
    }

    #body {
        height: 1fr;
        padding: 1 2;
    }

    #host-table {
        width: 3fr;
        height: 1fr;
    }

    #details {
        width: 2fr;
        height: 1fr;
        border: round $secondary;
        padding: 1;
        margin-left: 2;
    }

    #modal {
        layer: overlay;
        dock: top;
        margin: 4 8;
        width: auto;
        min-width: 60;
        max-width: 100;
        height: auto;
        background: $surface;
        border: round $secondary;
        padding: 1 2;
    }

    #status {
        height: 1;
        padding: 0 1;
        background: $boost;
    }

    #status.warn {
        background: $warning;
        color: $text;
    }

    #status.error {
        background: $error;
        color: $text;
    }
    """

    def __init__(self, session: Session, **kwargs):
        super().__init__(**kwargs)
        self.session = session

    # --------------------------------------------------------------------- UI
    def compose(self) -> ComposeResult:
        yield Static(id="header")
        with Vertical():
            with HostBrowser(id="body"):
                table = HostTable(id="host-table")
                table.add_columns("Name", "Target", "Port", "Tags")
                yield table
                yield DetailsPanel(id="details")
        yield StatusBar(id="status")
        yield ModalPanel(id="modal")

    def on_mount(self) -> None:
        self.query_one(HostBrowser).focus()
        self.refresh_view()

    # ----------------------------------------------------------------- events
    def on_host_browser_key_forwarded(self, message: HostBrowser.KeyForwarded) -> None:
        message.stop()
        action = self.session.on_key(message.key)
        if action is not None:
            self.perform(action)
        self.refresh_view()

    def perform(self, action: AppAction) -> None:
        if action.kind is ActionKind.QUIT:
            self.exit()
            return
        LOG.info("Handing terminal to ssh: %s", action.preview)
        try:
            with self.suspend():
                result = run_ssh_command(action.argv)
        except SuspendNotSupported:
            LOG.warning("Terminal cannot be suspended; not launching ssh")
            result = LaunchResult(error="this terminal cannot be suspended to run ssh")
        self.session.finish_launch(result)

    # ---------------------------------------------------------------- drawing
    def refresh_view(self) -> None:
        session = self.session
        header = f" sshdb v{__version__}   {len(session.config.hosts)} hosts"
        if session.dry_run:
            header += "   [dry-run]"
        if session.filter or session.mode is Mode.SEARCH:
            header += f"   /{session.filter}"
        header += "   Enter connect · / search · n new · e edit · ? help"
        self.query_one("#header", Static).update(escape(header))

        table = self.query_one(HostTable)
        table.clear(columns=False)
        for idx, host in session.visible_hosts():
            table.add_row(
                host.name,
                host.display_label(),
                str(host.port) if host.port is not None else "",
                ", ".join(host.tags),
                key=str(idx),
            )
        if session.filtered_indices:
            table.move_cursor(row=session.selected)

        self.query_one(DetailsPanel).show_host(session)
        self.query_one(StatusBar).show(session.status)

        modal = self.query_one(ModalPanel)
        content = render_modal(session)
        modal.display = content is not None
        if content is not None:
            modal.update(content)


def configure_logging(level: int) -> Optional[str]:
    """Send log records to a rotating file; the terminal belongs to the TUI."""
    log_dir = get_data_dir()
    try:
        os.makedirs(log_dir, exist_ok=True)
    except OSError:
        logging.basicConfig(level=level, handlers=[logging.NullHandler()])
        return None

    log_path = os.path.join(log_dir, "sshdb.log")
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)
    root_logger.addHandler(file_handler)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    return log_path


def parse_args(argv: Optional[Sequence[str]] = None):
    parser = argparse.ArgumentParser(prog="sshdb", description="sshdb terminal UI")
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Registry file to use (default: $SSHDB_CONFIG or ~/.config/sshdb/config.json)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Start with dry-run on: show ssh commands instead of running them",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    level = logging.DEBUG if args.verbose else getattr(logging, str(args.log_level).upper(), logging.INFO)
    configure_logging(level)

    store = ConfigStore(args.config)
    try:
        session = Session(store, dry_run=args.dry_run)
    except PersistError as exc:
        LOG.error("Could not open registry %s: %s", store.path, exc)
        print(f"sshdb error: {exc}", file=sys.stderr)
        return 1

    app = SshdbApp(session)
    try:
        app.run()
    except KeyboardInterrupt:
        pass
    return 0


__all__ = ["SshdbApp", "configure_logging", "main", "parse_args", "render_modal"]
