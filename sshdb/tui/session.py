"""
Session state machine behind the sshdb TUI.

The session owns the registry, the current mode and every transient
sub-state (search filter, form, confirmation, quick-connect buffer).  It is
fed one :class:`~sshdb.tui.keys.KeyPress` at a time and answers with an
optional :class:`AppAction` telling the caller to quit or to run ssh.  It
never draws anything; the Textual app reads its attributes after each key.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from sshdb.bastion import validate_bastions
from sshdb.config import ConfigStore
from sshdb.errors import NotFoundError, PersistError, SshdbError, ValidationError
from sshdb.history import HistoryStack
from sshdb.models import Config, Host
from sshdb.search_utils import rank_hosts
from sshdb.spec_parser import SshSpec, parse_ssh_spec
from sshdb.tui.command_builder import LaunchResult, build_ssh_command, command_preview
from sshdb.tui.editor import FormField, FormKind, FormState, non_empty
from sshdb.tui.keys import BACKSPACE, CTRL_C, DOWN, ENTER, ESCAPE, LEFT, RIGHT, UP, KeyPress

logger = logging.getLogger(__name__)


class Mode(Enum):
    NORMAL = "normal"
    SEARCH = "search"
    FORM = "form"
    CONFIRM = "confirm"
    QUICK_CONNECT = "quick_connect"


class ConfirmKind(Enum):
    DELETE = "delete"
    CONNECT = "connect"


class StatusKind(Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


@dataclass
class StatusLine:
    text: str
    kind: StatusKind = StatusKind.INFO


class ActionKind(Enum):
    QUIT = "quit"
    LAUNCH = "launch"


@dataclass
class AppAction:
    """Directive for the caller: leave the app, or run ``argv`` in the terminal."""

    kind: ActionKind
    argv: List[str] = field(default_factory=list)
    preview: str = ""

    @classmethod
    def quit(cls) -> "AppAction":
        return cls(ActionKind.QUIT)

    @classmethod
    def launch(cls, argv: List[str], preview: str) -> "AppAction":
        return cls(ActionKind.LAUNCH, list(argv), preview)


HELP_ENTRIES: Tuple[Tuple[str, str], ...] = (
    ("/", "search"),
    ("Enter", "connect"),
    ("c", "connect with remote command"),
    ("g", "quick connect (ssh string)"),
    ("n", "new host"),
    ("e", "edit host"),
    ("d", "delete host"),
    ("y", "duplicate host"),
    ("u", "undo last change"),
    ("r", "reload config"),
    ("j/k or arrows", "move selection"),
    ("C", "toggle dry-run"),
    ("?/h", "show help"),
    ("a", "about/credits"),
    ("q", "quit"),
    ("Ctrl+C", "quit immediately"),
    ("Esc", "cancel modal/help"),
)

KeyResult = Optional[AppAction]


class Session:
    """Mode handling, registry mutations and connect logic for one TUI run."""

    def __init__(self, store: ConfigStore, *, dry_run: bool = False, config: Optional[Config] = None):
        self.store = store
        self.config: Config = config if config is not None else store.load_or_init()
        self.history = HistoryStack()

        self.mode = Mode.NORMAL
        self.status: Optional[StatusLine] = None
        self.dry_run = dry_run
        self.show_help = False
        self.show_about = False

        self.filter = ""
        self.filtered_indices: List[int] = []
        self.selected = 0

        self.form: Optional[FormState] = None
        self.confirm: Optional[ConfirmKind] = None
        self.connect_command: Optional[FormField] = None
        self.quick_input: Optional[FormField] = None

        self.rebuild_filter()
        state = "ON" if self.dry_run else "OFF"
        self.set_status(f"Loaded config. Dry-run is {state}; press C to toggle.")

    # ----------------------------------------------------------------- status
    def set_status(self, text: str, kind: StatusKind = StatusKind.INFO) -> None:
        self.status = StatusLine(text, kind)

    # ----------------------------------------------------------------- events
    def on_key(self, key: KeyPress) -> KeyResult:
        """Process one key press and return a directive for the caller, if any."""
        if key.key == CTRL_C:
            return AppAction.quit()

        ch = key.character if key.printable else None
        if self.show_about:
            if key.key == ESCAPE or ch in ("q", "a"):
                self.show_about = False
            return None
        if self.show_help:
            if key.key == ESCAPE or ch in ("?", "h"):
                self.show_help = False
            return None

        handlers: Dict[Mode, Callable[[KeyPress], KeyResult]] = {
            Mode.NORMAL: self._handle_normal,
            Mode.SEARCH: self._handle_search,
            Mode.FORM: self._handle_form,
            Mode.CONFIRM: self._handle_confirm,
            Mode.QUICK_CONNECT: self._handle_quick_connect,
        }
        try:
            return handlers[self.mode](key)
        except SshdbError as exc:
            logger.debug("Rejected input in %s mode: %s", self.mode.value, exc)
            self.set_status(str(exc), StatusKind.ERROR)
        return None

    def _handle_normal(self, key: KeyPress) -> KeyResult:
        ch = key.character if key.printable else None

        if ch == "q":
            return AppAction.quit()
        if key.key == ENTER:
            return self.connect(None)
        if ch == "j" or key.key == DOWN:
            self.move_selection(1)
        elif ch == "k" or key.key == UP:
            self.move_selection(-1)
        elif ch in ("?", "h"):
            self.show_help = True
        elif ch == "a":
            self.show_about = True
        elif ch == "/":
            self.mode = Mode.SEARCH
            self.set_status("Search: type to filter, Enter to apply.")
        elif ch == "g":
            self.mode = Mode.QUICK_CONNECT
            self.quick_input = FormField("ssh")
            self.set_status("Quick connect: paste ssh user@host string, Enter to connect.")
        elif ch == "n":
            self.form = FormState(FormKind.ADD)
            self.mode = Mode.FORM
            self.set_status("New host: paste ssh command or fill fields; Tab to move, Enter to save.")
        elif ch == "e":
            host = self.current_host()
            if host is None:
                self.set_status("No host selected to edit.", StatusKind.WARN)
            else:
                self.form = FormState(FormKind.EDIT, host)
                self.mode = Mode.FORM
                self.set_status(f"Editing {host.name}; Tab to move, Enter to save, Esc to cancel.")
        elif ch == "d":
            self._open_confirm(ConfirmKind.DELETE)
        elif ch == "c":
            self._open_confirm(ConfirmKind.CONNECT)
        elif ch == "y":
            self.duplicate_current()
        elif ch == "u":
            self.undo()
        elif ch == "r":
            self.reload()
        elif ch == "C":
            self.dry_run = not self.dry_run
            self.set_status(f"Dry-run toggled {'ON' if self.dry_run else 'OFF'}.")
        return None

    def _open_confirm(self, kind: ConfirmKind) -> None:
        if self.current_host() is None:
            self.set_status("No host selected.", StatusKind.WARN)
            return
        self.mode = Mode.CONFIRM
        self.confirm = kind
        self.connect_command = FormField("Remote command") if kind is ConfirmKind.CONNECT else None

    def _handle_search(self, key: KeyPress) -> KeyResult:
        if key.key == ESCAPE:
            self.mode = Mode.NORMAL
            self.status = None
        elif key.key == ENTER:
            self.mode = Mode.NORMAL
        elif key.key == BACKSPACE:
            self.filter = self.filter[:-1]
            self.rebuild_filter()
        elif key.printable:
            self.filter += key.character
            self.rebuild_filter()
        return None

    def _handle_form(self, key: KeyPress) -> KeyResult:
        form = self.form
        if form is None:
            self.mode = Mode.NORMAL
            return None

        # While the bastion picker is open, Enter and Esc belong to it.
        if form.on_bastion_field and form.dropdown_open and key.key in (ENTER, ESCAPE):
            form.handle_key(key, self.config)
            return None

        if key.key == ESCAPE:
            self._close_form()
            self.set_status("Edit cancelled.")
        elif key.key == ENTER:
            host = form.build_host()
            self.save_host(form, host)
            self._close_form()
        else:
            form.handle_key(key, self.config)
        return None

    def _close_form(self) -> None:
        self.form = None
        self.mode = Mode.NORMAL

    def _handle_confirm(self, key: KeyPress) -> KeyResult:
        ch = key.character if key.printable else None
        if self.confirm is ConfirmKind.DELETE:
            if key.key == ESCAPE or ch == "n":
                self._close_confirm()
            elif key.key == ENTER or ch == "y":
                self._close_confirm()
                self.delete_current()
        elif self.confirm is ConfirmKind.CONNECT and self.connect_command is not None:
            buffer = self.connect_command
            if key.key == ESCAPE:
                self._close_confirm()
            elif key.key == ENTER:
                extra = non_empty(buffer.value)
                self._close_confirm()
                return self.connect(extra)
            else:
                _edit_line(buffer, key)
        else:
            self._close_confirm()
        return None

    def _close_confirm(self) -> None:
        self.mode = Mode.NORMAL
        self.confirm = None
        self.connect_command = None

    def _handle_quick_connect(self, key: KeyPress) -> KeyResult:
        if self.quick_input is None:
            self.mode = Mode.NORMAL
            return None
        if key.key == ESCAPE:
            self.mode = Mode.NORMAL
            self.quick_input = None
        elif key.key == ENTER:
            # Parse and bastion errors leave the prompt open with its text for correction.
            spec = parse_ssh_spec(self.quick_input.value)
            name, save_error = self._register_spec(spec)
            self.mode = Mode.NORMAL
            self.quick_input = None
            return self._connect_registered(name, save_error)
        else:
            _edit_line(self.quick_input, key)
        return None

    # -------------------------------------------------------------- selection
    def rebuild_filter(self, *, keep_selection: bool = False) -> None:
        """Re-rank the host list for the current filter.

        The selection goes back to the top unless *keep_selection* is set, in
        which case it is only clamped to the new length.
        """
        self.filtered_indices = rank_hosts(self.filter, self.config.hosts)
        if not keep_selection:
            self.selected = 0
        if self.selected >= len(self.filtered_indices):
            self.selected = max(len(self.filtered_indices) - 1, 0)

    def move_selection(self, delta: int) -> None:
        if not self.filtered_indices:
            self.selected = 0
            return
        self.selected = (self.selected + delta) % len(self.filtered_indices)

    def current_index(self) -> Optional[int]:
        if 0 <= self.selected < len(self.filtered_indices):
            return self.filtered_indices[self.selected]
        return None

    def current_host(self) -> Optional[Host]:
        idx = self.current_index()
        if idx is None or idx >= len(self.config.hosts):
            return None
        return self.config.hosts[idx]

    def select_name(self, name: str) -> None:
        idx = self.config.index_of(name)
        if idx is not None and idx in self.filtered_indices:
            self.selected = self.filtered_indices.index(idx)

    def visible_hosts(self) -> List[Tuple[int, Host]]:
        return [(idx, self.config.hosts[idx]) for idx in self.filtered_indices]

    # -------------------------------------------------------------- mutations
    def _persist(self) -> bool:
        try:
            self.store.save(self.config)
        except PersistError as exc:
            logger.error("Failed to save registry: %s", exc)
            self.set_status(f"failed to save config: {exc}", StatusKind.ERROR)
            return False
        return True

    def _commit(self, new_config: Config) -> bool:
        self.history.push(self.config)
        self.config = new_config
        self.rebuild_filter(keep_selection=True)
        return self._persist()

    def save_host(self, form: FormState, host: Host) -> None:
        """Add or replace *host* after checking names and bastion chains.

        Raises:
            ValidationError: duplicate name, self-referencing or circular bastion.
            NotFoundError: the host being edited was removed meanwhile.
        """
        candidate = self.config.clone()
        if form.kind is FormKind.ADD:
            if candidate.has_name(host.name):
                raise ValidationError(f"a host named '{host.name}' already exists")
            candidate.hosts.append(host)
        else:
            original = form.editing_host_name or ""
            idx = candidate.index_of(original)
            if idx is None:
                raise NotFoundError(f"host '{original}' no longer exists")
            other = candidate.index_of(host.name)
            if other is not None and other != idx:
                raise ValidationError(f"a host named '{host.name}' already exists")
            candidate.hosts[idx] = host

        validate_bastions(candidate)

        verb = "Added" if form.kind is FormKind.ADD else "Updated"
        logger.info("%s host %s", verb, host.name)
        self.set_status(f"{verb} host {host.name}.")
        self._commit(candidate)
        self.select_name(host.name)

    def delete_current(self) -> None:
        host = self.current_host()
        if host is None:
            self.set_status("No host selected to delete.", StatusKind.WARN)
            return
        candidate = self.config.clone()
        del candidate.hosts[self.current_index()]
        logger.info("Removed host %s", host.name)
        self.set_status(f"Removed {host.name}.", StatusKind.WARN)
        self._commit(candidate)

    def duplicate_current(self) -> None:
        host = self.current_host()
        if host is None:
            self.set_status("No host selected to duplicate.", StatusKind.WARN)
            return
        name = self.unique_name(f"{host.name}-copy")
        clone = copy.deepcopy(host)
        clone.name = name
        candidate = self.config.clone()
        candidate.hosts.append(clone)
        self.set_status(f"Duplicated host to {name}.")
        self._commit(candidate)
        self.select_name(name)

    def undo(self) -> bool:
        previous = self.history.pop()
        if previous is None:
            self.set_status("Nothing to undo.", StatusKind.WARN)
            return False
        self.config = previous
        self.rebuild_filter(keep_selection=True)
        logger.info("Undo restored %d host(s)", len(self.config.hosts))
        self.set_status("Undid last change.")
        self._persist()
        return True

    def reload(self) -> None:
        self.config = self.store.load_or_init()
        self.rebuild_filter(keep_selection=True)
        logger.info("Reloaded registry from %s", self.store.path)
        self.set_status("Reloaded config.")

    def unique_name(self, base: str) -> str:
        if not self.config.has_name(base):
            return base
        suffix = 2
        while self.config.has_name(f"{base}-{suffix}"):
            suffix += 1
        return f"{base}-{suffix}"

    # ----------------------------------------------------------------- connect
    def find_host_by_spec(self, spec: SshSpec) -> Optional[int]:
        for idx, host in enumerate(self.config.hosts):
            if (
                host.address == spec.address
                and host.user == spec.user
                and host.port == spec.port
                and host.options == spec.options
                and host.bastion == spec.bastion
                and host.remote_command == spec.remote_command
            ):
                return idx
        return None

    def quick_connect(self, spec: SshSpec) -> KeyResult:
        """Connect to the host described by *spec*, registering it if it is new.

        Raises:
            BastionCycleError: the new host would close a bastion loop. The
                registry is left untouched.
        """
        name, save_error = self._register_spec(spec)
        return self._connect_registered(name, save_error)

    def _register_spec(self, spec: SshSpec) -> Tuple[str, Optional[StatusLine]]:
        idx = self.find_host_by_spec(spec)
        if idx is not None:
            name = self.config.hosts[idx].name
            self.filter = ""
            self.rebuild_filter()
            self.set_status("Quick connect using existing host.")
            return name, None

        name = self.unique_name(spec.default_name)
        host = Host(
            name=name,
            address=spec.address,
            user=spec.user,
            port=spec.port,
            key_path=spec.key_path,
            options=list(spec.options),
            remote_command=spec.remote_command,
            bastion=spec.bastion,
        )
        candidate = self.config.clone()
        candidate.hosts.append(host)
        validate_bastions(candidate)

        self.filter = ""
        self.rebuild_filter()
        logger.info("Quick connect registered %s", name)
        self.set_status(f"Added {name} and connecting...")
        if not self._commit(candidate):
            return name, self.status
        return name, None

    def _connect_registered(self, name: str, save_error: Optional[StatusLine]) -> KeyResult:
        self.select_name(name)
        action = self.connect(None)
        if save_error is not None and self.status is not None and self.status.kind is not StatusKind.ERROR:
            self.set_status(f"{self.status.text} ({save_error.text})", StatusKind.WARN)
        return action

    def connect(self, extra_command: Optional[str]) -> KeyResult:
        """Resolve the selected host into an ssh invocation.

        Raises:
            NotFoundError: the bastion chain names a missing host.
            BastionCycleError: the bastion chain loops.
        """
        host = self.current_host()
        if host is None:
            self.set_status("No host selected.", StatusKind.WARN)
            return None

        preview = command_preview(host, self.config, extra_command)
        if self.dry_run:
            self.set_status(f"Dry-run: {preview}")
            return None

        argv = build_ssh_command(host, self.config, extra_command)
        logger.info("Connecting to %s: %s", host.name, preview)
        self.set_status(f"Connecting with: {preview}")
        return AppAction.launch(argv, preview)

    def finish_launch(self, result: LaunchResult) -> None:
        """Record how the ssh process started by a LAUNCH action ended."""
        if result.error is not None:
            self.set_status(f"ssh failed: {result.error}", StatusKind.ERROR)
        elif result.returncode == 0:
            self.set_status("ssh session ended")
        else:
            self.set_status(f"ssh exited with status {result.returncode}", StatusKind.ERROR)


def _edit_line(buffer: FormField, key: KeyPress) -> None:
    if key.key == BACKSPACE:
        buffer.backspace()
    elif key.key == LEFT:
        buffer.move_left()
    elif key.key == RIGHT:
        buffer.move_right()
    elif key.printable:
        buffer.insert(key.character)


__all__ = [
    "ActionKind",
    "AppAction",
    "ConfirmKind",
    "HELP_ENTRIES",
    "Mode",
    "Session",
    "StatusKind",
    "StatusLine",
]
