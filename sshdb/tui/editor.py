from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from sshdb.errors import ParseError, ValidationError
from sshdb.models import Config, Host
from sshdb.search_utils import rank_hosts
from sshdb.spec_parser import SshSpec, parse_port, parse_ssh_spec
from sshdb.tui.keys import BACKSPACE, DOWN, ENTER, ESCAPE, LEFT, RIGHT, SHIFT_TAB, TAB, UP, KeyPress

LABEL_COMMAND = "SSH command"
LABEL_NAME = "Name"
LABEL_ADDRESS = "Host / IP"
LABEL_USER = "User"
LABEL_PORT = "Port"
LABEL_KEY = "Key path"
LABEL_BASTION = "Bastion"
LABEL_TAGS = "Tags (comma)"
LABEL_OPTIONS = "Options"
LABEL_REMOTE = "Remote command"
LABEL_DESCRIPTION = "Description"


class FormKind(Enum):
    ADD = "add"
    EDIT = "edit"


@dataclass
class FormField:
    """A labelled single-line text buffer with a cursor."""

    label: str
    value: str = ""
    cursor: Optional[int] = None

    def __post_init__(self) -> None:
        if self.cursor is None:
            self.cursor = len(self.value)
        self.clamp()

    def clamp(self) -> None:
        self.cursor = max(0, min(self.cursor, len(self.value)))

    def set_value(self, value: str) -> None:
        self.value = value
        self.cursor = len(value)

    def insert(self, ch: str) -> None:
        self.value = self.value[: self.cursor] + ch + self.value[self.cursor :]
        self.cursor += len(ch)

    def backspace(self) -> bool:
        if self.cursor == 0:
            return False
        self.value = self.value[: self.cursor - 1] + self.value[self.cursor :]
        self.cursor -= 1
        return True

    def move_left(self) -> None:
        if self.cursor > 0:
            self.cursor -= 1

    def move_right(self) -> None:
        if self.cursor < len(self.value):
            self.cursor += 1

    def move_end(self) -> None:
        self.cursor = len(self.value)


@dataclass
class BastionDropdownState:
    """Picker listing registry hosts that can serve as a bastion."""

    search_filter: str = ""
    filtered_indices: List[int] = field(default_factory=list)
    selected: int = 0
    exclude_host: Optional[str] = None

    @classmethod
    def open(cls, config: Config, exclude_host: Optional[str], search_filter: str = "") -> "BastionDropdownState":
        state = cls(search_filter=search_filter, exclude_host=exclude_host)
        state.rebuild_filter(config)
        return state

    def rebuild_filter(self, config: Config) -> None:
        self.filtered_indices = rank_hosts(self.search_filter, config.hosts, exclude=self.exclude_host)
        self.selected = 0

    def move(self, delta: int) -> None:
        if not self.filtered_indices:
            self.selected = 0
            return
        self.selected = (self.selected + delta) % len(self.filtered_indices)

    def selected_host(self, config: Config) -> Optional[Host]:
        if not 0 <= self.selected < len(self.filtered_indices):
            return None
        idx = self.filtered_indices[self.selected]
        if 0 <= idx < len(config.hosts):
            return config.hosts[idx]
        return None


def non_empty(text: str) -> Optional[str]:
    trimmed = text.strip()
    return trimmed or None


class FormState:
    """
    State of the add/edit host form.

    Add forms start with a free-text "SSH command" field whose edits are
    parsed and copied into the structured fields below it. The Bastion field
    can open a :class:`BastionDropdownState` picker with the space key.
    """

    def __init__(self, kind: FormKind, host: Optional[Host] = None):
        self.kind = kind
        self.editing_host_name: Optional[str] = host.name if host and kind is FormKind.EDIT else None
        self.bastion_dropdown: Optional[BastionDropdownState] = None
        self.index = 0
        # Name last written by the command field; anything else was typed by the user.
        self._auto_name: Optional[str] = None

        h = host or Host(name="", address="")
        values = [
            (LABEL_NAME, h.name),
            (LABEL_ADDRESS, h.address),
            (LABEL_USER, h.user or ""),
            (LABEL_PORT, str(h.port) if h.port is not None else ""),
            (LABEL_KEY, h.key_path or ""),
            (LABEL_BASTION, h.bastion or ""),
            (LABEL_TAGS, ",".join(h.tags)),
            (LABEL_OPTIONS, " ".join(h.options)),
            (LABEL_REMOTE, h.remote_command or ""),
            (LABEL_DESCRIPTION, h.description or ""),
        ]
        if kind is FormKind.ADD:
            values.insert(0, (LABEL_COMMAND, ""))
        self.fields: List[FormField] = [FormField(label, value, len(value)) for label, value in values]

    # ------------------------------------------------------------------ lookup
    def field(self, label: str) -> FormField:
        for f in self.fields:
            if f.label == label:
                return f
        raise KeyError(label)

    def value(self, label: str) -> str:
        return self.field(label).value

    @property
    def active_field(self) -> FormField:
        return self.fields[self.index]

    @property
    def bastion_index(self) -> int:
        return [f.label for f in self.fields].index(LABEL_BASTION)

    @property
    def on_bastion_field(self) -> bool:
        return self.index == self.bastion_index

    @property
    def on_command_field(self) -> bool:
        return self.kind is FormKind.ADD and self.index == 0

    @property
    def dropdown_open(self) -> bool:
        return self.bastion_dropdown is not None

    # ------------------------------------------------------------- navigation
    def next_field(self) -> None:
        self.close_bastion_dropdown()
        self.index = (self.index + 1) % len(self.fields)
        self.active_field.move_end()

    def prev_field(self) -> None:
        self.close_bastion_dropdown()
        self.index = (self.index - 1) % len(self.fields)
        self.active_field.move_end()

    # ---------------------------------------------------------------- picker
    def open_bastion_dropdown(self, config: Config) -> None:
        self.bastion_dropdown = BastionDropdownState.open(
            config, self.editing_host_name, self.value(LABEL_BASTION)
        )

    def close_bastion_dropdown(self) -> None:
        self.bastion_dropdown = None

    def _sync_dropdown(self, config: Config) -> None:
        if self.bastion_dropdown is not None:
            self.bastion_dropdown.search_filter = self.value(LABEL_BASTION)
            self.bastion_dropdown.rebuild_filter(config)

    def _handle_dropdown_key(self, key: KeyPress, config: Config) -> bool:
        """Route *key* to the open picker. Returns ``True`` when consumed."""
        dropdown = self.bastion_dropdown
        bastion = self.field(LABEL_BASTION)
        if key.key == ESCAPE:
            self.close_bastion_dropdown()
        elif key.key == ENTER:
            host = dropdown.selected_host(config)
            if host is not None:
                bastion.set_value(host.name)
            self.close_bastion_dropdown()
        elif key.key == UP:
            dropdown.move(-1)
        elif key.key == DOWN:
            dropdown.move(1)
        elif key.key == BACKSPACE:
            bastion.backspace()
            self._sync_dropdown(config)
        elif key.printable:
            if key.character == " ":
                self.close_bastion_dropdown()
            else:
                bastion.insert(key.character)
                self._sync_dropdown(config)
        else:
            return False
        return True

    # ----------------------------------------------------------------- input
    def handle_key(self, key: KeyPress, config: Config) -> None:
        """Apply one key press. Enter is only meaningful while the picker is open."""
        if self.on_bastion_field and self.dropdown_open:
            if self._handle_dropdown_key(key, config):
                return

        active = self.active_field
        edited = False
        if key.key in (TAB, DOWN):
            self.next_field()
        elif key.key in (SHIFT_TAB, UP):
            self.prev_field()
        elif key.key == LEFT:
            active.move_left()
        elif key.key == RIGHT:
            active.move_right()
        elif key.key == BACKSPACE:
            edited = active.backspace()
        elif key.printable:
            if key.character == " " and self.on_bastion_field:
                self.open_bastion_dropdown(config)
                return
            active.insert(key.character)
            edited = True

        self.active_field.clamp()
        if edited and self.on_command_field:
            self.sync_command_field()

    # ------------------------------------------------------------ command sync
    def sync_command_field(self) -> None:
        """Parse the SSH command field and copy the result into the other fields.

        Incomplete commands are expected while typing and leave the fields alone.
        """
        text = non_empty(self.fields[0].value)
        if text is None:
            return
        try:
            spec = parse_ssh_spec(text)
        except ParseError:
            return
        self.apply_spec(spec)

    def apply_spec(self, spec: SshSpec) -> None:
        self.field(LABEL_ADDRESS).set_value(spec.address)
        self.field(LABEL_USER).set_value(spec.user or "")
        self._fill_name(spec)
        self.field(LABEL_PORT).set_value(str(spec.port) if spec.port is not None else "")
        self.field(LABEL_KEY).set_value(spec.key_path or "")
        self.field(LABEL_OPTIONS).set_value(" ".join(spec.options))
        self.field(LABEL_BASTION).set_value(spec.bastion or "")
        self.field(LABEL_REMOTE).set_value(spec.remote_command or "")

    def _fill_name(self, spec: SshSpec) -> None:
        name = self.field(LABEL_NAME)
        current = name.value.strip()
        if current and current != self._auto_name:
            return
        if spec.user and spec.address:
            self._auto_name = spec.default_name
            name.set_value(self._auto_name)
        elif current:
            self._auto_name = None
            name.set_value("")

    # ------------------------------------------------------------ submission
    def _raw_spec(self) -> Optional[SshSpec]:
        if self.kind is not FormKind.ADD:
            return None
        text = non_empty(self.fields[0].value)
        if text is None:
            return None
        return parse_ssh_spec(text)

    def build_host(self) -> Host:
        """
        Build a :class:`Host` from the field values.

        Raises:
            ValidationError: name and address are both empty, or the port is invalid.
            ParseError: the SSH command field is filled in but has no target.
        """
        spec = self._raw_spec()

        address = non_empty(self.value(LABEL_ADDRESS)) or (spec.address if spec else None)
        name = non_empty(self.value(LABEL_NAME)) or address
        if not name or not address:
            raise ValidationError("name and host cannot be empty")

        port_text = non_empty(self.value(LABEL_PORT))
        if port_text is not None:
            port = parse_port(port_text)
            if port is None:
                raise ValidationError(f"port must be numeric (0-65535), got '{port_text}'")
        else:
            port = spec.port if spec else None

        def pick(label: str, fallback: Optional[str]) -> Optional[str]:
            return non_empty(self.value(label)) or fallback

        tags = [t.strip() for t in self.value(LABEL_TAGS).split(",") if t.strip()]
        options = self.value(LABEL_OPTIONS).split()

        return Host(
            name=name,
            address=address,
            user=pick(LABEL_USER, spec.user if spec else None),
            port=port,
            key_path=pick(LABEL_KEY, spec.key_path if spec else None),
            tags=tags,
            options=options,
            remote_command=pick(LABEL_REMOTE, spec.remote_command if spec else None),
            bastion=pick(LABEL_BASTION, spec.bastion if spec else None),
            description=non_empty(self.value(LABEL_DESCRIPTION)),
        )


__all__ = [
    "BastionDropdownState",
    "FormField",
    "FormKind",
    "FormState",
    "LABEL_ADDRESS",
    "LABEL_BASTION",
    "LABEL_COMMAND",
    "LABEL_DESCRIPTION",
    "LABEL_KEY",
    "LABEL_NAME",
    "LABEL_OPTIONS",
    "LABEL_PORT",
    "LABEL_REMOTE",
    "LABEL_TAGS",
    "LABEL_USER",
]
