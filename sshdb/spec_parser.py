"""
Parse free-text ``ssh`` invocations into structured connection fields.

Used by the quick-connect prompt and by the "SSH command" field of the new
host form.  Tokenisation is plain whitespace splitting; quoting is not
interpreted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .errors import ParseError
from .models import MAX_PORT

PORT_FLAG = "-p"
KEY_FLAG = "-i"
BASTION_FLAG = "-J"


@dataclass
class SshSpec:
    """Result of parsing a connection string. Never persisted."""

    address: str
    user: Optional[str] = None
    port: Optional[int] = None
    key_path: Optional[str] = None
    options: List[str] = field(default_factory=list)
    bastion: Optional[str] = None
    remote_command: Optional[str] = None

    @property
    def default_name(self) -> str:
        if self.user:
            return f"{self.user}@{self.address}"
        return self.address


def parse_port(text: str) -> Optional[int]:
    """Return *text* as a port number or ``None`` when it is not one."""
    text = text.strip()
    if not text.isdigit():
        return None
    value = int(text)
    if value > MAX_PORT:
        return None
    return value


def _looks_like_option_value(token: str) -> bool:
    if token.startswith("-") or "@" in token:
        return False
    return any(ch.isalnum() or ch in ":/" for ch in token)


def _split_target(target: str) -> Tuple[Optional[str], str]:
    user, sep, address = target.partition("@")
    if not sep:
        return None, target
    if not address:
        raise ParseError(f"ssh target '{target}' has no host")
    return user or None, address


def parse_ssh_spec(text: str) -> SshSpec:
    """
    Parse *text* such as ``ssh -p 2222 deploy@10.0.0.5 uptime``.

    Flags may appear before or after the target.  ``-p``, ``-i`` and ``-J``
    always consume the next token.  Any other dash token is kept as an
    option, together with the following token when that one looks like a
    value (``-L 8080:localhost:80``, ``-o Foo=bar``).  The first token after
    the target that is not a flag starts the remote command, which runs to
    the end of the input.

    Raises:
        ParseError: no target host was found.
    """
    tokens: Sequence[str] = text.split()
    i = 0
    if tokens and tokens[0] == "ssh":
        i = 1

    port: Optional[int] = None
    key_path: Optional[str] = None
    bastion: Optional[str] = None
    options: List[str] = []
    target: Optional[str] = None
    remote_start: Optional[int] = None

    while i < len(tokens):
        token = tokens[i]
        following = tokens[i + 1] if i + 1 < len(tokens) else None

        if token == PORT_FLAG:
            if following is not None:
                port = parse_port(following)
                i += 1
        elif token == KEY_FLAG:
            if following is not None:
                key_path = following
                i += 1
        elif token == BASTION_FLAG:
            if following is not None:
                bastion = following
                i += 1
        elif token.startswith("-"):
            options.append(token)
            if following is not None and _looks_like_option_value(following):
                options.append(following)
                i += 1
        elif target is None:
            target = token
        else:
            remote_start = i
            break
        i += 1

    if target is None:
        raise ParseError("ssh target missing (expected user@host or host)")

    user, address = _split_target(target)
    remote_command = " ".join(tokens[remote_start:]) if remote_start is not None else None

    return SshSpec(
        address=address,
        user=user,
        port=port,
        key_path=key_path,
        options=options,
        bastion=bastion,
        remote_command=remote_command,
    )


__all__ = ["SshSpec", "parse_port", "parse_ssh_spec"]
