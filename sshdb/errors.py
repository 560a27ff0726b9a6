"""Exceptions raised by the sshdb core."""


class SshdbError(Exception):
    """Base class for every error the session turns into a status message."""


class ParseError(SshdbError):
    """Raised when a free-text ssh command cannot be parsed."""


class ValidationError(SshdbError):
    """Raised when form input or the registry fails validation."""


class BastionCycleError(ValidationError):
    """Raised for a self-referencing or circular bastion chain."""

    def __init__(self, message: str, host: str):
        super().__init__(message)
        self.host = host


class PersistError(SshdbError):
    """Raised when the registry cannot be read from or written to disk."""


class NotFoundError(SshdbError):
    """Raised when a host or bastion referenced by name does not exist."""


__all__ = [
    "BastionCycleError",
    "NotFoundError",
    "ParseError",
    "PersistError",
    "SshdbError",
    "ValidationError",
]
