"""sshdb - a keyboard-driven registry of SSH hosts and bastion chains."""

__version__ = "0.4.0"
