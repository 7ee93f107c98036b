"""Command implementations exposed by the svctools CLI."""

from .config import show_config
from .update import self_update, update

__all__ = [
    "self_update",
    "show_config",
    "update",
]
