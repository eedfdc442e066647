"""Client sessions."""

from .hooks import HostHooks
from .session import CLIENT_NAME, ClientSession, SessionState
from .manager import SessionManager, SessionRegistry

__all__ = [
    "CLIENT_NAME",
    "ClientSession",
    "HostHooks",
    "SessionManager",
    "SessionRegistry",
    "SessionState",
]
