"""roslyn-session - Roslyn language server sessions for editors."""

__version__ = "0.1.0"
__description__ = "Roslyn language server client sessions"

from .config import Config, ConfigModel
from .session import ClientSession, HostHooks, SessionManager, SessionRegistry

__all__ = ["ClientSession", "Config", "ConfigModel", "HostHooks", "SessionManager", "SessionRegistry"]
