"""Utility modules for the Roslyn session client."""

from .log import Log, Logger, LogLevel
from .error import (
    NamedError,
    ConfigError,
    TransportError,
    ProtocolError,
    HandlerError,
)
from .filesystem import Filesystem

__all__ = [
    "Log",
    "Logger",
    "LogLevel",
    "NamedError",
    "ConfigError",
    "TransportError",
    "ProtocolError",
    "HandlerError",
    "Filesystem",
]
