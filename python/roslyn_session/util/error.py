"""Error types for the Roslyn session client."""

from typing import Any, Dict, Optional


class NamedError(Exception):
    """Base class for named errors with structured data."""

    def __init__(self, data: Optional[Dict[str, Any]] = None, message: Optional[str] = None, cause: Optional[Exception] = None):
        self.data = data or {}
        self.message = message or self.__class__.__name__
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "name": self.__class__.__name__,
            "message": self.message,
            "data": self.data,
            "cause": str(self.cause) if self.cause else None,
        }


class ConfigError(NamedError):
    """Configuration could not be read or written."""
    pass


class TransportError(NamedError):
    """The server connection failed or is gone."""
    pass


class ProtocolError(NamedError):
    """The server answered a request with an error."""

    @property
    def code(self) -> Optional[int]:
        return self.data.get("code")


class HandlerError(NamedError):
    """A protocol handler raised while processing a server message."""
    pass

