"""Dependency restore negotiation."""

from enum import Enum
from typing import Any, Optional

from ..bus import EventBus
from ..util.error import NamedError, TransportError
from ..util.log import Log, LogLevel
from .diagnostics import RequestFn
from .protocol import Method, ResponseError


class RestoreState(str, Enum):
    IDLE = "idle"
    RESTORING = "restoring"


class RestoreCoordinator:
    """
    Relays ``workspace/_roslyn_projectNeedsRestore`` to a restore request.

    Each notification gets exactly one ``workspace/_roslyn_restore`` request.
    The coordinator never waits for it; the outcome is reported to the user
    from the response callback.
    """

    def __init__(self, request: RequestFn, bus: EventBus):
        self._request = request
        self._bus = bus
        self._log = Log.create({"service": "lsp.restore"})
        self.state = RestoreState.IDLE

    def on_restore_needed(self, params: Any) -> None:
        self.state = RestoreState.RESTORING
        self._log.info("restore requested", {"params": params})
        try:
            self._request(Method.RESTORE.value, params, self._on_complete)
        except TransportError as e:
            self._report(e)
        finally:
            self.state = RestoreState.IDLE

    def _on_complete(self, err: Optional[ResponseError], response: Any) -> None:
        if err is not None:
            self._report(err.to_error(Method.RESTORE.value))
        if response:
            for item in response:
                self._bus.notify(item.get("message", ""), LogLevel.INFO)

    def _report(self, error: NamedError) -> None:
        self._log.error("restore failed", error.to_dict())
        self._bus.notify(error.message, LogLevel.ERROR)
