"""Shared fixtures: an in-memory transport and a private event bus."""

from typing import Any, List, Optional

import pytest

from roslyn_session.bus import NOTIFY, EventBus
from roslyn_session.config import ConfigModel
from roslyn_session.lsp.protocol import Document, ResponseError
from roslyn_session.lsp.roots import RootSelector
from roslyn_session.lsp.transport import ConnectionConfig, ServerHandle, Transport
from roslyn_session.session import ClientSession, HostHooks, SessionRegistry
from roslyn_session.util.error import TransportError


class FakeHandle(ServerHandle):
    """Records what the client sends and lets tests play the server."""

    def __init__(self, handle_id: int, config: ConnectionConfig):
        self.id = handle_id
        self.config = config
        self.requests: List[tuple] = []
        self.notifications: List[tuple] = []
        self.stopped: Optional[bool] = None

    def request(self, method, params, callback=None):
        self.requests.append((method, params, callback))

    def notify(self, method, params):
        self.notifications.append((method, params))

    def stop(self, force=False):
        self.stopped = force

    def requests_for(self, method) -> List[tuple]:
        return [r for r in self.requests if r[0] == method]

    def respond(self, index: int, result: Any = None, error: Optional[str] = None) -> None:
        _, _, callback = self.requests[index]
        callback(ResponseError(code=-32000, message=error) if error else None, result)

    # Server side
    def initialized(self, result: Any = None) -> None:
        self.config.on_initialized(result or {"capabilities": {}})

    def fail_initialize(self, message: str) -> None:
        self.config.on_error(TransportError({}, message))

    def exit(self, code: Optional[int] = 0, signal: Optional[int] = None) -> None:
        self.config.on_exit(code, signal)

    def send(self, method: str, params: Any = None) -> Any:
        return self.config.handlers[method](params)


class FakeTransport(Transport):
    def __init__(self, fail: bool = False, error: Optional[Exception] = None):
        self.fail = fail
        self.error = error
        self.handles: List[FakeHandle] = []

    def connect(self, config: ConnectionConfig) -> ServerHandle:
        if self.fail:
            raise TransportError({"cmd": config.cmd}, "Failed to start roslyn: not found")
        if self.error is not None:
            raise self.error
        handle = FakeHandle(len(self.handles) + 1, config)
        self.handles.append(handle)
        return handle

    @property
    def last(self) -> FakeHandle:
        return self.handles[-1]


class StaticSelector(RootSelector):
    def __init__(self, resolution=None):
        self.resolution = resolution

    def resolve_root(self, document):
        return self.resolution


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def events(bus):
    """User-visible messages as (level, message) tuples."""
    received = []
    bus.subscribe(NOTIFY, lambda e: received.append((e.properties["level"], e.properties["message"])))
    return received


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def config():
    return ConfigModel(exe=["roslyn-ls"], args=["--stdio"])


@pytest.fixture
def document():
    return Document(id=1, path="/ws/src/Program.cs")


@pytest.fixture
def make_session(config, transport, registry, bus):
    def make(root, hooks: Optional[HostHooks] = None, cfg: Optional[ConfigModel] = None) -> ClientSession:
        return ClientSession(root, cfg or config, transport, registry, hooks, bus)

    return make
