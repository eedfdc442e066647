"""Server transport: the boundary between sessions and a server process."""

import asyncio
import itertools
import os
import subprocess
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pylsp_jsonrpc.endpoint import Endpoint
from pylsp_jsonrpc.exceptions import JsonRpcException
from pylsp_jsonrpc.streams import JsonRpcStreamReader, JsonRpcStreamWriter

from ..util.error import TransportError
from ..util.log import Log
from .diagnostics import ResponseCallback
from .protocol import ResponseError, uri_from_path


class ConnectionConfig(BaseModel):
    """Everything a transport needs to bring up one server connection."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    root_dir: str
    cmd: List[str] = Field(default_factory=list)
    init_options: Dict[str, Any] = Field(default_factory=dict)
    settings: Dict[str, Any] = Field(default_factory=dict)
    # Method name to a one-argument handler; the return value answers requests
    handlers: Dict[str, Callable[[Any], Any]] = Field(default_factory=dict)
    on_initialized: Optional[Callable[[Any], None]] = None
    on_exit: Optional[Callable[[Optional[int], Optional[int]], None]] = None
    on_error: Optional[Callable[[TransportError], None]] = None


class ServerHandle(ABC):
    """A live server connection."""

    id: int

    @abstractmethod
    def request(self, method: str, params: Any, callback: Optional[ResponseCallback] = None) -> None:
        """Send a request; ``callback(err, result)`` runs when the response arrives."""
        pass

    @abstractmethod
    def notify(self, method: str, params: Any) -> None:
        """Send a notification."""
        pass

    @abstractmethod
    def stop(self, force: bool = False) -> None:
        """Ask the server to shut down, or kill it when ``force`` is set."""
        pass


class Transport(ABC):
    """Creates server connections."""

    @abstractmethod
    def connect(self, config: ConnectionConfig) -> ServerHandle:
        pass


_ids = itertools.count(1)


def client_capabilities() -> Dict[str, Any]:
    return {
        "workspace": {
            "configuration": True,
            "didChangeWatchedFiles": {"dynamicRegistration": True, "relativePatternSupport": True},
            "workspaceFolders": True,
        },
        "textDocument": {
            "synchronization": {"didOpen": True, "didChange": True, "didClose": True},
            "diagnostic": {"dynamicRegistration": True},
            "publishDiagnostics": {"versionSupport": True},
        },
        "window": {"workDoneProgress": True},
    }


class _EndpointHandle(ServerHandle):
    """Server process spoken to through a ``pylsp_jsonrpc`` endpoint.

    The stdout reader and the exit watcher run on helper threads; everything
    they produce is handed to the event loop, so handlers and callbacks only
    ever run there.
    """

    def __init__(self, config: ConnectionConfig, loop: asyncio.AbstractEventLoop):
        self.id = next(_ids)
        self._config = config
        self._loop = loop
        self._log = Log.create({"service": "lsp.transport"}).clone().tag("server", self.id)
        self._exited = False

        if not config.cmd:
            raise TransportError({"cmd": config.cmd}, f"No command configured for {config.name}")
        try:
            self._process = subprocess.Popen(
                config.cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                cwd=config.root_dir,
            )
        except (OSError, ValueError) as e:
            raise TransportError({"cmd": config.cmd}, f"Failed to start {config.name}: {e}", e) from e

        self._writer = JsonRpcStreamWriter(self._process.stdin)
        self._reader = JsonRpcStreamReader(self._process.stdout)
        self._endpoint = Endpoint(self._dispatcher(), self._writer.write)

        threading.Thread(target=self._reader.listen, args=(self._consume,), daemon=True).start()
        threading.Thread(target=self._wait, daemon=True).start()
        self._log.info("started", {"cmd": " ".join(config.cmd), "root": config.root_dir})

    def _dispatcher(self) -> Dict[str, Callable[[Any], Any]]:
        handlers = dict(self._config.handlers)
        # Roslyn asks for configuration sections before anything else
        handlers.setdefault("workspace/configuration", self._configuration)
        handlers.setdefault("window/workDoneProgress/create", lambda params: None)
        return handlers

    def _configuration(self, params: Any) -> List[Any]:
        settings = self._config.settings
        return [settings.get(item.get("section", "")) for item in (params or {}).get("items", [])]

    def _consume(self, message: Dict[str, Any]) -> None:
        self._loop.call_soon_threadsafe(self._endpoint.consume, message)

    def _wait(self) -> None:
        returncode = self._process.wait()
        code, signal = (0, -returncode) if returncode < 0 else (returncode, None)
        self._loop.call_soon_threadsafe(self._on_exit, code, signal)

    def _on_exit(self, code: Optional[int], signal: Optional[int]) -> None:
        self._exited = True
        self._endpoint.shutdown()
        self._log.info("exited", {"code": code, "signal": signal})
        if self._config.on_exit:
            self._config.on_exit(code, signal)

    def initialize(self) -> None:
        root = self._config.root_dir
        params = {
            "processId": os.getpid(),
            "clientInfo": {"name": self._config.name},
            "rootUri": uri_from_path(root),
            "rootPath": root,
            "capabilities": client_capabilities(),
            "initializationOptions": self._config.init_options,
            "workspaceFolders": [{"uri": uri_from_path(root), "name": os.path.basename(root) or root}],
        }
        self.request("initialize", params, self._on_initialize)

    def _on_initialize(self, err: Optional[ResponseError], result: Any) -> None:
        if err is not None:
            error = TransportError(
                {"code": err.code, "data": err.data}, f"Failed to initialize {self._config.name}: {err.message}"
            )
            self._log.error("initialize failed", error.to_dict())
            if self._config.on_error:
                self._config.on_error(error)
            self.stop(force=True)
            return
        self.notify("initialized", {})
        if self._config.on_initialized:
            self._config.on_initialized(result)

    def request(self, method: str, params: Any, callback: Optional[ResponseCallback] = None) -> None:
        if self._exited:
            raise TransportError({"method": method}, f"{self._config.name} is not running")
        try:
            future = self._endpoint.request(method, params)
        except (OSError, ValueError) as e:
            raise TransportError({"method": method}, f"Failed to send {method}: {e}", e) from e
        if callback is None:
            return

        def done(fut) -> None:
            err, result = None, None
            exc = None if fut.cancelled() else fut.exception()
            if fut.cancelled():
                err = ResponseError(message=f"{method} was cancelled")
            elif isinstance(exc, JsonRpcException):
                err = ResponseError(code=exc.code or 0, message=exc.message or str(exc), data=exc.data)
            elif exc is not None:
                err = ResponseError(message=str(exc))
            else:
                result = fut.result()
            self._loop.call_soon_threadsafe(callback, err, result)

        future.add_done_callback(done)

    def notify(self, method: str, params: Any) -> None:
        if self._exited:
            raise TransportError({"method": method}, f"{self._config.name} is not running")
        try:
            self._endpoint.notify(method, params)
        except (OSError, ValueError) as e:
            raise TransportError({"method": method}, f"Failed to send {method}: {e}", e) from e

    def stop(self, force: bool = False) -> None:
        if self._exited:
            return
        if force:
            self._process.terminate()
            return

        def after_shutdown(err: Optional[ResponseError], result: Any) -> None:
            if not self._exited:
                self.notify("exit", None)

        try:
            self.request("shutdown", None, after_shutdown)
        except TransportError:
            self._process.terminate()


class EndpointTransport(Transport):
    """Spawns the server command and speaks JSON-RPC over its stdio."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def connect(self, config: ConnectionConfig) -> ServerHandle:
        loop = self._loop or asyncio.get_running_loop()
        handle = _EndpointHandle(config, loop)
        try:
            handle.initialize()
        except (TransportError, ValueError) as e:
            handle.stop(force=True)
            if isinstance(e, TransportError):
                raise
            raise TransportError({"root": config.root_dir}, f"Failed to initialize {config.name}: {e}", e) from e
        return handle
