"""A client session: one server connection for one workspace root."""

from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Union

from ..bus import DIAGNOSTICS, SESSION_STOPPED, Bus, EventBus
from ..config import ConfigModel
from ..lsp.diagnostics import DiagnosticCursor, ResponseCallback, wrap_request
from ..lsp.handlers import HandlerRegistry
from ..lsp.protocol import Document, Method, ProjectSet, ResponseError, Solution, WorkspaceRoot, uri_from_path
from ..lsp.restore import RestoreCoordinator
from ..lsp.transport import ConnectionConfig, ServerHandle, Transport
from ..util.error import TransportError
from ..util.log import Log, LogLevel
from .hooks import HostHooks

if TYPE_CHECKING:
    from .manager import SessionRegistry

CLIENT_NAME = "roslyn"


class SessionState(str, Enum):
    UNSTARTED = "unstarted"
    STARTING = "starting"
    READY = "ready"
    STOPPED = "stopped"


class ClientSession:
    """
    Owns one server connection for a solution or a set of projects.

    ``start`` connects through the transport with the merged handlers and
    the diagnostic-chaining request function. When the server reports it is
    initialized the session runs the host ``on_init`` hook, opens its root on
    the server and runs the command installers. Exit of the server and
    ``stop`` both end in the stopped state, which is entered once.
    """

    def __init__(
        self,
        root: WorkspaceRoot,
        config: ConfigModel,
        transport: Transport,
        registry: "SessionRegistry",
        hooks: Optional[HostHooks] = None,
        bus: EventBus = Bus,
    ):
        self.name = CLIENT_NAME
        self.root = root
        self.config = config
        self.hooks = hooks or HostHooks()
        self.bus = bus
        self.state = SessionState.UNSTARTED

        self.documents: Dict[Union[int, str], Document] = {}
        self.registrations: List[Dict[str, Any]] = []
        self.diagnostics: Dict[str, List[Dict[str, Any]]] = {}
        # Client-side commands: name to callable(command, session)
        self.commands: Dict[str, Callable[..., Any]] = {}

        self.cursor = DiagnosticCursor()
        self.restore = RestoreCoordinator(self.request, bus)

        self._transport = transport
        self._registry = registry
        self._handle: Optional[ServerHandle] = None
        self._request = self._send
        self._log = Log.create({"service": "session"}).clone()

    @property
    def id(self) -> Optional[int]:
        return self._handle.id if self._handle else None

    @property
    def root_dir(self) -> str:
        return self.root.directory

    @property
    def is_stopped(self) -> bool:
        return self.state == SessionState.STOPPED

    @property
    def is_active(self) -> bool:
        return self.state in (SessionState.STARTING, SessionState.READY)

    def start(self, document: Optional[Document] = None) -> None:
        """Connect to a server for this session's root."""
        if self.state != SessionState.UNSTARTED:
            return
        self.state = SessionState.STARTING

        self.cursor = DiagnosticCursor()
        self._request = wrap_request(self._send, self.cursor, self._on_diagnostics)
        handlers = HandlerRegistry(self.hooks.handlers, filewatching=self.config.filewatching)

        connection = ConnectionConfig(
            name=self.name,
            root_dir=self.root_dir,
            cmd=self.config.command(),
            init_options=self.config.init_options,
            settings=self.config.settings,
            handlers=handlers.dispatcher(self, self.bus),
            on_initialized=self._on_initialized,
            on_exit=self._on_exit,
            on_error=self._on_connection_error,
        )
        self._log.info("starting", {"root": self.root.describe(), "dir": self.root_dir})

        try:
            self._handle = self._transport.connect(connection)
        except Exception as e:
            error = e if isinstance(e, TransportError) else TransportError(
                {"root": self.root_dir}, f"Failed to start {self.name}: {e}", e
            )
            self._on_connection_error(error)
            self._enter_stopped(None, None)
            return

        self._registry.add(self)
        self._log.tag("session", self._handle.id)
        if document is not None:
            self.attach(document)

    def attach(self, document: Document) -> None:
        """Bind a document to this session."""
        if self.is_stopped:
            return
        self.documents[document.id] = document
        if self.hooks.on_attach:
            self._run_hook("on_attach", self.hooks.on_attach, self, document.id)

    def stop(self, force: bool = False) -> None:
        """Stop the server; no handler of this session runs afterwards."""
        if self.is_stopped:
            return
        if self._handle is not None:
            try:
                self._handle.stop(force)
            except TransportError as e:
                self._log.warn("stop failed", {"error": e.message})
        self._enter_stopped(None, None)

    def request(self, method: str, params: Any = None, handler: Optional[ResponseCallback] = None) -> None:
        """Send a request; diagnostic requests are chained through the cursor."""
        return self._request(method, params, handler)

    def notify(self, method: str, params: Any = None) -> None:
        self._connected_handle(method).notify(method, params)

    def execute_command(self, command: Dict[str, Any], handler: Optional[ResponseCallback] = None) -> None:
        """
        Run a command from a code action or code lens.

        Commands installed on the session run on the client with the command
        and the session; anything else goes to the server as
        ``workspace/executeCommand``.
        """
        name = command.get("command", "")
        client_command = self.commands.get(name)
        if client_command is None:
            self.request(Method.EXECUTE_COMMAND.value, command, handler)
            return
        try:
            result = client_command(command, self)
        except Exception as e:
            message = f"{name} command failed: {e}"
            self._log.error(message)
            self.bus.notify(message, LogLevel.ERROR)
            return
        if handler is not None:
            handler(None, result)

    def refresh_diagnostics(self, document: Document) -> None:
        """Pull diagnostics for one document."""
        try:
            self.request(Method.DIAGNOSTIC.value, {"textDocument": {"uri": document.uri}})
        except TransportError as e:
            self._log.warn("diagnostic refresh failed", {"document": document.path, "error": e.message})

    def _connected_handle(self, method: str) -> ServerHandle:
        if self._handle is None or self.is_stopped:
            raise TransportError({"method": method}, f"{self.name} session is not connected")
        return self._handle

    def _send(self, method: str, params: Any, handler: Optional[ResponseCallback]) -> None:
        handle = self._connected_handle(method)
        callback = self._guard_response(method, handler) if handler else None
        handle.request(method, params, callback)

    def _guard_response(self, method: str, handler: ResponseCallback) -> ResponseCallback:
        def guarded(err: Optional[ResponseError], result: Any) -> None:
            if self.is_stopped:
                return
            try:
                handler(err, result)
            except Exception as e:
                message = f"{method} response handler failed: {e}"
                self._log.error(message)
                self.bus.notify(message, LogLevel.ERROR)

        return guarded

    def _on_diagnostics(self, err: Optional[ResponseError], result: Any, params: Dict[str, Any]) -> None:
        uri = params.get("textDocument", {}).get("uri")
        if err is not None:
            error = err.to_error(Method.DIAGNOSTIC.value)
            self._log.warn("diagnostics failed", {"uri": uri, **error.to_dict()})
            return
        if not isinstance(result, dict):
            return
        kind = result.get("kind")
        if kind == "full":
            self.diagnostics[uri] = result.get("items") or []
        self.bus.publish(DIAGNOSTICS, {
            "session_id": self.id,
            "uri": uri,
            "kind": kind,
            "items": self.diagnostics.get(uri, []),
        })

    def _on_initialized(self, result: Any) -> None:
        if self.is_stopped:
            return
        self.state = SessionState.READY
        self._log.info("initialized")

        if self.hooks.on_init:
            self._run_hook("on_init", self.hooks.on_init, self, result)
        try:
            self._open_root()
        except TransportError as e:
            self._log.error("open failed", {"error": e.message})
            self.bus.notify(e.message, LogLevel.ERROR)
        for installer in self.hooks.command_installers:
            self._run_hook("command installer", installer, self)

    def _open_root(self) -> None:
        root = self.root
        if isinstance(root, Solution):
            self.bus.notify(f"Initializing Roslyn client for {root.path}", LogLevel.INFO)
            self.notify(Method.SOLUTION_OPEN.value, {"solution": uri_from_path(root.path)})
        elif isinstance(root, ProjectSet):
            self.bus.notify("Initializing Roslyn client for projects", LogLevel.INFO)
            self.notify(Method.PROJECT_OPEN.value, {"projects": [uri_from_path(f) for f in root.files]})

    def _on_connection_error(self, error: TransportError) -> None:
        if self.is_stopped:
            return
        self._log.error("connection failed", error.to_dict())
        self.bus.notify(error.message, LogLevel.ERROR)

    def _on_exit(self, code: Optional[int], signal: Optional[int]) -> None:
        self._enter_stopped(code, signal)

    def _enter_stopped(self, code: Optional[int], signal: Optional[int]) -> None:
        if self.is_stopped:
            return
        session_id = self.id
        self.state = SessionState.STOPPED
        self._registry.remove(self)
        self._registry.clear(self.root)
        self._log.info("stopped", {"code": code, "signal": signal})

        self.bus.notify("Roslyn server stopped", LogLevel.INFO)
        self.bus.publish(SESSION_STOPPED, {"session_id": session_id, "code": code, "signal": signal})
        if self.hooks.on_exit:
            self._run_hook("on_exit", self.hooks.on_exit, code, signal, session_id)

    def _run_hook(self, name: str, hook: Callable[..., Any], *args: Any) -> None:
        try:
            hook(*args)
        except Exception as e:
            message = f"{name} hook failed: {e}"
            self._log.error(message)
            self.bus.notify(message, LogLevel.ERROR)
