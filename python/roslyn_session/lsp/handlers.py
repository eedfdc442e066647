"""Server-to-client handlers and how host handlers are merged with them."""

import copy
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Union

from ..bus import INITIALIZED, EventBus
from ..util.error import HandlerError
from ..util.log import Log, LogLevel
from .protocol import Method

if TYPE_CHECKING:
    from ..session import ClientSession

Handler = Callable[[Any, "HandlerContext"], Any]
HandlerKey = Union[Method, str]

UNRESOLVED_DEPENDENCIES_MESSAGE = "Detected missing dependencies. Run dotnet restore command."
RAZOR_UNSUPPORTED_MESSAGE = "Razor is not supported."


class HandlerContext:
    """Context provided to every protocol handler."""

    def __init__(self, session: "ClientSession", method: str):
        self.session = session
        self.method = method

    @property
    def session_id(self) -> Optional[int]:
        return self.session.id


def filter_watchers(params: Dict[str, Any], filewatching: bool) -> Dict[str, Any]:
    """
    Registration params with file watchers removed when watching is disabled.

    Returns a copy; ``params`` itself is left as received.
    """
    if filewatching:
        return params
    filtered = copy.deepcopy(params)
    for registration in filtered.get("registrations") or []:
        if registration.get("method") != Method.DID_CHANGE_WATCHED_FILES.value:
            continue
        options = registration.get("registerOptions")
        if isinstance(options, dict):
            options["watchers"] = []
    return filtered


def default_register_capability(params: Any, ctx: HandlerContext) -> None:
    """Record dynamic registrations on the session."""
    ctx.session.registrations.extend((params or {}).get("registrations") or [])
    return None


class HandlerRegistry:
    """
    Merges host handlers with the built-in interceptors.

    Built-ins own the methods they define, but run the host handler for the
    same method after their own work so host customization still happens.
    The registration interceptor is the one exception: it rewrites the
    params first and hands the rewritten copy to the host handler (or the
    default registration handler), returning its result.
    """

    def __init__(self, host_handlers: Optional[Mapping[HandlerKey, Handler]] = None, filewatching: bool = True):
        self._host: Dict[str, Handler] = {
            _key(method): handler for method, handler in (host_handlers or {}).items()
        }
        self.filewatching = filewatching
        self._log = Log.create({"service": "lsp.handlers"})

    def merge(self) -> Dict[str, Handler]:
        """Method name to handler, built-ins composed over host handlers."""
        builtins: Dict[Method, Callable[[Any, HandlerContext, Optional[Handler]], Any]] = {
            Method.REGISTER_CAPABILITY: self._register_capability,
            Method.PROJECT_INITIALIZATION_COMPLETE: _project_initialization_complete,
            Method.PROJECT_HAS_UNRESOLVED_DEPENDENCIES: _unresolved_dependencies,
            Method.PROJECT_NEEDS_RESTORE: _needs_restore,
            Method.RAZOR_DYNAMIC_FILE_INFO: _razor_dynamic_file_info,
        }

        merged = dict(self._host)
        for method, builtin in builtins.items():
            merged[method.value] = _compose(builtin, self._host.get(method.value))
        return merged

    def dispatcher(self, session: "ClientSession", bus: EventBus) -> Dict[str, Callable[[Any], Any]]:
        """
        Bind merged handlers to a session for the transport.

        Failures are logged and reported to the user, and the server gets a
        null result. Once the session is stopped nothing runs.
        """
        dispatch = {}
        for method, handler in self.merge().items():
            dispatch[method] = self._guard(method, handler, session, bus)
        return dispatch

    def _guard(self, method: str, handler: Handler, session: "ClientSession", bus: EventBus) -> Callable[[Any], Any]:
        log = self._log

        def guarded(params: Any = None) -> Any:
            if session.is_stopped:
                log.debug("dropping message for stopped session", {"method": method, "session": session.id})
                return None
            try:
                return handler(params, HandlerContext(session, method))
            except Exception as e:
                error = HandlerError({"method": method}, f"{method} handler failed: {e}", e)
                log.error(error.message, {"session": session.id})
                bus.notify(error.message, LogLevel.ERROR)
                return None

        return guarded

    def _register_capability(self, params: Any, ctx: HandlerContext, host: Optional[Handler]) -> Any:
        filtered = filter_watchers(params or {}, self.filewatching)
        return (host or default_register_capability)(filtered, ctx)


def _key(method: HandlerKey) -> str:
    return method.value if isinstance(method, Method) else str(method)


def _compose(builtin: Callable[[Any, HandlerContext, Optional[Handler]], Any], host: Optional[Handler]) -> Handler:
    def handler(params: Any, ctx: HandlerContext) -> Any:
        return builtin(params, ctx, host)

    return handler


def _project_initialization_complete(params: Any, ctx: HandlerContext, host: Optional[Handler]) -> None:
    session = ctx.session
    session.bus.notify("Roslyn project initialization complete", LogLevel.INFO)
    for document in list(session.documents.values()):
        session.refresh_diagnostics(document)
    # Add-ins such as the razor integration start from this event
    session.bus.publish(INITIALIZED, {"session_id": session.id})
    if host:
        host(params, ctx)
    return None


def _unresolved_dependencies(params: Any, ctx: HandlerContext, host: Optional[Handler]) -> None:
    ctx.session.bus.notify(UNRESOLVED_DEPENDENCIES_MESSAGE, LogLevel.ERROR)
    if host:
        host(params, ctx)
    return None


def _needs_restore(params: Any, ctx: HandlerContext, host: Optional[Handler]) -> None:
    ctx.session.restore.on_restore_needed(params)
    if host:
        host(params, ctx)
    return None


def _razor_dynamic_file_info(params: Any, ctx: HandlerContext, host: Optional[Handler]) -> None:
    if host:
        host(params, ctx)
    else:
        ctx.session.bus.notify(RAZOR_UNSUPPORTED_MESSAGE, LogLevel.WARN)
    return None
