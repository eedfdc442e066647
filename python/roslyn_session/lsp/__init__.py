"""Language Server Protocol pieces of the Roslyn client."""

from .diagnostics import DiagnosticCursor, wrap_request
from .handlers import HandlerContext, HandlerRegistry, filter_watchers
from .protocol import AmbiguousRoot, Document, Method, ProjectSet, ResponseError, Solution, WorkspaceRoot
from .restore import RestoreCoordinator, RestoreState
from .roots import FilesystemRootSelector, RootSelector
from .transport import ConnectionConfig, EndpointTransport, ServerHandle, Transport

__all__ = [
    "AmbiguousRoot",
    "ConnectionConfig",
    "DiagnosticCursor",
    "Document",
    "EndpointTransport",
    "FilesystemRootSelector",
    "HandlerContext",
    "HandlerRegistry",
    "Method",
    "ProjectSet",
    "ResponseError",
    "RestoreCoordinator",
    "RestoreState",
    "RootSelector",
    "ServerHandle",
    "Solution",
    "Transport",
    "WorkspaceRoot",
    "filter_watchers",
    "wrap_request",
]
