"""Pull diagnostics with result-id chaining.

The server answers ``textDocument/diagnostic`` with a ``resultId``. Sending it
back as ``previousResultId`` lets the server reply "unchanged" instead of
recomputing the full report. ``wrap_request`` threads that token through
every diagnostic request of one session so callers never handle it.

Responses for overlapping requests are not ordered against each other: the
cursor keeps whatever ``resultId`` arrived last.
"""

from typing import Any, Callable, Dict, Optional

from ..util.log import Log
from .protocol import Method, ResponseError

ResponseCallback = Callable[[Optional[ResponseError], Any], None]
RequestFn = Callable[[str, Any, Optional[ResponseCallback]], None]
# default(err, result, params): params of the request being answered
DefaultHandler = Callable[[Optional[ResponseError], Any, Dict[str, Any]], None]


class DiagnosticCursor:
    """Last diagnostic result id received by one session."""

    def __init__(self):
        self.result_id: Optional[str] = None

    def advance(self, result: Any) -> None:
        """Take the ``resultId`` of a successful report, if it has one."""
        if isinstance(result, dict) and result.get("resultId"):
            self.result_id = result["resultId"]


def wrap_request(request: RequestFn, cursor: DiagnosticCursor, default_handler: DefaultHandler) -> RequestFn:
    """
    Wrap a session request function with diagnostic result chaining.

    Diagnostic requests get ``previousResultId`` from ``cursor`` on a copy of
    their params. Their responses advance the cursor before reaching the
    caller's handler, or ``default_handler`` when the caller passed none.
    Every other method goes through untouched.
    """
    log = Log.create({"service": "lsp.diagnostics"})

    def wrapped(method: str, params: Any = None, handler: Optional[ResponseCallback] = None) -> None:
        if method != Method.DIAGNOSTIC.value:
            return request(method, params, handler)

        payload: Dict[str, Any] = dict(params or {})
        payload["previousResultId"] = cursor.result_id

        def on_response(err: Optional[ResponseError], result: Any) -> None:
            if err is None:
                cursor.advance(result)
            else:
                log.debug("diagnostic request failed", {"error": err.message})
            if handler is not None:
                return handler(err, result)
            return default_handler(err, result, payload)

        return request(method, payload, on_response)

    return wrapped
