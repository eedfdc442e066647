"""Host hooks for a session."""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..lsp.protocol import Method


class HostHooks(BaseModel):
    """Optional callbacks and handlers the host plugs into every session."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    # on_init(session, initialize_result)
    on_init: Optional[Callable[..., None]] = None
    # on_exit(code, signal, session_id)
    on_exit: Optional[Callable[..., None]] = None
    # on_attach(session, document_id)
    on_attach: Optional[Callable[..., None]] = None
    # handler(params, ctx), merged with the built-in handlers
    handlers: Dict[Union[Method, str], Callable[..., Any]] = Field(default_factory=dict)
    # Picks one of several solutions; None means the user cancelled
    choose_target: Optional[Callable[[List[str]], Awaitable[Optional[str]]]] = None
    # installer(session), run after initialization
    command_installers: List[Callable[..., None]] = Field(default_factory=list)
