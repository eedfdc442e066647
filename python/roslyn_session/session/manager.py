"""Session registry and the document attach flow."""

from typing import List, Optional

from ..bus import Bus, EventBus
from ..config import ConfigModel
from ..lsp.protocol import AmbiguousRoot, Document, ProjectSet, Solution, WorkspaceRoot
from ..lsp.roots import FilesystemRootSelector, RootSelector
from ..lsp.transport import Transport
from ..util.log import Log
from .hooks import HostHooks
from .session import CLIENT_NAME, ClientSession


class SessionRegistry:
    """
    Process-wide set of sessions plus the selected solution.

    The selected solution is set only by a selection flow (``select``) and
    cleared by a session only when it still points at that session's root.
    """

    _log = Log.create({"service": "session.registry"})

    def __init__(self):
        self._sessions: List[ClientSession] = []
        self.selected: Optional[Solution] = None

    def select(self, root: Solution) -> None:
        self._log.info("selected", {"solution": root.path})
        self.selected = root

    def clear(self, root: WorkspaceRoot) -> bool:
        """Forget the selected solution if it is ``root``."""
        if self.selected is not None and self.selected == root:
            self._log.info("cleared", {"solution": self.selected.path})
            self.selected = None
            return True
        return False

    def add(self, session: ClientSession) -> None:
        if session not in self._sessions:
            self._sessions.append(session)

    def remove(self, session: ClientSession) -> None:
        if session in self._sessions:
            self._sessions.remove(session)

    def find(self, root: WorkspaceRoot) -> Optional[ClientSession]:
        """The starting or ready session for ``root``, if any."""
        for session in self._sessions:
            if session.root == root and session.is_active:
                return session
        return None

    def sessions(self, name: Optional[str] = None) -> List[ClientSession]:
        return [s for s in self._sessions if name is None or s.name == name]

    def stop_all(self, name: Optional[str] = None, force: bool = False) -> None:
        for session in self.sessions(name):
            session.stop(force)


class SessionManager:
    """
    Decides which session a document belongs to and starts it when needed.

    ``attach`` is what the host calls when a C# document opens. ``select_target``
    is the explicit "choose the solution" command.
    """

    def __init__(
        self,
        config: ConfigModel,
        transport: Transport,
        selector: Optional[RootSelector] = None,
        hooks: Optional[HostHooks] = None,
        registry: Optional[SessionRegistry] = None,
        bus: EventBus = Bus,
    ):
        self.config = config
        self.transport = transport
        self.selector = selector or FilesystemRootSelector(config.broad_search)
        self.hooks = hooks or HostHooks()
        self.registry = registry or SessionRegistry()
        self.bus = bus
        self._log = Log.create({"service": "session.manager"})

    async def attach(self, document: Document) -> Optional[ClientSession]:
        """Attach a document to a session, starting one if needed."""
        if not document.is_file():
            self._log.debug("ignoring document", {"document": document.path})
            return None

        selected = self.registry.selected
        if self.config.lock_target and selected is not None:
            return self.start(selected, document)

        resolution = self.selector.resolve_root(document)
        if isinstance(resolution, AmbiguousRoot):
            choice = await self._choose(resolution.solutions)
            if choice is None:
                return None
            resolution = Solution(path=choice)

        if isinstance(resolution, Solution):
            self.registry.select(resolution)
            return self.start(resolution, document)
        if isinstance(resolution, ProjectSet):
            return self.start(resolution, document)

        # Nothing around the document, e.g. decompiled sources: use the selected solution
        if selected is not None:
            return self.start(selected, document)
        self._log.info("no root found", {"document": document.path})
        return None

    async def select_target(self, document: Document) -> Optional[ClientSession]:
        """
        Let the user pick the solution for ``document`` and restart on it.

        Every running session of this client is stopped before the new
        selection is made.
        """
        resolution = self.selector.resolve_root(document)
        if isinstance(resolution, AmbiguousRoot):
            candidates = resolution.solutions
        elif isinstance(resolution, Solution):
            candidates = [resolution.path]
        else:
            candidates = []

        choice = await self._choose(candidates)
        if choice is None:
            return None

        self.registry.stop_all(CLIENT_NAME, force=True)
        root = Solution(path=choice)
        self.registry.select(root)
        return self.start(root, document)

    def start(self, root: WorkspaceRoot, document: Document) -> ClientSession:
        """Reuse the active session for ``root`` or start a new one."""
        session = self.registry.find(root)
        if session is not None:
            session.attach(document)
            return session

        session = ClientSession(root, self.config, self.transport, self.registry, self.hooks, self.bus)
        session.start(document)
        return session

    def stop_all(self, force: bool = False) -> None:
        self.registry.stop_all(CLIENT_NAME, force)

    async def _choose(self, solutions: List[str]) -> Optional[str]:
        if not solutions:
            return None
        if self.hooks.choose_target is None:
            self._log.warn("several solutions and no way to choose", {"solutions": solutions})
            return None
        return await self.hooks.choose_target(solutions)
