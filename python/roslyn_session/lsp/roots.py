"""Workspace root discovery for documents."""

import os
from abc import ABC, abstractmethod
from typing import List, Optional, Union

from ..util.filesystem import Filesystem
from ..util.log import Log
from .protocol import AmbiguousRoot, Document, ProjectSet, Solution

SOLUTION_SUFFIXES = (".sln", ".slnx", ".slnf")
PROJECT_SUFFIX = ".csproj"

Resolution = Union[Solution, ProjectSet, AmbiguousRoot, None]


class RootSelector(ABC):
    """Finds the workspace root a document belongs to."""

    @abstractmethod
    def resolve_root(self, document: Document) -> Resolution:
        """A root, several candidate solutions, or None when nothing was found."""
        pass


class FilesystemRootSelector(RootSelector):
    """
    Looks for solution and project files around a document.

    Solutions are searched upwards from the document, stopping at the git
    root. With ``broad_search`` every solution below the git root counts.
    Several solutions are narrowed to the ones that reference the document's
    project; if that still leaves more than one the result is ambiguous.
    Without any solution, the nearest directory with project files becomes
    a project set.
    """

    def __init__(self, broad_search: bool = False):
        self.broad_search = broad_search
        self._log = Log.create({"service": "lsp.roots"})

    def resolve_root(self, document: Document) -> Resolution:
        if not os.path.isabs(document.path):
            return None

        directory = os.path.dirname(document.path)
        _, git_root = Filesystem.find_up(".git", directory)

        solutions = self._solutions(directory, git_root)
        projects, project_dir = Filesystem.find_up_matching(PROJECT_SUFFIX, directory, git_root)
        self._log.debug("resolved", {"document": document.path, "solutions": len(solutions), "projects": len(projects)})

        if len(solutions) > 1 and projects:
            solutions = [s for s in solutions if _references_any(s, projects)] or solutions
        if len(solutions) == 1:
            return Solution(path=solutions[0])
        if solutions:
            return AmbiguousRoot(solutions=solutions)
        if projects and project_dir:
            return ProjectSet(directory=project_dir, files=projects)
        return None

    def _solutions(self, directory: str, git_root: Optional[str]) -> List[str]:
        if self.broad_search and git_root:
            return sorted(Filesystem.find_files(SOLUTION_SUFFIXES, git_root))
        found, _ = Filesystem.find_up_matching(SOLUTION_SUFFIXES, directory, git_root)
        return found


def _references_any(solution: str, projects: List[str]) -> bool:
    try:
        with open(solution, 'r', encoding='utf-8', errors='replace') as f:
            content = f.read()
    except OSError:
        return False
    return any(os.path.basename(project) in content for project in projects)
