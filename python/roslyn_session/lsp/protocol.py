"""Protocol names and value types shared by the session components."""

import re
from enum import Enum
from pathlib import PurePosixPath, PureWindowsPath
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

from ..util.error import ProtocolError


class Method(str, Enum):
    """Protocol methods the client knows about."""

    REGISTER_CAPABILITY = "client/registerCapability"
    PROJECT_INITIALIZATION_COMPLETE = "workspace/projectInitializationComplete"
    PROJECT_HAS_UNRESOLVED_DEPENDENCIES = "workspace/_roslyn_projectHasUnresolvedDependencies"
    PROJECT_NEEDS_RESTORE = "workspace/_roslyn_projectNeedsRestore"
    RAZOR_DYNAMIC_FILE_INFO = "razor/provideDynamicFileInfo"

    # Client to server
    RESTORE = "workspace/_roslyn_restore"
    DIAGNOSTIC = "textDocument/diagnostic"
    SOLUTION_OPEN = "solution/open"
    PROJECT_OPEN = "project/open"
    DID_CHANGE_WATCHED_FILES = "workspace/didChangeWatchedFiles"
    EXECUTE_COMMAND = "workspace/executeCommand"


class ResponseError(BaseModel):
    """Error member of a JSON-RPC response."""

    code: int = 0
    message: str
    data: Optional[Any] = None

    def to_error(self, method: str) -> ProtocolError:
        return ProtocolError({"method": method, "code": self.code, "data": self.data}, self.message)


class Solution(BaseModel):
    """A solution file as workspace root."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["solution"] = "solution"
    path: str

    @property
    def directory(self) -> str:
        return _dirname(self.path)

    def describe(self) -> str:
        return self.path


class ProjectSet(BaseModel):
    """Project files sharing a directory, opened without a solution."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["projects"] = "projects"
    directory: str
    files: List[str]

    def describe(self) -> str:
        return "projects"


WorkspaceRoot = Union[Solution, ProjectSet]


class AmbiguousRoot(BaseModel):
    """Several candidate solutions; the host has to pick one."""

    model_config = ConfigDict(frozen=True)

    solutions: List[str]


class Document(BaseModel):
    """An editor document asking for language support."""

    id: Union[int, str]
    path: str
    buftype: str = ""

    def is_file(self) -> bool:
        """True for documents backed by a real (or archived) file."""
        if self.buftype == "nofile":
            return False
        return bool(
            self.path.startswith("/")
            or re.match(r"^[a-zA-Z]:", self.path)
            or self.path.startswith("zipfile://")
            or self.path.startswith("tarfile:")
        )

    @property
    def uri(self) -> str:
        return uri_from_path(self.path)


def _dirname(path: str) -> str:
    if re.match(r"^[a-zA-Z]:", path):
        return str(PureWindowsPath(path).parent)
    return str(PurePosixPath(path).parent)


def uri_from_path(path: str) -> str:
    """``file://`` URI for a local path; other URI schemes pass through."""
    if re.match(r"^[a-zA-Z]:", path):
        return PureWindowsPath(path).as_uri()
    if re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]+:", path):
        return path
    return PurePosixPath(path).as_uri()
