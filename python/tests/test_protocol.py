"""Tests for protocol value types."""

import pytest

from roslyn_session.lsp.protocol import Document, ProjectSet, ResponseError, Solution, uri_from_path
from roslyn_session.util.error import ProtocolError


@pytest.mark.parametrize("path,expected", [
    ("/ws/App.sln", "file:///ws/App.sln"),
    ("/ws/My Project/A.csproj", "file:///ws/My%20Project/A.csproj"),
    ("C:\\src\\App.sln", "file:///C:/src/App.sln"),
    ("zipfile:///tmp/a.zip::b.cs", "zipfile:///tmp/a.zip::b.cs"),
])
def test_uri_from_path(path, expected):
    assert uri_from_path(path) == expected


@pytest.mark.parametrize("path,buftype,expected", [
    ("/ws/a.cs", "", True),
    ("D:\\ws\\a.cs", "", True),
    ("zipfile:///tmp/a.zip::b.cs", "", True),
    ("tarfile:/tmp/a.tar::b.cs", "", True),
    ("a.cs", "", False),
    ("/ws/a.cs", "nofile", False),
])
def test_document_is_file(path, buftype, expected):
    assert Document(id=1, path=path, buftype=buftype).is_file() is expected


def test_roots_are_values():
    assert Solution(path="/ws/App.sln") == Solution(path="/ws/App.sln")
    assert Solution(path="/ws/App.sln").directory == "/ws"
    assert Solution(path="C:\\ws\\App.sln").directory == "C:\\ws"
    assert ProjectSet(directory="/ws", files=["/ws/A.csproj"]) != ProjectSet(directory="/ws", files=[])


def test_response_error_becomes_protocol_error():
    error = ResponseError(code=-32603, message="dotnet not found").to_error("workspace/_roslyn_restore")

    assert isinstance(error, ProtocolError)
    assert error.code == -32603
    assert error.message == "dotnet not found"
    assert error.to_dict()["data"]["method"] == "workspace/_roslyn_restore"
