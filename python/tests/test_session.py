"""Tests for the client session lifecycle."""

from conftest import FakeTransport

from roslyn_session.bus import SESSION_STOPPED
from roslyn_session.lsp.protocol import Document, Method, ProjectSet, Solution
from roslyn_session.session import ClientSession, HostHooks, SessionState

SOLUTION = Solution(path="/ws/App.sln")
PROJECTS = ProjectSet(directory="/ws", files=["/ws/A.csproj", "/ws/B.csproj"])


def test_start_connects_with_derived_config(make_session, transport):
    session = make_session(SOLUTION)

    session.start()

    config = transport.last.config
    assert session.state == SessionState.STARTING
    assert config.name == "roslyn"
    assert config.root_dir == "/ws"
    assert config.cmd == ["roslyn-ls", "--stdio"]
    assert Method.REGISTER_CAPABILITY.value in config.handlers


def test_solution_opened_once_after_initialization(make_session, transport, events):
    session = make_session(SOLUTION)
    session.start()
    handle = transport.last

    assert handle.notifications == []

    handle.initialized()

    assert session.state == SessionState.READY
    assert handle.notifications == [(Method.SOLUTION_OPEN.value, {"solution": "file:///ws/App.sln"})]
    assert ("INFO", "Initializing Roslyn client for /ws/App.sln") in events


def test_project_set_opened_in_order(make_session, transport, events):
    session = make_session(PROJECTS)
    session.start()

    transport.last.initialized()

    assert transport.last.config.root_dir == "/ws"
    assert transport.last.notifications == [
        (Method.PROJECT_OPEN.value, {"projects": ["file:///ws/A.csproj", "file:///ws/B.csproj"]}),
    ]
    assert ("INFO", "Initializing Roslyn client for projects") in events


def test_init_hook_then_root_then_installers(make_session, transport):
    order = []
    hooks = HostHooks(
        on_init=lambda session, result: order.append(("init", result["capabilities"], len(transport.last.notifications))),
        command_installers=[
            lambda session: order.append(("installer", len(transport.last.notifications))),
            lambda session: session.commands.update({"roslyn.client.fixAllCodeAction": print}),
        ],
    )
    session = make_session(SOLUTION, hooks)
    session.start()

    transport.last.initialized({"capabilities": {"hoverProvider": True}})

    assert order == [("init", {"hoverProvider": True}, 0), ("installer", 1)]
    assert "roslyn.client.fixAllCodeAction" in session.commands


def test_failing_init_hook_still_opens_root(make_session, transport, events):
    def broken(session, result):
        raise RuntimeError("bad hook")

    session = make_session(SOLUTION, HostHooks(on_init=broken))
    session.start()

    transport.last.initialized()

    assert len(transport.last.notifications) == 1
    assert ("ERROR", "on_init hook failed: bad hook") in events


def test_server_exit_stops_session(make_session, transport, registry, bus, events):
    exits = []
    stopped = []
    bus.subscribe(SESSION_STOPPED, lambda e: stopped.append(e.properties))
    session = make_session(SOLUTION, HostHooks(on_exit=lambda code, signal, sid: exits.append((code, signal, sid))))
    registry.select(SOLUTION)
    session.start()
    transport.last.initialized()

    transport.last.exit(1, 15)

    assert session.state == SessionState.STOPPED
    assert registry.selected is None
    assert ("INFO", "Roslyn server stopped") in events
    assert exits == [(1, 15, 1)]
    assert stopped == [{"session_id": 1, "code": 1, "signal": 15}]
    assert registry.sessions() == []


def test_stop_then_exit_runs_exit_hook_once(make_session, transport):
    exits = []
    session = make_session(SOLUTION, HostHooks(on_exit=lambda *args: exits.append(args)))
    session.start()
    handle = transport.last

    session.stop()
    handle.exit(0, None)

    assert handle.stopped is False
    assert exits == [(None, None, 1)]


def test_stop_leaves_unrelated_selection(make_session, registry):
    other = Solution(path="/other/Other.sln")
    registry.select(other)
    session = make_session(SOLUTION)
    session.start()

    session.stop()

    assert registry.selected == other


def test_stop_clears_own_selection(make_session, registry):
    registry.select(Solution(path="/ws/App.sln"))
    session = make_session(SOLUTION)
    session.start()

    session.stop()

    assert registry.selected is None


def test_connect_failure_stops_session(make_session, registry, events, config, bus):
    session = ClientSession(SOLUTION, config, FakeTransport(fail=True), registry, None, bus)

    session.start()

    assert session.is_stopped
    assert ("ERROR", "Failed to start roslyn: not found") in events
    assert registry.sessions() == []


def test_no_requests_after_stop(make_session, transport):
    session = make_session(SOLUTION)
    session.start()
    session.stop()

    session.refresh_diagnostics(Document(id=1, path="/ws/a.cs"))

    assert transport.last.requests == []


def test_response_after_stop_is_dropped(make_session, transport):
    seen = []
    session = make_session(SOLUTION)
    session.start()
    session.request("textDocument/hover", {}, lambda err, result: seen.append(result))
    session.stop()

    transport.last.respond(0, {"contents": "x"})

    assert seen == []


def test_failing_response_handler_becomes_error_event(make_session, transport, events):
    def broken(err, result):
        raise KeyError("items")

    session = make_session(SOLUTION)
    session.start()
    session.request("textDocument/hover", {}, broken)

    transport.last.respond(0, {})

    assert events[-1][0] == "ERROR"
    assert "textDocument/hover response handler failed" in events[-1][1]


def test_start_twice_connects_once(make_session, transport):
    session = make_session(SOLUTION)

    session.start()
    session.start()

    assert len(transport.handles) == 1


def test_unexpected_connect_error_leaves_nothing_registered(registry, events, config, bus):
    session = ClientSession(SOLUTION, config, FakeTransport(error=IndexError("list index out of range")), registry, None, bus)

    session.start(Document(id=1, path="/ws/Program.cs"))

    assert session.is_stopped
    assert session.documents == {}
    assert registry.sessions() == []
    assert ("ERROR", "Failed to start roslyn: list index out of range") in events


def test_initialize_failure_is_reported_before_stop(make_session, transport, events):
    session = make_session(SOLUTION)
    session.start()
    handle = transport.last

    handle.fail_initialize("Failed to initialize roslyn: init boom")
    handle.exit(None, 15)

    assert session.is_stopped
    assert events == [
        ("ERROR", "Failed to initialize roslyn: init boom"),
        ("INFO", "Roslyn server stopped"),
    ]


def test_client_command_runs_locally(make_session, transport):
    ran = []
    results = []
    session = make_session(SOLUTION)
    session.start()
    session.commands["roslyn.client.fixAllCodeAction"] = lambda command, s: ran.append(command["arguments"]) or "done"

    session.execute_command(
        {"command": "roslyn.client.fixAllCodeAction", "arguments": [1]},
        lambda err, result: results.append((err, result)),
    )

    assert ran == [[1]]
    assert results == [(None, "done")]
    assert transport.last.requests == []


def test_unknown_command_goes_to_server(make_session, transport):
    session = make_session(SOLUTION)
    session.start()
    command = {"command": "dotnet.test.run", "arguments": []}

    session.execute_command(command)

    assert transport.last.requests_for(Method.EXECUTE_COMMAND.value) == [(Method.EXECUTE_COMMAND.value, command, None)]


def test_failing_client_command_becomes_error_event(make_session, events):
    def broken(command, session):
        raise ValueError("no code action")

    session = make_session(SOLUTION)
    session.start()
    session.commands["roslyn.client.nestedCodeAction"] = broken

    session.execute_command({"command": "roslyn.client.nestedCodeAction"})

    assert events[-1] == ("ERROR", "roslyn.client.nestedCodeAction command failed: no code action")
