import io
import json

import pytest

from contextkeeper import __version__
from contextkeeper.server import PROTOCOL_VERSION, ProtocolServer
from contextkeeper.state import WorkStateStore


def _line(method, id=None, params=None, notification=False):
    msg = {"jsonrpc": "2.0", "method": method}
    if params is not None:
        msg["params"] = params
    if not notification:
        msg["id"] = id
    return json.dumps(msg)


def _call(id, name, arguments=None):
    params = {"name": name}
    if arguments is not None:
        params["arguments"] = arguments
    return _line("tools/call", id, params)


def _serve(root, runner, *lines):
    stdin = io.StringIO("".join(line + "\n" for line in lines))
    stdout = io.StringIO()
    code = ProtocolServer(root=root, stdin=stdin, stdout=stdout, runner=runner).serve()
    assert code == 0
    return [json.loads(raw) for raw in stdout.getvalue().splitlines()]


def _text(response):
    return response["result"]["content"][0]["text"]


def test_initialize_handshake(project, runner):
    (resp,) = _serve(project, runner, _line("initialize", 1, {"protocolVersion": PROTOCOL_VERSION}))

    assert resp["id"] == 1
    result = resp["result"]
    assert result["protocolVersion"] == "2025-06-18"
    assert result["capabilities"] == {"tools": {"listChanged": False}}
    assert result["serverInfo"] == {"name": "context-keeper", "version": __version__}


def test_tools_list(project, runner):
    (resp,) = _serve(project, runner, _line("tools/list", "a"))
    tools = {t["name"]: t for t in resp["result"]["tools"]}

    assert set(tools) == {"get_dev_context", "save_work_state"}
    level = tools["get_dev_context"]["inputSchema"]["properties"]["level"]
    assert level["enum"] == ["minimal", "normal", "full"]
    assert tools["save_work_state"]["inputSchema"]["required"] == ["task_summary"]


def test_get_dev_context_with_missing_runtime(project, runner):
    (resp,) = _serve(project, runner, _call(2, "get_dev_context", {"level": "normal"}))

    assert "error" not in resp
    assert not resp["result"].get("isError")
    text = _text(resp)
    assert text.startswith("# Development Context (ContextKeeper)")
    assert "- **Name:** Pixel Platform" in text
    assert "| pixel | Pixel 6 | aosp-builder | aosp_oriole-userdebug |" in text
    assert "## Active Containers" not in text
    assert "containers: podman: not found on PATH (tool_not_found)" in text


def test_repeated_calls_are_stable(project, runner):
    runner.on("podman", "ps", stdout="aosp-builder\tUp 3 hours\n")
    first, second = _serve(
        project, runner, _call(1, "get_dev_context"), _call(2, "get_dev_context")
    )
    assert _text(first) == _text(second)
    assert "- **aosp-builder** (podman): Up 3 hours" in _text(first)


def test_levels_differ_in_size(project, runner):
    runner.on("podman", "ps", stdout="aosp-builder\tUp 3 hours\n")
    minimal, full = _serve(
        project,
        runner,
        _call(1, "get_dev_context", {"level": "minimal"}),
        _call(2, "get_dev_context", {"level": "full"}),
    )
    assert _text(minimal).startswith("# Dev Context: Pixel Platform [aosp] (minimal)")
    assert len(_text(minimal)) < len(_text(full))
    assert "## Example Commands" in _text(full)


def test_save_then_get_shows_work_state(project, runner):
    save, get = _serve(
        project,
        runner,
        _call(
            3,
            "save_work_state",
            {
                "task_summary": "Bring up camera",
                "working_files": ["hw/camera.cpp"],
                "todos": [{"content": "flash device", "status": "pending"}],
            },
        ),
        _call(4, "get_dev_context"),
    )

    assert _text(save).startswith("Work state saved: Bring up camera")
    assert "1 provided working file(s), 1 todo(s)" in _text(save)
    text = _text(get)
    assert "**Task:** Bring up camera" in text
    assert "- `hw/camera.cpp`" in text
    assert "- [ ] flash device" in text
    assert WorkStateStore(project).load().task_summary == "Bring up camera"


def test_save_works_without_config(tmp_path, runner):
    (resp,) = _serve(tmp_path, runner, _call(1, "save_work_state", {"task_summary": "scratch", "working_files": []}))
    assert not resp["result"].get("isError")
    assert WorkStateStore(tmp_path).load().task_summary == "scratch"


def test_get_without_config_is_tool_error(tmp_path, runner):
    (resp,) = _serve(tmp_path, runner, _call(1, "get_dev_context"))
    assert resp["result"]["isError"] is True
    assert _text(resp).startswith("Configuration error: No configuration found")


@pytest.mark.parametrize(
    "name, arguments",
    [
        ("no_such_tool", {}),
        ("get_dev_context", {"level": "verbose"}),
        ("get_dev_context", {"level": 3}),
        ("save_work_state", {}),
        ("save_work_state", {"task_summary": "   "}),
        ("save_work_state", "not an object"),
    ],
)
def test_bad_tool_calls_are_invalid_params(project, runner, name, arguments):
    err, ping = _serve(project, runner, _call(9, name, arguments), _line("ping", 10))

    assert err["id"] == 9
    assert err["error"]["code"] == -32602
    assert ping == {"jsonrpc": "2.0", "result": {}, "id": 10}


def test_unknown_method(project, runner):
    (resp,) = _serve(project, runner, _line("resources/list", 5))
    assert resp["error"]["code"] == -32601
    assert resp["id"] == 5


def test_notifications_get_no_response(project, runner):
    responses = _serve(
        project,
        runner,
        _line("notifications/initialized", notification=True),
        _line("ping", 1),
    )
    assert [r["id"] for r in responses] == [1]


def test_malformed_lines(project, runner):
    responses = _serve(
        project,
        runner,
        "this is not json",
        '{"jsonrpc": "2.0", "id": 7, "method": ',
        "",
        "[1, 2]",
        '{"jsonrpc": "2.0", "id": 8}',
        _line("ping", 9),
    )

    assert [r["id"] for r in responses] == [7, 8, 9]
    assert responses[0]["error"]["code"] == -32700
    assert responses[1]["error"]["code"] == -32600


def test_one_response_per_request_in_order(project, runner):
    ids = list(range(1, 6))
    responses = _serve(project, runner, *(_line("ping", i) for i in ids))
    assert [r["id"] for r in responses] == ids


def test_internal_error_is_reported(project, runner, monkeypatch):
    from contextkeeper.server import tools

    def boom(*args, **kwargs):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(tools, "get_dev_context", boom)
    resp, ping = _serve(project, runner, _call(1, "get_dev_context"), _line("ping", 2))
    assert resp["error"]["code"] == -32603
    assert "kaboom" in resp["error"]["message"]
    assert ping["id"] == 2


def test_deeply_nested_line_does_not_stop_server(project, runner):
    responses = _serve(project, runner, "[" * 100000 + "]" * 100000, _line("ping", 2))
    assert responses == [{"jsonrpc": "2.0", "result": {}, "id": 2}]


def test_deeply_nested_line_with_id_gets_parse_error(project, runner):
    line = '{"id": 4, "params": ' + "[" * 100000 + "]" * 100000 + "}"
    err, ping = _serve(project, runner, line, _line("ping", 5))
    assert err["id"] == 4
    assert err["error"]["code"] == -32700
    assert ping["id"] == 5


def test_undecodable_bytes_are_skipped(project, runner):
    raw = b"\xff\xfe garbage\n" + _line("ping", 2).encode() + b"\n"
    stdin = io.TextIOWrapper(io.BytesIO(raw), encoding="utf-8")
    stdout = io.StringIO()

    code = ProtocolServer(root=project, stdin=stdin, stdout=stdout, runner=runner).serve()

    assert code == 0
    assert [json.loads(r) for r in stdout.getvalue().splitlines()] == [
        {"jsonrpc": "2.0", "result": {}, "id": 2}
    ]


def test_unexpected_failure_in_line_handling_is_survived(project, runner, monkeypatch):
    original = ProtocolServer.handle_line

    def flaky(self, line):
        if '"id": 1' in line:
            raise RuntimeError("boom")
        return original(self, line)

    monkeypatch.setattr(ProtocolServer, "handle_line", flaky)
    responses = _serve(project, runner, _line("ping", 1), _line("ping", 2))
    assert [r["id"] for r in responses] == [2]
