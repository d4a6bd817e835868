import json

import httpx
import pytest

from desktop_agent.errors import OpencodeError
from desktop_agent.opencode import OpencodeController


class _Server:
    """In-memory OpenCode API used through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.sessions: dict[str, dict] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/global/health":
            return httpx.Response(200, json={"healthy": True, "version": "0.9.1"})
        if path == "/session" and request.method == "POST":
            body = json.loads(request.content)
            session = {"id": f"ses_{len(self.sessions) + 1}", "title": body["title"]}
            self.sessions[session["id"]] = session
            return httpx.Response(200, json=session)
        if path == "/session" and request.method == "GET":
            return httpx.Response(200, json=list(self.sessions.values()))
        if path.startswith("/session/") and request.method == "DELETE":
            return httpx.Response(200, json=self.sessions.pop(path.rsplit("/", 1)[1], None) is not None)
        if path.endswith("/message") and request.method == "POST":
            body = json.loads(request.content)
            return httpx.Response(200, json={"info": {"role": "assistant"}, "parts": body["parts"]})
        if path == "/find/file":
            return httpx.Response(200, json=[f"src/{request.url.params['query']}"])
        if "/message/" in path and request.method == "GET":
            message_id = path.rsplit("/", 1)[1]
            return httpx.Response(200, json={"info": {"id": message_id}, "parts": []})
        if path.endswith("/revert"):
            body = json.loads(request.content)
            session_id = path.split("/")[2]
            return httpx.Response(200, json={"id": session_id, "revert": {"messageID": body["messageID"]}})
        if path == "/config/providers":
            return httpx.Response(200, json={"providers": [{"id": "anthropic", "name": "Anthropic"}], "default": {}})
        if path == "/event":
            stream = (
                'data: {"type": "server.connected", "properties": {}}\n\n'
                ": keepalive\n\n"
                "data: not-json\n\n"
                'data: {"type": "session.idle", "properties": {"sessionID": "ses_1"}}\n\n'
            )
            return httpx.Response(200, text=stream, headers={"content-type": "text/event-stream"})
        if path == "/tui/submit-prompt":
            return httpx.Response(200, json=True)
        return httpx.Response(404, text="not found")


@pytest.fixture
def server() -> _Server:
    return _Server()


@pytest.fixture
def controller(server: _Server) -> OpencodeController:
    return OpencodeController("http://opencode.test/", transport=httpx.MockTransport(server))


def test_health(controller) -> None:
    assert controller.health() == {"healthy": True, "version": "0.9.1"}
    assert controller.base_url == "http://opencode.test"


def test_session_lifecycle(controller, server) -> None:
    session = controller.create_session("Demo")

    assert controller.list_sessions() == [session]
    reply = controller.send_prompt(session["id"], "summarize the workspace")
    assert reply["parts"] == [{"type": "text", "text": "summarize the workspace"}]
    sent = json.loads(server.requests[-1].content)
    assert sent["noReply"] is False
    assert controller.delete_session(session["id"]) is True
    assert controller.list_sessions() == []


def test_find_files_drops_empty_query_params(controller, server) -> None:
    assert controller.find_files("*.py") == ["src/*.py"]
    assert "type" not in server.requests[-1].url.params


def test_tui_controls_return_bool(controller) -> None:
    assert controller.submit_prompt() is True


def test_http_errors_raise_opencode_error(controller) -> None:
    with pytest.raises(OpencodeError, match="404"):
        controller.get_config()


def test_connection_errors_raise_opencode_error() -> None:
    def _refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    controller = OpencodeController(transport=httpx.MockTransport(_refuse))

    with pytest.raises(OpencodeError, match="connection refused"):
        controller.health()


def test_start_local_requires_executable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("desktop_agent.opencode.shutil.which", lambda _name: None)

    with pytest.raises(OpencodeError, match="not found"):
        OpencodeController.start_local()


def test_get_message_and_revert(controller, server) -> None:
    assert controller.get_message("ses_1", "msg_7") == {"info": {"id": "msg_7"}, "parts": []}

    session = controller.revert("ses_1", "msg_7")

    assert session == {"id": "ses_1", "revert": {"messageID": "msg_7"}}
    sent = json.loads(server.requests[-1].content)
    assert sent == {"messageID": "msg_7", "description": "User revert"}


def test_get_providers(controller) -> None:
    providers = controller.get_providers()

    assert [provider["id"] for provider in providers["providers"]] == ["anthropic"]


def test_iter_events_yields_data_payloads(controller) -> None:
    events = list(controller.iter_events())

    assert [event["type"] for event in events] == ["server.connected", "session.idle"]
    assert events[1]["properties"]["sessionID"] == "ses_1"


def test_iter_events_reports_http_errors() -> None:
    controller = OpencodeController(transport=httpx.MockTransport(lambda _request: httpx.Response(503)))

    with pytest.raises(OpencodeError, match="503"):
        next(controller.iter_events())
