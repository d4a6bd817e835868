import base64
import json

import pytest

from conftest import PNG_BYTES, FakeSandbox
from desktop_agent.actions import ActionRequest
from desktop_agent.executor import ActionExecutor
from desktop_agent.sandbox import DesktopSession


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def executor(fake_sandbox: FakeSandbox, sleeps: list[float]) -> ActionExecutor:
    return ActionExecutor(
        DesktopSession(fake_sandbox, sleep=sleeps.append),
        screenshot_wait_ms=1000,
        app_launch_wait_ms=3000,
        sleep=sleeps.append,
    )


def test_capture_screen_waits_then_returns_base64(executor, fake_sandbox, sleeps) -> None:
    result = executor.execute(ActionRequest(id="c1", name="capture-screen"))

    assert result.success
    assert result.request_id == "c1"
    assert result.image_base64 == base64.b64encode(PNG_BYTES).decode("ascii")
    assert sleeps == [1.0]
    assert fake_sandbox.names() == ["screenshot"]


@pytest.mark.parametrize(
    ("params", "expected"),
    [
        ({"x": 100, "y": 200}, [("move_mouse", 100, 200), ("left_click",)]),
        ({"x": 1, "y": 2, "button": "right"}, [("move_mouse", 1, 2), ("right_click",)]),
        ({"x": 1, "y": 2, "button": "middle"}, [("move_mouse", 1, 2), ("middle_click",)]),
        ({"x": 5, "y": 6, "doubleClick": True}, [("move_mouse", 5, 6), ("double_click",)]),
    ],
)
def test_click_variants(executor, fake_sandbox, params, expected) -> None:
    result = executor.run("click", params)

    assert result.success
    assert fake_sandbox.calls == expected


def test_type_and_key(executor, fake_sandbox) -> None:
    executor.run("type-text", {"text": "hello world"})
    executor.run("press-key", {"key": "Return"})

    assert fake_sandbox.calls == [("write", "hello world"), ("press", "Return")]


def test_scroll_repeats_page_key(executor, fake_sandbox) -> None:
    executor.run("scroll", {"direction": "down"})
    executor.run("scroll", {"direction": "up", "amount": 2})

    assert fake_sandbox.calls == [("press", "Page_Down")] * 3 + [("press", "Page_Up")] * 2


def test_launch_application_waits_for_settle(executor, fake_sandbox, sleeps) -> None:
    result = executor.run("launch-application", {"app": "google-chrome"})

    assert result.as_dict() == {"success": True}
    assert fake_sandbox.calls == [("launch", "google-chrome")]
    assert sleeps == [3.0]


def test_wait_sleeps_for_duration(executor, fake_sandbox, sleeps) -> None:
    executor.run("wait", {"duration": 250})

    assert sleeps == [0.25]
    assert fake_sandbox.calls == []


def test_unknown_action_returns_error_payload(executor, fake_sandbox) -> None:
    result = executor.execute(ActionRequest(id="c9", name="fly"))

    assert not result.success
    assert json.loads(result.to_content()) == {"error": "Unknown tool: fly"}
    assert fake_sandbox.calls == []


def test_invalid_params_are_reported_not_raised(executor, fake_sandbox) -> None:
    result = executor.run("click", {"x": "left side"})

    assert not result.success
    assert result.error.startswith("Invalid input for click:")
    assert "y" in result.error
    assert fake_sandbox.calls == []


def test_sandbox_failure_is_converted(sleeps) -> None:
    sandbox = FakeSandbox(fail_on={"write"})
    executor = ActionExecutor(DesktopSession(sandbox), sleep=sleeps.append)

    result = executor.run("type-text", {"text": "hi"})

    assert not result.success
    assert "write exploded" in result.error


def test_image_is_left_out_of_tool_content_on_request(executor) -> None:
    result = executor.run("capture-screen")

    assert json.loads(result.to_content(include_image=False)) == {"success": True, "image": "attached"}


def test_every_capture_reaches_the_capture_hook(fake_sandbox, sleeps) -> None:
    captured: list[str] = []
    executor = ActionExecutor(DesktopSession(fake_sandbox), sleep=sleeps.append, on_capture=captured.append)

    direct = executor.capture()
    result = executor.run("capture-screen")

    assert captured == [direct, result.image_base64]
