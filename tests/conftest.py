from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from desktop_agent.actions import ActionRequest
from desktop_agent.agent import ComputerUseAgent
from desktop_agent.config import Settings
from desktop_agent.errors import ProviderError
from desktop_agent.provider import ModelResponse, TextBlock
from desktop_agent.sandbox import DesktopSession

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


class FakeSandbox:
    """Stands in for ``e2b_desktop.Sandbox`` and records every call."""

    def __init__(self, *, fail_on: set[str] | None = None) -> None:
        self.sandbox_id = "sbx-test"
        self.calls: list[tuple[Any, ...]] = []
        self._fail_on = fail_on or set()

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        if name in self._fail_on:
            raise RuntimeError(f"{name} exploded")

    def screenshot(self) -> bytearray:
        self._record("screenshot")
        return bytearray(PNG_BYTES)

    def move_mouse(self, x: int, y: int) -> None:
        self._record("move_mouse", x, y)

    def left_click(self) -> None:
        self._record("left_click")

    def right_click(self) -> None:
        self._record("right_click")

    def middle_click(self) -> None:
        self._record("middle_click")

    def double_click(self) -> None:
        self._record("double_click")

    def write(self, text: str) -> None:
        self._record("write", text)

    def press(self, key: str) -> None:
        self._record("press", key)

    def launch(self, app: str) -> None:
        self._record("launch", app)

    def drag(self, start: tuple[int, int], end: tuple[int, int]) -> None:
        self._record("drag", start, end)

    def kill(self) -> None:
        self._record("kill")

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]


class FakeProvider:
    """Scripted completion provider recording each request."""

    def __init__(self, responses: list[ModelResponse] | None = None, *, error: Exception | None = None) -> None:
        self.model = "fake/vision"
        self.responses = list(responses or [])
        self.requests: list[dict[str, Any]] = []
        self._error = error

    def create(self, **kwargs: Any) -> ModelResponse:
        self.requests.append(kwargs)
        if self._error is not None:
            raise self._error
        if not self.responses:
            raise ProviderError("no scripted response left")
        return self.responses.pop(0)


def text_response(text: str) -> ModelResponse:
    return ModelResponse(blocks=(TextBlock(text),) if text else ())


def action_response(*actions: tuple[str, str, dict[str, Any]], text: str = "") -> ModelResponse:
    blocks: list[Any] = [TextBlock(text)] if text else []
    blocks.extend(ActionRequest(id=call_id, name=name, params=params) for call_id, name, params in actions)
    return ModelResponse(blocks=tuple(blocks))


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        api_key="test-key",
        e2b_api_key="e2b-key",
        screenshot_wait_ms=0,
        app_launch_wait_ms=0,
        screenshot_dir=tmp_path / "shots",
    )


@pytest.fixture
def fake_sandbox() -> FakeSandbox:
    return FakeSandbox()


@pytest.fixture
def make_agent(settings: Settings, fake_sandbox: FakeSandbox) -> Callable[..., ComputerUseAgent]:
    def _make(provider: FakeProvider, **overrides: Any) -> ComputerUseAgent:
        agent_settings = settings.model_copy(update=overrides) if overrides else settings
        return ComputerUseAgent(
            agent_settings,
            provider=provider,  # type: ignore[arg-type]
            session_factory=lambda _settings: DesktopSession(fake_sandbox, sleep=lambda _s: None),
            sleep=lambda _s: None,
        )

    return _make
