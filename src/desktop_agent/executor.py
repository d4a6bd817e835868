"""Action executor: runs one action request against the desktop session."""

from __future__ import annotations

import base64
import json
import time
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from loguru import logger
from pydantic import ValidationError

from .actions import (
    Action,
    ActionRequest,
    ActionResult,
    CaptureScreen,
    Click,
    LaunchApplication,
    PressKey,
    Scroll,
    TypeText,
    Wait,
    parse_action,
)
from .errors import UnknownActionError
from .sandbox import DesktopSession


def _shorten_text(text: str, width: int = 30, placeholder: str = "...") -> str:
    if len(text) <= width:
        return text
    available = width - len(placeholder)
    if available <= 0:
        return placeholder
    return text[:available] + placeholder


def _render_params(params: Mapping[str, Any]) -> str:
    rendered: list[str] = []
    for key, value in params.items():
        try:
            text = json.dumps(value, ensure_ascii=False)
        except TypeError:
            text = repr(value)
        rendered.append(f"{key}={_shorten_text(text)}")
    return ", ".join(rendered)


def _format_validation_error(name: str, exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != name)
        problems.append(f"{location or 'input'}: {error.get('msg', 'invalid')}")
    return f"Invalid input for {name}: {'; '.join(problems)}"


class ActionExecutor:
    """Maps named actions onto desktop session calls.

    Action failures never raise: unknown names, invalid parameters and sandbox
    errors all come back as an ``ActionResult`` carrying an error message.
    """

    def __init__(
        self,
        session: DesktopSession,
        *,
        screenshot_wait_ms: int = 1000,
        app_launch_wait_ms: int = 3000,
        sleep: Callable[[float], None] = time.sleep,
        on_capture: Callable[[str], object] | None = None,
    ) -> None:
        self._session = session
        self._screenshot_wait_ms = screenshot_wait_ms
        self._app_launch_wait_ms = app_launch_wait_ms
        self._sleep = sleep
        self._on_capture = on_capture
        self._handlers: dict[type, Callable[[Any], dict[str, Any]]] = {
            CaptureScreen: self._capture_screen,
            Click: self._click,
            TypeText: self._type_text,
            PressKey: self._press_key,
            Scroll: self._scroll,
            LaunchApplication: self._launch_application,
            Wait: self._wait,
        }

    def run(self, name: str, params: Mapping[str, Any] | None = None) -> ActionResult:
        """Execute an action that did not come from the model."""
        return self.execute(ActionRequest(id=f"local-{uuid.uuid4().hex[:8]}", name=name, params=params or {}))

    def execute(self, request: ActionRequest) -> ActionResult:
        logger.info(
            "action.call.start name={} id={} {{ {} }}",
            request.name,
            request.id,
            _render_params(request.params),
        )
        start = time.monotonic()
        try:
            result = self._execute(request)
        finally:
            duration = time.monotonic() - start
            logger.info("action.call.end name={} duration={:.3f}ms", request.name, duration * 1000)
        if not result.success:
            logger.warning("action.call.error name={} error={}", request.name, result.error)
        return result

    def _execute(self, request: ActionRequest) -> ActionResult:
        try:
            action = parse_action(request.name, request.params)
        except UnknownActionError as exc:
            return ActionResult.failure(request.id, str(exc))
        except ValidationError as exc:
            return ActionResult.failure(request.id, _format_validation_error(request.name, exc))

        handler = self._handlers[type(action)]
        try:
            payload = handler(action)
        except Exception as exc:
            logger.exception("action.call.failed name={}", request.name)
            return ActionResult.failure(request.id, str(exc))
        return ActionResult.ok(request.id, **payload)

    def capture(self) -> str:
        """Capture the screen as base64-encoded PNG.

        Every capture, whether requested by the loop or by the model, is passed
        to ``on_capture`` when one is set.
        """
        image = base64.b64encode(self._session.screenshot()).decode("ascii")
        if self._on_capture is not None:
            self._on_capture(image)
        return image

    def _capture_screen(self, _action: Action) -> dict[str, Any]:
        if self._screenshot_wait_ms:
            self._sleep(self._screenshot_wait_ms / 1000)
        return {"image_base64": self.capture()}

    def _click(self, action: Click) -> dict[str, Any]:
        self._session.click(
            round(action.x),
            round(action.y),
            button=action.button,
            double_click=action.double_click,
        )
        return {}

    def _type_text(self, action: TypeText) -> dict[str, Any]:
        self._session.write(action.text)
        return {}

    def _press_key(self, action: PressKey) -> dict[str, Any]:
        self._session.press(action.key)
        return {}

    def _scroll(self, action: Scroll) -> dict[str, Any]:
        self._session.scroll(action.direction, action.amount)
        return {}

    def _launch_application(self, action: LaunchApplication) -> dict[str, Any]:
        self._session.launch(action.app)
        if self._app_launch_wait_ms:
            self._sleep(self._app_launch_wait_ms / 1000)
        return {}

    def _wait(self, action: Wait) -> dict[str, Any]:
        self._sleep(action.duration / 1000)
        return {}
