"""E2B desktop sandbox session."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, TypeVar

from e2b_desktop import Sandbox
from loguru import logger

from .errors import SandboxError

T = TypeVar("T")

SCROLL_KEYS = {"down": "Page_Down", "up": "Page_Up"}
KEY_SEQUENCE_DELAY_SECONDS = 0.05


class DesktopSession:
    """One live remote desktop, owned by a single agent.

    Every remote failure is raised as ``SandboxError``.
    """

    def __init__(self, sandbox: Any, *, sleep: Callable[[float], None] = time.sleep) -> None:
        self._sandbox = sandbox
        self._sleep = sleep
        self._closed = False

    @classmethod
    def create(cls, *, api_key: str | None = None, timeout: int | None = None) -> DesktopSession:
        """Start a new remote desktop sandbox."""
        kwargs: dict[str, Any] = {}
        if api_key:
            kwargs["api_key"] = api_key
        if timeout:
            kwargs["timeout"] = timeout
        try:
            sandbox = Sandbox.create(**kwargs)
        except Exception as exc:
            raise SandboxError(f"failed to create desktop sandbox: {exc}") from exc
        session = cls(sandbox)
        logger.info("sandbox.create session_id={}", session.session_id)
        return session

    @property
    def session_id(self) -> str:
        return str(getattr(self._sandbox, "sandbox_id", "-"))

    @property
    def closed(self) -> bool:
        return self._closed

    def _call(self, operation: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        if self._closed:
            raise SandboxError(f"{operation}: session {self.session_id} is closed")
        try:
            return func(*args, **kwargs)
        except SandboxError:
            raise
        except Exception as exc:
            raise SandboxError(f"{operation} failed: {exc}") from exc

    def screenshot(self) -> bytes:
        """Capture the screen as PNG bytes."""
        data = self._call("screenshot", self._sandbox.screenshot)
        return bytes(data)

    def click(self, x: int, y: int, *, button: str = "left", double_click: bool = False) -> None:
        """Move the pointer to ``(x, y)`` and click."""
        self._call("move_mouse", self._sandbox.move_mouse, x, y)
        if double_click:
            self._call("double_click", self._sandbox.double_click)
        elif button == "right":
            self._call("right_click", self._sandbox.right_click)
        elif button == "middle":
            self._call("middle_click", self._sandbox.middle_click)
        else:
            self._call("left_click", self._sandbox.left_click)

    def write(self, text: str) -> None:
        """Type literal text."""
        self._call("write", self._sandbox.write, text)

    def press(self, key: str) -> None:
        """Send one key or key chord, e.g. ``Return`` or ``ctrl+c``."""
        self._call("press", self._sandbox.press, key)

    def press_keys(self, keys: list[str]) -> None:
        """Press keys one after another."""
        for key in keys:
            self.press(key)
            self._sleep(KEY_SEQUENCE_DELAY_SECONDS)

    def scroll(self, direction: str, amount: int = 3) -> None:
        """Scroll by pressing Page_Up or Page_Down ``amount`` times."""
        key = SCROLL_KEYS[direction]
        for _ in range(amount):
            self.press(key)

    def launch(self, app: str) -> None:
        """Launch an application by name."""
        self._call("launch", self._sandbox.launch, app)

    def drag(self, from_x: int, from_y: int, to_x: int, to_y: int) -> None:
        """Drag from one point to another with the left button."""
        self._call("drag", self._sandbox.drag, (from_x, from_y), (to_x, to_y))

    def select_all(self) -> None:
        """Select all (ctrl+a)."""
        self.press("ctrl+a")

    def copy(self) -> None:
        """Copy the selection (ctrl+c)."""
        self.press("ctrl+c")

    def paste(self) -> None:
        """Paste the clipboard (ctrl+v)."""
        self.press("ctrl+v")

    def undo(self) -> None:
        """Undo (ctrl+z)."""
        self.press("ctrl+z")

    def redo(self) -> None:
        """Redo (ctrl+y)."""
        self.press("ctrl+y")

    def tab(self, *, shift: bool = False) -> None:
        """Move focus forward, or backward with ``shift``."""
        self.press("shift+Tab" if shift else "Tab")

    def press_enter(self) -> None:
        """Press Return."""
        self.press("Return")

    def press_escape(self) -> None:
        """Press Escape."""
        self.press("Escape")

    def wait_for_condition(
        self,
        predicate: Callable[[], bool],
        *,
        timeout: float = 10.0,
        interval: float = 0.5,
    ) -> bool:
        """Poll ``predicate`` until it holds or ``timeout`` seconds of waiting pass.

        Returns whether the condition was met. Time is counted in slept
        intervals, so an injected ``sleep`` controls the clock.
        """
        waited = 0.0
        while True:
            if predicate():
                return True
            if waited >= timeout:
                logger.debug("sandbox.wait.timeout session_id={} timeout={}", self.session_id, timeout)
                return False
            self._sleep(interval)
            waited += interval

    def kill(self) -> None:
        """Terminate the sandbox; later calls are no-ops."""
        if self._closed:
            return
        try:
            self._sandbox.kill()
        except Exception as exc:
            raise SandboxError(f"failed to terminate sandbox {self.session_id}: {exc}") from exc
        finally:
            self._closed = True
        logger.info("sandbox.kill session_id={}", self.session_id)
