"""Computer use agent: the conversation turn loop."""

from __future__ import annotations

import base64
import time
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from pathlib import Path
from types import TracebackType
from typing import Any

from loguru import logger

from .actions import ActionRequest, ActionResult
from .catalog import ToolCatalog, build_tool_catalog
from .config import Settings
from .errors import DesktopAgentError, NotInitializedError
from .executor import ActionExecutor
from .history import AssistantTurn, ConversationHistory, ResultsTurn, UserTurn
from .prompt import FOLLOWUP_SYSTEM_PROMPT, render_system_prompt
from .provider import CompletionProvider, ModelResponse
from .sandbox import DesktopSession

FALLBACK_RESPONSE = "Task completed. Ready for the next instruction."

SessionFactory = Callable[[Settings], DesktopSession]


def _create_session(settings: Settings) -> DesktopSession:
    return DesktopSession.create(api_key=settings.e2b_api_key, timeout=settings.sandbox_timeout)


class ComputerUseAgent:
    """Drives a model against one remote desktop.

    Each ``chat`` call captures the screen, asks the model what to do, runs the
    requested actions in order and asks once more for a summary. Calls on one
    instance must be serialized by the caller.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        provider: CompletionProvider | None = None,
        catalog: ToolCatalog | None = None,
        session_factory: SessionFactory | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.catalog = catalog or build_tool_catalog()
        self.provider = provider or CompletionProvider.from_settings(settings)
        self.history = ConversationHistory()
        self.system_prompt = render_system_prompt(self.catalog, settings.system_prompt)
        self._session_factory = session_factory or _create_session
        self._sleep = sleep
        self._session: DesktopSession | None = None
        self._executor: ActionExecutor | None = None
        self._saved_screenshots = 0

    def __enter__(self) -> ComputerUseAgent:
        self.initialize()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is None:
            self.cleanup()
            return
        try:
            self.cleanup()
        except DesktopAgentError:
            logger.exception("agent.cleanup.error")

    @property
    def session_id(self) -> str | None:
        return self._session.session_id if self._session is not None else None

    @property
    def initialized(self) -> bool:
        return self._session is not None

    def initialize(self) -> str:
        """Create the sandbox session; returns its id."""
        if self._session is not None:
            logger.warning("agent.initialize.skip session_id={} already live", self._session.session_id)
            return self._session.session_id

        logger.info("agent.initialize model={}", self.provider.model)
        session = self._session_factory(self.settings)
        self._session = session
        self._executor = ActionExecutor(
            session,
            screenshot_wait_ms=self.settings.screenshot_wait_ms,
            app_launch_wait_ms=self.settings.app_launch_wait_ms,
            sleep=self._sleep,
            on_capture=self._save_screenshot if self.settings.save_screenshots else None,
        )
        logger.info("agent.initialize.done session_id={}", session.session_id)
        return session.session_id

    def cleanup(self) -> None:
        """Terminate the sandbox and discard the conversation."""
        session = self._session
        self._session = None
        self._executor = None
        self.history.clear()
        if session is None:
            return
        session.kill()

    def reset(self) -> None:
        """Forget the conversation but keep the sandbox."""
        self.history.clear()

    def _require_executor(self) -> ActionExecutor:
        if self._executor is None:
            raise NotInitializedError("Desktop sandbox not initialized. Call initialize() first.")
        return self._executor

    def take_screenshot(self) -> str:
        """Capture the current screen as base64-encoded PNG."""
        return self._require_executor().capture()

    def execute_action(self, name: str, params: Mapping[str, Any] | None = None) -> ActionResult:
        return self._require_executor().run(name, params)

    def chat(self, instruction: str) -> str:
        """Process one instruction and return the model's final text."""
        executor = self._require_executor()
        logger.info("agent.turn.start session_id={} instruction={!r}", self.session_id, instruction)
        try:
            return self._run_turn(executor, instruction)
        except DesktopAgentError as exc:
            logger.error("agent.turn.error kind={} error={}", type(exc).__name__, exc)
            raise

    def _run_turn(self, executor: ActionExecutor, instruction: str) -> str:
        self.history.append(UserTurn(instruction))
        screenshot = self.take_screenshot()
        tools = self.catalog.model_tools()
        response = self.provider.create(
            system=self.system_prompt,
            messages=self.history.to_messages(image_base64=screenshot),
            tools=tools,
        )

        text_parts = [response.text] if response.text else []
        assistant_index: int | None = None
        rounds = 0
        while response.actions:
            if rounds >= self.settings.max_rounds:
                logger.warning(
                    "agent.turn.actions_dropped count={} max_rounds={}",
                    len(response.actions),
                    self.settings.max_rounds,
                )
                break
            rounds += 1
            results = self._execute_round(executor, response.actions)
            assistant_index = self.history.append(AssistantTurn(response.text, response.actions))
            self.history.append(ResultsTurn(results))
            response = self._follow_up(tools)
            if response.text:
                text_parts.append(response.text)

        answer = "\n".join(text_parts)
        if assistant_index is None:
            answer = answer or FALLBACK_RESPONSE
            self.history.append(AssistantTurn(answer))
        else:
            self.history.continue_assistant(assistant_index, response.text)
            answer = answer or FALLBACK_RESPONSE

        logger.info("agent.turn.end rounds={} history={}", rounds, len(self.history))
        return answer

    def _execute_round(self, executor: ActionExecutor, actions: Sequence[ActionRequest]) -> tuple[ActionResult, ...]:
        return tuple(executor.execute(action) for action in actions)

    def _follow_up(self, tools: list[dict[str, Any]]) -> ModelResponse:
        return self.provider.create(
            system=FOLLOWUP_SYSTEM_PROMPT,
            messages=self.history.to_messages(),
            tools=tools,
        )

    def _save_screenshot(self, image_base64: str) -> Path:
        directory = self.settings.screenshot_dir
        directory.mkdir(parents=True, exist_ok=True)
        self._saved_screenshots += 1
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
        path = directory / f"screenshot-{stamp}-{self._saved_screenshots:04d}.png"
        path.write_bytes(base64.b64decode(image_base64))
        logger.debug("agent.screenshot.saved path={}", path)
        return path


def create_agent(settings: Settings, **kwargs: Any) -> ComputerUseAgent:
    """Validate credentials and build an agent owning its own provider client."""
    settings.require_credentials()
    return ComputerUseAgent(settings, **kwargs)
