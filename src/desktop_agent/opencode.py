"""OpenCode control facade.

Thin passthrough over the OpenCode server HTTP API: sessions, prompts, shell
commands, file search, the event stream and TUI controls. It is independent
of the desktop turn loop.
"""

from __future__ import annotations

import json
import shutil
import subprocess
import time
from collections.abc import Iterator
from typing import Any, Literal

import httpx
from loguru import logger

from .errors import OpencodeError

DEFAULT_BASE_URL = "http://localhost:4096"
DEFAULT_HOSTNAME = "127.0.0.1"
DEFAULT_PORT = 4096
SERVER_START_TIMEOUT_SECONDS = 10.0
SERVER_POLL_SECONDS = 0.2

ToastVariant = Literal["success", "error", "info", "warning"]


class OpencodeController:
    """Client for one OpenCode server."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)
        self._server: subprocess.Popen[bytes] | None = None

    @classmethod
    def start_local(
        cls,
        *,
        hostname: str = DEFAULT_HOSTNAME,
        port: int = DEFAULT_PORT,
        timeout: float = 30.0,
    ) -> OpencodeController:
        """Spawn ``opencode serve`` and return a controller connected to it."""
        executable = shutil.which("opencode")
        if executable is None:
            raise OpencodeError("opencode executable not found on PATH")

        logger.info("opencode.server.start hostname={} port={}", hostname, port)
        process = subprocess.Popen(  # noqa: S603
            [executable, "serve", f"--hostname={hostname}", f"--port={port}"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        controller = cls(f"http://{hostname}:{port}", timeout=timeout)
        controller._server = process

        deadline = time.monotonic() + SERVER_START_TIMEOUT_SECONDS
        while True:
            try:
                controller.health()
                break
            except OpencodeError:
                if process.poll() is not None or time.monotonic() > deadline:
                    controller.close()
                    raise
                time.sleep(SERVER_POLL_SECONDS)
        logger.info("opencode.server.ready url={}", controller.base_url)
        return controller

    def __enter__(self) -> OpencodeController:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        if params:
            params = {key: value for key, value in params.items() if value is not None}
        try:
            response = self._client.request(method, path, params=params, json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise OpencodeError(
                f"{method} {path} failed with {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise OpencodeError(f"{method} {path} failed: {exc}") from exc
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise OpencodeError(f"{method} {path} returned invalid JSON") from exc

    # Server

    def health(self) -> dict[str, Any]:
        return self._request("GET", "/global/health")

    def list_agents(self) -> list[dict[str, Any]]:
        return self._request("GET", "/agent")

    def get_config(self) -> dict[str, Any]:
        return self._request("GET", "/config")

    def get_providers(self) -> dict[str, Any]:
        """Configured providers and the default model per provider."""
        return self._request("GET", "/config/providers")

    def get_current_project(self) -> dict[str, Any]:
        return self._request("GET", "/project/current")

    def list_projects(self) -> list[dict[str, Any]]:
        return self._request("GET", "/project")

    def get_current_path(self) -> dict[str, Any]:
        return self._request("GET", "/path")

    def set_auth(self, provider_id: str, key: str) -> bool:
        return bool(self._request("PUT", f"/auth/{provider_id}", json={"type": "api", "key": key}))

    # Sessions

    def create_session(self, title: str) -> dict[str, Any]:
        session = self._request("POST", "/session", json={"title": title})
        logger.info("opencode.session.create id={} title={!r}", session.get("id"), title)
        return session

    def list_sessions(self) -> list[dict[str, Any]]:
        return self._request("GET", "/session")

    def get_session(self, session_id: str) -> dict[str, Any]:
        return self._request("GET", f"/session/{session_id}")

    def delete_session(self, session_id: str) -> bool:
        deleted = bool(self._request("DELETE", f"/session/{session_id}"))
        logger.info("opencode.session.delete id={} deleted={}", session_id, deleted)
        return deleted

    def send_prompt(
        self,
        session_id: str,
        text: str,
        *,
        no_reply: bool = False,
        model: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"parts": [{"type": "text", "text": text}], "noReply": no_reply}
        if model is not None:
            body["model"] = model
        return self._request("POST", f"/session/{session_id}/message", json=body)

    def send_command(self, session_id: str, command: str, arguments: str = "") -> dict[str, Any]:
        return self._request(
            "POST",
            f"/session/{session_id}/command",
            json={"command": command, "arguments": arguments},
        )

    def run_shell(self, session_id: str, command: str, agent: str = "build") -> dict[str, Any]:
        return self._request("POST", f"/session/{session_id}/shell", json={"command": command, "agent": agent})

    def get_messages(self, session_id: str) -> list[dict[str, Any]]:
        return self._request("GET", f"/session/{session_id}/message")

    def get_message(self, session_id: str, message_id: str) -> dict[str, Any]:
        return self._request("GET", f"/session/{session_id}/message/{message_id}")

    def revert(self, session_id: str, message_id: str, description: str = "User revert") -> dict[str, Any]:
        """Roll the session back to ``message_id``; returns the updated session."""
        session = self._request(
            "POST",
            f"/session/{session_id}/revert",
            json={"messageID": message_id, "description": description},
        )
        logger.info("opencode.session.revert id={} message_id={}", session_id, message_id)
        return session

    # Files

    def find_text(self, pattern: str) -> list[dict[str, Any]]:
        return self._request("GET", "/find", params={"pattern": pattern})

    def find_files(self, query: str, kind: Literal["file", "directory"] | None = None) -> list[str]:
        return self._request("GET", "/find/file", params={"query": query, "type": kind})

    def read_file(self, path: str) -> dict[str, Any]:
        return self._request("GET", "/file/content", params={"path": path})

    # Events

    def iter_events(self) -> Iterator[dict[str, Any]]:
        """Yield server events from the ``/event`` server-sent event stream.

        The stream stays open until the caller stops iterating or the server
        closes it. Lines that are not ``data:`` payloads are skipped.
        """
        try:
            with self._client.stream("GET", "/event", timeout=None) as response:
                response.raise_for_status()
                for line in response.iter_lines():
                    if not line.startswith("data:"):
                        continue
                    payload = line[len("data:") :].strip()
                    if not payload:
                        continue
                    try:
                        yield json.loads(payload)
                    except ValueError:
                        logger.warning("opencode.event.bad_payload payload={!r}", payload[:200])
        except httpx.HTTPStatusError as exc:
            raise OpencodeError(f"GET /event failed with {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise OpencodeError(f"GET /event failed: {exc}") from exc

    # TUI

    def append_to_prompt(self, text: str) -> bool:
        return bool(self._request("POST", "/tui/append-prompt", json={"text": text}))

    def show_toast(self, message: str, variant: ToastVariant = "info") -> bool:
        return bool(self._request("POST", "/tui/show-toast", json={"message": message, "variant": variant}))

    def submit_prompt(self) -> bool:
        return bool(self._request("POST", "/tui/submit-prompt"))

    def clear_prompt(self) -> bool:
        return bool(self._request("POST", "/tui/clear-prompt"))

    def open_help(self) -> bool:
        return bool(self._request("POST", "/tui/open-help"))

    def open_sessions(self) -> bool:
        return bool(self._request("POST", "/tui/open-sessions"))

    def close(self) -> None:
        self._client.close()
        if self._server is not None:
            self._server.terminate()
            try:
                self._server.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self._server.kill()
            self._server = None
            logger.info("opencode.server.closed")
