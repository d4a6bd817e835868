"""CLI main module for desktop-agent."""

from __future__ import annotations

import json
import time
from typing import Optional

import typer

from ..agent import ComputerUseAgent, create_agent
from ..config import Settings, load_settings
from ..diagnostics import run_diagnostics
from ..errors import ConfigurationError, DesktopAgentError
from ..logging_utils import configure_logging
from ..opencode import OpencodeController
from .interactive import run_interactive
from .render import Renderer

DEMO_INSTRUCTIONS = (
    "Please launch Google Chrome and search for 'Weather in San Francisco'",
    "Now please launch VS Code and create a new file called 'example.txt' "
    "with the content 'Hello, Computer Use Agent!'",
)

app = typer.Typer(
    name="desktop-agent",
    help="Drive a remote desktop sandbox with a vision model.",
    add_completion=False,
    rich_markup_mode="rich",
)
opencode_app = typer.Typer(help="Control an OpenCode server.", add_completion=False)
app.add_typer(opencode_app, name="opencode")


def _load(model: Optional[str], max_tokens: Optional[int], *, profile: str = "default") -> Settings:
    settings = load_settings(model=model, max_tokens=max_tokens)
    configure_logging(profile=profile, level=settings.log_level)  # type: ignore[arg-type]
    return settings


def _build_agent(settings: Settings, renderer: Renderer) -> ComputerUseAgent:
    try:
        return create_agent(settings)
    except ConfigurationError as exc:
        renderer.error(str(exc))
        raise typer.Exit(1) from exc


@app.command()
def run(
    instructions: Optional[list[str]] = typer.Argument(None, help="Instructions to run; defaults to the demo tasks"),
    model: Optional[str] = typer.Option(None, help="Model override"),
    max_tokens: Optional[int] = typer.Option(None, help="Token budget override"),
    pause: float = typer.Option(5.0, help="Seconds to pause between instructions"),
) -> None:
    """Run one or more instructions against a fresh sandbox, then exit."""
    renderer = Renderer()
    settings = _load(model, max_tokens)
    agent = _build_agent(settings, renderer)
    tasks = list(instructions or DEMO_INSTRUCTIONS)

    try:
        with agent:
            renderer.usage_info(session_id=agent.session_id, model=agent.provider.model)
            for idx, instruction in enumerate(tasks):
                if idx and pause > 0:
                    time.sleep(pause)
                renderer.user_message(instruction)
                renderer.assistant_message(agent.chat(instruction))
    except DesktopAgentError as exc:
        renderer.error(str(exc))
        raise typer.Exit(1) from exc
    renderer.info("[green]All tasks completed![/green]")


@app.command()
def chat(
    model: Optional[str] = typer.Option(None, help="Model override"),
    max_tokens: Optional[int] = typer.Option(None, help="Token budget override"),
) -> None:
    """Start an interactive session."""
    renderer = Renderer()
    settings = _load(model, max_tokens, profile="chat")
    agent = _build_agent(settings, renderer)

    try:
        with agent:
            renderer.welcome()
            renderer.usage_info(
                session_id=agent.session_id,
                model=agent.provider.model,
                tools=agent.catalog.names(),
            )
            run_interactive(agent, renderer)
    except DesktopAgentError as exc:
        renderer.error(str(exc))
        raise typer.Exit(1) from exc


@app.command()
def diagnose() -> None:
    """Check credentials and connectivity to the provider and the sandbox."""
    renderer = Renderer()
    settings = _load(None, None)
    report = run_diagnostics(settings)
    renderer.diagnostics(report)
    if not report.ok:
        raise typer.Exit(1)


def _controller(url: Optional[str]) -> OpencodeController:
    settings = _load(None, None)
    return OpencodeController(url or settings.opencode_url, timeout=settings.opencode_timeout)


@opencode_app.command("health")
def opencode_health(url: Optional[str] = typer.Option(None, help="OpenCode server URL")) -> None:
    """Check that the OpenCode server answers."""
    renderer = Renderer()
    try:
        with _controller(url) as controller:
            health = controller.health()
    except DesktopAgentError as exc:
        renderer.error(str(exc))
        raise typer.Exit(1) from exc
    renderer.info(f"OpenCode server v{health.get('version', '?')} is healthy")


@opencode_app.command("sessions")
def opencode_sessions(url: Optional[str] = typer.Option(None, help="OpenCode server URL")) -> None:
    """List OpenCode sessions."""
    renderer = Renderer()
    try:
        with _controller(url) as controller:
            sessions = controller.list_sessions()
    except DesktopAgentError as exc:
        renderer.error(str(exc))
        raise typer.Exit(1) from exc
    if not sessions:
        renderer.info("(no sessions)")
        return
    for session in sessions:
        renderer.info(f"{session.get('id', '-')}  {session.get('title', '')}")


@opencode_app.command("prompt")
def opencode_prompt(
    text: str,
    session_id: Optional[str] = typer.Option(None, "--session", help="Existing session id"),
    title: str = typer.Option("desktop-agent", help="Title for a new session"),
    url: Optional[str] = typer.Option(None, help="OpenCode server URL"),
) -> None:
    """Send a prompt to an OpenCode session and print the reply."""
    renderer = Renderer()
    try:
        with _controller(url) as controller:
            target = session_id or controller.create_session(title)["id"]
            reply = controller.send_prompt(target, text)
    except DesktopAgentError as exc:
        renderer.error(str(exc))
        raise typer.Exit(1) from exc
    parts = reply.get("parts", []) if isinstance(reply, dict) else []
    texts = [part.get("text", "") for part in parts if isinstance(part, dict) and part.get("type") == "text"]
    renderer.info("\n".join(texts) if texts else json.dumps(reply, indent=2, ensure_ascii=False))
