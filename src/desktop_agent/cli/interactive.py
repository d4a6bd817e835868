"""Interactive read-instruction/print-response loop."""

from __future__ import annotations

from ..agent import ComputerUseAgent
from ..errors import DesktopAgentError
from .render import Renderer

EXIT_COMMANDS = frozenset({"exit", "quit", "q"})
RESET_COMMAND = "reset"


def run_interactive(agent: ComputerUseAgent, renderer: Renderer) -> None:
    """Read instructions until an exit keyword, EOF or Ctrl-C."""
    while True:
        try:
            user_input = renderer.get_user_input()
        except (KeyboardInterrupt, EOFError):
            renderer.info("\nGoodbye!")
            break

        command = user_input.strip().lower()
        if not command:
            continue
        if command in EXIT_COMMANDS:
            renderer.info("Goodbye!")
            break
        if command == RESET_COMMAND:
            agent.reset()
            renderer.info("[dim]Conversation reset.[/dim]")
            continue

        try:
            answer = agent.chat(user_input)
        except DesktopAgentError as exc:
            renderer.error(str(exc))
            continue
        renderer.assistant_message(answer)
