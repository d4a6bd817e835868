"""System prompts for the desktop agent."""

from __future__ import annotations

from .catalog import ToolCatalog

FOLLOWUP_SYSTEM_PROMPT = (
    "You are a computer use agent. Continue working on the task based on the tool results."
)

_WORKFLOW = """When you need to interact with the computer:
1. Look at the attached screenshot to understand the current state
2. Identify what needs to be done
3. Use the appropriate tools to accomplish the task
4. Take another screenshot to verify the action
5. Repeat until the task is complete

Be methodical and describe what you're doing at each step."""


def render_system_prompt(catalog: ToolCatalog, extra: str = "") -> str:
    """Main system prompt listing the available desktop actions."""
    blocks = [
        "You are a computer use agent with the ability to control a desktop. "
        "You can interact with applications, navigate the screen, and perform tasks.",
        f"Available tools:\n{catalog.render_prompt_block()}",
        _WORKFLOW,
    ]
    if extra.strip():
        blocks.append(extra.strip())
    return "\n\n".join(blocks)
