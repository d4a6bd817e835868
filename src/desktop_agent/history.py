"""Conversation history and its rendering into chat messages."""

from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from typing import Any, Union

from .actions import ActionRequest, ActionResult

IMAGE_MEDIA_TYPE = "image/png"


@dataclass(frozen=True)
class UserTurn:
    text: str
    role: str = field(default="user", init=False)


@dataclass(frozen=True)
class AssistantTurn:
    text: str = ""
    actions: tuple[ActionRequest, ...] = ()
    role: str = field(default="assistant", init=False)


@dataclass(frozen=True)
class ResultsTurn:
    """Synthetic user turn carrying the results of one round of actions."""

    results: tuple[ActionResult, ...]
    role: str = field(default="user", init=False)


Turn = Union[UserTurn, AssistantTurn, ResultsTurn]


def image_part(image_base64: str) -> dict[str, Any]:
    return {
        "type": "image_url",
        "image_url": {"url": f"data:{IMAGE_MEDIA_TYPE};base64,{image_base64}"},
    }


def _render_user(turn: UserTurn, image_base64: str | None) -> dict[str, Any]:
    if image_base64 is None:
        return {"role": "user", "content": turn.text}
    return {
        "role": "user",
        "content": [image_part(image_base64), {"type": "text", "text": turn.text}],
    }


def _render_assistant(turn: AssistantTurn) -> dict[str, Any]:
    if not turn.actions:
        return {"role": "assistant", "content": turn.text}
    return {
        "role": "assistant",
        "content": turn.text or None,
        "tool_calls": [
            {
                "id": action.id,
                "type": "function",
                "function": {
                    "name": action.name,
                    "arguments": json.dumps(dict(action.params), ensure_ascii=False),
                },
            }
            for action in turn.actions
        ],
    }


def _render_results(turn: ResultsTurn) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = [
        {
            "role": "tool",
            "tool_call_id": result.request_id,
            "content": result.to_content(include_image=False),
        }
        for result in turn.results
    ]
    images: list[dict[str, Any]] = []
    for result in turn.results:
        if result.image_base64 is None:
            continue
        images.append({"type": "text", "text": f"Screenshot from {result.request_id}:"})
        images.append(image_part(result.image_base64))
    if images:
        messages.append({"role": "user", "content": images})
    return messages


class ConversationHistory:
    """Append-only, ordered list of turns owned by one agent."""

    def __init__(self) -> None:
        self._turns: list[Turn] = []

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self._turns)

    def __getitem__(self, index: int) -> Turn:
        return self._turns[index]

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def append(self, turn: Turn) -> int:
        """Append a turn and return its index."""
        self._turns.append(turn)
        return len(self._turns) - 1

    def continue_assistant(self, index: int, text: str) -> AssistantTurn:
        """Merge follow-up text into the assistant turn at ``index``.

        The exchange keeps a single logical assistant entry; the merged turn
        takes the original's place.
        """
        turn = self._turns[index]
        if not isinstance(turn, AssistantTurn):
            raise TypeError(f"turn {index} is {turn.role}, not assistant")
        if not text:
            return turn
        merged = replace(turn, text=f"{turn.text}\n{text}" if turn.text else text)
        self._turns[index] = merged
        return merged

    def clear(self) -> None:
        self._turns.clear()

    def to_messages(self, *, image_base64: str | None = None) -> list[dict[str, Any]]:
        """Render every turn into chat messages.

        When ``image_base64`` is given it is attached to the most recent user turn.
        """
        last_user = max(
            (idx for idx, turn in enumerate(self._turns) if isinstance(turn, UserTurn)),
            default=-1,
        )
        messages: list[dict[str, Any]] = []
        for idx, turn in enumerate(self._turns):
            if isinstance(turn, UserTurn):
                messages.append(_render_user(turn, image_base64 if idx == last_user else None))
            elif isinstance(turn, AssistantTurn):
                messages.append(_render_assistant(turn))
            else:
                messages.extend(_render_results(turn))
        return messages
