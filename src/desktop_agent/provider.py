"""Completion provider boundary.

The provider is reached through ``any_llm.completion`` using the OpenAI chat
format. ``parse_response`` turns the returned ``ChatCompletion`` into text and
action-request blocks so nothing else depends on the provider's schema.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Union

from any_llm import completion  # type: ignore[import-untyped]
from loguru import logger
from openai.types.chat import ChatCompletion

from .actions import ActionRequest
from .config import Settings
from .errors import ProviderError


@dataclass(frozen=True)
class TextBlock:
    text: str


ContentBlock = Union[TextBlock, ActionRequest]


@dataclass(frozen=True)
class ModelResponse:
    """Assistant output split between text fragments and action requests."""

    blocks: tuple[ContentBlock, ...]

    @property
    def text(self) -> str:
        return "".join(block.text for block in self.blocks if isinstance(block, TextBlock))

    @property
    def actions(self) -> tuple[ActionRequest, ...]:
        return tuple(block for block in self.blocks if isinstance(block, ActionRequest))


def _decode_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("provider.tool_call.bad_arguments raw={!r}", raw)
        return {}
    return decoded if isinstance(decoded, dict) else {}


def _text_fragments(content: Any) -> list[str]:
    if content is None:
        return []
    if isinstance(content, str):
        return [content] if content else []
    fragments: list[str] = []
    for part in content:
        text = part.get("text") if isinstance(part, dict) else getattr(part, "text", None)
        if isinstance(text, str) and text:
            fragments.append(text)
    return fragments


def parse_response(response: ChatCompletion) -> ModelResponse:
    """Map a chat completion onto ordered content blocks."""
    choices = getattr(response, "choices", None) or []
    if not choices:
        raise ProviderError("completion returned no choices")
    message = choices[0].message

    blocks: list[ContentBlock] = [TextBlock(text) for text in _text_fragments(message.content)]
    for idx, call in enumerate(getattr(message, "tool_calls", None) or []):
        function = getattr(call, "function", None)
        name = getattr(function, "name", None)
        if not name:
            continue
        blocks.append(
            ActionRequest(
                id=getattr(call, "id", None) or f"call_{idx}",
                name=name,
                params=_decode_arguments(getattr(function, "arguments", None)),
            )
        )
    return ModelResponse(blocks=tuple(blocks))


class CompletionProvider:
    """Creates completions against one configured model."""

    def __init__(
        self,
        *,
        model: str,
        api_key: str | None,
        api_base: str | None = None,
        max_tokens: int = 4096,
        completion_fn: Callable[..., Any] | None = None,
    ) -> None:
        self.model = model
        self._api_key = api_key
        self._api_base = api_base
        self._max_tokens = max_tokens
        self._completion = completion_fn or completion

    @classmethod
    def from_settings(cls, settings: Settings) -> CompletionProvider:
        return cls(
            model=settings.model_id,
            api_key=settings.api_key,
            api_base=settings.api_base,
            max_tokens=settings.max_tokens,
        )

    def create(
        self,
        *,
        system: str,
        messages: Sequence[dict[str, Any]],
        tools: Sequence[dict[str, Any]] | None = None,
        max_tokens: int | None = None,
    ) -> ModelResponse:
        request: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "system", "content": system}, *messages],
            "max_tokens": max_tokens or self._max_tokens,
            "api_key": self._api_key,
        }
        if self._api_base:
            request["api_base"] = self._api_base
        if tools:
            request["tools"] = list(tools)

        logger.debug("provider.request model={} messages={}", self.model, len(request["messages"]))
        try:
            response = self._completion(**request)
        except Exception as exc:
            raise ProviderError(f"completion request failed: {exc}") from exc
        try:
            parsed = parse_response(response)
        except (AttributeError, TypeError) as exc:
            raise ProviderError(f"malformed completion response: {exc}") from exc
        logger.debug(
            "provider.response model={} text_chars={} actions={}",
            self.model,
            len(parsed.text),
            len(parsed.actions),
        )
        return parsed
