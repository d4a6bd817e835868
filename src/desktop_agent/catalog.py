"""Tool catalog describing the desktop actions offered to the model."""

from __future__ import annotations

from collections.abc import Iterable
from copy import deepcopy
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from .actions import ACTION_MODELS

INTERNAL_FIELDS = frozenset({"name"})


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_model: type[BaseModel]

    def parameters(self) -> dict[str, Any]:
        """JSON schema of the tool input, without internal fields."""
        schema = deepcopy(self.input_model.model_json_schema())
        schema.pop("title", None)
        schema.pop("description", None)
        properties = {
            key: value for key, value in schema.get("properties", {}).items() if key not in INTERNAL_FIELDS
        }
        for prop in properties.values():
            prop.pop("title", None)
        schema["properties"] = properties
        schema["required"] = [key for key in schema.get("required", []) if key not in INTERNAL_FIELDS]
        schema["type"] = "object"
        return schema


class ToolCatalog:
    """Registry for tool specs, in declaration order."""

    def __init__(self, specs: Iterable[ToolSpec] | None = None) -> None:
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs or []:
            self.register(spec)

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._specs:
            raise ValueError(f"Duplicate tool name: {spec.name}")
        self._specs[spec.name] = spec

    def get(self, name: str) -> ToolSpec | None:
        return self._specs.get(name)

    def names(self) -> list[str]:
        return list(self._specs)

    def model_tools(self) -> list[dict[str, Any]]:
        """Function-tool definitions in the OpenAI chat format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": spec.name,
                    "description": spec.description,
                    "parameters": spec.parameters(),
                },
            }
            for spec in self._specs.values()
        ]

    def render_prompt_block(self) -> str:
        if not self._specs:
            return "(no tools)"

        lines: list[str] = []
        for idx, spec in enumerate(self._specs.values(), start=1):
            params = spec.parameters()
            required = set(params["required"])
            rendered = [
                f"{key}{'' if key in required else '?'}" for key in params["properties"]
            ]
            signature = f"({', '.join(rendered)})" if rendered else "()"
            lines.append(f"{idx}. {spec.name}{signature} - {spec.description}")
        return "\n".join(lines)


def build_tool_catalog() -> ToolCatalog:
    """Catalog of every supported desktop action."""
    return ToolCatalog(
        ToolSpec(
            name=model.model_fields["name"].default,
            description=(model.__doc__ or "").strip(),
            input_model=model,
        )
        for model in ACTION_MODELS
    )
