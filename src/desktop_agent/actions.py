"""Desktop action vocabulary, requests and results."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from .errors import UnknownActionError

DEFAULT_SCROLL_AMOUNT = 3


class _ActionModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class CaptureScreen(_ActionModel):
    """Take a screenshot of the current desktop to see what is on the screen."""

    name: Literal["capture-screen"] = "capture-screen"


class Click(_ActionModel):
    """Click at specified coordinates on the screen."""

    name: Literal["click"] = "click"
    x: float = Field(..., description="The x coordinate to click at")
    y: float = Field(..., description="The y coordinate to click at")
    button: Literal["left", "right", "middle"] = Field(default="left", description="Which mouse button to click")
    double_click: bool = Field(
        default=False,
        validation_alias=AliasChoices("double_click", "doubleClick"),
        description="Whether to double-click",
    )


class TypeText(_ActionModel):
    """Type text into the currently focused element."""

    name: Literal["type-text"] = "type-text"
    text: str = Field(..., description="The text to type")


class PressKey(_ActionModel):
    """Press a keyboard key, e.g. Return, Tab, Escape, BackSpace, Page_Down."""

    name: Literal["press-key"] = "press-key"
    key: str = Field(..., description="The key to press (e.g. 'Return', 'Tab', 'Escape')")


class Scroll(_ActionModel):
    """Scroll the screen up or down."""

    name: Literal["scroll"] = "scroll"
    direction: Literal["up", "down"] = Field(..., description="The direction to scroll")
    amount: int = Field(default=DEFAULT_SCROLL_AMOUNT, ge=1, description="How many pages to scroll")

    @field_validator("amount", mode="before")
    @classmethod
    def _default_when_unset(cls, value: Any) -> Any:
        # 0 and null mean "use the default"
        return DEFAULT_SCROLL_AMOUNT if value in (None, 0) else value


class LaunchApplication(_ActionModel):
    """Launch an application on the desktop."""

    name: Literal["launch-application"] = "launch-application"
    app: str = Field(..., description="The application to launch, e.g. 'google-chrome', 'firefox', 'code', 'gedit'")


class Wait(_ActionModel):
    """Wait for a specified duration in milliseconds."""

    name: Literal["wait"] = "wait"
    duration: float = Field(..., ge=0, description="The duration to wait in milliseconds")


Action = Annotated[
    Union[CaptureScreen, Click, TypeText, PressKey, Scroll, LaunchApplication, Wait],
    Field(discriminator="name"),
]

ACTION_MODELS: tuple[type[_ActionModel], ...] = (
    CaptureScreen,
    Click,
    TypeText,
    PressKey,
    Scroll,
    LaunchApplication,
    Wait,
)
ACTION_NAMES: tuple[str, ...] = tuple(model.model_fields["name"].default for model in ACTION_MODELS)

_ACTION_ADAPTER: TypeAdapter[Action] = TypeAdapter(Action)


def parse_action(name: str, params: Mapping[str, Any]) -> Action:
    """Validate one named action.

    Raises:
        UnknownActionError: the name is not in the vocabulary.
        pydantic.ValidationError: the parameters do not fit the action.
    """
    if name not in ACTION_NAMES:
        raise UnknownActionError(name)
    return _ACTION_ADAPTER.validate_python({**params, "name": name})


@dataclass(frozen=True)
class ActionRequest:
    """An action emitted by the model, with the id used to route its result back."""

    id: str
    name: str
    params: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one executed action request."""

    request_id: str
    success: bool
    payload: Mapping[str, Any] = field(default_factory=dict)
    error: str | None = None

    @classmethod
    def ok(cls, request_id: str, **payload: Any) -> ActionResult:
        """Build a successful result carrying ``payload``."""
        return cls(request_id=request_id, success=True, payload=payload)

    @classmethod
    def failure(cls, request_id: str, message: str) -> ActionResult:
        """Build a failed result carrying an error message."""
        return cls(request_id=request_id, success=False, error=message)

    @property
    def image_base64(self) -> str | None:
        """The captured screen, when this result carries one."""
        image = self.payload.get("image_base64")
        return image if isinstance(image, str) else None

    def as_dict(self, *, include_image: bool = True) -> dict[str, Any]:
        """Serialise to the shape sent back to the model."""
        if not self.success:
            return {"error": self.error or "unknown error"}
        data: dict[str, Any] = {"success": True}
        for key, value in self.payload.items():
            if key == "image_base64" and not include_image:
                data["image"] = "attached"
                continue
            data[key] = value
        return data

    def to_content(self, *, include_image: bool = True) -> str:
        """JSON text of ``as_dict``."""
        return json.dumps(self.as_dict(include_image=include_image), ensure_ascii=False)
