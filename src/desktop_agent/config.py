"""Configuration management for desktop-agent."""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ApiKeyNotConfiguredError

DEFAULT_API_BASE = "https://opencode.ai/zen/v1"
DEFAULT_MODEL = "minimax-m2.1-free"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="DESKTOP_AGENT_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Completion provider
    provider: str = Field(default="anthropic", description="any-llm provider id, e.g. 'anthropic' or 'openai'")
    model: str = Field(
        default=DEFAULT_MODEL,
        validation_alias=AliasChoices("DESKTOP_AGENT_MODEL", "OPENCODE_ZEN_MODEL"),
        description="Model name understood by the provider",
    )
    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("DESKTOP_AGENT_API_KEY", "OPENCODE_ZEN_API_KEY"),
        description="API key for the completion provider",
    )
    api_base: str | None = Field(default=DEFAULT_API_BASE, description="Provider endpoint override")
    max_tokens: int = Field(default=4096, ge=1, description="Token budget per completion")

    # Desktop sandbox
    e2b_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("DESKTOP_AGENT_E2B_API_KEY", "E2B_API_KEY"),
        description="API key for the E2B desktop sandbox",
    )
    sandbox_timeout: int = Field(default=300, ge=1, description="Sandbox lifetime in seconds")
    screenshot_wait_ms: int = Field(default=1000, ge=0, description="Settle delay before a requested screenshot")
    app_launch_wait_ms: int = Field(default=3000, ge=0, description="Settle delay after launching an application")

    # Turn loop
    max_rounds: int = Field(default=1, ge=1, description="Action rounds allowed per instruction")
    save_screenshots: bool = Field(default=False, description="Write captured screens to screenshot_dir")
    screenshot_dir: Path = Field(default=Path("screenshots"), description="Directory for saved screenshots")

    # OpenCode control server
    opencode_url: str = Field(default="http://localhost:4096", description="OpenCode server base URL")
    opencode_timeout: float = Field(default=30.0, gt=0, description="HTTP timeout for OpenCode requests in seconds")

    system_prompt: str = Field(default="", description="Extra instructions appended to the system prompt")
    log_level: str = Field(default="INFO", description="Log level")

    @property
    def model_id(self) -> str:
        """Model identifier in the ``provider/model`` form any-llm expects."""
        if "/" in self.model:
            return self.model
        return f"{self.provider}/{self.model}"

    def require_credentials(self) -> None:
        """Fail at startup when a provider or sandbox key is missing."""
        missing: list[str] = []
        if not self.api_key:
            missing.append("DESKTOP_AGENT_API_KEY (or OPENCODE_ZEN_API_KEY)")
        if not self.e2b_api_key:
            missing.append("E2B_API_KEY")
        if missing:
            raise ApiKeyNotConfiguredError(f"Missing credentials: {', '.join(missing)}")


def load_settings(**overrides: object) -> Settings:
    """Load settings from the environment and ``.env``, applying non-empty overrides."""
    settings = Settings()
    updates = {key: value for key, value in overrides.items() if value is not None}
    if updates:
        settings = settings.model_copy(update=updates)
    return settings
