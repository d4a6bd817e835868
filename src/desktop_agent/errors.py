"""Application-level exception types for desktop-agent."""

from __future__ import annotations


class DesktopAgentError(Exception):
    """Base exception for desktop-agent."""


class ConfigurationError(DesktopAgentError):
    """Base exception for configuration and startup validation errors."""


class ApiKeyNotConfiguredError(ConfigurationError):
    """Raised when a provider or sandbox credential is required but missing."""


class NotInitializedError(DesktopAgentError):
    """Raised when a session-dependent operation runs without a live sandbox session."""


class SandboxError(DesktopAgentError):
    """Raised when the remote desktop sandbox fails."""


class ProviderError(DesktopAgentError):
    """Raised when the completion provider fails."""


class UnknownActionError(DesktopAgentError):
    """Raised when an action name is outside the supported vocabulary.

    The executor catches it and reports it back to the model as data.
    """

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class OpencodeError(DesktopAgentError):
    """Raised when the OpenCode control server cannot satisfy a request."""
