"""desktop-agent - drive a remote desktop with a vision model."""

from .agent import ComputerUseAgent, create_agent
from .config import Settings, load_settings
from .executor import ActionExecutor
from .opencode import OpencodeController

__version__ = "0.1.0"

__all__ = [
    "ActionExecutor",
    "ComputerUseAgent",
    "OpencodeController",
    "Settings",
    "create_agent",
    "load_settings",
]
