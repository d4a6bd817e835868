"""Environment and connectivity checks."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from .config import Settings
from .errors import DesktopAgentError
from .provider import CompletionProvider
from .sandbox import DesktopSession

PING_PROMPT = "Say 'Connection successful' in exactly 2 words."
PING_MAX_TOKENS = 100


@dataclass(frozen=True)
class CheckResult:
    name: str
    ok: bool
    detail: str = ""


@dataclass(frozen=True)
class DiagnosticReport:
    checks: tuple[CheckResult, ...]

    @property
    def ok(self) -> bool:
        return all(check.ok for check in self.checks)

    def get(self, name: str) -> CheckResult | None:
        return next((check for check in self.checks if check.name == name), None)


def check_environment(settings: Settings) -> list[CheckResult]:
    return [
        CheckResult("provider_api_key", bool(settings.api_key), "set" if settings.api_key else "not set"),
        CheckResult("e2b_api_key", bool(settings.e2b_api_key), "set" if settings.e2b_api_key else "not set"),
    ]


def check_provider(provider: CompletionProvider) -> CheckResult:
    try:
        response = provider.create(
            system="You are a connectivity probe.",
            messages=[{"role": "user", "content": PING_PROMPT}],
            max_tokens=PING_MAX_TOKENS,
        )
    except DesktopAgentError as exc:
        return CheckResult("provider", False, str(exc))
    return CheckResult("provider", True, response.text.strip() or "(empty response)")


def check_sandbox(session_factory: Callable[[], DesktopSession]) -> CheckResult:
    try:
        session = session_factory()
        session_id = session.session_id
        session.kill()
    except DesktopAgentError as exc:
        return CheckResult("sandbox", False, str(exc))
    return CheckResult("sandbox", True, f"session {session_id}")


def run_diagnostics(
    settings: Settings,
    *,
    provider: CompletionProvider | None = None,
    session_factory: Callable[[], DesktopSession] | None = None,
) -> DiagnosticReport:
    """Check credentials, then provider and sandbox connectivity."""
    provider = provider or CompletionProvider.from_settings(settings)
    session_factory = session_factory or (
        lambda: DesktopSession.create(api_key=settings.e2b_api_key, timeout=settings.sandbox_timeout)
    )
    checks = check_environment(settings)
    checks.append(check_provider(provider))
    checks.append(check_sandbox(session_factory))
    for check in checks:
        logger.info("diagnostics.check name={} ok={} detail={}", check.name, check.ok, check.detail)
    return DiagnosticReport(checks=tuple(checks))
