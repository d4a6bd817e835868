"""CLI renderer for desktop-agent."""

from __future__ import annotations

from prompt_toolkit import PromptSession
from rich.console import Console
from rich.table import Table

from ..diagnostics import DiagnosticReport


class Renderer:
    """CLI renderer using Rich for terminal output."""

    def __init__(self, console: Console | None = None) -> None:
        self.console: Console = console or Console()
        self._prompt_session: PromptSession[str] | None = None

    def info(self, message: str) -> None:
        """Render an info message."""
        self.console.print(message)

    def error(self, message: str) -> None:
        """Render an error message."""
        self.console.print(f"[bold red]Error:[/bold red] {message}")

    def welcome(self, message: str = "[bold blue]Desktop Agent[/bold blue] - type 'exit' to quit.") -> None:
        """Render welcome message."""
        self.console.print(message)

    def usage_info(self, *, session_id: str | None = None, model: str = "", tools: list[str] | None = None) -> None:
        """Render sandbox, model and tool information."""
        if session_id:
            self.console.print(f"[bold]Sandbox:[/bold] [cyan]{session_id}[/cyan]")
        if model:
            self.console.print(f"[bold]Model:[/bold] [magenta]{model}[/magenta]")
        if tools:
            self.console.print(f"[bold]Available tools:[/bold] [green]{', '.join(tools)}[/green]")

    def user_message(self, message: str) -> None:
        """Render user message."""
        self.console.print(f"[bold cyan]You:[/bold cyan] {message}")

    def assistant_message(self, message: str) -> None:
        """Render assistant message."""
        self.console.print(f"[bold yellow]Agent:[/bold yellow] {message}")

    def diagnostics(self, report: DiagnosticReport) -> None:
        """Render a diagnostic report as a table."""
        table = Table(title="Diagnostics")
        table.add_column("Check")
        table.add_column("Status")
        table.add_column("Detail")
        for check in report.checks:
            status = "[green]ok[/green]" if check.ok else "[red]failed[/red]"
            table.add_row(check.name, status, check.detail)
        self.console.print(table)
        if report.ok:
            self.console.print("[green]All systems operational.[/green]")
        else:
            self.console.print("[yellow]Some systems need attention.[/yellow]")

    def get_user_input(self, prompt: str = "You: ") -> str:
        """Prompt user for input."""
        if self._prompt_session is None:
            self._prompt_session = PromptSession()
        return self._prompt_session.prompt(prompt)
