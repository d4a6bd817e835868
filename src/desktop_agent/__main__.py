"""desktop-agent CLI entrypoint."""

from desktop_agent.cli import app

if __name__ == "__main__":
    app()
