"""
Slack Agent CLI.

Runs the server and offers a few maintenance commands for the session store.
"""

import math

import typer
from rich.console import Console

from slackagent.config import Settings
from slackagent.logging_config import setup_logging
from slackagent.sessions import SessionStore

app = typer.Typer(
    name="slackagent",
    help="Slack Agent - Claude agent sessions for Slack threads",
    no_args_is_help=True,
)
sessions_app = typer.Typer(help="Inspect and maintain the session store")
app.add_typer(sessions_app, name="sessions")

console = Console()


def _open_store(settings: Settings) -> SessionStore:
    try:
        setup_logging(settings, context="cli")
    except PermissionError:
        import logging

        logging.basicConfig(level=logging.INFO)

    store = SessionStore.from_settings(settings)
    store.initialize()
    return store


@app.command()
def serve(
    host: str = typer.Option(None, help="Host to bind to (default: API_HOST)"),
    port: int = typer.Option(None, help="Port to bind to (default: API_PORT)"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """
    Start the Slack events server.

    Slack should be configured to send Events API callbacks to /slack/events.
    """
    import uvicorn

    settings = Settings()
    missing = settings.missing_credentials()
    if missing:
        console.print(
            "[bold red]Error:[/bold red] Missing required environment variables: "
            + ", ".join(missing)
        )
        raise typer.Exit(1)

    host = host or settings.api_host
    port = port or settings.api_port

    console.print("[bold green]Starting Slack Agent server...[/bold green]")
    console.print(f"  Host: {host}")
    console.print(f"  Port: {port}")
    console.print(f"  Reload: {reload}")
    console.print(f"  Session store: {settings.database_path}")
    console.print(f"\n  Slack events URL: http://{host}:{port}/slack/events")

    uvicorn.run(
        "slackagent.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        # Leave room for in-flight turns to drain
        timeout_graceful_shutdown=math.ceil(settings.shutdown_grace_seconds) + 5,
    )


@sessions_app.command("stats")
def sessions_stats() -> None:
    """Show how many sessions are stored and how many were active in the last hour."""
    settings = Settings()
    store = _open_store(settings)
    try:
        stats = store.get_stats()
    finally:
        store.close()

    console.print(f"[bold]Session store:[/bold] {settings.database_path}")
    console.print(f"  Total sessions: {stats.total_sessions}")
    console.print(f"  Active (last hour): {stats.active_sessions}")


@sessions_app.command("cleanup")
def sessions_cleanup() -> None:
    """Evict sessions inactive for longer than SESSION_TTL_HOURS."""
    settings = Settings()
    store = _open_store(settings)
    try:
        evicted = store.evict_expired()
    finally:
        store.close()

    console.print(
        f"[green]✓ Evicted {evicted} session(s)[/green] "
        f"inactive for more than {settings.session_ttl_hours:g} hour(s)"
    )


@sessions_app.command("delete")
def sessions_delete(
    session_key: str = typer.Argument(..., help="Session key, e.g. T123-C456-1700000000.000100"),
) -> None:
    """Forget a conversation so its next message starts a new agent session."""
    settings = Settings()
    store = _open_store(settings)
    try:
        if not store.exists(session_key):
            console.print(f"[yellow]Session not found:[/yellow] {session_key}")
            raise typer.Exit(1)
        store.delete(session_key)
    finally:
        store.close()

    console.print(f"[green]✓ Deleted session[/green] {session_key}")


if __name__ == "__main__":
    app()
