"""CLI commands for intentkeeper."""

import asyncio
import sys
import uuid

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from intentkeeper import __logo__, __version__

app = typer.Typer(
    name="intentkeeper",
    help=f"{__logo__} intentkeeper - curate reusable NLU intents from live chat",
    no_args_is_help=True,
)

console = Console()
EXIT_COMMANDS = {"exit", "quit", "/exit", "/quit", ":q"}


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def version_callback(value: bool) -> None:
    if value:
        console.print(f"{__logo__} intentkeeper v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(None, "--version", "-v", callback=version_callback, is_eager=True),
) -> None:
    """intentkeeper - curate reusable NLU intents from live chat."""


# ============================================================================
# Serve (FastAPI + WebSocket)
# ============================================================================


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind host (default from settings)"),
    port: int = typer.Option(None, "--port", "-p", help="Bind port (default from settings)"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
):
    """Start the chat server: WebSocket transport plus the inspection API."""
    import uvicorn

    from intentkeeper.settings import get_settings

    settings = get_settings()
    _configure_logging(settings.log_level)
    host = host or settings.host
    port = port or settings.port

    console.print(f"{__logo__} Starting intentkeeper on {host}:{port} ...")
    console.print(f"  Chat:    ws://localhost:{port}/ws")
    console.print(f"  Logs:    http://localhost:{port}/api/logs")
    console.print(f"  Intents: http://localhost:{port}/api/intents")
    uvicorn.run(
        "intentkeeper.api.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


# ============================================================================
# Interactive chat
# ============================================================================


@app.command()
def chat(
    session_id: str = typer.Option(None, "--session", "-s", help="Session ID (random by default)"),
    logs: bool = typer.Option(False, "--logs/--no-logs", help="Show pipeline logs during chat"),
):
    """Chat through the full pipeline from the terminal."""
    from intentkeeper.agent.handler import MessageHandler
    from intentkeeper.settings import get_settings

    settings = get_settings()
    _configure_logging(settings.log_level)
    if logs:
        logger.enable("intentkeeper")
    else:
        logger.disable("intentkeeper")

    handler = MessageHandler.from_settings(settings)
    session_id = session_id or f"cli-{uuid.uuid4().hex[:8]}"
    console.print(f"{__logo__} Interactive mode (session {session_id}, type [bold]exit[/bold] to quit)\n")

    async def run_interactive() -> None:
        try:
            while True:
                try:
                    text = await asyncio.to_thread(console.input, "[bold blue]You:[/bold blue] ")
                except (EOFError, KeyboardInterrupt):
                    break
                if text.strip().lower() in EXIT_COMMANDS:
                    break
                if not text.strip():
                    continue
                reply = await handler.handle(session_id, text)
                console.print(f"[bold green]Bot:[/bold green] {reply.text}")
                console.print(
                    f"[dim]intent={reply.intent} confidence={reply.confidence:.2f} "
                    f"score={reply.reusability_score} action={reply.action_taken}[/dim]\n"
                )
        finally:
            handler.end_session(session_id)

    asyncio.run(run_interactive())
    console.print("Goodbye!")


# ============================================================================
# Status
# ============================================================================


@app.command()
def status():
    """Show settings and probe the NLU engine."""
    from intentkeeper.nl.dialogflow import DialogflowEngine
    from intentkeeper.settings import get_settings

    settings = get_settings()
    _configure_logging("ERROR")

    table = Table(title=f"{__logo__} intentkeeper status")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("Dialogflow project", settings.dialogflow_project_id or "[red]not set[/red]")
    table.add_row("Arbiter model", settings.judge_model)
    table.add_row("Arbiter API key", "[green]✓[/green]" if settings.judge_api_key else "[dim]not set[/dim]")
    table.add_row("Reusability threshold", str(settings.reusability_threshold))
    table.add_row("Metadata file", str(settings.metadata_path))
    table.add_row("Intent write lock", "on" if settings.serialize_intent_writes else "off")
    console.print(table)

    result = asyncio.run(DialogflowEngine.from_settings(settings).check_connection())
    if result.ok:
        console.print("Dialogflow: [green]connected[/green]")
    else:
        console.print(f"Dialogflow: [red]error[/red] {result.error}")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
