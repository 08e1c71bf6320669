"""
CLI tool for the chat server.

Provides commands for running the server and viewing which chat events
have registered handlers.
"""

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from halotalk.constants import CLIENT_EVENTS, ChatEvent
from halotalk.routing import event_router

typer_app = typer.Typer(
    name="halotalk",
    help="HaloTalk chat server CLI",
    add_completion=False,
)
console = Console()


@typer_app.command(name="serve")
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address (default: HOST)"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port (default: PORT)"),
):
    """
    Run the chat server.

    Example:
        python cli.py serve --port 3000
    """
    from run_server import main

    main(host=host, port=port)


@typer_app.command(name="ws-events")
def ws_events():
    """
    Display a table of client events and their registered handlers.

    Example:
        python cli.py ws-events
    """
    # Importing the consumer registers every handler
    import halotalk.api.ws.consumers.chat  # noqa: F401

    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Registered Chat Event Handlers[/bold cyan]",
            border_style="cyan",
        )
    )
    console.print()

    table = Table(
        "Event",
        "Handler Path",
        title="Chat Event Handlers Registry",
        show_lines=True,
    )

    missing_handlers = []

    for event in ChatEvent:
        if event not in CLIENT_EVENTS:
            continue

        handler = event_router.handlers_registry.get(event)
        if not handler:
            table.add_row(
                f"[dim]{event.value}[/dim]", "[red]No handler registered[/red]"
            )
            missing_handlers.append(event.value)
            continue

        table.add_row(
            f"[green]{event.value}[/green]",
            f"{handler.__module__}.[yellow]{handler.__name__}[/yellow]",
        )

    console.print(table)
    console.print()

    total = len(CLIENT_EVENTS)
    registered = total - len(missing_handlers)
    console.print(f"[bold]Summary:[/bold] {registered}/{total} handlers registered")

    if missing_handlers:
        console.print(
            "[yellow]⚠[/yellow] Missing handlers for:",
            ", ".join(f"[cyan]{h}[/cyan]" for h in missing_handlers),
        )
        raise typer.Exit(code=1)
    console.print()


if __name__ == "__main__":
    typer_app()
