import click
import os
import sys
from rich.console import Console
from rich.panel import Panel
from rich.text import Text
import logging
import asyncio
import uvicorn
from focus_voyage.config.logging_config import setup_logging
from focus_voyage.config.settings import settings
from focus_voyage.services.database import SQLiteStore
from focus_voyage.services.display import TerminalDisplay

# Set up logging
logger = logging.getLogger(__name__)

# Initialize console
console = Console()

@click.group()
@click.option('--debug', is_flag=True, help='Enable debug output')
@click.option('--db', 'db_path', default=None, help='SQLite database path')
@click.pass_context
def cli(ctx, debug, db_path):
    """Focus Voyage session controller"""
    # Set up logging before anything else
    setup_logging(debug=debug)
    ctx.ensure_object(dict)
    ctx.obj['db_path'] = db_path or settings.DEFAULT_DB_PATH

@cli.command()
@click.option('--destination', required=True, help='Destination (goal) this voyage heads to')
@click.option('--owner', required=True, help='Owner id')
@click.option('--minutes', type=click.IntRange(min=1), default=None, help='Planned duration in minutes')
@click.option('--goal', default=None, help='Goal text for the content classifier')
@click.option('--no-screen', is_flag=True, help='Disable screen content relevance checks')
@click.pass_context
def run(ctx, destination, owner, minutes, goal, no_screen):
    """Start a focus session and watch for distractions"""
    from focus_voyage.services.runner import run_session

    try:
        settings.validate_paths()
        display = TerminalDisplay(console)
        console.print(
            f"[yellow]Setting sail for {destination}...[/yellow] "
            "[dim]Press Enter when active, type 'quit' to end.[/dim]"
        )
        session = run_session(
            destination_id=destination,
            owner_id=owner,
            store=SQLiteStore(ctx.obj['db_path']),
            planned_minutes=minutes,
            goal=goal,
            use_screen=not no_screen,
            display=display,
        )
        if session is not None:
            display.show_summary(session)
    except Exception as e:
        logger.error(f"Failed to run session: {e}", exc_info=True)
        console.print(f"[red]Failed to run session: {e}[/red]")
        sys.exit(1)

@cli.command()
@click.option('--owner', required=True, help='Owner id')
@click.pass_context
def history(ctx, owner):
    """Show completed sessions"""
    try:
        store = SQLiteStore(ctx.obj['db_path'])
        sessions = asyncio.run(store.list_completed_sessions(owner))

        if not sessions:
            console.print("[yellow]No completed voyages found[/yellow]")
            return

        console.print(TerminalDisplay(console).sessions_table(sessions))

    except Exception as e:
        logger.error(f"Failed to load history: {e}")
        console.print(f"[red]Error loading history: {e}[/red]")
        sys.exit(1)

@cli.command()
@click.argument('session_id')
@click.pass_context
def events(ctx, session_id):
    """Show the distraction events of a session"""
    try:
        store = SQLiteStore(ctx.obj['db_path'])
        session = asyncio.run(store.get_session(session_id))
        if session is None:
            console.print(f"[yellow]Session {session_id} not found[/yellow]")
            sys.exit(1)

        session_events = asyncio.run(store.list_session_events(session_id))
        if not session_events:
            console.print("[green]No distractions recorded, smooth sailing[/green]")
            return

        console.print(TerminalDisplay(console).events_table(session_events))

    except Exception as e:
        logger.error(f"Failed to load events: {e}")
        console.print(f"[red]Error loading events: {e}[/red]")
        sys.exit(1)

@cli.command()
@click.pass_context
def stats(ctx):
    """Show database statistics"""
    try:
        stats = SQLiteStore(ctx.obj['db_path']).get_database_stats()

        lines = Text()
        for table_name, info in stats['tables'].items():
            lines.append(f"{table_name}: ", style="cyan")
            lines.append(f"{info['row_count']} rows, {info['index_count']} indexes\n")
        lines.append(f"Sessions: {stats['time_range']['total_sessions']}\n", style="yellow")
        lines.append(f"Database Size: {stats['database_size_mb']:.1f}MB", style="green")
        console.print(Panel(lines, title="Database"))

    except Exception as e:
        logger.error(f"Failed to get database stats: {e}")
        sys.exit(1)

@cli.command()
@click.option('--host', default=settings.WEB_HOST, help='Host to bind to')
@click.option('--port', default=settings.WEB_PORT, help='Port to bind to')
@click.option('--reload', is_flag=True, help='Enable auto-reload')
@click.pass_context
def web(ctx, host: str, port: int, reload: bool):
    """Serve the read-only HTTP API"""
    from focus_voyage.web.app import configure_store

    db_path = str(ctx.obj['db_path'])
    # Reload workers import the app afresh and read the path from the environment
    os.environ['DEFAULT_DB_PATH'] = db_path
    configure_store(db_path)
    click.echo(f"Starting web interface on http://{host}:{port}")
    uvicorn.run(
        "focus_voyage.web.app:app",
        host=host,
        port=port,
        reload=reload
    )

if __name__ == '__main__':
    cli()
