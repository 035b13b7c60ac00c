from typing import Callable, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from focus_voyage.models.events import DistractionEvent, SignalType
from focus_voyage.models.session import Session, SessionSnapshot, SessionStatus
from focus_voyage.services.clock import PrecisionClock

SIGNAL_LABELS = {
    SignalType.TAB_SWITCH: "🪟 attention lost",
    SignalType.IDLE: "💤 idle",
    SignalType.CONTENT_IRRELEVANT: "📺 off-goal content",
    SignalType.PRESENCE_ABSENCE: "🚶 away from desk",
    SignalType.BLACKLISTED_CONTENT: "🚫 blacklisted site",
}

STATUS_STYLES = {
    SessionStatus.ACTIVE: "bold green",
    SessionStatus.COMPLETED: "bold cyan",
    SessionStatus.ABANDONED: "bold red",
}


def signal_label(signal_type: Optional[SignalType]) -> str:
    if signal_type is None:
        return "-"
    return SIGNAL_LABELS.get(signal_type, signal_type.value)


class StatusLine:
    """Live one-line status, re-rendered by rich on every refresh"""

    def __init__(self, snapshot: Callable[[], SessionSnapshot], destination: str):
        self.snapshot = snapshot
        self.destination = destination

    def __rich__(self) -> Text:
        snapshot = self.snapshot()
        line = Text()
        line.append(f"⛵ {self.destination} ", style="bold cyan")
        line.append(PrecisionClock.format(snapshot.elapsed_ms), style="bold white")
        line.append(f"  distractions: {snapshot.distraction_count}", style="yellow")
        if snapshot.exploring:
            line.append("  exploring (detection paused)", style="magenta")
        elif snapshot.is_currently_distracted:
            line.append("  drifting off course", style="bold red")
        else:
            line.append("  on course", style="green")
        return line


class TerminalDisplay:
    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def show_summary(self, session: Session):
        """Print the end-of-session summary panel"""
        stats = session.statistics
        style = STATUS_STYLES.get(session.status, "bold")

        summary = Text()
        summary.append(f"Voyage {session.status.value}\n", style=style)
        summary.append(f"Destination: {session.destination_id}\n", style="dim")
        summary.append(f"Duration: {PrecisionClock.format_text(session.actual_duration_ms or 0)}\n")
        summary.append(f"Distractions: {session.distraction_count}\n")
        if stats is not None:
            summary.append(f"Focus quality: {stats.focus_quality}%\n", style="bold green")
            summary.append(f"Most common: {signal_label(stats.most_common_type)}\n")
            summary.append(
                f"Average distraction: {PrecisionClock.format_text(stats.average_duration_ms)}\n"
            )
            if session.planned_duration_minutes:
                summary.append(f"Completed: {stats.completion_percentage}% of plan\n")
        if session.is_local:
            summary.append("Saved locally only, the store was unavailable\n", style="yellow")
        elif not session.synced:
            summary.append("Final state could not be saved\n", style="yellow")

        self.console.print(Panel(summary, title="📊 Voyage Summary", expand=False))

    def sessions_table(self, sessions: List[Session]) -> Table:
        table = Table(title="Completed Voyages")
        table.add_column("Started", style="cyan")
        table.add_column("Destination", style="green")
        table.add_column("Duration", justify="right")
        table.add_column("Distractions", justify="right", style="yellow")
        table.add_column("Focus", justify="right", style="bold")

        for session in sessions:
            focus = f"{session.statistics.focus_quality}%" if session.statistics else "-"
            table.add_row(
                session.created_at.strftime("%Y-%m-%d %H:%M"),
                session.destination_id,
                PrecisionClock.format(session.actual_duration_ms or 0),
                str(session.distraction_count),
                focus,
            )
        return table

    def events_table(self, events: List[DistractionEvent]) -> Table:
        table = Table(title="Distraction Events")
        table.add_column("Detected", style="cyan")
        table.add_column("Signal", style="yellow")
        table.add_column("Duration", justify="right")
        table.add_column("Response", style="magenta")

        for event in events:
            duration = (
                PrecisionClock.format_text(event.duration_ms)
                if event.resolved and event.duration_ms is not None else "ongoing"
            )
            table.add_row(
                event.detected_wall_time.strftime("%H:%M:%S"),
                signal_label(event.signal_type),
                duration,
                event.user_response.value if event.user_response else "-",
            )
        return table

    def alert(self, snapshot: SessionSnapshot, console: Optional[Console] = None):
        (console or self.console).print(
            f"[bold red]⚠ Distraction #{snapshot.distraction_count} detected.[/bold red] "
            "[dim]Type 'returned', 'exploring' or 'ignored'.[/dim]"
        )
