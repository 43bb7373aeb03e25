"""Real-time CLI dashboard for proxy monitoring."""

from datetime import datetime
from threading import Lock

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.config import Config
from core.request_types import ProxyEvent
from ui.log_utils import describe_event, redact_url, write_cli_log, write_event_log

console = Console()


class EventInfo:
    """Display row for a single proxy event."""

    def __init__(self, event: ProxyEvent, timestamp: datetime):
        self.method = event.method
        url = redact_url(event.url)
        self.url = url[:80] + "..." if len(url) > 80 else url
        self.status = str(event.status) if event.status is not None else "ERR"
        self.detail = event.error or event.status_text or ""
        self.client_ip = event.client_ip or "-"
        self.is_error = event.error is not None
        self.timestamp = timestamp


class Dashboard:
    """Real-time dashboard showing non-200 upstream responses and proxy errors."""

    def __init__(self, config: Config):
        self.config = config
        self._lock = Lock()
        self._events: list[EventInfo] = []
        self._max_events = 12
        self._counts = {"upstream": 0, "errors": 0, "warnings": 0}
        self._warnings: list[str] = []
        self._live: Live | None = None

    def start(self) -> "Dashboard":
        """Start the live dashboard."""
        self._live = Live(
            self._build_layout(),
            console=console,
            refresh_per_second=4,
            screen=False,
        )
        self._live.start()
        return self

    def stop(self) -> None:
        """Stop the live dashboard."""
        if self._live:
            self._live.stop()

    def record(self, event: ProxyEvent) -> None:
        """Record a non-200 response or a failed request."""
        with self._lock:
            info = EventInfo(event, timestamp=datetime.now())
            self._counts["errors" if info.is_error else "upstream"] += 1
            self._events.insert(0, info)
            self._events = self._events[: self._max_events]

            write_event_log(event)
            write_cli_log("ERROR" if info.is_error else "UPSTREAM", describe_event(event))

            self._refresh()

    def log_error(self, route: str, status: int, message: str) -> None:
        """Log a non-fatal problem such as an unrewritable redirect."""
        with self._lock:
            self._counts["warnings"] += 1
            truncated = message[:60] + "..." if len(message) > 60 else message
            self._warnings.insert(0, f"{route}: {truncated}")
            self._warnings = self._warnings[:3]
            self._refresh()
            write_cli_log("ERROR", message[:200], route=route, status=status)

    def _refresh(self) -> None:
        """Refresh the display."""
        if self._live:
            self._live.update(self._build_layout())

    def _build_layout(self) -> Layout:
        """Build the dashboard layout."""
        layout = Layout()

        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="events"),
            Layout(name="footer", size=5),
        )

        layout["header"].update(self._build_header())
        layout["events"].update(self._build_events_panel())
        layout["footer"].update(self._build_footer())

        return layout

    def _build_header(self) -> Panel:
        """Build header with stats."""
        stats = Text()
        stats.append("Path Rewrite Proxy", style="bold cyan")
        stats.append("  |  ")
        stats.append(f"Non-200: {self._counts['upstream']}", style="yellow")
        stats.append("  |  ")
        stats.append(f"Errors: {self._counts['errors']}", style="red")
        stats.append("  |  ")
        stats.append(f"Warnings: {self._counts['warnings']}", style="magenta")
        stats.append("  |  ")
        stats.append(f"Port: {self.config.proxy.port}", style="dim")

        return Panel(stats, style="cyan")

    def _build_events_panel(self) -> Panel:
        """Build recent events panel."""
        if self._events:
            table = Table(show_header=True, header_style="bold", expand=True, box=None)
            table.add_column("Time", style="dim", width=8)
            table.add_column("Method", width=7)
            table.add_column("Status", width=6)
            table.add_column("URL", ratio=3)
            table.add_column("Detail", ratio=1)
            table.add_column("Client", width=15)

            for ev in self._events:
                table.add_row(
                    ev.timestamp.strftime("%H:%M:%S"),
                    ev.method,
                    Text(ev.status, style="red" if ev.is_error else "yellow"),
                    ev.url,
                    ev.detail[:40] + "..." if len(ev.detail) > 40 else ev.detail,
                    ev.client_ip,
                )

            content = table
        else:
            content = Text("No events yet...", style="dim")

        return Panel(content, title="[yellow]Recent Events[/yellow]", border_style="yellow")

    def _build_footer(self) -> Panel:
        """Build footer with warnings and help."""
        if self._warnings:
            warning_text = Text()
            for warning in self._warnings:
                warning_text.append("! ", style="magenta bold")
                warning_text.append(warning + "\n", style="magenta")
            content = warning_text
        else:
            content = Text(
                f"Browse http://localhost:{self.config.proxy.port}/<host>/<path> to proxy a site",
                style="dim",
            )

        return Panel(content, title="[dim]Status[/dim]", border_style="dim")
