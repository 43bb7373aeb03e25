"""CLI entry point for path-proxy."""

import sys
from datetime import datetime

from rich.console import Console

from app import create_app
from core.config import CONFIG_FILE, load_config
from core.exceptions import ConfigurationError
from ui.dashboard import Dashboard
from ui.log_utils import CLI_LOG_FILE, EVENT_LOG_FILE, FileEventSink, clear_logs, write_cli_log

console = Console()


def main():
    """Main CLI entry point."""
    headless = False

    # Handle CLI arguments
    if len(sys.argv) > 1:
        arg = sys.argv[1]

        if arg == "--config":
            console.print(f"[bold]Config:[/bold] {CONFIG_FILE}")
            console.print(f"[bold]Log:[/bold] {CLI_LOG_FILE}")
            console.print(f"[bold]Events:[/bold] {EVENT_LOG_FILE}")
            return

        if arg in ("--help", "-h"):
            _print_help()
            return

        if arg == "--headless":
            headless = True
        else:
            console.print(f"[red][ERROR][/red] Unknown option: {arg}")
            _print_help()
            sys.exit(2)

    try:
        config = load_config()
    except ConfigurationError as e:
        console.print(f"[red][ERROR][/red] {e}")
        sys.exit(1)

    # Clear previous logs
    clear_logs()
    dashboard = None if headless else Dashboard(config)
    sink = dashboard or FileEventSink()

    import uvicorn

    app = create_app(config, sink)

    uvicorn_config = uvicorn.Config(
        app,
        host=config.proxy.host,
        port=config.proxy.port,
        log_level="warning",
        proxy_headers=True,
        forwarded_allow_ips=config.proxy.forwarded_allow_ips,
        timeout_keep_alive=config.limits.keep_alive_timeout,
    )
    server = uvicorn.Server(uvicorn_config)

    if dashboard:
        dashboard.start()
    else:
        console.print(
            f"[bold cyan]Path Rewrite Proxy[/bold cyan] listening on "
            f"http://{config.proxy.host}:{config.proxy.port} (events: {EVENT_LOG_FILE})"
        )
    start_time = datetime.now()
    write_cli_log("STARTUP", "Proxy started", port=config.proxy.port)
    try:
        server.run()
    finally:
        duration = datetime.now() - start_time
        write_cli_log("SHUTDOWN", "Proxy stopped", duration=str(duration))
        if dashboard:
            dashboard.stop()


def _print_help():
    """Print help message."""
    help_text = """
[bold cyan]Path Rewrite Proxy[/bold cyan]

Forwards /<host>/<path>?query to <scheme>://<host>/<path>?query and rewrites
redirects and HTML links so navigation stays on the proxy.

[bold]Usage:[/bold]
    path-proxy                 Start with live dashboard
    path-proxy --headless      Start without dashboard (events go to log files)
    path-proxy --config        Show config and log locations
    path-proxy --help          Show this help
"""
    console.print(help_text)


if __name__ == "__main__":
    main()
