"""Shared logging utilities."""

import json
import shutil
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from core.protocols import EventSink
from core.request_types import ProxyEvent

LOG_ROOT = Path.cwd() / "logs"
CLI_LOG_FILE = LOG_ROOT / "proxy.log"
EVENT_LOG_FILE = LOG_ROOT / "events.jsonl"

# Query parameters whose values never reach the log files
_SENSITIVE_PARAMS = ("token", "key", "secret", "password", "auth", "sig")


def write_cli_log(
    level: str,
    message: str,
    *,
    log_file: Path | None = None,
    **extra: Any,
) -> None:
    """Append a line to the rolling CLI log file."""
    log_file = log_file or CLI_LOG_FILE
    log_file.parent.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
    extra_str = " ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""
    line = f"[{timestamp}] {level}: {message}"
    if extra_str:
        line += f" {extra_str}"
    line += "\n"
    with log_file.open("a") as f:
        f.write(line)


def write_event_log(event: ProxyEvent, *, log_file: Path | None = None) -> Path:
    """Append a single proxy event as a JSON line."""
    log_file = log_file or EVENT_LOG_FILE
    log_file.parent.mkdir(parents=True, exist_ok=True)
    payload = event.to_dict()
    payload["url"] = redact_url(event.url)
    with log_file.open("a") as f:
        f.write(json.dumps(payload, default=str) + "\n")
    return log_file


def clear_logs(log_root: Path = LOG_ROOT) -> None:
    """Remove logs left over from a previous run."""
    if log_root.exists():
        shutil.rmtree(log_root, ignore_errors=True)


def redact_url(url: str) -> str:
    """Mask values of credential-looking query parameters."""
    base, sep, query = url.partition("?")
    if not sep:
        return url
    parts = []
    for pair in query.split("&"):
        name, eq, value = pair.partition("=")
        if eq and any(marker in name.lower() for marker in _SENSITIVE_PARAMS):
            value = _mask(value)
        parts.append(f"{name}{eq}{value}")
    return f"{base}?{'&'.join(parts)}"


def describe_event(event: ProxyEvent) -> str:
    """One-line summary used by the CLI log and the dashboard."""
    if event.error is not None:
        outcome = f"error={event.error}"
    else:
        outcome = f"{event.status} {event.status_text or ''}".rstrip()
    return f"{event.method} {redact_url(event.url)} -> {outcome}"


class FileEventSink:
    """Event sink that only writes the log files (headless mode)."""

    def record(self, event: ProxyEvent) -> None:
        write_event_log(event)
        write_cli_log("ERROR" if event.error else "UPSTREAM", describe_event(event))

    def log_error(self, route: str, status: int, message: str) -> None:
        write_cli_log("ERROR", message[:200], route=route, status=status)


class SafeEventSink:
    """Wrap a sink so that its failures never reach the request path."""

    def __init__(self, sink: EventSink) -> None:
        self._sink = sink

    def record(self, event: ProxyEvent) -> None:
        try:
            self._sink.record(event)
        except Exception as e:  # noqa: BLE001
            self._fallback("record", e)

    def log_error(self, route: str, status: int, message: str) -> None:
        try:
            self._sink.log_error(route, status, message)
        except Exception as e:  # noqa: BLE001
            self._fallback("log_error", e)

    def _fallback(self, operation: str, error: Exception) -> None:
        try:
            write_cli_log("ERROR", f"Event sink {operation} failed: {error}")
        except OSError:
            # Nowhere left to report to
            return


def _mask(value: str) -> str:
    if len(value) <= 10:
        return "***"
    return value[:6] + "..." + value[-4:]
