"""Shared fixtures: fake transport and event sink, isolated log files."""

from collections.abc import AsyncIterator

import httpx
import pytest

from core.request_types import OutboundRequest, OutboundResponse, ProxyEvent, TargetLocator
from ui import log_utils


class RecordingSink:
    """Event sink that keeps everything in memory."""

    def __init__(self) -> None:
        self.events: list[ProxyEvent] = []
        self.errors: list[tuple[str, int, str]] = []

    def record(self, event: ProxyEvent) -> None:
        self.events.append(event)

    def log_error(self, route: str, status: int, message: str) -> None:
        self.errors.append((route, status, message))


class FakeTransport:
    """Transport returning a canned response and remembering what it was sent."""

    def __init__(
        self,
        status_code: int = 200,
        headers: list[tuple[str | bytes, str | bytes]] | dict[str, str] | None = None,
        body: bytes = b"",
        reason_phrase: str = "OK",
        encoding: str | None = None,
        error: Exception | None = None,
        stream_error: Exception | None = None,
    ) -> None:
        self.status_code = status_code
        self.headers = headers or {}
        self.body = body
        self.reason_phrase = reason_phrase
        self.encoding = encoding
        self.error = error
        self.stream_error = stream_error
        self.requests: list[OutboundRequest] = []
        self.sent_bodies: list[bytes | None] = []
        self.closed = 0

    async def send(self, request: OutboundRequest) -> OutboundResponse:
        self.requests.append(request)
        if request.body is None:
            self.sent_bodies.append(None)
        else:
            self.sent_bodies.append(b"".join([chunk async for chunk in request.body]))
        if self.error is not None:
            raise self.error

        body = self.body
        stream_error = self.stream_error

        async def stream() -> AsyncIterator[bytes]:
            yield body
            if stream_error is not None:
                raise stream_error

        async def close() -> None:
            self.closed += 1

        return OutboundResponse(
            status_code=self.status_code,
            reason_phrase=self.reason_phrase,
            headers=httpx.Headers(self.headers),
            body=stream(),
            encoding=self.encoding,
            close=close,
        )


@pytest.fixture(autouse=True)
def isolated_logs(tmp_path, monkeypatch):
    """Keep log output out of the working directory."""
    log_root = tmp_path / "logs"
    monkeypatch.setattr(log_utils, "LOG_ROOT", log_root)
    monkeypatch.setattr(log_utils, "CLI_LOG_FILE", log_root / "proxy.log")
    monkeypatch.setattr(log_utils, "EVENT_LOG_FILE", log_root / "events.jsonl")
    return log_root


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def target():
    return TargetLocator(scheme="https", host="foo.com", path="/", query="")


async def collect(stream: AsyncIterator[bytes]) -> bytes:
    return b"".join([chunk async for chunk in stream])
