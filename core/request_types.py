"""Shared request data types."""

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx

from core.exceptions import ProxyError

CloseCallback = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class InboundRequest:
    """The request as it reached the proxy."""

    method: str
    scheme: str
    proxy_host: str
    path: str
    query: str
    headers: httpx.Headers
    body: AsyncIterator[bytes] | None = None
    client_host: str | None = None

    @property
    def url(self) -> str:
        url = f"{self.scheme}://{self.proxy_host}{self.path}"
        return f"{url}?{self.query}" if self.query else url


@dataclass(frozen=True)
class TargetLocator:
    """Resolved destination of a proxied request."""

    scheme: str
    host: str
    path: str = "/"
    query: str = ""

    @property
    def url(self) -> str:
        url = f"{self.scheme}://{self.host}{self.path}"
        return f"{url}?{self.query}" if self.query else url


@dataclass(frozen=True)
class OutboundRequest:
    """Prepared data for an upstream request."""

    method: str
    target: TargetLocator
    headers: httpx.Headers
    body: AsyncIterator[bytes] | None = None


@dataclass
class OutboundResponse:
    """Response received from the target, body not yet consumed."""

    status_code: int
    reason_phrase: str
    headers: httpx.Headers
    body: AsyncIterator[bytes]
    encoding: str | None = None
    close: CloseCallback | None = None

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    async def read(self) -> bytes:
        """Buffer the whole body."""
        return b"".join([chunk async for chunk in self.body])

    async def aclose(self) -> None:
        if self.close is not None:
            await self.close()


@dataclass
class InboundResponse:
    """Response handed back to the proxy's caller.

    Exactly one of ``content`` (buffered, rewritten) or ``stream``
    (pass-through) is set.
    """

    status_code: int
    reason_phrase: str
    headers: httpx.Headers
    content: bytes | None = None
    stream: AsyncIterator[bytes] | None = None
    close: CloseCallback | None = None


@dataclass(frozen=True)
class ProxyEvent:
    """A single non-200 response or failure, as handed to the event sink."""

    url: str
    method: str
    status: int | None = None
    status_text: str | None = None
    error: str | None = None
    client_ip: str | None = None
    user_agent: str | None = None
    referer: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"timestamp": self.timestamp, "url": self.url}
        if self.error is not None:
            payload["error"] = self.error
        else:
            payload["status"] = self.status
            payload["statusText"] = self.status_text
        payload.update(
            method=self.method,
            clientIP=self.client_ip,
            userAgent=self.user_agent,
            referer=self.referer,
        )
        return payload


@dataclass(frozen=True)
class Ok:
    """Pipeline produced a response."""

    response: InboundResponse
    target: TargetLocator


@dataclass(frozen=True)
class Err:
    """Pipeline failed; the handler maps ``error`` to an error response."""

    error: ProxyError


ProxyOutcome = Ok | Err
