"""Shared protocol definitions."""

from typing import Protocol

from core.request_types import OutboundRequest, OutboundResponse, ProxyEvent


class EventSink(Protocol):
    """Protocol for request event logging (Dashboard, log files)."""

    def record(self, event: ProxyEvent) -> None: ...
    def log_error(self, route: str, status: int, message: str) -> None: ...


class Transport(Protocol):
    """Protocol for the outbound HTTP client.

    Implementations never follow redirects and raise ``UpstreamUnreachable``
    when the target cannot be reached, including while streaming the body.
    """

    async def send(self, request: OutboundRequest) -> OutboundResponse: ...
