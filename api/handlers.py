"""FastAPI route handlers."""

from collections.abc import AsyncIterator, Callable

import httpx
from fastapi import Request, Response
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from core.config import Config
from core.exceptions import InvalidTarget, MissingTarget, ProxyError
from core.headers import CORS_METHODS
from core.protocols import EventSink
from core.request_types import Err, InboundRequest, InboundResponse, ProxyEvent

ROBOTS_TXT = "User-agent: *\nDisallow: /"
PLAIN_TEXT = "text/plain;charset=utf-8"

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": CORS_METHODS,
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Max-Age": "86400",
}


async def handle_robots() -> Response:
    """Disallow all crawling of proxied content."""
    return Response(content=ROBOTS_TXT, status_code=200, media_type=PLAIN_TEXT)


async def handle_preflight() -> Response:
    """Answer every CORS preflight without contacting the target."""
    return Response(status_code=204, headers=PREFLIGHT_HEADERS)


async def handle_proxy(
    request: Request,
    config: Config,
    logger: EventSink,
) -> Response | StreamingResponse:
    """Forward the request to the target encoded in the path."""
    inbound = build_inbound_request(request)
    outcome = await request.app.state.proxy_service.handle(inbound)

    if isinstance(outcome, Err):
        error = outcome.error
        logger.record(
            _event(inbound, config, url=error.target_url or inbound.url, error=error.message)
        )
        return error_response(error)

    response = outcome.response
    target_url = outcome.target.url
    if response.status_code != 200:
        logger.record(
            _event(
                inbound,
                config,
                url=target_url,
                status=response.status_code,
                status_text=response.reason_phrase,
            )
        )

    def stream_failed(error: Exception) -> None:
        logger.record(_event(inbound, config, url=target_url, error=_describe(error)))

    try:
        return to_starlette_response(response, on_stream_error=stream_failed)
    except Exception as e:  # noqa: BLE001
        if response.close is not None:
            await response.close()
        error = ProxyError(_describe(e), target_url=target_url)
        logger.record(_event(inbound, config, url=target_url, error=error.message))
        return error_response(error)


def build_inbound_request(request: Request) -> InboundRequest:
    """Capture the parts of the ASGI request the pipeline needs."""
    raw_path = request.scope.get("raw_path")
    path = raw_path.split(b"?", 1)[0].decode("latin-1") if raw_path else request.url.path
    return InboundRequest(
        method=request.method,
        scheme=request.url.scheme,
        proxy_host=request.url.netloc,
        path=path,
        query=request.scope.get("query_string", b"").decode("latin-1"),
        headers=httpx.Headers(request.headers.raw),
        body=request.stream(),
        client_host=request.client.host if request.client else None,
    )


def error_response(error: ProxyError) -> Response:
    """Map a pipeline error to its plain-text response."""
    if isinstance(error, MissingTarget):
        content = error.message
    elif isinstance(error, InvalidTarget):
        content = f"Invalid target URL: {error.message}"
    else:
        content = f"Proxy error: {error.message}"
    return Response(content=content, status_code=error.status_code, media_type=PLAIN_TEXT)


def to_starlette_response(
    response: InboundResponse,
    on_stream_error: Callable[[Exception], None] | None = None,
) -> Response | StreamingResponse:
    """Convert a pipeline response.

    Header bytes are copied as received, so repeated headers such as
    Set-Cookie stay separate and non-ASCII values are not re-encoded.
    """
    if response.content is not None:
        result: Response = Response(content=response.content, status_code=response.status_code)
    else:
        background = BackgroundTask(response.close) if response.close else None
        result = StreamingResponse(
            _watch_stream(response.stream, on_stream_error),
            status_code=response.status_code,
            background=background,
        )

    result.headers.raw.extend((key.lower(), value) for key, value in response.headers.raw)
    return result


async def _watch_stream(
    stream: AsyncIterator[bytes],
    on_error: Callable[[Exception], None] | None,
) -> AsyncIterator[bytes]:
    # Status and headers are already sent when this fails
    try:
        async for chunk in stream:
            yield chunk
    except Exception as e:
        if on_error is not None:
            on_error(e)
        raise


def _describe(error: Exception) -> str:
    if isinstance(error, ProxyError):
        return error.message
    return str(error) or type(error).__name__


def _event(
    inbound: InboundRequest,
    config: Config,
    *,
    url: str,
    status: int | None = None,
    status_text: str | None = None,
    error: str | None = None,
) -> ProxyEvent:
    return ProxyEvent(
        url=url,
        method=inbound.method,
        status=status,
        status_text=status_text,
        error=error,
        client_ip=inbound.headers.get(config.events.client_ip_header) or inbound.client_host,
        user_agent=inbound.headers.get("user-agent"),
        referer=inbound.headers.get("referer"),
    )