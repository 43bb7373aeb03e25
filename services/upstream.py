"""HTTP transport for upstream requests."""

from collections.abc import AsyncIterator

import httpx

from core.config import UpstreamSettings
from core.exceptions import ProxyError, UpstreamTimeout, UpstreamUnreachable
from core.request_types import OutboundRequest, OutboundResponse


def build_http_client(settings: UpstreamSettings) -> httpx.AsyncClient:
    """Create the pooled client shared by all requests."""
    limits = httpx.Limits(
        max_connections=settings.max_connections,
        max_keepalive_connections=settings.max_keepalive_connections,
    )
    timeout = httpx.Timeout(settings.timeout, connect=settings.connect_timeout)
    return httpx.AsyncClient(
        timeout=timeout,
        limits=limits,
        verify=settings.verify_tls,
        follow_redirects=False,
    )


class UpstreamClient:
    """Send proxied requests upstream with streaming response bodies."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def send(self, request: OutboundRequest) -> OutboundResponse:
        """Send without following redirects; the body is left unread."""
        url = request.target.url
        try:
            req = self._client.build_request(
                request.method,
                url,
                headers=request.headers,
                content=request.body,
            )
        except (httpx.InvalidURL, TypeError, ValueError) as e:
            raise ProxyError(f"Cannot build upstream request: {_describe(e)}", target_url=url) from e

        try:
            response = await self._client.send(req, stream=True, follow_redirects=False)
        except httpx.TimeoutException as e:
            raise UpstreamTimeout(f"Upstream timeout: {e}", target_url=url) from e
        except httpx.RequestError as e:
            raise UpstreamUnreachable(_describe(e), target_url=url) from e

        headers = response.headers.copy()
        if "content-encoding" in headers:
            # aiter_bytes() yields decoded content
            headers.pop("content-encoding")
            headers.pop("content-length", None)

        return OutboundResponse(
            status_code=response.status_code,
            reason_phrase=response.reason_phrase,
            headers=headers,
            body=self._iter_body(response, url),
            encoding=response.charset_encoding,
            close=response.aclose,
        )

    async def _iter_body(self, response: httpx.Response, url: str) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.TimeoutException as e:
            raise UpstreamTimeout(f"Upstream timeout: {e}", target_url=url) from e
        except (httpx.RequestError, httpx.DecodingError) as e:
            raise UpstreamUnreachable(_describe(e), target_url=url) from e
        finally:
            await response.aclose()


def _describe(error: Exception) -> str:
    return str(error) or type(error).__name__
