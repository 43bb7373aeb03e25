"""Rewriting pipeline for proxied requests."""

import codecs

from core.exceptions import ProxyError
from core.headers import HeaderBuilder
from core.protocols import Transport
from core.request_types import (
    Err,
    InboundRequest,
    InboundResponse,
    Ok,
    OutboundRequest,
    OutboundResponse,
    ProxyOutcome,
    TargetLocator,
)
from core.rewrite import HtmlRewriter, is_html
from core.target import resolve_target


class ProxyService:
    """Resolve, forward and rewrite a single request."""

    def __init__(self, transport: Transport, header_builder: HeaderBuilder) -> None:
        self._transport = transport
        self._headers = header_builder

    async def handle(self, request: InboundRequest) -> ProxyOutcome:
        """Run the pipeline; every failure comes back as ``Err``."""
        try:
            target = resolve_target(request.path, request.query, request.scheme)
        except ProxyError as e:
            return Err(e)

        try:
            response = await self._transport.send(self.prepare(request, target))
        except ProxyError as e:
            e.target_url = e.target_url or target.url
            return Err(e)
        except Exception as e:  # noqa: BLE001
            return Err(ProxyError(str(e) or type(e).__name__, target_url=target.url))

        try:
            result = await self.build_response(response, target, request.proxy_host, request.method)
            return Ok(result, target)
        except ProxyError as e:
            e.target_url = e.target_url or target.url
            await response.aclose()
            return Err(e)
        except Exception as e:  # noqa: BLE001
            await response.aclose()
            return Err(ProxyError(str(e) or type(e).__name__, target_url=target.url))

    def prepare(self, request: InboundRequest, target: TargetLocator) -> OutboundRequest:
        """Build the upstream request for a resolved target."""
        return OutboundRequest(
            method=request.method,
            target=target,
            headers=self._headers.build_outbound_headers(request.headers, target),
            body=request.body if _has_body(request) else None,
        )

    async def build_response(
        self,
        response: OutboundResponse,
        target: TargetLocator,
        proxy_host: str,
        method: str = "GET",
    ) -> InboundResponse:
        """Rewrite headers and, for HTML, the body of an upstream response.

        A HEAD response has no body to rewrite, so it keeps its headers,
        ``content-length`` included.
        """
        headers = self._headers.build_inbound_headers(response.headers, target, proxy_host)

        if method == "HEAD" or not is_html(response.content_type):
            return InboundResponse(
                status_code=response.status_code,
                reason_phrase=response.reason_phrase,
                headers=headers,
                stream=response.body,
                close=response.close,
            )

        raw = await response.read()
        await response.aclose()
        encoding = _charset(response.encoding)
        rewriter = HtmlRewriter(target.scheme, proxy_host, target.host)
        body = rewriter.rewrite(raw.decode(encoding, errors="replace"))
        headers.pop("content-length", None)
        return InboundResponse(
            status_code=response.status_code,
            reason_phrase=response.reason_phrase,
            headers=headers,
            content=body.encode(encoding, errors="replace"),
        )


def _has_body(request: InboundRequest) -> bool:
    if request.body is None:
        return False
    if "transfer-encoding" in request.headers:
        return True
    content_length = request.headers.get("content-length", "0").strip()
    return content_length not in ("", "0")


def _charset(encoding: str | None) -> str:
    if encoding:
        try:
            return codecs.lookup(encoding).name
        except LookupError:
            return "utf-8"
    return "utf-8"
