"""FastAPI application factory."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from api.handlers import handle_preflight, handle_proxy, handle_robots
from core.config import Config
from core.headers import HeaderBuilder
from core.protocols import EventSink, Transport
from services.proxy_service import ProxyService
from services.upstream import UpstreamClient, build_http_client
from ui.log_utils import SafeEventSink

def create_app(
    config: Config,
    logger: EventSink,
    transport: Transport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``transport`` replaces the pooled httpx client, mainly for tests.
    """
    events = SafeEventSink(logger)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        http_client = None
        upstream = transport
        if upstream is None:
            http_client = build_http_client(config.upstream)
            upstream = UpstreamClient(http_client)
        app.state.proxy_service = ProxyService(
            transport=upstream,
            header_builder=HeaderBuilder(events),
        )
        try:
            yield
        finally:
            if http_client is not None:
                await http_client.aclose()

    app = FastAPI(
        title="Path Rewrite Proxy",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    # Routes match in order: robots.txt for every method, then preflight,
    # then the proxy for any other method, extension methods included
    async def robots_txt(request: Request):
        return await handle_robots()

    async def preflight(request: Request):
        return await handle_preflight()

    async def proxy(request: Request):
        return await handle_proxy(request, config, events)

    app.add_route("/robots.txt", robots_txt)
    app.add_route("/{path:path}", preflight, methods=["OPTIONS"])
    app.add_route("/{path:path}", proxy)

    return app
