"""Header construction for upstream requests and client responses."""

import httpx

from core.exceptions import RedirectRewriteFailure
from core.protocols import EventSink
from core.redirects import rewrite_location
from core.request_types import TargetLocator

# Leak client identity or proxy topology, or only make sense for one hop
FORBIDDEN_OUTBOUND_HEADERS = frozenset(
    {
        "referer",
        "origin",
        "sec-fetch-site",
        "sec-fetch-mode",
        "sec-fetch-dest",
        "sec-ch-ua",
        "sec-ch-ua-mobile",
        "sec-ch-ua-platform",
        "proxy-authorization",
        "proxy-connection",
        "forwarded",
        "x-forwarded-for",
        "x-forwarded-host",
        "x-forwarded-proto",
        "via",
    }
)

CORS_METHODS = "GET, POST, PUT, DELETE, OPTIONS"

CORS_RESPONSE_HEADERS: tuple[tuple[str, str], ...] = (
    ("access-control-expose-headers", "*"),
    ("access-control-allow-origin", "*"),
    ("access-control-allow-methods", CORS_METHODS),
    ("access-control-allow-headers", "*"),
)

# Block the content under the proxy origin, or leak negotiation state
STRIPPED_RESPONSE_HEADERS = frozenset(
    {
        "content-security-policy",
        "content-security-policy-report-only",
        "clear-site-data",
        "access-control-allow-origin-list",
        "access-control-allow-credentials",
        "access-control-request-headers",
        "access-control-request-method",
        "origin",
    }
)

HOP_BY_HOP_RESPONSE_HEADERS = frozenset({"transfer-encoding", "connection", "keep-alive"})


class HeaderBuilder:
    """Build sanitized headers for the upstream request and the client response.

    Both directions work on ``httpx.Headers`` and copy raw header bytes, so
    values outside ASCII reach the other side unchanged.
    """

    def __init__(self, logger: EventSink | None = None) -> None:
        self._logger = logger

    def build_outbound_headers(self, headers: httpx.Headers, target: TargetLocator) -> httpx.Headers:
        """Strip forbidden headers, force Host, synthesize a Referer for sub-resources."""
        upstream = httpx.Headers(
            [
                (key, value)
                for key, value in headers.raw
                if key.decode("latin-1").lower() not in FORBIDDEN_OUTBOUND_HEADERS
            ]
        )
        upstream["Host"] = target.host

        accept = headers.get("accept")
        if accept and "text/html" not in accept:
            upstream["Referer"] = f"{target.scheme}://{target.host}/"
        return upstream

    def build_inbound_headers(
        self,
        headers: httpx.Headers,
        target: TargetLocator,
        proxy_host: str,
    ) -> httpx.Headers:
        """Rewrite Location, force permissive CORS, drop security and hop-by-hop headers."""
        rewritten = headers.copy()

        location = rewritten.get("location")
        if location is not None:
            try:
                rewritten["location"] = rewrite_location(location, target, proxy_host)
            except RedirectRewriteFailure as e:
                self._log_error(target, f"Error processing redirect {e.location!r}: {e}")

        for key, value in CORS_RESPONSE_HEADERS:
            rewritten[key] = value

        for key in STRIPPED_RESPONSE_HEADERS | HOP_BY_HOP_RESPONSE_HEADERS:
            rewritten.pop(key, None)

        return rewritten

    def _log_error(self, target: TargetLocator, message: str) -> None:
        if self._logger is not None:
            self._logger.log_error(target.host, 0, message)
