"""Decode the proxy request path into the target it addresses."""

import httpx

from core.exceptions import InvalidTarget, MissingTarget
from core.request_types import TargetLocator

# Longest first; "https:/" covers stacks that collapse "//" in the path
_SCHEME_PREFIXES = ("https://", "http://", "https:/", "http:/")


def strip_scheme_prefix(path: str) -> str:
    """Drop a pasted-in ``http://`` or ``https://`` from the start of the path."""
    for prefix in _SCHEME_PREFIXES:
        if path.startswith(prefix):
            return path[len(prefix):]
    return path


def resolve_target(path: str, query: str, scheme: str) -> TargetLocator:
    """Resolve ``/<host>/<path>`` plus the query string into a target.

    ``path`` is the raw request path including its leading slash. The query
    string is carried over verbatim and the scheme is always the one the
    proxy itself was reached on.
    """
    remainder = strip_scheme_prefix(path[1:] if path.startswith("/") else path)
    if not remainder:
        raise MissingTarget()

    candidate = f"{scheme}://{remainder}"
    try:
        url = httpx.URL(candidate)
    except httpx.InvalidURL as e:
        raise InvalidTarget(str(e), target_url=candidate) from e

    if not url.host:
        raise InvalidTarget(f"No host in {candidate!r}", target_url=candidate)

    return TargetLocator(
        scheme=scheme,
        host=url.netloc.decode("ascii"),
        path=url.raw_path.split(b"?", 1)[0].decode("ascii") or "/",
        query=query,
    )


def encode_target(scheme: str, proxy_host: str, host: str, path: str = "/", query: str = "") -> str:
    """Build the proxy URL that routes to ``host``/``path``."""
    if not path.startswith("/"):
        path = f"/{path}"
    url = f"{scheme}://{proxy_host}/{host}{path}"
    return f"{url}?{query}" if query else url


def proxy_url_for(target: TargetLocator, proxy_host: str, path: str) -> str:
    """Route ``path`` on the current target through the proxy."""
    return encode_target(target.scheme, proxy_host, target.host, path)
