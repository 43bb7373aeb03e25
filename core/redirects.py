"""Rewrite redirect targets so they stay routed through the proxy."""

import httpx

from core.exceptions import RedirectRewriteFailure
from core.request_types import TargetLocator
from core.target import encode_target, proxy_url_for


def rewrite_location(location: str, target: TargetLocator, proxy_host: str) -> str:
    """Return the proxy-routed form of a ``Location`` header value.

    Absolute URLs are re-encoded under their own host, root-relative paths
    (anything starting with ``/``) under the current target host. Relative
    values such as ``page.html`` are returned unchanged and will resolve
    against the proxy origin.
    """
    if location.startswith(("http://", "https://")):
        try:
            url = httpx.URL(location)
            host = url.netloc.decode("ascii")
        except (httpx.InvalidURL, UnicodeDecodeError) as e:
            raise RedirectRewriteFailure(str(e), location) from e
        if not host:
            raise RedirectRewriteFailure("Redirect has no host", location)
        path, _, query = url.raw_path.decode("ascii").partition("?")
        return encode_target(target.scheme, proxy_host, host, path or "/", query)

    if location.startswith("/"):
        return proxy_url_for(target, proxy_host, location)

    return location
