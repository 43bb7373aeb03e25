"""Textual URL rewriting for proxied HTML documents."""

import re

# Attribute value starting with a single "/" and at least one more character
_ROOT_RELATIVE_ATTR = re.compile(r"""((?:href|src|action)=["'])/((?!/)[^"']+)["']""")
_BASE_HREF = re.compile(r"""<base\s+href=["']/""", re.IGNORECASE)


def is_html(content_type: str | None) -> bool:
    return bool(content_type) and "text/html" in content_type


class HtmlRewriter:
    """Rewrite links in an HTML document so they route through the proxy.

    This is a best-effort regex rewrite, not an HTML parser. URLs built in
    inline scripts or styles are left alone, and matching text outside of
    attributes can be rewritten too.
    """

    def __init__(self, scheme: str, proxy_host: str, target_host: str) -> None:
        self.prefix = f"{scheme}://{proxy_host}/{target_host}/"
        self._absolute = re.compile(rf"https?://{re.escape(target_host)}/")

    def rewrite(self, body: str) -> str:
        body = self._absolute.sub(lambda _: self.prefix, body)
        # The closing quote is always written as '"'
        body = _ROOT_RELATIVE_ATTR.sub(
            lambda m: f"{m.group(1)}{self.prefix}{m.group(2)}\"",
            body,
        )
        return _BASE_HREF.sub(lambda _: f'<base href="{self.prefix}', body, count=1)
