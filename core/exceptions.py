"""Custom exception hierarchy for the path rewrite proxy."""


class ProxyError(Exception):
    """Base exception for all proxy errors.

    Attributes:
        message: Error message
        status_code: HTTP status code returned to the caller
        target_url: Resolved target URL, when known
    """

    status_code = 500

    def __init__(self, message: str, target_url: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.target_url = target_url


class ConfigurationError(ProxyError):
    """Raised when configuration is missing or invalid."""


class MissingTarget(ProxyError):
    """The request path does not name a target host."""

    status_code = 400

    def __init__(self, message: str = "Please specify a target URL path") -> None:
        super().__init__(message)


class InvalidTarget(ProxyError):
    """The request path does not form a valid target URL."""

    status_code = 400


class UpstreamUnreachable(ProxyError):
    """Raised when the target could not be reached or the transfer broke off."""


class UpstreamTimeout(UpstreamUnreachable):
    """Raised when the target does not answer within the configured timeout."""


class RedirectRewriteFailure(ProxyError):
    """A Location header could not be rewritten. Never fatal."""

    def __init__(self, message: str, location: str) -> None:
        super().__init__(message)
        self.location = location
