"""Gateway error taxonomy.

Every error a handler may raise carries the HTTP status and a client-safe
message.  Upstream diagnostics stay in the exception chain and the logs,
never in ``detail``.
"""


class GatewayError(Exception):
    status_code = 500
    detail = "Gateway error"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class InvalidRequest(GatewayError):
    status_code = 400
    detail = "Invalid request"


class ForbiddenTarget(GatewayError):
    status_code = 403
    detail = "Target not allowed"


class UpstreamHTTPError(GatewayError):
    """Upstream answered with a non-2xx status and no fallback remains."""

    def __init__(self, status: int):
        self.status_code = status
        super().__init__(f"Upstream error {status}")


class TransportError(GatewayError):
    """DNS, connect, reset or timeout while talking to an upstream."""

    status_code = 502
    detail = "Upstream unreachable"


class AllHostsFailedError(GatewayError):
    status_code = 502
    detail = "Image proxy error — all CDN hosts failed"

    def __init__(self, tried: int = 0):
        self.tried = tried
        super().__init__()


class AllAttemptsFailedError(GatewayError):
    status_code = 502
    detail = "Proxy error"

    def __init__(self, attempts: int = 0, detail: str | None = None):
        self.attempts = attempts
        super().__init__(detail)


class CacheStoreUnavailable(Exception):
    """Raised by cache stores when the backend cannot be reached.

    Not a ``GatewayError``: the aggregator absorbs it and computes directly.
    """
