"""Value types shared by the upstream fetch pipeline."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from mediagate.errors import TransportError, UpstreamHTTPError


@dataclass(frozen=True)
class ProxyRequest:
    target_url: str
    forward_referer: str | None = None
    byte_range: str | None = None

    @property
    def target_host(self) -> str:
        return (urlsplit(self.target_url).hostname or "").lower()


@dataclass(frozen=True)
class HeaderSet:
    user_agent: str
    referer: str | None = None
    origin: str | None = None
    byte_range: str | None = None
    extra: Mapping[str, str] = field(default_factory=dict)

    def as_headers(self) -> dict[str, str]:
        headers = {"User-Agent": self.user_agent}
        headers.update(self.extra)
        if self.referer:
            headers["Referer"] = self.referer
        if self.origin:
            headers["Origin"] = self.origin
        if self.byte_range:
            headers["Range"] = self.byte_range
        return headers


@dataclass(frozen=True)
class Success:
    status: int
    headers: Mapping[str, str]
    body: bytes
    url: str

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class Failure:
    status: int | None = None
    error: Exception | None = None


@dataclass(frozen=True)
class FetchAttempt:
    url: str
    headers: HeaderSet
    outcome: Success | Failure

    @property
    def ok(self) -> bool:
        return isinstance(self.outcome, Success)

    @property
    def status(self) -> int | None:
        return self.outcome.status

    @property
    def transport_failed(self) -> bool:
        return isinstance(self.outcome, Failure) and self.outcome.error is not None

    def raise_for_outcome(self) -> Success:
        """Return the ``Success`` or raise the matching gateway error."""
        if isinstance(self.outcome, Success):
            return self.outcome
        if self.outcome.error is not None:
            raise TransportError() from self.outcome.error
        raise UpstreamHTTPError(self.outcome.status or 502)
