"""Test configuration — fake upstreams and an in-process app client."""

import asyncio

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from mediagate.config import Settings
from mediagate.main import create_app
from mediagate.upstream.models import Failure, FetchAttempt, HeaderSet, Success


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeUpstream:
    """Route table behind an ``httpx.MockTransport``.

    Routes match the full URL first, then the URL without its query.  A
    route is a list of response factories consumed one per request; the
    last one repeats.
    """

    def __init__(self):
        self.routes: dict[str, list] = {}
        self.requests: list[httpx.Request] = []

    def add(self, url, status=200, content=b"", headers=None, json=None):
        def factory(request):
            if json is not None:
                return httpx.Response(status, json=json, headers=headers)
            return httpx.Response(status, content=content, headers=headers)

        self.routes.setdefault(url, []).append(factory)
        return self

    def fail(self, url, exc_type=httpx.ConnectError):
        def factory(request):
            raise exc_type("upstream down", request=request)

        self.routes.setdefault(url, []).append(factory)
        return self

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        factories = self.routes.get(url) or self.routes.get(url.split("?")[0])
        if not factories:
            return httpx.Response(404, content=b"no route")
        factory = factories.pop(0) if len(factories) > 1 else factories[0]
        return factory(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls_to(self, prefix: str) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url).startswith(prefix)]


class FakeFetcher:
    """Stands in for ``UpstreamFetcher``; answers from a status script."""

    def __init__(self, statuses=None, by_url=None, delay=0.0):
        self.statuses = list(statuses or [])
        self.by_url = by_url or {}
        self.delay = delay
        self.calls: list[tuple[str, HeaderSet]] = []

    async def fetch(self, url, headers, follow_redirects=True):
        self.calls.append((url, headers))
        if self.delay:
            await asyncio.sleep(self.delay)
        status = self.by_url.get(url)
        if status is None:
            status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if status == "transport":
            outcome = Failure(error=httpx.ConnectError("down"))
        elif 200 <= status < 300:
            outcome = Success(status=status, headers={}, body=url.encode(), url=url)
        else:
            outcome = Failure(status=status)
        return FetchAttempt(url=url, headers=headers, outcome=outcome)


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def test_settings():
    return Settings(
        redis_url="memory://",
        provider_api_base="http://provider.test",
        gallery_api_root="https://gallery.test",
        gallery_backoff_s=0.0,
        public_base_url="",
        tunnel_proxy_url="",
    )


@pytest.fixture
async def api_client(test_settings, upstream):
    app = create_app(test_settings, transport=upstream.transport)
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
