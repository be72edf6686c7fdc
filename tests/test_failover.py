"""CDN host pool failover."""

import asyncio
from urllib.parse import urlsplit

import pytest

from conftest import FakeFetcher
from mediagate.errors import AllHostsFailedError
from mediagate.upstream.failover import HostPool, fetch_from_pool
from mediagate.upstream.models import HeaderSet

HEADERS = HeaderSet(user_agent="test-agent", referer="https://nhentai.net/")


def test_candidates_start_with_request_and_keep_path():
    pool = HostPool()
    urls = pool.candidates("https://i7.nhentai.net/galleries/1/1.jpg?v=2")
    assert urls == [
        "https://i7.nhentai.net/galleries/1/1.jpg?v=2",
        "https://i5.nhentai.net/galleries/1/1.jpg?v=2",
        "https://i3.nhentai.net/galleries/1/1.jpg?v=2",
        "https://i2.nhentai.net/galleries/1/1.jpg?v=2",
        "https://i1.nhentai.net/galleries/1/1.jpg?v=2",
        "https://i.nhentai.net/galleries/1/1.jpg?v=2",
    ]


def test_six_distinct_candidates_differ_only_by_host():
    urls = HostPool().candidates("https://t3.nhentai.net/galleries/9/cover.webp")
    assert len(urls) == 6
    assert len(set(urls)) == 6
    hosts = [urlsplit(u).hostname for u in urls]
    assert hosts == ["t3.nhentai.net", "t7.nhentai.net", "t5.nhentai.net", "t2.nhentai.net", "t1.nhentai.net", "t.nhentai.net"]
    assert {(urlsplit(u).scheme, urlsplit(u).path) for u in urls} == {("https", "/galleries/9/cover.webp")}


def test_bare_host_is_a_pool_member():
    urls = HostPool().candidates("http://t.nhentai.net/x.jpg")
    assert urls[0] == "http://t.nhentai.net/x.jpg"
    assert urls[1] == "http://t7.nhentai.net/x.jpg"
    assert len(urls) == 6


def test_cap_applies():
    urls = HostPool(max_candidates=3).candidates("https://i7.nhentai.net/a.jpg")
    assert len(urls) == 3


def test_non_member_hosts_get_no_alternates():
    pool = HostPool()
    assert pool.candidates("https://nhentai.net/a.jpg") == ["https://nhentai.net/a.jpg"]
    assert pool.candidates("https://static.nhentai.net/a.jpg") == ["https://static.nhentai.net/a.jpg"]
    assert pool.candidates("https://i7.example.com/a.jpg") == ["https://i7.example.com/a.jpg"]


def test_owns_domain_family():
    pool = HostPool()
    assert pool.owns("i7.nhentai.net")
    assert pool.owns("nhentai.net")
    assert not pool.owns("nhentai.net.evil.com")
    assert not pool.owns("evilnhentai.net")
    assert not pool.owns(None)


@pytest.mark.anyio
async def test_first_success_wins_after_failures():
    candidates = HostPool().candidates("https://i7.nhentai.net/g/1/1.jpg")
    fetcher = FakeFetcher(statuses=[503, 404, 500, "transport", 502, 200])

    attempt = await fetch_from_pool(fetcher, candidates, HEADERS)

    assert attempt.ok
    assert attempt.url == "https://i.nhentai.net/g/1/1.jpg"
    assert [url for url, _ in fetcher.calls] == candidates


@pytest.mark.anyio
async def test_stops_at_first_success():
    candidates = HostPool().candidates("https://i7.nhentai.net/g/1/1.jpg")
    fetcher = FakeFetcher(by_url={candidates[0]: 500, candidates[1]: 200})

    attempt = await fetch_from_pool(fetcher, candidates, HEADERS)

    assert attempt.url == "https://i5.nhentai.net/g/1/1.jpg"
    assert len(fetcher.calls) == 2


@pytest.mark.anyio
async def test_all_hosts_failing_raises():
    candidates = HostPool().candidates("https://i7.nhentai.net/g/1/1.jpg")
    fetcher = FakeFetcher(statuses=[404])

    with pytest.raises(AllHostsFailedError) as exc_info:
        await fetch_from_pool(fetcher, candidates, HEADERS)

    assert exc_info.value.tried == 6
    assert exc_info.value.status_code == 502
    assert len(fetcher.calls) == 6


@pytest.mark.anyio
async def test_hosts_share_one_request_budget():
    candidates = HostPool().candidates("https://i7.nhentai.net/g/1/1.jpg")
    fetcher = FakeFetcher(statuses=[503], delay=0.3)
    loop = asyncio.get_running_loop()
    started = loop.time()

    with pytest.raises(AllHostsFailedError) as exc_info:
        await fetch_from_pool(fetcher, candidates, HEADERS, budget_s=0.45)

    assert loop.time() - started < 0.9
    assert len(fetcher.calls) == 2
    assert exc_info.value.tried == 2
