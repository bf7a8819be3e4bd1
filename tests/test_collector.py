import asyncio

import httpx
import pytest

from letterboxd_duel import collector
from letterboxd_duel.errors import CollectionAbort, FetchFailure

from pages import diary_row, listing_page

BASE = "https://letterboxd.com/bob/films/diary/"


def _pages(count):
    """Page n holds films n1 and n2; only page 1 carries the profile title."""
    html = {}
    for n in range(1, count + 1):
        rows = diary_row(f"{n}1", f"film-{n}a", f"Film {n}A", rating=6) + diary_row(
            f"{n}2", f"film-{n}b", f"Film {n}B", rating=7
        )
        title = "&lrm;Bob’s film diary • Letterboxd" if n == 1 else "&lrm;Someone’s film diary • Letterboxd"
        html[collector.page_url(BASE, n)] = listing_page(rows, title=title, page_count=count if n == 1 else None)
    return html


def _fake_fetch(html_by_url, delays=None, fail=()):
    calls = []

    async def fetch(url):
        calls.append(url)
        if delays:
            await asyncio.sleep(delays.get(url, 0))
        if url in fail:
            raise FetchFailure(f"HTTP 500 on {url}", url=url, status_code=500)
        return html_by_url[url]

    return fetch, calls


def test_page_url():
    assert collector.page_url(BASE, 1) == BASE
    assert collector.page_url(BASE, 3) == BASE + "page/3/"
    assert collector.page_url(BASE.rstrip("/"), 2) == BASE + "page/2/"


@pytest.mark.asyncio
async def test_collect_merges_in_page_order_despite_completion_order():
    html = _pages(4)
    # Later pages finish first
    delays = {collector.page_url(BASE, 2): 0.03, collector.page_url(BASE, 3): 0.02, collector.page_url(BASE, 4): 0.0}
    fetch, calls = _fake_fetch(html, delays=delays)

    result = await collector.collect_pages(BASE, fetch)

    assert calls[0] == BASE
    assert [e.film_id for e in result.entries] == ["11", "12", "21", "22", "31", "32", "41", "42"]
    assert result.page_count == 4
    assert result.profile.name == "Bob"
    assert result.complete


@pytest.mark.asyncio
async def test_single_page_fetches_once():
    fetch, calls = _fake_fetch(_pages(1))

    result = await collector.collect_pages(BASE, fetch)

    assert calls == [BASE]
    assert len(result.entries) == 2
    assert result.failed_pages == []


@pytest.mark.asyncio
async def test_failed_page_aborts_collection_by_default():
    fetch, _ = _fake_fetch(_pages(3), fail={collector.page_url(BASE, 3)})

    with pytest.raises(CollectionAbort) as excinfo:
        await collector.collect_pages(BASE, fetch)

    assert excinfo.value.failed_pages == [3]


@pytest.mark.asyncio
async def test_allow_partial_returns_successful_pages():
    fetch, _ = _fake_fetch(_pages(3), fail={collector.page_url(BASE, 2)})

    result = await collector.collect_pages(BASE, fetch, allow_partial=True)

    assert [e.film_id for e in result.entries] == ["11", "12", "31", "32"]
    assert result.failed_pages == [2]
    assert not result.complete


@pytest.mark.asyncio
async def test_first_page_failure_propagates():
    fetch, calls = _fake_fetch(_pages(3), fail={BASE})

    with pytest.raises(FetchFailure):
        await collector.collect_pages(BASE, fetch, allow_partial=True)

    assert calls == [BASE]


@pytest.mark.asyncio
async def test_first_page_transport_error_becomes_fetch_failure():
    async def fetch(url):
        raise ConnectionError("refused")

    with pytest.raises(FetchFailure) as excinfo:
        await collector.collect_pages(BASE, fetch)

    assert excinfo.value.url == BASE
    assert "ConnectionError: refused" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, ConnectionError)


@pytest.mark.asyncio
async def test_http_fetcher_returns_text_and_maps_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/ok/":
            return httpx.Response(200, text="<html>ok</html>")
        if request.url.path == "/missing/":
            return httpx.Response(404)
        if request.url.path == "/down/":
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(503)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        async with collector.HttpPageFetcher(delay=0.0, client=client) as fetch:
            assert await fetch("https://letterboxd.com/ok/") == "<html>ok</html>"

            with pytest.raises(FetchFailure) as missing:
                await fetch("https://letterboxd.com/missing/")
            assert missing.value.status_code == 404

            with pytest.raises(FetchFailure) as unavailable:
                await fetch("https://letterboxd.com/busy/")
            assert unavailable.value.status_code == 503

            with pytest.raises(FetchFailure) as down:
                await fetch("https://letterboxd.com/down/")
            assert down.value.status_code is None
            assert isinstance(down.value.__cause__, httpx.ConnectError)

        # Injected clients are left open for their owner
        assert not client.is_closed


@pytest.mark.asyncio
async def test_http_fetcher_requires_context_manager():
    fetcher = collector.HttpPageFetcher(delay=0.0)
    with pytest.raises(RuntimeError):
        await fetcher("https://letterboxd.com/")
