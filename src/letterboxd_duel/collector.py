import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

import httpx
from tqdm import tqdm

from .config import (
    DEFAULT_ASYNC_DELAY,
    DEFAULT_MAX_CONCURRENT,
    FETCH_HEADERS,
    FETCH_HTTP2,
    HTTP_TIMEOUT,
)
from .errors import CollectionAbort, FetchFailure
from .parser import FilmEntry, Profile, parse_page

logger = logging.getLogger(__name__)

FetchPage = Callable[[str], Awaitable[str]]


@dataclass
class PageResult:
    """Outcome of fetching and parsing one page: entries or the error that stopped it."""

    page: int
    entries: list[FilmEntry] | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class CollectionResult:
    profile: Profile | None
    entries: list[FilmEntry]
    page_count: int
    failed_pages: list[int] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed_pages


def page_url(base_url: str, page: int) -> str:
    base = base_url if base_url.endswith("/") else base_url + "/"
    if page <= 1:
        return base
    return f"{base}page/{page}/"


async def _fetch_entries(fetch_page: FetchPage, url: str) -> list[FilmEntry]:
    html = await fetch_page(url)
    return parse_page(html).entries


async def collect_pages(
    base_url: str,
    fetch_page: FetchPage,
    *,
    allow_partial: bool = False,
    progress: bool = False,
) -> CollectionResult:
    """
    Fetch every page of a listing and merge the entries in page order.

    Page 1 is fetched first to learn the page count and the profile; the
    remaining pages are fetched concurrently. Results are reassembled by page
    number, so completion order never affects the merged list.

    Args:
        base_url: URL of the first page (e.g. https://letterboxd.com/bob/films/diary/)
        fetch_page: Coroutine function returning the HTML for a URL
        allow_partial: Return successful pages plus ``failed_pages`` instead of
            raising when some of pages 2..N fail
        progress: Show a tqdm bar while the remaining pages load

    Raises:
        FetchFailure: page 1 could not be fetched
        CollectionAbort: a later page failed and ``allow_partial`` is False
    """
    first_url = page_url(base_url, 1)
    try:
        html = await fetch_page(first_url)
    except FetchFailure:
        raise
    except Exception as exc:
        raise FetchFailure(f"Request error on {first_url}: {type(exc).__name__}: {exc}", url=first_url) from exc
    first = parse_page(html)
    page_count = first.page_count
    logger.debug(f"{first_url}: {len(first.entries)} entries, {page_count} page(s)")

    if page_count == 1:
        return CollectionResult(profile=first.profile, entries=list(first.entries), page_count=1)

    pages = list(range(2, page_count + 1))
    with tqdm(total=len(pages), desc="Pages", disable=not progress) as bar:

        async def _tracked(page: int) -> list[FilmEntry]:
            try:
                return await _fetch_entries(fetch_page, page_url(base_url, page))
            finally:
                bar.update(1)

        results = await asyncio.gather(*[_tracked(p) for p in pages], return_exceptions=True)

    page_results = [PageResult(page=1, entries=list(first.entries))]
    for page, result in zip(pages, results):
        if isinstance(result, BaseException):
            logger.error(f"Failed to fetch page {page} of {base_url}: {type(result).__name__}: {result}")
            page_results.append(PageResult(page=page, error=result))
        else:
            page_results.append(PageResult(page=page, entries=result))

    failed = [r.page for r in page_results if not r.ok]
    if failed and not allow_partial:
        raise CollectionAbort(
            f"Failed to fetch {len(failed)}/{page_count} pages of {base_url} (pages {failed})",
            failed_pages=failed,
            url=base_url,
        )
    if failed:
        logger.warning(f"Partial collection for {base_url}: missing pages {failed}")

    entries = [entry for r in page_results if r.ok for entry in r.entries]
    logger.info(f"Collected {len(entries)} entries from {page_count - len(failed)}/{page_count} pages")
    return CollectionResult(
        profile=first.profile,
        entries=entries,
        page_count=page_count,
        failed_pages=failed,
    )


class HttpPageFetcher:
    """
    Default page fetcher backed by httpx.

    Use as an async context manager; the instance itself is the
    ``fetch_page`` callable. Requests share one semaphore so concurrent page
    fan-outs for both users stay within ``max_concurrent``.
    """

    def __init__(
        self,
        delay: float = DEFAULT_ASYNC_DELAY,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        client: httpx.AsyncClient | None = None,
    ):
        self.delay = delay
        self.semaphore = asyncio.Semaphore(max_concurrent)
        self.client = client
        self._owns_client = client is None

    async def __aenter__(self):
        if self.client is None:
            self.client = httpx.AsyncClient(
                headers=FETCH_HEADERS,
                follow_redirects=True,
                timeout=HTTP_TIMEOUT,
                http2=FETCH_HTTP2,
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.client and self._owns_client:
            await self.client.aclose()
            self.client = None
        return False

    async def __call__(self, url: str) -> str:
        if not self.client:
            raise RuntimeError("HttpPageFetcher must be used as an async context manager")

        async with self.semaphore:
            if self.delay:
                await asyncio.sleep(self.delay)
            try:
                resp = await self.client.get(url)
            except httpx.HTTPError as exc:
                raise FetchFailure(f"Request error on {url}: {type(exc).__name__}: {exc}", url=url) from exc

        if resp.status_code == 404:
            raise FetchFailure(f"Not found: {url}", url=url, status_code=404)
        if not resp.is_success:
            raise FetchFailure(f"HTTP {resp.status_code} on {url}", url=url, status_code=resp.status_code)
        return resp.text
