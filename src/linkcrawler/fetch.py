"""
Fetch pools: a fixed number of long-lived workers that fetch one link at a time.

Two engines share the same contract. ``BrowserPool`` renders pages in
headless Chromium through Playwright, which also observes the documents a
client-routed site loads after the initial navigation. ``HttpPool`` issues
plain GET requests through ``requests`` sessions and never renders.
"""
from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, List, Optional, Tuple

import requests
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from linkcrawler.classify import is_failure_status
from linkcrawler.config import LinkCrawlerError
from linkcrawler.links import extract_links, is_local, origin_of

logger = logging.getLogger(__name__)

# Sub-resources that play no part in link discovery
BLOCKED_RESOURCE_TYPES: FrozenSet[str] = frozenset(("image", "stylesheet", "font"))

BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]

USER_AGENT = "StaticLinkCrawler/1.0"

BODY_CHUNK_SIZE = 64 * 1024


class EngineStartError(LinkCrawlerError):
    """The fetch engine could not be started (e.g. browser not installed)."""


@dataclass(frozen=True, slots=True)
class ResponseEvent:
    """A response observed while rendering a page, other than the page itself."""
    url: str
    status: int


@dataclass(slots=True)
class CrawlResult:
    """Outcome of fetching a single link."""
    link: str
    status: Optional[int] = None
    url: Optional[str] = None
    html: Optional[str] = None
    error: Optional[str] = None
    secondary: List[ResponseEvent] = field(default_factory=list)

    @property
    def hrefs(self) -> FrozenSet[str]:
        if not self.html:
            return frozenset()
        return extract_links(self.html)


def wants_body(status: Optional[int]) -> bool:
    """Bodies are read for successful navigations and same-document ones (no response)."""
    return status is None or 200 <= status <= 299


class FetchPool(ABC):
    """
    Fixed-size set of fetch workers addressed by index.

    The caller guarantees a worker is never used by two fetches at once.
    ``fetch_one`` never raises for per-link problems; they come back as a
    CrawlResult with ``error`` set.
    """

    def __init__(
        self,
        size: int,
        base_url: str,
        protocol_timeout_s: float,
        page_load_timeout_s: float,
    ) -> None:
        if size < 1:
            raise ValueError("Pool size must be at least 1")
        self.size = size
        self.base_url = base_url
        self.protocol_timeout_s = protocol_timeout_s
        self.page_load_timeout_s = page_load_timeout_s
        self._origin = origin_of(base_url)

    def is_same_origin(self, link: str) -> bool:
        return is_local(link, self._origin)

    @abstractmethod
    async def start(self) -> None: ...

    @abstractmethod
    async def close(self) -> None: ...

    @abstractmethod
    async def fetch_one(self, worker: int, link: str) -> CrawlResult: ...

    async def __aenter__(self) -> "FetchPool":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class BrowserPool(FetchPool):
    """Headless Chromium with one isolated context and page per worker."""

    def __init__(
        self,
        size: int,
        base_url: str,
        protocol_timeout_s: float,
        page_load_timeout_s: float,
        headless: bool = True,
    ) -> None:
        super().__init__(size, base_url, protocol_timeout_s, page_load_timeout_s)
        self.headless = headless
        self._playwright: Any = None
        self._browser: Any = None
        self._pages: List[Any] = []

    async def start(self) -> None:
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=BROWSER_ARGS,
            )
        except PlaywrightError as e:
            await self._playwright.stop()
            self._playwright = None
            raise EngineStartError(f"Cannot launch Chromium: {e.message.splitlines()[0]}") from e
        self._pages = list(await asyncio.gather(*(self._new_page() for _ in range(self.size))))
        logger.debug("Browser pool started with %d pages", self.size)

    async def _new_page(self) -> Any:
        context = await self._browser.new_context(user_agent=USER_AGENT)
        page = await context.new_page()
        page.set_default_timeout(self.protocol_timeout_s * 1000)
        page.set_default_navigation_timeout(self.page_load_timeout_s * 1000)
        # Routing every request also bypasses the HTTP cache
        await page.route("**/*", _block_heavy_resources)
        return page

    async def close(self) -> None:
        for page in self._pages:
            try:
                await page.context.close()
            except PlaywrightError as e:
                logger.debug("Error closing page: %s", e)
        self._pages = []
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def fetch_one(self, worker: int, link: str) -> CrawlResult:
        page = self._pages[worker]
        result = CrawlResult(link=link)

        def on_response(response: Any) -> None:
            if response.request.is_navigation_request():
                return
            if is_failure_status(response.status):
                result.secondary.append(ResponseEvent(response.url, response.status))

        page.on("response", on_response)
        try:
            response = await page.goto(
                link,
                timeout=self.page_load_timeout_s * 1000,
                wait_until="networkidle",
            )
            if response is not None:
                result.status = response.status
                result.url = response.url
            else:
                result.url = page.url
            if self.is_same_origin(link) and wants_body(result.status):
                result.html = await page.content()
        except PlaywrightError as e:
            result.error = e.message.splitlines()[0] if e.message else str(e)
        finally:
            page.remove_listener("response", on_response)
        return result


async def _block_heavy_resources(route: Any) -> None:
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


class HttpPool(FetchPool):
    """
    Plain HTTP fetching with one requests.Session per worker. No rendering.

    Each fetch runs in a thread. A fetch whose caller gave up (timeout
    backstop) keeps running in its thread, so the worker stays busy until it
    finishes; the next fetch on that worker waits for it first. Body reads are
    capped at ``page_load_timeout_s`` in total, which bounds that wait.
    """

    def __init__(
        self,
        size: int,
        base_url: str,
        protocol_timeout_s: float,
        page_load_timeout_s: float,
        user_agent: str = USER_AGENT,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        super().__init__(size, base_url, protocol_timeout_s, page_load_timeout_s)
        self.user_agent = user_agent
        self.session_factory = session_factory
        self._sessions: List[requests.Session] = []
        self._in_flight: List[Optional[asyncio.Future]] = []

    @property
    def timeout(self) -> Tuple[float, float]:
        return (self.protocol_timeout_s, self.page_load_timeout_s)

    async def start(self) -> None:
        self._sessions = []
        for _ in range(self.size):
            session = self.session_factory()
            session.headers["User-Agent"] = self.user_agent
            self._sessions.append(session)
        self._in_flight = [None] * self.size

    async def close(self) -> None:
        pending = [f for f in self._in_flight if f is not None and not f.done()]
        if pending:
            await asyncio.wait(pending)
        for session in self._sessions:
            session.close()
        self._sessions = []
        self._in_flight = []

    async def fetch_one(self, worker: int, link: str) -> CrawlResult:
        previous = self._in_flight[worker]
        if previous is not None and not previous.done():
            logger.debug("Worker %d still busy with an abandoned fetch, waiting", worker)
            await asyncio.wait([previous])

        future = asyncio.ensure_future(asyncio.to_thread(self._fetch, self._sessions[worker], link))
        future.add_done_callback(_consume_result)
        self._in_flight[worker] = future
        # shield keeps the thread's future tracked when the caller is cancelled
        return await asyncio.shield(future)

    def _fetch(self, session: requests.Session, link: str) -> CrawlResult:
        result = CrawlResult(link=link)
        deadline = time.monotonic() + self.page_load_timeout_s
        try:
            with session.get(link, timeout=self.timeout, allow_redirects=True, stream=True) as resp:
                result.status = resp.status_code
                result.url = resp.url
                content_type = (resp.headers.get("content-type") or "").lower()
                if self.is_same_origin(link) and wants_body(resp.status_code) and "text/html" in content_type:
                    body = _read_body(resp, deadline)
                    if body is None:
                        result.error = f"Timed out after {self.page_load_timeout_s:g}s reading body"
                    else:
                        result.html = body.decode(resp.encoding or "utf-8", errors="replace")
        except requests.RequestException as e:
            result.error = str(e) or type(e).__name__
        return result


def _read_body(resp: requests.Response, deadline: float) -> Optional[bytes]:
    """Read a streamed body, giving up (None) once ``deadline`` passes."""
    chunks = []
    for chunk in resp.iter_content(chunk_size=BODY_CHUNK_SIZE):
        chunks.append(chunk)
        if time.monotonic() > deadline:
            return None
    return b"".join(chunks)


def _consume_result(future: asyncio.Future) -> None:
    # results of abandoned fetches are never awaited
    if not future.cancelled():
        future.exception()
