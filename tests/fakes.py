"""
Test doubles and site builders shared by the test modules.
"""
import asyncio
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set

from linkcrawler.fetch import CrawlResult, FetchPool, ResponseEvent


def page(*hrefs: str) -> str:
    """Minimal HTML page linking to ``hrefs``."""
    anchors = "\n".join(f'<a href="{href}">{href}</a>' for href in hrefs)
    return f"<!DOCTYPE html><html><head><title>t</title></head><body>{anchors}</body></html>"


class FakePage:
    def __init__(
        self,
        status: Optional[int] = 200,
        hrefs: Sequence[str] = (),
        secondary: Sequence[ResponseEvent] = (),
        delay: float = 0.0,
        error: Optional[str] = None,
        raises: Optional[Exception] = None,
    ) -> None:
        self.status = status
        self.hrefs = hrefs
        self.secondary = list(secondary)
        self.delay = delay
        self.error = error
        self.raises = raises


class FakePool(FetchPool):
    """
    Scripted fetch pool. Links missing from ``pages`` answer 404.

    Records every dispatched link, peak concurrency and any attempt to use a
    worker that is still busy.
    """

    def __init__(
        self,
        pages: Dict[str, FakePage],
        size: int = 3,
        base_url: str = "http://x",
        protocol_timeout_s: float = 5.0,
        page_load_timeout_s: float = 5.0,
    ) -> None:
        super().__init__(size, base_url, protocol_timeout_s, page_load_timeout_s)
        self.pages = pages
        self.dispatched: List[str] = []
        self.worker_clashes: List[int] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._busy: Set[int] = set()
        self.started = False
        self.closed = False

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.closed = True

    async def fetch_one(self, worker: int, link: str) -> CrawlResult:
        if worker in self._busy:
            self.worker_clashes.append(worker)
        self._busy.add(worker)
        self.dispatched.append(link)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            fake = self.pages.get(link, FakePage(status=404))
            await asyncio.sleep(fake.delay or 0.001)
            if fake.raises is not None:
                raise fake.raises
            result = CrawlResult(link=link, status=fake.status, url=link, error=fake.error)
            result.secondary.extend(fake.secondary)
            if fake.error is None and self.is_same_origin(link) and fake.hrefs:
                result.html = page(*fake.hrefs)
            return result
        finally:
            self.in_flight -= 1
            self._busy.discard(worker)


def write_site(root: Path, files: Dict[str, str]) -> Path:
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root
