"""
URL helpers: href extraction, resolution and origin checks.
"""
from __future__ import annotations

from typing import FrozenSet, Iterable, Optional, Set, Tuple
from urllib.parse import unquote, urljoin, urlparse

from bs4 import BeautifulSoup, SoupStrainer

from linkcrawler.context import PLACEHOLDER_PATTERN

# Links that cannot be fetched by navigating to them
SKIP_SCHEMES: Tuple[str, ...] = ("mailto:", "tel:")

# SoupStrainer to parse only elements carrying an href (faster link extraction)
HREF_STRAINER = SoupStrainer(href=True)


def extract_links(html: str) -> FrozenSet[str]:
    """Extract every raw href value from the markup."""
    soup = BeautifulSoup(html, "lxml", parse_only=HREF_STRAINER)
    return frozenset(tag["href"] for tag in soup.find_all(href=True) if tag.get("href"))


def resolve_link(href: str, base: str) -> Optional[str]:
    """
    Resolve an href against the page it was found on.

    Returns None for hrefs that do not resolve to an absolute URL or that use
    a scheme that cannot be navigated to. Fragments are kept.
    """
    href = href.strip()
    if not href:
        return None
    # A leading placeholder stands for scheme and host; it is substituted at dispatch
    if PLACEHOLDER_PATTERN.match(unquote(href)):
        return href
    try:
        joined = urljoin(base, href)
        parsed = urlparse(joined)
    except ValueError:
        return None

    if not parsed.scheme or joined.lower().startswith(SKIP_SCHEMES):
        return None
    if parsed.scheme in ("http", "https") and not parsed.netloc:
        return None
    return joined


def resolve_links(hrefs: Iterable[str], base: str) -> Set[str]:
    resolved = set()
    for href in hrefs:
        link = resolve_link(href, base)
        if link:
            resolved.add(link)
    return resolved


def origin_of(url: str) -> Tuple[str, str]:
    parsed = urlparse(url)
    return (parsed.scheme, parsed.netloc)


def is_local(url: str, start_origin: Tuple[str, str]) -> bool:
    """Check if URL has same scheme and netloc as start URL."""
    try:
        return origin_of(url) == start_origin
    except ValueError:
        return False
