"""
Crawl configuration and option parsing helpers.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Tuple

DEFAULT_MAX_CONCURRENT_CHECKS = 5
DEFAULT_PROTOCOL_TIMEOUT_MS = 30000
DEFAULT_PAGE_LOAD_TIMEOUT_MS = 60000
DEFAULT_PORT = 3000
DEFAULT_DOCUMENT_SUFFIXES: Tuple[str, ...] = (".md",)
DEFAULT_EXCLUDED_DOCUMENTS: Tuple[str, ...] = ("_sidebar.md",)

ENGINES: Tuple[str, ...] = ("browser", "http")


class LinkCrawlerError(Exception):
    """Fatal error raised before or around a crawl, never for a single link."""


class SiteDirectoryError(LinkCrawlerError):
    """The directory to serve does not exist or is not a directory."""


@dataclass(slots=True)
class CrawlConfig:
    """Operator-facing settings for one run."""
    directory: Path = field(default_factory=Path.cwd)
    context_file: Optional[Path] = None
    context: Optional[Dict[str, Any]] = None
    max_concurrent_checks: int = DEFAULT_MAX_CONCURRENT_CHECKS
    protocol_timeout_ms: int = DEFAULT_PROTOCOL_TIMEOUT_MS
    page_load_timeout_ms: int = DEFAULT_PAGE_LOAD_TIMEOUT_MS
    port: int = DEFAULT_PORT
    ignore_statuses: FrozenSet[int] = frozenset()
    dry_run: bool = False
    engine: str = "browser"
    document_suffixes: Tuple[str, ...] = DEFAULT_DOCUMENT_SUFFIXES
    excluded_documents: Tuple[str, ...] = DEFAULT_EXCLUDED_DOCUMENTS
    quiet: bool = False
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.max_concurrent_checks < 1:
            raise ValueError("max_concurrent_checks must be at least 1")
        if self.engine not in ENGINES:
            raise ValueError(f"Unknown engine: {self.engine}")

    @property
    def protocol_timeout_s(self) -> float:
        return self.protocol_timeout_ms / 1000

    @property
    def page_load_timeout_s(self) -> float:
        return self.page_load_timeout_ms / 1000

    def validate_directory(self) -> Path:
        """Resolve the site directory, raising SiteDirectoryError if unusable."""
        directory = self.directory.expanduser().resolve()
        if not directory.is_dir():
            raise SiteDirectoryError(f"Not a directory: {directory}")
        return directory


def parse_status_list(value: str) -> FrozenSet[int]:
    """Parse '401,403' into {401, 403}. Blank items are skipped."""
    statuses = set()
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        try:
            statuses.add(int(item))
        except ValueError:
            raise ValueError(f"Invalid HTTP status: {item!r}") from None
    return frozenset(statuses)


def parse_name_list(value: str) -> Tuple[str, ...]:
    """Parse a comma-separated list of names, dropping blanks."""
    return tuple(item.strip() for item in value.split(",") if item.strip())
