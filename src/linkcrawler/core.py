"""
Core crawling logic: rounds of concurrent fetches drained from the frontier.
"""
from __future__ import annotations

import asyncio
import logging
import sys
import time
from functools import partial
from typing import AbstractSet, Any, Mapping, Optional

from linkcrawler.classify import (
    DEFAULT_SECONDARY_POLICY,
    Classification,
    SecondaryDocumentPolicy,
    SecondaryPredicate,
    classify,
    classify_navigation,
)
from linkcrawler.config import CrawlConfig
from linkcrawler.context import substitute_vars
from linkcrawler.fetch import BrowserPool, CrawlResult, FetchPool, HttpPool
from linkcrawler.frontier import Frontier
from linkcrawler.links import resolve_links
from linkcrawler.report import RunSummary, build_summary
from linkcrawler.server import serve

logger = logging.getLogger(__name__)


def print_banner(config: CrawlConfig, directory: Any, base_url: str) -> None:
    """Print the effective configuration to stderr."""
    ignored = ", ".join(str(s) for s in sorted(config.ignore_statuses)) or "None"
    sys.stderr.write("Starting link check with the following configuration:\n")
    sys.stderr.write(f"Directory:             {directory}\n")
    sys.stderr.write(f"Base URL:              {base_url}\n")
    sys.stderr.write(f"Engine:                {config.engine}\n")
    sys.stderr.write(f"Max concurrent checks: {config.max_concurrent_checks}\n")
    sys.stderr.write(f"Protocol timeout:      {config.protocol_timeout_ms} ms\n")
    sys.stderr.write(f"Page load timeout:     {config.page_load_timeout_ms} ms\n")
    sys.stderr.write(f"Context file:          {config.context_file or 'None'}\n")
    sys.stderr.write(f"Ignored HTTP statuses: {ignored}\n")
    sys.stderr.write(f"Dry run:               {'Enabled' if config.dry_run else 'Disabled'}\n\n")


def print_progress(round_no: int, checked: int, found: int, batch_size: int) -> None:
    """Print round progress to stderr."""
    sys.stderr.write(f"[round {round_no}] Checked: {checked}/{found} | Batch: {batch_size}\n")
    sys.stderr.flush()


def print_scan_line(result: CrawlResult, verdict: Classification, new_links: int, detail: bool = False) -> None:
    """Print single scan result line, plus the secondary failures when ``detail`` is set."""
    status_str = str(result.status) if result.status else "ERR"
    if verdict is Classification.BROKEN:
        reason = result.error or status_str
        sys.stderr.write(f"  ✗ BROKEN {result.link}: {reason}\n")
    elif verdict is Classification.IGNORED:
        sys.stderr.write(f"  ⊘ IGNORED {result.link} ({status_str})\n")
    else:
        sys.stderr.write(f"  → {status_str if result.status else 'OK'} {result.link} (+{new_links} links)\n")
    if detail:
        for event in result.secondary:
            sys.stderr.write(f"    ↳ {event.status} {event.url}\n")
    sys.stderr.flush()


def record_result(
    frontier: Frontier,
    result: CrawlResult,
    ignore_statuses: AbstractSet[int] = frozenset(),
    is_secondary_document: SecondaryPredicate = DEFAULT_SECONDARY_POLICY,
) -> tuple[Classification, int]:
    """
    Classify a finished fetch, record the outcome and merge new links.

    Returns the verdict for the requested link and the number of links newly
    added to the frontier.
    """
    for event in result.secondary:
        verdict = classify(result.link, event.url, event.status, ignore_statuses, is_secondary_document)
        if verdict is Classification.BROKEN:
            frontier.record_broken(event.url)

    verdict = classify_navigation(result.link, result.status, result.error, ignore_statuses)
    frontier.record(result.link, verdict)

    new_links = 0
    if result.html:
        page_url = result.url or result.link
        new_links = frontier.merge(resolve_links(result.hrefs, page_url))
    return verdict, new_links


async def _fetch_safely(pool: FetchPool, worker: int, link: str, timeout_s: float) -> CrawlResult:
    try:
        return await asyncio.wait_for(pool.fetch_one(worker, link), timeout=timeout_s)
    except asyncio.TimeoutError:
        return CrawlResult(link=link, error=f"Timed out after {timeout_s:g}s")
    except Exception as e:
        logger.exception("Unexpected error fetching %s", link)
        return CrawlResult(link=link, error=str(e) or type(e).__name__)


async def crawl(
    seed: str,
    pool: FetchPool,
    ignore_statuses: AbstractSet[int] = frozenset(),
    is_secondary_document: SecondaryPredicate = DEFAULT_SECONDARY_POLICY,
    context: Optional[Mapping[str, Any]] = None,
    report_links: bool = False,
    verbose: bool = False,
) -> Frontier:
    """
    Crawl every link reachable from ``seed`` with the workers of ``pool``.

    Each round pops at most ``pool.size`` links, fetches them concurrently
    (worker ``i`` serves the ``i``-th link of the batch) and waits for all of
    them before classifying results and merging discoveries. The crawl ends
    when a round starts with nothing left to fetch.

    Args:
        seed: Root URL of the site under test.
        pool: Started fetch pool.
        ignore_statuses: Statuses classified as ignored instead of broken.
        is_secondary_document: Predicate selecting side-loaded documents whose
            failures count as broken links.
        context: Variables for placeholder substitution, or None.
        report_links: Whether to print one line per checked link.
        verbose: Whether to print round progress and secondary failures.

    Returns:
        The drained frontier.
    """
    frontier = Frontier(seed)
    resolve = partial(substitute_vars, context=context) if context is not None else None
    # Backstop in case an engine overruns its own timeouts
    fetch_timeout_s = pool.protocol_timeout_s + pool.page_load_timeout_s
    round_no = 0

    while True:
        batch = frontier.pop_batch(pool.size, resolve)
        if not batch:
            break
        round_no += 1

        if verbose:
            print_progress(round_no, len(frontier.checked) - len(batch), frontier.found, len(batch))

        results = await asyncio.gather(*(
            _fetch_safely(pool, i % pool.size, link, fetch_timeout_s)
            for i, link in enumerate(batch)
        ))

        for result in results:
            verdict, new_links = record_result(frontier, result, ignore_statuses, is_secondary_document)
            if report_links or verbose:
                print_scan_line(result, verdict, new_links, detail=verbose)

    logger.debug("Crawl drained after %d rounds", round_no)
    return frontier


def build_pool(config: CrawlConfig, base_url: str) -> FetchPool:
    pool_cls = BrowserPool if config.engine == "browser" else HttpPool
    return pool_cls(
        size=config.max_concurrent_checks,
        base_url=base_url,
        protocol_timeout_s=config.protocol_timeout_s,
        page_load_timeout_s=config.page_load_timeout_s,
    )


async def check_site(config: CrawlConfig) -> RunSummary:
    """
    Serve the configured directory, crawl it and summarize the outcome.

    Raises:
        SiteDirectoryError: The directory does not exist.
        PortInUseError: The local server cannot bind its port.
    """
    directory = config.validate_directory()
    policy = SecondaryDocumentPolicy(config.document_suffixes, config.excluded_documents)
    start = time.monotonic()

    with serve(directory, config.port) as server:
        if not config.quiet:
            print_banner(config, directory, server.base_url)

        async with build_pool(config, server.base_url) as pool:
            frontier = await crawl(
                seed=f"{server.base_url}/",
                pool=pool,
                ignore_statuses=config.ignore_statuses,
                is_secondary_document=policy,
                context=config.context,
                report_links=not config.quiet,
                verbose=config.verbose,
            )
        return build_summary(frontier, time.monotonic() - start)
