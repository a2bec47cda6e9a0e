"""
Command-line interface for the link crawler.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from linkcrawler import __version__
from linkcrawler.config import (
    DEFAULT_MAX_CONCURRENT_CHECKS,
    DEFAULT_PAGE_LOAD_TIMEOUT_MS,
    DEFAULT_PORT,
    DEFAULT_PROTOCOL_TIMEOUT_MS,
    ENGINES,
    CrawlConfig,
    LinkCrawlerError,
    parse_name_list,
    parse_status_list,
)
from linkcrawler.context import load_context
from linkcrawler.core import check_site
from linkcrawler.report import EXIT_ERROR, exit_code, print_summary, write_summary_json


def _status_list(value: str):
    try:
        return parse_status_list(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _port(value: str) -> int:
    number = int(value)
    if not 0 <= number <= 65535:
        raise argparse.ArgumentTypeError(f"must be between 0 and 65535, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="linkcrawler",
        description=(
            "Serve a static site locally, crawl every link reachable from its root "
            "and report broken links."
        ),
    )
    parser.add_argument(
        "directory", nargs="?", default=".",
        help="Directory of the static site to check (default: current directory)",
    )
    parser.add_argument("--context", metavar="FILE", help="JSON or YAML file with variables for link placeholders")
    parser.add_argument(
        "--max-concurrent-checks", type=_positive_int, default=DEFAULT_MAX_CONCURRENT_CHECKS,
        help=f"Maximum number of concurrent checks (default: {DEFAULT_MAX_CONCURRENT_CHECKS})",
    )
    parser.add_argument(
        "--protocol-timeout", type=int, default=DEFAULT_PROTOCOL_TIMEOUT_MS, metavar="MS",
        help=f"Timeout for browser operations in milliseconds (default: {DEFAULT_PROTOCOL_TIMEOUT_MS})",
    )
    parser.add_argument(
        "--page-load-timeout", type=int, default=DEFAULT_PAGE_LOAD_TIMEOUT_MS, metavar="MS",
        help=f"Timeout for loading a page in milliseconds (default: {DEFAULT_PAGE_LOAD_TIMEOUT_MS})",
    )
    parser.add_argument(
        "--port", type=_port, default=DEFAULT_PORT,
        help=f"Port for the local server, 0 picks a free one (default: {DEFAULT_PORT})",
    )
    parser.add_argument(
        "--ignore-statuses", type=_status_list, default=frozenset(), metavar="STATUSES",
        help="Comma-separated list of HTTP statuses to ignore (e.g. 401,403)",
    )
    parser.add_argument("--dry-run", action="store_true", help="Exit with code 0 even if broken links are found")
    parser.add_argument(
        "--engine", choices=ENGINES, default="browser",
        help="Fetch with a headless browser or with plain HTTP requests (default: browser)",
    )
    parser.add_argument(
        "--document-suffixes", type=parse_name_list, default=None, metavar="SUFFIXES",
        help="Suffixes of side-loaded documents whose failures count as broken (default: .md)",
    )
    parser.add_argument(
        "--exclude-documents", type=parse_name_list, default=None, metavar="NAMES",
        help="Side-loaded document names never reported (default: _sidebar.md)",
    )
    parser.add_argument("--out", help="Write the summary as JSON to this path, or '-' for stdout")
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON")
    output = parser.add_mutually_exclusive_group()
    output.add_argument("-q", "--quiet", action="store_true", help="Hide the configuration and per-link lines")
    output.add_argument("--verbose", action="store_true", help="Also show round progress and failed sub-resources")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def config_from_args(args: argparse.Namespace) -> CrawlConfig:
    """Build the crawl configuration, loading the context file if one was given."""
    context_file = Path(args.context).resolve() if args.context else None
    context = load_context(context_file) if context_file else None

    config = CrawlConfig(
        directory=Path(args.directory),
        context_file=context_file,
        context=context,
        max_concurrent_checks=args.max_concurrent_checks,
        protocol_timeout_ms=args.protocol_timeout,
        page_load_timeout_ms=args.page_load_timeout,
        port=args.port,
        ignore_statuses=args.ignore_statuses,
        dry_run=args.dry_run,
        engine=args.engine,
        quiet=args.quiet,
        verbose=args.verbose,
    )
    if args.document_suffixes is not None:
        config.document_suffixes = args.document_suffixes
    if args.exclude_documents is not None:
        config.excluded_documents = args.exclude_documents
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the link crawler CLI."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = config_from_args(args)
        if config.context_file:
            sys.stderr.write(f"Loaded context variables from {config.context_file}\n")
        summary = asyncio.run(check_site(config))
    except LinkCrawlerError as e:
        sys.stderr.write(f"Error: {e}\n")
        return EXIT_ERROR

    print_summary(summary)

    if args.out:
        output_path = write_summary_json(summary, args.out, pretty=args.pretty)
        if output_path and args.verbose:
            sys.stderr.write(f"Results written to: {output_path}\n")

    return exit_code(summary, dry_run=config.dry_run)


if __name__ == "__main__":
    raise SystemExit(main())
