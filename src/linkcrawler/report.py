"""
Run summary, exit status and output.
"""
from __future__ import annotations

import json
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional, TextIO, Tuple

from linkcrawler.frontier import Frontier

EXIT_OK = 0
EXIT_BROKEN_LINKS = 1
EXIT_ERROR = 2


@dataclass(frozen=True, slots=True)
class RunSummary:
    """Final state of a crawl. Built once, never mutated."""
    elapsed_seconds: float
    found: int
    checked: int
    broken: Tuple[str, ...]
    ignored: Tuple[str, ...]

    @property
    def broken_count(self) -> int:
        return len(self.broken)

    @property
    def ignored_count(self) -> int:
        return len(self.ignored)

    def to_json(self, pretty: bool = False) -> str:
        payload = asdict(self)
        payload["broken"] = list(self.broken)
        payload["ignored"] = list(self.ignored)
        return json.dumps(payload, ensure_ascii=False, indent=2 if pretty else None)


def build_summary(frontier: Frontier, elapsed_seconds: float) -> RunSummary:
    return RunSummary(
        elapsed_seconds=round(elapsed_seconds, 3),
        found=frontier.found,
        checked=len(frontier.checked),
        broken=tuple(sorted(frontier.broken)),
        ignored=tuple(sorted(frontier.ignored)),
    )


def exit_code(summary: RunSummary, dry_run: bool = False) -> int:
    """0 when nothing is broken or on a dry run, 1 otherwise."""
    if summary.broken and not dry_run:
        return EXIT_BROKEN_LINKS
    return EXIT_OK


def print_summary(summary: RunSummary, stream: Optional[TextIO] = None) -> None:
    """Print run summary to stderr."""
    out = stream or sys.stderr
    out.write("\n" + "=" * 50 + "\n")
    out.write("SUMMARY\n")
    out.write("=" * 50 + "\n\n")

    out.write(f"Elapsed time:    {summary.elapsed_seconds} seconds\n")
    out.write(f"Found links:     {summary.found}\n")
    out.write(f"Checked links:   {summary.checked}\n")
    out.write(f"Broken links:    {summary.broken_count}\n")
    out.write(f"Ignored links:   {summary.ignored_count}\n")

    if summary.ignored:
        out.write("\nIgnored links:\n")
        for link in summary.ignored:
            out.write(f"- {link}\n")

    if summary.broken:
        out.write("\nBroken links were detected:\n")
        for link in summary.broken:
            out.write(f"- {link}\n")
    else:
        out.write("\nAll checks passed, no broken links detected.\n")

    out.write("\n")
    out.flush()


def write_summary_json(summary: RunSummary, out: str, pretty: bool = False) -> Optional[Path]:
    """Write the summary as JSON to a file, or to stdout when ``out`` is '-'."""
    json_text = summary.to_json(pretty=pretty)
    if out == "-":
        print(json_text)
        return None
    output_path = Path(out)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json_text, encoding="utf-8")
    return output_path
