"""
Classification of fetched links into ok / broken / ignored.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from posixpath import basename
from typing import AbstractSet, Callable, Optional, Tuple
from urllib.parse import urlparse

from linkcrawler.config import DEFAULT_DOCUMENT_SUFFIXES, DEFAULT_EXCLUDED_DOCUMENTS


class Classification(str, Enum):
    OK = "ok"
    BROKEN = "broken"
    IGNORED = "ignored"


def is_failure_status(status: int) -> bool:
    return status > 399


@dataclass(frozen=True, slots=True)
class SecondaryDocumentPolicy:
    """
    Decides whether a response loaded as a side effect of rendering a page is
    a content document worth reporting.

    Client-routed sites (docsify and friends) fetch markdown partials after
    the initial page load. A failing partial means a broken navigation target
    even though no href points at it directly. Layout partials such as the
    sidebar are excluded.
    """
    suffixes: Tuple[str, ...] = DEFAULT_DOCUMENT_SUFFIXES
    excluded_names: Tuple[str, ...] = DEFAULT_EXCLUDED_DOCUMENTS

    def __call__(self, url: str) -> bool:
        path = urlparse(url).path
        if not path.endswith(self.suffixes):
            return False
        return basename(path) not in self.excluded_names


SecondaryPredicate = Callable[[str], bool]

DEFAULT_SECONDARY_POLICY = SecondaryDocumentPolicy()


def classify(
    requested: str,
    reported_url: str,
    status: int,
    ignore_statuses: AbstractSet[int] = frozenset(),
    is_secondary_document: SecondaryPredicate = DEFAULT_SECONDARY_POLICY,
) -> Optional[Classification]:
    """
    Classify one observed response.

    Returns None for responses that are not tracked at all: side resources
    unrelated to the requested link. A BROKEN verdict for a secondary document
    applies to ``reported_url``; every other verdict applies to ``requested``.
    """
    if reported_url != requested:
        if is_failure_status(status) and is_secondary_document(reported_url):
            return Classification.BROKEN
        return None

    if status in ignore_statuses:
        return Classification.IGNORED
    if is_failure_status(status):
        return Classification.BROKEN
    return Classification.OK


def classify_navigation(
    requested: str,
    status: Optional[int],
    error: Optional[str] = None,
    ignore_statuses: AbstractSet[int] = frozenset(),
) -> Classification:
    """
    Classify the top-level navigation to ``requested``.

    A transport error or timeout is BROKEN. A navigation that produced no
    response (same-document fragment change) is OK. Any status outside
    200-299 that is not ignored is BROKEN.
    """
    if error is not None:
        return Classification.BROKEN
    if status is None:
        return Classification.OK

    verdict = classify(requested, requested, status, ignore_statuses)
    if verdict is Classification.OK and not 200 <= status <= 299:
        return Classification.BROKEN
    return verdict
