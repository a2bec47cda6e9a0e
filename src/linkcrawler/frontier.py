"""
Crawl frontier: discovered links waiting for a fetch plus the outcome sets.
"""
from __future__ import annotations

from typing import AbstractSet, Callable, Dict, Iterable, List, Optional, Set

from linkcrawler.classify import Classification


class Frontier:
    """
    Worklist of links plus the record of what happened to them.

    ``discovered`` and ``checked`` never overlap. A link enters ``checked``
    once, at the moment it is handed out for fetching (or recorded as a
    broken secondary document), and never leaves. Every link in ``broken``
    or ``ignored`` is also in ``checked``.

    The frontier is not thread-safe. The driver mutates it between rounds
    only.
    """

    def __init__(self, seed: Optional[str] = None) -> None:
        # dict keeps discovery order so batches come out breadth-first
        self._discovered: Dict[str, None] = {}
        self.checked: Set[str] = set()
        self.broken: Set[str] = set()
        self.ignored: Set[str] = set()
        if seed is not None:
            self.merge([seed])

    @property
    def discovered(self) -> AbstractSet[str]:
        return self._discovered.keys()

    @property
    def found(self) -> int:
        return len(self.checked) + len(self._discovered)

    def __bool__(self) -> bool:
        return bool(self._discovered)

    def merge(self, links: Iterable[str]) -> int:
        """Add links not yet discovered or checked. Returns how many were new."""
        added = 0
        for link in links:
            if link in self._discovered or link in self.checked:
                continue
            self._discovered[link] = None
            added += 1
        return added

    def pop_batch(self, n: int, resolve: Optional[Callable[[str], str]] = None) -> List[str]:
        """
        Remove up to ``n`` links from ``discovered`` and mark them checked.

        ``resolve`` maps a discovered link to the form that is actually
        fetched (placeholder substitution). The resolved form is what gets
        recorded; a link whose resolved form was already checked is dropped
        and does not count against ``n``.
        """
        batch: List[str] = []
        while self._discovered and len(batch) < n:
            raw = next(iter(self._discovered))
            del self._discovered[raw]
            link = resolve(raw) if resolve is not None else raw
            if link in self.checked:
                continue
            self._mark_checked(link)
            batch.append(link)
        return batch

    def _mark_checked(self, link: str) -> None:
        self._discovered.pop(link, None)
        self.checked.add(link)

    def is_classified(self, link: str) -> bool:
        return link in self.broken or link in self.ignored

    def record_broken(self, link: str) -> bool:
        """Record a broken link. First classification wins; returns False if already classified."""
        if self.is_classified(link):
            return False
        self._mark_checked(link)
        self.broken.add(link)
        return True

    def record_ignored(self, link: str) -> bool:
        """Record an ignored link. First classification wins; returns False if already classified."""
        if self.is_classified(link):
            return False
        self._mark_checked(link)
        self.ignored.add(link)
        return True

    def record(self, link: str, classification: Classification) -> bool:
        if classification is Classification.BROKEN:
            return self.record_broken(link)
        if classification is Classification.IGNORED:
            return self.record_ignored(link)
        return False
