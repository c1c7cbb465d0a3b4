from __future__ import annotations

import logging
from typing import Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")

RAW_PAGE_CACHE_SIZE = 4
PAGE_METRICS_CACHE_SIZE = 11


class BoundedPageCache(Generic[V]):
    """Page number -> value map holding at most ``max_entries`` items.

    Eviction is first-in, first-out by insertion: when a new page is stored
    into a full cache, the page stored earliest is dropped. Replacing the
    value of a resident page keeps its position and evicts nothing.
    """

    def __init__(self, max_entries: int, name: str = "cache") -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.name = name
        self._entries: Dict[int, V] = {}

    def get(self, pageno: int) -> Optional[V]:
        return self._entries.get(pageno)

    def put(self, pageno: int, value: V) -> Optional[int]:
        """Store a value; return the evicted page number, if any."""
        evicted = None
        if pageno not in self._entries and len(self._entries) >= self.max_entries:
            evicted = next(iter(self._entries))
            del self._entries[evicted]
            logger.debug("%s: evicted page %d", self.name, evicted)
        self._entries[pageno] = value
        return evicted

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> List[int]:
        return list(self._entries)

    def __contains__(self, pageno: object) -> bool:
        return pageno in self._entries

    def __len__(self) -> int:
        return len(self._entries)
