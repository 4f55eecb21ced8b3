"""
In-memory view of the book catalog.

The catalog itself lives in the backend; this class only keeps the last
fetched list. Realtime change events call on_change(), which schedules a
background refetch. Each fetch takes a generation number and a result is
applied only if no fetch started later has already been applied, so a
slow stale fetch cannot overwrite a fresher one.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, List, Optional, Set

from ..models import Book
from ..sync.cancellation import CancellationToken, is_cancelled
from ..utils.exceptions import CatalogError
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from ..backend.base import CatalogSource

logger = get_logger(__name__)


class Catalog:
    def __init__(self, source: "CatalogSource"):
        self.source = source
        self.books: List[Book] = []
        self.loaded = False
        self._generation = 0
        self._applied_generation = 0
        self._refetches: Set[asyncio.Task] = set()

    async def refresh(self, cancel_token: Optional[CancellationToken] = None) -> List[Book]:
        """Fetch all books, newest first. Errors leave the current list in place."""
        self._generation += 1
        generation = self._generation
        try:
            books = await self.source.fetch_books()
        except CatalogError as e:
            logger.error("Catalog fetch failed", error=str(e))
            return self.books

        if is_cancelled(cancel_token):
            logger.debug("Catalog fetch result discarded (cancelled)")
            return self.books
        if generation < self._applied_generation:
            logger.debug("Stale catalog fetch discarded", generation=generation)
            return self.books

        self.books = books
        self.loaded = True
        self._applied_generation = generation
        logger.info("Catalog loaded", count=len(books))
        return self.books

    def on_change(self, event: Any = None) -> "asyncio.Task[List[Book]]":
        """Realtime hook: the event payload is ignored, only a refetch is scheduled."""
        task = asyncio.get_running_loop().create_task(self.refresh(), name="catalog-refetch")
        self._refetches.add(task)
        task.add_done_callback(self._refetches.discard)
        return task

    def find(self, book_id: str) -> Optional[Book]:
        return next((b for b in self.books if b.id == book_id), None)
