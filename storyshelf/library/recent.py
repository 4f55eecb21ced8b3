"""Recently read books, most recent first, kept in local storage."""

from typing import List

from ..core.storage import LocalStorage

RECENT_KEY = "storyshelf.recent"
MAX_RECENT = 10


class RecentlyRead:
    def __init__(self, storage: LocalStorage, limit: int = MAX_RECENT):
        self.storage = storage
        self.limit = limit

    def book_ids(self) -> List[str]:
        saved = self.storage.get(RECENT_KEY, [])
        return [str(b) for b in saved] if isinstance(saved, list) else []

    def mark_read(self, book_id: str) -> List[str]:
        ids = [book_id] + [b for b in self.book_ids() if b != book_id]
        ids = ids[: self.limit]
        self.storage.set(RECENT_KEY, ids)
        return ids
