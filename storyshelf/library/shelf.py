"""Derived shelves: progress percentages and recommendations"""

from typing import List, Sequence

from ..models import Book, ReadingProgress

DEFAULT_PICKS = 4
MAX_RECOMMENDATIONS = 8


def progress_percentage(record: ReadingProgress, page_count: int) -> int:
    """Percent of the book reached, counting the current page as read."""
    if page_count <= 0:
        return 0
    percent = round((record.current_page + 1) / page_count * 100)
    return max(0, min(100, percent))


def recommend(books: Sequence[Book], recent_ids: Sequence[str]) -> List[Book]:
    """
    Books at the level of the most recently read book that have not been
    read yet. With no reading history, the first few catalog books.
    """
    by_id = {b.id: b for b in books}
    recent = [by_id[i] for i in recent_ids if i in by_id]
    if not recent:
        return list(books[:DEFAULT_PICKS])
    level = recent[0].level
    read = set(recent_ids)
    return [b for b in books if b.level == level and b.id not in read][:MAX_RECOMMENDATIONS]
