"""
Sticker-book achievements.

Badges unlock from three counters: finished stories, distinct languages
read, and stories created with the story generator.
"""

from dataclasses import dataclass
from typing import Iterable, List, Literal

from ..models import Book, ReadingProgress

BadgeKind = Literal["finished", "languages", "created"]


@dataclass(frozen=True)
class Badge:
    id: str
    title: str
    description: str
    requirement: int
    kind: BadgeKind = "finished"


@dataclass(frozen=True)
class BadgeStatus:
    badge: Badge
    unlocked: bool


BADGES: List[Badge] = [
    Badge("first-step", "First Adventure", "Finished 1 story!", 1),
    Badge("bookworm", "Super Reader", "Finished 5 stories!", 5),
    Badge("librarian", "Library Legend", "Finished 10 stories!", 10),
    Badge("polyglot", "World Traveler", "Read in 3 languages!", 3, kind="languages"),
    Badge("creator", "Magic Maker", "Created 1 story!", 1, kind="created"),
]


def reading_counts(records: Iterable[ReadingProgress], books: Iterable[Book]):
    """Return (finished_count, language_count) for a user's progress records."""
    languages_by_book = {b.id: b.language for b in books}
    finished = 0
    languages = set()
    for record in records:
        if record.is_finished:
            finished += 1
        language = languages_by_book.get(record.book_id)
        if language:
            languages.add(language)
    return finished, len(languages)


def achievements(finished_count: int, language_count: int, created_count: int = 0) -> List[BadgeStatus]:
    counters = {
        "finished": finished_count,
        "languages": language_count,
        "created": created_count,
    }
    return [BadgeStatus(badge=b, unlocked=counters[b.kind] >= b.requirement) for b in BADGES]
