"""
Backend table interfaces.

The session and sync layers only see these protocols. Every method is a
coroutine: each one is a suspension point on the way to the backend.

Error contract:
- UserDirectory.create raises DuplicateEmailError for a taken email and
  DirectoryLookupError for any other backend failure.
- UserDirectory reads raise DirectoryLookupError on backend failure and
  return None when nothing matches.
- FavoritesTable and ProgressTable writes raise RemoteMutationError;
  their reads raise RemoteMutationError too, since a failed read during
  reconciliation is handled the same way as a failed write.
- CatalogSource raises CatalogError.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, Set

from ..auth.models import User
from ..models import Book, ReadingProgress


class UserDirectory(Protocol):
    async def create(
        self, email: str, password_digest: str, display_name: Optional[str] = None
    ) -> User: ...

    async def find_by_credentials(self, email: str, password_digest: str) -> Optional[User]: ...

    async def get_by_id(self, user_id: str) -> Optional[User]: ...


class FavoritesTable(Protocol):
    async def insert(self, user_email: str, book_id: str) -> None: ...

    async def delete(self, user_email: str, book_id: str) -> None: ...

    async def list_for(self, user_email: str) -> Set[str]: ...


class ProgressTable(Protocol):
    async def upsert(self, record: ReadingProgress) -> None: ...

    async def list_for(self, user_email: str) -> List[ReadingProgress]: ...


class CatalogSource(Protocol):
    async def fetch_books(self) -> List[Book]: ...


class Backend(Protocol):
    """The four tables one backend connection serves."""

    users: UserDirectory
    favorites: FavoritesTable
    progress: ProgressTable
    catalog: CatalogSource

    async def close(self) -> None: ...
