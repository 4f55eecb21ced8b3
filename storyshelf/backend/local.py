"""
JSON-file backend.

Mirrors the hosted tables with one JSON file per table under a data
directory (users.json, favorites.json, reading_progress.json,
books.json). Used for offline development, as the CLI default, and in
tests. Each coroutine reads and rewrites its file without awaiting in
between, so a single event loop sees every call as atomic.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Set
from uuid import uuid4

from ..auth import credentials
from ..auth.models import User
from ..core.storage import _atomic_write
from ..models import Book, ReadingProgress
from ..utils.exceptions import (
    CatalogError,
    DirectoryLookupError,
    DuplicateEmailError,
    RemoteMutationError,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


def _as_aware_utc(dt: Optional[datetime]) -> datetime:
    if dt is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    if dt.tzinfo is None:
        # naive timestamps in books.json are UTC
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class _JsonTable:
    """One table persisted as {"<name>": [row, ...]}."""

    def __init__(self, data_dir: Path, name: str):
        self.name = name
        self.path = Path(data_dir) / f"{name}.json"

    def load(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        return list(raw.get(self.name, []))

    def save(self, rows: List[Dict[str, Any]]) -> None:
        _atomic_write(self.path, {self.name: rows})


class LocalUserDirectory:
    def __init__(self, data_dir: Path):
        self._table = _JsonTable(data_dir, "users")

    def _load_users(self) -> List[User]:
        try:
            return [User(**row) for row in self._table.load()]
        except (json.JSONDecodeError, OSError, ValueError) as e:
            raise DirectoryLookupError(f"Failed to read users: {e}")

    async def create(
        self, email: str, password_digest: str, display_name: Optional[str] = None
    ) -> User:
        email = email.lower()
        users = self._load_users()
        if any(str(u.email).lower() == email for u in users):
            raise DuplicateEmailError()

        user = User(
            id=str(uuid4()),
            email=email,
            password_digest=password_digest,
            display_name=display_name,
            created_at=datetime.now(timezone.utc),
        )
        users.append(user)
        try:
            self._table.save([u.model_dump(mode="json") for u in users])
        except OSError as e:
            raise DirectoryLookupError(f"Failed to save users: {e}")
        return user

    async def find_by_credentials(self, email: str, password_digest: str) -> Optional[User]:
        email = email.lower()
        for user in self._load_users():
            if str(user.email).lower() != email:
                continue
            if credentials.digests_equal(user.password_digest, password_digest):
                return user
        return None

    async def get_by_id(self, user_id: str) -> Optional[User]:
        return next((u for u in self._load_users() if u.id == user_id), None)

    def count_by_email(self, email: str) -> int:
        email = email.lower()
        return sum(1 for u in self._load_users() if str(u.email).lower() == email)


class LocalFavoritesTable:
    def __init__(self, data_dir: Path):
        self._table = _JsonTable(data_dir, "favorites")

    def _rows(self) -> List[Dict[str, Any]]:
        try:
            return self._table.load()
        except (json.JSONDecodeError, OSError) as e:
            raise RemoteMutationError(f"Failed to read favorites: {e}")

    def _save(self, rows: List[Dict[str, Any]]) -> None:
        try:
            self._table.save(rows)
        except OSError as e:
            raise RemoteMutationError(f"Failed to save favorites: {e}")

    async def insert(self, user_email: str, book_id: str) -> None:
        rows = self._rows()
        row = {"user_email": user_email, "book_id": book_id}
        if row in rows:
            # composite primary key
            raise RemoteMutationError("Favorite already exists", status_code=409)
        rows.append(row)
        self._save(rows)

    async def delete(self, user_email: str, book_id: str) -> None:
        rows = self._rows()
        kept = [r for r in rows if not (r["user_email"] == user_email and r["book_id"] == book_id)]
        self._save(kept)

    async def list_for(self, user_email: str) -> Set[str]:
        return {r["book_id"] for r in self._rows() if r["user_email"] == user_email}


class LocalProgressTable:
    def __init__(self, data_dir: Path):
        self._table = _JsonTable(data_dir, "reading_progress")

    def _records(self) -> List[ReadingProgress]:
        try:
            return [ReadingProgress(**row) for row in self._table.load()]
        except (json.JSONDecodeError, OSError, ValueError) as e:
            raise RemoteMutationError(f"Failed to read reading progress: {e}")

    async def upsert(self, record: ReadingProgress) -> None:
        records = [r for r in self._records() if r.key != record.key]
        records.append(record)
        try:
            self._table.save([r.model_dump(mode="json") for r in records])
        except OSError as e:
            raise RemoteMutationError(f"Failed to save reading progress: {e}")

    async def list_for(self, user_email: str) -> List[ReadingProgress]:
        return [r for r in self._records() if r.user_email == user_email]


class LocalCatalog:
    def __init__(self, data_dir: Path):
        self._table = _JsonTable(data_dir, "books")

    async def fetch_books(self) -> List[Book]:
        try:
            rows = self._table.load()
            books = [Book.from_row(row) for row in rows]
        except (json.JSONDecodeError, OSError, ValueError, KeyError) as e:
            raise CatalogError(f"Failed to read books: {e}")
        return sorted(books, key=lambda b: _as_aware_utc(b.created_at), reverse=True)

    def add_books(self, rows: List[Dict[str, Any]]) -> None:
        self._table.save(self._table.load() + rows)


class LocalBackend:
    """All tables of the JSON-file backend."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.users = LocalUserDirectory(self.data_dir)
        self.favorites = LocalFavoritesTable(self.data_dir)
        self.progress = LocalProgressTable(self.data_dir)
        self.catalog = LocalCatalog(self.data_dir)
        logger.debug("Local backend ready", data_dir=str(self.data_dir))

    async def close(self) -> None:
        return None
