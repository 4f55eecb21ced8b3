import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Set

import pytest

from storyshelf.auth.service import SessionManager
from storyshelf.auth.tokens import TokenService
from storyshelf.backend.local import LocalBackend, LocalUserDirectory
from storyshelf.core.storage import LocalStorage, TokenStore
from storyshelf.utils.exceptions import DirectoryLookupError, RemoteMutationError

SECRET = "test-secret"


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class CountingDirectory:
    """Wraps a directory and counts every call made to it."""

    def __init__(self, inner: LocalUserDirectory):
        self.inner = inner
        self.calls = 0
        self.fail_lookups = False
        self.fail_credentials = False

    async def create(self, email, password_digest, display_name=None):
        self.calls += 1
        return await self.inner.create(email, password_digest, display_name)

    async def find_by_credentials(self, email, password_digest):
        self.calls += 1
        if self.fail_credentials:
            raise DirectoryLookupError("backend unavailable", status_code=503)
        return await self.inner.find_by_credentials(email, password_digest)

    async def get_by_id(self, user_id):
        self.calls += 1
        if self.fail_lookups:
            raise DirectoryLookupError("backend unavailable", status_code=503)
        return await self.inner.get_by_id(user_id)


class OfflineFavorites:
    """Favorites table whose writes fail after an optional gate opens."""

    def __init__(self):
        self.gate: Optional[asyncio.Event] = None
        self.rows: Set[str] = set()
        self.writes = 0

    async def _wait(self):
        if self.gate is not None:
            await self.gate.wait()

    async def insert(self, user_email, book_id):
        self.writes += 1
        await self._wait()
        raise RemoteMutationError("network unreachable")

    async def delete(self, user_email, book_id):
        self.writes += 1
        await self._wait()
        raise RemoteMutationError("network unreachable")

    async def list_for(self, user_email):
        return set(self.rows)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage(tmp_path: Path) -> LocalStorage:
    return LocalStorage(tmp_path / "local_state.json")


@pytest.fixture
def backend(tmp_path: Path) -> LocalBackend:
    return LocalBackend(tmp_path / "backend")


@pytest.fixture
def tokens(clock) -> TokenService:
    return TokenService(SECRET, clock=clock)


@pytest.fixture
def directory(backend) -> CountingDirectory:
    return CountingDirectory(backend.users)


@pytest.fixture
def manager(directory, tokens, storage) -> SessionManager:
    return SessionManager(directory, tokens, TokenStore(storage))


@pytest.fixture
def offline_favorites() -> OfflineFavorites:
    return OfflineFavorites()
