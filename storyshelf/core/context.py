"""
Application context.

The one object a front-end holds. It carries the current Session (owned
by SessionManager), the sync engine, the catalog and local storage, and
gives them an explicit lifecycle: start() at launch, sign_out() as the
per-user teardown, close() at exit. Nothing here is a module global.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

from ..auth.models import Anonymous, Authenticated, Session
from ..auth.service import SessionManager
from ..auth.tokens import TokenService
from ..backend import Backend, create_backend
from ..library.achievements import BadgeStatus, achievements, reading_counts
from ..library.catalog import Catalog
from ..library.recent import RecentlyRead
from ..library.shelf import progress_percentage, recommend
from ..models import Book, ReadingProgress
from ..sync.cancellation import CancellationToken
from ..sync.engine import OptimisticSyncEngine
from ..utils.logger import get_logger
from .config import Settings
from .storage import LocalStorage, TokenStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProgressRow:
    record: ReadingProgress
    book: Book
    percent: int


class AppContext:
    def __init__(
        self,
        backend: Backend,
        storage: LocalStorage,
        tokens: TokenService,
    ):
        self.backend = backend
        self.storage = storage
        self.sessions = SessionManager(backend.users, tokens, TokenStore(storage))
        self.sync = OptimisticSyncEngine(backend.favorites, backend.progress, storage)
        self.catalog = Catalog(backend.catalog)
        self.recent = RecentlyRead(storage)
        self._unsubscribe = self.sessions.subscribe(self._on_session_change)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppContext":
        tokens = TokenService(
            settings.auth.token_secret,
            validity=timedelta(days=settings.auth.token_ttl_days),
            algorithm=settings.auth.algorithm,
        )
        return cls(create_backend(settings), LocalStorage(settings.storage.state_path), tokens)

    @property
    def session(self) -> Session:
        return self.sessions.session

    def _on_session_change(self, session: Session) -> None:
        if isinstance(session, Anonymous):
            self.sync.reset()

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def start(self, cancel_token: Optional[CancellationToken] = None) -> Session:
        """Restore the session and load the catalog concurrently, then per-user state."""
        session, _ = await asyncio.gather(
            self.sessions.restore_session(),
            self.catalog.refresh(cancel_token),
        )
        if isinstance(session, Authenticated):
            await self.load_user_state(cancel_token)
        logger.info(
            "App started",
            authenticated=isinstance(session, Authenticated),
            books=len(self.catalog.books),
        )
        return session

    async def load_user_state(self, cancel_token: Optional[CancellationToken] = None) -> None:
        email = self.sessions.current_email()
        self.sync.load_local_favorites(email)
        await asyncio.gather(
            self.sync.refresh_favorites(email, cancel_token),
            self.sync.refresh_progress(email, cancel_token),
        )

    async def sign_up(self, email: str, password: str, display_name: Optional[str] = None) -> Authenticated:
        session = await self.sessions.sign_up(email, password, display_name)
        await self.load_user_state()
        return session

    async def sign_in(self, email: str, password: str) -> Authenticated:
        session = await self.sessions.sign_in(email, password)
        await self.load_user_state()
        return session

    async def sign_out(self) -> Anonymous:
        """Let in-flight writes settle, then drop the session and per-user caches."""
        pending = self.sync.pending_writes
        if pending:
            logger.debug("Waiting for pending writes before sign-out", pending=pending)
        await self.sync.drain()
        return self.sessions.sign_out()

    async def close(self) -> None:
        await self.sync.drain()
        self._unsubscribe()
        await self.backend.close()

    # ------------------------------------------------------------------ #
    # Per-user actions
    # ------------------------------------------------------------------ #

    def toggle_favorite(
        self, book_id: str, cancel_token: Optional[CancellationToken] = None
    ) -> "asyncio.Task[bool]":
        return self.sync.toggle_favorite(self.sessions.current_email(), book_id, cancel_token)

    def open_book(self, book_id: str) -> int:
        """Mark a book as read now and return the page to resume from."""
        email = self.sessions.current_email()
        self.recent.mark_read(book_id)
        return self.sync.resume_page(email, book_id)

    def turn_page(
        self,
        book_id: str,
        page: int,
        finished: bool = False,
        cancel_token: Optional[CancellationToken] = None,
    ) -> "asyncio.Task[bool]":
        return self.sync.update_progress(
            self.sessions.current_email(), book_id, page, finished, cancel_token
        )

    # ------------------------------------------------------------------ #
    # Shelves
    # ------------------------------------------------------------------ #

    def favorite_books(self) -> List[Book]:
        favorites = self.sync.favorites(self.sessions.current_email())
        return [b for b in self.catalog.books if b.id in favorites]

    def recent_books(self) -> List[Book]:
        books = (self.catalog.find(i) for i in self.recent.book_ids())
        return [b for b in books if b is not None]

    def recommendations(self) -> List[Book]:
        return recommend(self.catalog.books, self.recent.book_ids())

    def progress_rows(self) -> List[ProgressRow]:
        rows = []
        for record in self.sync.progress_records(self.sessions.current_email()):
            book = self.catalog.find(record.book_id)
            if book is None:
                continue
            rows.append(ProgressRow(record, book, progress_percentage(record, len(book.pages))))
        return rows

    def achievements(self, created_count: int = 0) -> List[BadgeStatus]:
        records = self.sync.progress_records(self.sessions.current_email())
        finished, languages = reading_counts(records, self.catalog.books)
        return achievements(finished, languages, created_count)
