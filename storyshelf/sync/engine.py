"""
Optimistic client-state sync for favorites and reading progress.

Both resources follow one pattern: change the local cache synchronously so
the caller sees the new state at once, then schedule the remote write as
an asyncio task and hand that task back. The engine is the only writer of
both caches.

Favorites roll back when their write fails. Progress never rolls back: the
page turn already happened, so a failed progress write is logged and
dropped.

Ordering: each mutation takes a per-(resource, user, book) sequence number.
While favorite writes for a book are in flight the engine remembers the
membership the backend last confirmed for it. A failed write for the
latest toggle restores that value, and so does the last write to settle,
so overlapping failed toggles never leave a membership that no write
landed. Progress writes for one book run one at a time
and a queued write that a newer call has superseded is skipped, so the
last call made is the last write to land.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import (
    TYPE_CHECKING,
    Coroutine,
    Dict,
    FrozenSet,
    Hashable,
    List,
    Optional,
    Set,
    Tuple,
)

from ..models import ReadingProgress
from ..utils.exceptions import RemoteMutationError
from ..utils.logger import get_logger
from .cancellation import CancellationToken, is_cancelled
from .sequencing import SequenceTracker

if TYPE_CHECKING:
    from ..backend.base import FavoritesTable, ProgressTable
    from ..core.storage import LocalStorage

logger = get_logger(__name__)

FAVORITES_KEY_PREFIX = "storyshelf.favorites."


def _favorite_key(user_email: str, book_id: str) -> Hashable:
    return ("favorite", user_email, book_id)


def _progress_key(user_email: str, book_id: str) -> Hashable:
    return ("progress", user_email, book_id)


class OptimisticSyncEngine:
    """Local-first favorites set and reading-progress cache."""

    def __init__(
        self,
        favorites_table: "FavoritesTable",
        progress_table: "ProgressTable",
        storage: Optional["LocalStorage"] = None,
    ):
        self.favorites_table = favorites_table
        self.progress_table = progress_table
        self.storage = storage
        self._favorites: Dict[str, Set[str]] = {}
        self._progress: Dict[Tuple[str, str], ReadingProgress] = {}
        self._sequences = SequenceTracker()
        # favorite key -> membership the backend last confirmed
        self._confirmed: Dict[Hashable, bool] = {}
        self._progress_locks: Dict[Tuple[str, str], asyncio.Lock] = {}
        self._pending: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------ #
    # Task bookkeeping
    # ------------------------------------------------------------------ #

    def _schedule(self, coro: Coroutine, name: str) -> "asyncio.Task[bool]":
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every in-flight remote write to settle."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def reset(self) -> None:
        """Forget all cached per-user state (sign-out teardown)."""
        self._favorites.clear()
        self._progress.clear()
        self._progress_locks.clear()
        self._confirmed.clear()
        self._sequences.clear()

    # ------------------------------------------------------------------ #
    # Favorites
    # ------------------------------------------------------------------ #

    def load_local_favorites(self, user_email: str) -> FrozenSet[str]:
        """Seed the cache from local storage (what the user saw last time)."""
        if self.storage is not None and user_email not in self._favorites:
            saved = self.storage.get(FAVORITES_KEY_PREFIX + user_email, [])
            self._favorites[user_email] = {str(b) for b in saved}
        return self.favorites(user_email)

    def favorites(self, user_email: str) -> FrozenSet[str]:
        return frozenset(self._favorites.get(user_email, ()))

    def is_favorite(self, user_email: str, book_id: str) -> bool:
        return book_id in self._favorites.get(user_email, ())

    def _set_membership(self, user_email: str, book_id: str, present: bool) -> None:
        books = self._favorites.setdefault(user_email, set())
        if present:
            books.add(book_id)
        else:
            books.discard(book_id)
        self._persist_favorites(user_email)

    def _persist_favorites(self, user_email: str) -> None:
        if self.storage is None:
            return
        self.storage.set(
            FAVORITES_KEY_PREFIX + user_email, sorted(self._favorites.get(user_email, ()))
        )

    def toggle_favorite(
        self,
        user_email: str,
        book_id: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> "asyncio.Task[bool]":
        """
        Flip membership of book_id now and write it remotely.

        Must be called from a running event loop. The returned task
        resolves to True when the remote write landed and False when it
        failed (cache reverted) or was cancelled before being sent.
        """
        favorited = not self.is_favorite(user_email, book_id)
        key = _favorite_key(user_email, book_id)
        self._confirmed.setdefault(key, not favorited)
        self._set_membership(user_email, book_id, favorited)
        seq = self._sequences.begin(key)
        logger.debug("Favorite toggled locally", book_id=book_id, favorited=favorited, seq=seq)
        return self._schedule(
            self._push_favorite(user_email, book_id, favorited, seq, cancel_token),
            name=f"favorite:{book_id}",
        )

    async def _push_favorite(
        self,
        user_email: str,
        book_id: str,
        favorited: bool,
        seq: int,
        cancel_token: Optional[CancellationToken],
    ) -> bool:
        key = _favorite_key(user_email, book_id)
        landed = False
        try:
            if is_cancelled(cancel_token):
                logger.debug("Favorite write cancelled before sending", book_id=book_id)
            else:
                if favorited:
                    await self.favorites_table.insert(user_email, book_id)
                else:
                    await self.favorites_table.delete(user_email, book_id)
                landed = True
        except RemoteMutationError as e:
            logger.warning("Favorite write failed, rolling back", book_id=book_id, error=str(e))
        finally:
            self._sequences.finish(key)
            self._settle_favorite(user_email, book_id, favorited, seq, landed)
        return landed

    def _settle_favorite(
        self, user_email: str, book_id: str, favorited: bool, seq: int, landed: bool
    ) -> None:
        key = _favorite_key(user_email, book_id)
        if key not in self._confirmed:
            # engine was reset while the write was in flight
            return
        if landed:
            self._confirmed[key] = favorited

        if self._sequences.in_flight(key) == 0:
            confirmed = self._confirmed.pop(key)
        elif not landed and self._sequences.is_latest(key, seq):
            confirmed = self._confirmed[key]
        else:
            logger.debug("Favorite settled with newer toggles in flight", book_id=book_id, seq=seq)
            return

        if self.is_favorite(user_email, book_id) != confirmed:
            logger.debug("Favorite restored to confirmed state", book_id=book_id, favorited=confirmed)
            self._set_membership(user_email, book_id, confirmed)

    async def refresh_favorites(
        self, user_email: str, cancel_token: Optional[CancellationToken] = None
    ) -> FrozenSet[str]:
        """
        Reconcile the local set with the backend.

        Books toggled after the fetch began, or with a write still in
        flight, keep their local membership.
        """
        started = self._sequences.snapshot()
        try:
            remote = await self.favorites_table.list_for(user_email)
        except RemoteMutationError as e:
            logger.warning("Favorites fetch failed, keeping local state", error=str(e))
            return self.favorites(user_email)

        if is_cancelled(cancel_token):
            logger.debug("Favorites fetch result discarded (cancelled)")
            return self.favorites(user_email)

        local = self._favorites.get(user_email, set())
        merged = set()
        for book_id in remote | local:
            if self._sequences.locally_owned(_favorite_key(user_email, book_id), started):
                if book_id in local:
                    merged.add(book_id)
            elif book_id in remote:
                merged.add(book_id)
        self._favorites[user_email] = merged
        self._persist_favorites(user_email)
        return self.favorites(user_email)

    # ------------------------------------------------------------------ #
    # Reading progress
    # ------------------------------------------------------------------ #

    def progress_for(self, user_email: str, book_id: str) -> Optional[ReadingProgress]:
        return self._progress.get((user_email, book_id))

    def resume_page(self, user_email: str, book_id: str) -> int:
        record = self.progress_for(user_email, book_id)
        return record.current_page if record else 0

    def progress_records(self, user_email: str) -> List[ReadingProgress]:
        """Cached records for a user, most recently read first."""
        records = [r for r in self._progress.values() if r.user_email == user_email]
        return sorted(records, key=lambda r: r.last_read_at, reverse=True)

    def update_progress(
        self,
        user_email: str,
        book_id: str,
        current_page: int,
        is_finished: bool,
        cancel_token: Optional[CancellationToken] = None,
    ) -> "asyncio.Task[bool]":
        """
        Record progress locally and upsert the whole record remotely.

        Fire-and-forget: there is no rollback. The returned task resolves
        to True when this call's record was written, False when the write
        failed, was cancelled, or was superseded by a newer call for the
        same book.
        """
        record = ReadingProgress(
            user_email=user_email,
            book_id=book_id,
            current_page=current_page,
            is_finished=is_finished,
            last_read_at=datetime.now(timezone.utc),
        )
        self._progress[record.key] = record
        seq = self._sequences.begin(_progress_key(user_email, book_id))
        return self._schedule(
            self._push_progress(record, seq, cancel_token),
            name=f"progress:{book_id}",
        )

    async def _push_progress(
        self,
        record: ReadingProgress,
        seq: int,
        cancel_token: Optional[CancellationToken],
    ) -> bool:
        key = _progress_key(record.user_email, record.book_id)
        lock = self._progress_locks.setdefault(record.key, asyncio.Lock())
        try:
            async with lock:
                if is_cancelled(cancel_token):
                    logger.debug("Progress write cancelled", book_id=record.book_id)
                    return False
                if not self._sequences.is_latest(key, seq):
                    logger.debug("Progress write superseded", book_id=record.book_id, seq=seq)
                    return False
                await self.progress_table.upsert(record)
        except RemoteMutationError as e:
            logger.warning(
                "Progress write dropped",
                book_id=record.book_id,
                current_page=record.current_page,
                error=str(e),
            )
            return False
        finally:
            self._sequences.finish(key)
        return True

    async def refresh_progress(
        self, user_email: str, cancel_token: Optional[CancellationToken] = None
    ) -> List[ReadingProgress]:
        """
        Replace cached progress with the backend's records.

        Books updated after the fetch began, or with a write in flight,
        keep their local record. Local-only records that are not in flight
        are dropped: their write never landed.
        """
        started = self._sequences.snapshot()
        try:
            remote = await self.progress_table.list_for(user_email)
        except RemoteMutationError as e:
            logger.warning("Progress fetch failed, keeping local state", error=str(e))
            return self.progress_records(user_email)

        if is_cancelled(cancel_token):
            logger.debug("Progress fetch result discarded (cancelled)")
            return self.progress_records(user_email)

        remote_by_key = {r.key: r for r in remote}
        local_keys = {k for k in self._progress if k[0] == user_email}
        for key in local_keys | set(remote_by_key):
            if self._sequences.locally_owned(_progress_key(*key), started):
                continue
            if key in remote_by_key:
                self._progress[key] = remote_by_key[key]
            else:
                self._progress.pop(key, None)
        return self.progress_records(user_email)
