"""
Hosted backend client (PostgREST-style REST tables).

Tables are addressed as {url}/rest/v1/{table}; filters are query
parameters such as email=eq.kid@example.com; inserts and upserts are
POSTs with a Prefer header. Writes are never retried. Catalog reads are
retried on transient failures.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..auth.models import User
from ..models import Book, ReadingProgress
from ..utils.exceptions import (
    CatalogError,
    DirectoryLookupError,
    DuplicateEmailError,
    RemoteMutationError,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


class TransientCatalogError(CatalogError):
    """Catalog read failed in a way worth retrying (network, 5xx)"""
    pass


class RestClient:
    """Thin async wrapper around the backend's REST endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/rest/v1",
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )

    async def request(
        self,
        method: str,
        table: str,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> httpx.Response:
        """
        Send one request to a table.

        Raises httpx.HTTPError on transport failures; HTTP error statuses
        are returned for the caller to map.
        """
        headers = {"Prefer": prefer} if prefer else None
        logger.debug("Backend request", method=method, table=table)
        return await self._client.request(method, f"/{table}", params=params, json=json, headers=headers)

    async def close(self) -> None:
        await self._client.aclose()


def _eq(value: str) -> str:
    return f"eq.{value}"


class RestUserDirectory:
    def __init__(self, client: RestClient):
        self._client = client

    async def _select_one(self, params: Dict[str, str]) -> Optional[User]:
        try:
            response = await self._client.request("GET", "users", params={**params, "limit": "1"})
        except httpx.HTTPError as e:
            raise DirectoryLookupError(f"User lookup failed: {e}")
        if response.status_code != 200:
            raise DirectoryLookupError(
                f"User lookup failed: {response.text}", status_code=response.status_code
            )
        try:
            rows = response.json()
            return User(**rows[0]) if rows else None
        except (ValueError, TypeError, KeyError) as e:
            raise DirectoryLookupError(f"Malformed user row: {e}")

    async def create(
        self, email: str, password_digest: str, display_name: Optional[str] = None
    ) -> User:
        payload = {
            "email": email.lower(),
            "password_digest": password_digest,
            "display_name": display_name,
        }
        try:
            response = await self._client.request(
                "POST", "users", json=payload, prefer="return=representation"
            )
        except httpx.HTTPError as e:
            raise DirectoryLookupError(f"User creation failed: {e}")
        if response.status_code == 409:
            raise DuplicateEmailError()
        if response.status_code not in (200, 201):
            raise DirectoryLookupError(
                f"User creation failed: {response.text}", status_code=response.status_code
            )
        try:
            rows = response.json()
            return User(**(rows[0] if isinstance(rows, list) else rows))
        except (ValueError, TypeError, KeyError, IndexError) as e:
            raise DirectoryLookupError(f"Malformed user row: {e}")

    async def find_by_credentials(self, email: str, password_digest: str) -> Optional[User]:
        return await self._select_one(
            {"email": _eq(email.lower()), "password_digest": _eq(password_digest)}
        )

    async def get_by_id(self, user_id: str) -> Optional[User]:
        return await self._select_one({"id": _eq(user_id)})


class RestFavoritesTable:
    def __init__(self, client: RestClient):
        self._client = client

    async def _send(self, method: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, "favorites", **kwargs)
        except httpx.HTTPError as e:
            raise RemoteMutationError(f"Favorites {method} failed: {e}")
        if response.status_code >= 300:
            raise RemoteMutationError(
                f"Favorites {method} failed: {response.text}", status_code=response.status_code
            )
        return response

    async def insert(self, user_email: str, book_id: str) -> None:
        await self._send(
            "POST",
            json={"user_email": user_email, "book_id": book_id},
            prefer="return=minimal",
        )

    async def delete(self, user_email: str, book_id: str) -> None:
        await self._send("DELETE", params={"user_email": _eq(user_email), "book_id": _eq(book_id)})

    async def list_for(self, user_email: str) -> Set[str]:
        response = await self._send(
            "GET", params={"user_email": _eq(user_email), "select": "book_id"}
        )
        try:
            return {str(row["book_id"]) for row in response.json()}
        except (ValueError, TypeError, KeyError) as e:
            raise RemoteMutationError(f"Malformed favorites rows: {e}")


class RestProgressTable:
    def __init__(self, client: RestClient):
        self._client = client

    async def upsert(self, record: ReadingProgress) -> None:
        try:
            response = await self._client.request(
                "POST",
                "reading_progress",
                params={"on_conflict": "user_email,book_id"},
                json=record.model_dump(mode="json"),
                prefer="resolution=merge-duplicates,return=minimal",
            )
        except httpx.HTTPError as e:
            raise RemoteMutationError(f"Progress upsert failed: {e}")
        if response.status_code >= 300:
            raise RemoteMutationError(
                f"Progress upsert failed: {response.text}", status_code=response.status_code
            )

    async def list_for(self, user_email: str) -> List[ReadingProgress]:
        try:
            response = await self._client.request(
                "GET",
                "reading_progress",
                params={"user_email": _eq(user_email), "order": "last_read_at.desc"},
            )
        except httpx.HTTPError as e:
            raise RemoteMutationError(f"Progress fetch failed: {e}")
        if response.status_code != 200:
            raise RemoteMutationError(
                f"Progress fetch failed: {response.text}", status_code=response.status_code
            )
        try:
            return [ReadingProgress(**row) for row in response.json()]
        except (ValueError, TypeError) as e:
            raise RemoteMutationError(f"Malformed progress rows: {e}")


class RestCatalog:
    def __init__(self, client: RestClient):
        self._client = client

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception_type(TransientCatalogError),
        reraise=True,
    )
    async def fetch_books(self) -> List[Book]:
        try:
            response = await self._client.request(
                "GET", "books", params={"select": "*", "order": "created_at.desc"}
            )
        except httpx.HTTPError as e:
            logger.warning("Catalog fetch failed, retrying", error=str(e))
            raise TransientCatalogError(f"Catalog fetch failed: {e}")
        if response.status_code >= 500:
            logger.warning("Catalog fetch failed, retrying", status_code=response.status_code)
            raise TransientCatalogError(f"Catalog fetch failed: HTTP {response.status_code}")
        if response.status_code != 200:
            raise CatalogError(f"Catalog fetch failed: {response.text}")
        try:
            return [Book.from_row(row) for row in response.json()]
        except (ValueError, TypeError, KeyError) as e:
            raise CatalogError(f"Malformed catalog rows: {e}")


class RestBackend:
    """All tables served by one hosted backend."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client = RestClient(base_url, api_key, timeout_seconds, transport=transport)
        self.users = RestUserDirectory(self.client)
        self.favorites = RestFavoritesTable(self.client)
        self.progress = RestProgressTable(self.client)
        self.catalog = RestCatalog(self.client)

    async def close(self) -> None:
        await self.client.close()
