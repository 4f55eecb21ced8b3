"""Backend connections: hosted REST tables or local JSON files"""

from pathlib import Path

from ..core.config import Settings
from .base import Backend, CatalogSource, FavoritesTable, ProgressTable, UserDirectory
from .local import LocalBackend
from .rest import RestBackend


def create_backend(settings: Settings) -> Backend:
    """Build the backend selected by settings.backend.kind"""
    if settings.backend.kind == "rest":
        return RestBackend(
            settings.backend.url or "",
            settings.backend.api_key or "",
            settings.backend.timeout_seconds,
        )
    return LocalBackend(Path(settings.storage.data_dir))


__all__ = [
    "Backend",
    "CatalogSource",
    "FavoritesTable",
    "LocalBackend",
    "ProgressTable",
    "RestBackend",
    "UserDirectory",
    "create_backend",
]
