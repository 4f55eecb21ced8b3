"""Optimistic local-first sync for favorites and reading progress"""

from .cancellation import CancellationToken
from .engine import OptimisticSyncEngine

__all__ = ["CancellationToken", "OptimisticSyncEngine"]
