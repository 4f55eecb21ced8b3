"""Library views layered on the catalog and the synced per-user state"""

from .achievements import BADGES, Badge, BadgeStatus, achievements, reading_counts
from .catalog import Catalog
from .recent import RecentlyRead
from .shelf import progress_percentage, recommend

__all__ = [
    "BADGES",
    "Badge",
    "BadgeStatus",
    "Catalog",
    "RecentlyRead",
    "achievements",
    "progress_percentage",
    "reading_counts",
    "recommend",
]
