"""Catalog book model"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Book(BaseModel):
    """A published story as listed in the catalog."""
    id: str
    title: str
    author: str = ""
    illustrator: str = ""
    description: str = ""
    cover_image: Optional[str] = None
    cover_image_path: Optional[str] = None
    language: str = "English"
    level: int = 1
    tags: List[str] = Field(default_factory=list)
    pages: List[str] = Field(default_factory=list)
    page_images: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Book":
        """Map a books table row (snake_case, *_url columns) to a Book"""
        return cls(
            id=str(row["id"]),
            title=row.get("title") or "",
            author=row.get("author") or "",
            illustrator=row.get("illustrator") or "",
            description=row.get("description") or "",
            cover_image=row.get("cover_image_url"),
            cover_image_path=row.get("cover_image_path"),
            language=row.get("language") or "English",
            level=row.get("level") or 1,
            tags=row.get("tags") or [],
            pages=row.get("pages") if isinstance(row.get("pages"), list) else [],
            page_images=row.get("page_images") if isinstance(row.get("page_images"), list) else [],
            created_at=row.get("created_at"),
        )
