"""Reading progress record, one per (user_email, book_id)."""

from datetime import datetime, timezone
from typing import Tuple

from pydantic import BaseModel, Field


class ReadingProgress(BaseModel):
    user_email: str
    book_id: str
    current_page: int = Field(ge=0)
    is_finished: bool = False
    last_read_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> Tuple[str, str]:
        return (self.user_email, self.book_id)
