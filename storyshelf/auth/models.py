"""
Auth models.

User is the directory record. Session is a tagged union of two frozen
dataclasses; consumers branch on isinstance(session, Authenticated).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union
from uuid import uuid4

from pydantic import BaseModel, EmailStr, Field


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    """User record as stored in the backend's users table."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    email: EmailStr
    password_digest: str
    display_name: Optional[str] = None
    created_at: datetime = Field(default_factory=now_utc)

    model_config = {"frozen": True}


class TokenClaims(BaseModel):
    """Identity recovered from a verified session token."""

    subject_id: str
    subject_email: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class Anonymous:
    pass


@dataclass(frozen=True)
class Authenticated:
    user: User

    @property
    def email(self) -> str:
        return str(self.user.email)


Session = Union[Anonymous, Authenticated]

ANONYMOUS = Anonymous()
