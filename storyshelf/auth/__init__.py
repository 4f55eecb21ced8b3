"""Self-rolled authentication: password digests, signed tokens, session lifecycle"""

from .models import ANONYMOUS, Anonymous, Authenticated, Session, TokenClaims, User
from .service import SessionManager
from .tokens import TokenService

__all__ = [
    "ANONYMOUS",
    "Anonymous",
    "Authenticated",
    "Session",
    "SessionManager",
    "TokenClaims",
    "TokenService",
    "User",
]
