"""
Session lifecycle: sign-up, sign-in, restoration and sign-out.

SessionManager is the only writer of the current Session and of the
persisted token. Identity failures (duplicate email, bad credentials)
are raised to the caller with a message meant for display. Anything
wrong with a stored session (bad signature, expired, user gone, backend
down) resolves to Anonymous instead of raising.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, List, Optional

from pydantic import EmailStr, TypeAdapter, ValidationError

from ..core.storage import TokenStore
from ..utils.exceptions import (
    AuthenticationRequiredError,
    DirectoryLookupError,
    InvalidCredentialsError,
    InvalidEmailError,
)
from ..utils.logger import get_logger
from . import credentials
from .models import ANONYMOUS, Anonymous, Authenticated, Session, User
from .tokens import TokenService

if TYPE_CHECKING:
    from ..backend.base import UserDirectory

logger = get_logger(__name__)

SessionListener = Callable[[Session], None]

_email_adapter = TypeAdapter(EmailStr)


def normalize_email(email: str) -> str:
    """Validate an email address and return it lowercased."""
    try:
        return str(_email_adapter.validate_python(email.strip())).lower()
    except (ValidationError, AttributeError):
        raise InvalidEmailError()


class SessionManager:
    """Owns the Anonymous -> Authenticated -> Anonymous state machine."""

    def __init__(
        self,
        directory: "UserDirectory",
        tokens: TokenService,
        token_store: TokenStore,
    ):
        self.directory = directory
        self.tokens = tokens
        self.token_store = token_store
        self._session: Session = ANONYMOUS
        self._listeners: List[SessionListener] = []

    @property
    def session(self) -> Session:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return isinstance(self._session, Authenticated)

    def current_email(self) -> str:
        """Email of the acting user; raises when nobody is signed in."""
        session = self._session
        if isinstance(session, Authenticated):
            return session.email
        raise AuthenticationRequiredError()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Call listener on every session transition. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _transition(self, session: Session) -> Session:
        self._session = session
        for listener in list(self._listeners):
            listener(session)
        return session

    def _establish(self, user: User) -> Authenticated:
        token = self.tokens.issue(user.id, str(user.email))
        self.token_store.write(token)
        session = Authenticated(user=user)
        self._transition(session)
        return session

    async def sign_up(
        self, email: str, password: str, display_name: Optional[str] = None
    ) -> Authenticated:
        """
        Register a new user and sign them in.

        Raises:
            InvalidEmailError: email is not a valid address
            DuplicateEmailError: email already registered (nothing changes)
            DirectoryLookupError: backend failure
        """
        email = normalize_email(email)
        user = await self.directory.create(email, credentials.digest(password), display_name)
        logger.info("User signed up", user_id=user.id)
        return self._establish(user)

    async def sign_in(self, email: str, password: str) -> Authenticated:
        """
        Sign in with email and password.

        Unknown email and wrong password raise the same
        InvalidCredentialsError.
        """
        try:
            email = normalize_email(email)
        except InvalidEmailError:
            raise InvalidCredentialsError()
        user = await self.directory.find_by_credentials(email, credentials.digest(password))
        if user is None:
            logger.info("Sign-in rejected")
            raise InvalidCredentialsError()
        logger.info("User signed in", user_id=user.id)
        return self._establish(user)

    async def restore_session(self) -> Session:
        """Rebuild the session from the persisted token, or fall back to Anonymous."""
        token = self.token_store.read()
        if token is None:
            return self._transition(ANONYMOUS)

        claims = self.tokens.verify(token)
        if claims is None:
            logger.info("Stored session token invalid, discarding")
            return self._drop_session()

        try:
            user = await self.directory.get_by_id(claims.subject_id)
        except DirectoryLookupError as e:
            logger.warning("User lookup failed during restore", error=str(e))
            return self._drop_session()

        if user is None:
            logger.info("Stored session points to a missing user", user_id=claims.subject_id)
            return self._drop_session()

        logger.info("Session restored", user_id=user.id)
        return self._transition(Authenticated(user=user))

    def _drop_session(self) -> Anonymous:
        self.token_store.erase()
        self._transition(ANONYMOUS)
        return ANONYMOUS

    def sign_out(self) -> Anonymous:
        """Forget the session. Idempotent, never touches the network."""
        was_authenticated = self.is_authenticated
        self._drop_session()
        if was_authenticated:
            logger.info("User signed out")
        return ANONYMOUS
