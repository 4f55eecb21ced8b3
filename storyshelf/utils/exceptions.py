"""Custom exceptions for the Storyshelf session and sync core"""

from typing import Optional


class StoryshelfError(Exception):
    """Base exception for Storyshelf"""
    pass


class DuplicateEmailError(StoryshelfError):
    """Sign-up against an email that is already registered"""

    def __init__(self, message: str = "Email is already registered"):
        super().__init__(message)


class InvalidCredentialsError(StoryshelfError):
    """Sign-in with no matching (email, password) pair"""

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class InvalidEmailError(StoryshelfError):
    """Sign-up with a malformed email address"""

    def __init__(self, message: str = "Please enter a valid email address"):
        super().__init__(message)


class TokenInvalidError(StoryshelfError):
    """Session token failed verification (never leaves TokenService)"""
    pass


class DirectoryLookupError(StoryshelfError):
    """Backend error while reading the user table"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class RemoteMutationError(StoryshelfError):
    """A favorite or progress write did not reach the backend"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class CatalogError(StoryshelfError):
    """Catalog fetch failed"""
    pass


class AuthenticationRequiredError(StoryshelfError):
    """A per-user operation was attempted without a session"""

    def __init__(self, message: str = "Sign in to continue"):
        super().__init__(message)


class ConfigError(StoryshelfError):
    """Configuration error"""
    pass
