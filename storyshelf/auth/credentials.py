"""Password digests compared by equality."""

import hashlib
import hmac

DIGEST_LENGTH = 64


def digest(password: str) -> str:
    """
    Deterministic SHA-256 hex digest of a password.

    No salt: sign-in looks the user up by (email, digest) equality, so the
    same password must always produce the same digest.
    """
    return hashlib.sha256(password.encode("utf-8", "surrogatepass")).hexdigest()


def digests_equal(stored: str, candidate: str) -> bool:
    """Constant-time comparison of two digests"""
    return hmac.compare_digest(
        stored.encode("utf-8", "surrogatepass"),
        candidate.encode("utf-8", "surrogatepass"),
    )
