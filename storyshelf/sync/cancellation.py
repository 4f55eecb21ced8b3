"""
Cancellation tokens for suspendable operations.

A view hands a token to every operation it starts and cancels it when it
goes away. Operations check the token after each suspension point and
drop their result instead of applying it.
"""

from threading import Event
from typing import Optional


class CancellationToken:
    def __init__(self, parent: Optional["CancellationToken"] = None):
        self._event = Event()
        self._parent = parent

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    def cancel(self) -> None:
        self._event.set()

    def child(self) -> "CancellationToken":
        """A token cancelled together with this one, or on its own."""
        return CancellationToken(parent=self)


def is_cancelled(token: Optional[CancellationToken]) -> bool:
    return token is not None and token.cancelled
