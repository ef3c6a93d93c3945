"""Error taxonomy shared by the store, memory and dispatch layers.

Every error carries a short ``kind`` tag and the wrapped ``cause`` so callers
can keep a structured failure until the point where it has to be shown to a
user.  Only :func:`render_error` turns them into text.
"""

from __future__ import annotations

from typing import Optional


class VectorMemoryError(Exception):
    """Base class for failures raised inside the exchange pipeline."""

    kind = "error"

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class StoreConnectionError(VectorMemoryError):
    """The vector store was unreachable or never reported ready."""

    kind = "connection"


class CollectionError(VectorMemoryError):
    """Existence check, creation or lookup of the collection failed."""

    kind = "collection"


class DispatchError(VectorMemoryError):
    """The requested strategy pair has no routine."""

    kind = "dispatch"


class PersistenceError(VectorMemoryError):
    """A single-entry insert failed."""

    kind = "persistence"


class GenerationError(VectorMemoryError):
    """The completion or server-side generation returned no usable text."""

    kind = "generation"


class TransportError(VectorMemoryError):
    """The chat transport rejected a typing indicator or message send."""

    kind = "transport"


DISPATCH_ERROR_TEXT = "Error exchanging messages"


def render_error(exc: BaseException) -> str:
    """Flatten an error to the text returned to callers of the orchestrator."""
    if isinstance(exc, DispatchError):
        return DISPATCH_ERROR_TEXT
    if isinstance(exc, VectorMemoryError):
        return str(exc)
    return f"{DISPATCH_ERROR_TEXT}: {exc}"
