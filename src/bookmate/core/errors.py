"""Error taxonomy for the reciprocity engine.

Every error carries a structured ``kind`` so callers can map failures to
conflict/not-found/retry responses without parsing messages.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Structured error kinds surfaced to callers."""

    DUPLICATE_EDGE = "duplicate_edge"
    DUPLICATE_ENTITY = "duplicate_entity"
    INVALID_PAIR = "invalid_pair"
    ALREADY_SOULMATES = "already_soulmates"
    NOT_FOUND = "not_found"
    STORE_UNAVAILABLE = "store_unavailable"


class BookmateError(Exception):
    """Base exception for engine operations."""

    kind: ErrorKind
    retryable: bool = False

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context: Dict[str, Any] = dict(context or {})

    def to_dict(self) -> Dict[str, Any]:
        """Structured representation for logging and API layers."""
        return {
            "kind": self.kind.value,
            "message": str(self),
            "retryable": self.retryable,
            "context": self.context,
        }


class DuplicateEdgeError(BookmateError):
    """The same (actor, target, kind) interest was submitted twice."""

    kind = ErrorKind.DUPLICATE_EDGE


class DuplicateEntityError(BookmateError):
    """A user e-mail, book ISBN or bookshelf entry is already taken."""

    kind = ErrorKind.DUPLICATE_ENTITY


class InvalidPairError(BookmateError):
    """A user cannot be paired with themself."""

    kind = ErrorKind.INVALID_PAIR


class AlreadySoulmatesError(BookmateError):
    """A soulmate pair already exists for these users."""

    kind = ErrorKind.ALREADY_SOULMATES

    def __init__(
        self,
        message: str,
        soulmate_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.soulmate_id = soulmate_id


class NotFoundError(BookmateError):
    """A referenced user, answer, question or book does not exist."""

    kind = ErrorKind.NOT_FOUND


class StoreUnavailableError(BookmateError):
    """Transient store failure (lock timeout, lost connection). Safe to retry."""

    kind = ErrorKind.STORE_UNAVAILABLE
    retryable = True
