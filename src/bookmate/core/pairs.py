"""Canonical ordering for unordered pairs of user identifiers.

A soulmate pair is stored once, lowest identifier first. Every write site
goes through :func:`canonical_pair` and accepts a :class:`CanonicalPair`,
never two loose identifiers in caller order.
"""

from typing import NamedTuple

from .errors import InvalidPairError


class CanonicalPair(NamedTuple):
    """An unordered pair of distinct user ids, stored as ``lo < hi``."""

    lo: str
    hi: str

    @property
    def lock_key(self) -> str:
        """Stable key identifying the pair for advisory locking."""
        return f"{self.lo}:{self.hi}"

    def contains(self, user_id: str) -> bool:
        return user_id == self.lo or user_id == self.hi

    def other(self, user_id: str) -> str:
        """Return the member of the pair that is not ``user_id``."""
        if user_id == self.lo:
            return self.hi
        if user_id == self.hi:
            return self.lo
        raise ValueError(f"{user_id!r} is not a member of pair {self.lock_key}")


def canonical_pair(a: str, b: str) -> CanonicalPair:
    """
    Order two user ids into their canonical pair.

    Args:
        a: First user id
        b: Second user id

    Returns:
        CanonicalPair with ``lo < hi`` under string ordering

    Raises:
        InvalidPairError: If both ids are the same user
    """
    a, b = str(a), str(b)
    if a == b:
        raise InvalidPairError(
            f"User {a} cannot be paired with themself", context={"user_id": a}
        )
    if a < b:
        return CanonicalPair(a, b)
    return CanonicalPair(b, a)
