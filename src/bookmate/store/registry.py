"""Relationship registry: canonical, at-most-one-per-pair soulmate records."""

from typing import List, Optional

from sqlalchemy import select, delete, or_
from sqlalchemy.orm import Session

from ..core.errors import AlreadySoulmatesError
from ..core.pairs import CanonicalPair, canonical_pair
from ..db.models import Soulmate
from ..utils.logging_config import get_logger
from .integrity_policy import ExpectedIntegrityTag
from .savepoints import expected_conflict_savepoint

logger = get_logger('engine')


class RelationshipRegistry:
    """Creates and queries soulmate pairs, always in canonical order."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def form_soulmate(self, user_a: str, user_b: str) -> str:
        """
        Create the soulmate pair for two users, in either argument order.

        An existing pair is not an error: retried transactions get the
        existing pair's id back.

        Returns:
            The soulmate pair id

        Raises:
            InvalidPairError: If both ids are the same user
            NotFoundError: If either user does not exist
        """
        pair = canonical_pair(user_a, user_b)
        try:
            return self._insert_pair(pair)
        except AlreadySoulmatesError as e:
            logger.info(
                "Soulmate pair already exists, treating as success",
                extra={"pair": pair.lock_key, "soulmate_id": e.soulmate_id},
            )
            return e.soulmate_id

    def _insert_pair(self, pair: CanonicalPair) -> str:
        soulmate = Soulmate(user_a_id=pair.lo, user_b_id=pair.hi)

        context = {
            "operation": "form_soulmate",
            "entity_type": "soulmate",
            "entity_id": pair.lock_key,
        }
        with expected_conflict_savepoint(
            self.db, {ExpectedIntegrityTag.SOULMATE_PAIR_EXISTS}, context
        ):
            self.db.add(soulmate)
            self.db.flush()

        if "integrity_tag" in context:
            existing = self._get_by_pair(pair)
            raise AlreadySoulmatesError(
                f"Users {pair.lo} and {pair.hi} are already soulmates",
                soulmate_id=existing.id if existing is not None else None,
                context={"pair": pair.lock_key},
            )

        logger.info(
            "Soulmate pair formed",
            extra={"pair": pair.lock_key, "soulmate_id": soulmate.id},
        )
        return soulmate.id

    def get_soulmate(self, user_a: str, user_b: str) -> Optional[Soulmate]:
        """Look up the pair for two users, in either argument order."""
        return self._get_by_pair(canonical_pair(user_a, user_b))

    def are_soulmates(self, user_a: str, user_b: str) -> bool:
        if user_a == user_b:
            return False
        return self.get_soulmate(user_a, user_b) is not None

    def list_soulmates(self, user_id: str) -> List[Soulmate]:
        """All pairs the user belongs to, oldest first."""
        return list(
            self.db.execute(
                select(Soulmate)
                .where(or_(Soulmate.user_a_id == user_id, Soulmate.user_b_id == user_id))
                .order_by(Soulmate.created_at)
            ).scalars().all()
        )

    def unlink(self, user_a: str, user_b: str) -> bool:
        """
        Explicitly dissolve a pair. Notifications that reference it are kept.

        Returns:
            True if a pair was deleted
        """
        pair = canonical_pair(user_a, user_b)
        result = self.db.execute(
            delete(Soulmate).where(
                Soulmate.user_a_id == pair.lo, Soulmate.user_b_id == pair.hi
            )
        )
        if result.rowcount:
            logger.info("Soulmate pair unlinked", extra={"pair": pair.lock_key})
        return result.rowcount > 0

    def _get_by_pair(self, pair: CanonicalPair) -> Optional[Soulmate]:
        return self.db.execute(
            select(Soulmate).where(
                Soulmate.user_a_id == pair.lo, Soulmate.user_b_id == pair.hi
            )
        ).scalar_one_or_none()
