"""Interest ledger: directional interest edges with per-kind uniqueness.

The ledger only holds data. Deciding whether a new edge completes a mirror is
the reciprocity detector's job.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, NamedTuple, Type

from sqlalchemy import select, delete
from sqlalchemy.orm import Session

from ..core.enums import InterestKind
from ..core.errors import DuplicateEdgeError, NotFoundError
from ..db.models import Answer, AnswerInterest, ProfileInterest, SoullinkRequest, User
from ..utils.logging_config import get_logger
from .integrity_policy import ExpectedIntegrityTag
from .savepoints import expected_conflict_savepoint

logger = get_logger('engine')


@dataclass(frozen=True)
class EdgeTable:
    """Where and how one interest kind is stored."""

    model: Type
    actor_column: str
    target_column: str
    target_model: Type
    duplicate_tag: ExpectedIntegrityTag

    def actor_attr(self):
        return getattr(self.model, self.actor_column)

    def target_attr(self):
        return getattr(self.model, self.target_column)


EDGE_TABLES = {
    InterestKind.PROFILE_INTEREST: EdgeTable(
        model=ProfileInterest,
        actor_column="interested_user_id",
        target_column="target_user_id",
        target_model=User,
        duplicate_tag=ExpectedIntegrityTag.PROFILE_INTEREST_DUPLICATE,
    ),
    InterestKind.ANSWER_INTEREST: EdgeTable(
        model=AnswerInterest,
        actor_column="interested_user_id",
        target_column="target_answer_id",
        target_model=Answer,
        duplicate_tag=ExpectedIntegrityTag.ANSWER_INTEREST_DUPLICATE,
    ),
    InterestKind.SOULLINK_REQUEST: EdgeTable(
        model=SoullinkRequest,
        actor_column="sender_id",
        target_column="receiver_id",
        target_model=User,
        duplicate_tag=ExpectedIntegrityTag.SOULLINK_REQUEST_DUPLICATE,
    ),
}


class DirectedEdge(NamedTuple):
    """Kind-independent view of a stored interest edge."""

    edge_id: str
    actor_id: str
    target_id: str
    kind: InterestKind
    created_at: datetime


class InterestLedger:
    """Records and queries directional interest edges."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def record_interest(self, actor: str, target: str, kind: InterestKind) -> str:
        """
        Insert a directional interest edge.

        Args:
            actor: User expressing the interest
            target: User id (profile/soullink) or answer id (answer interest)
            kind: Interest kind

        Returns:
            The new edge id

        Raises:
            DuplicateEdgeError: If (actor, target, kind) already exists
            NotFoundError: If the actor or target does not exist
        """
        kind = InterestKind(kind)
        table = EDGE_TABLES[kind]
        edge = table.model(**{table.actor_column: actor, table.target_column: target})

        context = {
            "operation": "record_interest",
            "entity_type": kind.value,
            "entity_id": f"{actor}->{target}",
        }
        with expected_conflict_savepoint(self.db, {table.duplicate_tag}, context):
            self.db.add(edge)
            self.db.flush()

        if "integrity_tag" in context:
            raise DuplicateEdgeError(
                f"{kind.value} from {actor} to {target} already exists",
                context={"actor": actor, "target": target, "kind": kind.value},
            )

        logger.debug("Recorded %s %s -> %s", kind.value, actor, target)
        return edge.id

    def has_edge(self, actor: str, target: str, kind: InterestKind) -> bool:
        """Point lookup for a directional edge."""
        table = EDGE_TABLES[InterestKind(kind)]
        found = self.db.execute(
            select(table.model.id)
            .where(table.actor_attr() == actor, table.target_attr() == target)
            .limit(1)
        ).scalar_one_or_none()
        return found is not None

    def list_by_actor(self, actor: str, kind: InterestKind) -> List[DirectedEdge]:
        """All edges of ``kind`` expressed by ``actor``, oldest first."""
        table = EDGE_TABLES[InterestKind(kind)]
        rows = self.db.execute(
            select(table.model)
            .where(table.actor_attr() == actor)
            .order_by(table.model.created_at)
        ).scalars().all()
        return [self._to_edge(row, kind) for row in rows]

    def list_by_target(self, target: str, kind: InterestKind) -> List[DirectedEdge]:
        """All edges of ``kind`` pointing at ``target``, oldest first."""
        table = EDGE_TABLES[InterestKind(kind)]
        rows = self.db.execute(
            select(table.model)
            .where(table.target_attr() == target)
            .order_by(table.model.created_at)
        ).scalars().all()
        return [self._to_edge(row, kind) for row in rows]

    def withdraw_interest(self, actor: str, target: str, kind: InterestKind) -> bool:
        """
        Delete one directional edge. A relationship it helped form is kept.

        Returns:
            True if an edge was deleted
        """
        table = EDGE_TABLES[InterestKind(kind)]
        result = self.db.execute(
            delete(table.model).where(
                table.actor_attr() == actor, table.target_attr() == target
            )
        )
        return result.rowcount > 0

    def require_endpoints(self, actor: str, target: str, kind: InterestKind) -> None:
        """
        Verify that both endpoints of a prospective edge exist.

        Raises:
            NotFoundError: If the actor or the target is missing
        """
        table = EDGE_TABLES[InterestKind(kind)]
        if self.db.get(User, actor) is None:
            raise NotFoundError(f"User {actor} not found", context={"user_id": actor})
        if self.db.get(table.target_model, target) is None:
            target_name = table.target_model.__name__
            raise NotFoundError(
                f"{target_name} {target} not found",
                context={"entity_type": target_name.lower(), "entity_id": target},
            )

    @staticmethod
    def _to_edge(row, kind: InterestKind) -> DirectedEdge:
        table = EDGE_TABLES[InterestKind(kind)]
        return DirectedEdge(
            edge_id=row.id,
            actor_id=getattr(row, table.actor_column),
            target_id=getattr(row, table.target_column),
            kind=InterestKind(kind),
            created_at=row.created_at,
        )
