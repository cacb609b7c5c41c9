"""Relationship event contracts emitted by the reciprocity engine.

Events are immutable records of a mirrored interest being detected. They are
returned to the caller and describe what the enclosing transaction wrote.
"""

from datetime import datetime, timezone
from typing import List, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field  # type: ignore

from ..core.enums import InterestKind, MutualEventKind


class BaseRelationshipEvent(BaseModel):
    """Base class for relationship events."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    event_id: UUID = Field(default_factory=uuid4)
    # The user whose submission completed the mirror (second-arriving edge)
    actor_user_id: str
    # The user whose earlier edge was mirrored
    counterpart_user_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    notification_ids: List[str] = Field(default_factory=list)

    @property
    def event_kind(self) -> MutualEventKind:
        """Return the event kind identifier."""
        pass

    @property
    def participants(self) -> tuple:
        return (self.actor_user_id, self.counterpart_user_id)


class MutualProfileInterestEvent(BaseRelationshipEvent):
    """Two users have each expressed interest in the other's profile."""

    @property
    def event_kind(self) -> MutualEventKind:
        return MutualEventKind.MUTUAL_PROFILE_INTEREST


class SoulmateFormedEvent(BaseRelationshipEvent):
    """Two users have exchanged soullink requests and are now soulmates."""

    soulmate_id: str

    @property
    def event_kind(self) -> MutualEventKind:
        return MutualEventKind.SOULMATE_FORMED


RelationshipEvent = Union[MutualProfileInterestEvent, SoulmateFormedEvent]


class SubmissionResult(BaseModel):
    """Outcome of a single ``submit_interest`` call."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    edge_id: str
    kind: InterestKind
    mutual: bool = False
    event: Optional[RelationshipEvent] = None

    @property
    def event_kind(self) -> Optional[MutualEventKind]:
        return self.event.event_kind if self.event is not None else None
