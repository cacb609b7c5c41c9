"""
Reciprocity detector: the single atomic ``submit_interest`` operation.

One call records a directional interest edge, checks for the mirrored edge
under the pair lock, and on a match writes the relationship effects (soulmate
pair, paired notifications) in the same transaction. Mutual detection lives
here and nowhere else.
"""

from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..config import EngineConfig, get_config
from ..core.enums import EVENT_FOR_KIND, InterestKind, MutualEventKind
from ..core.pairs import canonical_pair
from ..domain.events import (
    MutualProfileInterestEvent,
    RelationshipEvent,
    SoulmateFormedEvent,
    SubmissionResult,
)
from ..utils.logging_config import get_logger
from .ledger import InterestLedger
from .locking import acquire_pair_lock
from .notifications import NotificationDispatcher
from .registry import RelationshipRegistry
from .transactions import run_with_retry, transaction_scope

logger = get_logger('engine')


class ReciprocityDetector:
    """
    Turns mirrored directional interest into relationship events.

    The detector works on the session it is given and owns that session's
    transaction for the duration of :meth:`submit_interest`.
    """

    def __init__(self, db_session: Session, config: Optional[EngineConfig] = None):
        self.db = db_session
        self.config = config or get_config().engine
        self.ledger = InterestLedger(db_session)
        self.registry = RelationshipRegistry(db_session)
        self.dispatcher = NotificationDispatcher(db_session, self.config)

    def submit_interest(self, actor: str, target: str, kind: InterestKind) -> SubmissionResult:
        """
        Record ``actor``'s interest in ``target`` and fire the relationship
        event if the mirrored edge already exists.

        Args:
            actor: User expressing interest
            target: User id, or answer id for answer interest
            kind: Interest kind

        Returns:
            SubmissionResult; ``mutual`` is True only for the submission that
            completed the mirror

        Raises:
            NotFoundError: If the actor or target does not exist
            DuplicateEdgeError: If this exact edge was already recorded
            StoreUnavailableError: If the store or pair lock timed out
        """
        kind = InterestKind(kind)

        with transaction_scope(self.db, "submit_interest"):
            self.ledger.require_endpoints(actor, target, kind)
            edge_id = self.ledger.record_interest(actor, target, kind)

            # Self-targeted edges are kept but never pair with themselves
            if not kind.can_mutualize or actor == target:
                return SubmissionResult(edge_id=edge_id, kind=kind)

            pair = canonical_pair(actor, target)
            acquire_pair_lock(self.db, pair, self.config.lock_timeout_ms)

            if not self.ledger.has_edge(target, actor, kind):
                logger.debug("No mirror yet for %s %s -> %s", kind.value, actor, target)
                return SubmissionResult(edge_id=edge_id, kind=kind)

            event = self._fire_event(EVENT_FOR_KIND[kind], actor, target)
            if event is None:
                return SubmissionResult(edge_id=edge_id, kind=kind)

            logger.info(
                "Relationship event fired",
                extra={
                    "event_kind": event.event_kind.value,
                    "pair": pair.lock_key,
                    "event_id": str(event.event_id),
                },
            )
            return SubmissionResult(edge_id=edge_id, kind=kind, mutual=True, event=event)

    def _fire_event(
        self, event_kind: MutualEventKind, actor: str, counterpart: str
    ) -> Optional[RelationshipEvent]:
        if event_kind is MutualEventKind.MUTUAL_PROFILE_INTEREST:
            notification_ids = self.dispatcher.notify_both(event_kind, actor, counterpart)
            return MutualProfileInterestEvent(
                actor_user_id=actor,
                counterpart_user_id=counterpart,
                notification_ids=notification_ids,
            )

        # A pair that survived a withdrawn and re-sent request is not re-announced
        if self.registry.get_soulmate(actor, counterpart) is not None:
            logger.info(
                "Mirrored soullink request for existing soulmates, no event",
                extra={"pair": canonical_pair(actor, counterpart).lock_key},
            )
            return None

        soulmate_id = self.registry.form_soulmate(actor, counterpart)
        notification_ids = self.dispatcher.notify_both(
            event_kind, actor, counterpart, {"related_soulmate_id": soulmate_id}
        )
        return SoulmateFormedEvent(
            actor_user_id=actor,
            counterpart_user_id=counterpart,
            soulmate_id=soulmate_id,
            notification_ids=notification_ids,
        )


def submit_interest_with_retry(
    session_factory: Callable[[], Session],
    actor: str,
    target: str,
    kind: InterestKind,
    config: Optional[EngineConfig] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> SubmissionResult:
    """
    Run :meth:`ReciprocityDetector.submit_interest` with retries on transient
    store failures. Each attempt uses a fresh session from ``session_factory``.
    """
    config = config or get_config().engine

    def attempt(session: Session) -> SubmissionResult:
        return ReciprocityDetector(session, config).submit_interest(actor, target, kind)

    retry_kwargs = {}
    if sleep is not None:
        retry_kwargs["sleep"] = sleep

    return run_with_retry(
        session_factory,
        attempt,
        attempts=config.retry_attempts,
        base_delay=config.retry_base_delay,
        max_delay=config.retry_max_delay,
        jitter_ratio=config.retry_jitter_ratio,
        **retry_kwargs,
    )
