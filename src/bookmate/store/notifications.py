"""Notification dispatcher.

Paired notifications are written on the caller's session, so they commit or
roll back together with the relationship write that caused them. Related-id
columns are weak references: they are never joined on and may dangle after
the referenced row is deleted.
"""

from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.orm import Session

from ..config import EngineConfig, get_config
from ..core.enums import MutualEventKind, NotificationType, NOTIFICATION_FOR_EVENT
from ..core.errors import NotFoundError
from ..db.models import Notification, User
from ..utils.logging_config import get_logger
from .savepoints import expected_conflict_savepoint

logger = get_logger('notifications')

RELATED_FIELDS = (
    "related_book_isbn",
    "related_question_id",
    "related_answer_id",
    "related_soulmate_id",
)


class NotificationDispatcher:
    """Writes and manages user notifications."""

    def __init__(self, db_session: Session, config: Optional[EngineConfig] = None):
        self.db = db_session
        self.config = config or get_config().engine

    def notify_both(
        self,
        event_kind: MutualEventKind,
        user_a: str,
        user_b: str,
        related: Optional[Dict[str, Any]] = None,
        kind_map: Optional[Mapping[MutualEventKind, NotificationType]] = None,
    ) -> List[str]:
        """
        Insert one notification for each side of a relationship event.

        ``user_a``'s notification points at ``user_b`` and vice versa.

        Args:
            event_kind: Relationship event being announced
            user_a: First participant
            user_b: Second participant
            related: Optional weak ids (``related_book_isbn``,
                ``related_question_id``, ``related_answer_id``,
                ``related_soulmate_id``) copied onto both rows
            kind_map: Event kind to notification type mapping

        Returns:
            Notification ids, ``user_a``'s first
        """
        kind_map = kind_map or NOTIFICATION_FOR_EVENT
        notification_type = NotificationType(kind_map[MutualEventKind(event_kind)])
        related = self._check_related(related)

        template = self.config.template_for(notification_type.value)
        names = self._display_names(user_a, user_b)

        rows = [
            Notification(
                user_id=recipient,
                type=notification_type.value,
                content=template.format(name=names[counterpart]),
                related_user_id=counterpart,
                **related,
            )
            for recipient, counterpart in ((user_a, user_b), (user_b, user_a))
        ]
        self.db.add_all(rows)
        self.db.flush()

        logger.info(
            "Paired notifications written",
            extra={
                "notification_type": notification_type.value,
                "users": [user_a, user_b],
            },
        )
        return [row.id for row in rows]

    def notify(
        self,
        user_id: str,
        notification_type: NotificationType,
        content: Optional[str] = None,
        related_user_id: Optional[str] = None,
        **related: Any,
    ) -> Notification:
        """Insert a single caller-described notification.

        Raises:
            NotFoundError: If ``user_id`` does not exist
        """
        notification = Notification(
            user_id=user_id,
            type=NotificationType(notification_type).value,
            content=content,
            related_user_id=related_user_id,
            **self._check_related(related),
        )
        context = {"operation": "notify", "entity_type": "notification", "entity_id": user_id}
        with expected_conflict_savepoint(self.db, set(), context):
            self.db.add(notification)
            self.db.flush()
        return notification

    def list_for_user(self, user_id: str, unread_only: bool = False) -> List[Notification]:
        """Notifications owned by ``user_id``, newest first."""
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
        return list(self.db.execute(stmt).scalars().all())

    def mark_read(self, notification_id: str) -> Notification:
        notification = self.db.get(Notification, notification_id)
        if notification is None:
            raise NotFoundError(
                f"Notification {notification_id} not found",
                context={"notification_id": notification_id},
            )
        notification.is_read = True
        self.db.flush()
        return notification

    def mark_all_read(self, user_id: str) -> int:
        """Flip every unread notification of a user; returns how many changed."""
        result = self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def delete(self, notification_id: str) -> bool:
        result = self.db.execute(
            delete(Notification).where(Notification.id == notification_id)
        )
        return result.rowcount > 0

    def resolve_related_user(self, notification: Notification) -> Optional[User]:
        """Follow the weak user reference; None if unset or the user is gone."""
        if notification.related_user_id is None:
            return None
        return self.db.get(User, notification.related_user_id)

    def _display_names(self, *user_ids: str) -> Dict[str, str]:
        names = {}
        for user_id in user_ids:
            user = self.db.get(User, user_id)
            if user is None:
                raise NotFoundError(f"User {user_id} not found", context={"user_id": user_id})
            names[user_id] = user.display_name
        return names

    @staticmethod
    def _check_related(related: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        related = dict(related or {})
        unknown = set(related) - set(RELATED_FIELDS)
        if unknown:
            raise ValueError(f"Unknown related fields: {sorted(unknown)}")
        return related
