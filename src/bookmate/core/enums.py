"""Enums for the Bookmate application."""

from enum import Enum


class InterestKind(str, Enum):
    """Kinds of directional interest edges."""

    PROFILE_INTEREST = "profile_interest"
    ANSWER_INTEREST = "answer_interest"
    SOULLINK_REQUEST = "soullink_request"

    @property
    def can_mutualize(self) -> bool:
        """Whether a mirrored edge of this kind forms a relationship event."""
        return self is not InterestKind.ANSWER_INTEREST

    @property
    def targets_user(self) -> bool:
        """Whether the target identifier refers to a user (else an answer)."""
        return self is not InterestKind.ANSWER_INTEREST


class MutualEventKind(str, Enum):
    """Relationship events fired when a mirrored edge is detected."""

    MUTUAL_PROFILE_INTEREST = "mutual_profile_interest"
    SOULMATE_FORMED = "soulmate_formed"


class NotificationType(str, Enum):
    """Notification categories shown to users."""

    MUTUAL_PROFILE_INTEREST = "MUTUAL_PROFILE_INTEREST"
    SOULMATE_FORMED = "SOULMATE_FORMED"


# Which relationship event each mutualizing interest kind fires
EVENT_FOR_KIND = {
    InterestKind.PROFILE_INTEREST: MutualEventKind.MUTUAL_PROFILE_INTEREST,
    InterestKind.SOULLINK_REQUEST: MutualEventKind.SOULMATE_FORMED,
}

# Default notification type emitted for each relationship event
NOTIFICATION_FOR_EVENT = {
    MutualEventKind.MUTUAL_PROFILE_INTEREST: NotificationType.MUTUAL_PROFILE_INTEREST,
    MutualEventKind.SOULMATE_FORMED: NotificationType.SOULMATE_FORMED,
}
