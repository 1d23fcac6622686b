"""
Closed vocabularies shared by the database, services and API models.
"""

from enum import Enum


class ClipStatus(str, Enum):
    """Lifecycle of an uploaded clip. Moves forward only."""
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"

    def allowed_next(self) -> frozenset:
        if self is ClipStatus.UPLOADED:
            return frozenset({ClipStatus.PROCESSING})
        if self is ClipStatus.PROCESSING:
            return frozenset({ClipStatus.READY, ClipStatus.FAILED})
        if self is ClipStatus.READY:
            return frozenset()
        if self is ClipStatus.FAILED:
            return frozenset()
        raise ValueError(f"Unhandled clip status: {self!r}")

    def can_transition_to(self, target: "ClipStatus") -> bool:
        return target in self.allowed_next()


class ApprovalStatus(str, Enum):
    """Coach uploads are approved on creation; link uploads start pending."""
    PENDING = "pending"
    APPROVED = "approved"


class TranscodingStatus(str, Enum):
    """Canonical job state reported by a transcoding provider."""
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class MembershipRole(str, Enum):
    COACH = "coach"
    PLAYER = "player"


class EventType(str, Enum):
    GAME = "game"
    PRACTICE = "practice"


class CommentLevel(str, Enum):
    """Who can read a comment."""
    ALL = "all"
    COACHES = "coaches"
    PRIVATE = "private"


def enum_values(enum_cls) -> str:
    """Render enum values for a SQL CHECK constraint."""
    return ", ".join(f"'{member.value}'" for member in enum_cls)
