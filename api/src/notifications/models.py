"""Database models for learner notifications.

Cassandra table definitions for:
- Notifications: per-user inbox, newest first
- Unread counts: counter table for quick badge queries

Notification types:
- QUIZ_GRADED: An attempt was graded (score, pass/fail, review flag)
- COURSE_COMPLETED: The course was completed and a certificate issued
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


# ==============================================================================
# Constants
# ==============================================================================

NOTIFICATION_MESSAGE_MAX_LENGTH = 500


class NotificationType(str, Enum):
    """Types of notifications."""

    QUIZ_GRADED = "quiz_graded"
    COURSE_COMPLETED = "course_completed"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Partitioned by user_id for inbox queries
NOTIFICATION_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.notifications (
    user_id UUID,
    notification_id UUID,
    type TEXT,
    title TEXT,
    message TEXT,
    reference_id UUID,
    reference_type TEXT,
    course_id UUID,
    is_read BOOLEAN,
    read_at TIMESTAMP,
    created_at TIMESTAMP,
    PRIMARY KEY ((user_id), created_at, notification_id)
) WITH CLUSTERING ORDER BY (created_at DESC, notification_id ASC)
"""

UNREAD_COUNT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.notification_unread_counts (
    user_id UUID PRIMARY KEY,
    count COUNTER
)
"""

NOTIFICATIONS_TABLES_CQL = [
    NOTIFICATION_TABLE_CQL,
    UNREAD_COUNT_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Notification:
    """Notification entity."""

    notification_id: UUID
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    reference_id: UUID | None
    reference_type: str | None
    course_id: UUID | None
    is_read: bool
    read_at: datetime | None
    created_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> "Notification":
        """Create Notification from Cassandra row."""
        return cls(
            notification_id=row.notification_id,
            user_id=row.user_id,
            type=NotificationType(row.type),
            title=row.title,
            message=row.message,
            reference_id=row.reference_id,
            reference_type=row.reference_type,
            course_id=row.course_id,
            is_read=row.is_read or False,
            read_at=row.read_at,
            created_at=row.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "notification_id": str(self.notification_id),
            "user_id": str(self.user_id),
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "reference_id": str(self.reference_id) if self.reference_id else None,
            "reference_type": self.reference_type,
            "course_id": str(self.course_id) if self.course_id else None,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat(),
        }


# ==============================================================================
# Factory Functions
# ==============================================================================


def create_notification(
    user_id: UUID,
    notification_type: NotificationType,
    title: str,
    message: str,
    reference_id: UUID | None = None,
    reference_type: str | None = None,
    course_id: UUID | None = None,
) -> Notification:
    """Create a new unread notification."""
    return Notification(
        notification_id=uuid4(),
        user_id=user_id,
        type=notification_type,
        title=title,
        message=message[:NOTIFICATION_MESSAGE_MAX_LENGTH],
        reference_id=reference_id,
        reference_type=reference_type,
        course_id=course_id,
        is_read=False,
        read_at=None,
        created_at=datetime.now(UTC),
    )


def _format_score(score: Decimal | float | str | None) -> str:
    if score is None:
        return "-"
    value = Decimal(str(score)).normalize()
    return f"{value:f}%"


def create_quiz_graded_notification(
    user_id: UUID,
    attempt_id: UUID,
    course_id: UUID | None,
    score_percent: Decimal | float | str | None,
    passed: bool,
    is_late: bool = False,
    needs_review: bool = False,
) -> Notification:
    """Create a notification for a graded quiz attempt."""
    score = _format_score(score_percent)
    if passed:
        title = "Quiz passed"
        message = f"You scored {score} and passed the quiz."
    else:
        title = "Quiz graded"
        message = f"You scored {score}."
    if is_late:
        message += " The attempt was submitted after the time limit."
    if needs_review:
        message += " Some answers are waiting for instructor review."

    return create_notification(
        user_id=user_id,
        notification_type=NotificationType.QUIZ_GRADED,
        title=title,
        message=message,
        reference_id=attempt_id,
        reference_type="quiz_attempt",
        course_id=course_id,
    )


def create_course_completed_notification(
    user_id: UUID,
    enrollment_id: UUID,
    course_id: UUID,
    certificate_number: str | None = None,
) -> Notification:
    """Create a notification for a completed course."""
    message = "Congratulations, you completed the course."
    if certificate_number:
        message += f" Your certificate number is {certificate_number}."

    return create_notification(
        user_id=user_id,
        notification_type=NotificationType.COURSE_COMPLETED,
        title="Course completed",
        message=message,
        reference_id=enrollment_id,
        reference_type="enrollment",
        course_id=course_id,
    )
