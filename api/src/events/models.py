"""Outbound domain events.

Events are facts about the grading and progress core that external
collaborators (certificate PDF generation, notifications) react to.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

import orjson


class EventName(str, Enum):
    """Names of the events the core emits."""

    QUIZ_GRADED = "quiz.graded"
    QUIZ_PASSED = "quiz.passed"
    COURSE_COMPLETED = "course.completed"


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    raise TypeError


@dataclass(frozen=True)
class DomainEvent:
    """A single emitted event."""

    name: str
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    event_id: UUID = field(default_factory=uuid4)

    @classmethod
    def create(cls, name: EventName | str, **payload: Any) -> "DomainEvent":
        """Factory method to create a new event."""
        event_name = name.value if isinstance(name, EventName) else name
        return cls(name=event_name, payload=payload)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "event_id": self.event_id,
            "name": self.name,
            "occurred_at": self.occurred_at,
            "payload": self.payload,
        }

    def to_json(self) -> bytes:
        """Serialize for publishing on a Redis channel."""
        return orjson.dumps(self.to_dict(), default=_json_default)
