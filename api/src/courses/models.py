"""Database models for the course catalog.

Cassandra table definitions for:
- Courses: Main course table
- Course modules: Ordered modules of each course
- Modules by id: Reverse lookup from a module to its owning course

The catalog is the source of a course's module count, which the
progress tracker divides by.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class ContentStatus(str, Enum):
    """Content publication status."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ContentType(str, Enum):
    """Module content type."""

    VIDEO = "video"
    TEXT = "text"
    QUIZ = "quiz"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    description TEXT,
    status TEXT,
    creator_id UUID,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

COURSE_MODULES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_modules (
    course_id UUID,
    position INT,
    module_id UUID,
    title TEXT,
    content_type TEXT,
    added_at TIMESTAMP,
    PRIMARY KEY (course_id, position, module_id)
) WITH CLUSTERING ORDER BY (position ASC, module_id ASC)
"""

# Module -> owning course (for enrollment membership checks)
MODULES_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.modules_by_id (
    module_id UUID PRIMARY KEY,
    course_id UUID,
    position INT,
    title TEXT,
    content_type TEXT
)
"""

COURSES_TABLES_CQL = [
    COURSE_TABLE_CQL,
    COURSE_MODULES_TABLE_CQL,
    MODULES_BY_ID_TABLE_CQL,
]


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# ==============================================================================
# Entity Classes
# ==============================================================================


class Course:
    """Course entity representing an ordered collection of modules.

    Attributes:
        id: Unique identifier (UUID)
        title: Course title
        description: Course description
        status: Publication status (draft, published, archived)
        creator_id: Teacher who created the course
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        id: UUID | None = None,
        title: str = "",
        description: str | None = None,
        status: str = ContentStatus.PUBLISHED.value,
        creator_id: UUID | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.title = title.strip()
        self.description = description
        self.status = status
        self.creator_id = creator_id
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Course":
        """Create Course instance from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title,
            description=row.description,
            status=row.status,
            creator_id=row.creator_id,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "creator_id": self.creator_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Course {self.title} ({self.status})>"


class CourseModule:
    """A module at a fixed position within its course.

    Attributes:
        course_id: Owning course
        position: Zero-based order within the course
        module_id: Unique identifier (UUID)
        title: Module title
        content_type: video, text or quiz
        added_at: When the module was added
    """

    def __init__(
        self,
        course_id: UUID,
        position: int = 0,
        module_id: UUID | None = None,
        title: str = "",
        content_type: str = ContentType.TEXT.value,
        added_at: datetime | None = None,
    ):
        self.course_id = course_id
        self.position = position
        self.module_id = module_id or uuid4()
        self.title = title.strip()
        self.content_type = content_type
        self.added_at = ensure_utc_aware(added_at) or datetime.now(UTC)

    @classmethod
    def from_row(cls, row: Any) -> "CourseModule":
        """Create CourseModule from a course_modules or modules_by_id row."""
        return cls(
            course_id=row.course_id,
            position=row.position,
            module_id=row.module_id,
            title=row.title,
            content_type=row.content_type,
            added_at=getattr(row, "added_at", None),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "course_id": self.course_id,
            "position": self.position,
            "module_id": self.module_id,
            "title": self.title,
            "content_type": self.content_type,
            "added_at": self.added_at,
        }

    def __repr__(self) -> str:
        return f"<CourseModule {self.position}:{self.title} course={self.course_id}>"
