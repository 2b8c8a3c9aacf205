"""Database models for enrollment and module progress tracking.

Cassandra table definitions for:
- Enrollments: Source of truth, keyed by enrollment id
- Enrollment lookup: Current enrollment per (student, course)
- Module progress: One row per completed module of an enrollment
- Lookup tables: Enrollments by user and by course

Concurrency: every state change on an enrollment is a lightweight
transaction (IF ...), so concurrent writers are serialised by Paxos and
a stale writer never overwrites a newer count.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class EnrollmentStatus(str, Enum):
    """Course enrollment status."""

    ACTIVE = "active"
    COMPLETED = "completed"  # Terminal
    DROPPED = "dropped"  # Terminal


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def compute_progress(modules_completed: int, modules_total: int) -> int:
    """Integer percentage of completed modules, truncated.

    Examples:
        >>> compute_progress(1, 3)
        33
        >>> compute_progress(2, 2)
        100
    """
    if modules_total <= 0:
        return 0
    return min(100, modules_completed * 100 // modules_total)


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    id UUID PRIMARY KEY,
    user_id UUID,
    course_id UUID,
    status TEXT,
    progress_percent INT,
    modules_completed INT,
    modules_total INT,
    enrolled_at TIMESTAMP,
    completed_at TIMESTAMP,
    dropped_at TIMESTAMP,
    last_accessed_at TIMESTAMP,
    last_module_id UUID
)
"""

# Current enrollment of a (student, course) pair
# Written IF NOT EXISTS, replaced only when the referenced enrollment was dropped
ENROLLMENT_LOOKUP_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollment_lookup (
    user_id UUID,
    course_id UUID,
    enrollment_id UUID,
    PRIMARY KEY ((user_id, course_id))
)
"""

ENROLLMENTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_user (
    user_id UUID,
    enrolled_at TIMESTAMP,
    enrollment_id UUID,
    course_id UUID,
    PRIMARY KEY (user_id, enrolled_at, enrollment_id)
) WITH CLUSTERING ORDER BY (enrolled_at DESC, enrollment_id ASC)
"""

ENROLLMENTS_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_course (
    course_id UUID,
    enrollment_id UUID,
    user_id UUID,
    enrolled_at TIMESTAMP,
    PRIMARY KEY (course_id, enrollment_id)
)
"""

# Completed modules of an enrollment (rows are never deleted)
MODULE_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.module_progress (
    enrollment_id UUID,
    module_id UUID,
    completed BOOLEAN,
    completed_at TIMESTAMP,
    last_accessed_at TIMESTAMP,
    PRIMARY KEY (enrollment_id, module_id)
)
"""

# All CQL statements for table setup
PROGRESS_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENT_LOOKUP_TABLE_CQL,
    ENROLLMENTS_BY_USER_TABLE_CQL,
    ENROLLMENTS_BY_COURSE_TABLE_CQL,
    MODULE_PROGRESS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class ModuleProgress:
    """Completion record of one module within an enrollment.

    The completed flag only ever goes from false to true.

    Attributes:
        enrollment_id: Enrollment UUID
        module_id: Module UUID
        completed: Whether the module is complete
        completed_at: Completion timestamp
        last_accessed_at: Last access timestamp
    """

    def __init__(
        self,
        enrollment_id: UUID,
        module_id: UUID,
        completed: bool = False,
        completed_at: datetime | None = None,
        last_accessed_at: datetime | None = None,
    ):
        self.enrollment_id = enrollment_id
        self.module_id = module_id
        self.completed = completed
        self.completed_at = ensure_utc_aware(completed_at)
        self.last_accessed_at = ensure_utc_aware(last_accessed_at) or datetime.now(UTC)

    @classmethod
    def completed_now(cls, enrollment_id: UUID, module_id: UUID) -> "ModuleProgress":
        """A freshly completed module."""
        now = datetime.now(UTC)
        return cls(
            enrollment_id=enrollment_id,
            module_id=module_id,
            completed=True,
            completed_at=now,
            last_accessed_at=now,
        )

    @classmethod
    def from_row(cls, row: Any) -> "ModuleProgress":
        """Create ModuleProgress instance from Cassandra row."""
        return cls(
            enrollment_id=row.enrollment_id,
            module_id=row.module_id,
            completed=bool(row.completed),
            completed_at=row.completed_at,
            last_accessed_at=row.last_accessed_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "enrollment_id": self.enrollment_id,
            "module_id": self.module_id,
            "completed": self.completed,
            "completed_at": self.completed_at,
            "last_accessed_at": self.last_accessed_at,
        }

    def __repr__(self) -> str:
        return (
            f"<ModuleProgress enrollment={self.enrollment_id} "
            f"module={self.module_id} completed={self.completed}>"
        )


class Enrollment:
    """Course enrollment entity.

    Tracks enrollment status and overall course progress.

    Attributes:
        id: Enrollment UUID
        user_id: Student UUID
        course_id: Course UUID
        status: active, completed or dropped
        progress_percent: Integer course progress (0-100)
        modules_completed: Number of completed modules
        modules_total: Module count of the course at the last recompute
        enrolled_at: Enrollment timestamp
        completed_at: Course completion timestamp
        dropped_at: Drop timestamp
        last_accessed_at: Last module completion timestamp
        last_module_id: Last completed module (for resume)
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        id: UUID | None = None,
        status: str = EnrollmentStatus.ACTIVE.value,
        progress_percent: int = 0,
        modules_completed: int = 0,
        modules_total: int = 0,
        enrolled_at: datetime | None = None,
        completed_at: datetime | None = None,
        dropped_at: datetime | None = None,
        last_accessed_at: datetime | None = None,
        last_module_id: UUID | None = None,
    ):
        self.id = id or uuid4()
        self.user_id = user_id
        self.course_id = course_id
        self.status = status
        self.progress_percent = progress_percent
        self.modules_completed = modules_completed
        self.modules_total = modules_total
        self.enrolled_at = ensure_utc_aware(enrolled_at) or datetime.now(UTC)
        self.completed_at = ensure_utc_aware(completed_at)
        self.dropped_at = ensure_utc_aware(dropped_at)
        self.last_accessed_at = ensure_utc_aware(last_accessed_at)
        self.last_module_id = last_module_id

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ACTIVE.value

    @property
    def is_completed(self) -> bool:
        """Check if course is completed."""
        return self.status == EnrollmentStatus.COMPLETED.value

    @property
    def is_dropped(self) -> bool:
        return self.status == EnrollmentStatus.DROPPED.value

    @property
    def is_current(self) -> bool:
        """Active or completed; a dropped enrollment may be replaced."""
        return not self.is_dropped

    def apply_progress(
        self,
        modules_completed: int,
        modules_total: int,
        module_id: UUID | None = None,
        at: datetime | None = None,
    ) -> None:
        """Record a recomputed module count. The percent never goes down."""
        self.modules_completed = modules_completed
        self.modules_total = modules_total
        self.progress_percent = max(
            self.progress_percent, compute_progress(modules_completed, modules_total)
        )
        self.last_module_id = module_id or self.last_module_id
        self.last_accessed_at = at or datetime.now(UTC)

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            id=row.id,
            user_id=row.user_id,
            course_id=row.course_id,
            status=row.status or EnrollmentStatus.ACTIVE.value,
            progress_percent=row.progress_percent or 0,
            modules_completed=row.modules_completed or 0,
            modules_total=row.modules_total or 0,
            enrolled_at=row.enrolled_at,
            completed_at=row.completed_at,
            dropped_at=row.dropped_at,
            last_accessed_at=row.last_accessed_at,
            last_module_id=row.last_module_id,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "status": self.status,
            "progress_percent": self.progress_percent,
            "modules_completed": self.modules_completed,
            "modules_total": self.modules_total,
            "enrolled_at": self.enrolled_at,
            "completed_at": self.completed_at,
            "dropped_at": self.dropped_at,
            "last_accessed_at": self.last_accessed_at,
            "last_module_id": self.last_module_id,
        }

    def __repr__(self) -> str:
        return (
            f"<Enrollment user={self.user_id} course={self.course_id} "
            f"{self.status} {self.progress_percent}%>"
        )
