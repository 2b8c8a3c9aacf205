"""Course catalog service layer.

Business logic for:
- Course creation and lookup
- Ordered module management
- Module ownership and count queries used by the progress tracker
"""

from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from src.core.exceptions import NotFoundError
from src.courses.models import Course, CourseModule
from src.courses.schemas import (
    CourseDetailResponse,
    CourseResponse,
    CreateCourseRequest,
    CreateModuleRequest,
    ModuleResponse,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CourseNotFoundError(NotFoundError):
    """Course not found."""

    default_message = "Course not found"
    default_code = "course_not_found"


# ==============================================================================
# Course Service
# ==============================================================================


class CourseService:
    """Service for the course catalog."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._get_course_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses WHERE id = ?"
        )
        self._insert_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.courses
            (id, title, description, status, creator_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_course_modules = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.course_modules WHERE course_id = ?"
        )
        self._count_course_modules = self.session.prepare(
            f"SELECT COUNT(*) AS count FROM {self.keyspace}.course_modules WHERE course_id = ?"
        )
        self._insert_course_module = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.course_modules
            (course_id, position, module_id, title, content_type, added_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """)

        self._get_module_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.modules_by_id WHERE module_id = ?"
        )
        self._insert_module_by_id = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.modules_by_id
            (module_id, course_id, position, title, content_type)
            VALUES (?, ?, ?, ?, ?)
        """)

    # ==========================================================================
    # Courses
    # ==========================================================================

    async def create_course(
        self, data: CreateCourseRequest, creator_id: UUID
    ) -> Course:
        """Create a new course."""
        course = Course(
            title=data.title,
            description=data.description,
            creator_id=creator_id,
        )

        await self.session.aexecute(
            self._insert_course,
            [
                course.id,
                course.title,
                course.description,
                course.status,
                course.creator_id,
                course.created_at,
                course.updated_at,
            ],
        )

        logger.info("course_created", course_id=str(course.id), creator_id=str(creator_id))
        return course

    async def get_course(self, course_id: UUID) -> Course | None:
        """Get course by ID."""
        result = await self.session.aexecute(self._get_course_by_id, [course_id])
        row = result.one()
        return Course.from_row(row) if row else None

    async def require_course(self, course_id: UUID) -> Course:
        """Get course by ID or raise CourseNotFoundError."""
        course = await self.get_course(course_id)
        if course is None:
            raise CourseNotFoundError
        return course

    # ==========================================================================
    # Modules
    # ==========================================================================

    async def add_module(
        self, course_id: UUID, data: CreateModuleRequest
    ) -> CourseModule:
        """Append a module to the end of a course.

        Raises:
            CourseNotFoundError: If the course does not exist
        """
        await self.require_course(course_id)

        position = await self.count_modules(course_id)
        module = CourseModule(
            course_id=course_id,
            position=position,
            title=data.title,
            content_type=data.content_type.value,
        )

        await self.session.aexecute(
            self._insert_course_module,
            [
                module.course_id,
                module.position,
                module.module_id,
                module.title,
                module.content_type,
                module.added_at,
            ],
        )
        await self.session.aexecute(
            self._insert_module_by_id,
            [
                module.module_id,
                module.course_id,
                module.position,
                module.title,
                module.content_type,
            ],
        )

        logger.info(
            "module_added",
            course_id=str(course_id),
            module_id=str(module.module_id),
            position=position,
        )
        return module

    async def get_course_modules(self, course_id: UUID) -> list[CourseModule]:
        """Get the modules of a course in position order."""
        rows = await self.session.aexecute(self._get_course_modules, [course_id])
        return [CourseModule.from_row(row) for row in rows]

    async def get_module(self, module_id: UUID) -> CourseModule | None:
        """Get a module with its owning course."""
        result = await self.session.aexecute(self._get_module_by_id, [module_id])
        row = result.one()
        return CourseModule.from_row(row) if row else None

    async def get_module_course(self, module_id: UUID) -> UUID | None:
        """Resolve the course a module belongs to."""
        module = await self.get_module(module_id)
        return module.course_id if module else None

    async def count_modules(self, course_id: UUID) -> int:
        """Current number of modules in a course."""
        result = await self.session.aexecute(self._count_course_modules, [course_id])
        row = result.one()
        return int(row.count) if row else 0

    # ==========================================================================
    # Response Helpers
    # ==========================================================================

    def to_response(self, course: Course, module_count: int = 0) -> CourseResponse:
        """Convert Course entity to response schema."""
        return CourseResponse(**course.to_dict(), module_count=module_count)

    def to_detail_response(
        self, course: Course, modules: list[CourseModule]
    ) -> CourseDetailResponse:
        """Convert Course and its modules to detail response."""
        return CourseDetailResponse(
            **course.to_dict(),
            module_count=len(modules),
            modules=[ModuleResponse(**m.to_dict()) for m in modules],
        )
