"""Enrollment and progress tracking service layer.

Business logic for:
- Course enrollment (at most one current enrollment per student and course)
- Idempotent module completion with integer progress recomputation
- Course completion once every module is done and every quiz is passed
- Certificate issuance at the completion transition
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from src.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from src.events.models import EventName

from .models import (
    Enrollment,
    EnrollmentStatus,
    ModuleProgress,
    compute_progress,
)
from .schemas import ModuleProgressResponse


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from src.certificates.service import CertificateService
    from src.courses.service import CourseService
    from src.events.dispatcher import EventDispatcher

logger = structlog.get_logger(__name__)

PROGRESS_WRITE_ATTEMPTS = 3


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class EnrollmentNotFoundError(NotFoundError):
    """Enrollment not found."""

    default_message = "Enrollment not found"
    default_code = "enrollment_not_found"


class ModuleNotInCourseError(NotFoundError):
    """Module does not belong to the enrollment's course."""

    default_message = "Module does not belong to the enrolled course"
    default_code = "module_not_in_course"


class AlreadyEnrolledError(ConflictError):
    """Student already has a current enrollment in the course."""

    default_message = "Already enrolled in this course"
    default_code = "already_enrolled"


class EnrollmentDroppedError(InvalidStateError):
    """Operation on a dropped enrollment."""

    default_message = "Enrollment was dropped"
    default_code = "enrollment_dropped"


class EnrollmentNotActiveError(InvalidStateError):
    """Operation requires an active enrollment."""

    default_message = "Enrollment is not active"
    default_code = "enrollment_not_active"


# ==============================================================================
# Progress Service
# ==============================================================================


class ProgressService:
    """Service for enrollments, module progress and course completion."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        course_service: "CourseService",
        certificate_service: "CertificateService",
        dispatcher: "EventDispatcher | None" = None,
    ):
        """Initialize with Cassandra session and collaborating services."""
        self.session = session
        self.keyspace = keyspace
        self.course_service = course_service
        self.certificate_service = certificate_service
        self.dispatcher = dispatcher
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        # Enrollments
        self._get_enrollment = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.enrollments WHERE id = ?"
        )
        self._get_enrollments = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.enrollments WHERE id IN ?"
        )
        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (id, user_id, course_id, status, progress_percent, modules_completed,
             modules_total, enrolled_at, completed_at, dropped_at, last_accessed_at,
             last_module_id)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._delete_enrollment = self.session.prepare(
            f"DELETE FROM {self.keyspace}.enrollments WHERE id = ?"
        )
        self._update_progress = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET progress_percent = ?, modules_completed = ?, modules_total = ?,
                last_accessed_at = ?, last_module_id = ?
            WHERE id = ?
            IF status = 'active' AND modules_completed < ? AND progress_percent <= ?
        """)
        self._mark_completed = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET status = 'completed', completed_at = ?
            WHERE id = ?
            IF status = 'active' AND progress_percent = 100
        """)
        self._mark_dropped = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET status = 'dropped', dropped_at = ?
            WHERE id = ?
            IF status = 'active'
        """)

        # Enrollment lookup (one current enrollment per pair)
        self._get_lookup = self.session.prepare(f"""
            SELECT enrollment_id FROM {self.keyspace}.enrollment_lookup
            WHERE user_id = ? AND course_id = ?
        """)
        self._insert_lookup = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollment_lookup (user_id, course_id, enrollment_id)
            VALUES (?, ?, ?)
            IF NOT EXISTS
        """)
        self._replace_lookup = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollment_lookup SET enrollment_id = ?
            WHERE user_id = ? AND course_id = ?
            IF enrollment_id = ?
        """)

        # Lookup tables
        self._insert_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_user
            (user_id, enrolled_at, enrollment_id, course_id)
            VALUES (?, ?, ?, ?)
        """)
        self._get_by_user = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.enrollments_by_user WHERE user_id = ?"
        )
        self._insert_by_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_course
            (course_id, enrollment_id, user_id, enrolled_at)
            VALUES (?, ?, ?, ?)
        """)
        self._get_by_course = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.enrollments_by_course WHERE course_id = ?"
        )

        # Module progress
        self._insert_module_progress = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.module_progress
            (enrollment_id, module_id, completed, completed_at, last_accessed_at)
            VALUES (?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._count_module_progress = self.session.prepare(f"""
            SELECT COUNT(*) AS count FROM {self.keyspace}.module_progress
            WHERE enrollment_id = ?
        """)
        self._get_module_progress = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.module_progress WHERE enrollment_id = ?"
        )

        # Quiz requirements for completion
        self._get_course_quizzes = self.session.prepare(
            f"SELECT quiz_id FROM {self.keyspace}.quizzes_by_course WHERE course_id = ?"
        )
        self._get_passed_quizzes = self.session.prepare(f"""
            SELECT quiz_id FROM {self.keyspace}.quiz_passes
            WHERE user_id = ? AND course_id = ?
        """)

    # ==========================================================================
    # Enrollment Operations
    # ==========================================================================

    async def enroll(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Enroll a student in a course.

        A dropped enrollment is superseded by the new one.

        Raises:
            CourseNotFoundError: If the course does not exist
            AlreadyEnrolledError: If an active or completed enrollment exists
        """
        await self.course_service.require_course(course_id)
        modules_total = await self.course_service.count_modules(course_id)

        enrollment = Enrollment(
            user_id=user_id,
            course_id=course_id,
            modules_total=modules_total,
        )
        await self._write_enrollment(enrollment)

        try:
            await self._claim_lookup(enrollment)
        except ConflictError:
            await self.session.aexecute(self._delete_enrollment, [enrollment.id])
            raise

        await self.session.aexecute(
            self._insert_by_user,
            [user_id, enrollment.enrolled_at, enrollment.id, course_id],
        )
        await self.session.aexecute(
            self._insert_by_course,
            [course_id, enrollment.id, user_id, enrollment.enrolled_at],
        )

        logger.info(
            "user_enrolled",
            enrollment_id=str(enrollment.id),
            user_id=str(user_id),
            course_id=str(course_id),
            modules_total=modules_total,
        )
        return enrollment

    async def _write_enrollment(self, enrollment: Enrollment) -> None:
        await self.session.aexecute(
            self._insert_enrollment,
            [
                enrollment.id,
                enrollment.user_id,
                enrollment.course_id,
                enrollment.status,
                enrollment.progress_percent,
                enrollment.modules_completed,
                enrollment.modules_total,
                enrollment.enrolled_at,
                enrollment.completed_at,
                enrollment.dropped_at,
                enrollment.last_accessed_at,
                enrollment.last_module_id,
            ],
        )

    async def _claim_lookup(self, enrollment: Enrollment) -> None:
        """Point the (student, course) lookup at a new enrollment.

        Raises:
            AlreadyEnrolledError: If the current enrollment is not dropped,
                or a concurrent enroll won the race
        """
        result = await self.session.aexecute(
            self._insert_lookup,
            [enrollment.user_id, enrollment.course_id, enrollment.id],
        )
        if result.was_applied:
            return

        current_id = result.one().enrollment_id
        current = await self.get_enrollment(current_id)
        if current is not None and current.is_current:
            raise AlreadyEnrolledError

        replaced = await self.session.aexecute(
            self._replace_lookup,
            [enrollment.id, enrollment.user_id, enrollment.course_id, current_id],
        )
        if not replaced.was_applied:
            raise AlreadyEnrolledError

        logger.info(
            "dropped_enrollment_superseded",
            previous_enrollment_id=str(current_id),
            enrollment_id=str(enrollment.id),
        )

    async def get_enrollment(self, enrollment_id: UUID) -> Enrollment | None:
        """Get enrollment by ID."""
        result = await self.session.aexecute(self._get_enrollment, [enrollment_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def require_enrollment(self, enrollment_id: UUID) -> Enrollment:
        """Get enrollment by ID or raise EnrollmentNotFoundError."""
        enrollment = await self.get_enrollment(enrollment_id)
        if enrollment is None:
            raise EnrollmentNotFoundError
        return enrollment

    async def get_enrollment_for(
        self, user_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        """Get the current enrollment of a student in a course."""
        result = await self.session.aexecute(self._get_lookup, [user_id, course_id])
        row = result.one()
        if not row:
            return None
        return await self.get_enrollment(row.enrollment_id)

    async def _load_many(self, enrollment_ids: list[UUID]) -> dict[UUID, Enrollment]:
        if not enrollment_ids:
            return {}
        rows = await self.session.aexecute(self._get_enrollments, [enrollment_ids])
        return {row.id: Enrollment.from_row(row) for row in rows}

    async def list_user_enrollments(self, user_id: UUID) -> list[Enrollment]:
        """Get all enrollments of a student, newest first."""
        rows = await self.session.aexecute(self._get_by_user, [user_id])
        ids = [row.enrollment_id for row in rows]
        loaded = await self._load_many(ids)
        return [loaded[i] for i in ids if i in loaded]

    async def list_course_enrollments(self, course_id: UUID) -> list[Enrollment]:
        """Get all enrollments of a course (teacher roster)."""
        rows = await self.session.aexecute(self._get_by_course, [course_id])
        ids = [row.enrollment_id for row in rows]
        loaded = await self._load_many(ids)
        return [loaded[i] for i in ids if i in loaded]

    async def drop(self, enrollment_id: UUID) -> Enrollment:
        """Drop an active enrollment.

        Raises:
            EnrollmentNotFoundError: If the enrollment does not exist
            EnrollmentNotActiveError: If it is already completed or dropped
        """
        enrollment = await self.require_enrollment(enrollment_id)
        if not enrollment.is_active:
            raise EnrollmentNotActiveError(
                f"Cannot drop a {enrollment.status} enrollment"
            )

        now = datetime.now(UTC)
        result = await self.session.aexecute(self._mark_dropped, [now, enrollment_id])
        if not result.was_applied:
            current = await self.require_enrollment(enrollment_id)
            raise EnrollmentNotActiveError(f"Cannot drop a {current.status} enrollment")

        enrollment.status = EnrollmentStatus.DROPPED.value
        enrollment.dropped_at = now

        logger.info(
            "enrollment_dropped",
            enrollment_id=str(enrollment_id),
            user_id=str(enrollment.user_id),
            course_id=str(enrollment.course_id),
        )
        return enrollment

    # ==========================================================================
    # Module Completion
    # ==========================================================================

    async def mark_module_complete(
        self, enrollment_id: UUID, module_id: UUID
    ) -> Enrollment:
        """Mark a module complete and recompute the enrollment's progress.

        Repeat calls are no-ops. Progress is the truncated integer
        percentage of completed modules and never decreases: the update is
        applied only if it raises the stored completed-module count without
        lowering the stored percent.

        Raises:
            EnrollmentNotFoundError: If the enrollment does not exist
            EnrollmentDroppedError: If the enrollment was dropped
            ModuleNotInCourseError: If the module is not part of the course
        """
        enrollment = await self.require_enrollment(enrollment_id)
        if enrollment.is_dropped:
            raise EnrollmentDroppedError

        module_course_id = await self.course_service.get_module_course(module_id)
        if module_course_id != enrollment.course_id:
            raise ModuleNotInCourseError

        progress = ModuleProgress.completed_now(enrollment_id, module_id)
        inserted = await self.session.aexecute(
            self._insert_module_progress,
            [
                progress.enrollment_id,
                progress.module_id,
                progress.completed,
                progress.completed_at,
                progress.last_accessed_at,
            ],
        )
        newly_completed = inserted.was_applied

        if enrollment.is_completed:
            logger.info(
                "module_completed_after_course",
                enrollment_id=str(enrollment_id),
                module_id=str(module_id),
                newly_completed=newly_completed,
            )
            await self._ensure_certificate(enrollment)
            return enrollment

        modules_completed = await self._count_completed(enrollment_id)
        modules_total = await self.course_service.count_modules(enrollment.course_id)
        enrollment = await self._store_progress(
            enrollment, modules_completed, modules_total, module_id, newly_completed
        )

        if enrollment.is_active and enrollment.progress_percent == 100:
            enrollment = await self._try_complete(enrollment)

        return enrollment

    async def _store_progress(
        self,
        enrollment: Enrollment,
        modules_completed: int,
        modules_total: int,
        module_id: UUID,
        newly_completed: bool,
    ) -> Enrollment:
        """Write a higher completed count without lowering the stored percent.

        Modules added after enrollment grow the denominator, so the percent
        written is never below the one already stored. A lost race reloads
        the row and retries while this call still has the higher count.
        """
        for _ in range(PROGRESS_WRITE_ATTEMPTS):
            progress_percent = max(
                compute_progress(modules_completed, modules_total),
                enrollment.progress_percent,
            )
            now = datetime.now(UTC)
            result = await self.session.aexecute(
                self._update_progress,
                [
                    progress_percent,
                    modules_completed,
                    modules_total,
                    now,
                    module_id,
                    enrollment.id,
                    modules_completed,
                    progress_percent,
                ],
            )
            if result.was_applied:
                enrollment.apply_progress(modules_completed, modules_total, module_id, now)
                logger.info(
                    "module_completed",
                    enrollment_id=str(enrollment.id),
                    module_id=str(module_id),
                    modules_completed=modules_completed,
                    modules_total=modules_total,
                    progress_percent=enrollment.progress_percent,
                )
                return enrollment

            enrollment = await self.require_enrollment(enrollment.id)
            if not enrollment.is_active or enrollment.modules_completed >= modules_completed:
                break

        # A concurrent writer already stored this count (or more)
        logger.debug(
            "module_progress_unchanged",
            enrollment_id=str(enrollment.id),
            module_id=str(module_id),
            newly_completed=newly_completed,
            progress_percent=enrollment.progress_percent,
        )
        return enrollment

    async def _count_completed(self, enrollment_id: UUID) -> int:
        result = await self.session.aexecute(
            self._count_module_progress, [enrollment_id]
        )
        row = result.one()
        return int(row.count) if row else 0

    async def get_module_progress(self, enrollment_id: UUID) -> list[ModuleProgress]:
        """Completed module rows of an enrollment."""
        rows = await self.session.aexecute(self._get_module_progress, [enrollment_id])
        return [ModuleProgress.from_row(row) for row in rows]

    async def get_enrollment_modules(
        self, enrollment: Enrollment
    ) -> list[ModuleProgressResponse]:
        """Every module of the course with its completion state, in order."""
        modules = await self.course_service.get_course_modules(enrollment.course_id)
        done = {p.module_id: p for p in await self.get_module_progress(enrollment.id)}

        items = []
        for module in modules:
            record = done.get(module.module_id)
            items.append(
                ModuleProgressResponse(
                    module_id=module.module_id,
                    position=module.position,
                    title=module.title,
                    completed=bool(record and record.completed),
                    completed_at=record.completed_at if record else None,
                )
            )
        return items

    # ==========================================================================
    # Course Completion
    # ==========================================================================

    async def handle_quiz_passed(
        self, user_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        """React to a passed quiz by re-running the completion check."""
        enrollment = await self.get_enrollment_for(user_id, course_id)
        if enrollment is None:
            logger.warning(
                "quiz_passed_without_enrollment",
                user_id=str(user_id),
                course_id=str(course_id),
            )
            return None

        if enrollment.is_completed:
            await self._ensure_certificate(enrollment)
            return enrollment

        if enrollment.is_active and enrollment.progress_percent == 100:
            return await self._try_complete(enrollment)

        return enrollment

    async def pending_quizzes(self, user_id: UUID, course_id: UUID) -> set[UUID]:
        """Quizzes of a course the student has not passed yet."""
        required = await self.session.aexecute(self._get_course_quizzes, [course_id])
        required_ids = {row.quiz_id for row in required}
        if not required_ids:
            return set()

        passed = await self.session.aexecute(
            self._get_passed_quizzes, [user_id, course_id]
        )
        return required_ids - {row.quiz_id for row in passed}

    async def _try_complete(self, enrollment: Enrollment) -> Enrollment:
        """Transition to COMPLETED if every quiz of the course is passed.

        Only the caller whose conditional update applies issues the
        certificate and emits ``course.completed``.
        """
        pending = await self.pending_quizzes(enrollment.user_id, enrollment.course_id)
        if pending:
            logger.info(
                "completion_pending_quizzes",
                enrollment_id=str(enrollment.id),
                pending_quizzes=len(pending),
            )
            return enrollment

        now = datetime.now(UTC)
        result = await self.session.aexecute(self._mark_completed, [now, enrollment.id])
        if not result.was_applied:
            return await self.require_enrollment(enrollment.id)

        enrollment.status = EnrollmentStatus.COMPLETED.value
        enrollment.completed_at = now

        certificate = await self.certificate_service.issue(enrollment)

        logger.info(
            "course_completed",
            enrollment_id=str(enrollment.id),
            user_id=str(enrollment.user_id),
            course_id=str(enrollment.course_id),
            certificate_number=certificate.certificate_number,
        )

        if self.dispatcher is not None:
            self.dispatcher.publish(
                EventName.COURSE_COMPLETED,
                enrollment_id=enrollment.id,
                user_id=enrollment.user_id,
                course_id=enrollment.course_id,
                certificate_number=certificate.certificate_number,
                completed_at=now,
            )

        return enrollment

    async def _ensure_certificate(self, enrollment: Enrollment) -> None:
        """Issue the certificate of a completed enrollment if it is missing."""
        existing = await self.certificate_service.get_for_enrollment(enrollment.id)
        if existing is None:
            logger.warning("certificate_missing_reissuing", enrollment_id=str(enrollment.id))
            await self.certificate_service.issue(enrollment)
