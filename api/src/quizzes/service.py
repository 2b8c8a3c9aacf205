"""Quiz grading service layer.

Business logic for:
- Quiz and question authoring
- Attempt lifecycle (start, submit, grade) with single-attempt policy
- Time limit enforcement (reject or flag late submissions)
- Quiz pass recording and the course completion trigger
"""

import random
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Literal
from uuid import UUID

import structlog

from src.core.exceptions import ConflictError, ExpiredError, InvalidStateError, NotFoundError
from src.events.models import EventName

from .grading import grade_answers
from .models import (
    Question,
    Quiz,
    QuizAttempt,
    dump_results,
)
from .schemas import CreateQuestionRequest, CreateQuizRequest


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from src.courses.service import CourseService
    from src.events.dispatcher import EventDispatcher
    from src.progress.service import ProgressService

logger = structlog.get_logger(__name__)

LatePolicy = Literal["reject", "flag"]


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class QuizNotFoundError(NotFoundError):
    """Quiz not found."""

    default_message = "Quiz not found"
    default_code = "quiz_not_found"


class ModuleNotInCourseError(NotFoundError):
    """Module does not belong to the course."""

    default_message = "Module does not belong to the course"
    default_code = "module_not_in_course"


class QuizExistsForModuleError(ConflictError):
    """The module already has a quiz."""

    default_message = "Module already has a quiz"
    default_code = "quiz_exists_for_module"


class AttemptLimitReachedError(ConflictError):
    """Single-attempt quiz already attempted."""

    default_message = "Only one attempt is allowed for this quiz"
    default_code = "attempt_limit_reached"


class AttemptAlreadySubmittedError(ConflictError):
    """A concurrent submission graded the attempt first."""

    default_message = "Attempt was already submitted"
    default_code = "attempt_already_submitted"


class AttemptExpiredError(ExpiredError):
    """Submission arrived after the time limit."""

    default_message = "Quiz time limit exceeded"
    default_code = "attempt_expired"


class NotEnrolledError(InvalidStateError):
    """Taking a quiz requires an active or completed enrollment."""

    default_message = "Not enrolled in the quiz's course"
    default_code = "not_enrolled"


class EmptyQuizError(InvalidStateError):
    """Quiz has no gradable questions."""

    default_message = "Quiz has no questions"
    default_code = "quiz_empty"


# ==============================================================================
# Quiz Service
# ==============================================================================


class QuizService:
    """Service for quizzes, attempts and grading."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        course_service: "CourseService",
        progress_service: "ProgressService",
        dispatcher: "EventDispatcher | None" = None,
        single_attempt_default: bool = False,
        late_policy: LatePolicy = "reject",
        grace_seconds: int = 0,
    ):
        """Initialize with Cassandra session, collaborators and grading policy."""
        self.session = session
        self.keyspace = keyspace
        self.course_service = course_service
        self.progress_service = progress_service
        self.dispatcher = dispatcher
        self.single_attempt_default = single_attempt_default
        self.late_policy = late_policy
        self.grace_seconds = grace_seconds
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        # Quizzes
        self._get_quiz = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.quizzes WHERE id = ?"
        )
        self._insert_quiz = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quizzes
            (id, course_id, module_id, title, passing_score, time_limit_seconds,
             randomized, single_attempt, creator_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._claim_module = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quiz_by_module (module_id, quiz_id)
            VALUES (?, ?)
            IF NOT EXISTS
        """)
        self._insert_quiz_by_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quizzes_by_course
            (course_id, quiz_id, module_id, passing_score)
            VALUES (?, ?, ?, ?)
        """)

        # Questions
        self._get_questions = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.quiz_questions WHERE quiz_id = ?"
        )
        self._count_questions = self.session.prepare(
            f"SELECT COUNT(*) AS count FROM {self.keyspace}.quiz_questions WHERE quiz_id = ?"
        )
        self._insert_question = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quiz_questions
            (quiz_id, position, question_id, type, prompt, options, correct_answer, points)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)

        # Attempts
        self._get_attempts = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.quiz_attempts
            WHERE user_id = ? AND quiz_id = ?
        """)
        self._insert_started_attempt = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quiz_attempts
            (user_id, quiz_id, started_at, attempt_id, course_id, status)
            VALUES (?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._insert_graded_attempt = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quiz_attempts
            (user_id, quiz_id, started_at, attempt_id, course_id, status, answers,
             results, points_earned, points_total, correct_count, total_count,
             score_percent, passed, is_late, needs_review, submitted_at, graded_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._grade_started_attempt = self.session.prepare(f"""
            UPDATE {self.keyspace}.quiz_attempts
            SET status = ?, answers = ?, results = ?, points_earned = ?,
                points_total = ?, correct_count = ?, total_count = ?,
                score_percent = ?, passed = ?, is_late = ?, needs_review = ?,
                submitted_at = ?, graded_at = ?
            WHERE user_id = ? AND quiz_id = ? AND started_at = ? AND attempt_id = ?
            IF status = 'started'
        """)

        # Single-attempt claims
        self._claim_attempt = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quiz_attempt_claims
            (user_id, quiz_id, attempt_id, started_at)
            VALUES (?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._release_claim = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.quiz_attempt_claims
            WHERE user_id = ? AND quiz_id = ?
            IF attempt_id = ?
        """)

        # Passes
        self._insert_pass = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quiz_passes
            (user_id, course_id, quiz_id, attempt_id, score_percent, passed_at)
            VALUES (?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._improve_pass = self.session.prepare(f"""
            UPDATE {self.keyspace}.quiz_passes
            SET attempt_id = ?, score_percent = ?, passed_at = ?
            WHERE user_id = ? AND course_id = ? AND quiz_id = ?
            IF score_percent < ?
        """)

    # ==========================================================================
    # Authoring
    # ==========================================================================

    async def create_quiz(self, data: CreateQuizRequest, creator_id: UUID) -> Quiz:
        """Create a quiz for a module of a course.

        Raises:
            CourseNotFoundError: If the course does not exist
            ModuleNotInCourseError: If the module is not part of the course
            QuizExistsForModuleError: If the module already has a quiz
        """
        await self.course_service.require_course(data.course_id)
        module_course_id = await self.course_service.get_module_course(data.module_id)
        if module_course_id != data.course_id:
            raise ModuleNotInCourseError

        single_attempt = (
            self.single_attempt_default
            if data.single_attempt is None
            else data.single_attempt
        )
        quiz = Quiz(
            course_id=data.course_id,
            module_id=data.module_id,
            title=data.title,
            passing_score=data.passing_score,
            time_limit_seconds=data.time_limit_seconds,
            randomized=data.randomized,
            single_attempt=single_attempt,
            creator_id=creator_id,
        )

        claimed = await self.session.aexecute(
            self._claim_module, [quiz.module_id, quiz.id]
        )
        if not claimed.was_applied:
            raise QuizExistsForModuleError

        await self.session.aexecute(
            self._insert_quiz,
            [
                quiz.id,
                quiz.course_id,
                quiz.module_id,
                quiz.title,
                quiz.passing_score,
                quiz.time_limit_seconds,
                quiz.randomized,
                quiz.single_attempt,
                quiz.creator_id,
                quiz.created_at,
            ],
        )
        await self.session.aexecute(
            self._insert_quiz_by_course,
            [quiz.course_id, quiz.id, quiz.module_id, quiz.passing_score],
        )

        logger.info(
            "quiz_created",
            quiz_id=str(quiz.id),
            course_id=str(quiz.course_id),
            module_id=str(quiz.module_id),
            passing_score=quiz.passing_score,
            single_attempt=quiz.single_attempt,
        )
        return quiz

    async def add_question(self, quiz_id: UUID, data: CreateQuestionRequest) -> Question:
        """Append a question to a quiz.

        Raises:
            QuizNotFoundError: If the quiz does not exist
        """
        await self.require_quiz(quiz_id)

        result = await self.session.aexecute(self._count_questions, [quiz_id])
        row = result.one()
        position = int(row.count) if row else 0

        question = Question(
            quiz_id=quiz_id,
            position=position,
            type=data.type.value,
            prompt=data.prompt,
            options=data.options,
            correct_answer=data.correct_answer,
            points=data.points,
        )

        await self.session.aexecute(
            self._insert_question,
            [
                question.quiz_id,
                question.position,
                question.id,
                question.type,
                question.prompt,
                question.options,
                question.correct_answer,
                question.points,
            ],
        )

        logger.info(
            "question_added",
            quiz_id=str(quiz_id),
            question_id=str(question.id),
            question_type=question.type,
            points=question.points,
        )
        return question

    # ==========================================================================
    # Lookup
    # ==========================================================================

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None:
        """Get quiz by ID."""
        result = await self.session.aexecute(self._get_quiz, [quiz_id])
        row = result.one()
        return Quiz.from_row(row) if row else None

    async def require_quiz(self, quiz_id: UUID) -> Quiz:
        """Get quiz by ID or raise QuizNotFoundError."""
        quiz = await self.get_quiz(quiz_id)
        if quiz is None:
            raise QuizNotFoundError
        return quiz

    async def get_questions(self, quiz_id: UUID) -> list[Question]:
        """Questions of a quiz in authored order."""
        rows = await self.session.aexecute(self._get_questions, [quiz_id])
        return [Question.from_row(row) for row in rows]

    async def get_questions_for_student(self, quiz: Quiz) -> list[Question]:
        """Questions in the order a student sees them."""
        questions = await self.get_questions(quiz.id)
        if quiz.randomized:
            random.shuffle(questions)
        return questions

    async def list_attempts(self, user_id: UUID, quiz_id: UUID) -> list[QuizAttempt]:
        """Attempts of a student at a quiz, newest first."""
        rows = await self.session.aexecute(self._get_attempts, [user_id, quiz_id])
        return [QuizAttempt.from_row(row) for row in rows]

    async def _find_attempt(
        self, user_id: UUID, quiz_id: UUID, attempt_id: UUID
    ) -> QuizAttempt | None:
        for attempt in await self.list_attempts(user_id, quiz_id):
            if attempt.id == attempt_id:
                return attempt
        return None

    async def _ensure_enrolled(self, user_id: UUID, quiz: Quiz) -> None:
        enrollment = await self.progress_service.get_enrollment_for(
            user_id, quiz.course_id
        )
        if enrollment is None or enrollment.is_dropped:
            raise NotEnrolledError

    # ==========================================================================
    # Attempt Lifecycle
    # ==========================================================================

    async def start_attempt(self, user_id: UUID, quiz_id: UUID) -> QuizAttempt:
        """Open an attempt, or return the one already open.

        Raises:
            QuizNotFoundError: If the quiz does not exist
            NotEnrolledError: Without an active or completed enrollment
            AttemptLimitReachedError: If a single-attempt quiz was already taken
        """
        quiz = await self.require_quiz(quiz_id)
        await self._ensure_enrolled(user_id, quiz)

        attempts = await self.list_attempts(user_id, quiz_id)
        open_attempt = next((a for a in attempts if a.is_open), None)
        if open_attempt is not None:
            return open_attempt

        attempt = QuizAttempt(user_id=user_id, quiz_id=quiz_id, course_id=quiz.course_id)
        claimed = False
        if quiz.single_attempt:
            holder = await self._claim_single_attempt(attempt, attempts)
            if holder is not attempt:
                return holder
            claimed = True

        try:
            await self.session.aexecute(
                self._insert_started_attempt,
                [
                    attempt.user_id,
                    attempt.quiz_id,
                    attempt.started_at,
                    attempt.id,
                    attempt.course_id,
                    attempt.status,
                ],
            )
        except Exception:
            if claimed:
                await self._release_single_attempt(attempt)
            raise

        logger.info(
            "quiz_attempt_started",
            attempt_id=str(attempt.id),
            quiz_id=str(quiz_id),
            user_id=str(user_id),
        )
        return attempt

    async def _claim_single_attempt(
        self, attempt: QuizAttempt, attempts: list[QuizAttempt]
    ) -> QuizAttempt:
        """Take the one allowed attempt of a single-attempt quiz.

        ``attempts`` are the student's stored attempts. A finished one
        exhausts the quiz even if its claim row was released.

        Returns:
            The attempt that holds the claim: ``attempt`` itself, or an
            earlier attempt that is still open

        Raises:
            AttemptLimitReachedError: If the quiz was already taken
        """
        finished = next((a for a in attempts if not a.is_open), None)
        if finished is not None:
            logger.info(
                "quiz_attempt_limit_reached",
                quiz_id=str(attempt.quiz_id),
                user_id=str(attempt.user_id),
                claimed_attempt_id=str(finished.id),
            )
            raise AttemptLimitReachedError

        result = await self.session.aexecute(
            self._claim_attempt,
            [attempt.user_id, attempt.quiz_id, attempt.id, attempt.started_at],
        )
        if result.was_applied:
            return attempt

        claimed_id = result.one().attempt_id
        claimed = await self._find_attempt(attempt.user_id, attempt.quiz_id, claimed_id)
        if claimed is not None and claimed.is_open:
            return claimed

        logger.info(
            "quiz_attempt_limit_reached",
            quiz_id=str(attempt.quiz_id),
            user_id=str(attempt.user_id),
            claimed_attempt_id=str(claimed_id),
        )
        raise AttemptLimitReachedError

    async def _release_single_attempt(self, attempt: QuizAttempt) -> None:
        """Give back a claim whose attempt row was never written."""
        await self.session.aexecute(
            self._release_claim, [attempt.user_id, attempt.quiz_id, attempt.id]
        )
        logger.warning(
            "quiz_attempt_claim_released",
            attempt_id=str(attempt.id),
            quiz_id=str(attempt.quiz_id),
            user_id=str(attempt.user_id),
        )

    async def submit_attempt(
        self,
        user_id: UUID,
        quiz_id: UUID,
        answers: dict[UUID, str],
        submitted_at: datetime | None = None,
    ) -> QuizAttempt:
        """Grade a submission.

        Uses the open attempt, or starts one implicitly at submission time.
        The graded attempt is written once, atomically, with answers,
        per-question results and score.

        Raises:
            QuizNotFoundError: If the quiz does not exist
            NotEnrolledError: Without an active or completed enrollment
            EmptyQuizError: If the quiz has no questions
            AttemptLimitReachedError: If a single-attempt quiz was already taken
            AttemptAlreadySubmittedError: If a concurrent submit won
            AttemptExpiredError: If late and the policy rejects late attempts
        """
        submitted_at = submitted_at or datetime.now(UTC)

        quiz = await self.require_quiz(quiz_id)
        await self._ensure_enrolled(user_id, quiz)

        questions = await self.get_questions(quiz_id)
        if not questions:
            raise EmptyQuizError

        attempts = await self.list_attempts(user_id, quiz_id)
        attempt = next((a for a in attempts if a.is_open), None)
        persisted = attempt is not None

        if attempt is None:
            attempt = QuizAttempt(
                user_id=user_id,
                quiz_id=quiz_id,
                course_id=quiz.course_id,
                started_at=submitted_at,
            )

        claimed = False
        if quiz.single_attempt:
            holder = await self._claim_single_attempt(attempt, attempts)
            if holder is not attempt:
                attempt, persisted = holder, True
            else:
                claimed = not persisted

        known = {q.id for q in questions}
        attempt.submit(
            {qid: answer for qid, answer in answers.items() if qid in known},
            submitted_at=submitted_at,
            time_limit_seconds=quiz.time_limit_seconds,
            grace_seconds=self.grace_seconds,
        )
        attempt.grade(grade_answers(questions, attempt.answers), quiz.passing_score)

        try:
            await self._persist_graded(attempt, persisted)
        except AttemptAlreadySubmittedError:
            raise
        except Exception:
            if claimed:
                await self._release_single_attempt(attempt)
            raise

        logger.info(
            "quiz_attempt_graded",
            attempt_id=str(attempt.id),
            quiz_id=str(quiz_id),
            user_id=str(user_id),
            score_percent=str(attempt.score_percent),
            passing_score=quiz.passing_score,
            passed=attempt.passed,
            is_late=attempt.is_late,
            needs_review=attempt.needs_review,
        )

        if self.dispatcher is not None:
            self.dispatcher.publish(
                EventName.QUIZ_GRADED,
                attempt_id=attempt.id,
                quiz_id=quiz.id,
                course_id=quiz.course_id,
                user_id=user_id,
                score_percent=attempt.score_percent,
                passed=attempt.passed,
                is_late=attempt.is_late,
                needs_review=attempt.needs_review,
            )

        if attempt.is_late and self.late_policy == "reject":
            logger.warning(
                "quiz_attempt_expired",
                attempt_id=str(attempt.id),
                quiz_id=str(quiz_id),
                user_id=str(user_id),
                time_limit_seconds=quiz.time_limit_seconds,
            )
            raise AttemptExpiredError

        if attempt.passed:
            await self._record_pass(quiz, attempt)

        return attempt

    async def _persist_graded(self, attempt: QuizAttempt, persisted: bool) -> None:
        """Write the graded attempt in a single conditional statement.

        Raises:
            AttemptAlreadySubmittedError: If the attempt left STARTED meanwhile
        """
        values = [
            attempt.status,
            attempt.answers,
            dump_results(attempt.results),
            attempt.points_earned,
            attempt.points_total,
            attempt.correct_count,
            attempt.total_count,
            attempt.score_percent,
            attempt.passed,
            attempt.is_late,
            attempt.needs_review,
            attempt.submitted_at,
            attempt.graded_at,
        ]

        if persisted:
            result = await self.session.aexecute(
                self._grade_started_attempt,
                [
                    *values,
                    attempt.user_id,
                    attempt.quiz_id,
                    attempt.started_at,
                    attempt.id,
                ],
            )
        else:
            result = await self.session.aexecute(
                self._insert_graded_attempt,
                [
                    attempt.user_id,
                    attempt.quiz_id,
                    attempt.started_at,
                    attempt.id,
                    attempt.course_id,
                    *values,
                ],
            )

        if not result.was_applied:
            raise AttemptAlreadySubmittedError

    async def _record_pass(self, quiz: Quiz, attempt: QuizAttempt) -> None:
        """Keep the best passing attempt, signal it and run the completion check."""
        now = attempt.graded_at or datetime.now(UTC)
        result = await self.session.aexecute(
            self._insert_pass,
            [
                attempt.user_id,
                quiz.course_id,
                quiz.id,
                attempt.id,
                attempt.score_percent,
                now,
            ],
        )
        if not result.was_applied:
            await self.session.aexecute(
                self._improve_pass,
                [
                    attempt.id,
                    attempt.score_percent,
                    now,
                    attempt.user_id,
                    quiz.course_id,
                    quiz.id,
                    attempt.score_percent,
                ],
            )

        logger.info(
            "quiz_passed",
            attempt_id=str(attempt.id),
            quiz_id=str(quiz.id),
            user_id=str(attempt.user_id),
            score_percent=str(attempt.score_percent),
        )

        if self.dispatcher is not None:
            self.dispatcher.publish(
                EventName.QUIZ_PASSED,
                attempt_id=attempt.id,
                quiz_id=quiz.id,
                course_id=quiz.course_id,
                user_id=attempt.user_id,
                score_percent=attempt.score_percent,
            )

        await self.progress_service.handle_quiz_passed(attempt.user_id, quiz.course_id)

