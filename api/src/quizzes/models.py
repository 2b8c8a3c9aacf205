"""Database models for quizzes and graded attempts.

Cassandra table definitions for:
- Quizzes: One optional quiz per course module
- Questions: Ordered questions of a quiz
- Attempts: Per (student, quiz), newest first
- Attempt claims: Single-attempt enforcement (written IF NOT EXISTS)
- Quiz passes: Best passing attempt per quiz, feeding course completion

Attempt state machine: STARTED -> SUBMITTED -> GRADED (terminal).
"""

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

import orjson

from src.core.exceptions import InvalidStateError


class QuestionType(str, Enum):
    """Question type, which selects the grading rule."""

    MCQ = "mcq"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


class AttemptStatus(str, Enum):
    """Quiz attempt status."""

    STARTED = "started"
    SUBMITTED = "submitted"
    GRADED = "graded"  # Terminal


TRUE_FALSE_OPTIONS = ["true", "false"]


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

QUIZ_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quizzes (
    id UUID PRIMARY KEY,
    course_id UUID,
    module_id UUID,
    title TEXT,
    passing_score INT,
    time_limit_seconds INT,
    randomized BOOLEAN,
    single_attempt BOOLEAN,
    creator_id UUID,
    created_at TIMESTAMP
)
"""

QUIZZES_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quizzes_by_course (
    course_id UUID,
    quiz_id UUID,
    module_id UUID,
    passing_score INT,
    PRIMARY KEY (course_id, quiz_id)
)
"""

# At most one quiz per module (written IF NOT EXISTS)
QUIZ_BY_MODULE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_by_module (
    module_id UUID PRIMARY KEY,
    quiz_id UUID
)
"""

QUIZ_QUESTIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_questions (
    quiz_id UUID,
    position INT,
    question_id UUID,
    type TEXT,
    prompt TEXT,
    options LIST<TEXT>,
    correct_answer TEXT,
    points INT,
    PRIMARY KEY (quiz_id, position, question_id)
) WITH CLUSTERING ORDER BY (position ASC, question_id ASC)
"""

QUIZ_ATTEMPTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_attempts (
    user_id UUID,
    quiz_id UUID,
    started_at TIMESTAMP,
    attempt_id UUID,
    course_id UUID,
    status TEXT,
    answers MAP<UUID, TEXT>,
    results TEXT,
    points_earned INT,
    points_total INT,
    correct_count INT,
    total_count INT,
    score_percent DECIMAL,
    passed BOOLEAN,
    is_late BOOLEAN,
    needs_review BOOLEAN,
    submitted_at TIMESTAMP,
    graded_at TIMESTAMP,
    PRIMARY KEY ((user_id, quiz_id), started_at, attempt_id)
) WITH CLUSTERING ORDER BY (started_at DESC, attempt_id ASC)
"""

QUIZ_ATTEMPT_CLAIMS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_attempt_claims (
    user_id UUID,
    quiz_id UUID,
    attempt_id UUID,
    started_at TIMESTAMP,
    PRIMARY KEY ((user_id, quiz_id))
)
"""

QUIZ_PASSES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_passes (
    user_id UUID,
    course_id UUID,
    quiz_id UUID,
    attempt_id UUID,
    score_percent DECIMAL,
    passed_at TIMESTAMP,
    PRIMARY KEY ((user_id, course_id), quiz_id)
)
"""

QUIZZES_TABLES_CQL = [
    QUIZ_TABLE_CQL,
    QUIZZES_BY_COURSE_TABLE_CQL,
    QUIZ_BY_MODULE_TABLE_CQL,
    QUIZ_QUESTIONS_TABLE_CQL,
    QUIZ_ATTEMPTS_TABLE_CQL,
    QUIZ_ATTEMPT_CLAIMS_TABLE_CQL,
    QUIZ_PASSES_TABLE_CQL,
]


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# ==============================================================================
# Grading Value Types
# ==============================================================================


@dataclass(frozen=True)
class QuestionResult:
    """Outcome of grading one question."""

    question_id: UUID
    question_type: str
    points: int
    points_earned: int
    correct: bool | None  # None while awaiting manual review
    needs_review: bool = False
    answer: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuestionResult":
        return cls(
            question_id=UUID(str(data["question_id"])),
            question_type=data["question_type"],
            points=int(data["points"]),
            points_earned=int(data["points_earned"]),
            correct=data.get("correct"),
            needs_review=bool(data.get("needs_review", False)),
            answer=data.get("answer"),
        )


@dataclass(frozen=True)
class GradeResult:
    """Outcome of grading a whole attempt."""

    results: list[QuestionResult] = field(default_factory=list)
    points_earned: int = 0
    points_total: int = 0
    correct_count: int = 0
    total_count: int = 0
    score_percent: Decimal = Decimal("0.00")
    needs_review: bool = False

    def meets(self, passing_score: int) -> bool:
        """Whether the exact score reaches ``passing_score``.

        Compared on integer points, so a score that only rounds up to the
        threshold does not pass.
        """
        if self.points_total <= 0:
            return False
        return self.points_earned * 100 >= passing_score * self.points_total


def dump_results(results: list[QuestionResult]) -> str:
    """Serialize per-question results for the attempt row."""
    return orjson.dumps([r.to_dict() for r in results]).decode()


def load_results(raw: str | None) -> list[QuestionResult]:
    """Parse per-question results stored on an attempt row."""
    if not raw:
        return []
    return [QuestionResult.from_dict(item) for item in orjson.loads(raw)]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Quiz:
    """Quiz attached to a course module.

    Attributes:
        id: Unique identifier (UUID)
        course_id: Owning course
        module_id: Module the quiz belongs to
        title: Quiz title
        passing_score: Minimum score percent to pass (0-100)
        time_limit_seconds: Optional time limit from start to submission
        randomized: Shuffle question order for students
        single_attempt: Allow only one submitted attempt per student
        creator_id: Author
        created_at: Creation timestamp
    """

    def __init__(
        self,
        course_id: UUID,
        module_id: UUID,
        id: UUID | None = None,
        title: str = "",
        passing_score: int = 70,
        time_limit_seconds: int | None = None,
        randomized: bool = False,
        single_attempt: bool = False,
        creator_id: UUID | None = None,
        created_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.course_id = course_id
        self.module_id = module_id
        self.title = title.strip()
        self.passing_score = passing_score
        self.time_limit_seconds = time_limit_seconds
        self.randomized = randomized
        self.single_attempt = single_attempt
        self.creator_id = creator_id
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)

    @classmethod
    def from_row(cls, row: Any) -> "Quiz":
        """Create Quiz instance from Cassandra row."""
        return cls(
            id=row.id,
            course_id=row.course_id,
            module_id=row.module_id,
            title=row.title or "",
            passing_score=row.passing_score,
            time_limit_seconds=row.time_limit_seconds,
            randomized=bool(row.randomized),
            single_attempt=bool(row.single_attempt),
            creator_id=row.creator_id,
            created_at=row.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "course_id": self.course_id,
            "module_id": self.module_id,
            "title": self.title,
            "passing_score": self.passing_score,
            "time_limit_seconds": self.time_limit_seconds,
            "randomized": self.randomized,
            "single_attempt": self.single_attempt,
            "creator_id": self.creator_id,
            "created_at": self.created_at,
        }

    def __repr__(self) -> str:
        return f"<Quiz {self.title} pass>={self.passing_score}>"


class Question:
    """A quiz question.

    Attributes:
        quiz_id: Owning quiz
        position: Order within the quiz
        id: Question UUID
        type: mcq, true_false or short_answer
        prompt: Question text
        options: Choices (MCQ; fixed true/false for TRUE_FALSE)
        correct_answer: Expected answer (reference answer for SHORT_ANSWER)
        points: Points awarded when correct (> 0)
    """

    def __init__(
        self,
        quiz_id: UUID,
        type: str,
        prompt: str,
        points: int = 1,
        position: int = 0,
        id: UUID | None = None,
        options: list[str] | None = None,
        correct_answer: str | None = None,
    ):
        self.quiz_id = quiz_id
        self.position = position
        self.id = id or uuid4()
        self.type = type
        self.prompt = prompt
        self.options = list(options or [])
        self.correct_answer = correct_answer
        self.points = points

    @classmethod
    def from_row(cls, row: Any) -> "Question":
        """Create Question instance from Cassandra row."""
        return cls(
            quiz_id=row.quiz_id,
            position=row.position,
            id=row.question_id,
            type=row.type,
            prompt=row.prompt,
            options=row.options,
            correct_answer=row.correct_answer,
            points=row.points,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "quiz_id": self.quiz_id,
            "position": self.position,
            "type": self.type,
            "prompt": self.prompt,
            "options": self.options,
            "correct_answer": self.correct_answer,
            "points": self.points,
        }

    def __repr__(self) -> str:
        return f"<Question {self.position} {self.type} {self.points}pt>"


class QuizAttempt:
    """One attempt of a student at a quiz.

    Moves STARTED -> SUBMITTED -> GRADED; each transition is allowed only
    from the preceding state. The score is always derived from the
    per-question results, never set directly.
    """

    def __init__(
        self,
        user_id: UUID,
        quiz_id: UUID,
        course_id: UUID | None = None,
        id: UUID | None = None,
        status: str = AttemptStatus.STARTED.value,
        started_at: datetime | None = None,
        submitted_at: datetime | None = None,
        graded_at: datetime | None = None,
        answers: dict[UUID, str] | None = None,
        results: list[QuestionResult] | None = None,
        points_earned: int = 0,
        points_total: int = 0,
        correct_count: int = 0,
        total_count: int = 0,
        score_percent: Decimal | None = None,
        passed: bool = False,
        is_late: bool = False,
        needs_review: bool = False,
    ):
        self.id = id or uuid4()
        self.user_id = user_id
        self.quiz_id = quiz_id
        self.course_id = course_id
        self.status = status
        self.started_at = ensure_utc_aware(started_at) or datetime.now(UTC)
        self.submitted_at = ensure_utc_aware(submitted_at)
        self.graded_at = ensure_utc_aware(graded_at)
        self.answers = dict(answers or {})
        self.results = list(results or [])
        self.points_earned = points_earned
        self.points_total = points_total
        self.correct_count = correct_count
        self.total_count = total_count
        self.score_percent = score_percent
        self.passed = passed
        self.is_late = is_late
        self.needs_review = needs_review

    @property
    def is_open(self) -> bool:
        """Started and not yet submitted."""
        return self.status == AttemptStatus.STARTED.value

    def submit(
        self,
        answers: dict[UUID, str],
        submitted_at: datetime | None = None,
        time_limit_seconds: int | None = None,
        grace_seconds: int = 0,
    ) -> None:
        """STARTED -> SUBMITTED, recording answers and lateness.

        Raises:
            InvalidStateError: If the attempt is not open
        """
        if not self.is_open:
            raise InvalidStateError(
                f"Cannot submit a {self.status} attempt", "attempt_not_open"
            )

        submitted_at = ensure_utc_aware(submitted_at) or datetime.now(UTC)
        self.submitted_at = max(submitted_at, self.started_at)
        self.answers = dict(answers)

        if time_limit_seconds is not None:
            elapsed = (self.submitted_at - self.started_at).total_seconds()
            self.is_late = elapsed > time_limit_seconds + grace_seconds

        self.status = AttemptStatus.SUBMITTED.value

    def grade(
        self,
        result: GradeResult,
        passing_score: int,
        graded_at: datetime | None = None,
    ) -> None:
        """SUBMITTED -> GRADED. A late attempt never passes.

        Raises:
            InvalidStateError: If the attempt was not submitted
        """
        if self.status != AttemptStatus.SUBMITTED.value:
            raise InvalidStateError(
                f"Cannot grade a {self.status} attempt", "attempt_not_submitted"
            )

        self.results = list(result.results)
        self.points_earned = result.points_earned
        self.points_total = result.points_total
        self.correct_count = result.correct_count
        self.total_count = result.total_count
        self.score_percent = result.score_percent
        self.needs_review = result.needs_review
        self.passed = not self.is_late and result.meets(passing_score)
        self.graded_at = graded_at or datetime.now(UTC)
        self.status = AttemptStatus.GRADED.value

    @classmethod
    def from_row(cls, row: Any) -> "QuizAttempt":
        """Create QuizAttempt instance from Cassandra row."""
        return cls(
            id=row.attempt_id,
            user_id=row.user_id,
            quiz_id=row.quiz_id,
            course_id=row.course_id,
            status=row.status,
            started_at=row.started_at,
            submitted_at=row.submitted_at,
            graded_at=row.graded_at,
            answers=dict(row.answers or {}),
            results=load_results(row.results),
            points_earned=row.points_earned or 0,
            points_total=row.points_total or 0,
            correct_count=row.correct_count or 0,
            total_count=row.total_count or 0,
            score_percent=row.score_percent,
            passed=bool(row.passed),
            is_late=bool(row.is_late),
            needs_review=bool(row.needs_review),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "quiz_id": self.quiz_id,
            "course_id": self.course_id,
            "status": self.status,
            "started_at": self.started_at,
            "submitted_at": self.submitted_at,
            "graded_at": self.graded_at,
            "points_earned": self.points_earned,
            "points_total": self.points_total,
            "correct_count": self.correct_count,
            "total_count": self.total_count,
            "score_percent": self.score_percent,
            "passed": self.passed,
            "is_late": self.is_late,
            "needs_review": self.needs_review,
        }

    def __repr__(self) -> str:
        return (
            f"<QuizAttempt {self.id} quiz={self.quiz_id} {self.status} "
            f"score={self.score_percent}>"
        )
