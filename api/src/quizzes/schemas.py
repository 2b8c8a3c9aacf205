"""Pydantic schemas for quizzes and attempts.

Request and response models for:
- Quiz and question authoring
- Student view of a quiz (answers hidden)
- Attempt start, submission and results
"""

from datetime import datetime
from decimal import Decimal
from typing import Self
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .models import (
    TRUE_FALSE_OPTIONS,
    AttemptStatus,
    Question,
    QuestionType,
    QuizAttempt,
)


# ==============================================================================
# Quiz Authoring Schemas
# ==============================================================================


class CreateQuizRequest(BaseModel):
    """Quiz creation request."""

    course_id: UUID = Field(..., description="Course UUID")
    module_id: UUID = Field(..., description="Module the quiz belongs to")
    title: str = Field(..., min_length=1, max_length=200, description="Quiz title")
    passing_score: int = Field(..., ge=0, le=100, description="Passing score percent")
    time_limit_seconds: int | None = Field(
        None, gt=0, description="Time limit from start to submission"
    )
    randomized: bool = Field(False, description="Shuffle question order")
    single_attempt: bool | None = Field(
        None, description="Allow one attempt only (default from settings)"
    )


class CreateQuestionRequest(BaseModel):
    """Question creation request."""

    type: QuestionType = Field(..., description="Question type")
    prompt: str = Field(..., min_length=1, max_length=5000, description="Question text")
    options: list[str] | None = Field(None, description="Choices for MCQ")
    correct_answer: str | None = Field(None, max_length=5000)
    points: int = Field(1, gt=0, description="Points when correct")

    @model_validator(mode="after")
    def validate_answer_by_type(self) -> Self:
        """Validate options and correct answer against the question type."""
        if self.type == QuestionType.MCQ:
            options = [o.strip() for o in self.options or [] if o.strip()]
            if len(options) < 2:
                raise ValueError("MCQ questions need at least two options")
            if len(set(options)) != len(options):
                raise ValueError("MCQ options must be unique")
            answer = (self.correct_answer or "").strip()
            if answer not in options:
                raise ValueError("MCQ correct answer must be one of the options")
            self.options = options
            self.correct_answer = answer
        elif self.type == QuestionType.TRUE_FALSE:
            answer = (self.correct_answer or "").strip().lower()
            if answer not in TRUE_FALSE_OPTIONS:
                raise ValueError("TRUE_FALSE correct answer must be 'true' or 'false'")
            self.options = list(TRUE_FALSE_OPTIONS)
            self.correct_answer = answer
        else:
            self.options = []
        return self


class QuizResponse(BaseModel):
    """Quiz response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    module_id: UUID
    title: str
    passing_score: int
    time_limit_seconds: int | None = None
    randomized: bool = False
    single_attempt: bool = False
    created_at: datetime


class QuestionResponse(BaseModel):
    """Question with its answer (authors)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    position: int
    type: QuestionType
    prompt: str
    options: list[str] = Field(default_factory=list)
    correct_answer: str | None = None
    points: int


class PublicQuestionResponse(BaseModel):
    """Question as shown to students (no answer)."""

    id: UUID
    type: QuestionType
    prompt: str
    options: list[str] = Field(default_factory=list)
    points: int

    @classmethod
    def from_entity(cls, question: Question) -> "PublicQuestionResponse":
        return cls(
            id=question.id,
            type=QuestionType(question.type),
            prompt=question.prompt,
            options=question.options,
            points=question.points,
        )


class QuizDetailResponse(QuizResponse):
    """Quiz with questions for taking it."""

    questions: list[PublicQuestionResponse] = Field(default_factory=list)
    points_total: int = 0


# ==============================================================================
# Attempt Schemas
# ==============================================================================


class SubmitAttemptRequest(BaseModel):
    """Answers keyed by question id."""

    answers: dict[UUID, str] = Field(default_factory=dict)


class QuestionResultResponse(BaseModel):
    """Graded result of one question."""

    question_id: UUID
    question_type: QuestionType
    points: int
    points_earned: int
    correct: bool | None = None
    needs_review: bool = False
    answer: str | None = None


class AttemptResponse(BaseModel):
    """Quiz attempt response."""

    id: UUID
    quiz_id: UUID
    course_id: UUID | None = None
    status: AttemptStatus
    started_at: datetime
    submitted_at: datetime | None = None
    graded_at: datetime | None = None
    points_earned: int = 0
    points_total: int = 0
    correct_count: int = 0
    total_count: int = 0
    score_percent: Decimal | None = None
    passed: bool = False
    is_late: bool = False
    needs_review: bool = False
    results: list[QuestionResultResponse] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, attempt: QuizAttempt) -> "AttemptResponse":
        """Create response from entity."""
        data = attempt.to_dict()
        data["results"] = [QuestionResultResponse(**r.to_dict()) for r in attempt.results]
        return cls(**data)


class AttemptListResponse(BaseModel):
    """List of attempts, newest first."""

    items: list[AttemptResponse]
    total: int
