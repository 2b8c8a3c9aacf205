"""Quiz API endpoints.

Provides routes for:
- Quiz and question authoring (TEACHER or ADMIN)
- Taking a quiz: start, submit, list own attempts
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from src.auth.dependencies import CurrentUser, QuizAuthor, QuizTaker
from src.auth.schemas import UserResponse
from src.core.exceptions import DomainError, handle_domain_error
from src.courses.dependencies import CourseServiceDep, is_owner_or_admin

from .dependencies import QuizServiceDep
from .models import Quiz
from .schemas import (
    AttemptListResponse,
    AttemptResponse,
    CreateQuestionRequest,
    CreateQuizRequest,
    PublicQuestionResponse,
    QuestionResponse,
    QuizDetailResponse,
    QuizResponse,
    SubmitAttemptRequest,
)


router = APIRouter(prefix="/v1/quizzes", tags=["quizzes"])


def _forbid_unless_author(user: UserResponse, quiz: Quiz) -> None:
    if not is_owner_or_admin(user, quiz.creator_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the quiz author can modify it",
        )


# ==============================================================================
# Authoring
# ==============================================================================


@router.post(
    "",
    response_model=QuizResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create quiz",
)
async def create_quiz(
    data: CreateQuizRequest,
    user: QuizAuthor,
    quiz_service: QuizServiceDep,
    course_service: CourseServiceDep,
) -> QuizResponse:
    """Create a quiz for a module of one of the caller's courses."""
    try:
        course = await course_service.require_course(data.course_id)
        if not is_owner_or_admin(user, course.creator_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the course owner can add quizzes",
            )
        quiz = await quiz_service.create_quiz(data, user.id)
    except DomainError as e:
        raise handle_domain_error(e) from e

    return QuizResponse(**quiz.to_dict())


@router.post(
    "/{quiz_id}/questions",
    response_model=QuestionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add question",
)
async def add_question(
    quiz_id: UUID,
    data: CreateQuestionRequest,
    user: QuizAuthor,
    quiz_service: QuizServiceDep,
) -> QuestionResponse:
    """Append a question to a quiz."""
    try:
        quiz = await quiz_service.require_quiz(quiz_id)
        _forbid_unless_author(user, quiz)
        question = await quiz_service.add_question(quiz_id, data)
    except DomainError as e:
        raise handle_domain_error(e) from e

    return QuestionResponse(**question.to_dict())


@router.get(
    "/{quiz_id}/questions",
    response_model=list[QuestionResponse],
    summary="List questions with answers",
)
async def list_questions(
    quiz_id: UUID,
    user: QuizAuthor,
    quiz_service: QuizServiceDep,
) -> list[QuestionResponse]:
    """Questions with their correct answers (quiz author or ADMIN)."""
    try:
        quiz = await quiz_service.require_quiz(quiz_id)
    except DomainError as e:
        raise handle_domain_error(e) from e

    _forbid_unless_author(user, quiz)
    questions = await quiz_service.get_questions(quiz_id)
    return [QuestionResponse(**q.to_dict()) for q in questions]


# ==============================================================================
# Taking a Quiz
# ==============================================================================


@router.get(
    "/{quiz_id}",
    response_model=QuizDetailResponse,
    summary="Get quiz",
)
async def get_quiz(
    quiz_id: UUID,
    _user: CurrentUser,
    quiz_service: QuizServiceDep,
) -> QuizDetailResponse:
    """Quiz with its questions; correct answers are never included."""
    try:
        quiz = await quiz_service.require_quiz(quiz_id)
    except DomainError as e:
        raise handle_domain_error(e) from e

    questions = await quiz_service.get_questions_for_student(quiz)
    return QuizDetailResponse(
        **quiz.to_dict(),
        questions=[PublicQuestionResponse.from_entity(q) for q in questions],
        points_total=sum(q.points for q in questions),
    )


@router.post(
    "/{quiz_id}/attempts/start",
    response_model=AttemptResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start attempt",
)
async def start_attempt(
    quiz_id: UUID,
    user: QuizTaker,
    quiz_service: QuizServiceDep,
) -> AttemptResponse:
    """Open an attempt; the time limit counts from here."""
    try:
        attempt = await quiz_service.start_attempt(user.id, quiz_id)
    except DomainError as e:
        raise handle_domain_error(e) from e

    return AttemptResponse.from_entity(attempt)


@router.post(
    "/{quiz_id}/attempt",
    response_model=AttemptResponse,
    summary="Submit attempt",
)
async def submit_attempt(
    quiz_id: UUID,
    data: SubmitAttemptRequest,
    user: QuizTaker,
    quiz_service: QuizServiceDep,
) -> AttemptResponse:
    """Submit answers and receive the graded attempt."""
    try:
        attempt = await quiz_service.submit_attempt(user.id, quiz_id, data.answers)
    except DomainError as e:
        raise handle_domain_error(e) from e

    return AttemptResponse.from_entity(attempt)


@router.get(
    "/{quiz_id}/attempts/my",
    response_model=AttemptListResponse,
    summary="List my attempts",
)
async def list_my_attempts(
    quiz_id: UUID,
    user: CurrentUser,
    quiz_service: QuizServiceDep,
) -> AttemptListResponse:
    """The caller's attempts at a quiz, newest first."""
    attempts = await quiz_service.list_attempts(user.id, quiz_id)
    items = [AttemptResponse.from_entity(a) for a in attempts]
    return AttemptListResponse(items=items, total=len(items))
