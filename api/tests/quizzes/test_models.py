"""Tests for the quiz attempt state machine."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from src.core.exceptions import InvalidStateError
from src.quizzes.grading import compute_score
from src.quizzes.models import (
    AttemptStatus,
    GradeResult,
    QuestionResult,
    QuizAttempt,
    dump_results,
    load_results,
)


STARTED_AT = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)


def new_attempt() -> QuizAttempt:
    return QuizAttempt(user_id=uuid4(), quiz_id=uuid4(), started_at=STARTED_AT)


def grade_of(points_earned: int, points_total: int = 100) -> GradeResult:
    return GradeResult(
        results=[],
        points_earned=points_earned,
        points_total=points_total,
        score_percent=compute_score(points_earned, points_total),
    )


class TestSubmit:
    def test_started_to_submitted(self) -> None:
        attempt = new_attempt()
        answer_id = uuid4()

        attempt.submit({answer_id: "a"}, submitted_at=STARTED_AT + timedelta(minutes=1))

        assert attempt.status == AttemptStatus.SUBMITTED.value
        assert attempt.answers == {answer_id: "a"}
        assert attempt.is_late is False

    def test_submit_twice_rejected(self) -> None:
        attempt = new_attempt()
        attempt.submit({}, submitted_at=STARTED_AT)

        with pytest.raises(InvalidStateError) as exc_info:
            attempt.submit({}, submitted_at=STARTED_AT)
        assert exc_info.value.code == "attempt_not_open"

    def test_late_after_time_limit(self) -> None:
        attempt = new_attempt()
        attempt.submit(
            {},
            submitted_at=STARTED_AT + timedelta(seconds=61),
            time_limit_seconds=60,
        )
        assert attempt.is_late is True

    def test_exactly_at_limit_is_on_time(self) -> None:
        attempt = new_attempt()
        attempt.submit(
            {},
            submitted_at=STARTED_AT + timedelta(seconds=60),
            time_limit_seconds=60,
        )
        assert attempt.is_late is False

    def test_grace_period_extends_limit(self) -> None:
        attempt = new_attempt()
        attempt.submit(
            {},
            submitted_at=STARTED_AT + timedelta(seconds=65),
            time_limit_seconds=60,
            grace_seconds=10,
        )
        assert attempt.is_late is False

    def test_submission_before_start_is_clamped(self) -> None:
        attempt = new_attempt()
        attempt.submit({}, submitted_at=STARTED_AT - timedelta(seconds=5))
        assert attempt.submitted_at == STARTED_AT


class TestGrade:
    def test_grade_requires_submission(self) -> None:
        attempt = new_attempt()

        with pytest.raises(InvalidStateError) as exc_info:
            attempt.grade(grade_of(100), passing_score=70)
        assert exc_info.value.code == "attempt_not_submitted"

    def test_pass_at_threshold(self) -> None:
        attempt = new_attempt()
        attempt.submit({}, submitted_at=STARTED_AT)
        attempt.grade(grade_of(70), passing_score=70)

        assert attempt.status == AttemptStatus.GRADED.value
        assert attempt.passed is True
        assert attempt.graded_at is not None

    def test_fail_below_threshold(self) -> None:
        attempt = new_attempt()
        attempt.submit({}, submitted_at=STARTED_AT)
        attempt.grade(grade_of(6999, 10000), passing_score=70)
        assert attempt.passed is False

    def test_score_rounded_up_to_threshold_fails(self) -> None:
        attempt = new_attempt()
        attempt.submit({}, submitted_at=STARTED_AT)
        attempt.grade(grade_of(13999, 20000), passing_score=70)

        assert attempt.score_percent == Decimal("70.00")
        assert attempt.passed is False

    def test_late_attempt_never_passes(self) -> None:
        attempt = new_attempt()
        attempt.submit(
            {}, submitted_at=STARTED_AT + timedelta(hours=1), time_limit_seconds=60
        )
        attempt.grade(grade_of(100), passing_score=70)

        assert attempt.score_percent == Decimal("100.00")
        assert attempt.passed is False

    def test_graded_is_terminal(self) -> None:
        attempt = new_attempt()
        attempt.submit({}, submitted_at=STARTED_AT)
        attempt.grade(grade_of(80), passing_score=70)

        with pytest.raises(InvalidStateError):
            attempt.submit({}, submitted_at=STARTED_AT)
        with pytest.raises(InvalidStateError):
            attempt.grade(grade_of(80), passing_score=70)


class TestResultsStorage:
    def test_results_survive_storage(self) -> None:
        results = [
            QuestionResult(
                question_id=uuid4(),
                question_type="short_answer",
                points=2,
                points_earned=0,
                correct=None,
                needs_review=True,
                answer="free text",
            )
        ]
        assert load_results(dump_results(results)) == results

    def test_empty_results(self) -> None:
        assert load_results(None) == []
