"""Tests for pure quiz grading."""

from decimal import Decimal
from uuid import uuid4

import pytest

from src.quizzes.grading import (
    compute_score,
    grade_answers,
    grade_question,
    normalize_answer,
    score_from_results,
)
from src.quizzes.models import Question, QuestionType


QUIZ_ID = uuid4()


def mcq(answer: str = "Paris", points: int = 1) -> Question:
    return Question(
        quiz_id=QUIZ_ID,
        type=QuestionType.MCQ.value,
        prompt="Capital of France?",
        options=["Paris", "Lyon", "Nice"],
        correct_answer=answer,
        points=points,
    )


def true_false(answer: str = "true", points: int = 1) -> Question:
    return Question(
        quiz_id=QUIZ_ID,
        type=QuestionType.TRUE_FALSE.value,
        prompt="The sky is blue.",
        options=["true", "false"],
        correct_answer=answer,
        points=points,
    )


def short_answer(points: int = 1) -> Question:
    return Question(
        quiz_id=QUIZ_ID,
        type=QuestionType.SHORT_ANSWER.value,
        prompt="Explain photosynthesis.",
        correct_answer="Light to chemical energy",
        points=points,
    )


class TestNormalizeAnswer:
    def test_strips_whitespace(self) -> None:
        assert normalize_answer("  Paris ") == "Paris"

    def test_blank_is_missing(self) -> None:
        assert normalize_answer("   ") is None
        assert normalize_answer(None) is None


class TestGradeQuestion:
    """Per-type equality rules."""

    def test_mcq_exact_match(self) -> None:
        result = grade_question(mcq(points=3), "Paris")
        assert result.correct is True
        assert result.points_earned == 3

    def test_mcq_ignores_surrounding_whitespace(self) -> None:
        assert grade_question(mcq(), "  Paris\n").correct is True

    def test_mcq_is_case_sensitive(self) -> None:
        result = grade_question(mcq(), "paris")
        assert result.correct is False
        assert result.points_earned == 0

    def test_true_false_ignores_case(self) -> None:
        assert grade_question(true_false("true"), "TRUE").correct is True
        assert grade_question(true_false("false"), "True").correct is False

    def test_short_answer_needs_review(self) -> None:
        result = grade_question(short_answer(points=5), "Light becomes sugar")
        assert result.points_earned == 0
        assert result.correct is None
        assert result.needs_review is True
        assert result.answer == "Light becomes sugar"

    def test_missing_answer_earns_nothing(self) -> None:
        for question in (mcq(), true_false(), short_answer()):
            result = grade_question(question, None)
            assert result.points_earned == 0
            assert result.correct is False
            assert result.needs_review is False


class TestComputeScore:
    @pytest.mark.parametrize(
        "earned,total,expected",
        [
            (8, 10, Decimal("80.00")),
            (10, 10, Decimal("100.00")),
            (0, 4, Decimal("0.00")),
            (1, 3, Decimal("33.33")),
            (2, 3, Decimal("66.67")),
            (1, 8, Decimal("12.50")),
        ],
    )
    def test_score(self, earned: int, total: int, expected: Decimal) -> None:
        assert compute_score(earned, total) == expected

    def test_rounds_half_up(self) -> None:
        # 1/800 is exactly 0.125%
        assert compute_score(1, 800) == Decimal("0.13")

    def test_zero_total_rejected(self) -> None:
        with pytest.raises(ValueError):
            compute_score(0, 0)


class TestGradeAnswers:
    def test_eight_of_ten_points(self) -> None:
        questions = [mcq(points=2) for _ in range(5)]
        answers = {q.id: "Paris" for q in questions[:4]}
        answers[questions[4].id] = "Lyon"

        grade = grade_answers(questions, answers)

        assert grade.points_earned == 8
        assert grade.points_total == 10
        assert grade.correct_count == 4
        assert grade.total_count == 5
        assert grade.score_percent == Decimal("80.00")
        assert grade.needs_review is False

    def test_short_answer_counts_in_total(self) -> None:
        questions = [mcq(points=1), short_answer(points=1)]
        grade = grade_answers(
            questions, {questions[0].id: "Paris", questions[1].id: "Some text"}
        )

        assert grade.points_earned == 1
        assert grade.points_total == 2
        assert grade.score_percent == Decimal("50.00")
        assert grade.needs_review is True

    def test_unknown_question_ids_ignored(self) -> None:
        questions = [mcq()]
        grade = grade_answers(questions, {questions[0].id: "Paris", uuid4(): "Paris"})

        assert grade.total_count == 1
        assert grade.points_earned == 1

    def test_score_recomputable_from_results(self) -> None:
        questions = [mcq(points=3), true_false(points=2), short_answer(points=5)]
        grade = grade_answers(
            questions,
            {questions[0].id: "Paris", questions[1].id: "false", questions[2].id: "x"},
        )

        assert score_from_results(grade.results) == grade.score_percent
        assert grade.score_percent == Decimal("30.00")


class TestMeetsPassingScore:
    def test_exact_threshold_passes(self) -> None:
        questions = [mcq(points=7), mcq(points=3)]
        grade = grade_answers(questions, {questions[0].id: "Paris"})

        assert grade.meets(70) is True

    def test_just_under_threshold_fails_despite_rounding(self) -> None:
        questions = [mcq(points=13999), mcq(points=6001)]
        grade = grade_answers(questions, {questions[0].id: "Paris"})

        assert grade.score_percent == Decimal("70.00")
        assert grade.meets(70) is False

    def test_zero_passing_score_always_met(self) -> None:
        questions = [mcq()]
        grade = grade_answers(questions, {})

        assert grade.meets(0) is True
