"""Pure quiz grading.

Grading never touches storage: it maps (questions, answers) to per-question
results and a score. The stored score can always be recomputed from the
stored per-question results with ``score_from_results``.

Equality rules by question type:
- MCQ: exact match after trimming surrounding whitespace
- TRUE_FALSE: same, ignoring case
- SHORT_ANSWER: not auto-graded; earns 0 points and is flagged for review

The trimming and the TRUE_FALSE case folding are intentional: "exact match"
means the same option, not the same bytes. MCQ options stay case-sensitive.
"""

from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from .models import GradeResult, Question, QuestionResult, QuestionType


SCORE_QUANTUM = Decimal("0.01")


def normalize_answer(answer: str | None) -> str | None:
    """Trim an answer; blank answers count as missing."""
    if answer is None:
        return None
    stripped = answer.strip()
    return stripped or None


def grade_question(question: Question, answer: str | None) -> QuestionResult:
    """Grade one answer against its question."""
    given = normalize_answer(answer)
    question_type = QuestionType(question.type)

    if given is None:
        return QuestionResult(
            question_id=question.id,
            question_type=question_type.value,
            points=question.points,
            points_earned=0,
            correct=False,
        )

    if question_type == QuestionType.SHORT_ANSWER:
        return QuestionResult(
            question_id=question.id,
            question_type=question_type.value,
            points=question.points,
            points_earned=0,
            correct=None,
            needs_review=True,
            answer=given,
        )

    expected = normalize_answer(question.correct_answer) or ""
    if question_type == QuestionType.TRUE_FALSE:
        correct = given.lower() == expected.lower()
    else:
        correct = given == expected

    return QuestionResult(
        question_id=question.id,
        question_type=question_type.value,
        points=question.points,
        points_earned=question.points if correct else 0,
        correct=correct,
        answer=given,
    )


def compute_score(points_earned: int, points_total: int) -> Decimal:
    """Score percentage ``100 * earned / total``, two decimals, half-up.

    Examples:
        >>> compute_score(8, 10)
        Decimal('80.00')
        >>> compute_score(1, 3)
        Decimal('33.33')

    Raises:
        ValueError: If there are no points to earn
    """
    if points_total <= 0:
        msg = "points_total must be positive"
        raise ValueError(msg)
    score = Decimal(points_earned) * 100 / Decimal(points_total)
    return score.quantize(SCORE_QUANTUM, rounding=ROUND_HALF_UP)


def summarize(results: list[QuestionResult]) -> GradeResult:
    """Aggregate per-question results into a grade."""
    points_earned = sum(r.points_earned for r in results)
    points_total = sum(r.points for r in results)
    return GradeResult(
        results=results,
        points_earned=points_earned,
        points_total=points_total,
        correct_count=sum(1 for r in results if r.correct),
        total_count=len(results),
        score_percent=compute_score(points_earned, points_total),
        needs_review=any(r.needs_review for r in results),
    )


def grade_answers(
    questions: Iterable[Question], answers: Mapping[UUID, str | None]
) -> GradeResult:
    """Grade every question of a quiz. Answers to unknown questions are ignored."""
    return summarize([grade_question(q, answers.get(q.id)) for q in questions])


def score_from_results(results: Iterable[QuestionResult]) -> Decimal:
    """Recompute a stored score from its per-question results."""
    items = list(results)
    return compute_score(
        sum(r.points_earned for r in items),
        sum(r.points for r in items),
    )
