"""Quiz grading module.

Provides:
- Quiz and question authoring
- Pure grading of MCQ, TRUE_FALSE and SHORT_ANSWER questions
- Attempt lifecycle with single-attempt and time limit policies
- Course completion trigger on passed quizzes
"""

from .grading import compute_score, grade_answers, grade_question
from .models import (
    QUIZZES_TABLES_CQL,
    AttemptStatus,
    Question,
    QuestionType,
    Quiz,
    QuizAttempt,
)


__all__ = [
    "QUIZZES_TABLES_CQL",
    "AttemptStatus",
    "Question",
    "QuestionType",
    "Quiz",
    "QuizAttempt",
    "compute_score",
    "grade_answers",
    "grade_question",
]
