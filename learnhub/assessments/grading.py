"""
Quiz grading

Pure functions: the same quiz and the same answers always give the same score.
"""

from typing import Any, Dict, Iterable, Mapping

from learnhub.assessments.errors import ValidationError
from learnhub.assessments.models import Question, QuestionKind, Quiz


def normalize_text(value: str) -> str:
    return value.strip().casefold()


def round_half_up_percent(numerator: int, denominator: int) -> int:
    """numerator / denominator * 100, rounded to the nearest integer, .5 going up"""
    if denominator <= 0:
        return 0
    return (200 * numerator + denominator) // (2 * denominator)


def answer_matches(question: Question, answer: str) -> bool:
    if question.kind == QuestionKind.MULTIPLE_CHOICE:
        return answer == question.correct_answer

    given = normalize_text(answer)
    expected = [question.correct_answer] + list(question.accepted_answers)
    return any(given == normalize_text(e) for e in expected)


def validate_answers(quiz: Quiz, answers: Any) -> Dict[str, str]:
    """
    Check an answers payload against the quiz.

    Raises ValidationError when the payload is not a mapping of known
    question ids to strings, or a multiple-choice answer is not one of
    the question's choices. Missing questions are allowed.
    """
    if answers is None:
        return {}
    if not isinstance(answers, Mapping):
        raise ValidationError("answers must be an object of question_id -> answer")

    questions = {q.question_id: q for q in quiz.questions}
    cleaned = {}

    for question_id, answer in answers.items():
        question = questions.get(question_id)
        if question is None:
            raise ValidationError(f"Unknown question: {question_id}")
        if not isinstance(answer, str):
            raise ValidationError(f"Answer for {question_id} must be a string")
        if (question.kind == QuestionKind.MULTIPLE_CHOICE
                and question.choices and answer not in question.choices):
            raise ValidationError(f"Answer for {question_id} is not one of the choices")
        cleaned[question_id] = answer

    return cleaned


def score_answers(quiz: Quiz, answers: Mapping[str, str]) -> int:
    """Weighted percentage score (0-100). Unanswered questions earn nothing."""
    total = 0
    awarded = 0

    for question in quiz.questions:
        total += question.points
        answer = answers.get(question.question_id)
        if answer is not None and answer_matches(question, answer):
            awarded += question.points

    return round_half_up_percent(awarded, total)


def is_passing(score: int, threshold: int) -> bool:
    return score >= threshold


def completion_percentage(
    course_quizzes: Iterable[Quiz],
    best_scores: Mapping[str, int],
    default_threshold: int,
) -> int:
    """Share of the course's quizzes with at least one passing attempt"""
    quizzes = list(course_quizzes)
    passed = sum(
        1 for q in quizzes
        if q.quiz_id in best_scores
        and is_passing(best_scores[q.quiz_id], q.threshold(default_threshold))
    )
    return round_half_up_percent(passed, len(quizzes))
