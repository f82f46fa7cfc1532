"""Assessment grading."""
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from lms_engine.errors import ExceededMaxAttempts, InvalidAnswerShape
from lms_engine.models import (
    MULTI_SELECT, SHORT_ANSWER, TRUE_FALSE, Assessment, AssessmentAttempt, Question, percent,
)


@dataclass
class GradeResult:
    score: int
    passed: bool
    correct_count: int
    total: int
    points_earned: int = 0
    points_possible: int = 0
    results: dict = field(default_factory=dict)  # question id -> bool


def _normalize(text: str) -> str:
    return " ".join(text.split()).lower()


def _coerce(question: Question, answer):
    """Validate an answer's shape against its question type."""
    if answer is None:
        return None
    if question.type == MULTI_SELECT:
        if isinstance(answer, str) or not isinstance(answer, (list, tuple, set, frozenset)):
            raise InvalidAnswerShape(question.id, "a list of options")
        if not all(isinstance(a, str) for a in answer):
            raise InvalidAnswerShape(question.id, "a list of strings")
        return frozenset(answer)
    if question.type == TRUE_FALSE and isinstance(answer, bool):
        return "true" if answer else "false"
    if not isinstance(answer, str):
        raise InvalidAnswerShape(question.id, "a single string")
    return answer


def check_answer(question: Question, answer, normalize_short_answers: bool = False) -> bool:
    value = _coerce(question, answer)
    if value is None:
        return False
    if question.type == MULTI_SELECT:
        expected = question.correct_answer
        if isinstance(expected, str):
            expected = [expected]
        return value == frozenset(expected)
    if question.type == SHORT_ANSWER and normalize_short_answers:
        return _normalize(value) == _normalize(str(question.correct_answer))
    return value == question.correct_answer


def grade(
    assessment: Assessment,
    answers: dict,
    prior_attempt_count: int,
    normalize_short_answers: bool = False,
) -> GradeResult:
    """Score a submission. Pure: the caller persists the attempt."""
    if prior_attempt_count >= assessment.max_attempts:
        raise ExceededMaxAttempts(assessment.id, assessment.max_attempts)
    results = {}
    correct = 0
    earned = 0
    for q in assessment.questions:
        ok = check_answer(q, answers.get(q.id), normalize_short_answers)
        results[q.id] = ok
        if ok:
            correct += 1
            earned += q.points
    total = len(assessment.questions)
    score = percent(correct, total)
    return GradeResult(
        score=score,
        passed=score >= assessment.passing_score,
        correct_count=correct,
        total=total,
        points_earned=earned,
        points_possible=sum(q.points for q in assessment.questions),
        results=results,
    )


def build_attempt(
    assessment: Assessment,
    result: GradeResult,
    answers: dict,
    attempt_number: int,
    now: Optional[datetime] = None,
) -> AssessmentAttempt:
    stored = {
        qid: sorted(a) if isinstance(a, (list, tuple, set, frozenset)) else a
        for qid, a in answers.items()
    }
    return AssessmentAttempt(
        assessment_id=assessment.id,
        attempt_number=attempt_number,
        answers=stored,
        score=result.score,
        passed=result.passed,
        submitted_at=(now or datetime.now(timezone.utc)).isoformat(),
        results=dict(result.results),
    )


def question_order(assessment: Assessment, seed=None) -> list[Question]:
    """Questions in presentation order; shuffled deterministically per seed."""
    questions = list(assessment.questions)
    if assessment.shuffle_questions:
        random.Random(seed).shuffle(questions)
    return questions


def answer_review(assessment: Assessment, result: GradeResult) -> list[dict]:
    """Per-question feedback. Correct answers only when the assessment allows it."""
    review = []
    for q in assessment.questions:
        item = {"question_id": q.id, "correct": result.results.get(q.id, False)}
        if assessment.show_correct_answers:
            item["correct_answer"] = q.correct_answer
            item["explanation"] = q.explanation
        review.append(item)
    return review
