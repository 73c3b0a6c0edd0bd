"""Per-question grading for single, multiple, matching and free-text questions.

Grading is total: every call returns a GradeResult, malformed responses are
graded incorrect and free-text answers come back ungraded.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from quizapp.models import (
    ChoiceResponse, MatchingResponse, Question, QuestionType, Response,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GradeResult:
    is_correct: bool
    matched_fraction: Optional[float]  # None when ungraded

    @property
    def is_graded(self) -> bool:
        return self.matched_fraction is not None


CORRECT = GradeResult(is_correct=True, matched_fraction=1.0)
INCORRECT = GradeResult(is_correct=False, matched_fraction=0.0)
UNGRADED = GradeResult(is_correct=False, matched_fraction=None)


def correct_option_ids(question: Question) -> frozenset[int]:
    return frozenset(o.id for o in question.options if o.is_correct)


def grade_single(question: Question, response: Response) -> GradeResult:
    if not isinstance(response, ChoiceResponse) or len(response.option_ids) != 1:
        return INCORRECT
    (selected,) = response.option_ids
    return CORRECT if selected in correct_option_ids(question) else INCORRECT


def grade_multiple(question: Question, response: Response, partial_credit: bool = False) -> GradeResult:
    """Exact set equality decides correctness.

    With partial_credit, matched_fraction reports (right picks - wrong picks)
    over the number of correct options, floored at 0. is_correct is unchanged.
    """
    if not isinstance(response, ChoiceResponse):
        return INCORRECT
    key = correct_option_ids(question)
    selected = response.option_ids
    if selected == key:
        return CORRECT
    if not partial_credit or not key:
        return INCORRECT
    hits = len(selected & key)
    misses = len(selected - key)
    return GradeResult(is_correct=False, matched_fraction=max(0.0, (hits - misses) / len(key)))


def grade_matching(question: Question, response: Response) -> GradeResult:
    pairs = question.pairs
    if not pairs:
        # No canonical key to grade against.
        return UNGRADED
    if not isinstance(response, MatchingResponse):
        return INCORRECT
    matched = sum(1 for p in pairs if response.mapping.get(p.left) == p.right)
    fraction = matched / len(pairs)
    return GradeResult(is_correct=fraction == 1.0, matched_fraction=fraction)


def grade_text(question: Question, response: Response) -> GradeResult:
    return UNGRADED


def grade(question: Question, response: Optional[Response], partial_credit: bool = False) -> GradeResult:
    """Grade one response against the question's canonical key.

    A missing response is incorrect for auto-gradable questions. Unknown
    question type tags are logged and left ungraded.
    """
    qtype = question.question_type
    if qtype is None:
        logger.warning("Question %s has unknown type %r, leaving ungraded", question.id, question.type)
        return UNGRADED
    if qtype == QuestionType.TEXT:
        return grade_text(question, response)
    if response is None:
        return INCORRECT if qtype != QuestionType.MATCHING or question.pairs else UNGRADED
    if qtype == QuestionType.SINGLE:
        return grade_single(question, response)
    if qtype == QuestionType.MULTIPLE:
        return grade_multiple(question, response, partial_credit=partial_credit)
    return grade_matching(question, response)
