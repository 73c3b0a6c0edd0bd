"""Aggregate per-question grades into an attempt score."""
from dataclasses import dataclass, field
from typing import Iterable, Optional

from quizapp.grader import GradeResult, grade
from quizapp.models import Answer, Question


@dataclass
class ScoreReport:
    score: int
    total_questions: int
    results: dict[int, GradeResult] = field(default_factory=dict)
    answered: int = 0
    ungraded_question_ids: list[int] = field(default_factory=list)

    @property
    def auto_graded(self) -> int:
        """Number of questions that received a verdict."""
        return self.total_questions - len(self.ungraded_question_ids)

    @property
    def percentage(self) -> float:
        if self.auto_graded == 0:
            return 0.0
        return round(self.score / self.auto_graded * 100, 1)

    def matched_fraction(self, question_id: int) -> Optional[float]:
        result = self.results.get(question_id)
        return result.matched_fraction if result else None


def score_answers(questions: list[Question], answers: Iterable[Answer], partial_credit: bool = False) -> ScoreReport:
    """Grade every question of a quiz against the recorded answers.

    total_questions is the number of questions in the quiz. Unanswered
    questions grade incorrect. Ungraded questions (free text) do not add to
    the score and are listed in ungraded_question_ids. Answers to questions
    outside the list are ignored.
    """
    by_question = {a.question_id: a for a in answers}
    report = ScoreReport(score=0, total_questions=len(questions))
    for question in questions:
        answer = by_question.get(question.id)
        if answer is not None:
            report.answered += 1
        result = grade(question, answer.response if answer else None, partial_credit=partial_credit)
        report.results[question.id] = result
        if not result.is_graded:
            report.ungraded_question_ids.append(question.id)
        elif result.is_correct:
            report.score += 1
    return report
