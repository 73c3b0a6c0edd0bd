"""Quiz attempt lifecycle: start, record answers, complete or abandon.

IN_PROGRESS -> COMPLETED | ABANDONED. Both end states are terminal. Answers
are stored ungraded and only graded when the attempt is completed, so a user
can change an answer until then.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from quizapp.errors import ConflictError, InvalidStateError, NotInQuizError
from quizapp.models import Answer, Quiz, QuizAttempt, QuizStatus, Response
from quizapp.scorer import ScoreReport, score_answers
from quizapp.settings import EXAM_DEFAULT_TIME_LIMIT

logger = logging.getLogger(__name__)


@dataclass
class CompletedAttempt:
    attempt: QuizAttempt
    report: ScoreReport
    overtime: bool = False


def effective_time_limit(quiz: Quiz, exam_default: int = EXAM_DEFAULT_TIME_LIMIT) -> Optional[int]:
    """Time limit in minutes. Exam-mode quizzes without a limit get `exam_default`."""
    if quiz.time_limit:
        return quiz.time_limit
    if quiz.is_exam_mode:
        return exam_default
    return None


def is_overdue(attempt: QuizAttempt, quiz: Quiz, now: datetime, exam_default: int = EXAM_DEFAULT_TIME_LIMIT) -> bool:
    limit = effective_time_limit(quiz, exam_default)
    if not attempt.is_live or limit is None:
        return False
    return (now - attempt.started_at).total_seconds() > limit * 60


class AttemptStateMachine:
    """Drives QuizAttempt transitions through a persistence gateway.

    Holds no state between calls; the gateway enforces the one-live-attempt
    and one-answer-per-question invariants.
    """

    def __init__(self, gateway, clock, exam_default_time_limit: int = EXAM_DEFAULT_TIME_LIMIT,
                 partial_credit: bool = False):
        self.gateway = gateway
        self.clock = clock
        self.exam_default_time_limit = exam_default_time_limit
        self.partial_credit = partial_credit

    def _live(self, attempt: Union[QuizAttempt, int], action: str) -> QuizAttempt:
        # Always re-read so the status check sees the stored state.
        attempt_id = attempt.id if isinstance(attempt, QuizAttempt) else attempt
        current = self.gateway.load_attempt(attempt_id)
        if current.status != QuizStatus.IN_PROGRESS:
            logger.warning("Refusing to %s attempt %s in state %s", action, attempt_id, current.status.value)
            raise InvalidStateError(attempt_id, current.status)
        return current

    def start(self, user_id: int, quiz_id: int) -> QuizAttempt:
        quiz = self.gateway.load_quiz(quiz_id)
        existing = self.gateway.find_live_attempt(user_id, quiz.id)
        if existing is not None:
            logger.warning("User %s already has live attempt %s for quiz %s", user_id, existing.id, quiz.id)
            raise ConflictError(user_id, quiz.id, existing.id)
        attempt = QuizAttempt(id=None, user_id=user_id, quiz_id=quiz.id, started_at=self.clock.now())
        attempt = self.gateway.insert_attempt(attempt)
        logger.info("Attempt %s started by user %s on quiz %s", attempt.id, user_id, quiz.id)
        return attempt

    def record_answer(self, attempt: Union[QuizAttempt, int], question_id: int, response: Response) -> Answer:
        current = self._live(attempt, "answer")
        quiz = self.gateway.load_quiz(current.quiz_id)
        if question_id not in quiz.question_ids():
            logger.warning("Question %s is not part of quiz %s", question_id, quiz.id)
            raise NotInQuizError(question_id, quiz.id)
        answer = Answer(
            id=None,
            attempt_id=current.id,
            question_id=question_id,
            response=response,
            answered_at=self.clock.now(),
        )
        answer = self.gateway.upsert_answer(answer)
        logger.debug("Attempt %s answered question %s", current.id, question_id)
        return answer

    def complete(self, attempt: Union[QuizAttempt, int]) -> CompletedAttempt:
        current = self._live(attempt, "complete")
        quiz = self.gateway.load_quiz(current.quiz_id)
        limit = effective_time_limit(quiz, self.exam_default_time_limit)
        report = None
        overtime = False

        def finalize(stored: QuizAttempt, answers: list[Answer]) -> dict:
            # Runs inside the gateway's write transaction, on the answers as stored.
            nonlocal report, overtime
            report = score_answers(quiz.questions, answers, self.partial_credit)
            now = self.clock.now()
            elapsed = max(0, int((now - stored.started_at).total_seconds()))
            overtime = limit is not None and elapsed > limit * 60
            if overtime and quiz.is_exam_mode:
                elapsed = limit * 60
            stored.completed_at = now
            stored.time_spent = elapsed
            stored.score = report.score
            stored.total_questions = report.total_questions
            stored.status = QuizStatus.COMPLETED
            return report.results

        try:
            current = self.gateway.finalize_attempt(current.id, finalize)
        except InvalidStateError:
            logger.warning("Attempt %s was finalized while completing", current.id)
            raise
        logger.info(
            "Attempt %s completed: %s/%s (%s ungraded)%s",
            current.id, report.score, report.total_questions,
            len(report.ungraded_question_ids), " overtime" if overtime else "",
        )
        return CompletedAttempt(attempt=current, report=report, overtime=overtime)

    def abandon(self, attempt: Union[QuizAttempt, int]) -> QuizAttempt:
        current = self._live(attempt, "abandon")
        now = self.clock.now()
        current.completed_at = now
        current.time_spent = max(0, int((now - current.started_at).total_seconds()))
        current.status = QuizStatus.ABANDONED
        self.gateway.save_attempt(current)
        logger.info("Attempt %s abandoned", current.id)
        return current
