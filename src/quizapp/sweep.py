"""Periodic sweep that finalizes attempts past their time limit."""
import logging

from quizapp.attempts import AttemptStateMachine, is_overdue
from quizapp.errors import InvalidStateError

logger = logging.getLogger(__name__)


def sweep_overdue(machine: AttemptStateMachine, action: str = "complete") -> list[int]:
    """Complete (or abandon) every live attempt whose time limit has elapsed.

    Goes through the same operations a user would call. An attempt finalized
    concurrently by its user is skipped. Returns the ids that were finalized.
    """
    if action not in ("complete", "abandon"):
        raise ValueError(f"action must be 'complete' or 'abandon', got {action!r}")
    now = machine.clock.now()
    finalized = []
    quizzes = {}
    for attempt in machine.gateway.list_live_attempts():
        if attempt.quiz_id not in quizzes:
            quizzes[attempt.quiz_id] = machine.gateway.load_quiz(attempt.quiz_id)
        if not is_overdue(attempt, quizzes[attempt.quiz_id], now, machine.exam_default_time_limit):
            continue
        try:
            getattr(machine, action)(attempt.id)
        except InvalidStateError:
            logger.info("Attempt %s was finalized before the sweep reached it", attempt.id)
            continue
        finalized.append(attempt.id)
    if finalized:
        logger.info("Sweep finalized %d overdue attempt(s) with %s", len(finalized), action)
    return finalized
