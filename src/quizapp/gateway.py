"""SQLite persistence gateway for quizzes, attempts, answers and flashcards.

The engines never touch SQL directly; they load and save through this class.
Two invariants are enforced here rather than in memory: one live attempt per
(user, quiz) through a partial unique index, and one answer per
(attempt, question) through an upsert.
"""
import json
import logging
import sqlite3
from datetime import datetime
from typing import Optional

from quizapp.db import get_connection
from quizapp.errors import ConflictError, InvalidStateError, NotFoundError
from quizapp.models import (
    Answer, ChoiceResponse, Difficulty, Flashcard, FlashcardDifficulty,
    MatchingPair, MatchingResponse, Option, Question, Quiz, QuizAttempt,
    QuizStatus, Response, TextResponse,
)

logger = logging.getLogger(__name__)


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def encode_response(response: Response) -> tuple[str, str]:
    """Return (response_kind, response_text) for storage."""
    if isinstance(response, ChoiceResponse):
        return "CHOICE", json.dumps(sorted(response.option_ids))
    if isinstance(response, MatchingResponse):
        return "MATCHING", json.dumps(response.mapping, sort_keys=True)
    if isinstance(response, TextResponse):
        return "TEXT", response.text
    raise TypeError(f"Unsupported response type: {type(response).__name__}")


def decode_response(kind: str, text: Optional[str]) -> Response:
    if kind == "CHOICE":
        return ChoiceResponse(frozenset(json.loads(text or "[]")))
    if kind == "MATCHING":
        return MatchingResponse(json.loads(text or "{}"))
    return TextResponse(text or "")


def _attempt_from_row(row) -> QuizAttempt:
    return QuizAttempt(
        id=row["id"],
        user_id=row["user_id"],
        quiz_id=row["quiz_id"],
        started_at=_dt(row["started_at"]),
        status=QuizStatus(row["status"]),
        completed_at=_dt(row["completed_at"]),
        score=row["score"],
        total_questions=row["total_questions"],
        time_spent=row["time_spent"],
    )


def _flashcard_from_row(row) -> Flashcard:
    return Flashcard(
        id=row["id"],
        user_id=row["user_id"],
        category_id=row["category_id"],
        front=row["front"],
        back=row["back"],
        difficulty=FlashcardDifficulty(row["difficulty"]),
        created_at=_dt(row["created_at"]),
        updated_at=_dt(row["updated_at"]),
    )


def _answer_from_row(row) -> Answer:
    return Answer(
        id=row["id"],
        attempt_id=row["attempt_id"],
        question_id=row["question_id"],
        response=decode_response(row["response_kind"], row["response_text"]),
        answered_at=_dt(row["answered_at"]),
        is_correct=None if row["is_correct"] is None else bool(row["is_correct"]),
        matched_fraction=row["matched_fraction"],
    )


def _require_live(conn: sqlite3.Connection, attempt_id: int):
    """Return the attempt row, raising unless it is stored IN_PROGRESS."""
    row = conn.execute("SELECT * FROM quiz_attempts WHERE id = ?", (attempt_id,)).fetchone()
    if row is None:
        raise NotFoundError("QuizAttempt", attempt_id)
    if row["status"] != QuizStatus.IN_PROGRESS.value:
        raise InvalidStateError(attempt_id, QuizStatus(row["status"]))
    return row


class SqliteGateway:
    def __init__(self, db_path: str, timeout: float = 5.0):
        self.db_path = db_path
        self.timeout = timeout

    def _connect(self) -> sqlite3.Connection:
        return get_connection(self.db_path, timeout=self.timeout)

    # Quizzes

    def load_quiz(self, quiz_id: int) -> Quiz:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM quizzes WHERE id = ?", (quiz_id,)).fetchone()
            if row is None:
                raise NotFoundError("Quiz", quiz_id)
            questions = []
            for q in conn.execute(
                "SELECT * FROM questions WHERE quiz_id = ? ORDER BY position, id", (quiz_id,)
            ).fetchall():
                options = [
                    Option(id=o["id"], question_id=q["id"], text=o["text"], is_correct=bool(o["is_correct"]))
                    for o in conn.execute("SELECT * FROM options WHERE question_id = ? ORDER BY id", (q["id"],))
                ]
                pairs = [
                    MatchingPair(id=p["id"], question_id=q["id"], left=p["left_text"], right=p["right_text"])
                    for p in conn.execute("SELECT * FROM matching_pairs WHERE question_id = ? ORDER BY id", (q["id"],))
                ]
                questions.append(Question(
                    id=q["id"], quiz_id=quiz_id, content=q["content"], type=q["type"],
                    image_url=q["image_url"], explanation=q["explanation"],
                    options=options, pairs=pairs,
                ))
        finally:
            conn.close()
        return Quiz(
            id=row["id"],
            title=row["title"],
            subject_id=row["subject_id"],
            category_id=row["category_id"],
            description=row["description"],
            difficulty=Difficulty(row["difficulty"]) if row["difficulty"] else None,
            time_limit=row["time_limit"],
            is_exam_mode=bool(row["is_exam_mode"]),
            questions=questions,
        )

    def list_quiz_ids(self) -> list[int]:
        conn = self._connect()
        try:
            return [r["id"] for r in conn.execute("SELECT id FROM quizzes ORDER BY id")]
        finally:
            conn.close()

    # Attempts

    def load_attempt(self, attempt_id: int) -> QuizAttempt:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM quiz_attempts WHERE id = ?", (attempt_id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            raise NotFoundError("QuizAttempt", attempt_id)
        return _attempt_from_row(row)

    def find_live_attempt(self, user_id: int, quiz_id: int) -> Optional[QuizAttempt]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT * FROM quiz_attempts WHERE user_id = ? AND quiz_id = ? AND status = 'IN_PROGRESS'",
                (user_id, quiz_id),
            ).fetchone()
        finally:
            conn.close()
        return _attempt_from_row(row) if row else None

    def list_live_attempts(self) -> list[QuizAttempt]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT * FROM quiz_attempts WHERE status = 'IN_PROGRESS' ORDER BY started_at"
            ).fetchall()
        finally:
            conn.close()
        return [_attempt_from_row(r) for r in rows]

    def list_attempts(self, user_id: int, quiz_id: int = None) -> list[QuizAttempt]:
        query = "SELECT * FROM quiz_attempts WHERE user_id = ?"
        params = [user_id]
        if quiz_id is not None:
            query += " AND quiz_id = ?"
            params.append(quiz_id)
        conn = self._connect()
        try:
            rows = conn.execute(query + " ORDER BY id", params).fetchall()
        finally:
            conn.close()
        return [_attempt_from_row(r) for r in rows]

    def insert_attempt(self, attempt: QuizAttempt) -> QuizAttempt:
        conn = self._connect()
        try:
            cursor = conn.execute(
                "INSERT INTO quiz_attempts (user_id, quiz_id, started_at, status) VALUES (?, ?, ?, ?)",
                (attempt.user_id, attempt.quiz_id, _ts(attempt.started_at), attempt.status.value),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            if "UNIQUE" in str(e):
                raise ConflictError(attempt.user_id, attempt.quiz_id) from e
            raise
        finally:
            conn.close()
        attempt.id = cursor.lastrowid
        return attempt

    def save_attempt(self, attempt: QuizAttempt) -> QuizAttempt:
        """Persist a finalized attempt. Only a stored IN_PROGRESS row can be finalized."""
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            _require_live(conn, attempt.id)
            self._write_attempt(conn, attempt)
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        return attempt

    def finalize_attempt(self, attempt_id: int, finalize) -> QuizAttempt:
        """Read, grade and store an attempt in one write transaction.

        `finalize(attempt, answers)` sets the attempt's final fields and
        returns a mapping of question id to GradeResult. Answers written
        concurrently either land before the read or wait for the commit and
        then find the attempt finalized.
        """
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            attempt = _attempt_from_row(_require_live(conn, attempt_id))
            answers = [
                _answer_from_row(r) for r in conn.execute(
                    "SELECT * FROM answers WHERE attempt_id = ? ORDER BY question_id", (attempt_id,)
                )
            ]
            grades = finalize(attempt, answers)
            self._write_attempt(conn, attempt)
            for question_id, result in (grades or {}).items():
                conn.execute(
                    "UPDATE answers SET is_correct=?, matched_fraction=? WHERE attempt_id=? AND question_id=?",
                    (
                        None if not result.is_graded else int(result.is_correct),
                        result.matched_fraction, attempt_id, question_id,
                    ),
                )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        return attempt

    @staticmethod
    def _write_attempt(conn: sqlite3.Connection, attempt: QuizAttempt) -> None:
        conn.execute(
            """UPDATE quiz_attempts
            SET completed_at=?, score=?, total_questions=?, time_spent=?, status=?
            WHERE id=? AND status='IN_PROGRESS'""",
            (
                _ts(attempt.completed_at), attempt.score, attempt.total_questions,
                attempt.time_spent, attempt.status.value, attempt.id,
            ),
        )

    # Answers

    def load_answers(self, attempt_id: int) -> list[Answer]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT * FROM answers WHERE attempt_id = ? ORDER BY question_id", (attempt_id,)
            ).fetchall()
        finally:
            conn.close()
        return [_answer_from_row(r) for r in rows]

    def upsert_answer(self, answer: Answer) -> Answer:
        """Insert or overwrite the answer for (attempt, question).

        option_id is only set for a single selected option that belongs to the
        question. Fails with InvalidStateError if the attempt was finalized
        before the write landed.
        """
        kind, text = encode_response(answer.response)
        single = None
        if isinstance(answer.response, ChoiceResponse) and len(answer.response.option_ids) == 1:
            (single,) = answer.response.option_ids
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            _require_live(conn, answer.attempt_id)
            conn.execute(
                """INSERT INTO answers (attempt_id, question_id, option_id, response_kind, response_text, answered_at)
                VALUES (?, ?, (SELECT id FROM options WHERE id = ? AND question_id = ?), ?, ?, ?)
                ON CONFLICT(attempt_id, question_id) DO UPDATE SET
                    option_id=excluded.option_id,
                    response_kind=excluded.response_kind,
                    response_text=excluded.response_text,
                    answered_at=excluded.answered_at""",
                (answer.attempt_id, answer.question_id, single, answer.question_id, kind, text, _ts(answer.answered_at)),
            )
            row = conn.execute(
                "SELECT id FROM answers WHERE attempt_id = ? AND question_id = ?",
                (answer.attempt_id, answer.question_id),
            ).fetchone()
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        answer.id = row["id"]
        return answer

    # Flashcards

    def load_flashcard(self, card_id: int) -> Flashcard:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM flashcards WHERE id = ?", (card_id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            raise NotFoundError("Flashcard", card_id)
        return _flashcard_from_row(row)

    def list_flashcards(self, user_id: int, category_id: int = None) -> list[Flashcard]:
        query = "SELECT * FROM flashcards WHERE user_id = ?"
        params = [user_id]
        if category_id is not None:
            query += " AND category_id = ?"
            params.append(category_id)
        conn = self._connect()
        try:
            rows = conn.execute(query + " ORDER BY id", params).fetchall()
        finally:
            conn.close()
        return [_flashcard_from_row(r) for r in rows]

    def insert_flashcard(self, card: Flashcard) -> Flashcard:
        conn = self._connect()
        try:
            cursor = conn.execute(
                """INSERT INTO flashcards (user_id, category_id, front, back, difficulty, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    card.user_id, card.category_id, card.front, card.back,
                    FlashcardDifficulty(card.difficulty).value,
                    _ts(card.created_at), _ts(card.updated_at or card.created_at),
                ),
            )
            conn.commit()
        finally:
            conn.close()
        card.id = cursor.lastrowid
        return card

    def save_review(self, card: Flashcard, outcome: str, from_difficulty: str) -> Flashcard:
        """Store the card's new state and its history row together."""
        conn = self._connect()
        try:
            cursor = conn.execute(
                "UPDATE flashcards SET difficulty=?, updated_at=? WHERE id=?",
                (FlashcardDifficulty(card.difficulty).value, _ts(card.updated_at), card.id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("Flashcard", card.id)
            conn.execute(
                """INSERT INTO flashcard_reviews (flashcard_id, outcome, from_difficulty, to_difficulty, reviewed_at)
                VALUES (?, ?, ?, ?, ?)""",
                (card.id, outcome, from_difficulty, FlashcardDifficulty(card.difficulty).value, _ts(card.updated_at)),
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        return card

    def review_history(self, card_id: int) -> list[dict]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT * FROM flashcard_reviews WHERE flashcard_id = ? ORDER BY id", (card_id,)
            ).fetchall()
        finally:
            conn.close()
        return [dict(r) for r in rows]
