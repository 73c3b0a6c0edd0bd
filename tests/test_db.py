"""Tests for database initialization and the SQLite gateway."""
import sqlite3
from unittest.mock import patch

import pytest

from quizapp.db import init_db, get_connection
from quizapp.errors import InvalidStateError, NotFoundError
from quizapp.gateway import decode_response, encode_response
from quizapp.models import (
    Answer, ChoiceResponse, MatchingResponse, QuestionType, QuizAttempt, QuizStatus, TextResponse,
)


def test_init_db_creates_tables(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    )
    tables = {row[0] for row in cursor.fetchall()}
    expected = {
        "users", "subjects", "categories", "quizzes", "questions", "options",
        "matching_pairs", "quiz_attempts", "answers", "flashcards",
        "flashcard_reviews", "user_settings",
    }
    assert expected.issubset(tables)
    conn.close()


def test_init_db_is_idempotent(tmp_db):
    init_db(tmp_db)
    init_db(tmp_db)  # should not raise
    conn = get_connection(tmp_db)
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    assert len(cursor.fetchall()) > 0
    conn.close()


def test_time_limit_must_be_positive(db):
    conn = get_connection(db)
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(
            "INSERT INTO quizzes (subject_id, category_id, title, time_limit) VALUES (1, 1, 'x', 0)"
        )
    conn.close()


def test_live_attempt_index_allows_finished_duplicates(db):
    conn = get_connection(db)
    for status in ("COMPLETED", "ABANDONED", "COMPLETED", "IN_PROGRESS"):
        conn.execute(
            "INSERT INTO quizzes (id, subject_id, category_id, title) VALUES (1, 1, 1, 'q') ON CONFLICT DO NOTHING"
        )
        conn.execute(
            "INSERT INTO quiz_attempts (user_id, quiz_id, started_at, status) VALUES (1, 1, '2025-01-01', ?)",
            (status,),
        )
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(
            "INSERT INTO quiz_attempts (user_id, quiz_id, started_at, status) VALUES (1, 1, '2025-01-02', 'IN_PROGRESS')"
        )
    conn.close()


@pytest.mark.parametrize("response", [
    ChoiceResponse.of(3, 1, 2),
    ChoiceResponse.of(),
    MatchingResponse({"a": "1", "b": "2"}),
    TextResponse("  libre  "),
])
def test_response_storage_format(response):
    assert decode_response(*encode_response(response)) == response


def test_load_quiz_keeps_question_order(gateway, three_question_quiz):
    quiz = gateway.load_quiz(three_question_quiz)
    assert [q.question_type for q in quiz.questions] == [
        QuestionType.SINGLE, QuestionType.MULTIPLE, QuestionType.MATCHING,
    ]
    assert [o.text for o in quiz.questions[1].options if o.is_correct] == ["B", "C"]
    assert [(p.left, p.right) for p in quiz.questions[2].pairs] == [("1", "one"), ("2", "two")]


def test_load_missing_records(gateway):
    with pytest.raises(NotFoundError):
        gateway.load_quiz(1)
    with pytest.raises(NotFoundError):
        gateway.load_attempt(1)
    with pytest.raises(NotFoundError):
        gateway.load_flashcard(1)


def test_single_option_answer_sets_option_id(gateway, machine, three_question_quiz, db):
    quiz = gateway.load_quiz(three_question_quiz)
    single = quiz.questions[0]
    attempt = machine.start(1, quiz.id)
    machine.record_answer(attempt, single.id, ChoiceResponse.of(single.options[0].id))
    conn = get_connection(db)
    row = conn.execute("SELECT option_id FROM answers WHERE attempt_id = ?", (attempt.id,)).fetchone()
    conn.close()
    assert row["option_id"] == single.options[0].id


def test_upsert_answer_rejects_finished_attempt(gateway, machine, three_question_quiz, clock):
    quiz = gateway.load_quiz(three_question_quiz)
    attempt = machine.start(1, quiz.id)
    machine.abandon(attempt)
    answer = Answer(
        id=None, attempt_id=attempt.id, question_id=quiz.questions[0].id,
        response=ChoiceResponse.of(), answered_at=clock.now(),
    )
    with pytest.raises(InvalidStateError):
        gateway.upsert_answer(answer)


def test_list_live_attempts(gateway, machine, three_question_quiz):
    a = machine.start(1, three_question_quiz)
    b = machine.start(2, three_question_quiz)
    machine.complete(b)
    assert [x.id for x in gateway.list_live_attempts()] == [a.id]
    assert [x.status for x in gateway.list_attempts(2)] == [QuizStatus.COMPLETED]
    assert gateway.list_attempts(1, quiz_id=404) == []


def test_save_unknown_attempt(gateway, clock):
    ghost = QuizAttempt(id=404, user_id=1, quiz_id=1, started_at=clock.now(), status=QuizStatus.ABANDONED)
    with pytest.raises(NotFoundError):
        gateway.save_attempt(ghost)


def test_insert_attempt_closes_connection_on_error(gateway, clock, three_question_quiz):
    opened = []

    def tracking_connection(*args, **kwargs):
        conn = get_connection(*args, **kwargs)
        opened.append(conn)
        return conn

    unknown_user = QuizAttempt(id=None, user_id=999, quiz_id=three_question_quiz, started_at=clock.now())
    with patch("quizapp.gateway.get_connection", side_effect=tracking_connection):
        with pytest.raises(sqlite3.IntegrityError):
            gateway.insert_attempt(unknown_user)
    assert len(opened) == 1
    with pytest.raises(sqlite3.ProgrammingError):
        opened[0].execute("SELECT 1")


def test_failed_lookup_closes_connection(gateway):
    opened = []

    def tracking_connection(*args, **kwargs):
        conn = get_connection(*args, **kwargs)
        opened.append(conn)
        return conn

    with patch("quizapp.gateway.get_connection", side_effect=tracking_connection):
        with pytest.raises(NotFoundError):
            gateway.load_quiz(404)
    with pytest.raises(sqlite3.ProgrammingError):
        opened[0].execute("SELECT 1")
