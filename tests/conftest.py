from datetime import datetime, timedelta

import pytest

from quizapp.attempts import AttemptStateMachine
from quizapp.db import get_connection, init_db
from quizapp.flashcards import ReviewSession
from quizapp.gateway import SqliteGateway
from quizapp.importer import insert_quiz
from quizapp.srs import SRSScheduler


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2025, 1, 6, 9, 0, 0)):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_quizapp.db")
    return db_path


@pytest.fixture
def db(tmp_db):
    """Initialized database with two users, one subject and one category."""
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    conn.execute("INSERT INTO users (id, name, email) VALUES (1, 'Alice', 'alice@example.com')")
    conn.execute("INSERT INTO users (id, name, email) VALUES (2, 'Bob', 'bob@example.com')")
    conn.execute("INSERT INTO subjects (id, name) VALUES (1, 'Maths')")
    conn.execute("INSERT INTO categories (id, subject_id, name) VALUES (1, 1, 'Algèbre')")
    conn.commit()
    conn.close()
    return tmp_db


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def gateway(db):
    return SqliteGateway(db)


@pytest.fixture
def machine(gateway, clock):
    return AttemptStateMachine(gateway, clock)


@pytest.fixture
def review_session(gateway, clock):
    return ReviewSession(gateway, SRSScheduler(clock))


def add_quiz(db_path: str, questions: list[dict], **fields) -> int:
    quiz = {"title": "Test quiz", "subject_id": 1, "category_id": 1, "questions": questions}
    quiz.update(fields)
    conn = get_connection(db_path)
    quiz_id = insert_quiz(conn, quiz)
    conn.commit()
    conn.close()
    return quiz_id


THREE_QUESTIONS = [
    {
        "content": "Pick A",
        "type": "SINGLE",
        "options": [
            {"text": "A", "is_correct": True},
            {"text": "B", "is_correct": False},
        ],
    },
    {
        "content": "Pick B and C",
        "type": "MULTIPLE",
        "options": [
            {"text": "A", "is_correct": False},
            {"text": "B", "is_correct": True},
            {"text": "C", "is_correct": True},
        ],
    },
    {
        "content": "Match",
        "type": "MATCHING",
        "pairs": [
            {"left": "1", "right": "one"},
            {"left": "2", "right": "two"},
        ],
    },
]


@pytest.fixture
def three_question_quiz(db):
    return add_quiz(db, THREE_QUESTIONS)
