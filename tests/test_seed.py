from quizapp.db import init_db, get_connection
from quizapp.gateway import SqliteGateway
from quizapp.models import QuestionType
from quizapp.seed import is_seeded, seed_all


def test_is_seeded(tmp_db):
    init_db(tmp_db)
    assert not is_seeded(tmp_db)
    seed_all(tmp_db)
    assert is_seeded(tmp_db)


def test_seed_all_counts(tmp_db):
    init_db(tmp_db)
    counts = seed_all(tmp_db)
    assert counts == {
        "users": 1, "subjects": 1, "categories": 2, "quizzes": 1, "questions": 4, "flashcards": 5,
    }


def test_seed_all_idempotent(tmp_db):
    init_db(tmp_db)
    seed_all(tmp_db)
    assert seed_all(tmp_db) is None  # second call should be no-op
    conn = get_connection(tmp_db)
    assert conn.execute("SELECT COUNT(*) FROM quizzes").fetchone()[0] == 1
    assert conn.execute("SELECT COUNT(*) FROM flashcards").fetchone()[0] == 5
    conn.close()


def test_demo_quiz_covers_every_question_type(tmp_db):
    init_db(tmp_db)
    seed_all(tmp_db)
    quiz = SqliteGateway(tmp_db).load_quiz(1)
    assert {q.question_type for q in quiz.questions} == set(QuestionType)
    assert quiz.time_limit == 10
