"""Import quizzes and flashcards from JSON or YAML bundles.

Bundle layout (all sections optional):

    users:      [{id?, name, email?}]
    subjects:   [{id?, name}]
    categories: [{id?, name, subject_id}]
    quizzes:    [{title, subject_id, category_id, description?, difficulty?,
                  time_limit?, is_exam_mode?, questions: [{content, type,
                  image_url?, explanation?, options?: [{text, is_correct}],
                  pairs?: [{left, right}]}]}]
    flashcards: [{front, back, category_id, user_id, difficulty?}]

When a user, subject or category carries an `id`, references to that id
elsewhere in the bundle point at the row created for it. Other references
are taken as ids already in the database.
"""
import json
import sqlite3
from datetime import datetime
from pathlib import Path

from quizapp.db import get_connection
from quizapp.models import Difficulty, FlashcardDifficulty, QuestionType

SECTIONS = ("users", "subjects", "categories", "quizzes", "flashcards")


def read_bundle(file_path: str) -> dict:
    path = Path(file_path)
    suffix = path.suffix.lower()
    if suffix == ".json":
        data = json.loads(path.read_text(encoding="utf-8"))
    elif suffix in (".yaml", ".yml"):
        import yaml
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    else:
        raise ValueError(f"Unsupported bundle format: {suffix or path.name}")
    if not isinstance(data, dict):
        raise ValueError("Bundle must be a mapping of sections")
    return data


def _require(record, keys: tuple, where: str) -> None:
    if not isinstance(record, dict):
        raise ValueError(f"{where}: expected a mapping, got {type(record).__name__}")
    for key in keys:
        if record.get(key) in (None, ""):
            raise ValueError(f"{where}: missing {key}")


def validate_quiz(quiz: dict, where: str) -> None:
    _require(quiz, ("title", "subject_id", "category_id"), where)
    time_limit = quiz.get("time_limit")
    if time_limit is not None and (not isinstance(time_limit, int) or time_limit <= 0):
        raise ValueError(f"{where}: time_limit must be a positive integer")
    if quiz.get("difficulty") is not None:
        try:
            Difficulty(quiz["difficulty"])
        except ValueError:
            raise ValueError(f"{where}: unknown difficulty {quiz['difficulty']!r}") from None
    for j, q in enumerate(quiz.get("questions") or []):
        qwhere = f"{where}.questions[{j}]"
        _require(q, ("content",), qwhere)
        if QuestionType.parse(q.get("type")) is None:
            raise ValueError(f"{qwhere}: unknown type {q.get('type')!r}")
        for k, opt in enumerate(q.get("options") or []):
            _require(opt, ("text",), f"{qwhere}.options[{k}]")
        for k, pair in enumerate(q.get("pairs") or []):
            _require(pair, ("left", "right"), f"{qwhere}.pairs[{k}]")


def validate_flashcard(card: dict, where: str) -> None:
    _require(card, ("front", "back", "category_id", "user_id"), where)
    try:
        FlashcardDifficulty(card.get("difficulty") or FlashcardDifficulty.NOUVEAU.value)
    except ValueError:
        raise ValueError(f"{where}: unknown difficulty {card.get('difficulty')!r}") from None


def validate_bundle(data: dict) -> None:
    """Raise ValueError naming the first malformed record."""
    for section in SECTIONS:
        if not isinstance(data.get(section) or [], list):
            raise ValueError(f"{section}: expected a list")
    for i, user in enumerate(data.get("users") or []):
        _require(user, ("name",), f"users[{i}]")
    for i, subject in enumerate(data.get("subjects") or []):
        _require(subject, ("name",), f"subjects[{i}]")
    for i, category in enumerate(data.get("categories") or []):
        _require(category, ("name", "subject_id"), f"categories[{i}]")
    for i, quiz in enumerate(data.get("quizzes") or []):
        validate_quiz(quiz, f"quizzes[{i}]")
    for i, card in enumerate(data.get("flashcards") or []):
        validate_flashcard(card, f"flashcards[{i}]")


def insert_quiz(conn: sqlite3.Connection, quiz: dict) -> int:
    """Insert a quiz with its questions, options and pairs. Returns the quiz id."""
    cursor = conn.execute(
        """INSERT INTO quizzes (subject_id, category_id, title, description, difficulty, time_limit, is_exam_mode)
        VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (
            quiz["subject_id"], quiz["category_id"], quiz["title"], quiz.get("description"),
            quiz.get("difficulty"), quiz.get("time_limit"), int(bool(quiz.get("is_exam_mode"))),
        ),
    )
    quiz_id = cursor.lastrowid
    for position, q in enumerate(quiz.get("questions") or []):
        qid = conn.execute(
            """INSERT INTO questions (quiz_id, position, content, type, image_url, explanation)
            VALUES (?, ?, ?, ?, ?, ?)""",
            (
                quiz_id, position, q["content"], QuestionType.parse(q["type"]).value,
                q.get("image_url"), q.get("explanation"),
            ),
        ).lastrowid
        for opt in q.get("options") or []:
            conn.execute(
                "INSERT INTO options (question_id, text, is_correct) VALUES (?, ?, ?)",
                (qid, str(opt["text"]), int(bool(opt.get("is_correct")))),
            )
        for pair in q.get("pairs") or []:
            conn.execute(
                "INSERT INTO matching_pairs (question_id, left_text, right_text) VALUES (?, ?, ?)",
                (qid, str(pair["left"]), str(pair["right"])),
            )
    return quiz_id


def import_bundle(db_path: str, file_path: str, now: datetime = None) -> dict:
    """Validate then import a bundle in one transaction. Returns counts per section."""
    data = read_bundle(file_path)
    validate_bundle(data)

    stamp = (now or datetime.now()).isoformat()
    counts = dict.fromkeys(("users", "subjects", "categories", "quizzes", "questions", "flashcards"), 0)
    user_ids, subject_ids, category_ids = {}, {}, {}
    conn = get_connection(db_path)
    try:
        for user in data.get("users") or []:
            new_id = conn.execute(
                "INSERT INTO users (name, email) VALUES (?, ?)", (user["name"], user.get("email"))
            ).lastrowid
            if user.get("id") is not None:
                user_ids[user["id"]] = new_id
            counts["users"] += 1
        for subject in data.get("subjects") or []:
            new_id = conn.execute("INSERT INTO subjects (name) VALUES (?)", (subject["name"],)).lastrowid
            if subject.get("id") is not None:
                subject_ids[subject["id"]] = new_id
            counts["subjects"] += 1
        for category in data.get("categories") or []:
            new_id = conn.execute(
                "INSERT INTO categories (name, subject_id) VALUES (?, ?)",
                (category["name"], subject_ids.get(category["subject_id"], category["subject_id"])),
            ).lastrowid
            if category.get("id") is not None:
                category_ids[category["id"]] = new_id
            counts["categories"] += 1
        for quiz in data.get("quizzes") or []:
            insert_quiz(conn, dict(
                quiz,
                subject_id=subject_ids.get(quiz["subject_id"], quiz["subject_id"]),
                category_id=category_ids.get(quiz["category_id"], quiz["category_id"]),
            ))
            counts["quizzes"] += 1
            counts["questions"] += len(quiz.get("questions") or [])
        for card in data.get("flashcards") or []:
            conn.execute(
                """INSERT INTO flashcards (user_id, category_id, front, back, difficulty, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    user_ids.get(card["user_id"], card["user_id"]),
                    category_ids.get(card["category_id"], card["category_id"]),
                    card["front"], card["back"],
                    card.get("difficulty") or FlashcardDifficulty.NOUVEAU.value, stamp, stamp,
                ),
            )
            counts["flashcards"] += 1
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        raise
    finally:
        conn.close()
    return counts
