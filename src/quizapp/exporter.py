"""Export users, subjects, categories, quizzes and flashcards as a bundle.

The output uses the layout `importer.read_bundle` reads, with ids kept on
users, subjects and categories so references survive a re-import.
"""
import json
import logging
from pathlib import Path

from quizapp.db import get_connection
from quizapp.gateway import SqliteGateway

logger = logging.getLogger(__name__)


def _quiz_record(quiz) -> dict:
    return {
        "title": quiz.title,
        "description": quiz.description,
        "difficulty": quiz.difficulty.value if quiz.difficulty else None,
        "time_limit": quiz.time_limit,
        "is_exam_mode": quiz.is_exam_mode,
        "subject_id": quiz.subject_id,
        "category_id": quiz.category_id,
        "questions": [
            {
                "content": q.content,
                "type": q.type,
                "image_url": q.image_url,
                "explanation": q.explanation,
                "options": [{"text": o.text, "is_correct": o.is_correct} for o in q.options],
                "pairs": [{"left": p.left, "right": p.right} for p in q.pairs],
            }
            for q in quiz.questions
        ],
    }


def build_bundle(db_path: str) -> dict:
    conn = get_connection(db_path)
    try:
        users = [dict(r) for r in conn.execute("SELECT id, name, email FROM users ORDER BY id")]
        subjects = [dict(r) for r in conn.execute("SELECT id, name FROM subjects ORDER BY id")]
        categories = [
            dict(r) for r in conn.execute("SELECT id, name, subject_id FROM categories ORDER BY id")
        ]
        flashcards = [
            dict(r) for r in conn.execute(
                "SELECT front, back, difficulty, category_id, user_id FROM flashcards ORDER BY id"
            )
        ]
    finally:
        conn.close()
    gateway = SqliteGateway(db_path)
    quizzes = [_quiz_record(gateway.load_quiz(quiz_id)) for quiz_id in gateway.list_quiz_ids()]
    return {
        "users": users,
        "subjects": subjects,
        "categories": categories,
        "quizzes": quizzes,
        "flashcards": flashcards,
    }


def export_bundle(db_path: str, file_path: str) -> dict:
    """Write every record to a .json or .yaml bundle. Returns counts per section."""
    path = Path(file_path)
    suffix = path.suffix.lower()
    if suffix not in (".json", ".yaml", ".yml"):
        raise ValueError(f"Unsupported bundle format: {suffix or path.name}")
    data = build_bundle(db_path)
    if suffix == ".json":
        text = json.dumps(data, ensure_ascii=False, indent=2)
    else:
        import yaml
        text = yaml.safe_dump(data, allow_unicode=True, sort_keys=False)
    path.write_text(text, encoding="utf-8")
    counts = {section: len(records) for section, records in data.items()}
    counts["questions"] = sum(len(q["questions"]) for q in data["quizzes"])
    logger.info("Exported bundle to %s: %s", path, counts)
    return counts
