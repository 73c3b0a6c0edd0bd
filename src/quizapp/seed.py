"""Seed the database with a demo user, quiz and flashcards."""
from datetime import datetime
from pathlib import Path

from quizapp.db import get_connection
from quizapp.importer import import_bundle

CONTENT_DIR = Path(__file__).parent / "content"


def is_seeded(db_path: str) -> bool:
    """Check whether the database already holds any quiz."""
    conn = get_connection(db_path)
    count = conn.execute("SELECT COUNT(*) FROM quizzes").fetchone()[0]
    conn.close()
    return count > 0


def seed_all(db_path: str, now: datetime = None) -> dict | None:
    """Import the demo bundle into an empty database."""
    if is_seeded(db_path):
        return None
    return import_bundle(db_path, str(CONTENT_DIR / "demo.json"), now=now)
