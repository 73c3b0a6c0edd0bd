"""Key/value settings stored alongside the data, and typed accessors for tunable policy."""
from datetime import timedelta

from quizapp.db import get_connection
from quizapp.models import FlashcardDifficulty
from quizapp.srs import DEFAULT_INTERVALS, check_monotonic

EXAM_DEFAULT_TIME_LIMIT = 60  # minutes


def get_setting(db_path: str, key: str, default: str = None) -> str | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT value FROM user_settings WHERE key = ?", (key,)).fetchone()
    conn.close()
    return row["value"] if row else default


def set_setting(db_path: str, key: str, value: str) -> None:
    conn = get_connection(db_path)
    conn.execute(
        "INSERT INTO user_settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=?",
        (key, value, value),
    )
    conn.commit()
    conn.close()


def srs_intervals(db_path: str) -> dict[FlashcardDifficulty, timedelta]:
    """Default SRS intervals with any `srs_interval_<state>` overrides (days) applied."""
    intervals = dict(DEFAULT_INTERVALS)
    for state in FlashcardDifficulty:
        override = get_setting(db_path, f"srs_interval_{state.value.lower()}")
        if override is not None:
            intervals[state] = timedelta(days=float(override))
    check_monotonic(intervals)
    return intervals


def exam_default_time_limit(db_path: str) -> int:
    return int(get_setting(db_path, "exam_default_time_limit", str(EXAM_DEFAULT_TIME_LIMIT)))
