"""Leaderboard and statistics over completed attempts and flashcards."""
from datetime import datetime, timedelta

from quizapp.db import get_connection


def get_score_label(score: float) -> str:
    if score >= 80:
        return "EXCELLENT"
    elif score >= 65:
        return "GOOD"
    elif score >= 50:
        return "NEEDS WORK"
    return "WEAK"


def get_score_color(score: float) -> str:
    if score >= 80:
        return "green"
    elif score >= 65:
        return "yellow"
    elif score >= 50:
        return "dark_orange"
    return "red"


_ATTEMPT_STATS = """
    SELECT a.user_id, u.name,
        COUNT(*) as total_attempts,
        AVG(a.score * 100.0 / a.total_questions) as average_score,
        MAX(a.score * 100.0 / a.total_questions) as best_score,
        SUM(a.score * 100.0 / a.total_questions) as total_points,
        MAX(a.completed_at) as last_attempt
    FROM quiz_attempts a
    JOIN users u ON a.user_id = u.id
    JOIN quizzes q ON a.quiz_id = q.id
    WHERE a.status = 'COMPLETED'
        AND a.score IS NOT NULL
        AND a.total_questions > 0
"""


def _stats_row(r) -> dict:
    return {
        "user_id": r["user_id"],
        "name": r["name"],
        "total_attempts": r["total_attempts"],
        "average_score": round(r["average_score"], 2),
        "best_score": round(r["best_score"], 2),
        "total_points": round(r["total_points"]),
        "last_attempt": r["last_attempt"],
    }


def get_leaderboard(db_path: str, limit: int = 10, subject_id: int = None) -> list[dict]:
    """Users ranked by average percentage, then by number of completed attempts."""
    query = _ATTEMPT_STATS
    params = []
    if subject_id is not None:
        query += " AND q.subject_id = ?"
        params.append(subject_id)
    query += " GROUP BY a.user_id ORDER BY average_score DESC, total_attempts DESC LIMIT ?"
    params.append(limit)
    conn = get_connection(db_path)
    rows = conn.execute(query, params).fetchall()
    conn.close()
    return [dict(_stats_row(r), rank=i) for i, r in enumerate(rows, 1)]


def get_user_stats(db_path: str, user_id: int) -> dict:
    conn = get_connection(db_path)
    row = conn.execute(_ATTEMPT_STATS + " AND a.user_id = ? GROUP BY a.user_id", (user_id,)).fetchone()
    cards = conn.execute(
        "SELECT difficulty, COUNT(*) as n FROM flashcards WHERE user_id = ? GROUP BY difficulty",
        (user_id,),
    ).fetchall()
    reviews = conn.execute(
        """SELECT COUNT(*) FROM flashcard_reviews r JOIN flashcards f ON r.flashcard_id = f.id
        WHERE f.user_id = ?""",
        (user_id,),
    ).fetchone()[0]
    conn.close()
    if row:
        stats = _stats_row(row)
    else:
        stats = {
            "user_id": user_id, "name": None, "total_attempts": 0, "average_score": 0.0,
            "best_score": 0.0, "total_points": 0, "last_attempt": None,
        }
    stats["flashcards"] = {r["difficulty"]: r["n"] for r in cards}
    stats["flashcards_reviewed"] = reviews
    stats["recent_attempts"] = get_recent_attempts(db_path, user_id)
    return stats


def get_info_counts(db_path: str) -> dict:
    conn = get_connection(db_path)
    counts = {
        f"{table}_count": conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        for table in ("quizzes", "subjects", "users", "categories", "flashcards")
    }
    conn.close()
    return counts


_ATTEMPT_ROWS = """
    SELECT a.id as attempt_id, a.user_id, u.name, a.quiz_id, q.title as quiz_title,
        a.score, a.total_questions, a.time_spent, a.completed_at,
        ROUND(a.score * 100.0 / a.total_questions, 2) as percentage
    FROM quiz_attempts a
    JOIN users u ON a.user_id = u.id
    JOIN quizzes q ON a.quiz_id = q.id
    WHERE a.status = 'COMPLETED'
        AND a.score IS NOT NULL
        AND a.total_questions > 0
"""


def get_recent_attempts(db_path: str, user_id: int, limit: int = 10) -> list[dict]:
    conn = get_connection(db_path)
    rows = conn.execute(
        _ATTEMPT_ROWS + " AND a.user_id = ? ORDER BY a.completed_at DESC, a.id DESC LIMIT ?",
        (user_id, limit),
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_recent_best_scores(db_path: str, period_days: int = 7, limit: int = 10,
                           now: datetime = None) -> list[dict]:
    """Best completed attempts of the last `period_days` days, highest percentage first."""
    since = (now or datetime.now()) - timedelta(days=period_days)
    conn = get_connection(db_path)
    rows = conn.execute(
        _ATTEMPT_ROWS + " AND a.completed_at >= ? ORDER BY percentage DESC, a.completed_at DESC LIMIT ?",
        (since.isoformat(), limit),
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]
