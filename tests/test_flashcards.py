# tests/test_flashcards.py
import sqlite3
from datetime import timedelta

import pytest

from quizapp.db import get_connection
from quizapp.errors import InvalidOutcomeError, NotFoundError
from quizapp.models import FlashcardDifficulty as D


def test_create_card_starts_nouveau(review_session, clock):
    card = review_session.create_card(1, 1, "2 + 2", "4")
    assert card.id is not None
    assert card.difficulty == D.NOUVEAU
    assert card.created_at == card.updated_at == clock.now()


def test_new_cards_are_due(review_session):
    review_session.create_card(1, 1, "a", "1")
    review_session.create_card(1, 1, "b", "2")
    assert len(review_session.due_cards(1)) == 2


def test_due_cards_only_for_user(review_session):
    review_session.create_card(1, 1, "a", "1")
    review_session.create_card(2, 1, "b", "2")
    due = review_session.due_cards(2)
    assert [c.front for c in due] == ["b"]


def test_due_cards_limit(review_session):
    for i in range(5):
        review_session.create_card(1, 1, f"q{i}", f"a{i}")
    assert len(review_session.due_cards(1, limit=3)) == 3


def test_review_persists_state(review_session, gateway, clock):
    card = review_session.create_card(1, 1, "a", "1")
    clock.advance(minutes=1)
    review_session.review(card.id, "GOOD")
    stored = gateway.load_flashcard(card.id)
    assert stored.difficulty == D.MOYEN
    assert stored.updated_at == clock.now()


def test_reviewed_card_waits_for_interval(review_session, clock):
    card = review_session.create_card(1, 1, "a", "1")
    review_session.review(card.id, "GOOD")  # MOYEN: 2 days
    assert review_session.due_cards(1, now=clock.now() + timedelta(days=1)) == []
    assert len(review_session.due_cards(1, now=clock.now() + timedelta(days=2))) == 1


def test_failed_card_stays_due(review_session):
    card = review_session.create_card(1, 1, "a", "1")
    review_session.review(card.id, "AGAIN")
    assert [c.id for c in review_session.due_cards(1)] == [card.id]


def test_review_sequence_persisted(review_session, gateway, clock):
    card = review_session.create_card(1, 1, "a", "1")
    seen = []
    for outcome in ("GOOD", "GOOD", "AGAIN", "GOOD"):
        clock.advance(days=1)
        review_session.review(card.id, outcome)
        seen.append(gateway.load_flashcard(card.id).difficulty)
    assert seen == [D.MOYEN, D.FACILE, D.MOYEN, D.FACILE]


def test_review_history(review_session):
    card = review_session.create_card(1, 1, "a", "1")
    review_session.review(card.id, "HARD")
    review_session.review(card.id, "GOOD")
    history = review_session.history(card.id)
    assert [(h["outcome"], h["from_difficulty"], h["to_difficulty"]) for h in history] == [
        ("HARD", "NOUVEAU", "DIFFICILE"),
        ("GOOD", "DIFFICILE", "MOYEN"),
    ]


def test_invalid_outcome_leaves_card_untouched(review_session, gateway):
    card = review_session.create_card(1, 1, "a", "1")
    with pytest.raises(InvalidOutcomeError):
        review_session.review(card.id, "EASY")
    assert gateway.load_flashcard(card.id) == card
    assert review_session.history(card.id) == []


def test_review_unknown_card(review_session):
    with pytest.raises(NotFoundError):
        review_session.review(404, "GOOD")


def test_acquise_card_is_revisited(review_session, gateway, clock):
    card = review_session.create_card(1, 1, "a", "1")
    for outcome in ("GOOD", "GOOD", "GOOD"):
        review_session.review(card.id, outcome)
    assert gateway.load_flashcard(card.id).difficulty == D.ACQUISE
    assert len(review_session.due_cards(1, now=clock.now() + timedelta(days=30))) == 1


def test_failed_history_write_leaves_card_unchanged(review_session, gateway, db):
    card = review_session.create_card(1, 1, "a", "1")
    conn = get_connection(db)
    conn.execute("DROP TABLE flashcard_reviews")
    conn.commit()
    conn.close()
    with pytest.raises(sqlite3.OperationalError):
        review_session.review(card.id, "GOOD")
    assert gateway.load_flashcard(card.id).difficulty == D.NOUVEAU
