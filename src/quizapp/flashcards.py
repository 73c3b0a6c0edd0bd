"""Flashcard review sessions on top of the SRS scheduler."""
import logging
from datetime import datetime

from quizapp.models import Flashcard, FlashcardDifficulty
from quizapp.srs import SRSScheduler, parse_outcome

logger = logging.getLogger(__name__)


class ReviewSession:
    """Pulls due cards for a user and feeds review outcomes to the scheduler."""

    def __init__(self, gateway, scheduler: SRSScheduler):
        self.gateway = gateway
        self.scheduler = scheduler

    def due_cards(self, user_id: int, now: datetime = None, category_id: int = None,
                  limit: int = None) -> list[Flashcard]:
        cards = self.gateway.list_flashcards(user_id, category_id=category_id)
        due = self.scheduler.due_cards(cards, now)
        return due[:limit] if limit is not None else due

    def review(self, card_id: int, outcome) -> Flashcard:
        # Validate before loading so a bad token never touches storage.
        outcome = parse_outcome(outcome)
        card = self.gateway.load_flashcard(card_id)
        previous = FlashcardDifficulty(card.difficulty)
        card = self.scheduler.review(card, outcome)
        self.gateway.save_review(card, outcome.value, previous.value)
        return card

    def create_card(self, user_id: int, category_id: int, front: str, back: str) -> Flashcard:
        """New cards always start at NOUVEAU."""
        now = self.scheduler.clock.now()
        card = Flashcard(
            id=None, user_id=user_id, category_id=category_id, front=front, back=back,
            difficulty=FlashcardDifficulty.NOUVEAU, created_at=now, updated_at=now,
        )
        card = self.gateway.insert_flashcard(card)
        logger.info("Flashcard %s created for user %s", card.id, user_id)
        return card

    def history(self, card_id: int) -> list[dict]:
        return self.gateway.review_history(card_id)
