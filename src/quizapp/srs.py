"""Five-state spaced repetition ladder for flashcards."""
import logging
from datetime import datetime, timedelta

from quizapp.errors import InvalidOutcomeError
from quizapp.models import Flashcard, FlashcardDifficulty, ReviewOutcome

logger = logging.getLogger(__name__)

D = FlashcardDifficulty
O = ReviewOutcome

TRANSITIONS = {
    D.NOUVEAU:   {O.AGAIN: D.NOUVEAU,   O.HARD: D.DIFFICILE, O.GOOD: D.MOYEN},
    D.DIFFICILE: {O.AGAIN: D.NOUVEAU,   O.HARD: D.DIFFICILE, O.GOOD: D.MOYEN},
    D.MOYEN:     {O.AGAIN: D.DIFFICILE, O.HARD: D.MOYEN,     O.GOOD: D.FACILE},
    D.FACILE:    {O.AGAIN: D.MOYEN,     O.HARD: D.FACILE,    O.GOOD: D.ACQUISE},
    D.ACQUISE:   {O.AGAIN: D.MOYEN,     O.HARD: D.FACILE,    O.GOOD: D.ACQUISE},
}

DEFAULT_INTERVALS = {
    D.NOUVEAU: timedelta(0),
    D.DIFFICILE: timedelta(0),
    D.MOYEN: timedelta(days=2),
    D.FACILE: timedelta(days=7),
    D.ACQUISE: timedelta(days=30),
}

# Least known first.
LADDER = [D.NOUVEAU, D.DIFFICILE, D.MOYEN, D.FACILE, D.ACQUISE]


def parse_outcome(token) -> ReviewOutcome:
    if isinstance(token, ReviewOutcome):
        return token
    if isinstance(token, str):
        try:
            return ReviewOutcome(token.strip().upper())
        except ValueError:
            pass
    raise InvalidOutcomeError(token)


def next_difficulty(current: FlashcardDifficulty, outcome) -> FlashcardDifficulty:
    return TRANSITIONS[FlashcardDifficulty(current)][parse_outcome(outcome)]


def check_monotonic(intervals: dict) -> None:
    """Raise ValueError unless harder states never wait longer than easier ones."""
    for harder, easier in zip(LADDER, LADDER[1:]):
        if intervals[harder] > intervals[easier]:
            raise ValueError(
                f"Interval for {harder.value} ({intervals[harder]}) exceeds {easier.value} ({intervals[easier]})"
            )
    if intervals[D.NOUVEAU] != intervals[D.DIFFICILE]:
        raise ValueError("NOUVEAU and DIFFICILE must share the same interval")


def interval_for(difficulty: FlashcardDifficulty, intervals: dict = None) -> timedelta:
    return (intervals or DEFAULT_INTERVALS)[FlashcardDifficulty(difficulty)]


def next_due(card: Flashcard, intervals: dict = None) -> datetime | None:
    """Date the card becomes due again. None for a card never touched."""
    last = card.updated_at or card.created_at
    if last is None:
        return None
    return last + interval_for(card.difficulty, intervals)


def is_due(card: Flashcard, now: datetime, intervals: dict = None) -> bool:
    due = next_due(card, intervals)
    return due is None or due <= now


class SRSScheduler:
    """Owns flashcard difficulty transitions. Only this class mutates `difficulty`."""

    def __init__(self, clock, intervals: dict = None):
        self.clock = clock
        self.intervals = dict(DEFAULT_INTERVALS)
        self.intervals.update({FlashcardDifficulty(k): v for k, v in (intervals or {}).items()})
        check_monotonic(self.intervals)

    def interval_for(self, difficulty: FlashcardDifficulty) -> timedelta:
        return interval_for(difficulty, self.intervals)

    def review(self, card: Flashcard, outcome) -> Flashcard:
        outcome = parse_outcome(outcome)
        previous = FlashcardDifficulty(card.difficulty)
        card.difficulty = TRANSITIONS[previous][outcome]
        card.updated_at = self.clock.now()
        logger.info("Flashcard %s reviewed %s: %s -> %s", card.id, outcome.value, previous.value, card.difficulty.value)
        return card

    def due_cards(self, cards: list[Flashcard], now: datetime = None) -> list[Flashcard]:
        """Cards due at `now`, most overdue first, least known first on ties."""
        now = now or self.clock.now()
        due = [c for c in cards if is_due(c, now, self.intervals)]
        return sorted(
            due,
            key=lambda c: (next_due(c, self.intervals) or datetime.min, LADDER.index(FlashcardDifficulty(c.difficulty))),
        )

    def next_due(self, card: Flashcard) -> datetime | None:
        return next_due(card, self.intervals)
