"""Data classes and enums for the quiz and flashcard domain model."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Union


class QuestionType(str, Enum):
    SINGLE = "SINGLE"
    MULTIPLE = "MULTIPLE"
    MATCHING = "MATCHING"
    TEXT = "TEXT"

    @classmethod
    def parse(cls, value: str) -> Optional["QuestionType"]:
        """Narrow a stored type tag into the enum. Returns None for unknown tags."""
        if not isinstance(value, str):
            return None
        tag = value.strip().upper().replace("-", "_")
        aliases = {
            "SINGLE_CHOICE": "SINGLE",
            "MULTIPLE_CHOICE": "MULTIPLE",
            "FREE_TEXT": "TEXT",
        }
        tag = aliases.get(tag, tag)
        try:
            return cls(tag)
        except ValueError:
            return None


class QuizStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"


class Difficulty(str, Enum):
    """Quiz-level label. Not used for grading."""
    FACILE = "FACILE"
    MOYEN = "MOYEN"
    DIFFICILE = "DIFFICILE"


class FlashcardDifficulty(str, Enum):
    NOUVEAU = "NOUVEAU"
    DIFFICILE = "DIFFICILE"
    MOYEN = "MOYEN"
    FACILE = "FACILE"
    ACQUISE = "ACQUISE"


class ReviewOutcome(str, Enum):
    AGAIN = "AGAIN"
    HARD = "HARD"
    GOOD = "GOOD"


@dataclass
class Option:
    id: int
    question_id: int
    text: str
    is_correct: bool = False


@dataclass
class MatchingPair:
    id: int
    question_id: int
    left: str
    right: str


@dataclass
class Question:
    id: int
    quiz_id: int
    content: str
    type: str
    image_url: Optional[str] = None
    explanation: Optional[str] = None
    options: list[Option] = field(default_factory=list)
    pairs: list[MatchingPair] = field(default_factory=list)

    @property
    def question_type(self) -> Optional[QuestionType]:
        return QuestionType.parse(self.type)


@dataclass
class Quiz:
    id: int
    title: str
    subject_id: int
    category_id: int
    description: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    time_limit: Optional[int] = None  # minutes
    is_exam_mode: bool = False
    questions: list[Question] = field(default_factory=list)

    def __post_init__(self):
        if self.time_limit is not None and self.time_limit <= 0:
            raise ValueError(f"time_limit must be a positive integer, got {self.time_limit}")

    def question_ids(self) -> set[int]:
        return {q.id for q in self.questions}


@dataclass
class QuizAttempt:
    id: Optional[int]
    user_id: int
    quiz_id: int
    started_at: datetime
    status: QuizStatus = QuizStatus.IN_PROGRESS
    completed_at: Optional[datetime] = None
    score: Optional[int] = None
    total_questions: Optional[int] = None
    time_spent: Optional[int] = None  # seconds

    @property
    def is_live(self) -> bool:
        return self.status == QuizStatus.IN_PROGRESS


@dataclass(frozen=True)
class ChoiceResponse:
    """Selected option ids for a single- or multiple-choice question."""
    option_ids: frozenset[int]

    @classmethod
    def of(cls, *option_ids: int) -> "ChoiceResponse":
        return cls(frozenset(option_ids))


@dataclass(frozen=True)
class MatchingResponse:
    """Proposed left -> right mapping for a matching question."""
    mapping: dict[str, str]

    def __hash__(self):
        return hash(tuple(sorted(self.mapping.items())))


@dataclass(frozen=True)
class TextResponse:
    text: str


Response = Union[ChoiceResponse, MatchingResponse, TextResponse]


@dataclass
class Answer:
    id: Optional[int]
    attempt_id: int
    question_id: int
    response: Response
    answered_at: Optional[datetime] = None
    # Set when the attempt is completed.
    is_correct: Optional[bool] = None
    matched_fraction: Optional[float] = None


@dataclass
class Flashcard:
    id: Optional[int]
    user_id: int
    category_id: int
    front: str
    back: str
    difficulty: FlashcardDifficulty = FlashcardDifficulty.NOUVEAU
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
