"""Exceptions raised by the quiz and flashcard core."""


class QuizAppError(Exception):
    """Base exception for the quizapp core."""
    pass


class NotFoundError(QuizAppError):
    """Raised when the gateway cannot find a requested record."""
    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        self.message = f"{entity} {entity_id} not found"
        super().__init__(self.message)


class ConflictError(QuizAppError):
    """Raised when a user already has a live attempt for the quiz."""
    def __init__(self, user_id: int, quiz_id: int, attempt_id: int | None = None):
        self.user_id = user_id
        self.quiz_id = quiz_id
        self.attempt_id = attempt_id
        self.message = f"User {user_id} already has an attempt in progress for quiz {quiz_id}"
        if attempt_id is not None:
            self.message += f" (attempt {attempt_id})"
        super().__init__(self.message)


class InvalidStateError(QuizAppError):
    """Raised when a terminal attempt is mutated."""
    def __init__(self, attempt_id: int, status):
        self.attempt_id = attempt_id
        self.status = status
        self.message = f"Attempt {attempt_id} is {getattr(status, 'value', status)}, expected IN_PROGRESS"
        super().__init__(self.message)


class NotInQuizError(QuizAppError):
    """Raised when an answer targets a question outside the attempt's quiz."""
    def __init__(self, question_id: int, quiz_id: int):
        self.question_id = question_id
        self.quiz_id = quiz_id
        self.message = f"Question {question_id} does not belong to quiz {quiz_id}"
        super().__init__(self.message)


class InvalidOutcomeError(QuizAppError):
    """Raised for a review outcome other than AGAIN, HARD or GOOD."""
    def __init__(self, token):
        self.token = token
        self.message = f"Unknown review outcome: {token!r}"
        super().__init__(self.message)
