"""Exceptions raised by quiz grading, attempt recording and quiz sessions.

Each exception carries a stable ``code`` that the API exception handlers
send back to clients alongside the human readable message.
"""


class QuizError(Exception):
    code = "quiz_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidQuizDefinition(QuizError):
    """The quiz cannot be graded as authored."""

    code = "quiz_invalid_definition"


class MalformedAnswerSet(QuizError):
    """The submitted answers name a question more than once."""

    code = "quiz_malformed_answers"


class PersistenceError(QuizError):
    """Writing an attempt or completion marker failed."""

    code = "persistence_failed"


class SessionStateError(QuizError):
    """Operation not allowed in the quiz session's current state."""

    code = "quiz_session_state"
