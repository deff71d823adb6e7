"""In-progress quiz sessions.

A ``QuizSession`` walks through ``not_started -> in_progress -> submitted``.
Answers live only in the session's ``AnswerStore`` until submission, when
they are graded and handed to a recorder coroutine.  Timed quizzes own a
countdown task that submits automatically when it reaches zero; the task is
cancelled whenever the session is submitted or abandoned.
"""

import asyncio
import logging
import time
import uuid
from enum import Enum
from typing import Awaitable, Callable, Optional

from lms.crud import record_attempt
from lms.errors import QuizError, SessionStateError
from lms.grading import EvaluationResult, QuizDefinition, evaluate
from lms.models import QuizAttempt

logger = logging.getLogger(__name__)

Recorder = Callable[[EvaluationResult, Optional[int]], Awaitable[QuizAttempt]]


class SessionState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    ABANDONED = "abandoned"


class AnswerStore:
    """Selected choice per question; one entry per question at most."""

    def __init__(self, question_ids):
        self._question_ids = frozenset(question_ids)
        self._answers: dict[int, int] = {}

    def select(self, question_id: int, choice_id: int) -> None:
        if question_id not in self._question_ids:
            raise SessionStateError(f"Question {question_id} is not part of this quiz")
        self._answers[question_id] = choice_id

    def clear(self, question_id: int) -> None:
        self._answers.pop(question_id, None)

    def as_dict(self) -> dict[int, int]:
        return dict(self._answers)

    def __contains__(self, question_id) -> bool:
        return question_id in self._answers

    def __len__(self) -> int:
        return len(self._answers)


class QuizSession:
    def __init__(
        self,
        quiz: QuizDefinition,
        recorder: Recorder,
        *,
        owner_id: int | None = None,
        lesson_id: int | None = None,
        tick_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.id = uuid.uuid4().hex
        self.quiz = quiz
        self.owner_id = owner_id
        self.lesson_id = lesson_id
        self.state = SessionState.NOT_STARTED
        self.answers: AnswerStore | None = None
        self.remaining_seconds: int | None = None
        # set when the countdown reaches zero; answers are frozen from then on
        self.expired = False
        self.evaluation: EvaluationResult | None = None
        self.attempt: QuizAttempt | None = None
        self._recorder = recorder
        self._tick_seconds = tick_seconds
        self._clock = clock
        self._started_at: float | None = None
        self._timer: asyncio.Task | None = None
        self._submit_lock = asyncio.Lock()

    @property
    def elapsed_seconds(self) -> int | None:
        if self._started_at is None:
            return None
        return int(self._clock() - self._started_at)

    def _require(self, state: SessionState) -> None:
        if self.state is not state:
            raise SessionStateError(
                f"Session is {self.state.value}, expected {state.value}"
            )

    def start(self) -> None:
        """Begin answering; must be called from a running event loop for timed quizzes."""
        self._require(SessionState.NOT_STARTED)
        self.answers = AnswerStore(q.id for q in self.quiz.questions)
        self.state = SessionState.IN_PROGRESS
        self._started_at = self._clock()
        if self.quiz.time_limit_minutes:
            self.remaining_seconds = self.quiz.time_limit_minutes * 60
            self._timer = asyncio.get_running_loop().create_task(self._countdown())

    def select_answer(self, question_id: int, choice_id: int) -> None:
        self._require(SessionState.IN_PROGRESS)
        if self.expired:
            raise SessionStateError("Time limit reached, answers can no longer change")
        self.answers.select(question_id, choice_id)

    async def _countdown(self) -> None:
        while self.remaining_seconds > 0:
            await asyncio.sleep(self._tick_seconds)
            self.remaining_seconds -= 1
        self.expired = True
        logger.info("Time limit reached for quiz session %s, submitting", self.id)
        try:
            await self.submit()
        except QuizError as exc:
            # the frozen answers stay in place so the learner can resubmit them
            logger.warning("Automatic submission of session %s failed: %s", self.id, exc)
        except Exception:
            logger.exception("Automatic submission of session %s crashed", self.id)

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()

    async def submit(self) -> EvaluationResult:
        """Grade the current answers and record the attempt.

        ``InvalidQuizDefinition`` is raised before anything is recorded.  On
        ``PersistenceError`` the session stays in progress with its answers
        intact.
        """
        async with self._submit_lock:
            self._require(SessionState.IN_PROGRESS)
            evaluation = evaluate(self.quiz, self.answers.as_dict())
            attempt = await self._recorder(evaluation, self.elapsed_seconds)
            self.evaluation = evaluation
            self.attempt = attempt
            self.state = SessionState.SUBMITTED
            self._cancel_timer()
            return evaluation

    def abandon(self) -> None:
        """Drop the session without recording anything."""
        self._cancel_timer()
        if self.state is not SessionState.SUBMITTED:
            self.state = SessionState.ABANDONED

    def restart(self) -> "QuizSession":
        """Return a fresh, not yet started session for the same quiz."""
        self.abandon()
        return QuizSession(
            self.quiz,
            self._recorder,
            owner_id=self.owner_id,
            lesson_id=self.lesson_id,
            tick_seconds=self._tick_seconds,
            clock=self._clock,
        )


class SessionRegistry:
    """Live quiz sessions of the running process, keyed by session id."""

    def __init__(self, session_factory=None):
        if session_factory is None:
            from lms.database import async_session

            session_factory = async_session
        self._session_factory = session_factory
        self._sessions: dict[str, QuizSession] = {}

    def _recorder_for(self, user_id: int, lesson_id: int, quiz: QuizDefinition) -> Recorder:
        async def recorder(evaluation, elapsed):
            async with self._session_factory() as db:
                return await record_attempt(
                    db, user_id, evaluation, quiz, lesson_id, time_spent_seconds=elapsed
                )

        return recorder

    def open(self, user_id: int, lesson_id: int, quiz: QuizDefinition) -> QuizSession:
        """Create and start a session for ``user_id``.

        Earlier unfinished sessions of the same user on the same quiz are
        abandoned, so a user holds at most one live session per quiz.
        """
        self._prune(user_id, quiz.id)
        session = QuizSession(
            quiz,
            self._recorder_for(user_id, lesson_id, quiz),
            owner_id=user_id,
            lesson_id=lesson_id,
        )
        session.start()
        self._sessions[session.id] = session
        logger.info("User %s started quiz %s (session %s)", user_id, quiz.id, session.id)
        return session

    def get(self, session_id: str, user_id: int) -> QuizSession | None:
        session = self._sessions.get(session_id)
        if session is None or session.owner_id != user_id:
            return None
        return session

    def discard(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.abandon()

    def _prune(self, user_id: int, quiz_id: int | None) -> None:
        stale = [
            sid
            for sid, s in self._sessions.items()
            if s.owner_id == user_id
            and (
                s.state in (SessionState.SUBMITTED, SessionState.ABANDONED)
                or s.quiz.id == quiz_id
            )
        ]
        for sid in stale:
            self.discard(sid)

    def __len__(self) -> int:
        return len(self._sessions)

    async def close(self) -> None:
        """Cancel every countdown; called when the application shuts down."""
        for session in list(self._sessions.values()):
            session.abandon()
        self._sessions.clear()


registry: SessionRegistry | None = None


def get_session_registry() -> SessionRegistry:
    global registry
    if registry is None:
        registry = SessionRegistry()
    return registry
