"""Quiz authoring, quiz taking and attempt history endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lms.acl import PERM_AUTHOR_QUIZZES, PERM_TAKE_QUIZZES
from lms.auth import require_permissions
from lms.crud import (
    count_attempts_for_quiz,
    delete_quiz,
    get_attempts,
    get_quiz_for_lesson,
    get_settings,
    record_attempt,
    save_quiz,
)
from lms.database import get_session
from lms.errors import InvalidQuizDefinition
from lms.grading import (
    ChoiceDefinition,
    EvaluationResult,
    QuestionDefinition,
    QuizDefinition,
    evaluate,
    validate_quiz,
)
from lms.models import Quiz, QuizAttempt, User
from lms.routes.common import load_lesson_for_editor, load_lesson_for_viewer
from lms.schemas import (
    AttemptRead,
    QuestionManageRead,
    QuestionRead,
    QuestionResultRead,
    QuizManageRead,
    QuizRead,
    QuizSubmission,
    QuizUpsert,
    SessionAnswer,
    SessionRead,
    SubmissionResult,
)
from lms.sessions import QuizSession, SessionRegistry, get_session_registry

logger = logging.getLogger(__name__)
router = APIRouter(tags=["quizzes"])

QUIZ_HAS_ATTEMPTS = {
    "code": "quiz_has_attempts",
    "message": "Questions cannot change once learners have attempted the quiz",
}


def _draft_definition(data: QuizUpsert, pass_percentage: int) -> QuizDefinition:
    """Number the submitted questions so they can be validated before saving."""
    choice_id = 0
    questions = []
    for q_index, question in enumerate(data.questions or [], start=1):
        choices = []
        for option in question.options:
            choice_id += 1
            choices.append(
                ChoiceDefinition(
                    id=choice_id, text=option.option_text, is_correct=option.is_correct
                )
            )
        questions.append(
            QuestionDefinition(
                id=q_index,
                text=question.question_text,
                choices=tuple(choices),
                points=question.points,
                explanation=question.explanation,
            )
        )
    return QuizDefinition(
        title=data.title,
        pass_percentage=pass_percentage,
        time_limit_minutes=data.time_limit_minutes,
        questions=tuple(questions),
    )


def _manage_read(quiz: Quiz, attempt_count: int) -> QuizManageRead:
    return QuizManageRead(
        id=quiz.id,
        lesson_id=quiz.lesson_id,
        title=quiz.title,
        description=quiz.description,
        pass_percentage=quiz.pass_percentage,
        time_limit_minutes=quiz.time_limit_minutes,
        questions=[QuestionManageRead.model_validate(q) for q in quiz.questions],
        attempt_count=attempt_count,
    )


def _submission_result(
    evaluation: EvaluationResult, attempt: QuizAttempt
) -> SubmissionResult:
    return SubmissionResult(
        attempt=AttemptRead.model_validate(attempt),
        score=evaluation.total_points_earned,
        total_points=evaluation.total_points_possible,
        percentage=evaluation.percentage,
        passed=evaluation.passed,
        results=[
            QuestionResultRead(
                question_id=r.question_id,
                selected_option_id=r.selected_choice_id,
                correct_option_id=r.correct_choice_id,
                is_correct=r.is_correct,
                points_earned=r.points_earned,
                explanation=r.explanation,
            )
            for r in evaluation.per_question
        ],
    )


def _session_read(session: QuizSession) -> SessionRead:
    result = None
    if session.evaluation is not None:
        result = _submission_result(session.evaluation, session.attempt)
    return SessionRead(
        id=session.id,
        state=session.state.value,
        lesson_id=session.lesson_id,
        quiz_id=session.quiz.id,
        remaining_seconds=session.remaining_seconds,
        expired=session.expired,
        answers=session.answers.as_dict() if session.answers is not None else {},
        result=result,
    )


async def _load_quiz(db: AsyncSession, lesson_id: int) -> Quiz:
    quiz = await get_quiz_for_lesson(db, lesson_id)
    if not quiz:
        raise HTTPException(status_code=404, detail="No quiz for this lesson")
    return quiz


# Authoring


@router.put("/lessons/{lesson_id}/quiz", response_model=QuizManageRead)
async def upsert_quiz(
    lesson_id: int,
    data: QuizUpsert,
    user: User = Depends(require_permissions(PERM_AUTHOR_QUIZZES)),
    db: AsyncSession = Depends(get_session),
):
    """Create a lesson's quiz or update it in place."""
    await load_lesson_for_editor(db, lesson_id, user)
    existing = await get_quiz_for_lesson(db, lesson_id)
    attempt_count = await count_attempts_for_quiz(db, existing.id) if existing else 0

    pass_percentage = data.pass_percentage
    if pass_percentage is None:
        if existing:
            pass_percentage = existing.pass_percentage
        else:
            pass_percentage = (await get_settings(db)).default_pass_percentage

    if data.questions is not None:
        if attempt_count:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=QUIZ_HAS_ATTEMPTS)
        validate_quiz(_draft_definition(data, pass_percentage))
    elif existing is None:
        raise InvalidQuizDefinition("Quiz has no questions")

    fields = {
        "title": data.title,
        "description": data.description,
        "pass_percentage": pass_percentage,
        "time_limit_minutes": data.time_limit_minutes,
    }
    questions = (
        [q.model_dump() for q in data.questions] if data.questions is not None else None
    )
    quiz = await save_quiz(db, lesson_id, fields, questions)
    logger.info("User %s saved quiz %s for lesson %s", user.email, quiz.id, lesson_id)
    return _manage_read(quiz, attempt_count)


@router.get("/lessons/{lesson_id}/quiz/manage", response_model=QuizManageRead)
async def read_quiz_for_editing(
    lesson_id: int,
    user: User = Depends(require_permissions(PERM_AUTHOR_QUIZZES)),
    db: AsyncSession = Depends(get_session),
):
    await load_lesson_for_editor(db, lesson_id, user)
    quiz = await _load_quiz(db, lesson_id)
    return _manage_read(quiz, await count_attempts_for_quiz(db, quiz.id))


@router.delete("/lessons/{lesson_id}/quiz", status_code=status.HTTP_204_NO_CONTENT)
async def remove_quiz(
    lesson_id: int,
    user: User = Depends(require_permissions(PERM_AUTHOR_QUIZZES)),
    db: AsyncSession = Depends(get_session),
):
    await load_lesson_for_editor(db, lesson_id, user)
    quiz = await _load_quiz(db, lesson_id)
    if await count_attempts_for_quiz(db, quiz.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=QUIZ_HAS_ATTEMPTS)
    await delete_quiz(db, quiz)


# Taking


@router.get("/lessons/{lesson_id}/quiz", response_model=QuizRead)
async def read_quiz(
    lesson_id: int,
    user: User = Depends(require_permissions(PERM_TAKE_QUIZZES)),
    db: AsyncSession = Depends(get_session),
):
    """Return the quiz without answers, plus the caller's attempt summary."""
    await load_lesson_for_viewer(db, lesson_id, user)
    quiz = await _load_quiz(db, lesson_id)
    attempts = await get_attempts(db, user.id, quiz.id)
    return QuizRead(
        id=quiz.id,
        lesson_id=quiz.lesson_id,
        title=quiz.title,
        description=quiz.description,
        pass_percentage=quiz.pass_percentage,
        time_limit_minutes=quiz.time_limit_minutes,
        questions=[QuestionRead.model_validate(q) for q in quiz.questions],
        attempt_count=len(attempts),
        last_attempt=AttemptRead.model_validate(attempts[0]) if attempts else None,
    )


@router.post("/lessons/{lesson_id}/quiz/attempts", response_model=SubmissionResult)
async def submit_quiz(
    lesson_id: int,
    submission: QuizSubmission,
    user: User = Depends(require_permissions(PERM_TAKE_QUIZZES)),
    db: AsyncSession = Depends(get_session),
):
    """Grade a full set of answers and record the attempt."""
    lesson, _ = await load_lesson_for_viewer(db, lesson_id, user)
    definition = QuizDefinition.from_model(await _load_quiz(db, lesson_id))
    evaluation = evaluate(
        definition, [(a.question_id, a.option_id) for a in submission.answers]
    )
    attempt = await record_attempt(
        db,
        user.id,
        evaluation,
        definition,
        lesson.id,
        time_spent_seconds=submission.time_spent_seconds,
    )
    return _submission_result(evaluation, attempt)


@router.get("/lessons/{lesson_id}/quiz/attempts", response_model=list[AttemptRead])
async def attempt_history(
    lesson_id: int,
    user: User = Depends(require_permissions(PERM_TAKE_QUIZZES)),
    db: AsyncSession = Depends(get_session),
):
    await load_lesson_for_viewer(db, lesson_id, user)
    quiz = await _load_quiz(db, lesson_id)
    return await get_attempts(db, user.id, quiz.id)


# Sessions


def _owned_session(registry: SessionRegistry, session_id: str, user: User) -> QuizSession:
    session = registry.get(session_id, user.id)
    if session is None:
        raise HTTPException(status_code=404, detail="Quiz session not found")
    return session


@router.post(
    "/lessons/{lesson_id}/quiz/sessions",
    response_model=SessionRead,
    status_code=status.HTTP_201_CREATED,
)
async def start_session(
    lesson_id: int,
    user: User = Depends(require_permissions(PERM_TAKE_QUIZZES)),
    db: AsyncSession = Depends(get_session),
    registry: SessionRegistry = Depends(get_session_registry),
):
    lesson, _ = await load_lesson_for_viewer(db, lesson_id, user)
    definition = QuizDefinition.from_model(await _load_quiz(db, lesson_id))
    return _session_read(registry.open(user.id, lesson.id, definition))


@router.get("/quiz-sessions/{session_id}", response_model=SessionRead)
async def read_session(
    session_id: str,
    user: User = Depends(require_permissions(PERM_TAKE_QUIZZES)),
    registry: SessionRegistry = Depends(get_session_registry),
):
    return _session_read(_owned_session(registry, session_id, user))


@router.put("/quiz-sessions/{session_id}/answers", response_model=SessionRead)
async def select_answer(
    session_id: str,
    answer: SessionAnswer,
    user: User = Depends(require_permissions(PERM_TAKE_QUIZZES)),
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _owned_session(registry, session_id, user)
    session.select_answer(answer.question_id, answer.option_id)
    return _session_read(session)


@router.post("/quiz-sessions/{session_id}/submit", response_model=SessionRead)
async def submit_session(
    session_id: str,
    user: User = Depends(require_permissions(PERM_TAKE_QUIZZES)),
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = _owned_session(registry, session_id, user)
    await session.submit()
    return _session_read(session)


@router.delete("/quiz-sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def abandon_session(
    session_id: str,
    user: User = Depends(require_permissions(PERM_TAKE_QUIZZES)),
    registry: SessionRegistry = Depends(get_session_registry),
):
    _owned_session(registry, session_id, user)
    registry.discard(session_id)
