"""AI lesson summary and question answering endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lms.acl import PERM_USE_AI
from lms.ai import CompletionClient, get_completion_client
from lms.auth import require_permissions
from lms.crud import (
    create_lesson_question,
    get_lesson_summary,
    get_settings,
    list_lesson_questions,
    save_lesson_summary,
)
from lms.database import get_session
from lms.models import LessonQuestion, User
from lms.routes.common import load_lesson_for_viewer
from lms.schemas import LessonQuestionRead, QuestionAsk, SummaryRead

logger = logging.getLogger(__name__)
router = APIRouter(tags=["ai"])


async def _ensure_ai_enabled(db: AsyncSession) -> None:
    settings = await get_settings(db)
    if not settings.ai_features_enabled:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "ai_disabled", "message": "AI features are turned off"},
        )


@router.post("/lessons/{lesson_id}/summary", response_model=SummaryRead)
async def lesson_summary(
    lesson_id: int,
    user: User = Depends(require_permissions(PERM_USE_AI)),
    db: AsyncSession = Depends(get_session),
    client: CompletionClient = Depends(get_completion_client),
):
    """Return the cached summary or generate one on first request."""
    await _ensure_ai_enabled(db)
    lesson, _ = await load_lesson_for_viewer(db, lesson_id, user)
    cached = await get_lesson_summary(db, lesson.id)
    if cached:
        return SummaryRead(
            lesson_id=cached.lesson_id,
            summary=cached.summary,
            generated_at=cached.generated_at,
        )
    logger.info("Generating summary for lesson %s", lesson.id)
    summary = await client.summarize(lesson)
    stored = await save_lesson_summary(db, lesson.id, summary)
    return SummaryRead(
        lesson_id=stored.lesson_id,
        summary=stored.summary,
        generated_at=stored.generated_at,
    )


@router.post("/lessons/{lesson_id}/ask", response_model=LessonQuestionRead)
async def ask_question(
    lesson_id: int,
    data: QuestionAsk,
    user: User = Depends(require_permissions(PERM_USE_AI)),
    db: AsyncSession = Depends(get_session),
    client: CompletionClient = Depends(get_completion_client),
):
    question = data.question.strip()
    if not question:
        raise HTTPException(status_code=400, detail="Question is required")
    await _ensure_ai_enabled(db)
    lesson, _ = await load_lesson_for_viewer(db, lesson_id, user)
    answer = await client.answer(lesson, question)
    return await create_lesson_question(
        db,
        LessonQuestion(
            lesson_id=lesson.id, user_id=user.id, question=question, answer=answer
        ),
    )


@router.get("/lessons/{lesson_id}/questions", response_model=list[LessonQuestionRead])
async def question_history(
    lesson_id: int,
    user: User = Depends(require_permissions(PERM_USE_AI)),
    db: AsyncSession = Depends(get_session),
):
    await load_lesson_for_viewer(db, lesson_id, user)
    return await list_lesson_questions(db, user.id, lesson_id)
