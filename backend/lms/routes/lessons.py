"""Lesson viewing, lesson editing, completion and note endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lms.acl import PERM_MANAGE_LESSONS, PERM_WRITE_NOTES
from lms.auth import get_current_user, require_permissions
from lms.crud import (
    delete_note,
    get_lesson_by_slug,
    get_lesson_progress,
    get_note,
    get_quiz_for_lesson,
    mark_lesson_complete,
    get_enrollment,
    save_lesson,
    save_note,
)
from lms.database import get_session
from lms.models import User
from lms.routes.common import load_course, load_lesson_for_editor, load_lesson_for_viewer
from lms.schemas import (
    LessonCompletion,
    LessonDetail,
    LessonRead,
    LessonUpdate,
    NoteRead,
    NoteUpdate,
)

router = APIRouter(tags=["lessons"])


@router.get("/courses/{slug}/lessons/{lesson_slug}", response_model=LessonDetail)
async def read_lesson(
    slug: str,
    lesson_slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    course = await load_course(db, slug, user)
    lesson = await get_lesson_by_slug(db, course.id, lesson_slug)
    if not lesson:
        raise HTTPException(status_code=404, detail="Lesson not found")
    lesson, course = await load_lesson_for_viewer(db, lesson.id, user)

    ordered = list(course.lessons)
    index = next(i for i, item in enumerate(ordered) if item.id == lesson.id)
    previous_slug = ordered[index - 1].slug if index > 0 else None
    next_slug = ordered[index + 1].slug if index + 1 < len(ordered) else None

    return LessonDetail(
        **LessonRead.model_validate(lesson).model_dump(),
        completed=await get_lesson_progress(db, user.id, lesson.id) is not None,
        has_quiz=await get_quiz_for_lesson(db, lesson.id) is not None,
        previous_lesson_slug=previous_slug,
        next_lesson_slug=next_slug,
    )


@router.put("/lessons/{lesson_id}", response_model=LessonRead)
async def update_lesson(
    lesson_id: int,
    data: LessonUpdate,
    user: User = Depends(require_permissions(PERM_MANAGE_LESSONS)),
    db: AsyncSession = Depends(get_session),
):
    lesson, _ = await load_lesson_for_editor(db, lesson_id, user)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(lesson, field, value)
    return await save_lesson(db, lesson)


@router.post("/lessons/{lesson_id}/complete", response_model=LessonCompletion)
async def complete_lesson(
    lesson_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Mark a lesson complete; repeating the call changes nothing."""
    lesson, course = await load_lesson_for_viewer(db, lesson_id, user)
    progress = await mark_lesson_complete(db, user.id, lesson.id)
    enrollment = await get_enrollment(db, user.id, course.id)
    return LessonCompletion(
        lesson_id=progress.lesson_id,
        completed_at=progress.completed_at,
        course_progress_percentage=enrollment.progress_percentage if enrollment else None,
    )


@router.get("/lessons/{lesson_id}/notes", response_model=NoteRead)
async def read_notes(
    lesson_id: int,
    user: User = Depends(require_permissions(PERM_WRITE_NOTES)),
    db: AsyncSession = Depends(get_session),
):
    await load_lesson_for_viewer(db, lesson_id, user)
    note = await get_note(db, user.id, lesson_id)
    if not note:
        raise HTTPException(status_code=404, detail="No notes for this lesson")
    return note


@router.put("/lessons/{lesson_id}/notes", response_model=NoteRead)
async def write_notes(
    lesson_id: int,
    data: NoteUpdate,
    user: User = Depends(require_permissions(PERM_WRITE_NOTES)),
    db: AsyncSession = Depends(get_session),
):
    await load_lesson_for_viewer(db, lesson_id, user)
    content = data.content.strip()
    if not content:
        raise HTTPException(status_code=400, detail="Notes cannot be empty")
    return await save_note(db, user.id, lesson_id, content)


@router.delete("/lessons/{lesson_id}/notes", status_code=status.HTTP_204_NO_CONTENT)
async def remove_notes(
    lesson_id: int,
    user: User = Depends(require_permissions(PERM_WRITE_NOTES)),
    db: AsyncSession = Depends(get_session),
):
    note = await get_note(db, user.id, lesson_id)
    if not note:
        raise HTTPException(status_code=404, detail="No notes for this lesson")
    await delete_note(db, note)
