"""Lookup helpers shared by the course, lesson, quiz and AI routes.

They load the requested records and raise ``HTTPException`` when the
record is missing or the caller may not see it.
"""

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lms.crud import get_course, get_course_by_slug, get_enrollment, get_lesson
from lms.models import Course, Lesson, User


def is_course_editor(user: User | None, course: Course) -> bool:
    if user is None:
        return False
    return user.role == "admin" or course.instructor_id == user.id


async def load_course(db: AsyncSession, slug: str, user: User | None = None) -> Course:
    """Return a course by slug; unpublished courses only exist for editors."""
    course = await get_course_by_slug(db, slug)
    if not course or (course.status != "published" and not is_course_editor(user, course)):
        raise HTTPException(status_code=404, detail="Course not found")
    return course


async def load_editable_course(db: AsyncSession, slug: str, user: User) -> Course:
    course = await get_course_by_slug(db, slug)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    if not is_course_editor(user, course):
        raise HTTPException(status_code=403, detail="Not authorized")
    return course


async def load_lesson_for_viewer(
    db: AsyncSession, lesson_id: int, user: User
) -> tuple[Lesson, Course]:
    """Return a lesson the user may study: editors always, learners once enrolled."""
    lesson = await get_lesson(db, lesson_id)
    if not lesson:
        raise HTTPException(status_code=404, detail="Lesson not found")
    course = await get_course(db, lesson.course_id)
    if is_course_editor(user, course):
        return lesson, course
    if course.status != "published":
        raise HTTPException(status_code=404, detail="Lesson not found")
    enrollment = await get_enrollment(db, user.id, course.id)
    if not enrollment:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "code": "course_not_enrolled",
                "message": "Enroll in the course to access its lessons",
            },
        )
    return lesson, course


async def load_lesson_for_editor(
    db: AsyncSession, lesson_id: int, user: User
) -> tuple[Lesson, Course]:
    lesson = await get_lesson(db, lesson_id)
    if not lesson:
        raise HTTPException(status_code=404, detail="Lesson not found")
    course = await get_course(db, lesson.course_id)
    if not is_course_editor(user, course):
        raise HTTPException(status_code=403, detail="Not authorized")
    return lesson, course
