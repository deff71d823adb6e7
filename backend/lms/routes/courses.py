"""Course catalogue, course authoring and enrollment endpoints."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from lms.acl import PERM_ENROLL, PERM_MANAGE_COURSES
from lms.auth import get_current_user, get_optional_user, require_permissions
from lms.crud import (
    create_course,
    create_lesson,
    enroll_user,
    get_completed_lesson_ids,
    get_course_by_slug,
    get_enrollment,
    get_lesson_by_slug,
    list_courses_by_instructor,
    list_enrollments_for_user,
    list_published_courses,
    next_lesson_order,
    save_course,
)
from lms.database import get_session
from lms.models import Course, Lesson, User
from lms.routes.common import load_course, load_editable_course
from lms.schemas import (
    CourseCreate,
    CourseDetail,
    CourseRead,
    CourseUpdate,
    EnrollmentRead,
    LessonCreate,
    LessonRead,
    LessonSummaryItem,
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["courses"])


@router.get("/courses", response_model=list[CourseRead])
async def list_courses(
    difficulty: str | None = None,
    search: str | None = None,
    db: AsyncSession = Depends(get_session),
):
    return await list_published_courses(db, difficulty=difficulty, search=search)


@router.get("/courses/{slug}", response_model=CourseDetail)
async def read_course(
    slug: str,
    user: User | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_session),
):
    course = await load_course(db, slug, user)
    enrollment = None
    completed: set[int] = set()
    if user is not None:
        enrollment = await get_enrollment(db, user.id, course.id)
        completed = await get_completed_lesson_ids(db, user.id, course.id)
    return CourseDetail(
        **CourseRead.model_validate(course).model_dump(),
        lessons=[
            LessonSummaryItem(
                id=lesson.id,
                title=lesson.title,
                slug=lesson.slug,
                content_type=lesson.content_type,
                lesson_order=lesson.lesson_order,
                completed=lesson.id in completed,
            )
            for lesson in course.lessons
        ],
        enrolled=enrollment is not None,
        progress_percentage=enrollment.progress_percentage if enrollment else None,
    )


@router.post("/courses", response_model=CourseRead)
async def create_course_route(
    data: CourseCreate,
    user: User = Depends(require_permissions(PERM_MANAGE_COURSES)),
    db: AsyncSession = Depends(get_session),
):
    if await get_course_by_slug(db, data.slug):
        raise HTTPException(
            status_code=400,
            detail={"code": "course_slug_taken", "message": "Slug is already in use"},
        )
    course = Course(**data.model_dump(), instructor_id=user.id)
    if course.status == "published":
        course.published_at = datetime.utcnow()
    course = await create_course(db, course)
    logger.info("User %s created course %s", user.email, course.slug)
    return course


@router.put("/courses/{slug}", response_model=CourseRead)
async def update_course_route(
    slug: str,
    data: CourseUpdate,
    user: User = Depends(require_permissions(PERM_MANAGE_COURSES)),
    db: AsyncSession = Depends(get_session),
):
    course = await load_editable_course(db, slug, user)
    was_published = course.status == "published"
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(course, field, value)
    if course.status == "published" and not was_published and course.published_at is None:
        course.published_at = datetime.utcnow()
    return await save_course(db, course)


@router.get("/instructor/courses", response_model=list[CourseRead])
async def my_courses(
    user: User = Depends(require_permissions(PERM_MANAGE_COURSES)),
    db: AsyncSession = Depends(get_session),
):
    return await list_courses_by_instructor(db, user.id)


@router.post("/courses/{slug}/lessons", response_model=LessonRead)
async def add_lesson(
    slug: str,
    data: LessonCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    course = await load_editable_course(db, slug, user)
    if await get_lesson_by_slug(db, course.id, data.slug):
        raise HTTPException(
            status_code=400,
            detail={"code": "lesson_slug_taken", "message": "Slug is already in use"},
        )
    fields = data.model_dump()
    if fields["lesson_order"] is None:
        fields["lesson_order"] = await next_lesson_order(db, course.id)
    return await create_lesson(db, Lesson(course_id=course.id, **fields))


@router.post("/courses/{slug}/enroll", response_model=EnrollmentRead)
async def enroll(
    slug: str,
    user: User = Depends(require_permissions(PERM_ENROLL)),
    db: AsyncSession = Depends(get_session),
):
    course = await load_course(db, slug, user)
    if course.status != "published":
        raise HTTPException(status_code=400, detail="Course is not open for enrollment")
    enrollment = await enroll_user(db, user.id, course.id)
    logger.info("User %s enrolled in %s", user.email, course.slug)
    return EnrollmentRead(
        course=CourseRead.model_validate(course),
        progress_percentage=enrollment.progress_percentage,
        enrolled_at=enrollment.enrolled_at,
    )


@router.get("/enrollments/me", response_model=list[EnrollmentRead])
async def my_enrollments(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    enrollments = await list_enrollments_for_user(db, user.id)
    return [
        EnrollmentRead(
            course=CourseRead.model_validate(e.course),
            progress_percentage=e.progress_percentage,
            enrolled_at=e.enrolled_at,
        )
        for e in enrollments
    ]
