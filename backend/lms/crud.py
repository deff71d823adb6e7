"""Asynchronous CRUD helpers for the application's data models.

Each function in this module encapsulates a specific database operation
using SQLModel and SQLAlchemy.  Centralizing the logic keeps route
handlers light and makes behavior easier to test.
"""

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy import func, or_
from sqlmodel import select, delete

from lms.models import (
    User,
    Permission,
    UserPermissionLink,
    Settings,
    Course,
    Lesson,
    Enrollment,
    LessonProgress,
    LessonNote,
    Quiz,
    QuizQuestion,
    QuizOption,
    QuizAttempt,
    QuizAnswer,
    LessonSummary,
    LessonQuestion,
)
from lms.auth import get_password_hash
from lms.acl import get_default_permissions_for_role
from lms.errors import PersistenceError
from lms.grading import EvaluationResult, QuizDefinition

logger = logging.getLogger(__name__)


async def ensure_permissions_exist(db: AsyncSession, names: list[str]) -> None:
    """Ensure that a set of permission records exists in the database."""

    for name in names:
        result = await db.execute(
            select(Permission).where(Permission.name == name)
        )
        perm = result.scalar_one_or_none()
        if not perm:
            db.add(Permission(name=name))
    await db.commit()


async def assign_permissions_by_names(
    db: AsyncSession, user: User, names: list[str]
) -> None:
    """Assign named permissions to a user if not already granted."""
    for name in names:
        result = await db.execute(
            select(Permission).where(Permission.name == name)
        )
        perm = result.scalar_one_or_none()
        if perm:
            link_result = await db.execute(
                select(UserPermissionLink)
                    .where(
                        UserPermissionLink.user_id == user.id,
                        UserPermissionLink.permission_id == perm.id,
                    )
            )
            link = link_result.scalar_one_or_none()
            if not link:
                db.add(
                    UserPermissionLink(user_id=user.id, permission_id=perm.id)
                )
    await db.commit()


async def clear_permissions(db: AsyncSession, user: User) -> None:
    """Remove every permission granted to a user."""
    await db.execute(
        delete(UserPermissionLink).where(UserPermissionLink.user_id == user.id)
    )
    await db.commit()


async def get_settings(db: AsyncSession) -> Settings:
    """Fetch the singleton settings record, creating it if necessary."""
    result = await db.execute(select(Settings).where(Settings.id == 1))
    settings = result.scalar_one_or_none()
    if not settings:
        settings = Settings()
        db.add(settings)
        await db.commit()
        await db.refresh(settings)
    return settings


async def save_settings(db: AsyncSession, settings: Settings) -> Settings:
    """Persist settings changes and return the refreshed object."""

    db.add(settings)
    await db.commit()
    await db.refresh(settings)
    return settings


# User utilities

async def create_user(db: AsyncSession, user: User):
    """Create a new user, hashing the password and assigning defaults."""

    if not user.password_hash.startswith("$2b$"):
        user.password_hash = get_password_hash(user.password_hash)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    defaults = get_default_permissions_for_role(user.role)
    if defaults:
        await assign_permissions_by_names(db, user, defaults)
    return user


async def get_user_by_email(db: AsyncSession, email: str):
    """Return a user by email or ``None`` if not found."""
    result = await db.execute(
        select(User)
        .where(User.email == email)
        .options(selectinload(User.permissions))
    )
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: int) -> User | None:
    """Load a user by primary key."""
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .options(selectinload(User.permissions))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_all_users(db: AsyncSession) -> list[User]:
    """Return all users with permissions eagerly loaded."""

    result = await db.execute(
        select(User).options(selectinload(User.permissions)).order_by(User.id)
    )
    return result.scalars().all()


async def save_user(db: AsyncSession, user: User) -> User:
    """Persist changes to an existing user."""

    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def set_user_role(db: AsyncSession, user: User, role: str) -> User:
    """Change a user's role and replace their permissions with its defaults."""

    user.role = role
    db.add(user)
    await db.commit()
    await clear_permissions(db, user)
    await assign_permissions_by_names(db, user, get_default_permissions_for_role(role))
    return await get_user(db, user.id)


async def delete_user(db: AsyncSession, user: User) -> None:
    """Remove a user from the database."""

    await clear_permissions(db, user)
    await db.delete(user)
    await db.commit()


# Course and lesson utilities

async def create_course(db: AsyncSession, course: Course) -> Course:
    db.add(course)
    await db.commit()
    await db.refresh(course)
    return course


async def save_course(db: AsyncSession, course: Course) -> Course:
    course.updated_at = datetime.utcnow()
    db.add(course)
    await db.commit()
    await db.refresh(course)
    return course


async def get_course_by_slug(db: AsyncSession, slug: str) -> Course | None:
    """Load a course and its ordered lessons."""
    result = await db.execute(
        select(Course)
        .where(Course.slug == slug)
        .options(selectinload(Course.lessons))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_course(db: AsyncSession, course_id: int) -> Course | None:
    result = await db.execute(
        select(Course)
        .where(Course.id == course_id)
        .options(selectinload(Course.lessons))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_published_courses(
    db: AsyncSession,
    *,
    difficulty: str | None = None,
    search: str | None = None,
) -> list[Course]:
    stmt = select(Course).where(Course.status == "published")
    if difficulty:
        stmt = stmt.where(Course.difficulty_level == difficulty)
    if search:
        pattern = f"%{search.lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(Course.title).like(pattern),
                func.lower(Course.description).like(pattern),
            )
        )
    stmt = stmt.order_by(Course.published_at.desc(), Course.id.desc())
    result = await db.execute(stmt)
    return result.scalars().all()


async def list_courses_by_instructor(db: AsyncSession, user_id: int) -> list[Course]:
    result = await db.execute(
        select(Course)
        .where(Course.instructor_id == user_id)
        .order_by(Course.created_at.desc())
    )
    return result.scalars().all()


async def create_lesson(db: AsyncSession, lesson: Lesson) -> Lesson:
    db.add(lesson)
    await db.commit()
    await db.refresh(lesson)
    return lesson


async def save_lesson(db: AsyncSession, lesson: Lesson) -> Lesson:
    lesson.updated_at = datetime.utcnow()
    db.add(lesson)
    await db.commit()
    await db.refresh(lesson)
    return lesson


async def get_lesson(db: AsyncSession, lesson_id: int) -> Lesson | None:
    result = await db.execute(select(Lesson).where(Lesson.id == lesson_id))
    return result.scalar_one_or_none()


async def get_lesson_by_slug(
    db: AsyncSession, course_id: int, slug: str
) -> Lesson | None:
    result = await db.execute(
        select(Lesson).where(Lesson.course_id == course_id, Lesson.slug == slug)
    )
    return result.scalar_one_or_none()


async def next_lesson_order(db: AsyncSession, course_id: int) -> int:
    result = await db.execute(
        select(func.max(Lesson.lesson_order)).where(Lesson.course_id == course_id)
    )
    current = result.scalar()
    return 1 if current is None else current + 1


# Enrollment and progress utilities

async def get_enrollment(
    db: AsyncSession, user_id: int, course_id: int
) -> Enrollment | None:
    result = await db.execute(
        select(Enrollment).where(
            Enrollment.user_id == user_id, Enrollment.course_id == course_id
        )
    )
    return result.scalar_one_or_none()


async def enroll_user(db: AsyncSession, user_id: int, course_id: int) -> Enrollment:
    """Enroll a user in a course, returning the existing enrollment if any."""
    enrollment = await get_enrollment(db, user_id, course_id)
    if enrollment:
        return enrollment
    enrollment = Enrollment(user_id=user_id, course_id=course_id)
    db.add(enrollment)
    await db.commit()
    await db.refresh(enrollment)
    return enrollment


async def list_enrollments_for_user(db: AsyncSession, user_id: int) -> list[Enrollment]:
    result = await db.execute(
        select(Enrollment)
        .where(Enrollment.user_id == user_id)
        .options(selectinload(Enrollment.course))
        .order_by(Enrollment.enrolled_at.desc())
    )
    return result.scalars().all()


async def get_lesson_progress(
    db: AsyncSession, user_id: int, lesson_id: int
) -> LessonProgress | None:
    result = await db.execute(
        select(LessonProgress).where(
            LessonProgress.user_id == user_id, LessonProgress.lesson_id == lesson_id
        )
    )
    return result.scalar_one_or_none()


async def get_completed_lesson_ids(
    db: AsyncSession, user_id: int, course_id: int
) -> set[int]:
    result = await db.execute(
        select(LessonProgress.lesson_id).where(
            LessonProgress.user_id == user_id, LessonProgress.course_id == course_id
        )
    )
    return set(result.scalars().all())


async def refresh_course_progress(
    db: AsyncSession, user_id: int, course_id: int
) -> int | None:
    """Recompute the cached progress percentage on the user's enrollment."""
    enrollment = await get_enrollment(db, user_id, course_id)
    if not enrollment:
        return None
    result = await db.execute(
        select(func.count()).select_from(Lesson).where(Lesson.course_id == course_id)
    )
    total = result.scalar() or 0
    completed = len(await get_completed_lesson_ids(db, user_id, course_id))
    enrollment.progress_percentage = round(completed / total * 100) if total else 0
    db.add(enrollment)
    await db.commit()
    return enrollment.progress_percentage


async def mark_lesson_complete(
    db: AsyncSession, user_id: int, lesson_id: int
) -> LessonProgress:
    """Idempotently record that ``user_id`` completed ``lesson_id``.

    The marker is unique per (user, lesson); an existing marker keeps its
    original completion time.
    """
    progress = await get_lesson_progress(db, user_id, lesson_id)
    if progress is None:
        lesson = await get_lesson(db, lesson_id)
        if lesson is None:
            raise ValueError(f"Lesson {lesson_id} does not exist")
        progress = LessonProgress(
            user_id=user_id, lesson_id=lesson_id, course_id=lesson.course_id
        )
        db.add(progress)
        try:
            await db.commit()
        except IntegrityError:
            # a concurrent request inserted the same marker first
            await db.rollback()
            progress = await get_lesson_progress(db, user_id, lesson_id)
        else:
            await db.refresh(progress)
    await refresh_course_progress(db, user_id, progress.course_id)
    return progress


# Note utilities

async def get_note(db: AsyncSession, user_id: int, lesson_id: int) -> LessonNote | None:
    result = await db.execute(
        select(LessonNote).where(
            LessonNote.user_id == user_id, LessonNote.lesson_id == lesson_id
        )
    )
    return result.scalar_one_or_none()


async def save_note(
    db: AsyncSession, user_id: int, lesson_id: int, content: str
) -> LessonNote:
    """Create or replace the user's note for a lesson."""
    note = await get_note(db, user_id, lesson_id)
    if note is None:
        note = LessonNote(user_id=user_id, lesson_id=lesson_id, content=content)
    else:
        note.content = content
        note.updated_at = datetime.utcnow()
    db.add(note)
    await db.commit()
    await db.refresh(note)
    return note


async def delete_note(db: AsyncSession, note: LessonNote) -> None:
    await db.delete(note)
    await db.commit()


# Quiz utilities

async def get_quiz_for_lesson(db: AsyncSession, lesson_id: int) -> Quiz | None:
    """Load a lesson's quiz with questions and options in authored order."""
    result = await db.execute(
        select(Quiz)
        .where(Quiz.lesson_id == lesson_id)
        .options(selectinload(Quiz.questions).selectinload(QuizQuestion.options))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def count_attempts_for_quiz(db: AsyncSession, quiz_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(QuizAttempt).where(QuizAttempt.quiz_id == quiz_id)
    )
    return result.scalar() or 0


def build_questions(questions: list[dict]) -> list[QuizQuestion]:
    """Turn plain question dicts into ordered question and option rows."""
    built = []
    for q_index, data in enumerate(questions, start=1):
        question = QuizQuestion(
            question_text=data["question_text"],
            question_order=q_index,
            points=data.get("points", 1),
            explanation=data.get("explanation") or None,
        )
        question.options = [
            QuizOption(
                option_text=option["option_text"],
                is_correct=option.get("is_correct", False),
                option_order=o_index,
            )
            for o_index, option in enumerate(data["options"], start=1)
        ]
        built.append(question)
    return built


async def save_quiz(
    db: AsyncSession,
    lesson_id: int,
    fields: dict,
    questions: list[dict] | None = None,
) -> Quiz:
    """Create or update a lesson's quiz.

    ``questions`` replaces the full question list when given.
    """
    quiz = await get_quiz_for_lesson(db, lesson_id)
    if quiz is None:
        quiz = Quiz(lesson_id=lesson_id, **fields)
    else:
        for field, value in fields.items():
            setattr(quiz, field, value)
        quiz.updated_at = datetime.utcnow()
    if questions is not None:
        quiz.questions = build_questions(questions)
    db.add(quiz)
    await db.commit()
    return await get_quiz_for_lesson(db, lesson_id)


async def delete_quiz(db: AsyncSession, quiz: Quiz) -> None:
    await db.delete(quiz)
    await db.commit()


async def get_attempts(
    db: AsyncSession, user_id: int, quiz_id: int
) -> list[QuizAttempt]:
    """Return a user's attempts at a quiz, newest first."""
    result = await db.execute(
        select(QuizAttempt)
        .where(QuizAttempt.user_id == user_id, QuizAttempt.quiz_id == quiz_id)
        .order_by(QuizAttempt.completed_at.desc(), QuizAttempt.id.desc())
    )
    return result.scalars().all()


async def get_attempt(db: AsyncSession, attempt_id: int) -> QuizAttempt | None:
    result = await db.execute(
        select(QuizAttempt)
        .where(QuizAttempt.id == attempt_id)
        .options(selectinload(QuizAttempt.answers))
    )
    return result.scalar_one_or_none()


async def record_attempt(
    db: AsyncSession,
    user_id: int,
    evaluation: EvaluationResult,
    quiz: Quiz | QuizDefinition,
    lesson_id: int,
    time_spent_seconds: int | None = None,
) -> QuizAttempt:
    """Persist a graded attempt and, when passed, mark the lesson complete.

    The attempt and its answers are written in one commit.  The completion
    marker is a second, separate write: if it fails the attempt stays
    recorded and ``PersistenceError`` is raised all the same.
    """
    # rollback expires ORM instances, so keep plain ids for logging
    quiz_id = quiz.id
    attempt = QuizAttempt(
        quiz_id=quiz_id,
        user_id=user_id,
        lesson_id=lesson_id,
        score=evaluation.total_points_earned,
        total_points=evaluation.total_points_possible,
        percentage=evaluation.percentage,
        passed=evaluation.passed,
        time_spent_seconds=time_spent_seconds,
    )
    try:
        db.add(attempt)
        await db.flush()  # ensure attempt.id is populated
        for result in evaluation.per_question:
            db.add(
                QuizAnswer(
                    attempt_id=attempt.id,
                    question_id=result.question_id,
                    selected_option_id=result.selected_choice_id,
                    is_correct=result.is_correct,
                    points_earned=result.points_earned,
                )
            )
        await db.commit()
        await db.refresh(attempt)
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Failed to record attempt for user %s on quiz %s", user_id, quiz_id)
        raise PersistenceError("Could not record quiz attempt") from exc

    attempt_id = attempt.id
    logger.info(
        "User %s scored %s%% on quiz %s (attempt %s, passed=%s)",
        user_id,
        attempt.percentage,
        quiz_id,
        attempt_id,
        attempt.passed,
    )
    if evaluation.passed:
        try:
            await mark_lesson_complete(db, user_id, lesson_id)
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.warning(
                "Attempt %s recorded but lesson %s was not marked complete",
                attempt_id,
                lesson_id,
            )
            raise PersistenceError("Could not mark lesson complete") from exc
    return attempt


# AI assistant utilities

async def get_lesson_summary(db: AsyncSession, lesson_id: int) -> LessonSummary | None:
    result = await db.execute(
        select(LessonSummary).where(LessonSummary.lesson_id == lesson_id)
    )
    return result.scalar_one_or_none()


async def save_lesson_summary(
    db: AsyncSession, lesson_id: int, summary: str
) -> LessonSummary:
    record = LessonSummary(lesson_id=lesson_id, summary=summary)
    db.add(record)
    try:
        await db.commit()
    except IntegrityError:
        # another request cached a summary first; keep theirs
        await db.rollback()
        return await get_lesson_summary(db, lesson_id)
    await db.refresh(record)
    return record


async def create_lesson_question(
    db: AsyncSession, entry: LessonQuestion
) -> LessonQuestion:
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    return entry


async def list_lesson_questions(
    db: AsyncSession, user_id: int, lesson_id: int
) -> list[LessonQuestion]:
    result = await db.execute(
        select(LessonQuestion)
        .where(LessonQuestion.user_id == user_id, LessonQuestion.lesson_id == lesson_id)
        .order_by(LessonQuestion.created_at.desc(), LessonQuestion.id.desc())
    )
    return result.scalars().all()
