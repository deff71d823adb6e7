"""Database models for the learning platform.

The models are defined with SQLModel (built on SQLAlchemy and Pydantic)
and represent users, courses and lessons, learner progress, quizzes with
their recorded attempts, and stored AI output.  Comments are kept concise
to avoid distracting from the field definitions.
"""

from typing import Optional, List
from datetime import datetime
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, Text, UniqueConstraint


class UserPermissionLink(SQLModel, table=True):
    """Association table linking users and their granted permissions."""

    user_id: int = Field(foreign_key="user.id", primary_key=True)
    permission_id: int = Field(foreign_key="permission.id", primary_key=True)

    user: "User" = Relationship(back_populates="permission_links")
    permission: "Permission" = Relationship(back_populates="user_links")


class Permission(SQLModel, table=True):
    """Named permission that can be assigned to users."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True)
    user_links: List["UserPermissionLink"] = Relationship(
        back_populates="permission"
    )
    users: List["User"] = Relationship(
        back_populates="permissions",
        link_model=UserPermissionLink,
        sa_relationship_kwargs={"overlaps": "user_links,permission,user"},
    )


class User(SQLModel, table=True):
    """Account holder: learner, instructor or admin."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(unique=True, index=True)
    password_hash: str
    role: str = "learner"  # 'learner', 'instructor', 'admin'
    bio: Optional[str] = None
    profile_image_url: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    permission_links: List["UserPermissionLink"] = Relationship(
        back_populates="user",
        sa_relationship_kwargs={"overlaps": "users"},
    )
    permissions: List[Permission] = Relationship(
        back_populates="users",
        link_model=UserPermissionLink,
        sa_relationship_kwargs={"overlaps": "permission_links,user"},
    )


class Course(SQLModel, table=True):
    """Course authored by an instructor and made of ordered lessons."""
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    slug: str = Field(unique=True, index=True)
    description: Optional[str] = None
    instructor_id: int = Field(foreign_key="user.id")
    difficulty_level: str = "beginner"  # beginner, intermediate, advanced
    status: str = "draft"  # draft, published, archived
    thumbnail_url: Optional[str] = None
    trailer_video_url: Optional[str] = None
    estimated_duration_minutes: Optional[int] = None
    price_cents: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None
    published_at: Optional[datetime] = None

    instructor: User = Relationship()
    lessons: List["Lesson"] = Relationship(
        back_populates="course",
        sa_relationship_kwargs={"order_by": "Lesson.lesson_order"},
    )


class Lesson(SQLModel, table=True):
    """Single unit of course content."""

    __table_args__ = (UniqueConstraint("course_id", "slug"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: int = Field(foreign_key="course.id", index=True)
    title: str
    slug: str
    content_type: str = "text"  # text, video, pdf, slides
    content: Optional[str] = Field(default=None, sa_column=Column(Text))  # HTML
    video_url: Optional[str] = None
    file_url: Optional[str] = None
    video_duration_seconds: Optional[int] = None
    lesson_order: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    course: Course = Relationship(back_populates="lessons")


class Enrollment(SQLModel, table=True):
    """Learner enrollment in a course with cached progress."""

    __table_args__ = (UniqueConstraint("user_id", "course_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    course_id: int = Field(foreign_key="course.id", index=True)
    progress_percentage: int = 0
    enrolled_at: datetime = Field(default_factory=datetime.utcnow)

    course: Course = Relationship()


class LessonProgress(SQLModel, table=True):
    """Completion marker, at most one per (user, lesson)."""

    __table_args__ = (UniqueConstraint("user_id", "lesson_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    lesson_id: int = Field(foreign_key="lesson.id")
    course_id: int = Field(foreign_key="course.id")
    completed_at: datetime = Field(default_factory=datetime.utcnow)


class LessonNote(SQLModel, table=True):
    """Private per-lesson notes, stored as HTML."""

    __table_args__ = (UniqueConstraint("user_id", "lesson_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    lesson_id: int = Field(foreign_key="lesson.id")
    content: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None


class Quiz(SQLModel, table=True):
    """Instructor-authored quiz attached to a lesson."""
    id: Optional[int] = Field(default=None, primary_key=True)
    lesson_id: int = Field(foreign_key="lesson.id", unique=True)
    title: str
    description: Optional[str] = None
    pass_percentage: int = 70
    time_limit_minutes: Optional[int] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    questions: List["QuizQuestion"] = Relationship(
        back_populates="quiz",
        sa_relationship_kwargs={
            "order_by": "QuizQuestion.question_order",
            "cascade": "all, delete-orphan",
        },
    )


class QuizQuestion(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    quiz_id: int = Field(foreign_key="quiz.id", index=True)
    question_text: str
    question_order: int = 0
    points: int = 1
    explanation: Optional[str] = None

    quiz: Quiz = Relationship(back_populates="questions")
    options: List["QuizOption"] = Relationship(
        back_populates="question",
        sa_relationship_kwargs={
            "order_by": "QuizOption.option_order",
            "cascade": "all, delete-orphan",
        },
    )


class QuizOption(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    question_id: int = Field(foreign_key="quizquestion.id", index=True)
    option_text: str
    is_correct: bool = False
    option_order: int = 0

    question: QuizQuestion = Relationship(back_populates="options")


class QuizAttempt(SQLModel, table=True):
    """Immutable record of one submitted quiz."""

    id: Optional[int] = Field(default=None, primary_key=True)
    quiz_id: int = Field(foreign_key="quiz.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    lesson_id: int = Field(foreign_key="lesson.id")
    score: int
    total_points: int
    percentage: int
    passed: bool
    completed_at: datetime = Field(default_factory=datetime.utcnow)
    time_spent_seconds: Optional[int] = None

    answers: List["QuizAnswer"] = Relationship(back_populates="attempt")


class QuizAnswer(SQLModel, table=True):
    """Per-question outcome of an attempt."""

    id: Optional[int] = Field(default=None, primary_key=True)
    attempt_id: int = Field(foreign_key="quizattempt.id", index=True)
    question_id: int = Field(foreign_key="quizquestion.id")
    # not a foreign key: stale clients may submit ids of other questions
    selected_option_id: Optional[int] = None
    is_correct: bool
    points_earned: int

    attempt: QuizAttempt = Relationship(back_populates="answers")


class LessonSummary(SQLModel, table=True):
    """Cached AI-generated lesson summary."""

    id: Optional[int] = Field(default=None, primary_key=True)
    lesson_id: int = Field(foreign_key="lesson.id", unique=True)
    summary: str = Field(sa_column=Column(Text, nullable=False))
    generated_at: datetime = Field(default_factory=datetime.utcnow)


class LessonQuestion(SQLModel, table=True):
    """Question a learner asked about a lesson and the AI answer."""

    id: Optional[int] = Field(default=None, primary_key=True)
    lesson_id: int = Field(foreign_key="lesson.id", index=True)
    user_id: int = Field(foreign_key="user.id")
    question: str = Field(sa_column=Column(Text, nullable=False))
    answer: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Settings(SQLModel, table=True):
    """Singleton table storing site‑wide configuration values."""
    id: Optional[int] = Field(default=1, primary_key=True)
    site_name: str = "Learning Hub"
    default_pass_percentage: int = 70
    public_registration_disabled: bool = False
    ai_features_enabled: bool = True
