from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel

Difficulty = Literal["beginner", "intermediate", "advanced"]
CourseStatus = Literal["draft", "published", "archived"]
ContentType = Literal["text", "video", "pdf", "slides"]


class CourseCreate(BaseModel):
    title: str
    slug: str
    description: Optional[str] = None
    difficulty_level: Difficulty = "beginner"
    status: CourseStatus = "draft"
    thumbnail_url: Optional[str] = None
    trailer_video_url: Optional[str] = None
    estimated_duration_minutes: Optional[int] = None
    price_cents: int = 0


class CourseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    difficulty_level: Optional[Difficulty] = None
    status: Optional[CourseStatus] = None
    thumbnail_url: Optional[str] = None
    trailer_video_url: Optional[str] = None
    estimated_duration_minutes: Optional[int] = None
    price_cents: Optional[int] = None


class CourseRead(BaseModel):
    id: int
    title: str
    slug: str
    description: Optional[str] = None
    instructor_id: int
    difficulty_level: str
    status: str
    thumbnail_url: Optional[str] = None
    trailer_video_url: Optional[str] = None
    estimated_duration_minutes: Optional[int] = None
    price_cents: int
    created_at: datetime
    published_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LessonSummaryItem(BaseModel):
    id: int
    title: str
    slug: str
    content_type: str
    lesson_order: int
    completed: bool = False


class CourseDetail(CourseRead):
    lessons: List[LessonSummaryItem]
    enrolled: bool = False
    progress_percentage: Optional[int] = None


class LessonCreate(BaseModel):
    title: str
    slug: str
    content_type: ContentType = "text"
    content: Optional[str] = None
    video_url: Optional[str] = None
    file_url: Optional[str] = None
    video_duration_seconds: Optional[int] = None
    lesson_order: Optional[int] = None


class LessonUpdate(BaseModel):
    title: Optional[str] = None
    content_type: Optional[ContentType] = None
    content: Optional[str] = None
    video_url: Optional[str] = None
    file_url: Optional[str] = None
    video_duration_seconds: Optional[int] = None
    lesson_order: Optional[int] = None


class LessonRead(BaseModel):
    id: int
    course_id: int
    title: str
    slug: str
    content_type: str
    content: Optional[str] = None
    video_url: Optional[str] = None
    file_url: Optional[str] = None
    video_duration_seconds: Optional[int] = None
    lesson_order: int

    class Config:
        from_attributes = True


class LessonDetail(LessonRead):
    completed: bool = False
    has_quiz: bool = False
    previous_lesson_slug: Optional[str] = None
    next_lesson_slug: Optional[str] = None


class LessonCompletion(BaseModel):
    lesson_id: int
    completed_at: datetime
    course_progress_percentage: Optional[int] = None


class EnrollmentRead(BaseModel):
    course: CourseRead
    progress_percentage: int
    enrolled_at: datetime
