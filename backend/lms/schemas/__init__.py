"""Convenience imports for all schema classes used by the API."""

from .user import (
    UserCreate,
    UserResponse,
    UserMeResponse,
    UserLogin,
    UserUpdate,
    ProfileUpdate,
)
from .settings import SettingsRead, SettingsUpdate
from .course import (
    CourseCreate,
    CourseUpdate,
    CourseRead,
    CourseDetail,
    LessonSummaryItem,
    LessonCreate,
    LessonUpdate,
    LessonRead,
    LessonDetail,
    LessonCompletion,
    EnrollmentRead,
)
from .note import NoteUpdate, NoteRead
from .quiz import (
    OptionIn,
    QuestionIn,
    QuizUpsert,
    QuizRead,
    QuizManageRead,
    QuestionRead,
    QuestionManageRead,
    OptionRead,
    OptionManageRead,
    AttemptRead,
    AnswerIn,
    QuizSubmission,
    QuestionResultRead,
    SubmissionResult,
    SessionAnswer,
    SessionRead,
)
from .ai import SummaryRead, QuestionAsk, LessonQuestionRead

__all__ = [
    "UserCreate",
    "UserResponse",
    "UserMeResponse",
    "UserLogin",
    "UserUpdate",
    "ProfileUpdate",
    "SettingsRead",
    "SettingsUpdate",
    "CourseCreate",
    "CourseUpdate",
    "CourseRead",
    "CourseDetail",
    "LessonSummaryItem",
    "LessonCreate",
    "LessonUpdate",
    "LessonRead",
    "LessonDetail",
    "LessonCompletion",
    "EnrollmentRead",
    "NoteUpdate",
    "NoteRead",
    "OptionIn",
    "QuestionIn",
    "QuizUpsert",
    "QuizRead",
    "QuizManageRead",
    "QuestionRead",
    "QuestionManageRead",
    "OptionRead",
    "OptionManageRead",
    "AttemptRead",
    "AnswerIn",
    "QuizSubmission",
    "QuestionResultRead",
    "SubmissionResult",
    "SessionAnswer",
    "SessionRead",
    "SummaryRead",
    "QuestionAsk",
    "LessonQuestionRead",
]
