"""Aggregate import for all API route modules."""

from . import (
    auth,
    users,
    admin,
    settings,
    courses,
    lessons,
    quizzes,
    ai,
)

__all__ = [
    "auth",
    "users",
    "admin",
    "settings",
    "courses",
    "lessons",
    "quizzes",
    "ai",
]
