"""Access control list constants and helpers.

The API uses string permission names to authorize actions.  This module
defines all available permissions and maps default permissions for each
user role.  Having these values in one place makes it easy to audit and
update the security model.
"""

PERM_VIEW_COURSES = "view_courses"
PERM_ENROLL = "enroll"
PERM_TAKE_QUIZZES = "take_quizzes"
PERM_WRITE_NOTES = "write_notes"
PERM_USE_AI = "use_ai_assistant"
PERM_MANAGE_COURSES = "manage_courses"
PERM_MANAGE_LESSONS = "manage_lessons"
PERM_AUTHOR_QUIZZES = "author_quizzes"
PERM_MANAGE_USERS = "manage_users"

ALL_PERMISSIONS = [
    PERM_VIEW_COURSES,
    PERM_ENROLL,
    PERM_TAKE_QUIZZES,
    PERM_WRITE_NOTES,
    PERM_USE_AI,
    PERM_MANAGE_COURSES,
    PERM_MANAGE_LESSONS,
    PERM_AUTHOR_QUIZZES,
    PERM_MANAGE_USERS,
]

LEARNER_PERMISSIONS = [
    PERM_VIEW_COURSES,
    PERM_ENROLL,
    PERM_TAKE_QUIZZES,
    PERM_WRITE_NOTES,
    PERM_USE_AI,
]

ROLE_DEFAULT_PERMISSIONS = {
    "admin": ALL_PERMISSIONS,
    "instructor": LEARNER_PERMISSIONS
    + [
        PERM_MANAGE_COURSES,
        PERM_MANAGE_LESSONS,
        PERM_AUTHOR_QUIZZES,
    ],
    "learner": LEARNER_PERMISSIONS,
}

ROLES = tuple(ROLE_DEFAULT_PERMISSIONS)


def get_default_permissions_for_role(role: str) -> list[str]:
    return ROLE_DEFAULT_PERMISSIONS.get(role, [])
