"""Role-based access control (RBAC) for LearnHub.

Access is decided by capabilities, never by user-type inheritance:
each role maps to the set of capabilities it holds, and every operation
boundary checks the single capability it needs.

- ADMIN: every capability
- TEACHER: authoring and roster access, plus everything a student can do
- STUDENT: enroll, progress through modules, take quizzes
"""

from enum import Enum


class UserRole(str, Enum):
    """Roles asserted by the identity provider."""

    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class Capability(str, Enum):
    """Operations guarded at the API boundary."""

    ENROLL = "enroll"
    COMPLETE_MODULE = "complete_module"
    TAKE_QUIZ = "take_quiz"
    VIEW_OWN_PROGRESS = "view_own_progress"
    AUTHOR_COURSE = "author_course"
    AUTHOR_QUIZ = "author_quiz"
    VIEW_COURSE_ROSTER = "view_course_roster"
    VIEW_ANY_ENROLLMENT = "view_any_enrollment"
    MANAGE_ENROLLMENTS = "manage_enrollments"
    MANAGE_CERTIFICATES = "manage_certificates"


_STUDENT_CAPABILITIES = frozenset(
    {
        Capability.ENROLL,
        Capability.COMPLETE_MODULE,
        Capability.TAKE_QUIZ,
        Capability.VIEW_OWN_PROGRESS,
    }
)

_TEACHER_CAPABILITIES = _STUDENT_CAPABILITIES | {
    Capability.AUTHOR_COURSE,
    Capability.AUTHOR_QUIZ,
    Capability.VIEW_COURSE_ROSTER,
    Capability.VIEW_ANY_ENROLLMENT,
}

ROLE_CAPABILITIES: dict[UserRole, frozenset[Capability]] = {
    UserRole.STUDENT: _STUDENT_CAPABILITIES,
    UserRole.TEACHER: frozenset(_TEACHER_CAPABILITIES),
    UserRole.ADMIN: frozenset(Capability),
}


def parse_role(role: UserRole | str) -> UserRole | None:
    """Coerce a role claim to ``UserRole``; unknown roles yield None."""
    if isinstance(role, UserRole):
        return role
    try:
        return UserRole(role)
    except ValueError:
        return None


def capabilities_for(role: UserRole | str) -> frozenset[Capability]:
    """Capabilities granted to a role (empty for unknown roles)."""
    parsed = parse_role(role)
    if parsed is None:
        return frozenset()
    return ROLE_CAPABILITIES[parsed]


def has_capability(role: UserRole | str, capability: Capability) -> bool:
    """Check whether a role holds a capability.

    Examples:
        >>> has_capability(UserRole.TEACHER, Capability.AUTHOR_QUIZ)
        True
        >>> has_capability("student", Capability.AUTHOR_QUIZ)
        False
    """
    return capability in capabilities_for(role)


def is_admin(role: UserRole | str) -> bool:
    """Check if role is ADMIN."""
    return parse_role(role) == UserRole.ADMIN
