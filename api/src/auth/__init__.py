"""Authentication module.

Bearer token validation and capability-based access control.
"""

from src.auth.dependencies import CurrentUser, get_current_user, require_capability
from src.auth.permissions import Capability, UserRole, has_capability
from src.auth.schemas import UserResponse


__all__ = [
    "Capability",
    "CurrentUser",
    "UserResponse",
    "UserRole",
    "get_current_user",
    "has_capability",
    "require_capability",
]
