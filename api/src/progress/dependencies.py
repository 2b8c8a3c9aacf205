"""FastAPI dependencies for enrollment and progress tracking.

Provides dependency injection for:
- Progress service
- Enrollment access checks
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from src.auth.permissions import Capability
from src.auth.schemas import UserResponse

from .models import Enrollment
from .service import ProgressService


async def get_progress_service(request: Request) -> ProgressService:
    """Get progress service from app state.

    Args:
        request: FastAPI request

    Returns:
        ProgressService instance
    """
    app_state = request.app.state
    if not getattr(app_state, "progress_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Progress service not available",
        )
    return app_state.progress_service


# Type alias for dependency injection
ProgressServiceDep = Annotated[ProgressService, Depends(get_progress_service)]


def is_enrollment_owner(user: UserResponse, enrollment: Enrollment) -> bool:
    return str(user.id) == str(enrollment.user_id)


def ensure_enrollment_access(
    user: UserResponse,
    enrollment: Enrollment,
    capability: Capability | None = None,
) -> None:
    """Allow the enrollment's owner, or anyone holding ``capability``.

    Raises:
        HTTPException(403): Otherwise
    """
    if is_enrollment_owner(user, enrollment):
        return
    if capability is not None and user.can(capability):
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Access to this enrollment is not allowed",
    )
