"""FastAPI dependencies for the course catalog.

Provides dependency injection for:
- Course service
- Ownership verification
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status

from src.auth.schemas import UserResponse
from src.courses.service import CourseService


async def get_course_service(request: Request) -> CourseService:
    """Get course service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "course_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Course service not available",
        )
    return app_state.course_service


CourseServiceDep = Annotated[CourseService, Depends(get_course_service)]


def is_owner_or_admin(user: UserResponse, creator_id: UUID | None) -> bool:
    """Check if user is the owner or an admin."""
    if user.is_admin:
        return True
    return creator_id is not None and str(user.id) == str(creator_id)
