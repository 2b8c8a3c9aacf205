"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Current user extraction from JWT
- Capability-based access control
"""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError
from pydantic import ValidationError

from src.auth.permissions import Capability
from src.auth.schemas import UserResponse
from src.auth.security import decode_access_token
from src.core.context import set_user_id


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header.

    Args:
        request: FastAPI request

    Returns:
        Token string or None if not present
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> UserResponse:
    """Get current authenticated user from JWT token.

    This is the main authentication dependency.
    Validates the access token and returns the asserted identity.

    Raises:
        HTTPException(401): If token is missing, invalid, or expired
    """
    if not token:
        raise _unauthorized("Access token not provided")

    try:
        payload = decode_access_token(token)
    except JWTError as e:
        raise _unauthorized("Invalid or expired token") from e

    iat = payload.get("iat")
    try:
        user = UserResponse(
            id=payload["sub"],
            email=payload.get("email"),
            role=payload["role"],
            issued_at=datetime.fromtimestamp(iat, UTC) if iat else None,
        )
    except ValidationError as e:
        raise _unauthorized("Invalid token claims") from e

    # Set user_id in context for logging
    set_user_id(str(user.id), role=user.role.value)

    return user


def require_capability(capability: Capability):
    """Create dependency requiring a capability.

    Args:
        capability: Capability the caller's role must hold

    Returns:
        Dependency function

    Example:
        @router.post("/quizzes")
        async def create_quiz(
            user: Annotated[UserResponse, Depends(require_capability(Capability.AUTHOR_QUIZ))]
        ):
            ...
    """

    async def capability_checker(
        user: Annotated[UserResponse, Depends(get_current_user)],
    ) -> UserResponse:
        if not user.can(capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )

        return user

    return capability_checker


# ==============================================================================
# Type Aliases for Cleaner Code
# ==============================================================================

# Basic authenticated user
CurrentUser = Annotated[UserResponse, Depends(get_current_user)]

# Capability-specific dependencies
EnrollingUser = Annotated[UserResponse, Depends(require_capability(Capability.ENROLL))]
LearnerUser = Annotated[
    UserResponse, Depends(require_capability(Capability.COMPLETE_MODULE))
]
QuizTaker = Annotated[UserResponse, Depends(require_capability(Capability.TAKE_QUIZ))]
CourseAuthor = Annotated[
    UserResponse, Depends(require_capability(Capability.AUTHOR_COURSE))
]
QuizAuthor = Annotated[UserResponse, Depends(require_capability(Capability.AUTHOR_QUIZ))]
RosterViewer = Annotated[
    UserResponse, Depends(require_capability(Capability.VIEW_COURSE_ROSTER))
]
CertificateManager = Annotated[
    UserResponse, Depends(require_capability(Capability.MANAGE_CERTIFICATES))
]
