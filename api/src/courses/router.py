"""Course catalog API endpoints."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from src.auth.dependencies import CourseAuthor, CurrentUser
from src.core.exceptions import DomainError, handle_domain_error
from src.courses.dependencies import CourseServiceDep, is_owner_or_admin
from src.courses.schemas import (
    CourseDetailResponse,
    CourseResponse,
    CreateCourseRequest,
    CreateModuleRequest,
    ModuleResponse,
)


router = APIRouter(prefix="/v1/courses", tags=["courses"])


@router.post(
    "",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new course",
)
async def create_course(
    data: CreateCourseRequest,
    course_service: CourseServiceDep,
    user: CourseAuthor,
) -> CourseResponse:
    """Create a new course (TEACHER or ADMIN only)."""
    course = await course_service.create_course(data, user.id)
    return course_service.to_response(course)


@router.get(
    "/{course_id}",
    response_model=CourseDetailResponse,
    summary="Get course with modules",
)
async def get_course(
    course_id: UUID,
    course_service: CourseServiceDep,
    _user: CurrentUser,
) -> CourseDetailResponse:
    """Get a course and its ordered modules."""
    try:
        course = await course_service.require_course(course_id)
    except DomainError as e:
        raise handle_domain_error(e) from e

    modules = await course_service.get_course_modules(course_id)
    return course_service.to_detail_response(course, modules)


@router.post(
    "/{course_id}/modules",
    response_model=ModuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add module to course",
)
async def add_module(
    course_id: UUID,
    data: CreateModuleRequest,
    course_service: CourseServiceDep,
    user: CourseAuthor,
) -> ModuleResponse:
    """Append a module to a course (course owner or ADMIN)."""
    try:
        course = await course_service.require_course(course_id)
        if not is_owner_or_admin(user, course.creator_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the course owner can add modules",
            )
        module = await course_service.add_module(course_id, data)
    except DomainError as e:
        raise handle_domain_error(e) from e

    return ModuleResponse(**module.to_dict())
