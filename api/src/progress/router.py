"""Enrollment and progress API endpoints.

Provides routes for:
- Enrollment: enroll, list, detail, drop
- Module completion and per-module progress
- Course roster for teachers
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from src.auth.dependencies import CurrentUser, EnrollingUser, LearnerUser, RosterViewer
from src.auth.permissions import Capability
from src.core.exceptions import DomainError, handle_domain_error
from src.courses.dependencies import CourseServiceDep, is_owner_or_admin

from .dependencies import ProgressServiceDep, ensure_enrollment_access
from .schemas import (
    CompleteModuleRequest,
    EnrollmentListResponse,
    EnrollmentModulesResponse,
    EnrollmentResponse,
    EnrollRequest,
)


# ==============================================================================
# Enrollments
# ==============================================================================

router_enrollments = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


@router_enrollments.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in a course",
)
async def enroll_in_course(
    data: EnrollRequest,
    user: EnrollingUser,
    progress_service: ProgressServiceDep,
) -> EnrollmentResponse:
    """Enroll the caller in a course."""
    try:
        enrollment = await progress_service.enroll(user.id, data.course_id)
    except DomainError as e:
        raise handle_domain_error(e) from e

    return EnrollmentResponse.from_entity(enrollment)


@router_enrollments.get(
    "/my",
    response_model=EnrollmentListResponse,
    summary="List my enrollments",
)
async def get_my_enrollments(
    user: CurrentUser,
    progress_service: ProgressServiceDep,
) -> EnrollmentListResponse:
    """List the caller's enrollments, newest first."""
    enrollments = await progress_service.list_user_enrollments(user.id)
    items = [EnrollmentResponse.from_entity(e) for e in enrollments]
    return EnrollmentListResponse(items=items, total=len(items))


@router_enrollments.get(
    "/{enrollment_id}",
    response_model=EnrollmentResponse,
    summary="Get enrollment",
)
async def get_enrollment(
    enrollment_id: UUID,
    user: CurrentUser,
    progress_service: ProgressServiceDep,
) -> EnrollmentResponse:
    """Get an enrollment (owner, TEACHER or ADMIN)."""
    try:
        enrollment = await progress_service.require_enrollment(enrollment_id)
    except DomainError as e:
        raise handle_domain_error(e) from e

    ensure_enrollment_access(user, enrollment, Capability.VIEW_ANY_ENROLLMENT)
    return EnrollmentResponse.from_entity(enrollment)


@router_enrollments.put(
    "/{enrollment_id}/drop",
    response_model=EnrollmentResponse,
    summary="Drop enrollment",
)
async def drop_enrollment(
    enrollment_id: UUID,
    user: CurrentUser,
    progress_service: ProgressServiceDep,
) -> EnrollmentResponse:
    """Drop an active enrollment (owner or ADMIN)."""
    try:
        enrollment = await progress_service.require_enrollment(enrollment_id)
        ensure_enrollment_access(user, enrollment, Capability.MANAGE_ENROLLMENTS)
        enrollment = await progress_service.drop(enrollment_id)
    except DomainError as e:
        raise handle_domain_error(e) from e

    return EnrollmentResponse.from_entity(enrollment)


# ==============================================================================
# Module Progress
# ==============================================================================

router_progress = APIRouter(prefix="/v1/progress", tags=["progress"])


@router_progress.put(
    "/modules/{module_id}/complete",
    response_model=EnrollmentResponse,
    summary="Mark module complete",
)
async def mark_module_complete(
    module_id: UUID,
    data: CompleteModuleRequest,
    user: LearnerUser,
    progress_service: ProgressServiceDep,
) -> EnrollmentResponse:
    """Mark a module complete in the caller's enrollment.

    Idempotent: completing the same module again returns the same state.
    """
    try:
        enrollment = await progress_service.require_enrollment(data.enrollment_id)
        ensure_enrollment_access(user, enrollment)
        enrollment = await progress_service.mark_module_complete(
            data.enrollment_id, module_id
        )
    except DomainError as e:
        raise handle_domain_error(e) from e

    return EnrollmentResponse.from_entity(enrollment)


@router_progress.get(
    "/enrollments/{enrollment_id}/modules",
    response_model=EnrollmentModulesResponse,
    summary="Per-module progress",
)
async def get_enrollment_modules(
    enrollment_id: UUID,
    user: CurrentUser,
    progress_service: ProgressServiceDep,
) -> EnrollmentModulesResponse:
    """Every module of the course with its completion state."""
    try:
        enrollment = await progress_service.require_enrollment(enrollment_id)
    except DomainError as e:
        raise handle_domain_error(e) from e

    ensure_enrollment_access(user, enrollment, Capability.VIEW_ANY_ENROLLMENT)
    modules = await progress_service.get_enrollment_modules(enrollment)
    return EnrollmentModulesResponse(
        enrollment=EnrollmentResponse.from_entity(enrollment),
        modules=modules,
    )


# ==============================================================================
# Course Roster
# ==============================================================================

router_roster = APIRouter(prefix="/v1/courses", tags=["enrollments"])


@router_roster.get(
    "/{course_id}/enrollments",
    response_model=EnrollmentListResponse,
    summary="Course roster",
)
async def list_course_enrollments(
    course_id: UUID,
    user: RosterViewer,
    course_service: CourseServiceDep,
    progress_service: ProgressServiceDep,
) -> EnrollmentListResponse:
    """List a course's enrollments (course owner or ADMIN)."""
    try:
        course = await course_service.require_course(course_id)
    except DomainError as e:
        raise handle_domain_error(e) from e

    if not is_owner_or_admin(user, course.creator_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the course owner can view its roster",
        )

    enrollments = await progress_service.list_course_enrollments(course_id)
    items = [EnrollmentResponse.from_entity(e) for e in enrollments]
    return EnrollmentListResponse(items=items, total=len(items))
