"""Pydantic schemas for enrollment and progress tracking.

Request and response models for:
- Course enrollment
- Module completion
- Progress queries
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import Enrollment, EnrollmentStatus


# ==============================================================================
# Enrollment Schemas
# ==============================================================================


class EnrollRequest(BaseModel):
    """Request to enroll the caller in a course."""

    course_id: UUID = Field(..., description="Course UUID")


class EnrollmentResponse(BaseModel):
    """Enrollment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    course_id: UUID
    status: EnrollmentStatus
    progress_percent: int = Field(ge=0, le=100, description="0-100 percentage")
    modules_completed: int = 0
    modules_total: int = 0
    enrolled_at: datetime
    completed_at: datetime | None = None
    dropped_at: datetime | None = None
    last_accessed_at: datetime | None = None
    last_module_id: UUID | None = None

    @classmethod
    def from_entity(cls, entity: Enrollment) -> "EnrollmentResponse":
        """Create response from entity."""
        return cls(**entity.to_dict())


class EnrollmentListResponse(BaseModel):
    """List of enrollments."""

    items: list[EnrollmentResponse]
    total: int


# ==============================================================================
# Module Completion Schemas
# ==============================================================================


class CompleteModuleRequest(BaseModel):
    """Mark a module complete within an enrollment."""

    enrollment_id: UUID = Field(..., description="Enrollment UUID")


class ModuleProgressResponse(BaseModel):
    """Progress of one course module."""

    module_id: UUID
    position: int
    title: str
    completed: bool = False
    completed_at: datetime | None = None


class EnrollmentModulesResponse(BaseModel):
    """Per-module progress of an enrollment."""

    enrollment: EnrollmentResponse
    modules: list[ModuleProgressResponse]
