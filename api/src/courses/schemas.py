"""Pydantic schemas for the course catalog.

Request and response models for:
- Courses: creation and detail
- Modules: adding ordered modules to a course
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.courses.models import ContentStatus, ContentType


# ==============================================================================
# Course Schemas
# ==============================================================================


class CreateCourseRequest(BaseModel):
    """Course creation request."""

    title: str = Field(..., min_length=3, max_length=200, description="Course title")
    description: str | None = Field(
        None, max_length=5000, description="Course description"
    )


class CourseResponse(BaseModel):
    """Course response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str | None = None
    status: ContentStatus
    creator_id: UUID | None = None
    created_at: datetime
    updated_at: datetime | None = None
    module_count: int = 0


# ==============================================================================
# Module Schemas
# ==============================================================================


class CreateModuleRequest(BaseModel):
    """Add a module at the end of a course."""

    title: str = Field(..., min_length=1, max_length=200, description="Module title")
    content_type: ContentType = Field(ContentType.TEXT, description="Content type")


class ModuleResponse(BaseModel):
    """Module within a course."""

    model_config = ConfigDict(from_attributes=True)

    module_id: UUID
    course_id: UUID
    position: int
    title: str
    content_type: ContentType


class CourseDetailResponse(CourseResponse):
    """Course with its ordered modules."""

    modules: list[ModuleResponse] = Field(default_factory=list)
