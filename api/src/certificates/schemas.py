"""Pydantic schemas for certificates."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CertificateResponse(BaseModel):
    """Certificate response."""

    model_config = ConfigDict(from_attributes=True)

    certificate_number: str
    enrollment_id: UUID
    user_id: UUID
    course_id: UUID
    issued_at: datetime
    pdf_location: str | None = None


class CertificateListResponse(BaseModel):
    """List of certificates."""

    items: list[CertificateResponse]
    total: int


class CertificateVerificationResponse(BaseModel):
    """Public verification result (no personal data beyond ids)."""

    valid: bool
    certificate_number: str
    course_id: UUID | None = None
    issued_at: datetime | None = None


class AttachPdfRequest(BaseModel):
    """Write-back from the PDF collaborator."""

    pdf_location: str = Field(..., min_length=1, max_length=1000)
