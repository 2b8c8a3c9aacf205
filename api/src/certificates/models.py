"""Database models for course completion certificates.

Tables:
- certificates: One certificate per enrollment (written IF NOT EXISTS)
- certificates_by_number: Public verification lookup
- certificates_by_user: A student's certificates, newest first
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

CERTIFICATE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates (
    enrollment_id UUID PRIMARY KEY,
    certificate_number TEXT,
    user_id UUID,
    course_id UUID,
    issued_at TIMESTAMP,
    pdf_location TEXT
)
"""

CERTIFICATES_BY_NUMBER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates_by_number (
    certificate_number TEXT PRIMARY KEY,
    enrollment_id UUID,
    user_id UUID,
    course_id UUID,
    issued_at TIMESTAMP,
    pdf_location TEXT
)
"""

CERTIFICATES_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates_by_user (
    user_id UUID,
    issued_at TIMESTAMP,
    enrollment_id UUID,
    certificate_number TEXT,
    course_id UUID,
    pdf_location TEXT,
    PRIMARY KEY (user_id, issued_at, enrollment_id)
) WITH CLUSTERING ORDER BY (issued_at DESC, enrollment_id ASC)
"""

CERTIFICATES_TABLES_CQL = [
    CERTIFICATE_TABLE_CQL,
    CERTIFICATES_BY_NUMBER_TABLE_CQL,
    CERTIFICATES_BY_USER_TABLE_CQL,
]


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def generate_certificate_number(prefix: str, issued_at: datetime) -> str:
    """Build a certificate number like ``LH-2025-9F1C...``.

    The suffix is a full random UUID4 in upper-case hex.
    """
    return f"{prefix}-{issued_at.year:04d}-{uuid4().hex.upper()}"


# ==============================================================================
# Entity Classes
# ==============================================================================


class Certificate:
    """Certificate of completion for one enrollment.

    Attributes:
        enrollment_id: Enrollment the certificate was issued for
        certificate_number: Public, unique identifier
        user_id: Student
        course_id: Completed course
        issued_at: Issue timestamp
        pdf_location: Where the rendered PDF lives, once generated
    """

    def __init__(
        self,
        enrollment_id: UUID,
        certificate_number: str,
        user_id: UUID,
        course_id: UUID,
        issued_at: datetime | None = None,
        pdf_location: str | None = None,
    ):
        self.enrollment_id = enrollment_id
        self.certificate_number = certificate_number
        self.user_id = user_id
        self.course_id = course_id
        self.issued_at = ensure_utc_aware(issued_at) or datetime.now(UTC)
        self.pdf_location = pdf_location

    @classmethod
    def from_row(cls, row: Any) -> "Certificate":
        """Create Certificate from Cassandra row."""
        return cls(
            enrollment_id=row.enrollment_id,
            certificate_number=row.certificate_number,
            user_id=row.user_id,
            course_id=row.course_id,
            issued_at=row.issued_at,
            pdf_location=row.pdf_location,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "enrollment_id": self.enrollment_id,
            "certificate_number": self.certificate_number,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "issued_at": self.issued_at,
            "pdf_location": self.pdf_location,
        }

    def __repr__(self) -> str:
        return f"<Certificate {self.certificate_number} enrollment={self.enrollment_id}>"
