"""Certificate service layer.

Business logic for:
- Issuing at most one certificate per completed enrollment
- Listing a student's certificates
- Public verification by certificate number
- PDF location write-back from the rendering collaborator
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from src.certificates.models import Certificate, generate_certificate_number
from src.certificates.schemas import CertificateResponse
from src.core.exceptions import ConflictError, NotFoundError


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from src.progress.models import Enrollment

logger = structlog.get_logger(__name__)

NUMBER_ATTEMPTS = 3


class CertificateNotFoundError(NotFoundError):
    """Certificate not found."""

    default_message = "Certificate not found"
    default_code = "certificate_not_found"


class CertificateNumberConflictError(ConflictError):
    """No free certificate number could be reserved."""

    default_message = "Could not reserve a certificate number"
    default_code = "certificate_number_conflict"


class CertificateService:
    """Service for certificate issuance and lookup."""

    def __init__(self, session: "Session", keyspace: str, number_prefix: str = "LH"):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self.number_prefix = number_prefix
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._insert_certificate = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates
            (enrollment_id, certificate_number, user_id, course_id, issued_at, pdf_location)
            VALUES (?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._insert_certificate_by_number = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates_by_number
            (certificate_number, enrollment_id, user_id, course_id, issued_at, pdf_location)
            VALUES (?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._set_number = self.session.prepare(f"""
            UPDATE {self.keyspace}.certificates SET certificate_number = ?
            WHERE enrollment_id = ?
            IF certificate_number = ?
        """)
        self._delete_certificate = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.certificates
            WHERE enrollment_id = ?
            IF certificate_number = ?
        """)
        self._insert_certificate_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates_by_user
            (user_id, issued_at, enrollment_id, certificate_number, course_id, pdf_location)
            VALUES (?, ?, ?, ?, ?, ?)
        """)

        self._get_by_enrollment = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.certificates WHERE enrollment_id = ?"
        )
        self._get_by_number = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.certificates_by_number WHERE certificate_number = ?"
        )
        self._get_by_user = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.certificates_by_user WHERE user_id = ?"
        )

        self._set_pdf = self.session.prepare(f"""
            UPDATE {self.keyspace}.certificates SET pdf_location = ?
            WHERE enrollment_id = ?
        """)
        self._set_pdf_by_number = self.session.prepare(f"""
            UPDATE {self.keyspace}.certificates_by_number SET pdf_location = ?
            WHERE certificate_number = ?
        """)
        self._set_pdf_by_user = self.session.prepare(f"""
            UPDATE {self.keyspace}.certificates_by_user SET pdf_location = ?
            WHERE user_id = ? AND issued_at = ? AND enrollment_id = ?
        """)

    # ==========================================================================
    # Issuance
    # ==========================================================================

    async def issue(self, enrollment: "Enrollment") -> Certificate:
        """Issue the certificate for a completed enrollment.

        The row keyed by enrollment id is inserted IF NOT EXISTS, so
        repeated or concurrent calls all resolve to the same certificate.

        Returns:
            The newly issued certificate, or the one issued earlier

        Raises:
            CertificateNumberConflictError: If no certificate number was free
        """
        issued_at = datetime.now(UTC)
        certificate = Certificate(
            enrollment_id=enrollment.id,
            certificate_number=generate_certificate_number(self.number_prefix, issued_at),
            user_id=enrollment.user_id,
            course_id=enrollment.course_id,
            issued_at=issued_at,
        )

        result = await self.session.aexecute(
            self._insert_certificate,
            [
                certificate.enrollment_id,
                certificate.certificate_number,
                certificate.user_id,
                certificate.course_id,
                certificate.issued_at,
                certificate.pdf_location,
            ],
        )

        if not result.was_applied:
            existing = await self.get_for_enrollment(enrollment.id)
            logger.info(
                "certificate_already_issued",
                enrollment_id=str(enrollment.id),
                certificate_number=existing.certificate_number if existing else None,
            )
            if existing is None:
                raise CertificateNotFoundError
            return existing

        await self._reserve_number(certificate)

        await self.session.aexecute(
            self._insert_certificate_by_user,
            [
                certificate.user_id,
                certificate.issued_at,
                certificate.enrollment_id,
                certificate.certificate_number,
                certificate.course_id,
                certificate.pdf_location,
            ],
        )

        logger.info(
            "certificate_issued",
            certificate_number=certificate.certificate_number,
            enrollment_id=str(enrollment.id),
            user_id=str(enrollment.user_id),
            course_id=str(enrollment.course_id),
        )
        return certificate

    async def _reserve_number(self, certificate: Certificate) -> None:
        """Claim the certificate's number in the public lookup table.

        A taken number is replaced by a fresh one on the enrollment row.
        When every attempt collides the enrollment row is released, so a
        later completion check can issue again.

        Raises:
            CertificateNumberConflictError: If no number could be reserved
        """
        issued_number = certificate.certificate_number
        for _ in range(NUMBER_ATTEMPTS):
            lookup = await self.session.aexecute(
                self._insert_certificate_by_number,
                [
                    certificate.certificate_number,
                    certificate.enrollment_id,
                    certificate.user_id,
                    certificate.course_id,
                    certificate.issued_at,
                    certificate.pdf_location,
                ],
            )
            if lookup.was_applied:
                break
            logger.warning(
                "certificate_number_collision",
                certificate_number=certificate.certificate_number,
                enrollment_id=str(certificate.enrollment_id),
            )
            certificate.certificate_number = generate_certificate_number(
                self.number_prefix, certificate.issued_at
            )
        else:
            await self.session.aexecute(
                self._delete_certificate, [certificate.enrollment_id, issued_number]
            )
            raise CertificateNumberConflictError

        if certificate.certificate_number != issued_number:
            await self.session.aexecute(
                self._set_number,
                [certificate.certificate_number, certificate.enrollment_id, issued_number],
            )

    # ==========================================================================
    # Lookup
    # ==========================================================================

    async def get_for_enrollment(self, enrollment_id: UUID) -> Certificate | None:
        """Get the certificate issued for an enrollment."""
        result = await self.session.aexecute(self._get_by_enrollment, [enrollment_id])
        row = result.one()
        return Certificate.from_row(row) if row else None

    async def list_for_user(self, user_id: UUID) -> list[Certificate]:
        """List a student's certificates, newest first."""
        rows = await self.session.aexecute(self._get_by_user, [user_id])
        return [Certificate.from_row(row) for row in rows]

    async def verify(self, certificate_number: str) -> Certificate | None:
        """Look up a certificate by its public number."""
        result = await self.session.aexecute(
            self._get_by_number, [certificate_number.strip()]
        )
        row = result.one()
        return Certificate.from_row(row) if row else None

    async def attach_pdf(self, certificate_number: str, pdf_location: str) -> Certificate:
        """Record where the rendered PDF of a certificate lives.

        Raises:
            CertificateNotFoundError: If the number is unknown
        """
        certificate = await self.verify(certificate_number)
        if certificate is None:
            raise CertificateNotFoundError

        await self.session.aexecute(
            self._set_pdf, [pdf_location, certificate.enrollment_id]
        )
        await self.session.aexecute(
            self._set_pdf_by_number, [pdf_location, certificate.certificate_number]
        )
        await self.session.aexecute(
            self._set_pdf_by_user,
            [
                pdf_location,
                certificate.user_id,
                certificate.issued_at,
                certificate.enrollment_id,
            ],
        )

        certificate.pdf_location = pdf_location
        logger.info(
            "certificate_pdf_attached",
            certificate_number=certificate.certificate_number,
            pdf_location=pdf_location,
        )
        return certificate

    def to_response(self, certificate: Certificate) -> CertificateResponse:
        """Convert Certificate entity to response schema."""
        return CertificateResponse(**certificate.to_dict())
