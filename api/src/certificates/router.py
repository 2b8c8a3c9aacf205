"""Certificate API endpoints.

Provides routes for:
- Listing the caller's certificates
- Public verification by number
- PDF location write-back (admin / rendering collaborator)
"""

from fastapi import APIRouter, HTTPException, status

from src.auth.dependencies import CertificateManager, CurrentUser
from src.certificates.dependencies import CertificateServiceDep
from src.certificates.schemas import (
    AttachPdfRequest,
    CertificateListResponse,
    CertificateResponse,
    CertificateVerificationResponse,
)
from src.core.exceptions import DomainError, handle_domain_error


router = APIRouter(prefix="/v1/certificates", tags=["certificates"])


@router.get(
    "/my",
    response_model=CertificateListResponse,
    summary="List my certificates",
)
async def list_my_certificates(
    user: CurrentUser,
    certificate_service: CertificateServiceDep,
) -> CertificateListResponse:
    """List the caller's certificates, newest first."""
    certificates = await certificate_service.list_for_user(user.id)
    items = [certificate_service.to_response(c) for c in certificates]
    return CertificateListResponse(items=items, total=len(items))


@router.get(
    "/verify/{certificate_number}",
    response_model=CertificateVerificationResponse,
    summary="Verify a certificate",
)
async def verify_certificate(
    certificate_number: str,
    certificate_service: CertificateServiceDep,
) -> CertificateVerificationResponse:
    """Check that a certificate number was issued (public)."""
    certificate = await certificate_service.verify(certificate_number)
    if certificate is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": "Certificate not found", "code": "certificate_not_found"},
        )

    return CertificateVerificationResponse(
        valid=True,
        certificate_number=certificate.certificate_number,
        course_id=certificate.course_id,
        issued_at=certificate.issued_at,
    )


@router.put(
    "/{certificate_number}/pdf",
    response_model=CertificateResponse,
    summary="Attach rendered PDF",
)
async def attach_certificate_pdf(
    certificate_number: str,
    data: AttachPdfRequest,
    _user: CertificateManager,
    certificate_service: CertificateServiceDep,
) -> CertificateResponse:
    """Record the location of a rendered certificate PDF."""
    try:
        certificate = await certificate_service.attach_pdf(
            certificate_number, data.pdf_location
        )
    except DomainError as e:
        raise handle_domain_error(e) from e

    return certificate_service.to_response(certificate)
