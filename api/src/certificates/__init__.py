"""Certificates module.

Issued once per completed enrollment; publicly verifiable by number.
"""

from src.certificates.router import router
from src.certificates.service import CertificateNotFoundError, CertificateService


__all__ = ["CertificateNotFoundError", "CertificateService", "router"]
