from .certificate_service import (
    CertificateError, CertificateService, EmailMismatchError,
    InvalidCertificateError, MemberNotFoundError, emails_match
)

__all__ = [
    'CertificateError', 'CertificateService', 'EmailMismatchError',
    'InvalidCertificateError', 'MemberNotFoundError', 'emails_match'
]
