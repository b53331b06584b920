from .certificate import (
    ALLOWED_CONTENT_TYPES, MAX_CERTIFICATE_SIZE, CertificateForm,
    CertificateUploadResult, MemberProfile, StoredCertificate
)

__all__ = [
    'ALLOWED_CONTENT_TYPES', 'MAX_CERTIFICATE_SIZE', 'CertificateForm',
    'CertificateUploadResult', 'MemberProfile', 'StoredCertificate'
]
