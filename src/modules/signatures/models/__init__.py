from .signature_log import (
    SignatureLog, Signer, TechnicalInfo, LegalInfo, Consents, AuditInfo,
    RETENTION_YEARS
)

__all__ = [
    'SignatureLog', 'Signer', 'TechnicalInfo', 'LegalInfo', 'Consents',
    'AuditInfo', 'RETENTION_YEARS'
]
