from .hashing import sha256_hex
from .signature_log_service import (
    SignatureLogService, SignatureLogError, anonymize_ip, sanitize_user_agent,
    make_document_id
)

__all__ = [
    'sha256_hex', 'SignatureLogService', 'SignatureLogError', 'anonymize_ip',
    'sanitize_user_agent', 'make_document_id'
]
