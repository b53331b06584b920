from datetime import datetime

from pydantic import ConfigDict

from modules.common.schemas import CamelModel

SIGNATURE_METHOD = "html5-canvas"
RETENTION_YEARS = 10


class Signer(CamelModel):
    name: str
    surname: str
    email: str
    tax_code: str


class TechnicalInfo(CamelModel):
    ip_address: str
    user_agent: str
    signature_method: str = SIGNATURE_METHOD
    pdf_version: str = "1.4"


class LegalInfo(CamelModel):
    gdpr_compliant: bool = True
    eidas_compliant: bool = True
    data_retention_years: int = RETENTION_YEARS
    consent_given: bool
    consent_timestamp: datetime


class Consents(CamelModel):
    rules: bool
    privacy: bool
    social: bool
    newsletter: bool
    timestamp: datetime
    method: str = "digital-signature-form"


class AuditInfo(CamelModel):
    created_at: datetime
    version: str = "1.0"
    service: str = "signature_log_service"


class SignatureLog(CamelModel):
    """Point-in-time proof that a signature was captured for a document"""
    model_config = ConfigDict(frozen=True)

    document_id: str
    document_hash: str
    signature_hash: str
    signature_timestamp: datetime

    signer: Signer
    technical: TechnicalInfo
    legal: LegalInfo
    consents: Consents
    audit: AuditInfo
