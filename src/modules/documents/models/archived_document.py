from datetime import datetime
from typing import Any, Dict, List, Optional

from modules.common.schemas import CamelModel
from modules.submissions.schemas.submission_schemas import DocumentType

MANUAL_SIGNATURE = "manual-signature-required"
DIGITAL_SIGNATURE = "html5-canvas-digital-signature"


class Associate(CamelModel):
    name: str
    surname: str
    tax_code: str
    email: str
    phone: Optional[str] = None


class SignatureSummary(CamelModel):
    method: str
    timestamp: Optional[datetime] = None
    document_hash: Optional[str] = None
    signature_hash: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    note: Optional[str] = None


class VerificationInfo(CamelModel):
    verified: bool
    verified_at: Optional[datetime] = None
    method: Optional[str] = None
    status: Optional[str] = None


class LegalCompliance(CamelModel):
    gdpr_compliant: bool = True
    eidas_compliant: bool
    cad_compliant: bool
    retention_policy: str
    consent_given: bool
    consent_timestamp: datetime


class ArchiveAudit(CamelModel):
    created_by: str = "system"
    created_at: datetime
    last_accessed_at: Optional[datetime] = None
    access_count: int = 0
    integrity: str = "verified"
    archive_version: str = "1.0"


class ArchiveMetadata(CamelModel):
    """Metadata file stored next to every archived PDF"""
    document_id: str
    document_type: DocumentType
    version: str = "1.0"
    has_digital_signature: bool

    archived_at: datetime
    retention_until: datetime

    associate: Associate
    signature: SignatureSummary
    verification: VerificationInfo
    legal: LegalCompliance
    audit: ArchiveAudit


class ArchiveReceipt(CamelModel):
    document_id: str
    archive_path: str
    retention_until: datetime
    checksum: str


class ArchivedDocument(CamelModel):
    pdf: bytes
    metadata: ArchiveMetadata
    integrity_valid: bool
    current_hash: str


class RetrievalResult(CamelModel):
    authorized: bool
    document: Optional[ArchivedDocument] = None
    error: Optional[str] = None


class DocumentSummary(CamelModel):
    document_id: str
    document_type: DocumentType
    archived_at: datetime
    retention_until: datetime
    verified: bool
    has_digital_signature: bool
    integrity_status: str


class DocumentListing(CamelModel):
    tax_code: str
    total_documents: int
    documents: List[DocumentSummary]


class ExportResult(CamelModel):
    success: bool
    export_data: Optional[Dict[str, Any]] = None
    file_name: Optional[str] = None
    error: Optional[str] = None


class IntegrityDetail(CamelModel):
    document_id: str
    status: str
    year: str
    expected_hash: Optional[str] = None
    actual_hash: Optional[str] = None


class IntegrityReport(CamelModel):
    total: int = 0
    valid: int = 0
    corrupted: int = 0
    missing: int = 0
    integrity_rate: float = 100.0
    details: List[IntegrityDetail] = []


class CleanupResult(CamelModel):
    deleted: int
    message: str


class ArchiveStats(CamelModel):
    total_documents: int = 0
    by_year: Dict[str, int] = {}
    total_size_bytes: int = 0
    verified: int = 0
    pending: int = 0
    oldest_document: Optional[datetime] = None
    newest_document: Optional[datetime] = None
