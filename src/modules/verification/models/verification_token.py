from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Dict, Optional

from modules.common.schemas import CamelModel
from modules.submissions.schemas.submission_schemas import DocumentType


class TokenRejection(str, PyEnum):
    NOT_FOUND = "not found"
    EXPIRED = "expired"
    ALREADY_VERIFIED = "already verified"


class VerificationToken(CamelModel):
    """A pending double opt-in request and everything needed to resume it"""
    token: str
    created_at: datetime
    expires_at: datetime

    document_type: DocumentType = DocumentType.MEMBERSHIP_APPLICATION
    form_data: Dict[str, Any]
    signature_data_url: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    verified: bool = False
    verified_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class TokenValidation(CamelModel):
    valid: bool
    data: Optional[VerificationToken] = None
    reason: Optional[TokenRejection] = None


class VerificationStats(CamelModel):
    total: int
    verified: int
    pending: int
    expired: int
    verification_rate: float
