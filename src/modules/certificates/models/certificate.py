import re
from datetime import date, datetime
from typing import Optional

from pydantic import field_validator

from modules.common.schemas import CamelModel
from modules.submissions.schemas.submission_schemas import normalize_tax_code

# Content type -> stored file extension
ALLOWED_CONTENT_TYPES = {
    "application/pdf": "pdf",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/heic": "heic",
    "image/heif": "heif",
}
MAX_CERTIFICATE_SIZE = 10 * 1024 * 1024  # 10 MB

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$")


class MemberProfile(CamelModel):
    name: Optional[str] = None
    surname: Optional[str] = None
    email: Optional[str] = None
    tax_code: str
    medical_certificate_expiry: Optional[date] = None


class CertificateForm(CamelModel):
    """Text fields sent along with the certificate file"""
    tax_code: str
    email_confirm: str
    expiry_date: date

    @field_validator("tax_code")
    @classmethod
    def _check_tax_code(cls, value: str) -> str:
        return normalize_tax_code(value)

    @field_validator("email_confirm")
    @classmethod
    def _check_email(cls, value: str) -> str:
        value = value.strip()
        if not EMAIL_PATTERN.match(value):
            raise ValueError("invalid email address")
        return value


class StoredCertificate(CamelModel):
    file_name: str
    original_name: Optional[str] = None
    path: str
    content_type: str
    size: int
    expiry_date: date
    uploaded_at: datetime


class CertificateUploadResult(CamelModel):
    member: MemberProfile
    file: StoredCertificate
    email_sent: bool = False
    admin_notified: bool = False
