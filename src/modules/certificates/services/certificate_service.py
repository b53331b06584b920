import io
import logging
from datetime import date
from pathlib import Path
from typing import Dict, Optional

from PyPDF2 import PdfReader

from modules.certificates.models.certificate import (
    ALLOWED_CONTENT_TYPES, MAX_CERTIFICATE_SIZE, CertificateForm,
    CertificateUploadResult, MemberProfile, StoredCertificate
)
from modules.common.timeutils import Clock, epoch_millis, utc_now
from modules.notifications.services.notification_service import NotificationService
from modules.spreadsheet.services.sheet_service import SheetService
from modules.submissions.services.renewal_service import RenewalService

logger = logging.getLogger(__name__)


class CertificateError(Exception):
    """Base error for medical certificate uploads"""
    pass


class MemberNotFoundError(CertificateError):
    """No verified member has the given tax code"""
    pass


class EmailMismatchError(CertificateError):
    """The confirmation email differs from the member's email"""
    pass


class InvalidCertificateError(CertificateError):
    """The uploaded file or its expiry date is not acceptable"""
    pass


def emails_match(expected: Optional[str], given: str) -> bool:
    """Case-insensitive, ignoring surrounding whitespace."""
    if not expected:
        return False
    return expected.strip().casefold() == given.strip().casefold()


class CertificateService:
    """
    Medical certificates uploaded by members.

    Files are stored as <TAXCODE>_scadenza-<YYYY-MM-DD>_<millis>.<ext> and a
    row is appended to the certificates sheet; the latest row gives the
    member's current expiry date.
    """

    def __init__(
        self,
        certificates_dir: Path,
        renewals: RenewalService,
        sheets: SheetService,
        notifications: NotificationService,
        clock: Clock = utc_now,
    ):
        self.certificates_dir = Path(certificates_dir)
        self.certificates_dir.mkdir(parents=True, exist_ok=True)
        self.renewals = renewals
        self.sheets = sheets
        self.notifications = notifications
        self.clock = clock

    def find_member(self, tax_code: str) -> Optional[MemberProfile]:
        row = self.renewals.find_member(tax_code)
        if row is None:
            return None
        return self._profile(tax_code, row)

    def upload(
        self, form: CertificateForm, filename: Optional[str], content_type: Optional[str], content: bytes
    ) -> CertificateUploadResult:
        extension = self._check_file(content_type, content)
        if form.expiry_date <= self.clock().date():
            raise InvalidCertificateError("expiry date must be in the future")

        row = self.renewals.find_member(form.tax_code)
        if row is None:
            raise MemberNotFoundError(f"No member with tax code {form.tax_code}")
        if not emails_match(row.get("email"), form.email_confirm):
            logger.info("Certificate upload refused, email mismatch for %s", form.tax_code)
            raise EmailMismatchError("email does not match the member's email")

        stored = self._store(form, filename, extension, content_type, content)
        logger.info("Certificate stored for %s: %s", form.tax_code, stored.file_name)
        try:
            self.sheets.record_certificate(form.tax_code, row, stored)
        except Exception:
            logger.warning("Certificate row not recorded for %s", stored.file_name, exc_info=True)

        member = self._profile(form.tax_code, row).model_copy(
            update={"medical_certificate_expiry": form.expiry_date}
        )

        email_sent = True
        try:
            self.notifications.send_certificate_received(member, stored)
        except Exception:
            email_sent = False
            logger.warning("Certificate confirmation failed for %s", form.tax_code, exc_info=True)

        admin_notified = True
        try:
            admin_notified = self.notifications.send_certificate_notice(member, stored, content) is not None
        except Exception:
            admin_notified = False
            logger.warning("Certificate notice failed for %s", form.tax_code, exc_info=True)

        return CertificateUploadResult(
            member=member, file=stored, email_sent=email_sent, admin_notified=admin_notified
        )

    def current_expiry(self, tax_code: str) -> Optional[date]:
        latest = None
        for row in self.sheets.certificates():
            if str(row.get("taxCode") or "").upper() == tax_code.upper():
                latest = row
        return date.fromisoformat(latest["expiryDate"]) if latest else None

    def _profile(self, tax_code: str, row: Dict) -> MemberProfile:
        return MemberProfile(
            name=row.get("name"),
            surname=row.get("surname"),
            email=row.get("email"),
            tax_code=tax_code,
            medical_certificate_expiry=self.current_expiry(tax_code),
        )

    @staticmethod
    def _check_file(content_type: Optional[str], content: bytes) -> str:
        extension = ALLOWED_CONTENT_TYPES.get((content_type or "").lower())
        if extension is None:
            raise InvalidCertificateError("file must be a PDF or an image (JPG, PNG, HEIC)")
        if not content:
            raise InvalidCertificateError("file is empty")
        if len(content) > MAX_CERTIFICATE_SIZE:
            raise InvalidCertificateError("file exceeds the 10 MB limit")
        if extension == "pdf":
            try:
                reader = PdfReader(io.BytesIO(content))
                _ = reader.pages[0]
            except Exception as e:
                raise InvalidCertificateError("PDF is invalid or damaged") from e
        return extension

    def _store(
        self, form: CertificateForm, original_name: Optional[str], extension: str, content_type: str, content: bytes
    ) -> StoredCertificate:
        now = self.clock()
        file_name = f"{form.tax_code}_scadenza-{form.expiry_date.isoformat()}_{epoch_millis(now)}.{extension}"
        path = self.certificates_dir / file_name
        with open(path, "xb") as f:
            f.write(content)
        return StoredCertificate(
            file_name=file_name,
            original_name=original_name,
            path=f"{self.certificates_dir.name}/{file_name}",
            content_type=content_type.lower(),
            size=len(content),
            expiry_date=form.expiry_date,
            uploaded_at=now,
        )
