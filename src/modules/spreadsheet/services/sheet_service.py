import logging
import threading
from typing import Dict, List, Optional

from modules.certificates.models.certificate import StoredCertificate
from modules.common.timeutils import Clock, utc_now
from modules.receipts.models.receipt import IssuedReceipt, PaymentMethod
from modules.signatures.models.signature_log import SignatureLog
from modules.signatures.services.signature_log_service import SignatureLogService
from modules.spreadsheet.repositories.sheet_repository import SheetRepository
from modules.submissions.schemas.submission_schemas import (
    DocumentType, MembershipApplication, Submission
)

logger = logging.getLogger(__name__)

MEMBERS_SHEET = "members"
RENEWALS_SHEET = "renewals"
SIGNATURES_SHEET = "signatures"
RECEIPTS_SHEET = "receipts"
RECEIPT_COUNTER_REF = "A1"
CERTIFICATES_SHEET = "certificates"
INSTRUCTORS_SHEET = "instructors"
CASH_SHEET = "cash"
# cash taken without issuing a receipt
CASH_B_SHEET = "cash_b"

STATUS_PENDING = "PENDING"
STATUS_VERIFIED = "VERIFIED"

MEMBER_COLUMNS = [
    "timestamp", "name", "surname", "email", "birthPlace", "birthDate", "address",
    "city", "province", "postalCode", "taxCode", "phone",
    "firstDog", "secondDog",
    "consentPrivacy", "consentSocial", "consentRules", "consentNewsletter",
    "status", "documentId", "hasDigitalSignature", "documentHash", "accountUid",
]

RENEWAL_COLUMNS = [
    "timestamp", "name", "surname", "email", "taxCode",
    "consentPrivacy", "consentSocial", "consentRules", "consentNewsletter",
    "signatureTimestamp", "signatureHash", "documentHash", "signatureIp", "signatureUserAgent",
    "status", "hasDigitalSignature", "accountCreated", "accountUid", "documentId", "year",
]

CERTIFICATE_COLUMNS = [
    "timestamp", "taxCode", "name", "surname", "email",
    "expiryDate", "fileName", "contentType", "size",
]

RECEIPT_COLUMNS = [
    "timestamp", "number", "receiptDate", "receivedFrom", "email", "purpose",
    "paymentMethod", "instructor", "amount", "status", "notes",
]

PAYMENT_COLUMNS = [
    "timestamp", "number", "receiptDate", "receivedFrom", "purpose", "paymentMethod", "instructor", "amount",
]


def _yes_no(value: bool) -> str:
    return "Sì" if value else "No"


def _as_dict(columns: List[str], values: List) -> Dict:
    return dict(zip(columns, values))


class SheetService:
    """Membership rows on top of the append-only sheet store"""

    def __init__(self, repository: SheetRepository, clock: Clock = utc_now):
        self.repository = repository
        self.clock = clock
        self._counter_lock = threading.Lock()

    def record_submission(
        self,
        document_type: DocumentType,
        submission: Submission,
        status: str,
        document_id: Optional[str] = None,
        signature_log: Optional[SignatureLog] = None,
        account_uid: Optional[str] = None,
    ):
        if document_type == DocumentType.RENEWAL:
            self._append_renewal(submission, status, document_id, signature_log, account_uid)
        else:
            self._append_member(submission, status, document_id, signature_log, account_uid)

        if signature_log is not None:
            self.repository.append_row(SIGNATURES_SHEET, SignatureLogService.to_sheet_row(signature_log))

    def _append_member(self, submission, status, document_id, signature_log, account_uid):
        is_application = isinstance(submission, MembershipApplication)
        row = {
            "timestamp": self.clock().isoformat(),
            "name": submission.name,
            "surname": submission.surname,
            "email": submission.email,
            "taxCode": submission.tax_code,
            "consentPrivacy": _yes_no(submission.consent_privacy),
            "consentSocial": _yes_no(submission.consent_social),
            "consentRules": _yes_no(submission.consent_rules),
            "consentNewsletter": _yes_no(submission.consent_newsletter),
            "status": status,
            "documentId": document_id or "",
            "hasDigitalSignature": _yes_no(submission.has_signature),
            "documentHash": signature_log.document_hash if signature_log else "",
            "accountUid": account_uid or "",
        }
        if is_application:
            row.update({
                "birthPlace": submission.birth_place,
                "birthDate": submission.birth_date.isoformat(),
                "address": submission.address,
                "city": submission.city,
                "province": submission.province,
                "postalCode": submission.postal_code,
                "phone": submission.phone,
                "firstDog": submission.first_dog.name if submission.first_dog else "",
                "secondDog": submission.second_dog.name if submission.second_dog else "",
            })
        self.repository.append_row(MEMBERS_SHEET, [row.get(c, "") for c in MEMBER_COLUMNS])

    def _append_renewal(self, submission, status, document_id, signature_log, account_uid):
        now = self.clock()
        row = {
            "timestamp": now.isoformat(),
            "name": submission.name,
            "surname": submission.surname,
            "email": submission.email,
            "taxCode": submission.tax_code,
            "consentPrivacy": _yes_no(submission.consent_privacy),
            "consentSocial": _yes_no(submission.consent_social),
            "consentRules": _yes_no(submission.consent_rules),
            "consentNewsletter": _yes_no(submission.consent_newsletter),
            "signatureTimestamp": signature_log.signature_timestamp.isoformat() if signature_log else "N/A",
            "signatureHash": signature_log.signature_hash if signature_log else "N/A",
            "documentHash": signature_log.document_hash if signature_log else "N/A",
            "signatureIp": signature_log.technical.ip_address if signature_log else "N/A",
            "signatureUserAgent": signature_log.technical.user_agent if signature_log else "N/A",
            "status": status,
            "hasDigitalSignature": _yes_no(signature_log is not None),
            "accountCreated": _yes_no(account_uid is not None),
            "accountUid": account_uid or "N/A",
            "documentId": document_id or "",
            "year": now.year,
        }
        self.repository.append_row(RENEWALS_SHEET, [row[c] for c in RENEWAL_COLUMNS])

    def members(self) -> List[Dict]:
        return [_as_dict(MEMBER_COLUMNS, v) for v in self.repository.find_rows(MEMBERS_SHEET)]

    def renewals(self) -> List[Dict]:
        return [_as_dict(RENEWAL_COLUMNS, v) for v in self.repository.find_rows(RENEWALS_SHEET)]

    def next_receipt_number(self) -> int:
        """Reads, increments and writes back the receipt counter cell."""
        with self._counter_lock:
            current = self.repository.read_cell(RECEIPTS_SHEET, RECEIPT_COUNTER_REF)
            number = int(current or 0) + 1
            self.repository.write_cell(RECEIPTS_SHEET, RECEIPT_COUNTER_REF, str(number))
        logger.info("Receipt number assigned: %d", number)
        return number

    def last_receipt_number(self) -> int:
        return int(self.repository.read_cell(RECEIPTS_SHEET, RECEIPT_COUNTER_REF) or 0)

    def record_receipt(self, receipt: IssuedReceipt):
        """Receipt register row, plus the instructor and cash ledgers."""
        row = {
            "timestamp": receipt.issued_at.isoformat(),
            "number": receipt.number,
            "receiptDate": receipt.receipt_date.isoformat(),
            "receivedFrom": receipt.received_from,
            "email": receipt.payer_email,
            "purpose": receipt.purpose,
            "paymentMethod": receipt.payment_method.value,
            "instructor": receipt.instructor,
            "amount": f"{receipt.amount:.2f}",
            "status": "Emessa",
            "notes": f"Ricevuta n. {receipt.number}",
        }
        self.repository.append_row(RECEIPTS_SHEET, [row[c] for c in RECEIPT_COLUMNS])
        self._append_payment(receipt, CASH_SHEET)

    def record_payment(self, receipt: IssuedReceipt):
        """Payment taken without a receipt."""
        self._append_payment(receipt, CASH_B_SHEET)

    def _append_payment(self, receipt: IssuedReceipt, cash_sheet: str):
        row = {
            "timestamp": receipt.issued_at.isoformat(),
            "number": receipt.number or "",
            "receiptDate": receipt.receipt_date.isoformat(),
            "receivedFrom": receipt.received_from,
            "purpose": receipt.purpose,
            "paymentMethod": receipt.payment_method.value,
            "instructor": receipt.instructor,
            "amount": f"{receipt.amount:.2f}",
        }
        values = [row[c] for c in PAYMENT_COLUMNS]
        self.repository.append_row(INSTRUCTORS_SHEET, values)
        if receipt.payment_method == PaymentMethod.CASH:
            self.repository.append_row(cash_sheet, values)

    def receipts(self) -> List[Dict]:
        return [_as_dict(RECEIPT_COLUMNS, v) for v in self.repository.find_rows(RECEIPTS_SHEET)]

    def payments(self, sheet: str) -> List[Dict]:
        return [_as_dict(PAYMENT_COLUMNS, v) for v in self.repository.find_rows(sheet)]

    def record_certificate(self, tax_code: str, member: Dict, certificate: StoredCertificate):
        row = {
            "timestamp": certificate.uploaded_at.isoformat(),
            "taxCode": tax_code,
            "name": member.get("name") or "",
            "surname": member.get("surname") or "",
            "email": member.get("email") or "",
            "expiryDate": certificate.expiry_date.isoformat(),
            "fileName": certificate.file_name,
            "contentType": certificate.content_type,
            "size": certificate.size,
        }
        self.repository.append_row(CERTIFICATES_SHEET, [row[c] for c in CERTIFICATE_COLUMNS])

    def certificates(self) -> List[Dict]:
        return [_as_dict(CERTIFICATE_COLUMNS, v) for v in self.repository.find_rows(CERTIFICATES_SHEET)]
