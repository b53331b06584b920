import logging
import threading
from contextlib import contextmanager
from enum import Enum as PyEnum
from typing import Optional, Tuple

from modules.auth.services.account_service import (
    AccountProvisioner, AccountProvisioningError, AccountRequest
)
from modules.common.schemas import CamelModel
from modules.common.timeutils import Clock, utc_now
from modules.documents.models.archived_document import VerificationInfo
from modules.documents.services.document_archive_service import ArchiveError, DocumentArchiveService
from modules.documents.services.pdf_service import PdfRenderError, PdfService
from modules.notifications.services.notification_service import NotificationService
from modules.signatures.services.signature_log_service import SignatureLogError, SignatureLogService
from modules.spreadsheet.services.sheet_service import SheetService, STATUS_PENDING, STATUS_VERIFIED
from modules.submissions.schemas.submission_schemas import (
    DocumentType, RequestMeta, Submission, parse_submission
)
from modules.verification.models.verification_token import TokenRejection
from modules.verification.repositories.token_repository import TOKEN_FORMAT
from modules.verification.services.verification_service import VerificationError, VerificationService

logger = logging.getLogger(__name__)

METHOD_IMMEDIATE = "immediate"
METHOD_DOUBLE_OPT_IN = "double-opt-in-email"


class LifecycleError(Exception):
    """Raised when a submission cannot be rendered, signed or archived"""
    pass


class SubmissionStatus(str, PyEnum):
    PENDING = "PENDING"
    COMPLETE = "COMPLETE"


class SubmissionResult(CamelModel):
    status: SubmissionStatus
    verification_required: bool
    document_id: Optional[str] = None
    email_sent: bool = False
    spreadsheet_updated: bool = False
    account_created: bool = False
    account_uid: Optional[str] = None
    account_error: Optional[str] = None


class VerificationOutcome(CamelModel):
    valid: bool
    document_id: Optional[str] = None
    error: Optional[str] = None


class SubmissionLifecycle:
    """
    Drives one submission from reception to the archive.

    Rendering, signing and archiving are fatal steps and raise
    LifecycleError. Account creation, emails and the spreadsheet row are
    best effort and only show up as flags on the result.
    """

    def __init__(
        self,
        pdf: PdfService,
        signature_logs: SignatureLogService,
        tokens: VerificationService,
        archive: DocumentArchiveService,
        notifications: NotificationService,
        sheets: SheetService,
        accounts: AccountProvisioner,
        double_opt_in: bool = True,
        clock: Clock = utc_now,
    ):
        self.pdf = pdf
        self.signature_logs = signature_logs
        self.tokens = tokens
        self.archive = archive
        self.notifications = notifications
        self.sheets = sheets
        self.accounts = accounts
        self.double_opt_in = double_opt_in
        self.clock = clock

        self._locks_guard = threading.Lock()
        self._token_locks = {}

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def process_new_submission(
        self,
        submission: Submission,
        request_meta: RequestMeta,
        document_type: DocumentType = DocumentType.MEMBERSHIP_APPLICATION,
        double_opt_in: Optional[bool] = None,
    ) -> SubmissionResult:
        account_uid, account_created, account_error = self._provision_account(submission)

        opt_in = self.double_opt_in if double_opt_in is None else double_opt_in
        if submission.has_signature and opt_in:
            result = self._request_verification(submission, request_meta, document_type)
        else:
            result = self.finalize(
                submission, request_meta, document_type, METHOD_IMMEDIATE, account_uid
            )

        return result.model_copy(update={
            "account_created": account_created,
            "account_uid": account_uid,
            "account_error": account_error,
        })

    def complete_verification(self, token: str) -> VerificationOutcome:
        """
        Finalizes the submission stored in a verification token.

        Validation, archiving and marking the token as used run under a
        per-token lock, so a link clicked twice archives only once. The token
        is only marked after a successful archive.
        """
        if not token or not TOKEN_FORMAT.match(token):
            logger.info("Verification rejected (malformed token)")
            return VerificationOutcome(valid=False, error=TokenRejection.NOT_FOUND.value)

        with self._token_lock(token):
            validation = self.tokens.validate(token)
            if not validation.valid:
                logger.info("Verification rejected (%s): %s...", validation.reason.value, token[:16])
                return VerificationOutcome(valid=False, error=validation.reason.value)

            record = validation.data
            submission = parse_submission(
                {**record.form_data, "signatureDataUrl": record.signature_data_url},
                record.document_type,
            )
            request_meta = RequestMeta(ip_address=record.ip_address, user_agent=record.user_agent)

            account_uid = None
            if submission.create_app_account:
                account_uid = self._find_account(submission)

            result = self.finalize(
                submission, request_meta, record.document_type, METHOD_DOUBLE_OPT_IN, account_uid
            )
            self._mark_used(token, result.document_id)

        logger.info("Verification completed: %s", result.document_id)
        return VerificationOutcome(valid=True, document_id=result.document_id)

    def finalize(
        self,
        submission: Submission,
        request_meta: RequestMeta,
        document_type: DocumentType,
        method: str,
        account_uid: Optional[str] = None,
    ) -> SubmissionResult:
        """Renders, signs and archives, then notifies and records the row."""
        try:
            pdf_bytes = self.pdf.render(submission, document_type)

            signature_log = None
            if submission.has_signature:
                signature_log = self.signature_logs.build(
                    submission,
                    submission.signature_data_url,
                    pdf_bytes,
                    request_meta.ip_address,
                    request_meta.user_agent,
                )
                self.signature_logs.persist(signature_log)

            receipt = self.archive.archive(
                pdf_bytes,
                submission,
                signature_log=signature_log,
                verification_info=VerificationInfo(
                    verified=True,
                    verified_at=self.clock(),
                    method=method,
                    status="verified",
                ),
                document_type=document_type,
            )
        except (PdfRenderError, SignatureLogError, ArchiveError, OSError) as e:
            logger.error("Submission could not be finalized: %s", e)
            raise LifecycleError(str(e)) from e

        email_sent = self._send_emails(submission, document_type, receipt.document_id, pdf_bytes)
        spreadsheet_updated = self._record_row(
            document_type, submission, STATUS_VERIFIED,
            document_id=receipt.document_id,
            signature_log=signature_log,
            account_uid=account_uid,
        )

        return SubmissionResult(
            status=SubmissionStatus.COMPLETE,
            verification_required=False,
            document_id=receipt.document_id,
            email_sent=email_sent,
            spreadsheet_updated=spreadsheet_updated,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _request_verification(
        self, submission: Submission, request_meta: RequestMeta, document_type: DocumentType
    ) -> SubmissionResult:
        try:
            record = self.tokens.issue(submission, document_type, request_meta)
        except OSError as e:
            logger.error("Verification token could not be stored: %s", e)
            raise LifecycleError(f"Could not store verification token: {e}") from e

        email_sent = True
        try:
            self.notifications.send_verification_email(
                submission, document_type, self.tokens.verification_url(record.token)
            )
        except Exception:
            email_sent = False
            logger.warning("Verification email failed for %s...", record.token[:16], exc_info=True)

        spreadsheet_updated = self._record_row(document_type, submission, STATUS_PENDING)
        return SubmissionResult(
            status=SubmissionStatus.PENDING,
            verification_required=True,
            email_sent=email_sent,
            spreadsheet_updated=spreadsheet_updated,
        )

    def _provision_account(self, submission: Submission) -> Tuple[Optional[str], bool, Optional[str]]:
        if not submission.create_app_account:
            return None, False, None
        try:
            account = self.accounts.create_account(AccountRequest(
                method=submission.auth_method or "password",
                credential=submission.app_password,
                profile={
                    "email": submission.email,
                    "display_name": submission.full_name,
                    "tax_code": submission.tax_code,
                },
            ))
        except AccountProvisioningError as e:
            logger.warning("Account creation failed: %s", e)
            return None, False, str(e)
        return account.uid, account.is_new, None

    def _find_account(self, submission: Submission) -> Optional[str]:
        try:
            return self.accounts.find_uid(submission.email)
        except Exception:
            logger.warning("Account lookup failed", exc_info=True)
            return None

    def _send_emails(
        self, submission: Submission, document_type: DocumentType, document_id: str, pdf_bytes: bytes
    ) -> bool:
        try:
            self.notifications.send_confirmation(submission, document_type, document_id, pdf_bytes)
            self.notifications.send_admin_copy(submission, document_type, document_id, pdf_bytes)
        except Exception:
            logger.warning("Notification emails failed for %s", document_id, exc_info=True)
            return False
        return True

    def _record_row(self, document_type: DocumentType, submission: Submission, status: str, **kwargs) -> bool:
        try:
            self.sheets.record_submission(document_type, submission, status, **kwargs)
        except Exception:
            logger.warning("Spreadsheet update failed (%s)", status, exc_info=True)
            return False
        return True

    def _mark_used(self, token: str, document_id: str):
        try:
            self.tokens.mark_verified(token)
        except (VerificationError, OSError) as e:
            logger.error(
                "Document %s archived but token %s... could not be marked as used: %s",
                document_id, token[:16], e,
            )
            raise LifecycleError(
                f"Document {document_id} was archived but the verification link could not be closed"
            ) from e

    @contextmanager
    def _token_lock(self, token: str):
        # entries are [lock, holders]; dropped once nobody holds or waits
        with self._locks_guard:
            entry = self._token_locks.setdefault(token, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._token_locks[token]
