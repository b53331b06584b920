"""
Service wiring.

Everything is built once from the settings and handed to the app through
``app.state.services``.
"""

from dataclasses import dataclass

from sqlalchemy.orm import sessionmaker

from config import Settings
from database import create_session_factory
from modules.auth.services.account_service import AccountProvisioner
from modules.auth.services.auth_service import AuthService
from modules.certificates.services.certificate_service import CertificateService
from modules.common.timeutils import Clock, utc_now
from modules.documents.services.document_archive_service import DocumentArchiveService
from modules.documents.services.pdf_service import PdfService
from modules.notifications.services.email_service import EmailSender
from modules.notifications.services.notification_service import NotificationService
from modules.receipts.services.receipt_pdf_service import ReceiptPdfService
from modules.receipts.services.receipt_service import ReceiptService
from modules.signatures.services.signature_log_service import SignatureLogService
from modules.spreadsheet.repositories.sheet_repository import SheetRepository
from modules.spreadsheet.services.sheet_service import SheetService
from modules.submissions.services.lifecycle_service import SubmissionLifecycle
from modules.submissions.services.renewal_service import RenewalService
from modules.verification.repositories.token_repository import TokenRepository
from modules.verification.services.verification_service import VerificationService


@dataclass
class Services:
    settings: Settings
    session_factory: sessionmaker
    auth: AuthService
    accounts: AccountProvisioner
    archive: DocumentArchiveService
    tokens: VerificationService
    signature_logs: SignatureLogService
    pdf: PdfService
    notifications: NotificationService
    sheets: SheetService
    renewals: RenewalService
    lifecycle: SubmissionLifecycle
    certificates: CertificateService
    receipts: ReceiptService


def build_services(settings: Settings, clock: Clock = utc_now) -> Services:
    session_factory = create_session_factory(settings.database_url)

    auth = AuthService(
        settings.jwt_secret_key.get_secret_value(),
        settings.jwt_algorithm,
        settings.access_token_expire_minutes,
    )
    accounts = AccountProvisioner(session_factory)
    archive = DocumentArchiveService(settings.resolved_archive_dir, clock=clock)
    tokens = VerificationService(
        TokenRepository(settings.resolved_tokens_dir),
        settings.app_url,
        ttl_hours=settings.token_ttl_hours,
        clock=clock,
    )
    signature_logs = SignatureLogService(settings.resolved_signature_logs_dir, clock=clock)
    pdf = PdfService(settings.app_name)
    sender = EmailSender(
        settings.smtp_host,
        settings.smtp_port,
        settings.email_from,
        user=settings.smtp_user,
        password=settings.smtp_password.get_secret_value() if settings.smtp_password else None,
        test_mode=settings.email_test_mode,
    )
    notifications = NotificationService(
        sender,
        settings.app_name,
        admin_recipients=settings.admin_recipients,
        token_ttl_hours=settings.token_ttl_hours,
    )
    sheets = SheetService(SheetRepository(session_factory), clock=clock)
    renewals = RenewalService(sheets, clock=clock)
    lifecycle = SubmissionLifecycle(
        pdf=pdf,
        signature_logs=signature_logs,
        tokens=tokens,
        archive=archive,
        notifications=notifications,
        sheets=sheets,
        accounts=accounts,
        double_opt_in=settings.double_opt_in_enabled,
        clock=clock,
    )
    certificates = CertificateService(
        settings.resolved_certificates_dir, renewals, sheets, notifications, clock=clock
    )
    receipts = ReceiptService(sheets, ReceiptPdfService(settings.app_name), notifications, clock=clock)

    return Services(
        settings=settings,
        session_factory=session_factory,
        auth=auth,
        accounts=accounts,
        archive=archive,
        tokens=tokens,
        signature_logs=signature_logs,
        pdf=pdf,
        notifications=notifications,
        sheets=sheets,
        renewals=renewals,
        lifecycle=lifecycle,
        certificates=certificates,
        receipts=receipts,
    )
