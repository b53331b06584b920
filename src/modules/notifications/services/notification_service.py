import logging
from typing import Any, Dict, List, Optional

from jinja2 import DictLoader, Environment, StrictUndefined

from modules.certificates.models.certificate import MemberProfile, StoredCertificate
from modules.notifications.models.email import Attachment, OutgoingEmail, SendResult
from modules.notifications.services.email_service import EmailSender
from modules.receipts.models.receipt import IssuedReceipt
from modules.submissions.schemas.submission_schemas import DocumentType, Submission

logger = logging.getLogger(__name__)

DOCUMENT_LABELS = {
    DocumentType.MEMBERSHIP_APPLICATION: "domanda di iscrizione",
    DocumentType.RENEWAL: "rinnovo dell'iscrizione",
}

TEMPLATES = {
    "layout.html": (
        '<html><body style="font-family: Arial, sans-serif; color: #333;">'
        '<h2 style="color: #1f4e79;">{{ association_name }}</h2>'
        "{% block body %}{% endblock %}"
        '<hr><p style="font-size: 12px; color: #888;">'
        "Messaggio generato automaticamente, non rispondere.</p>"
        "</body></html>"
    ),
    "verification.html": (
        '{% extends "layout.html" %}{% block body %}'
        "<p>Ciao {{ submission.name }},</p>"
        "<p>abbiamo ricevuto la tua {{ label }}. "
        "Per completarla conferma il tuo indirizzo email:</p>"
        '<p><a href="{{ url }}">Conferma email</a></p>'
        "<p>Il link scade tra {{ ttl_hours }} ore.</p>"
        "{% endblock %}"
    ),
    "confirmation.html": (
        '{% extends "layout.html" %}{% block body %}'
        "<p>Ciao {{ submission.full_name }},</p>"
        "<p>la tua {{ label }} è stata archiviata.</p>"
        "<p>Codice documento: <strong>{{ document_id }}</strong></p>"
        "<p>In allegato trovi una copia del documento.</p>"
        "{% endblock %}"
    ),
    "admin_copy.html": (
        '{% extends "layout.html" %}{% block body %}'
        "<p>Nuova {{ label }} ricevuta.</p>"
        "<ul>"
        "<li>Nome: {{ submission.full_name }}</li>"
        "<li>Email: {{ submission.email }}</li>"
        "<li>Codice fiscale: {{ submission.tax_code }}</li>"
        "<li>Firma: {{ 'digitale' if submission.has_signature else 'da firmare a mano' }}</li>"
        "<li>Documento: {{ document_id }}</li>"
        "</ul>"
        "{% endblock %}"
    ),
    "certificate_received.html": (
        '{% extends "layout.html" %}{% block body %}'
        "<p>Gentile <strong>{{ member.name }} {{ member.surname }}</strong>,</p>"
        "<p>il tuo certificato medico è stato ricevuto correttamente.</p>"
        "<ul>"
        "<li>Data di scadenza: {{ certificate.expiry_date.strftime('%d/%m/%Y') }}</li>"
        "<li>Nome file: {{ certificate.file_name }}</li>"
        "</ul>"
        "<p>La segreteria provvederà alla verifica del documento.</p>"
        "{% endblock %}"
    ),
    "certificate_notice.html": (
        '{% extends "layout.html" %}{% block body %}'
        "<p>È stato caricato un nuovo certificato medico.</p>"
        "<ul>"
        "<li>Nome: {{ member.name }} {{ member.surname }}</li>"
        "<li>Codice fiscale: {{ member.tax_code }}</li>"
        "<li>Email: {{ member.email }}</li>"
        "<li>Data di scadenza: <strong>{{ certificate.expiry_date.strftime('%d/%m/%Y') }}</strong></li>"
        "<li>File: {{ certificate.path }}</li>"
        "</ul>"
        "<p>Il certificato è allegato a questa email.</p>"
        "{% endblock %}"
    ),
    "receipt.html": (
        '{% extends "layout.html" %}{% block body %}'
        "<p>Gentile {{ receipt.received_from }},</p>"
        "<p>in allegato trovi la ricevuta n. <strong>{{ receipt.number }}</strong> "
        "del {{ receipt.receipt_date.strftime('%d/%m/%Y') }}.</p>"
        "<ul>"
        "<li>Causale: {{ receipt.purpose }}</li>"
        "<li>Importo: {{ receipt.formatted_amount }}</li>"
        "<li>Modalità di pagamento: {{ receipt.payment_method.value }}</li>"
        "</ul>"
        "{% endblock %}"
    ),
}

env = Environment(loader=DictLoader(TEMPLATES), autoescape=True, undefined=StrictUndefined)


class EmailTemplate:
    def __init__(self, subject: str, template_name: str, context: Dict[str, Any]):
        self.subject = subject
        self.template_name = template_name
        self.context = context

    def render(self, association_name: str) -> str:
        return env.get_template(self.template_name).render(
            association_name=association_name, **self.context
        )


class VerificationEmail(EmailTemplate):
    def __init__(self, submission: Submission, document_type: DocumentType, url: str, ttl_hours: int):
        super().__init__("Conferma il tuo indirizzo email", "verification.html", {
            "submission": submission,
            "label": DOCUMENT_LABELS[document_type],
            "url": url,
            "ttl_hours": ttl_hours,
        })


class ConfirmationEmail(EmailTemplate):
    def __init__(self, submission: Submission, document_type: DocumentType, document_id: str):
        label = DOCUMENT_LABELS[document_type]
        super().__init__(f"Conferma {label}", "confirmation.html", {
            "submission": submission,
            "label": label,
            "document_id": document_id,
        })


class AdminCopyEmail(EmailTemplate):
    def __init__(self, submission: Submission, document_type: DocumentType, document_id: str):
        label = DOCUMENT_LABELS[document_type]
        super().__init__(f"Nuova {label}: {submission.full_name}", "admin_copy.html", {
            "submission": submission,
            "label": label,
            "document_id": document_id,
        })


class NotificationService:
    def __init__(
        self,
        sender: EmailSender,
        association_name: str,
        admin_recipients: Optional[List[str]] = None,
        token_ttl_hours: int = 48,
    ):
        self.sender = sender
        self.association_name = association_name
        self.admin_recipients = admin_recipients or []
        self.token_ttl_hours = token_ttl_hours

    def _send(self, template: EmailTemplate, to: List[str], attachments=None) -> SendResult:
        email = OutgoingEmail(
            to=to,
            subject=template.subject,
            html=template.render(self.association_name),
            attachments=attachments or [],
        )
        return self.sender.send(email)

    def send_verification_email(
        self, submission: Submission, document_type: DocumentType, url: str
    ) -> SendResult:
        template = VerificationEmail(submission, document_type, url, self.token_ttl_hours)
        return self._send(template, [submission.email])

    def send_confirmation(
        self, submission: Submission, document_type: DocumentType, document_id: str, pdf_bytes: bytes
    ) -> SendResult:
        template = ConfirmationEmail(submission, document_type, document_id)
        attachment = Attachment(filename=f"{document_id}.pdf", content=pdf_bytes)
        return self._send(template, [submission.email], [attachment])

    def send_admin_copy(
        self, submission: Submission, document_type: DocumentType, document_id: str, pdf_bytes: bytes
    ) -> Optional[SendResult]:
        if not self.admin_recipients:
            logger.info("No admin recipients configured, admin copy skipped")
            return None
        template = AdminCopyEmail(submission, document_type, document_id)
        attachment = Attachment(filename=f"{document_id}.pdf", content=pdf_bytes)
        return self._send(template, self.admin_recipients, [attachment])

    def send_certificate_received(self, member: MemberProfile, certificate: StoredCertificate) -> SendResult:
        template = EmailTemplate(
            f"Certificato medico ricevuto - {self.association_name}",
            "certificate_received.html",
            {"member": member, "certificate": certificate},
        )
        return self._send(template, [member.email])

    def send_certificate_notice(
        self, member: MemberProfile, certificate: StoredCertificate, content: bytes
    ) -> Optional[SendResult]:
        """Admin notice with the uploaded file attached."""
        if not self.admin_recipients:
            logger.info("No admin recipients configured, certificate notice skipped")
            return None
        template = EmailTemplate(
            f"Nuovo certificato medico - {member.name} {member.surname}",
            "certificate_notice.html",
            {"member": member, "certificate": certificate},
        )
        attachment = Attachment(
            filename=certificate.file_name, content=content, content_type=certificate.content_type
        )
        return self._send(template, self.admin_recipients, [attachment])

    def send_receipt(self, receipt: IssuedReceipt, pdf_bytes: bytes) -> SendResult:
        """Receipt to the payer, with the admin list in copy."""
        template = EmailTemplate(
            f"Ricevuta n. {receipt.number} - {self.association_name}",
            "receipt.html",
            {"receipt": receipt},
        )
        attachment = Attachment(filename=f"ricevuta_{receipt.number}.pdf", content=pdf_bytes)
        email = OutgoingEmail(
            to=[receipt.payer_email],
            cc=self.admin_recipients,
            subject=template.subject,
            html=template.render(self.association_name),
            attachments=[attachment],
        )
        return self.sender.send(email)
