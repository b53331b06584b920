import logging
import smtplib
import uuid
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional

from modules.notifications.models.email import OutgoingEmail, SendResult

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when the SMTP server refuses or cannot be reached"""
    pass


class EmailSender:
    """
    SMTP transport.

    In test mode nothing leaves the process: every recipient is reported as
    accepted and the message id is synthetic.
    """

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        user: Optional[str] = None,
        password: Optional[str] = None,
        test_mode: bool = False,
        timeout: float = 30,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.user = user
        self.password = password
        self.test_mode = test_mode
        self.timeout = timeout

    def build_message(self, email: OutgoingEmail) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = ", ".join(email.to)
        if email.cc:
            message["Cc"] = ", ".join(email.cc)
        message["Subject"] = email.subject
        message["Message-ID"] = make_msgid()
        message.set_content("Questo messaggio richiede un client con supporto HTML.")
        message.add_alternative(email.html, subtype="html")

        for attachment in email.attachments:
            maintype, subtype = attachment.content_type.split("/", 1)
            message.add_attachment(
                attachment.content,
                maintype=maintype,
                subtype=subtype,
                filename=attachment.filename,
            )
        return message

    def send(self, email: OutgoingEmail) -> SendResult:
        recipients = email.to + email.cc
        if not recipients:
            raise EmailDeliveryError("Email has no recipients")

        if self.test_mode:
            message_id = f"test-{uuid.uuid4()}"
            logger.info("Test mode: email '%s' not sent (%s)", email.subject, message_id)
            return SendResult(accepted=recipients, message_id=message_id)

        message = self.build_message(email)
        try:
            smtp_class = smtplib.SMTP_SSL if self.port == 465 else smtplib.SMTP
            with smtp_class(self.host, self.port, timeout=self.timeout) as smtp:
                if smtp_class is smtplib.SMTP:
                    smtp.starttls()
                if self.user:
                    smtp.login(self.user, self.password or "")
                refused = smtp.send_message(message, to_addrs=recipients)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailDeliveryError(f"Could not send '{email.subject}': {e}") from e

        accepted = [r for r in recipients if r not in refused]
        logger.info("Email '%s' sent to %d recipients", email.subject, len(accepted))
        return SendResult(accepted=accepted, message_id=message["Message-ID"])
