import logging
from typing import Dict

from modules.common.timeutils import Clock, utc_now
from modules.notifications.services.notification_service import NotificationService
from modules.receipts.models.receipt import (
    Contact, IssuedReceipt, ReceiptInit, ReceiptRequest, ReceiptResult
)
from modules.receipts.services.receipt_pdf_service import ReceiptPdfService, ReceiptRenderError
from modules.spreadsheet.services.sheet_service import SheetService

logger = logging.getLogger(__name__)


class ReceiptError(Exception):
    """Raised when a numbered receipt cannot be produced"""
    pass


class ReceiptService:
    """
    Issues payment receipts.

    The number comes from the sheet counter, so it is assigned server side
    and never reused. Rendering is fatal; the ledger rows and the email are
    best effort and show up as flags on the result.
    """

    def __init__(
        self,
        sheets: SheetService,
        pdf: ReceiptPdfService,
        notifications: NotificationService,
        clock: Clock = utc_now,
    ):
        self.sheets = sheets
        self.pdf = pdf
        self.notifications = notifications
        self.clock = clock

    def init_data(self) -> ReceiptInit:
        """Last issued number and the member address book."""
        contacts: Dict[str, Contact] = {}
        for row in self.sheets.members():
            email = str(row.get("email") or "").strip()
            name = str(row.get("name") or "").strip()
            if not email or not name:
                continue
            contacts[email.lower()] = Contact(name=name, surname=str(row.get("surname") or ""), email=email)

        return ReceiptInit(
            last_number=self.sheets.last_receipt_number(),
            contacts=sorted(contacts.values(), key=lambda c: (c.surname.lower(), c.name.lower())),
        )

    def submit(self, request: ReceiptRequest) -> ReceiptResult:
        fields = request.model_dump(exclude={"send_receipt"})

        if not request.send_receipt:
            payment = IssuedReceipt(**fields, issued_at=self.clock())
            updated = self._record(self.sheets.record_payment, payment)
            logger.info("Payment recorded without receipt (%s)", payment.payment_method.value)
            return ReceiptResult(send_receipt=False, spreadsheet_updated=updated)

        receipt = IssuedReceipt(**fields, number=self.sheets.next_receipt_number(), issued_at=self.clock())
        try:
            pdf_bytes = self.pdf.render(receipt)
        except ReceiptRenderError as e:
            logger.error("Receipt %d could not be rendered: %s", receipt.number, e)
            raise ReceiptError(str(e)) from e

        updated = self._record(self.sheets.record_receipt, receipt)

        email_sent = True
        try:
            self.notifications.send_receipt(receipt, pdf_bytes)
        except Exception:
            email_sent = False
            logger.warning("Receipt email failed for receipt %d", receipt.number, exc_info=True)

        logger.info("Receipt %d issued", receipt.number)
        return ReceiptResult(
            receipt_number=receipt.number,
            send_receipt=True,
            email_sent=email_sent,
            spreadsheet_updated=updated,
        )

    @staticmethod
    def _record(write, receipt: IssuedReceipt) -> bool:
        try:
            write(receipt)
        except Exception:
            logger.warning("Ledger update failed for receipt %s", receipt.number, exc_info=True)
            return False
        return True
