import io
import logging

from reportlab.lib.pagesizes import A5, landscape
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from modules.receipts.models.receipt import IssuedReceipt

logger = logging.getLogger(__name__)

LEFT = 15 * mm
LINE = 9 * mm
VALUE_OFFSET = 45 * mm


class ReceiptRenderError(Exception):
    """Raised when a receipt cannot be rendered to PDF"""
    pass


class ReceiptPdfService:
    """Numbered payment receipts on a landscape A5 page"""

    def __init__(self, association_name: str):
        self.association_name = association_name

    def render(self, receipt: IssuedReceipt) -> bytes:
        buffer = io.BytesIO()
        try:
            pagesize = landscape(A5)
            pdf = canvas.Canvas(buffer, pagesize=pagesize, invariant=1)
            pdf.setTitle(f"Ricevuta n. {receipt.number}")
            pdf.setAuthor(self.association_name)

            width, height = pagesize
            y = height - 18 * mm

            pdf.setFont("Helvetica-Bold", 14)
            pdf.drawString(LEFT, y, self.association_name)
            pdf.setFont("Helvetica-Bold", 12)
            pdf.drawRightString(width - LEFT, y, f"Ricevuta n. {receipt.number}")
            y -= LINE * 1.5

            for label, value in (
                ("Data", receipt.receipt_date.strftime("%d/%m/%Y")),
                ("Ricevuto da", receipt.received_from),
                ("La somma di", receipt.formatted_amount),
                ("Per", receipt.purpose),
                ("Pagamento", receipt.payment_method.value),
            ):
                pdf.setFont("Helvetica", 10)
                pdf.drawString(LEFT, y, f"{label}:")
                pdf.setFont("Helvetica-Bold", 11)
                pdf.drawString(LEFT + VALUE_OFFSET, y, value)
                y -= LINE

            y -= LINE
            pdf.line(width - LEFT - 60 * mm, y, width - LEFT, y)
            pdf.setFont("Helvetica-Oblique", 8)
            pdf.drawString(width - LEFT - 60 * mm, y - 4 * mm, "Per l'associazione")

            pdf.showPage()
            pdf.save()
        except Exception as e:
            raise ReceiptRenderError(f"Could not render receipt: {e}") from e

        logger.debug("Receipt %s rendered", receipt.number)
        return buffer.getvalue()
