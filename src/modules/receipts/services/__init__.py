from .receipt_pdf_service import ReceiptPdfService, ReceiptRenderError
from .receipt_service import ReceiptError, ReceiptService

__all__ = ['ReceiptPdfService', 'ReceiptRenderError', 'ReceiptError', 'ReceiptService']
