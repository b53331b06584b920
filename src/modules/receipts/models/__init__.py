from .receipt import (
    Contact, IssuedReceipt, PaymentMethod, ReceiptInit, ReceiptRequest, ReceiptResult
)

__all__ = [
    'Contact', 'IssuedReceipt', 'PaymentMethod', 'ReceiptInit', 'ReceiptRequest', 'ReceiptResult'
]
