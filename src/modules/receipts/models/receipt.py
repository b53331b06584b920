from datetime import date, datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Any, List, Optional

from pydantic import EmailStr, Field, field_validator

from modules.common.schemas import CamelModel


class PaymentMethod(str, PyEnum):
    CASH = "contanti"
    BANK_TRANSFER = "bonifico"
    POS = "pos"
    PAYPAL = "paypal"


class ReceiptRequest(CamelModel):
    """
    A payment taken by an instructor.

    With send_receipt off the payment only goes to the ledgers and no
    receipt number is consumed.
    """
    receipt_date: date
    received_from: str = Field(min_length=1)
    payer_email: EmailStr
    purpose: str = Field(min_length=1)
    payment_method: PaymentMethod
    instructor: str = Field(min_length=1)
    amount: Decimal = Field(ge=0, max_digits=9, decimal_places=2)
    send_receipt: bool = True

    @field_validator("received_from", "purpose", "instructor", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("payment_method", mode="before")
    @classmethod
    def _lower(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class IssuedReceipt(CamelModel):
    number: Optional[int] = None
    receipt_date: date
    received_from: str
    payer_email: str
    purpose: str
    payment_method: PaymentMethod
    instructor: str
    amount: Decimal
    issued_at: datetime

    @property
    def formatted_amount(self) -> str:
        return f"€ {self.amount:.2f}"


class ReceiptResult(CamelModel):
    receipt_number: Optional[int] = None
    send_receipt: bool
    email_sent: bool = False
    spreadsheet_updated: bool = False


class Contact(CamelModel):
    name: str
    surname: str
    email: str


class ReceiptInit(CamelModel):
    last_number: int
    contacts: List[Contact]
