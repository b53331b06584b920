from typing import List, Optional

from pydantic import BaseModel, Field


class Attachment(BaseModel):
    filename: str
    content: bytes
    content_type: str = "application/pdf"


class OutgoingEmail(BaseModel):
    to: List[str]
    cc: List[str] = Field(default_factory=list)
    subject: str
    html: str
    attachments: List[Attachment] = Field(default_factory=list)


class SendResult(BaseModel):
    accepted: List[str]
    message_id: str
