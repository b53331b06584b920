import re
from datetime import date
from enum import Enum as PyEnum
from typing import Any, Dict, Literal, Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from modules.common.schemas import CamelModel

SIGNATURE_DATA_URL = re.compile(r"^data:image/(png|jpeg|jpg);base64,")
TAX_CODE = re.compile(r"^[A-Z0-9]{16}$")


def normalize_tax_code(value: str) -> str:
    value = value.strip().upper()
    if not TAX_CODE.match(value):
        raise ValueError("tax code must be 16 letters or digits")
    return value


class DocumentType(str, PyEnum):
    MEMBERSHIP_APPLICATION = "modulo_iscrizione"
    RENEWAL = "rinnovo"


class DogInfo(CamelModel):
    name: str
    sex: Optional[Literal["M", "F"]] = None
    breed: Optional[str] = None
    height_cm: Optional[int] = Field(default=None, ge=1, le=200)
    microchip: Optional[str] = None
    birth_date: Optional[date] = None
    owner: Optional[str] = None
    handler: Optional[str] = None


class Submission(CamelModel):
    """
    Fields shared by every form that goes through the document lifecycle.
    """
    name: str = Field(min_length=1)
    surname: str = Field(min_length=1)
    email: EmailStr
    tax_code: str

    consent_privacy: bool
    consent_social: bool = False
    consent_rules: bool = False
    consent_newsletter: bool = False

    signature_data_url: Optional[str] = None

    create_app_account: bool = False
    auth_method: Optional[Literal["password", "google"]] = None
    app_password: Optional[str] = Field(default=None, min_length=6)

    @model_validator(mode="before")
    @classmethod
    def _blank_to_none(cls, data: Any) -> Any:
        if isinstance(data, dict):
            cleaned = {}
            for key, value in data.items():
                if isinstance(value, str):
                    value = value.strip()
                    if value == "" or value == "null":
                        value = None
                cleaned[key] = value
            return cleaned
        return data

    @field_validator("tax_code")
    @classmethod
    def _check_tax_code(cls, value: str) -> str:
        return normalize_tax_code(value)

    @field_validator("consent_privacy")
    @classmethod
    def _privacy_required(cls, value: bool) -> bool:
        if not value:
            raise ValueError("privacy consent is required")
        return value

    @field_validator("signature_data_url")
    @classmethod
    def _check_signature(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not SIGNATURE_DATA_URL.match(value):
            raise ValueError("signature must be a base64 png or jpeg data URL")
        return value

    @property
    def has_signature(self) -> bool:
        return bool(self.signature_data_url)

    @property
    def full_name(self) -> str:
        return f"{self.name} {self.surname}"


class MembershipApplication(Submission):
    birth_place: str
    birth_date: date
    address: str
    city: str
    province: str
    postal_code: str
    phone: str

    first_dog: Optional[DogInfo] = None
    second_dog: Optional[DogInfo] = None

    @field_validator("province")
    @classmethod
    def _check_province(cls, value: str) -> str:
        value = value.upper()
        if not re.fullmatch(r"[A-Z]{2}", value):
            raise ValueError("province must be two letters")
        return value

    @field_validator("postal_code")
    @classmethod
    def _check_postal_code(cls, value: str) -> str:
        if not re.fullmatch(r"\d{5}", value):
            raise ValueError("postal code must be five digits")
        return value


class RenewalSubmission(Submission):
    pass


class MemberLookupRequest(CamelModel):
    tax_code: str

    @field_validator("tax_code")
    @classmethod
    def _check_tax_code(cls, value: str) -> str:
        return normalize_tax_code(value)


class RequestMeta(CamelModel):
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def parse_submission(payload: Dict[str, Any], document_type: DocumentType) -> Submission:
    """Rebuilds the typed submission stored inside a verification token"""
    if document_type == DocumentType.RENEWAL:
        return RenewalSubmission.model_validate(payload)
    return MembershipApplication.model_validate(payload)
