import io
from datetime import datetime, timedelta, timezone

import pytest
from reportlab.pdfgen import canvas

from config import Settings
from container import build_services
from create_tables import create_tables
from modules.submissions.schemas.submission_schemas import (
    MembershipApplication, RenewalSubmission
)

SIGNATURE_PNG = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)

CHROME_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/118.0 Safari/537.36"
)

TAX_CODE = "RSSMRA80A01H501U"


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def create_dummy_pdf_bytes(text="PDF di prova"):
    buf = io.BytesIO()
    c = canvas.Canvas(buf, invariant=1)
    c.drawString(50, 750, text)
    c.save()
    return buf.getvalue()


def application_payload(**overrides):
    payload = {
        "name": "Mario",
        "surname": "Rossi",
        "email": "mario.rossi@example.org",
        "birthPlace": "Roma",
        "birthDate": "1980-01-01",
        "address": "Via Roma 1",
        "city": "Roma",
        "province": "rm",
        "postalCode": "00100",
        "taxCode": TAX_CODE.lower(),
        "phone": "3331234567",
        "consentPrivacy": True,
        "consentRules": True,
        "firstDog": {"name": "Fido", "sex": "M", "breed": "Border Collie", "heightCm": 52},
    }
    payload.update(overrides)
    return payload


def renewal_payload(**overrides):
    payload = {
        "name": "Mario",
        "surname": "Rossi",
        "email": "mario.rossi@example.org",
        "taxCode": TAX_CODE,
        "consentPrivacy": True,
    }
    payload.update(overrides)
    return payload


def make_application(**overrides) -> MembershipApplication:
    return MembershipApplication.model_validate(application_payload(**overrides))


def make_renewal(**overrides) -> RenewalSubmission:
    return RenewalSubmission.model_validate(renewal_payload(**overrides))


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=tmp_path / "data",
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        app_url="http://testserver",
        email_test_mode=True,
        admin_emails="segreteria@example.org, presidente@example.org",
        retention_job_enabled=False,
        jwt_secret_key="test-secret",
        admin_email="admin@example.org",
        admin_password="admin-password",
        log_level="WARNING",
    )


@pytest.fixture
def services(settings, clock):
    services = build_services(settings, clock=clock)
    create_tables(services.session_factory)
    return services
