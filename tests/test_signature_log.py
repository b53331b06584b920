import json
from datetime import timedelta

import pytest

from conftest import CHROME_UA, SIGNATURE_PNG, create_dummy_pdf_bytes, make_application
from modules.signatures.services.hashing import sha256_hex
from modules.signatures.services.signature_log_service import (
    SignatureLogError, SignatureLogService, anonymize_ip, make_document_id, sanitize_user_agent
)


@pytest.fixture
def log_service(tmp_path, clock):
    return SignatureLogService(tmp_path / "logs", clock=clock)


def test_sha256_is_deterministic():
    assert sha256_hex(b"abc") == sha256_hex(b"abc")
    assert sha256_hex(b"abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    assert sha256_hex(b"abc") != sha256_hex(b"abd")


def test_sha256_accepts_text():
    assert sha256_hex("abc") == sha256_hex(b"abc")


@pytest.mark.parametrize("ip,expected", [
    ("203.0.113.77", "203.0.113.0"),
    ("10.0.0.1", "10.0.0.0"),
    ("2001:db8:85a3:8d3:1319:8a2e:370:7348", "2001:db8:85a3:8d3::"),
    ("::ffff:192.168.1.20", "192.168.1.0"),
    ("not-an-ip", "unknown"),
    ("", "unknown"),
    (None, "unknown"),
])
def test_anonymize_ip(ip, expected):
    assert anonymize_ip(ip) == expected


def test_sanitize_user_agent_keeps_browser_and_os_only():
    sanitized = sanitize_user_agent(CHROME_UA)
    assert "Chrome/118.0" in sanitized
    assert "Windows" in sanitized
    assert "Mozilla" not in sanitized
    assert "KHTML" not in sanitized


def test_sanitize_user_agent_unknown():
    assert sanitize_user_agent("curl/8.0") == "unknown"
    assert sanitize_user_agent(None) == "unknown"


def test_document_id_format(clock):
    submission = make_application(name="Anna Maria", surname="De Luca")
    document_id = make_document_id(submission, clock())
    assert document_id.startswith("De_Luca_Anna_Maria_")
    assert " " not in document_id


def test_build_hashes_pdf_and_signature(log_service):
    pdf = create_dummy_pdf_bytes()
    submission = make_application(signatureDataUrl=SIGNATURE_PNG)

    log = log_service.build(submission, SIGNATURE_PNG, pdf, "203.0.113.77", CHROME_UA)

    assert log.document_hash == sha256_hex(pdf)
    assert log.signature_hash == sha256_hex(SIGNATURE_PNG)
    assert log.technical.ip_address == "203.0.113.0"
    assert log.technical.signature_method == "html5-canvas"
    assert log.signer.tax_code == submission.tax_code
    assert log.legal.data_retention_years == 10


def test_build_rejects_empty_pdf(log_service):
    with pytest.raises(SignatureLogError):
        log_service.build(make_application(), SIGNATURE_PNG, b"", None, None)


def test_build_rejects_unreadable_pdf(log_service):
    with pytest.raises(SignatureLogError):
        log_service.build(make_application(), SIGNATURE_PNG, b"This is not a PDF", None, None)


def test_persist_is_idempotent(log_service):
    log = log_service.build(
        make_application(), SIGNATURE_PNG, create_dummy_pdf_bytes(), "10.0.0.1", CHROME_UA
    )
    first = log_service.persist(log)
    second = log_service.persist(log)

    assert first == second
    stored = json.loads(first.read_text(encoding="utf-8"))
    assert stored["documentId"] == log.document_id
    assert stored["technical"]["ipAddress"] == "10.0.0.0"
    assert log_service.get_log(log.document_id).to_record() == log.to_record()


def test_get_log_unknown(log_service):
    assert log_service.get_log("missing") is None


def test_verify_document_integrity():
    pdf = create_dummy_pdf_bytes()
    assert SignatureLogService.verify_document_integrity(pdf, sha256_hex(pdf))
    assert not SignatureLogService.verify_document_integrity(pdf + b"x", sha256_hex(pdf))


def test_clean_old_logs(log_service, clock):
    old = log_service.build(make_application(), SIGNATURE_PNG, create_dummy_pdf_bytes(), None, None)
    log_service.persist(old)

    clock.advance(days=1)
    recent = log_service.build(
        make_application(name="Luca"), SIGNATURE_PNG, create_dummy_pdf_bytes(), None, None
    )
    log_service.persist(recent)

    clock.now = old.signature_timestamp.replace(year=old.signature_timestamp.year + 10) + timedelta(hours=1)
    assert log_service.clean_old_logs() == 1
    assert log_service.get_log(old.document_id) is None
    assert log_service.get_log(recent.document_id) is not None


def test_to_sheet_row(log_service):
    log = log_service.build(make_application(), SIGNATURE_PNG, create_dummy_pdf_bytes(), None, None)
    row = SignatureLogService.to_sheet_row(log)
    assert row[0] == log.document_id
    assert log.document_hash in row
