import pytest
from fastapi.testclient import TestClient

from conftest import (
    CHROME_UA, SIGNATURE_PNG, TAX_CODE, application_payload, create_dummy_pdf_bytes, renewal_payload
)
from main import create_app


@pytest.fixture
def client(settings, services):
    app = create_app(settings, services)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def admin_headers(client):
    resp = client.post("/auth/login", json={"email": "admin@example.org", "password": "admin-password"})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def only_token(services):
    paths = list(services.tokens.repository.files())
    return services.tokens.repository.read(paths[0]).token


def submit_unsigned(client):
    resp = client.post("/form/submit", json=application_payload(), headers={"User-Agent": CHROME_UA})
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_submit_validation_error(client):
    resp = client.post("/form/submit", json=application_payload(consentPrivacy=False, postalCode="12"))
    body = resp.json()
    assert resp.status_code == 400
    assert body["success"] is False
    assert body["error"] == "validation failed"
    assert len(body["details"]) == 2


def test_submit_rejects_bad_signature(client):
    resp = client.post("/form/submit", json=application_payload(signatureDataUrl="data:text/plain;base64,AAAA"))
    assert resp.status_code == 400


def test_submit_unsigned(client):
    body = submit_unsigned(client)
    assert body["success"] is True
    assert body["status"] == "COMPLETE"
    assert body["verificationRequired"] is False
    assert body["documentId"].startswith("Rossi_Mario_")


def test_double_opt_in_flow(client, services):
    resp = client.post("/form/submit", json=application_payload(signatureDataUrl=SIGNATURE_PNG))
    body = resp.json()
    assert body["status"] == "PENDING"
    assert body["verificationRequired"] is True

    token = only_token(services)
    page = client.get("/form/verify-email", params={"token": token})
    assert page.status_code == 200
    assert "Email verificata" in page.text

    again = client.get("/form/verify-email", params={"token": token})
    assert again.status_code == 400
    assert "già verificata" in again.text

    listing = client.get(f"/documents/{TAX_CODE}").json()
    assert listing["totalDocuments"] == 1


def test_verify_email_unknown_token(client):
    resp = client.get("/form/verify-email", params={"token": "nope"})
    assert resp.status_code == 404
    assert "Link non valido" in resp.text


def test_verify_email_corrupt_token_file(client, services):
    token = "0" * 32 + "_" + "1" * 64
    (services.tokens.repository.tokens_dir / f"token_{token}.json").write_text("{not json", encoding="utf-8")

    resp = client.get("/form/verify-email", params={"token": token})
    assert resp.status_code == 404
    assert "Link non valido" in resp.text


def test_verify_email_expired_token(client, services, clock):
    client.post("/form/submit", json=application_payload(signatureDataUrl=SIGNATURE_PNG))
    clock.advance(hours=49)
    resp = client.get("/form/verify-email", params={"token": only_token(services)})
    assert resp.status_code == 410


def test_download_document(client):
    document_id = submit_unsigned(client)["documentId"]

    resp = client.get(f"/documents/{TAX_CODE}/{document_id}")

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.headers["x-integrity-valid"] == "true"
    assert len(resp.headers["x-document-hash"]) == 64
    assert resp.content.startswith(b"%PDF")


def test_download_with_wrong_tax_code(client):
    document_id = submit_unsigned(client)["documentId"]

    wrong = client.get(f"/documents/VRDLGU85B02F205X/{document_id}")
    unknown = client.get(f"/documents/VRDLGU85B02F205X/Nobody_1")

    assert wrong.status_code == unknown.status_code == 403
    assert wrong.json() == unknown.json() == {"success": False, "error": "not authorized"}


def test_export(client):
    submit_unsigned(client)

    resp = client.post("/documents/export", json={"taxCode": TAX_CODE, "email": "mario.rossi@example.org"})
    body = resp.json()
    assert resp.status_code == 200
    assert body["exportData"]["totalDocuments"] == 1

    empty = client.post("/documents/export", json={"taxCode": "VRDLGU85B02F205X", "email": "x@example.org"})
    assert empty.status_code == 404
    assert empty.json()["error"] == "no documents found"


def test_admin_endpoints_require_token(client):
    assert client.get("/documents/admin/stats").status_code in (401, 403)
    bad = client.get("/documents/admin/stats", headers={"Authorization": "Bearer nope"})
    assert bad.status_code == 401


def test_admin_archive_endpoints(client, admin_headers):
    submit_unsigned(client)

    stats = client.get("/documents/admin/stats", headers=admin_headers).json()["stats"]
    assert stats["totalDocuments"] == 1

    report = client.get("/documents/admin/integrity", headers=admin_headers).json()["report"]
    assert report["valid"] == 1

    cleaned = client.post("/documents/admin/clean", headers=admin_headers).json()
    assert cleaned["deleted"] == 0


def test_admin_verification_endpoints(client, admin_headers, clock):
    client.post("/form/submit", json=application_payload(signatureDataUrl=SIGNATURE_PNG))

    stats = client.get("/verification/admin/stats", headers=admin_headers).json()["stats"]
    assert stats["pending"] == 1

    clock.advance(days=8)
    purged = client.post("/verification/admin/purge", params={"days": 7}, headers=admin_headers).json()
    assert purged["deleted"] == 1


def test_me(client, admin_headers):
    me = client.get("/auth/me", headers=admin_headers).json()
    assert me["role"] == "ADMIN"


def test_login_wrong_password(client):
    resp = client.post("/auth/login", json={"email": "admin@example.org", "password": "wrong"})
    assert resp.status_code == 401


def test_renewal_flow(client, clock):
    submit_unsigned(client)
    clock.advance(seconds=1)

    check = client.post("/renewal/check-member", json={"taxCode": TAX_CODE.lower()}).json()
    assert check["success"] is True
    assert check["data"]["surname"] == "Rossi"

    resp = client.post("/renewal/submit", json=renewal_payload(signatureDataUrl=SIGNATURE_PNG))
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "COMPLETE"

    again = client.post("/renewal/check-member", json={"taxCode": TAX_CODE}).json()
    assert again["alreadyRenewed"] is True
    assert client.post("/renewal/submit", json=renewal_payload()).status_code == 400

    stats = client.get("/renewal/stats", params={"year": 2025}).json()["stats"]
    assert stats["totalRenewals"] == 1
    assert stats["withDigitalSignature"] == 1


def test_renewal_unknown_member(client):
    check = client.post("/renewal/check-member", json={"taxCode": TAX_CODE}).json()
    assert check["success"] is False
    assert check["exists"] is False
    assert client.post("/renewal/submit", json=renewal_payload()).status_code == 400


def upload_certificate(client, pdf, **fields):
    data = {"taxCode": TAX_CODE, "emailConfirm": "Mario.Rossi@example.org", "expiryDate": "2026-01-31"}
    data.update(fields)
    return client.post(
        "/certificates/upload",
        data=data,
        files={"certificate": ("certificato.pdf", pdf, "application/pdf")},
    )


def test_certificate_flow(client):
    assert client.post("/certificates/check-member", json={"taxCode": TAX_CODE}).status_code == 404

    submit_unsigned(client)
    check = client.post("/certificates/check-member", json={"taxCode": TAX_CODE.lower()}).json()
    assert check["success"] is True
    assert check["member"]["surname"] == "Rossi"
    assert check["member"]["medicalCertificateExpiry"] is None

    resp = upload_certificate(client, create_dummy_pdf_bytes("Certificato"))
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["file"]["fileName"].startswith(f"{TAX_CODE}_scadenza-2026-01-31_")
    assert body["member"]["medicalCertificateExpiry"] == "2026-01-31"

    check = client.post("/certificates/check-member", json={"taxCode": TAX_CODE}).json()
    assert check["member"]["medicalCertificateExpiry"] == "2026-01-31"


def test_certificate_upload_errors(client):
    pdf = create_dummy_pdf_bytes("Certificato")
    assert upload_certificate(client, pdf).status_code == 404

    submit_unsigned(client)
    assert upload_certificate(client, pdf, emailConfirm="other@example.org").status_code == 403
    assert upload_certificate(client, pdf, expiryDate="2024-12-31").status_code == 400
    assert upload_certificate(client, b"not a pdf").status_code == 400

    invalid = upload_certificate(client, pdf, taxCode="SHORT")
    assert invalid.status_code == 400
    assert invalid.json()["error"] == "validation failed"


def test_receipts_require_staff(client):
    assert client.get("/receipts/init").status_code in (401, 403)
    assert client.post("/receipts/submit", json={}).status_code in (401, 403)


def test_receipt_flow(client, admin_headers):
    payload = {
        "receiptDate": "2025-03-10",
        "receivedFrom": "Mario Rossi",
        "payerEmail": "mario.rossi@example.org",
        "purpose": "Quota associativa 2025",
        "paymentMethod": "bonifico",
        "instructor": "Giulia",
        "amount": 30,
    }
    resp = client.post("/receipts/submit", json=payload, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["receiptNumber"] == 1
    assert body["sendReceipt"] is True

    skipped = client.post("/receipts/submit", json={**payload, "sendReceipt": False}, headers=admin_headers)
    assert skipped.json()["receiptNumber"] is None

    init = client.get("/receipts/init", headers=admin_headers).json()
    assert init["lastNumber"] == 1
    assert init["contacts"] == []

    bad = client.post("/receipts/submit", json={**payload, "paymentMethod": "assegno"}, headers=admin_headers)
    assert bad.status_code == 400
