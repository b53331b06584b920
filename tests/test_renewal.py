from conftest import SIGNATURE_PNG, TAX_CODE, make_application, make_renewal
from modules.spreadsheet.services.sheet_service import STATUS_PENDING, STATUS_VERIFIED
from modules.submissions.schemas.submission_schemas import DocumentType, RequestMeta

META = RequestMeta(ip_address="10.0.0.1", user_agent="pytest")


def add_member(services, status=STATUS_VERIFIED, **overrides):
    services.sheets.record_submission(
        DocumentType.MEMBERSHIP_APPLICATION, make_application(**overrides), status
    )


def add_renewal(services, **overrides):
    services.sheets.record_submission(DocumentType.RENEWAL, make_renewal(**overrides), STATUS_VERIFIED)


def test_find_member_ignores_case_and_spaces(services):
    add_member(services)
    member = services.renewals.find_member(f"  {TAX_CODE.lower()} ")
    assert member is not None
    assert member["surname"] == "Rossi"


def test_find_member_requires_verified_row(services):
    add_member(services, status=STATUS_PENDING)
    assert services.renewals.find_member(TAX_CODE) is None


def test_find_member_returns_latest_row(services):
    add_member(services, email="old@example.org")
    add_member(services, email="new@example.org")
    assert services.renewals.find_member(TAX_CODE)["email"] == "new@example.org"


def test_has_renewed_this_year(services, clock):
    assert not services.renewals.has_renewed_this_year(TAX_CODE)

    add_renewal(services)
    assert services.renewals.has_renewed_this_year(TAX_CODE)

    clock.now = clock.now.replace(year=2026)
    assert not services.renewals.has_renewed_this_year(TAX_CODE)


def test_renewal_stats(services, clock):
    add_renewal(services)
    services.sheets.record_submission(
        DocumentType.RENEWAL, make_renewal(taxCode="VRDLGU85B02F205X"), STATUS_VERIFIED,
        account_uid="uid-1",
    )
    clock.now = clock.now.replace(year=2026)
    add_renewal(services)

    assert services.renewals.renewal_stats(2025) == {
        "year": 2025,
        "totalRenewals": 2,
        "withDigitalSignature": 0,
        "withAccount": 1,
    }
    assert services.renewals.renewal_stats()["totalRenewals"] == 1


def test_renewal_is_archived_without_opt_in(services):
    add_member(services)
    renewal = make_renewal(signatureDataUrl=SIGNATURE_PNG)

    result = services.lifecycle.process_new_submission(
        renewal, META, DocumentType.RENEWAL, double_opt_in=False
    )

    metadata = services.archive.retrieve(result.document_id, TAX_CODE).document.metadata
    assert metadata.document_type == DocumentType.RENEWAL
    assert metadata.verification.method == "immediate"

    row = services.sheets.renewals()[0]
    assert row["hasDigitalSignature"] == "Sì"
    assert row["year"] == 2025
    assert services.renewals.has_renewed_this_year(TAX_CODE)
