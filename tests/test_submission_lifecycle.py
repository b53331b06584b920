import pytest

from conftest import CHROME_UA, SIGNATURE_PNG, TAX_CODE, make_application
from modules.documents.services.document_archive_service import ArchiveError
from modules.documents.services.pdf_service import PdfRenderError
from modules.notifications.models.email import SendResult
from modules.notifications.services.email_service import EmailDeliveryError
from modules.spreadsheet.services.sheet_service import STATUS_PENDING, STATUS_VERIFIED
from modules.submissions.schemas.submission_schemas import RequestMeta
from modules.submissions.services.lifecycle_service import LifecycleError, SubmissionStatus

META = RequestMeta(ip_address="203.0.113.77", user_agent=CHROME_UA)


@pytest.fixture
def sent(services, monkeypatch):
    """Records outgoing emails instead of sending them"""
    outbox = []

    def send(email):
        outbox.append(email)
        return SendResult(accepted=email.to + email.cc, message_id=f"test-{len(outbox)}")

    monkeypatch.setattr(services.notifications.sender, "send", send)
    return outbox


def only_token(services):
    paths = list(services.tokens.repository.files())
    assert len(paths) == 1
    return services.tokens.repository.read(paths[0]).token


def archived(services):
    return services.archive.list_documents(TAX_CODE).documents


def test_unsigned_submission_is_archived_immediately(services, sent):
    result = services.lifecycle.process_new_submission(make_application(), META, double_opt_in=False)

    assert result.status == SubmissionStatus.COMPLETE
    assert not result.verification_required
    assert result.email_sent and result.spreadsheet_updated

    document = services.archive.retrieve(result.document_id, TAX_CODE).document
    assert document.metadata.has_digital_signature is False
    assert document.metadata.verification.verified is True
    assert document.metadata.verification.method == "immediate"

    subjects = [email.subject for email in sent]
    assert len(sent) == 2
    assert sent[1].to == ["segreteria@example.org", "presidente@example.org"]
    assert sent[0].attachments[0].filename == f"{result.document_id}.pdf"
    assert any("Nuova" in s for s in subjects)

    members = services.sheets.members()
    assert members[0]["status"] == STATUS_VERIFIED
    assert members[0]["documentId"] == result.document_id


def test_unsigned_submission_skips_opt_in(services, sent):
    result = services.lifecycle.process_new_submission(make_application(), META, double_opt_in=True)
    assert result.status == SubmissionStatus.COMPLETE
    assert list(services.tokens.repository.files()) == []


def test_signed_submission_waits_for_verification(services, sent):
    submission = make_application(signatureDataUrl=SIGNATURE_PNG)

    result = services.lifecycle.process_new_submission(submission, META)

    assert result.status == SubmissionStatus.PENDING
    assert result.verification_required
    assert result.document_id is None
    assert archived(services) == []
    assert services.sheets.members()[0]["status"] == STATUS_PENDING

    token = only_token(services)
    assert len(sent) == 1
    assert f"/form/verify-email?token={token}" in sent[0].html
    assert sent[0].attachments == []

    outcome = services.lifecycle.complete_verification(token)

    assert outcome.valid
    document = services.archive.retrieve(outcome.document_id, TAX_CODE).document
    assert document.metadata.has_digital_signature
    assert document.metadata.verification.method == "double-opt-in-email"
    assert document.integrity_valid
    assert services.signature_logs.get_log(outcome.document_id) is not None
    assert [row["status"] for row in services.sheets.members()] == [STATUS_PENDING, STATUS_VERIFIED]


def test_verification_link_used_twice(services, sent):
    services.lifecycle.process_new_submission(make_application(signatureDataUrl=SIGNATURE_PNG), META)
    token = only_token(services)

    first = services.lifecycle.complete_verification(token)
    second = services.lifecycle.complete_verification(token)

    assert first.valid
    assert not second.valid
    assert second.error == "already verified"
    assert len(archived(services)) == 1


def test_expired_verification_link(services, sent, clock):
    services.lifecycle.process_new_submission(make_application(signatureDataUrl=SIGNATURE_PNG), META)
    token = only_token(services)

    clock.advance(hours=49)
    outcome = services.lifecycle.complete_verification(token)

    assert not outcome.valid
    assert outcome.error == "expired"
    assert archived(services) == []


def test_unknown_verification_link(services):
    outcome = services.lifecycle.complete_verification("nope")
    assert not outcome.valid
    assert outcome.error == "not found"


def test_rejected_links_leave_no_locks_behind(services, sent):
    services.lifecycle.process_new_submission(make_application(signatureDataUrl=SIGNATURE_PNG), META)
    used = only_token(services)
    assert services.lifecycle.complete_verification(used).valid

    unknown = [f"{i:032x}_" + "f" * 64 for i in range(200)]
    for token in unknown + ["nope", "../../etc/passwd", used]:
        assert not services.lifecycle.complete_verification(token).valid

    assert services.lifecycle._token_locks == {}


def test_signature_metadata_is_anonymized(services, sent):
    result = services.lifecycle.process_new_submission(
        make_application(signatureDataUrl=SIGNATURE_PNG), META, double_opt_in=False
    )

    signature = services.archive.retrieve(result.document_id, TAX_CODE).document.metadata.signature
    assert signature.ip_address == "203.0.113.0"
    assert "Chrome/118.0" in signature.user_agent
    assert "Windows" in signature.user_agent
    assert "Mozilla" not in signature.user_agent


def test_email_failure_is_not_fatal(services, monkeypatch):
    def fail(email):
        raise EmailDeliveryError("smtp down")

    monkeypatch.setattr(services.notifications.sender, "send", fail)

    result = services.lifecycle.process_new_submission(make_application(), META, double_opt_in=False)

    assert result.status == SubmissionStatus.COMPLETE
    assert not result.email_sent
    assert result.spreadsheet_updated
    assert len(archived(services)) == 1


def test_verification_email_failure_is_not_fatal(services, monkeypatch):
    def fail(email):
        raise EmailDeliveryError("smtp down")

    monkeypatch.setattr(services.notifications.sender, "send", fail)

    result = services.lifecycle.process_new_submission(
        make_application(signatureDataUrl=SIGNATURE_PNG), META
    )
    assert result.status == SubmissionStatus.PENDING
    assert not result.email_sent


def test_spreadsheet_failure_is_not_fatal(services, sent, monkeypatch):
    def fail(*args, **kwargs):
        raise RuntimeError("sheet unavailable")

    monkeypatch.setattr(services.sheets, "record_submission", fail)

    result = services.lifecycle.process_new_submission(make_application(), META, double_opt_in=False)

    assert result.status == SubmissionStatus.COMPLETE
    assert result.email_sent
    assert not result.spreadsheet_updated


def test_render_failure_is_fatal(services, sent, monkeypatch):
    def fail(*args, **kwargs):
        raise PdfRenderError("broken template")

    monkeypatch.setattr(services.pdf, "render", fail)

    with pytest.raises(LifecycleError):
        services.lifecycle.process_new_submission(make_application(), META, double_opt_in=False)
    assert archived(services) == []
    assert sent == []


def test_archive_failure_keeps_token_usable(services, sent, monkeypatch):
    services.lifecycle.process_new_submission(make_application(signatureDataUrl=SIGNATURE_PNG), META)
    token = only_token(services)
    original = services.archive.archive

    def fail(*args, **kwargs):
        raise ArchiveError("disk full")

    monkeypatch.setattr(services.archive, "archive", fail)
    with pytest.raises(LifecycleError):
        services.lifecycle.complete_verification(token)
    assert services.tokens.validate(token).valid

    monkeypatch.setattr(services.archive, "archive", original)
    assert services.lifecycle.complete_verification(token).valid


def test_account_is_created_with_submission(services, sent):
    submission = make_application(
        createAppAccount=True, authMethod="password", appPassword="secret123"
    )

    result = services.lifecycle.process_new_submission(submission, META, double_opt_in=False)

    assert result.account_created
    assert result.account_uid
    assert services.sheets.members()[0]["accountUid"] == result.account_uid


def test_account_uid_survives_verification(services, sent):
    submission = make_application(
        signatureDataUrl=SIGNATURE_PNG,
        createAppAccount=True, authMethod="password", appPassword="secret123",
    )
    pending = services.lifecycle.process_new_submission(submission, META)

    services.lifecycle.complete_verification(only_token(services))

    assert services.sheets.members()[-1]["accountUid"] == pending.account_uid


def test_account_failure_is_not_fatal(services, sent):
    submission = make_application(createAppAccount=True, authMethod="google")

    result = services.lifecycle.process_new_submission(submission, META, double_opt_in=False)

    assert result.status == SubmissionStatus.COMPLETE
    assert not result.account_created
    assert result.account_error


def test_failed_verification_releases_its_lock(services, sent, monkeypatch):
    services.lifecycle.process_new_submission(make_application(signatureDataUrl=SIGNATURE_PNG), META)
    token = only_token(services)

    def fail(*args, **kwargs):
        raise ArchiveError("disk full")

    monkeypatch.setattr(services.archive, "archive", fail)
    with pytest.raises(LifecycleError):
        services.lifecycle.complete_verification(token)

    assert services.lifecycle._token_locks == {}


def test_token_write_failure_after_archive(services, sent, monkeypatch):
    services.lifecycle.process_new_submission(make_application(signatureDataUrl=SIGNATURE_PNG), META)
    token = only_token(services)

    def fail(*args, **kwargs):
        raise OSError("read-only file system")

    monkeypatch.setattr(services.tokens, "mark_verified", fail)
    with pytest.raises(LifecycleError) as excinfo:
        services.lifecycle.complete_verification(token)

    documents = archived(services)
    assert len(documents) == 1
    assert documents[0].document_id in str(excinfo.value)
    assert services.lifecycle._token_locks == {}
