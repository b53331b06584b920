import pytest

from modules.auth.models.user import User, UserRole
from modules.auth.services.account_service import AccountProvisioningError, AccountRequest
from modules.auth.services.auth_service import AuthError, AuthService


def password_request(email="Mario.Rossi@example.org", password="secret123"):
    return AccountRequest(
        method="password",
        credential=password,
        profile={"email": email, "display_name": "Mario Rossi", "tax_code": "RSSMRA80A01H501U"},
    )


def test_create_account(services):
    result = services.accounts.create_account(password_request())

    assert result.is_new
    assert result.email == "mario.rossi@example.org"
    with services.session_factory() as session:
        user = session.query(User).filter_by(uid=result.uid).one()
        assert user.role == UserRole.MEMBER
        assert AuthService.verify_password("secret123", user.password_hash)


def test_existing_account_is_reused(services):
    first = services.accounts.create_account(password_request())
    second = services.accounts.create_account(password_request(email=" mario.rossi@example.org "))

    assert not second.is_new
    assert second.uid == first.uid
    assert services.accounts.find_uid("MARIO.ROSSI@example.org") == first.uid


def test_unsupported_method(services):
    request = AccountRequest(method="google", profile={"email": "anna@example.org"})
    with pytest.raises(AccountProvisioningError):
        services.accounts.create_account(request)


def test_short_password(services):
    with pytest.raises(AccountProvisioningError):
        services.accounts.create_account(password_request(password="123"))


def test_missing_email(services):
    with pytest.raises(AccountProvisioningError):
        services.accounts.create_account(AccountRequest(method="password", credential="secret123"))


def test_member_cannot_log_in_as_staff(services):
    services.accounts.create_account(password_request())
    with services.session_factory() as session:
        assert services.auth.authenticate_user(session, "mario.rossi@example.org", "secret123") is None


def test_seed_admin_and_login(services):
    with services.session_factory() as session:
        assert services.auth.seed_admin(session, "Admin@example.org", "admin-password")
        assert not services.auth.seed_admin(session, "admin@example.org", "other")

        user = services.auth.authenticate_user(session, "admin@example.org", "admin-password")
        assert user is not None
        assert services.auth.authenticate_user(session, "admin@example.org", "wrong") is None

    token = services.auth.create_access_token({"sub": user.email})
    assert services.auth.verify_token(token) == "admin@example.org"


def test_invalid_jwt(services):
    with pytest.raises(AuthError):
        services.auth.verify_token("not-a-jwt")
