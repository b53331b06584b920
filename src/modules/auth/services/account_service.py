import logging
import uuid
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from modules.auth.models.user import User, UserRole
from modules.auth.services.auth_service import AuthService

logger = logging.getLogger(__name__)


class AccountProvisioningError(Exception):
    """Raised when a member app account cannot be created"""
    pass


class AccountRequest(BaseModel):
    method: Literal["password", "google"]
    credential: Optional[str] = None
    profile: Dict[str, Any] = Field(default_factory=dict)


class AccountResult(BaseModel):
    uid: str
    email: str
    is_new: bool


class AccountProvisioner:
    """
    Creates member app accounts.

    Asking twice for the same email is not an error: the existing identity
    comes back with is_new=False.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def find_uid(self, email: str) -> Optional[str]:
        with self.session_factory() as session:
            user = session.query(User).filter(User.email == email.strip().lower()).first()
            return user.uid if user else None

    def create_account(self, request: AccountRequest) -> AccountResult:
        email = str(request.profile.get("email", "")).strip().lower()
        if not email:
            raise AccountProvisioningError("Account profile has no email")

        try:
            with self.session_factory() as session:
                existing = session.query(User).filter(User.email == email).first()
                if existing is not None:
                    logger.info("Account already exists, reusing uid %s", existing.uid)
                    return AccountResult(uid=existing.uid, email=email, is_new=False)

                if request.method != "password":
                    raise AccountProvisioningError(
                        f"Authentication method '{request.method}' is not supported"
                    )
                if not request.credential or len(request.credential) < 6:
                    raise AccountProvisioningError("Password must be at least 6 characters")

                user = User(
                    uid=uuid.uuid4().hex,
                    name=str(request.profile.get("display_name") or email),
                    email=email,
                    password_hash=AuthService.get_password_hash(request.credential),
                    role=UserRole.MEMBER,
                    tax_code=request.profile.get("tax_code"),
                    is_active=True,
                )
                session.add(user)
                session.commit()
                logger.info("Member account created: %s", user.uid)
                return AccountResult(uid=user.uid, email=email, is_new=True)
        except SQLAlchemyError as e:
            raise AccountProvisioningError(f"Could not store account: {e}") from e
