import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from modules.auth.models.user import User, UserRole

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

STAFF_ROLES = (UserRole.ADMIN, UserRole.STAFF)


class AuthError(Exception):
    """Raised when a bearer token cannot be decoded"""
    pass


class AuthService:

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 30):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """Checks a password against its bcrypt hash"""
        return pwd_context.verify(plain_password, hashed_password)

    @staticmethod
    def get_password_hash(password: str) -> str:
        return pwd_context.hash(password)

    def authenticate_user(self, db: Session, email: str, password: str) -> Optional[User]:
        """Staff login; member app accounts cannot reach the admin API"""
        user = db.query(User).filter(User.email == email.lower()).first()
        if not user or user.role not in STAFF_ROLES:
            return None
        if not self.verify_password(password, user.password_hash):
            return None
        if not user.is_active:
            return None
        return user

    def create_access_token(self, data: dict, expires_delta: Optional[timedelta] = None) -> str:
        to_encode = data.copy()
        expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=self.expire_minutes))
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> str:
        """Returns the email carried by the token"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            raise AuthError("Invalid token") from e
        email = payload.get("sub")
        if email is None:
            raise AuthError("Token has no subject")
        return email

    def get_current_user(self, db: Session, token: str) -> Optional[User]:
        try:
            email = self.verify_token(token)
        except AuthError:
            return None
        return db.query(User).filter(User.email == email).first()

    def seed_admin(self, db: Session, email: str, password: str, name: str = "Amministratore") -> bool:
        """Creates the first admin account if it does not exist yet."""
        email = email.lower()
        if db.query(User).filter(User.email == email).first():
            return False
        db.add(User(
            uid=uuid.uuid4().hex,
            name=name,
            email=email,
            password_hash=self.get_password_hash(password),
            role=UserRole.ADMIN,
            is_active=True,
        ))
        db.commit()
        return True
