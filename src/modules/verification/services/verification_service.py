import logging
import secrets
from datetime import timedelta

from modules.common.timeutils import Clock, epoch_millis, utc_now
from modules.signatures.services.hashing import sha256_hex
from modules.submissions.schemas.submission_schemas import DocumentType, RequestMeta, Submission
from modules.verification.models.verification_token import (
    TokenRejection, TokenValidation, VerificationStats, VerificationToken
)
from modules.verification.repositories.token_repository import TokenRepository

logger = logging.getLogger(__name__)

# Never written into a token file
TOKEN_EXCLUDED_FIELDS = {"app_password", "signature_data_url"}


class VerificationError(Exception):
    """Raised when a token operation targets an unknown token"""
    pass


class VerificationService:
    """
    Double opt-in token store.

    A token is PENDING until mark_verified() is called; EXPIRED is derived at
    read time from expires_at. Tokens are only removed by purge_older_than().
    """

    def __init__(
        self,
        repository: TokenRepository,
        app_url: str,
        ttl_hours: int = 48,
        clock: Clock = utc_now,
    ):
        self.repository = repository
        self.app_url = app_url.rstrip("/")
        self.ttl = timedelta(hours=ttl_hours)
        self.clock = clock

    def generate_token(self, email: str, tax_code: str) -> str:
        digest = sha256_hex(f"{email}|{tax_code}|{epoch_millis(self.clock())}")
        return f"{digest[:32]}_{secrets.token_hex(32)}"

    def issue(
        self,
        submission: Submission,
        document_type: DocumentType,
        request_meta: RequestMeta,
    ) -> VerificationToken:
        """Persists a PENDING token carrying the full submission."""
        now = self.clock()
        record = VerificationToken(
            token=self.generate_token(submission.email, submission.tax_code),
            created_at=now,
            expires_at=now + self.ttl,
            document_type=document_type,
            form_data=submission.model_dump(
                mode="json", by_alias=True, exclude=TOKEN_EXCLUDED_FIELDS
            ),
            signature_data_url=submission.signature_data_url,
            ip_address=request_meta.ip_address,
            user_agent=request_meta.user_agent,
        )
        self.repository.save(record)
        logger.info("Verification token issued: %s...", record.token[:16])
        return record

    def validate(self, token: str) -> TokenValidation:
        """Read-only check; rejection reasons are not found / expired / already verified."""
        record = self.repository.find(token)
        if record is None:
            return TokenValidation(valid=False, reason=TokenRejection.NOT_FOUND)

        if record.is_expired(self.clock()):
            return TokenValidation(valid=False, reason=TokenRejection.EXPIRED)

        if record.verified:
            return TokenValidation(valid=False, reason=TokenRejection.ALREADY_VERIFIED)

        return TokenValidation(valid=True, data=record)

    def mark_verified(self, token: str) -> VerificationToken:
        """
        Flags the token as used. Callers must validate() first and make sure
        the pair is not interleaved with another verification of the same token.
        """
        record = self.repository.find(token)
        if record is None:
            raise VerificationError(f"Unknown verification token {token[:16]}...")

        verified = record.model_copy(update={"verified": True, "verified_at": self.clock()})
        self.repository.save(verified)
        logger.info("Verification token used: %s...", token[:16])
        return verified

    def purge_older_than(self, days: int = 7) -> int:
        """Deletes tokens created more than `days` ago, verified or not."""
        max_age = timedelta(days=days)
        now = self.clock()
        deleted = 0

        for path in self.repository.files():
            try:
                record = self.repository.read(path)
                if now - record.created_at > max_age:
                    path.unlink()
                    deleted += 1
            except Exception:
                logger.exception("Could not purge verification token file %s", path.name)

        logger.info("Purged %d verification tokens older than %d days", deleted, days)
        return deleted

    def stats(self) -> VerificationStats:
        now = self.clock()
        total = verified = pending = expired = 0

        for path in self.repository.files():
            try:
                record = self.repository.read(path)
            except Exception:
                logger.exception("Unreadable verification token file %s", path.name)
                continue

            total += 1
            if record.verified:
                verified += 1
            elif record.is_expired(now):
                expired += 1
            else:
                pending += 1

        rate = round(verified / total * 100, 2) if total else 0.0
        return VerificationStats(
            total=total,
            verified=verified,
            pending=pending,
            expired=expired,
            verification_rate=rate,
        )

    def verification_url(self, token: str) -> str:
        return f"{self.app_url}/form/verify-email?token={token}"
