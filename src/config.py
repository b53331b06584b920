"""
Application settings.

Values are read from the environment (prefix ``MEMBERSHIP_``) or from a
``.env`` file and validated once at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the membership backend."""

    app_name: str = "Agility Club Labora - A.S.D."
    app_url: str = "http://localhost:8000"

    # ---------------------------------------------------------------------
    # File-per-record stores
    # ---------------------------------------------------------------------

    data_dir: Path = Path("data")
    archive_dir: Optional[Path] = None
    tokens_dir: Optional[Path] = None
    signature_logs_dir: Optional[Path] = None
    certificates_dir: Optional[Path] = None

    database_url: str = "sqlite:///./membership.db"

    # ---------------------------------------------------------------------
    # Double opt-in
    # ---------------------------------------------------------------------

    double_opt_in_enabled: bool = True
    token_ttl_hours: Annotated[int, Field(ge=1)] = 48
    token_retention_days: Annotated[int, Field(ge=1)] = 7

    retention_job_enabled: bool = True
    retention_job_interval_hours: Annotated[int, Field(ge=1)] = 24

    # ---------------------------------------------------------------------
    # Outbound email
    # ---------------------------------------------------------------------

    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[SecretStr] = None
    email_from: str = "iscrizioni@example.org"
    admin_emails: str = ""
    email_test_mode: bool = False

    # ---------------------------------------------------------------------
    # Staff authentication
    # ---------------------------------------------------------------------

    jwt_secret_key: SecretStr = SecretStr("change-me")
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    admin_email: Optional[str] = None
    admin_password: Optional[SecretStr] = None

    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="MEMBERSHIP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @property
    def resolved_archive_dir(self) -> Path:
        return self.archive_dir or self.data_dir / "archive"

    @property
    def resolved_tokens_dir(self) -> Path:
        return self.tokens_dir or self.data_dir / "verification_tokens"

    @property
    def resolved_signature_logs_dir(self) -> Path:
        return self.signature_logs_dir or self.data_dir / "signature_logs"

    @property
    def resolved_certificates_dir(self) -> Path:
        return self.certificates_dir or self.data_dir / "certificates"

    @property
    def admin_recipients(self) -> List[str]:
        """Admin mailing list, split on commas and trimmed."""
        return [addr.strip() for addr in self.admin_emails.split(",") if addr.strip()]

    @property
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
