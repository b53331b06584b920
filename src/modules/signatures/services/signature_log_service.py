import io
import ipaddress
import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from PyPDF2 import PdfReader

from modules.common.timeutils import Clock, add_years, epoch_millis, utc_now
from modules.signatures.models.signature_log import (
    AuditInfo, Consents, LegalInfo, RETENTION_YEARS, SignatureLog, Signer, TechnicalInfo
)
from modules.signatures.services.hashing import sha256_hex
from modules.submissions.schemas.submission_schemas import Submission

logger = logging.getLogger(__name__)

BROWSER_PATTERN = re.compile(r"(Chrome|Firefox|Safari|Edge|Opera)/[\d.]+", re.IGNORECASE)
OS_PATTERN = re.compile(r"(Windows|Mac|Linux|Android|iOS)[\s\w.]*", re.IGNORECASE)
UNSAFE_ID_CHARS = re.compile(r"[\s/\\]+")

LOG_PREFIX = "signature_log_"


class SignatureLogError(Exception):
    """Raised when a signature log cannot be built for the given document"""
    pass


def make_document_id(submission: Submission, moment: datetime) -> str:
    """surname_name_millis, whitespace and path separators replaced by underscores"""
    raw = f"{submission.surname}_{submission.name}_{epoch_millis(moment)}"
    return UNSAFE_ID_CHARS.sub("_", raw)


def anonymize_ip(ip: Optional[str]) -> str:
    """
    Keeps the network part of an address:
    - IPv4: last octet zeroed (203.0.113.77 -> 203.0.113.0)
    - IPv6: first four groups kept, the rest zeroed
    Anything unparseable maps to "unknown".
    """
    if not ip:
        return "unknown"

    try:
        address = ipaddress.ip_address(ip.strip())
    except ValueError:
        return "unknown"

    if address.version == 6 and address.ipv4_mapped is not None:
        address = address.ipv4_mapped

    prefix = 24 if address.version == 4 else 64
    network = ipaddress.ip_network(f"{address}/{prefix}", strict=False)
    return str(network.network_address)


def sanitize_user_agent(user_agent: Optional[str]) -> str:
    """Reduces a user agent to 'Browser/version OS', or "unknown"."""
    if not user_agent:
        return "unknown"

    matches = []
    for pattern in (BROWSER_PATTERN, OS_PATTERN):
        match = pattern.search(user_agent)
        if match:
            matches.append(match.group(0).strip())

    return " ".join(matches) or "unknown"


class SignatureLogService:

    def __init__(self, logs_dir: Path, clock: Clock = utc_now):
        self.logs_dir = Path(logs_dir)
        self.clock = clock
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    def build(
        self,
        submission: Submission,
        signature_data_url: str,
        pdf_bytes: bytes,
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> SignatureLog:
        """
        Builds the signature log for a freshly rendered PDF.

        The document hash is always computed from `pdf_bytes`; an empty or
        unreadable PDF raises SignatureLogError instead of producing a log.
        """
        self._ensure_readable_pdf(pdf_bytes)
        if not signature_data_url:
            raise SignatureLogError("Signature payload is empty")

        now = self.clock()
        return SignatureLog(
            document_id=make_document_id(submission, now),
            document_hash=sha256_hex(pdf_bytes),
            signature_hash=sha256_hex(signature_data_url),
            signature_timestamp=now,
            signer=Signer(
                name=submission.name,
                surname=submission.surname,
                email=submission.email,
                tax_code=submission.tax_code,
            ),
            technical=TechnicalInfo(
                ip_address=anonymize_ip(ip_address),
                user_agent=sanitize_user_agent(user_agent),
            ),
            legal=LegalInfo(
                consent_given=submission.consent_privacy,
                consent_timestamp=now,
            ),
            consents=Consents(
                rules=submission.consent_rules,
                privacy=submission.consent_privacy,
                social=submission.consent_social,
                newsletter=submission.consent_newsletter,
                timestamp=now,
            ),
            audit=AuditInfo(created_at=now),
        )

    @staticmethod
    def _ensure_readable_pdf(pdf_bytes: bytes):
        if not pdf_bytes:
            raise SignatureLogError("PDF is empty")
        try:
            reader = PdfReader(io.BytesIO(pdf_bytes))
            _ = reader.pages[0]
        except Exception as e:
            raise SignatureLogError(f"PDF is unreadable: {e}") from e

    def _log_path(self, document_id: str) -> Path:
        return self.logs_dir / f"{LOG_PREFIX}{document_id}.json"

    def persist(self, log: SignatureLog) -> Path:
        """Writes the log as its own file; rewriting the same log is harmless."""
        path = self._log_path(log.document_id)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(log.to_record(), indent=2), encoding="utf-8")
        tmp_path.replace(path)
        logger.info("Signature log saved: %s", path.name)
        return path

    def get_log(self, document_id: str) -> Optional[SignatureLog]:
        path = self._log_path(document_id)
        if path.parent != self.logs_dir or not path.is_file():
            return None
        return SignatureLog.model_validate_json(path.read_text(encoding="utf-8"))

    @staticmethod
    def verify_document_integrity(pdf_bytes: bytes, original_hash: str) -> bool:
        return sha256_hex(pdf_bytes) == original_hash

    def clean_old_logs(self, years: int = RETENTION_YEARS) -> int:
        """Deletes persisted logs whose signature is older than `years`."""
        now = self.clock()
        deleted = 0
        for path in sorted(self.logs_dir.glob(f"{LOG_PREFIX}*.json")):
            try:
                log = SignatureLog.model_validate_json(path.read_text(encoding="utf-8"))
                if add_years(log.signature_timestamp, years) < now:
                    path.unlink()
                    deleted += 1
                    logger.info("Signature log past retention deleted: %s", path.name)
            except Exception:
                logger.exception("Could not process signature log %s", path.name)
        return deleted

    @staticmethod
    def to_sheet_row(log: SignatureLog) -> List[str]:
        return [
            log.document_id,
            log.signature_timestamp.isoformat(),
            log.signer.name,
            log.signer.surname,
            log.signer.email,
            log.signer.tax_code,
            log.document_hash,
            log.signature_hash,
            log.technical.ip_address,
            log.technical.user_agent,
            "Sì" if log.legal.consent_given else "No",
            "Sì" if log.legal.gdpr_compliant else "No",
        ]
