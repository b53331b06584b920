import logging
from typing import Dict

from modules.documents.services.document_archive_service import DocumentArchiveService
from modules.signatures.services.signature_log_service import SignatureLogService
from modules.verification.services.verification_service import VerificationService

logger = logging.getLogger(__name__)


def run_retention_sweep(
    archive: DocumentArchiveService,
    tokens: VerificationService,
    signature_logs: SignatureLogService,
    token_retention_days: int = 7,
) -> Dict[str, int]:
    """Expired documents, old tokens and old signature logs; one failing step does not stop the others."""
    results = {"documents": 0, "tokens": 0, "signatureLogs": 0}

    try:
        results["documents"] = archive.clean_expired_documents().deleted
    except Exception:
        logger.exception("Archive retention sweep failed")

    try:
        results["tokens"] = tokens.purge_older_than(token_retention_days)
    except Exception:
        logger.exception("Verification token purge failed")

    try:
        results["signatureLogs"] = signature_logs.clean_old_logs()
    except Exception:
        logger.exception("Signature log cleanup failed")

    logger.info("Retention sweep done: %s", results)
    return results
