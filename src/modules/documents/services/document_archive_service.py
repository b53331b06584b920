import base64
import json
import logging
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from modules.common.timeutils import Clock, add_years, epoch_millis, utc_now
from modules.documents.models.archived_document import (
    ArchiveAudit, ArchiveMetadata, ArchiveReceipt, ArchiveStats, ArchivedDocument,
    Associate, CleanupResult, DIGITAL_SIGNATURE, DocumentListing, DocumentSummary,
    ExportResult, IntegrityDetail, IntegrityReport, LegalCompliance, MANUAL_SIGNATURE,
    RetrievalResult, SignatureSummary, VerificationInfo
)
from modules.signatures.models.signature_log import SignatureLog
from modules.signatures.services.hashing import sha256_hex
from modules.signatures.services.signature_log_service import make_document_id
from modules.submissions.schemas.submission_schemas import DocumentType, Submission

logger = logging.getLogger(__name__)

RETENTION_YEARS = 10
METADATA_SUFFIX = "_metadata.json"
CHECKSUM_SUFFIX = "_checksum.txt"

NOT_AUTHORIZED = "not authorized"
NO_DOCUMENTS = "no documents found"


class ArchiveError(Exception):
    """Raised when a document cannot be written to the archive"""
    pass


class DocumentArchiveService:
    """
    Year-partitioned archive of finalized documents.

    Every document is stored as three files in <archive_dir>/<year>/:
    <id>.pdf, <id>_metadata.json and <id>_checksum.txt.
    """

    def __init__(self, archive_dir: Path, clock: Clock = utc_now):
        self.archive_dir = Path(archive_dir)
        self.clock = clock
        self.archive_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @staticmethod
    def _paths(year_dir: Path, document_id: str) -> Tuple[Path, Path, Path]:
        return (
            year_dir / f"{document_id}.pdf",
            year_dir / f"{document_id}{METADATA_SUFFIX}",
            year_dir / f"{document_id}{CHECKSUM_SUFFIX}",
        )

    def _year_dirs(self) -> List[Path]:
        return sorted(
            p for p in self.archive_dir.iterdir() if p.is_dir() and p.name.isdigit()
        )

    def _metadata_files(self) -> Iterator[Tuple[Path, Path]]:
        for year_dir in self._year_dirs():
            for metadata_path in sorted(year_dir.glob(f"*{METADATA_SUFFIX}")):
                yield year_dir, metadata_path

    @staticmethod
    def _read_metadata(path: Path) -> ArchiveMetadata:
        return ArchiveMetadata.model_validate_json(path.read_text(encoding="utf-8"))

    @staticmethod
    def _write_metadata(path: Path, metadata: ArchiveMetadata):
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(json.dumps(metadata.to_record(), indent=2), encoding="utf-8")
        tmp_path.replace(path)

    @staticmethod
    def _read_checksum(path: Path) -> Optional[str]:
        try:
            for line in path.read_text(encoding="utf-8").splitlines():
                if line.startswith("SHA-256:"):
                    return line.split(":", 1)[1].strip()
        except OSError:
            return None
        return None

    def _check_integrity(
        self, pdf_bytes: bytes, metadata: ArchiveMetadata, checksum_path: Path
    ) -> Tuple[bool, Optional[str], str]:
        """Compares the PDF hash with the signature hash and the checksum file."""
        actual = sha256_hex(pdf_bytes)
        expected = [
            h for h in (metadata.signature.document_hash, self._read_checksum(checksum_path)) if h
        ]
        if not expected:
            return False, None, actual
        return all(h == actual for h in expected), expected[0], actual

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def archive(
        self,
        pdf_bytes: bytes,
        submission: Submission,
        signature_log: Optional[SignatureLog] = None,
        verification_info: Optional[VerificationInfo] = None,
        document_type: DocumentType = DocumentType.MEMBERSHIP_APPLICATION,
    ) -> ArchiveReceipt:
        """
        Stores PDF, metadata and checksum. All three must be written for the
        call to succeed; an interrupted write may leave a partial triple
        which verify_archive_integrity() reports.
        """
        if not pdf_bytes:
            raise ArchiveError("Refusing to archive an empty PDF")

        now = self.clock()
        document_id = (
            signature_log.document_id if signature_log else make_document_id(submission, now)
        )
        checksum = sha256_hex(pdf_bytes)

        if signature_log:
            signature = SignatureSummary(
                method=DIGITAL_SIGNATURE,
                timestamp=signature_log.signature_timestamp,
                document_hash=signature_log.document_hash,
                signature_hash=signature_log.signature_hash,
                ip_address=signature_log.technical.ip_address,
                user_agent=signature_log.technical.user_agent,
            )
        else:
            signature = SignatureSummary(
                method=MANUAL_SIGNATURE,
                note="Document must be signed by hand",
            )

        metadata = ArchiveMetadata(
            document_id=document_id,
            document_type=document_type,
            has_digital_signature=signature_log is not None,
            archived_at=now,
            retention_until=add_years(now, RETENTION_YEARS),
            associate=Associate(
                name=submission.name,
                surname=submission.surname,
                tax_code=submission.tax_code,
                email=submission.email,
                phone=getattr(submission, "phone", None),
            ),
            signature=signature,
            verification=verification_info or VerificationInfo(verified=False, status="pending"),
            legal=LegalCompliance(
                eidas_compliant=signature_log is not None,
                cad_compliant=signature_log is not None,
                retention_policy=f"{RETENTION_YEARS} years",
                consent_given=submission.consent_privacy,
                consent_timestamp=signature_log.signature_timestamp if signature_log else now,
            ),
            audit=ArchiveAudit(created_at=now, last_accessed_at=now),
        )

        year_dir = self.archive_dir / str(now.year)
        pdf_path, metadata_path, checksum_path = self._paths(year_dir, document_id)
        try:
            year_dir.mkdir(parents=True, exist_ok=True)
            # Exclusive create: an existing id is never overwritten
            with open(pdf_path, "xb") as f:
                f.write(pdf_bytes)
            self._write_metadata(metadata_path, metadata)
            checksum_path.write_text(
                f"SHA-256: {checksum}\nTimestamp: {now.isoformat()}", encoding="utf-8"
            )
        except FileExistsError as e:
            raise ArchiveError(f"Document {document_id} is already archived") from e
        except OSError as e:
            raise ArchiveError(f"Could not archive document {document_id}: {e}") from e

        logger.info("Document archived: %s (%s)", document_id, document_type.value)
        return ArchiveReceipt(
            document_id=document_id,
            archive_path=str(pdf_path),
            retention_until=metadata.retention_until,
            checksum=checksum,
        )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def retrieve(self, document_id: str, tax_code: str) -> RetrievalResult:
        """
        Returns the PDF when `tax_code` matches the archived associate.
        Unknown ids and mismatching tax codes get the same answer.
        """
        if not document_id or Path(document_id).name != document_id:
            return RetrievalResult(authorized=False, error=NOT_AUTHORIZED)

        requester = tax_code.strip().upper()
        for year_dir in self._year_dirs():
            pdf_path, metadata_path, checksum_path = self._paths(year_dir, document_id)
            if not metadata_path.is_file():
                continue

            metadata = self._read_metadata(metadata_path)
            if metadata.associate.tax_code.upper() != requester:
                logger.warning("Access denied to archived document %s", document_id)
                return RetrievalResult(authorized=False, error=NOT_AUTHORIZED)

            try:
                pdf_bytes = pdf_path.read_bytes()
            except OSError:
                logger.error("Archived PDF missing for %s", document_id)
                return RetrievalResult(authorized=False, error="document unavailable")

            integrity_valid, _, current_hash = self._check_integrity(
                pdf_bytes, metadata, checksum_path
            )
            if not integrity_valid:
                logger.error("Integrity check failed for archived document %s", document_id)

            # Not transactional: concurrent reads may lose an increment
            metadata.audit.access_count += 1
            metadata.audit.last_accessed_at = self.clock()
            self._write_metadata(metadata_path, metadata)

            return RetrievalResult(
                authorized=True,
                document=ArchivedDocument(
                    pdf=pdf_bytes,
                    metadata=metadata,
                    integrity_valid=integrity_valid,
                    current_hash=current_hash,
                ),
            )

        return RetrievalResult(authorized=False, error=NOT_AUTHORIZED)

    def list_documents(self, tax_code: str) -> DocumentListing:
        requester = tax_code.strip().upper()
        documents = []

        for _, metadata_path in self._metadata_files():
            try:
                metadata = self._read_metadata(metadata_path)
            except Exception:
                logger.exception("Unreadable archive metadata %s", metadata_path.name)
                continue

            if metadata.associate.tax_code.upper() != requester:
                continue

            documents.append(DocumentSummary(
                document_id=metadata.document_id,
                document_type=metadata.document_type,
                archived_at=metadata.archived_at,
                retention_until=metadata.retention_until,
                verified=metadata.verification.verified,
                has_digital_signature=metadata.has_digital_signature,
                integrity_status=metadata.audit.integrity,
            ))

        documents.sort(key=lambda d: d.archived_at, reverse=True)
        return DocumentListing(
            tax_code=requester,
            total_documents=len(documents),
            documents=documents,
        )

    def generate_export_package(self, tax_code: str, email: str) -> ExportResult:
        """Bundles every document of an associate, PDFs base64-encoded."""
        listing = self.list_documents(tax_code)
        if listing.total_documents == 0:
            return ExportResult(success=False, error=NO_DOCUMENTS)

        now = self.clock()
        export_data = {
            "generatedAt": now.isoformat(),
            "requestedBy": {"taxCode": listing.tax_code, "email": email},
            "totalDocuments": listing.total_documents,
            "documents": [],
        }

        for summary in listing.documents:
            retrieved = self.retrieve(summary.document_id, listing.tax_code)
            if not retrieved.authorized:
                continue
            document = retrieved.document
            export_data["documents"].append({
                "documentId": summary.document_id,
                "metadata": document.metadata.to_record(),
                "pdfBase64": base64.b64encode(document.pdf).decode("ascii"),
                "integrityValid": document.integrity_valid,
                "hash": document.current_hash,
            })

        return ExportResult(
            success=True,
            export_data=export_data,
            file_name=f"export_{listing.tax_code}_{epoch_millis(now)}.json",
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def verify_archive_integrity(self) -> IntegrityReport:
        report = IntegrityReport()

        for year_dir, metadata_path in self._metadata_files():
            report.total += 1
            try:
                metadata = self._read_metadata(metadata_path)
            except Exception:
                logger.exception("Unreadable archive metadata %s", metadata_path.name)
                report.corrupted += 1
                report.details.append(IntegrityDetail(
                    document_id=metadata_path.name[:-len(METADATA_SUFFIX)],
                    status="corrupted",
                    year=year_dir.name,
                ))
                continue

            pdf_path, _, checksum_path = self._paths(year_dir, metadata.document_id)

            try:
                pdf_bytes = pdf_path.read_bytes()
            except OSError:
                report.missing += 1
                report.details.append(IntegrityDetail(
                    document_id=metadata.document_id, status="missing", year=year_dir.name
                ))
                continue

            valid, expected, actual = self._check_integrity(pdf_bytes, metadata, checksum_path)
            if valid:
                report.valid += 1
                report.details.append(IntegrityDetail(
                    document_id=metadata.document_id, status="valid", year=year_dir.name
                ))
            else:
                report.corrupted += 1
                report.details.append(IntegrityDetail(
                    document_id=metadata.document_id,
                    status="corrupted",
                    year=year_dir.name,
                    expected_hash=expected,
                    actual_hash=actual,
                ))

        if report.total:
            report.integrity_rate = round(report.valid / report.total * 100, 2)
        logger.info(
            "Archive integrity: %d total, %d valid, %d corrupted, %d missing",
            report.total, report.valid, report.corrupted, report.missing,
        )
        return report

    def clean_expired_documents(self) -> CleanupResult:
        """Deletes every triple whose retention period has ended."""
        now = self.clock()
        deleted = 0

        for year_dir, metadata_path in list(self._metadata_files()):
            try:
                metadata = self._read_metadata(metadata_path)
            except Exception:
                logger.exception("Unreadable archive metadata %s", metadata_path.name)
                continue

            if metadata.retention_until >= now:
                continue

            pdf_path, _, checksum_path = self._paths(year_dir, metadata.document_id)
            try:
                # Metadata goes last so a half-deleted triple stays visible to the integrity sweep
                pdf_path.unlink(missing_ok=True)
                checksum_path.unlink(missing_ok=True)
                metadata_path.unlink()
            except OSError:
                remaining = [p.name for p in (pdf_path, metadata_path, checksum_path) if p.exists()]
                logger.exception(
                    "Partial deletion of expired document %s, remaining files: %s",
                    metadata.document_id, remaining,
                )
                continue

            deleted += 1
            logger.info("Expired document deleted: %s", metadata.document_id)

        return CleanupResult(
            deleted=deleted,
            message=f"Deleted {deleted} documents past their retention period",
        )

    def get_archive_stats(self) -> ArchiveStats:
        """Aggregate counters; a failed scan yields zeroed stats."""
        try:
            stats = ArchiveStats()
            for year_dir in self._year_dirs():
                stats.by_year[year_dir.name] = 0
                for pdf_path in year_dir.glob("*.pdf"):
                    stats.total_documents += 1
                    stats.by_year[year_dir.name] += 1
                    stats.total_size_bytes += pdf_path.stat().st_size

                for metadata_path in year_dir.glob(f"*{METADATA_SUFFIX}"):
                    metadata = self._read_metadata(metadata_path)
                    if metadata.verification.verified:
                        stats.verified += 1
                    else:
                        stats.pending += 1

                    archived_at = metadata.archived_at
                    if stats.oldest_document is None or archived_at < stats.oldest_document:
                        stats.oldest_document = archived_at
                    if stats.newest_document is None or archived_at > stats.newest_document:
                        stats.newest_document = archived_at
            return stats
        except Exception:
            logger.exception("Archive stats scan failed")
            return ArchiveStats()
