from .archived_document import (
    ArchiveMetadata, ArchiveReceipt, ArchivedDocument, RetrievalResult,
    DocumentListing, DocumentSummary, ExportResult, IntegrityReport,
    CleanupResult, ArchiveStats, VerificationInfo
)

__all__ = [
    'ArchiveMetadata', 'ArchiveReceipt', 'ArchivedDocument', 'RetrievalResult',
    'DocumentListing', 'DocumentSummary', 'ExportResult', 'IntegrityReport',
    'CleanupResult', 'ArchiveStats', 'VerificationInfo'
]
