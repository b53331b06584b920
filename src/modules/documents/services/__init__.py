from .cleanup import run_retention_sweep
from .document_archive_service import DocumentArchiveService, ArchiveError
from .pdf_service import PdfService, PdfRenderError

__all__ = [
    'run_retention_sweep', 'DocumentArchiveService', 'ArchiveError',
    'PdfService', 'PdfRenderError'
]
