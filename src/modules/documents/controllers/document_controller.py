from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import EmailStr, field_validator

from modules.auth.dependencies import require_admin
from modules.common.dependencies import get_services
from modules.common.schemas import CamelModel
from modules.documents.services.document_archive_service import NOT_AUTHORIZED
from modules.submissions.schemas.submission_schemas import normalize_tax_code

router = APIRouter(prefix="/documents", tags=["documents"])


class ExportRequest(CamelModel):
    tax_code: str
    email: EmailStr

    @field_validator("tax_code")
    @classmethod
    def _check_tax_code(cls, value: str) -> str:
        return normalize_tax_code(value)


# Admin routes are declared first so "admin" is never taken for a tax code

@router.get("/admin/stats", dependencies=[Depends(require_admin)])
def archive_stats(services=Depends(get_services)):
    return {"success": True, "stats": services.archive.get_archive_stats().to_record()}


@router.get("/admin/integrity", dependencies=[Depends(require_admin)])
def archive_integrity(services=Depends(get_services)):
    return {"success": True, "report": services.archive.verify_archive_integrity().to_record()}


@router.post("/admin/clean", dependencies=[Depends(require_admin)])
def clean_expired(services=Depends(get_services)):
    result = services.archive.clean_expired_documents()
    return {"success": True, **result.to_record()}


@router.post("/export")
def export_documents(export_request: ExportRequest, services=Depends(get_services)):
    result = services.archive.generate_export_package(export_request.tax_code, export_request.email)
    if not result.success:
        raise HTTPException(404, result.error)
    return {"success": True, "fileName": result.file_name, "exportData": result.export_data}


@router.get("/{tax_code}")
def list_documents(tax_code: str, services=Depends(get_services)):
    listing = services.archive.list_documents(tax_code)
    return {"success": True, **listing.to_record()}


@router.get("/{tax_code}/{document_id}")
def download_document(tax_code: str, document_id: str, services=Depends(get_services)):
    """
    Returns the archived PDF to its owner. The recomputed hash and the
    integrity result travel in response headers.
    """
    result = services.archive.retrieve(document_id, tax_code)
    if not result.authorized:
        status_code = 403 if result.error == NOT_AUTHORIZED else 404
        raise HTTPException(status_code, result.error)

    document = result.document
    return Response(
        content=document.pdf,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{document_id}.pdf"',
            "X-Document-Hash": document.current_hash,
            "X-Integrity-Valid": "true" if document.integrity_valid else "false",
        },
    )
