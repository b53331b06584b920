import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from modules.certificates.models.certificate import CertificateForm
from modules.certificates.services.certificate_service import (
    EmailMismatchError, InvalidCertificateError, MemberNotFoundError
)
from modules.common.dependencies import get_services
from modules.submissions.schemas.submission_schemas import MemberLookupRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/certificates", tags=["certificates"])

MEMBER_NOT_FOUND = "Socio non trovato. Verifica il codice fiscale inserito."


@router.post("/check-member")
def check_member(lookup: MemberLookupRequest, services=Depends(get_services)):
    member = services.certificates.find_member(lookup.tax_code)
    if member is None:
        return JSONResponse(status_code=404, content={"success": False, "message": MEMBER_NOT_FOUND})
    return {"success": True, "member": member.to_record()}


@router.post("/upload")
async def upload_certificate(
    tax_code: str = Form(..., alias="taxCode"),
    email_confirm: str = Form(..., alias="emailConfirm"),
    expiry_date: str = Form(..., alias="expiryDate"),
    certificate: UploadFile = File(...),
    services=Depends(get_services),
):
    try:
        form = CertificateForm(tax_code=tax_code, email_confirm=email_confirm, expiry_date=expiry_date)
    except ValidationError as e:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "validation failed",
                "details": jsonable_encoder(e.errors(include_url=False, include_context=False)),
            },
        )

    contents = await certificate.read()
    try:
        result = services.certificates.upload(
            form, certificate.filename, certificate.content_type, contents
        )
    except InvalidCertificateError as e:
        return JSONResponse(status_code=400, content={"success": False, "message": str(e)})
    except MemberNotFoundError:
        return JSONResponse(status_code=404, content={"success": False, "message": MEMBER_NOT_FOUND})
    except EmailMismatchError:
        return JSONResponse(
            status_code=403,
            content={
                "success": False,
                "message": "L'email inserita non corrisponde a quella associata al codice fiscale.",
            },
        )
    except OSError as e:
        logger.error("Certificate could not be stored: %s", e)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Errore nell'upload del certificato"},
        )

    return {
        "success": True,
        "message": "Certificato medico caricato con successo",
        **result.to_record(),
    }
