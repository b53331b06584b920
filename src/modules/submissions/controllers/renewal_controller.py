from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from modules.common.dependencies import get_services, request_meta_from
from modules.submissions.schemas.submission_schemas import (
    DocumentType, MemberLookupRequest, RenewalSubmission
)
from modules.submissions.services.lifecycle_service import LifecycleError

router = APIRouter(prefix="/renewal", tags=["renewal"])


@router.post("/check-member")
def check_member(lookup: MemberLookupRequest, services=Depends(get_services)):
    member = services.renewals.find_member(lookup.tax_code)
    if member is None:
        return {
            "success": False,
            "exists": False,
            "message": "Codice fiscale non trovato. Se sei un nuovo socio usa il modulo di iscrizione.",
        }

    if services.renewals.has_renewed_this_year(lookup.tax_code):
        return {
            "success": False,
            "exists": True,
            "alreadyRenewed": True,
            "message": "Hai già rinnovato l'iscrizione quest'anno.",
        }

    return {
        "success": True,
        "exists": True,
        "alreadyRenewed": False,
        "data": {
            "name": member.get("name"),
            "surname": member.get("surname"),
            "email": member.get("email"),
        },
    }


@router.post("/submit")
def submit_renewal(renewal: RenewalSubmission, request: Request, services=Depends(get_services)):
    """Renewals are archived immediately, without the email confirmation step"""
    if services.renewals.find_member(renewal.tax_code) is None:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "tax code not found among members"},
        )
    if services.renewals.has_renewed_this_year(renewal.tax_code):
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "membership already renewed this year"},
        )

    try:
        result = services.lifecycle.process_new_submission(
            renewal, request_meta_from(request), DocumentType.RENEWAL, double_opt_in=False
        )
    except LifecycleError as e:
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "renewal failed", "details": str(e)},
        )
    return {"success": True, "message": "Rinnovo completato.", **result.to_record()}


@router.get("/stats")
def renewal_stats(year: Optional[int] = Query(None, ge=2000, le=2100), services=Depends(get_services)):
    return {"success": True, "stats": services.renewals.renewal_stats(year)}
