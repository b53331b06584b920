import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse

from modules.common.dependencies import get_services, request_meta_from
from modules.submissions.schemas.submission_schemas import DocumentType, MembershipApplication
from modules.submissions.services.lifecycle_service import LifecycleError, SubmissionStatus
from modules.submissions.views.verification_pages import failure_page, rejection_page, success_page
from modules.verification.models.verification_token import TokenRejection

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/form", tags=["form"])


@router.post("/submit")
def submit_application(application: MembershipApplication, request: Request, services=Depends(get_services)):
    """Membership application; signed forms wait for email confirmation when double opt-in is on"""
    try:
        result = services.lifecycle.process_new_submission(
            application, request_meta_from(request), DocumentType.MEMBERSHIP_APPLICATION
        )
    except LifecycleError as e:
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "submission failed", "details": str(e)},
        )

    if result.status == SubmissionStatus.PENDING:
        message = "Controlla la tua email per confermare l'iscrizione."
    else:
        message = "Iscrizione ricevuta e archiviata."
    return {"success": True, "message": message, **result.to_record()}


@router.get("/verify-email", response_class=HTMLResponse)
def verify_email(token: str = Query(""), services=Depends(get_services)):
    try:
        outcome = services.lifecycle.complete_verification(token)
    except LifecycleError:
        logger.error("Verification could not be finalized for %s...", token[:16])
        return HTMLResponse(failure_page(), status_code=500)

    if not outcome.valid:
        status_code, page = rejection_page(TokenRejection(outcome.error))
        return HTMLResponse(page, status_code=status_code)
    return HTMLResponse(success_page(outcome.document_id))
