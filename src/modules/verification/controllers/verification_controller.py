from fastapi import APIRouter, Depends, Query

from modules.auth.dependencies import require_admin
from modules.common.dependencies import get_services

router = APIRouter(
    prefix="/verification/admin",
    tags=["verification"],
    dependencies=[Depends(require_admin)],
)


@router.get("/stats")
def token_stats(services=Depends(get_services)):
    return {"success": True, "stats": services.tokens.stats().to_record()}


@router.post("/purge")
def purge_tokens(days: int = Query(7, ge=1), services=Depends(get_services)):
    deleted = services.tokens.purge_older_than(days)
    return {"success": True, "deleted": deleted}
