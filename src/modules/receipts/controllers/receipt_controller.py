from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from modules.auth.dependencies import require_staff
from modules.common.dependencies import get_services
from modules.receipts.models.receipt import ReceiptRequest
from modules.receipts.services.receipt_service import ReceiptError

router = APIRouter(prefix="/receipts", tags=["receipts"], dependencies=[Depends(require_staff)])


@router.get("/init")
def receipt_init(services=Depends(get_services)):
    return {"success": True, **services.receipts.init_data().to_record()}


@router.post("/submit")
def submit_receipt(request: ReceiptRequest, services=Depends(get_services)):
    try:
        result = services.receipts.submit(request)
    except ReceiptError as e:
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "receipt failed", "details": str(e)},
        )

    if result.send_receipt:
        message = "Ricevuta emessa con successo"
    else:
        message = "Dati salvati con successo (nessuna ricevuta generata)"
    return {"success": True, "message": message, **result.to_record()}
