"""Endpoints Paystack.
- Utilisateur: vérification/enregistrement du compte bancaire, paiements (initialisation, vérification)
- Public: liste des banques (rate-limitée), webhook signé
- Admin: versements vendeurs, suivi de leur statut et historique par vendeur
"""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from pydantic import BaseModel, Field
from typing import Dict, Any, Optional
import logging

from farmshare.utils.security import require_user, require_admin
from farmshare.utils.rate_limit import optional_rate_limit
from . import service as paystack_service
from . import transactions
from . import verification
from .models import verification_http_status
from .webhook import SIGNATURE_HEADER

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/paystack", tags=["Paystack API"])

class VerifyAccountRequest(BaseModel):
    account_number: str = Field(min_length=1, max_length=20)
    bank_code: str = Field(min_length=1, max_length=10)

class PayoutRequest(BaseModel):
    vendor_id: str
    amount: float = Field(gt=0)
    pool_id: Optional[str] = None
    reason: Optional[str] = Field(default=None, max_length=200)

class InitializePaymentRequest(BaseModel):
    amount: float = Field(gt=0)
    metadata: Optional[Dict[str, Any]] = None

@router.post("/verify-account", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def api_verify_account(req: VerifyAccountRequest, user: Dict[str, Any] = Depends(require_user)):
    """Vérifie le compte et l’enregistre sur l’utilisateur; le code HTTP reflète la classification d’échec."""
    result = paystack_service.verify_and_save_bank_account(user, req.account_number, req.bank_code)
    return JSONResponse(status_code=verification_http_status(result), content=result.model_dump())

@router.get("/banks", dependencies=[Depends(optional_rate_limit(times=30, seconds=60))])
def api_banks():
    return {"banks": verification.get_supported_banks()}

@router.post("/payments/initialize", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def api_initialize_payment(req: InitializePaymentRequest, user: Dict[str, Any] = Depends(require_user)):
    return transactions.initialize_payment(user, req.amount, req.metadata)

@router.get("/payments/verify/{reference}")
def api_verify_payment(reference: str, user: Dict[str, Any] = Depends(require_user)):
    return transactions.verify_payment(user["id"], reference)

@router.post("/payouts")
def api_payout_vendor(req: PayoutRequest, admin: Dict[str, Any] = Depends(require_admin)):
    logger.info("Versement demandé par admin_id=%s vendor_id=%s", admin.get("id"), req.vendor_id)
    return paystack_service.payout_vendor(req.vendor_id, req.amount, pool_id=req.pool_id, reason=req.reason)

@router.get("/payouts/{reference}")
def api_payout_status(reference: str, admin: Dict[str, Any] = Depends(require_admin)):
    return paystack_service.refresh_payout_status(reference)

@router.get("/vendors/{vendor_id}/payouts")
def api_vendor_payouts(vendor_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    return paystack_service.list_vendor_payouts(vendor_id)

@router.post("/webhook")
async def api_webhook(request: Request):
    """Reçoit les événements Paystack (corps brut requis pour la signature)."""
    raw_body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    return await run_in_threadpool(paystack_service.handle_webhook, raw_body, signature)
