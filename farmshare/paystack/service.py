"""
Cas d'usage 'paystack': orchestre vérification bancaire, transferts, repository et sécurité.
"""
from typing import Any, Dict, Optional
import logging

from fastapi import HTTPException

from farmshare.security import service as security_service
from farmshare.users.repository import get_user_by_id, update_user
from farmshare.utils.dates import utcnow, iso
from . import repository
from . import transfers
from . import verification
from . import webhook
from .client import PaystackError
from .models import BankVerificationResult
from .transactions import to_kobo

logger = logging.getLogger(__name__)

TRANSFER_EVENT_STATUS = {
    "transfer.success": "success",
    "transfer.failed": "failed",
    "transfer.reversed": "reversed",
}

def verify_and_save_bank_account(user: Dict[str, Any], account_number: str, bank_code: str) -> BankVerificationResult:
    """Vérifie le compte auprès de Paystack et, si valide, l’enregistre sur l’utilisateur.
    Un changement de compte invalide le bénéficiaire de transfert déjà créé.
    """
    result = verification.verify_bank_account(account_number, bank_code)
    if not result.success:
        return result

    update_user(user["id"], {
        "bank_verified": True,
        "bank_account_id": result.account_number,
        "bank_code": result.bank_code,
        "bank_account_name": result.account_name,
        "paystack_recipient_code": None,
    })
    logger.info("Coordonnées bancaires enregistrées user_id=%s", user["id"])
    return result

def _ensure_recipient(vendor: Dict[str, Any]) -> str:
    """Code bénéficiaire Paystack du vendeur, créé au premier versement puis réutilisé."""
    code = vendor.get("paystack_recipient_code")
    if code:
        return code
    recipient = transfers.create_transfer_recipient(
        "nuban",
        vendor.get("bank_account_name") or vendor.get("name") or vendor.get("email"),
        vendor["bank_account_id"],
        vendor["bank_code"],
    )
    code = (recipient or {}).get("recipient_code")
    if not code:
        raise PaystackError("Failed to create transfer recipient: missing recipient_code")
    update_user(vendor["id"], {"paystack_recipient_code": code})
    return code

def payout_vendor(
    vendor_id: str,
    amount_naira: float,
    pool_id: Optional[str] = None,
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    """Versement à un vendeur:
    - vendeur existant avec compte bancaire vérifié (400 sinon)
    - montant converti en kobo, référence unique fs_<pool>_<vendor>_<ts>_<rand>
    - enregistrement payouts écrit avant l’appel puis mis à jour avec le statut fournisseur
    """
    vendor = get_user_by_id(vendor_id)
    if not vendor:
        raise HTTPException(status_code=404, detail="Vendor not found")
    if not (vendor.get("bank_verified") and vendor.get("bank_account_id") and vendor.get("bank_code")):
        raise HTTPException(status_code=400, detail="Vendor bank details not configured")

    amount_kobo = to_kobo(amount_naira)
    reference = transfers.generate_transfer_reference(pool_id or "manual", vendor_id)

    try:
        recipient_code = _ensure_recipient(vendor)
    except PaystackError as e:
        logger.error("Création du bénéficiaire échouée vendor_id=%s: %s", vendor_id, e)
        raise HTTPException(status_code=502, detail=str(e))

    repository.insert_payout({
        "vendor_id": vendor_id,
        "pool_id": pool_id,
        "amount": float(amount_naira),
        "amount_kobo": amount_kobo,
        "reference": reference,
        "recipient_code": recipient_code,
        "reason": reason or transfers.DEFAULT_TRANSFER_REASON,
        "status": "pending",
        "created_at": iso(utcnow()),
    })

    try:
        data = transfers.initiate_transfer(amount_kobo, recipient_code, reason=reason, reference=reference)
    except PaystackError as e:
        repository.update_payout(reference, {"status": "failed", "failure_reason": str(e)})
        logger.error("Versement échoué vendor_id=%s reference=%s: %s", vendor_id, reference, e)
        raise HTTPException(status_code=502, detail=str(e))

    payout = repository.update_payout(reference, {
        "status": (data or {}).get("status") or "pending",
        "transfer_code": (data or {}).get("transfer_code"),
    })
    logger.info("Versement initié vendor_id=%s reference=%s", vendor_id, reference)
    return {"payout": payout, "transfer": data}

def refresh_payout_status(reference: str) -> Dict[str, Any]:
    if not repository.get_payout(reference):
        raise HTTPException(status_code=404, detail="Payout not found")
    try:
        data = transfers.verify_transfer(reference)
    except PaystackError as e:
        raise HTTPException(status_code=502, detail=str(e))
    payout = repository.update_payout(reference, {"status": (data or {}).get("status") or "pending"})
    return {"payout": payout, "transfer": data}

def list_vendor_payouts(vendor_id: str) -> Dict[str, Any]:
    if not get_user_by_id(vendor_id):
        raise HTTPException(status_code=404, detail="Vendor not found")
    return {"payouts": repository.list_vendor_payouts(vendor_id)}

def handle_webhook(raw_body: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """Traitement d’un webhook Paystack:
    - 401 si la signature HMAC-SHA512 ne correspond pas
    - événement déjà traité: acquitté sans effet (rejeu)
    - transfer.*: met à jour le statut du versement correspondant
    - charge.success: efface les échecs de paiement de l’utilisateur (metadata.user_id)
    """
    if not webhook.verify_signature(raw_body, signature):
        logger.warning("Webhook Paystack rejeté: signature invalide")
        raise HTTPException(status_code=401, detail="Invalid signature")
    try:
        event = webhook.parse_event(raw_body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")

    eid = webhook.event_id(event)
    if not eid:
        raise HTTPException(status_code=400, detail="Invalid payload")
    event_type = event.get("event")
    if security_service.is_webhook_processed(webhook.PROVIDER, eid):
        return {"received": True, "duplicate": True}

    data = event.get("data") or {}
    if event_type in TRANSFER_EVENT_STATUS and data.get("reference"):
        update = {"status": TRANSFER_EVENT_STATUS[event_type]}
        if event_type != "transfer.success":
            update["failure_reason"] = data.get("reason") or data.get("gateway_response") or event_type
        repository.update_payout(data["reference"], update)
    elif event_type == "charge.success":
        meta = data.get("metadata")
        user_id = meta.get("user_id") if isinstance(meta, dict) else None
        if user_id:
            security_service.clear_payment_failures(str(user_id))

    security_service.mark_webhook_processed(webhook.PROVIDER, eid, event_type, signature)
    return {"received": True, "duplicate": False}
