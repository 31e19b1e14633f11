"""
Transactions Paystack (encaissements): initialisation et vérification,
encadrées par les limites de paiement du service de sécurité.
"""
from typing import Any, Dict, Optional
import logging

from fastapi import HTTPException

from farmshare.config import PAYSTACK_CALLBACK_URL
from farmshare.security import service as security_service
from . import client
from .client import PaystackError

logger = logging.getLogger(__name__)

FAILED_TRANSACTION_STATUSES = {"failed", "abandoned", "reversed"}

def to_kobo(amount_naira) -> int:
    amount = round(float(amount_naira) * 100)
    if amount <= 0:
        raise HTTPException(status_code=400, detail="Amount must be greater than zero")
    return int(amount)

def initialize_payment(user: Dict[str, Any], amount_naira: float, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Initialise un paiement pour l’utilisateur courant.
    - 429 si l’utilisateur est bloqué ou a atteint la limite horaire
    - chaque initiation est comptée, chaque échec fournisseur aussi
    Retour: data Paystack (authorization_url, access_code, reference)
    """
    user_id = str(user["id"])
    security_service.check_payment_rate_limit(user_id)
    amount_kobo = to_kobo(amount_naira)
    security_service.record_payment_initiation(user_id)

    meta = {**(metadata or {}), "user_id": user_id}
    payload = {
        "email": user.get("email"),
        "amount": amount_kobo,
        "metadata": meta,
    }
    if PAYSTACK_CALLBACK_URL:
        payload["callback_url"] = PAYSTACK_CALLBACK_URL

    try:
        data = client.call("POST", "/transaction/initialize", "initialize payment", json=payload)
    except PaystackError as e:
        security_service.record_payment_failure(user_id)
        logger.error("Initialisation paiement échouée user_id=%s: %s", user_id, e)
        raise HTTPException(status_code=502, detail="Paystack initialization failed")
    logger.info("Paiement initialisé user_id=%s reference=%s", user_id, (data or {}).get("reference"))
    return data

def verify_payment(user_id: str, reference: str) -> Dict[str, Any]:
    """Vérifie une transaction; un succès efface les échecs, sinon un échec est compté."""
    try:
        data = client.call("GET", f"/transaction/verify/{reference}", "verify payment")
    except PaystackError as e:
        security_service.record_payment_failure(str(user_id))
        logger.error("Vérification paiement échouée reference=%s: %s", reference, e)
        raise HTTPException(status_code=502, detail="Paystack verification failed")

    status = (data or {}).get("status")
    if status == "success":
        security_service.clear_payment_failures(str(user_id))
    elif status in FAILED_TRANSACTION_STATUSES:
        security_service.record_payment_failure(str(user_id))
    return data
