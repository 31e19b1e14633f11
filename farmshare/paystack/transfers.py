"""
Transferts Paystack (versements aux vendeurs).
Montants en kobo (1 NGN = 100 kobo). Chaque échec lève PaystackError avec le message du fournisseur.
"""
from typing import Any, Dict, List, Optional
import logging
import secrets
import string
import time

from . import client

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "NGN"
DEFAULT_TRANSFER_REASON = "FarmShare Escrow Release"
_REFERENCE_ALPHABET = string.ascii_lowercase + string.digits

def create_transfer_recipient(
    type: str,
    name: str,
    account_number: str,
    bank_code: str,
    currency: str = DEFAULT_CURRENCY,
) -> Dict[str, Any]:
    logger.info("Création du bénéficiaire de transfert %s", name)
    data = client.call(
        "POST",
        "/transferrecipient",
        "create transfer recipient",
        json={
            "type": type,
            "name": name,
            "account_number": account_number,
            "bank_code": bank_code,
            "currency": currency or DEFAULT_CURRENCY,
        },
    )
    logger.info("Bénéficiaire créé recipient_code=%s", (data or {}).get("recipient_code"))
    return data

def initiate_transfer(
    amount_kobo: int,
    recipient: str,
    reason: Optional[str] = None,
    currency: Optional[str] = None,
    reference: Optional[str] = None,
) -> Dict[str, Any]:
    logger.info("Transfert de %s kobo vers %s", amount_kobo, recipient)
    payload = {
        "source": "balance",
        "amount": int(amount_kobo),
        "recipient": recipient,
        "reason": reason or DEFAULT_TRANSFER_REASON,
        "currency": currency or DEFAULT_CURRENCY,
    }
    if reference:
        payload["reference"] = reference
    data = client.call("POST", "/transfer", "initiate transfer", json=payload)
    logger.info("Transfert initié reference=%s status=%s", (data or {}).get("reference"), (data or {}).get("status"))
    return data

def verify_transfer(reference: str) -> Dict[str, Any]:
    logger.info("Vérification du transfert %s", reference)
    return client.call("GET", f"/transfer/verify/{reference}", "verify transfer")

def fetch_transfer_recipients() -> List[Dict[str, Any]]:
    return client.call("GET", "/transferrecipient", "fetch transfer recipients") or []

def get_banks() -> List[Dict[str, Any]]:
    return client.call("GET", "/bank", "fetch banks", params={"currency": DEFAULT_CURRENCY}) or []

def resolve_account(account_number: str, bank_code: str) -> Dict[str, Any]:
    logger.info("Résolution du compte %s (banque %s)", account_number, bank_code)
    return client.call(
        "GET",
        "/bank/resolve",
        "resolve account",
        params={"account_number": account_number, "bank_code": bank_code},
    )

def generate_transfer_reference(pool_id: str, vendor_id: str) -> str:
    """fs_<pool[:8]>_<vendor[:8]>_<timestamp ms>_<6 caractères aléatoires>"""
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(6))
    return f"fs_{str(pool_id)[:8]}_{str(vendor_id)[:8]}_{int(time.time() * 1000)}_{suffix}"
