"""
Webhooks Paystack: signature et identification des événements.
- Signature: en-tête x-paystack-signature = HMAC-SHA512(corps brut, clé secrète) en hexadécimal
- Identifiant de rejeu: "<event>:<data.id>" (ou data.reference à défaut)
"""
from typing import Any, Dict, Optional
import hashlib
import hmac
import json

from farmshare.config import PAYSTACK_SECRET_KEY

SIGNATURE_HEADER = "x-paystack-signature"
PROVIDER = "paystack"

def compute_signature(raw_body: bytes, secret: str = "") -> str:
    key = (secret or PAYSTACK_SECRET_KEY).encode("utf-8")
    return hmac.new(key, raw_body, hashlib.sha512).hexdigest()

def verify_signature(raw_body: bytes, signature: Optional[str]) -> bool:
    if not PAYSTACK_SECRET_KEY or not signature:
        return False
    return hmac.compare_digest(compute_signature(raw_body), signature.strip().lower())

def parse_event(raw_body: bytes) -> Dict[str, Any]:
    """Lève ValueError si le corps n’est pas un objet JSON."""
    event = json.loads(raw_body.decode("utf-8"))
    if not isinstance(event, dict):
        raise ValueError("Webhook payload must be a JSON object")
    return event

def event_id(event: Dict[str, Any]) -> Optional[str]:
    name = event.get("event")
    data = event.get("data") or {}
    ident = data.get("id") or data.get("reference")
    if not name or ident in (None, ""):
        return None
    return f"{name}:{ident}"
