"""
Adaptateur Paystack: centralise la configuration et les appels HTTP (httpx).
- request(): appel brut, laisse remonter les erreurs httpx (utilisé par la vérification avec retry)
- call(): appel « métier » qui déballe {status, message, data} et lève PaystackError sinon
"""
from typing import Any, Dict, Optional
import logging
import httpx

from farmshare.config import PAYSTACK_SECRET_KEY, PAYSTACK_BASE_URL

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

class PaystackError(Exception):
    """Échec d’un appel Paystack; message lisible, code HTTP éventuel du fournisseur."""
    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

def is_configured() -> bool:
    return bool(PAYSTACK_SECRET_KEY)

def get_headers() -> Dict[str, str]:
    if not PAYSTACK_SECRET_KEY:
        raise PaystackError("Paystack API key not configured")
    return {
        "Authorization": f"Bearer {PAYSTACK_SECRET_KEY}",
        "Content-Type": "application/json",
    }

def request(
    method: str,
    path: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    json: Optional[Dict[str, Any]] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> httpx.Response:
    url = f"{PAYSTACK_BASE_URL}/{path.lstrip('/')}"
    return httpx.request(method, url, params=params, json=json, headers=get_headers(), timeout=timeout)

def provider_message(resp: httpx.Response, default: str = "Unknown error from Paystack") -> str:
    try:
        body = resp.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        return body.get("message") or default
    return default

def call(
    method: str,
    path: str,
    action: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    json: Optional[Dict[str, Any]] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Any:
    """Exécute l’appel et retourne body['data']. action sert au message d’erreur (« Failed to <action> »)."""
    try:
        resp = request(method, path, params=params, json=json, timeout=timeout)
    except httpx.HTTPError as e:
        logger.error("Paystack %s %s injoignable: %s", method, path, e)
        raise PaystackError(f"Failed to {action}: {e}") from e

    if resp.status_code >= 400:
        msg = provider_message(resp)
        logger.error("Paystack %s %s status=%s message=%s", method, path, resp.status_code, msg)
        raise PaystackError(f"Failed to {action}: {msg}", status_code=resp.status_code)

    try:
        body = resp.json()
    except ValueError as e:
        raise PaystackError(f"Failed to {action}: Invalid response from Paystack", status_code=resp.status_code) from e
    if not isinstance(body, dict) or not body.get("status"):
        msg = (body or {}).get("message") if isinstance(body, dict) else None
        raise PaystackError(f"Failed to {action}: {msg or 'Invalid response from Paystack'}", status_code=resp.status_code, payload=body)
    return body.get("data")
