"""
Vérification de comptes bancaires nigérians via Paystack (GET /bank/resolve).

Politique de retry:
- jusqu’à MAX_RETRIES nouvelles tentatives, attente linéaire RETRY_DELAY_SECONDS × tentative
- uniquement sur erreurs transitoires: timeout, erreur de connexion, 429, 5xx
- les autres 4xx (400, 401, 422...) sont définitifs et classés immédiatement

Les échecs sont rendus sous forme de BankVerificationResult (success=False, error, message),
les entrées invalides lèvent une HTTPException 400.
"""
from typing import Any, Dict, List, Optional
import logging
import time

import httpx
from fastapi import HTTPException

from farmshare.utils.validators import is_valid_account_number, is_valid_bank_code
from . import client
from .models import BankVerificationResult

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 1.0
VERIFY_TIMEOUT = 15.0

BANKS_MAX_RETRIES = 2
BANKS_TIMEOUT = 10.0

RETRYABLE_STATUS = {429, 500, 502, 503, 504}

def _is_retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS or status_code >= 500

def _get_with_retry(path: str, params: Dict[str, Any], timeout: float, max_retries: int) -> httpx.Response:
    """GET avec retry; retourne la dernière réponse ou relève la dernière erreur de transport."""
    attempt = 0
    while True:
        try:
            resp = client.request("GET", path, params=params, timeout=timeout)
            if not _is_retryable_status(resp.status_code) or attempt >= max_retries:
                return resp
            logger.warning("Paystack %s status=%s, retry %s/%s", path, resp.status_code, attempt + 1, max_retries)
        except httpx.TransportError as e:
            if attempt >= max_retries:
                raise
            logger.warning("Paystack %s erreur transport (%s), retry %s/%s", path, e.__class__.__name__, attempt + 1, max_retries)
        attempt += 1
        time.sleep(RETRY_DELAY_SECONDS * attempt)

def _failure(error: str, message: str) -> BankVerificationResult:
    return BankVerificationResult(success=False, error=error, message=message)

def classify_http_error(status_code: int, provider_message: Optional[str]) -> BankVerificationResult:
    if status_code == 400:
        return _failure("Bad request", provider_message or "Invalid request parameters")
    if status_code == 401:
        logger.error("Authentification Paystack refusée")
        return _failure("Authentication failed", "Bank verification service authentication error")
    if status_code == 422:
        return _failure("Invalid account", "Account number not found or invalid for the selected bank")
    if status_code == 429:
        return _failure("Rate limit exceeded", "Too many requests. Please try again in a moment.")
    if status_code >= 500:
        return _failure(
            "Service unavailable",
            "Bank verification service temporarily unavailable. Please try again later.",
        )
    return _failure(provider_message or "Unknown error from Paystack", "Bank verification failed. Please try again.")

def classify_transport_error(error: Exception) -> BankVerificationResult:
    if isinstance(error, httpx.TimeoutException):
        return _failure("Request timeout", "Bank verification request timed out. Please try again.")
    return _failure(str(error) or "Unknown error", "Bank verification service temporarily unavailable")

def verify_bank_account(account_number: str, bank_code: str) -> BankVerificationResult:
    if not client.is_configured():
        logger.error("Paystack API key not configured")
        return _failure(
            "Paystack API key not configured",
            "Bank verification service unavailable. Please contact support.",
        )

    account_number = (account_number or "").strip()
    bank_code = (bank_code or "").strip()
    if not account_number or not bank_code:
        raise HTTPException(status_code=400, detail="Account number and bank code are required")
    if not is_valid_account_number(account_number):
        raise HTTPException(status_code=400, detail="Invalid account number format. Must be 10 digits.")
    if not is_valid_bank_code(bank_code):
        raise HTTPException(status_code=400, detail="Invalid bank code format")

    logger.info("Vérification du compte %s (banque %s)", account_number, bank_code)
    try:
        resp = _get_with_retry(
            "/bank/resolve",
            {"account_number": account_number, "bank_code": bank_code},
            VERIFY_TIMEOUT,
            MAX_RETRIES,
        )
    except httpx.HTTPError as e:
        logger.error("Vérification bancaire échouée pour %s: %s", account_number, e)
        return classify_transport_error(e)

    if resp.status_code >= 400:
        logger.error("Vérification bancaire échouée pour %s: status=%s", account_number, resp.status_code)
        return classify_http_error(resp.status_code, client.provider_message(resp, default=""))

    try:
        body = resp.json()
    except ValueError:
        body = None
    data = (body or {}).get("data") if isinstance(body, dict) else None
    if not (isinstance(body, dict) and body.get("status") and isinstance(data, dict) and data.get("account_name")):
        logger.warning("Réponse Paystack inattendue pour %s", account_number)
        return _failure("Invalid response from Paystack", "Could not verify bank account. Please try again.")

    logger.info("Compte bancaire vérifié: %s", data["account_name"])
    return BankVerificationResult(
        success=True,
        account_name=data["account_name"],
        account_number=account_number,
        bank_code=bank_code,
        message="Bank account verified successfully",
        data=data,
    )

def get_supported_banks() -> List[Dict[str, Any]]:
    """Banques nigérianes dédoublonnées par code (la première occurrence gagne). [] en cas d’échec."""
    if not client.is_configured():
        logger.warning("Liste des banques indisponible: Paystack API key not configured")
        return []

    attempt = 0
    while True:
        try:
            resp = client.request("GET", "/bank", params={"country": "nigeria"}, timeout=BANKS_TIMEOUT)
            resp.raise_for_status()
            banks = (resp.json() or {}).get("data") or []
            break
        except (httpx.HTTPError, ValueError) as e:
            if attempt >= BANKS_MAX_RETRIES:
                logger.error("Récupération des banques échouée: %s", e)
                return []
            attempt += 1
            time.sleep(RETRY_DELAY_SECONDS)

    unique: List[Dict[str, Any]] = []
    seen = set()
    for bank in banks:
        code = bank.get("code")
        if code in seen:
            continue
        seen.add(code)
        unique.append(bank)
    logger.info("%s banques uniques récupérées (%s doublons retirés)", len(unique), len(banks) - len(unique))
    return unique

def health_check() -> bool:
    if not client.is_configured():
        return False
    try:
        return len(get_supported_banks()) > 0
    except Exception:
        logger.exception("Health check Paystack échoué")
        return False
