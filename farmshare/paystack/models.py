from typing import Any, Dict, Optional
from pydantic import BaseModel

class BankVerificationResult(BaseModel):
    success: bool
    account_name: Optional[str] = None
    account_number: Optional[str] = None
    bank_code: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

# Code HTTP renvoyé au client selon la classification d’un échec de vérification
VERIFICATION_ERROR_STATUS = {
    "Paystack API key not configured": 503,
    "Authentication failed": 503,
    "Invalid account": 422,
    "Rate limit exceeded": 429,
    "Service unavailable": 503,
    "Request timeout": 504,
    "Invalid response from Paystack": 502,
}

def verification_http_status(result: BankVerificationResult) -> int:
    if result.success:
        return 200
    return VERIFICATION_ERROR_STATUS.get(result.error or "", 400)
