"""
Gestionnaires d’exceptions globaux.
- Conserve le champ standard FastAPI "detail" (message technique stable pour les clients/tests)
- Ajoute "message": texte compréhensible par l’utilisateur final (correspondance exacte, puis partielle,
  puis message par défaut selon le code HTTP)
- Les exceptions non gérées sont journalisées et rendues en 500 générique
"""
from datetime import datetime, timezone
import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

USER_FRIENDLY_MESSAGES = {
    # Authentification
    "Invalid credentials": "The email or password you entered is incorrect. Please try again.",
    "Invalid OTP": "The verification code you entered is incorrect. Please check and try again.",
    "OTP expired": "Your verification code has expired. Please request a new one.",
    "No pending signup found": "We couldn't find a pending sign-up for this email. Please sign up again.",
    "User with this email already exists": "An account with this email already exists. Please log in instead.",
    "User not found": "We couldn't find an account with that email. Please check or create a new account.",
    "Invalid refresh token": "Your session has expired. Please log in again.",
    "Invalid token": "Your session has expired. Please log in again.",
    "Token expired": "Your session has expired. Please log in again.",
    "Invalid or expired reset token": "This password reset link is invalid or has expired. Please request a new one.",
    "Email not verified": "Please verify your email address before logging in.",
    "Account is banned": "Your account has been suspended. Please contact support.",
    "Failed to send verification email": "Email service is temporarily unavailable. Please try again later.",
    # Paiements
    "Paystack initialization failed": "We couldn't process your payment. Please try again or use a different payment method.",
    "Paystack verification failed": "We couldn't confirm your payment yet. Please try again in a moment.",
    "Vendor bank details not configured": "The vendor hasn't set up their payment details yet. Please contact support.",
    "Invalid account number format": "Please enter a valid 10-digit account number.",
    # Limitation de débit
    "Too many requests": "You've made too many requests. Please wait a moment before trying again.",
    "Too many failed attempts": "Too many failed attempts. Please wait before trying again.",
    "Maximum payment attempts reached": "You've reached the maximum payment attempts. Please try again later.",
    "Payment temporarily blocked": "Payments are temporarily blocked. Please try again later or contact support.",
    # Générique
    "Unauthorized": "Please log in to continue.",
    "Forbidden": "You don't have permission to do this.",
    "Not Found": "We couldn't find what you're looking for.",
}

DEFAULT_MESSAGES = {
    400: "There was a problem with your request. Please check your information and try again.",
    401: "Please log in to continue.",
    403: "You don't have permission to perform this action.",
    404: "We couldn't find what you're looking for.",
    409: "This resource already exists.",
    422: "Some of the information provided is invalid. Please check and try again.",
    429: "You've made too many requests. Please wait a moment before trying again.",
}
GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again later or contact support if the problem persists."

ERROR_TYPES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    409: "Conflict",
    422: "Unprocessable Entity",
    429: "Too Many Requests",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}

def user_friendly_message(original: Any, status_code: int) -> str:
    text = original if isinstance(original, str) else ""
    if text in USER_FRIENDLY_MESSAGES:
        return USER_FRIENDLY_MESSAGES[text]
    lowered = text.lower()
    for key, friendly in USER_FRIENDLY_MESSAGES.items():
        if key.lower() in lowered:
            return friendly
    return DEFAULT_MESSAGES.get(status_code, GENERIC_ERROR_MESSAGE)

def error_body(request: Request, status_code: int, detail: Any) -> dict:
    return {
        "detail": detail,
        "message": user_friendly_message(detail, status_code),
        "error": ERROR_TYPES.get(status_code, "Error"),
        "status_code": status_code,
        "path": request.url.path,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

def register_exception_handlers(app: FastAPI) -> None:
    """Enregistre les handlers HTTPException, validation (422) et erreurs inattendues (500)."""
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code >= 500:
            logger.error("[%s] %s - %s - %s", request.method, request.url.path, exc.status_code, exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(request, exc.status_code, exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=422, content=jsonable_encoder(error_body(request, 422, exc.errors())))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("[%s] %s - erreur non gérée", request.method, request.url.path)
        return JSONResponse(status_code=500, content=error_body(request, 500, "Internal server error"))
