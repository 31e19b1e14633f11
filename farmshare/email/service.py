"""
Envoi d’emails transactionnels via l’API SendGrid v3 (httpx).
- send_email: appel brut, lève EmailDeliveryError si SendGrid refuse ou est injoignable
- helpers: OTP, reset mot de passe, email libre (newsletter)
Sans clé SendGrid configurée, l’envoi est ignoré (warning) pour ne pas bloquer le DEV.
"""
from typing import Optional
from urllib.parse import urlencode
import html as _html
import logging
import httpx

from farmshare.config import (
    SENDGRID_API_KEY,
    SENDGRID_SENDER_EMAIL,
    SENDGRID_SENDER_NAME,
    FRONTEND_URL,
    OTP_EXPIRY_MINUTES,
    RESET_TOKEN_EXPIRY_MINUTES,
)

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"

class EmailDeliveryError(Exception):
    pass

def _build_payload(to: str, subject: str, html: str, text: Optional[str]) -> dict:
    content = []
    if text:
        content.append({"type": "text/plain", "value": text})
    content.append({"type": "text/html", "value": html})
    return {
        "personalizations": [{"to": [{"email": to}]}],
        "from": {"email": SENDGRID_SENDER_EMAIL, "name": SENDGRID_SENDER_NAME or "FarmShare"},
        "subject": subject,
        "content": content,
    }

def send_email(to: str, subject: str, html: str, text: Optional[str] = None) -> bool:
    if not (SENDGRID_API_KEY and SENDGRID_SENDER_EMAIL):
        logger.warning("SendGrid non configuré, email ignoré to=%s subject=%s", to, subject)
        return False

    try:
        with httpx.Client(timeout=10.0) as client:
            resp = client.post(
                SENDGRID_URL,
                headers={"Authorization": f"Bearer {SENDGRID_API_KEY}"},
                json=_build_payload(to, subject, html, text),
            )
    except httpx.HTTPError as e:
        logger.exception("SendGrid HTTP error to=%s", to)
        raise EmailDeliveryError(f"Failed to send email to {to}") from e

    if resp.status_code in (200, 202):
        logger.info("Email envoyé to=%s subject=%s", to, subject)
        return True

    logger.error("SendGrid send failed status=%s body=%s", resp.status_code, resp.text)
    raise EmailDeliveryError(f"Failed to send email to {to}")

def send_otp_email(email: str, name: Optional[str], otp: str) -> bool:
    user_name = _html.escape(name or "User")
    html = (
        "<div>"
        f"<h2>Hello {user_name},</h2>"
        f"<p>Your verification code is: <strong>{otp}</strong></p>"
        f"<p>This code will expire in {OTP_EXPIRY_MINUTES} minutes.</p>"
        "</div>"
    )
    text = f"Hello {name or 'User'},\n\nYour verification code is: {otp}\nIt expires in {OTP_EXPIRY_MINUTES} minutes."
    return send_email(email, "Verify Your Email", html, text)

def build_reset_url(email: str, token: str) -> str:
    return f"{FRONTEND_URL.rstrip('/')}/reset-password?{urlencode({'token': token, 'email': email})}"

def send_password_reset_email(email: str, name: Optional[str], token: str) -> bool:
    user_name = _html.escape(name or "User")
    reset_url = build_reset_url(email, token)
    hours = RESET_TOKEN_EXPIRY_MINUTES // 60
    expiry = f"{hours} hour{'s' if hours > 1 else ''}" if hours and RESET_TOKEN_EXPIRY_MINUTES % 60 == 0 else f"{RESET_TOKEN_EXPIRY_MINUTES} minutes"
    html = (
        "<div>"
        f"<h2>Hello {user_name},</h2>"
        "<p>You requested to reset your password. Click the link below to proceed:</p>"
        f'<p><a href="{_html.escape(reset_url)}">Reset Password</a></p>'
        f"<p>This link will expire in {expiry}.</p>"
        "</div>"
    )
    return send_email(email, "Password Reset Request", html)

def send_custom_email(to: str, subject: str, html: str, text: Optional[str] = None) -> bool:
    """Email libre (newsletter): le contenu HTML est fourni tel quel par l’admin."""
    return send_email(to, subject, html, text)
