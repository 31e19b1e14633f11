"""
OAuth Google (authorization code) via httpx.
- Le rôle et le mode (signup/login) voyagent dans le paramètre state (JSON encodé base64)
- Le profil renvoyé est normalisé en {provider, provider_id, email, name, picture}
"""
from typing import Any, Dict, Optional
from urllib.parse import urlencode
import base64
import json
import logging
import httpx

from farmshare.config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_CALLBACK_URL

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"

class OAuthError(Exception):
    pass

def is_configured() -> bool:
    return bool(GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET and GOOGLE_CALLBACK_URL)

def encode_state(role: Optional[str], mode: Optional[str]) -> str:
    raw = json.dumps({"role": role or "BUYER", "mode": mode or "signup"})
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")

def decode_state(state: Optional[str]) -> Dict[str, str]:
    """State illisible -> valeurs par défaut (BUYER/signup)."""
    try:
        padded = (state or "") + "=" * (-len(state or "") % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
        if not isinstance(data, dict):
            raise ValueError("state")
    except Exception:
        data = {}
    return {"role": str(data.get("role") or "BUYER"), "mode": str(data.get("mode") or "signup")}

def build_authorization_url(role: Optional[str] = None, mode: Optional[str] = None) -> str:
    if not is_configured():
        raise OAuthError("Google OAuth is not configured")
    params = {
        "client_id": GOOGLE_CLIENT_ID,
        "redirect_uri": GOOGLE_CALLBACK_URL,
        "response_type": "code",
        "scope": "openid email profile",
        "state": encode_state(role, mode),
        "prompt": "select_account",
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

def exchange_code(code: str) -> str:
    """Échange le code contre un access token Google."""
    try:
        resp = httpx.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET,
                "redirect_uri": GOOGLE_CALLBACK_URL,
                "grant_type": "authorization_code",
            },
            timeout=10,
        )
    except httpx.HTTPError as e:
        logger.exception("Google token endpoint injoignable")
        raise OAuthError("Google authentication failed") from e
    if resp.status_code != 200:
        logger.warning("Google token exchange refusé status=%s body=%s", resp.status_code, resp.text)
        raise OAuthError("Google authentication failed")
    token = (resp.json() or {}).get("access_token")
    if not token:
        raise OAuthError("Google authentication failed")
    return token

def fetch_profile(access_token: str) -> Dict[str, Any]:
    try:
        resp = httpx.get(GOOGLE_USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"}, timeout=10)
    except httpx.HTTPError as e:
        logger.exception("Google userinfo injoignable")
        raise OAuthError("Google authentication failed") from e
    if resp.status_code != 200:
        raise OAuthError("Google authentication failed")
    info = resp.json() or {}
    if not info.get("email") or not info.get("sub"):
        raise OAuthError("Google account has no email")
    name = info.get("name") or " ".join(p for p in (info.get("given_name"), info.get("family_name")) if p)
    return {
        "provider": "google",
        "provider_id": str(info["sub"]),
        "email": info["email"],
        "name": name or None,
        "picture": info.get("picture"),
    }
