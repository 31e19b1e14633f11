import hashlib
import logging
from typing import Optional, Dict, Any

import bcrypt
from fastapi import Request, HTTPException, Depends
from fastapi.responses import Response

from farmshare.config import COOKIE_SECURE, ACCESS_TOKEN_EXPIRES_MINUTES

logger = logging.getLogger(__name__)

COOKIE_NAME = "fs_access"
ADMIN_ROLE = "ADMIN"

# --- Hachage ---

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

def verify_password(password: Optional[str], hashed: Optional[str]) -> bool:
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # hash invalide ou mot de passe > 72 octets
        return False

def hash_token(token: str) -> str:
    """Condensat SHA-256 pour les secrets à forte entropie (refresh/reset tokens)."""
    return hashlib.sha256((token or "").encode("utf-8")).hexdigest()

# --- Cookie de session ---

def set_session_cookie(response: Response, access_token: str):
    response.set_cookie(
        key=COOKIE_NAME,
        value=access_token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="Lax",
        max_age=ACCESS_TOKEN_EXPIRES_MINUTES * 60,
        path="/",
    )

def clear_session_cookie(response: Response):
    response.delete_cookie(COOKIE_NAME, path="/")

# --- Dépendances FastAPI ---

def _token_from_request(request: Request) -> Optional[str]:
    # Hybride: priorité au Bearer, fallback cookie
    token = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
    return token or request.cookies.get(COOKIE_NAME)

def get_current_user(request: Request) -> Dict[str, Any]:
    token = _token_from_request(request)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    from farmshare.auth.service import get_user_from_token as _svc_get_user_from_token
    return _svc_get_user_from_token(token)

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user

def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if not (user.get("is_admin") or user.get("role") == ADMIN_ROLE):
        raise HTTPException(status_code=403, detail="Forbidden")
    return user

def optional_user(request: Request) -> Optional[Dict[str, Any]]:
    """Comme get_current_user mais retourne None au lieu d’une 401/403."""
    if not _token_from_request(request):
        return None
    try:
        return get_current_user(request)
    except HTTPException:
        return None
