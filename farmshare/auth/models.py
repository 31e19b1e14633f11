from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)

ROLES = ("BUYER", "VENDOR", "ADMIN")
SELF_ASSIGNABLE_ROLES = ("BUYER", "VENDOR")

# Colonnes exposées au client (jamais de hash ni de jeton)
PUBLIC_USER_FIELDS = (
    "id",
    "email",
    "name",
    "phone",
    "role",
    "is_admin",
    "is_verified",
    "bank_verified",
    "bank_account_name",
    "created_at",
)

class AuthResponse:
    def __init__(
        self,
        success: bool,
        user: Optional[Dict[str, Any]] = None,
        session: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        status_code: int = 400,
        message: Optional[str] = None,
    ):
        self.success = success
        self.user = user
        self.session = session
        self.error = error
        self.status_code = status_code
        self.message = message

    @property
    def access_token(self):
        return (self.session or {}).get("access_token")

    @property
    def refresh_token(self):
        return (self.session or {}).get("refresh_token")

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        if self.session:
            body.update(self.session)
            body["token_type"] = "bearer"
        if self.user is not None:
            body["user"] = self.user
        if self.message:
            body["message"] = self.message
        return body

def normalize_role(role: Optional[str]) -> str:
    """Rôle demandé par le client: ADMIN n’est jamais auto-attribuable, défaut BUYER."""
    value = str(role or "").strip().upper()
    return value if value in SELF_ASSIGNABLE_ROLES else "BUYER"

def build_user_dict(row: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    row = row or {}
    user_dict = {k: row.get(k) for k in PUBLIC_USER_FIELDS}
    user_dict["role"] = row.get("role") or "BUYER"
    user_dict["is_admin"] = bool(row.get("is_admin")) or user_dict["role"] == "ADMIN"
    return user_dict

def build_session_dict(access_token: str, refresh_token: str) -> Dict[str, Any]:
    return {"access_token": access_token, "refresh_token": refresh_token}

def failure(error: str, status_code: int = 400) -> AuthResponse:
    return AuthResponse(False, error=error, status_code=status_code)

def handle_exception(action: str, e: Exception) -> AuthResponse:
    logger.exception("Erreur %s", action)
    return AuthResponse(False, error=f"Erreur {action}: {str(e)}", status_code=500)
