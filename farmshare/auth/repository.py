from typing import Optional, Dict, Any
import logging
from farmshare.infra.supabase_client import get_service_supabase

logger = logging.getLogger(__name__)

PENDING_SIGNUPS_TABLE = "pending_signups"

# --- Inscriptions en attente de vérification OTP ---

def get_pending_signup(email: str) -> Optional[dict]:
    """Inscription en attente pour cet email (None si absente ou erreur de lecture)."""
    try:
        res = get_service_supabase().table(PENDING_SIGNUPS_TABLE).select("*").eq("email", email).limit(1).execute()
        rows = getattr(res, "data", None) or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("auth.repository.get_pending_signup failed email=%s", email)
        return None

def upsert_pending_signup(payload: Dict[str, Any]) -> Optional[dict]:
    """Crée ou remplace l’inscription en attente (unicité sur email)."""
    res = get_service_supabase().table(PENDING_SIGNUPS_TABLE).upsert(payload, on_conflict="email").execute()
    rows = getattr(res, "data", None) or []
    return rows[0] if rows else None

def update_pending_signup(email: str, data: Dict[str, Any]) -> Optional[dict]:
    res = get_service_supabase().table(PENDING_SIGNUPS_TABLE).update(data).eq("email", email).execute()
    rows = getattr(res, "data", None) or []
    return rows[0] if rows else None

def delete_pending_signup(email: str) -> None:
    get_service_supabase().table(PENDING_SIGNUPS_TABLE).delete().eq("email", email).execute()
