"""Couche d’accès aux données (Supabase) pour le domaine Utilisateurs.
Lecture: les exceptions sont « catchées » et transformées en valeurs neutres (None) pour ne pas casser l’UX.
Écriture: les erreurs remontent à l’appelant (flux d’authentification, paiements) qui décide du code HTTP.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging
from farmshare.infra.supabase_client import get_service_supabase

logger = logging.getLogger(__name__)

USERS_TABLE = "users"

def _first(res) -> Optional[dict]:
    rows = getattr(res, "data", None) or []
    if isinstance(rows, list):
        return rows[0] if rows else None
    return rows or None

def get_user_by_email(email: str) -> Optional[dict]:
    """Récupère un utilisateur par email (normalisé en minuscules par l’appelant)."""
    if not email:
        return None
    try:
        res = get_service_supabase().table(USERS_TABLE).select("*").eq("email", email).limit(1).execute()
        return _first(res)
    except Exception:
        logger.exception("users.repository.get_user_by_email failed email=%s", email)
        return None

def get_user_by_id(user_id: str) -> Optional[dict]:
    if not user_id:
        return None
    try:
        res = get_service_supabase().table(USERS_TABLE).select("*").eq("id", user_id).limit(1).execute()
        return _first(res)
    except Exception:
        logger.exception("users.repository.get_user_by_id failed user_id=%s", user_id)
        return None

def get_user_by_google_id(google_id: str) -> Optional[dict]:
    if not google_id:
        return None
    try:
        res = get_service_supabase().table(USERS_TABLE).select("*").eq("google_id", google_id).limit(1).execute()
        return _first(res)
    except Exception:
        logger.exception("users.repository.get_user_by_google_id failed")
        return None

def create_user(payload: Dict[str, Any]) -> dict:
    """Insère un utilisateur et retourne la ligne créée (id généré côté base)."""
    res = get_service_supabase().table(USERS_TABLE).insert(payload).execute()
    row = _first(res)
    if not row:
        raise RuntimeError("Insertion utilisateur sans ligne retournée")
    return row

def update_user(user_id: str, data: Dict[str, Any]) -> Optional[dict]:
    """Met à jour les champs donnés (updated_at rafraîchi) et retourne la ligne."""
    payload = dict(data)
    payload["updated_at"] = datetime.now(timezone.utc).isoformat()
    res = get_service_supabase().table(USERS_TABLE).update(payload).eq("id", user_id).execute()
    return _first(res)
