"""Accès Supabase pour les tables de sécurité:
- otp_attempts (1 ligne par email)
- payment_rate_limits (1 ligne par utilisateur)
- webhook_events (unicité provider + event_id)
Les écritures lèvent: un échec de verrouillage ne doit pas passer inaperçu.
"""
from typing import Any, Dict, Optional
import logging
from farmshare.infra.supabase_client import get_service_supabase

logger = logging.getLogger(__name__)

OTP_ATTEMPTS_TABLE = "otp_attempts"
PAYMENT_RATE_LIMITS_TABLE = "payment_rate_limits"
WEBHOOK_EVENTS_TABLE = "webhook_events"

def _first(res) -> Optional[dict]:
    rows = getattr(res, "data", None) or []
    return rows[0] if rows else None

def _count(res) -> int:
    return len(getattr(res, "data", None) or [])

# --- OTP ---

def get_otp_attempt(email: str) -> Optional[dict]:
    res = get_service_supabase().table(OTP_ATTEMPTS_TABLE).select("*").eq("email", email).limit(1).execute()
    return _first(res)

def upsert_otp_attempt(email: str, data: Dict[str, Any]) -> Optional[dict]:
    payload = {"email": email, **data}
    res = get_service_supabase().table(OTP_ATTEMPTS_TABLE).upsert(payload, on_conflict="email").execute()
    return _first(res)

def delete_otp_attempts(email: str) -> int:
    res = get_service_supabase().table(OTP_ATTEMPTS_TABLE).delete().eq("email", email).execute()
    return _count(res)

def delete_stale_otp_attempts(updated_before: str, now: str) -> int:
    """Supprime les tentatives anciennes dont le verrou est absent ou échu."""
    res = (
        get_service_supabase()
        .table(OTP_ATTEMPTS_TABLE)
        .delete()
        .lt("updated_at", updated_before)
        .or_(f"locked_until.is.null,locked_until.lt.\"{now}\"")
        .execute()
    )
    return _count(res)

# --- Paiements ---

def get_payment_rate_limit(user_id: str) -> Optional[dict]:
    res = get_service_supabase().table(PAYMENT_RATE_LIMITS_TABLE).select("*").eq("user_id", user_id).limit(1).execute()
    return _first(res)

def upsert_payment_rate_limit(user_id: str, data: Dict[str, Any]) -> Optional[dict]:
    payload = {"user_id": user_id, **data}
    res = get_service_supabase().table(PAYMENT_RATE_LIMITS_TABLE).upsert(payload, on_conflict="user_id").execute()
    return _first(res)

def reset_payment_windows(window_started_before: str, now: str) -> int:
    res = (
        get_service_supabase()
        .table(PAYMENT_RATE_LIMITS_TABLE)
        .update({"initiations": 0, "window_start": now})
        .lt("window_start", window_started_before)
        .execute()
    )
    return _count(res)

# --- Webhooks ---

def get_webhook_event(provider: str, event_id: str) -> Optional[dict]:
    res = (
        get_service_supabase()
        .table(WEBHOOK_EVENTS_TABLE)
        .select("id")
        .eq("provider", provider)
        .eq("event_id", event_id)
        .limit(1)
        .execute()
    )
    return _first(res)

def insert_webhook_event(payload: Dict[str, Any]) -> Optional[dict]:
    res = get_service_supabase().table(WEBHOOK_EVENTS_TABLE).insert(payload).execute()
    return _first(res)

def delete_webhook_events_before(processed_before: str) -> int:
    res = get_service_supabase().table(WEBHOOK_EVENTS_TABLE).delete().lt("processed_at", processed_before).execute()
    return _count(res)
