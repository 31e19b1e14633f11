"""
Accès aux données pour la feature 'paystack' (table payouts).
Les coordonnées bancaires vérifiées sont portées par la table users (voir farmshare.users.repository).
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging
from farmshare.infra.supabase_client import get_service_supabase

logger = logging.getLogger(__name__)

PAYOUTS_TABLE = "payouts"

def insert_payout(payload: Dict[str, Any]) -> dict:
    res = get_service_supabase().table(PAYOUTS_TABLE).insert(payload).execute()
    rows = getattr(res, "data", None) or []
    if not rows:
        raise RuntimeError("Insertion payout sans ligne retournée")
    return rows[0]

def update_payout(reference: str, data: Dict[str, Any]) -> Optional[dict]:
    payload = dict(data)
    payload["updated_at"] = datetime.now(timezone.utc).isoformat()
    res = get_service_supabase().table(PAYOUTS_TABLE).update(payload).eq("reference", reference).execute()
    rows = getattr(res, "data", None) or []
    return rows[0] if rows else None

def get_payout(reference: str) -> Optional[dict]:
    try:
        res = get_service_supabase().table(PAYOUTS_TABLE).select("*").eq("reference", reference).limit(1).execute()
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("paystack.repository.get_payout failed reference=%s", reference)
        return None

def list_vendor_payouts(vendor_id: str, limit: int = 100) -> List[dict]:
    try:
        res = (
            get_service_supabase()
            .table(PAYOUTS_TABLE)
            .select("*")
            .eq("vendor_id", vendor_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("paystack.repository.list_vendor_payouts failed vendor_id=%s", vendor_id)
        return []
