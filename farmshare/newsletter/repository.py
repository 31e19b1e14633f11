"""Accès Supabase pour la table newsletter_subscribers (email unique, tags text[])."""
from typing import Any, Dict, List, Optional, Tuple
import logging
from farmshare.infra.supabase_client import get_service_supabase

logger = logging.getLogger(__name__)

SUBSCRIBERS_TABLE = "newsletter_subscribers"
RECIPIENTS_PAGE_SIZE = 1000

def _table():
    return get_service_supabase().table(SUBSCRIBERS_TABLE)

def get_subscriber(email: str) -> Optional[dict]:
    res = _table().select("*").eq("email", email).limit(1).execute()
    rows = getattr(res, "data", None) or []
    return rows[0] if rows else None

def insert_subscriber(payload: Dict[str, Any]) -> Optional[dict]:
    res = _table().insert(payload).execute()
    rows = getattr(res, "data", None) or []
    return rows[0] if rows else None

def update_subscriber(email: str, data: Dict[str, Any]) -> Optional[dict]:
    res = _table().update(data).eq("email", email).execute()
    rows = getattr(res, "data", None) or []
    return rows[0] if rows else None

def delete_subscriber(email: str) -> int:
    res = _table().delete().eq("email", email).execute()
    return len(getattr(res, "data", None) or [])

def list_subscribers(offset: int, limit: int, active_only: bool = True) -> Tuple[List[dict], int]:
    """Page d’abonnés (plus récents d’abord) et total correspondant au filtre."""
    q = _table().select("*", count="exact")
    if active_only:
        q = q.eq("is_active", True)
    res = q.order("subscribed_at", desc=True).range(offset, offset + limit - 1).execute()
    rows = getattr(res, "data", None) or []
    total = getattr(res, "count", None)
    return rows, int(total if total is not None else len(rows))

def count_subscribers(is_active: bool, subscribed_since: Optional[str] = None) -> int:
    q = _table().select("id", count="exact").eq("is_active", is_active)
    if subscribed_since:
        q = q.gte("subscribed_at", subscribed_since)
    res = q.limit(1).execute()
    return int(getattr(res, "count", None) or 0)

def _pg_text_array(values: List[str]) -> str:
    """Littéral tableau Postgres: chaque élément entre guillemets, \\ et " échappés."""
    quoted = ('"' + v.replace("\\", "\\\\").replace('"', '\\"') + '"' for v in values)
    return "{" + ",".join(quoted) + "}"

def list_active_recipients(target_tags: Optional[List[str]] = None) -> List[dict]:
    """Abonnés actifs; avec target_tags, seulement ceux partageant au moins un tag."""
    recipients: List[dict] = []
    offset = 0
    # PostgREST plafonne le nombre de lignes par réponse: lecture par pages
    while True:
        q = _table().select("email, name").eq("is_active", True)
        if target_tags:
            q = q.filter("tags", "ov", _pg_text_array(target_tags))
        res = q.order("email").range(offset, offset + RECIPIENTS_PAGE_SIZE - 1).execute()
        rows = getattr(res, "data", None) or []
        recipients.extend(rows)
        if len(rows) < RECIPIENTS_PAGE_SIZE:
            return recipients
        offset += RECIPIENTS_PAGE_SIZE
