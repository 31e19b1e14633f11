"""
Cas d'usage 'newsletter': abonnements publics, administration et envoi par lots.
"""
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from typing import Any, Dict, List, Optional
import logging
import math
import time

from fastapi import HTTPException

from farmshare.email.service import send_custom_email
from farmshare.utils.dates import utcnow, iso
from farmshare.utils.validators import normalize_email
from . import repository

logger = logging.getLogger(__name__)

BATCH_SIZE = 50
BATCH_PAUSE_SECONDS = 1.0
PREVIEW_RECIPIENTS = 5
PREVIEW_HTML_CHARS = 500
RECENT_DAYS = 7

def subscribe(
    email: str,
    name: Optional[str] = None,
    source: Optional[str] = None,
    tags: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Abonnement:
    - Abonné inactif: réactivation (nom/source/tags conservés quand non fournis; tags=[] les efface)
    - Abonné actif: 409
    - Sinon création (source 'footer' par défaut)
    """
    email = normalize_email(email)
    existing = repository.get_subscriber(email)

    if existing:
        if existing.get("is_active"):
            raise HTTPException(status_code=409, detail="This email is already subscribed to our newsletter.")
        updated = repository.update_subscriber(email, {
            "is_active": True,
            "unsubscribed_at": None,
            "name": name if name is not None else existing.get("name"),
            "source": source if source is not None else existing.get("source"),
            "tags": tags if tags is not None else (existing.get("tags") or []),
        })
        logger.info("Abonnement newsletter réactivé email=%s", email)
        return {
            "message": "Welcome back! Your subscription has been reactivated.",
            "subscriber": updated or existing,
        }

    subscriber = repository.insert_subscriber({
        "email": email,
        "name": name,
        "source": source or "footer",
        "tags": tags or [],
        "is_active": True,
        "subscribed_at": iso(utcnow()),
    })
    logger.info("Nouvel abonné newsletter email=%s", email)
    return {"message": "Successfully subscribed to our newsletter!", "subscriber": subscriber}

def unsubscribe(email: str) -> Dict[str, Any]:
    email = normalize_email(email)
    existing = repository.get_subscriber(email)
    if not existing:
        raise HTTPException(status_code=404, detail="Email not found in our newsletter list.")
    if not existing.get("is_active"):
        return {"message": "This email is already unsubscribed."}

    repository.update_subscriber(email, {"is_active": False, "unsubscribed_at": iso(utcnow())})
    logger.info("Désabonnement newsletter email=%s", email)
    return {"message": "Successfully unsubscribed from our newsletter."}

def list_subscribers(page: int = 1, limit: int = 50, active_only: bool = True) -> Dict[str, Any]:
    page = max(1, int(page))
    limit = max(1, int(limit))
    offset = (page - 1) * limit
    subscribers, total = repository.list_subscribers(offset, limit, active_only)
    return {
        "subscribers": subscribers,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit),
            "has_more": offset + len(subscribers) < total,
        },
    }

def get_stats() -> Dict[str, Any]:
    total_active = repository.count_subscribers(True)
    total_inactive = repository.count_subscribers(False)
    recent = repository.count_subscribers(True, subscribed_since=iso(utcnow() - timedelta(days=RECENT_DAYS)))
    return {
        "total_active": total_active,
        "total_inactive": total_inactive,
        "total": total_active + total_inactive,
        "recent_subscribers": recent,
        # Pourcentage formaté à 2 décimales, 0 sans abonné actif
        "growth_rate": f"{recent / total_active * 100:.2f}" if total_active > 0 else 0,
    }

def delete_subscriber(email: str) -> Dict[str, Any]:
    email = normalize_email(email)
    if not repository.delete_subscriber(email):
        raise HTTPException(status_code=404, detail="Email not found in our newsletter list.")
    logger.info("Abonné newsletter supprimé définitivement email=%s", email)
    return {"message": "Subscriber permanently deleted."}

def _send_one(recipient: Dict[str, Any], subject: str, html_content: str, text_content: Optional[str]) -> bool:
    try:
        send_custom_email(recipient["email"], subject, html_content, text_content)
        return True
    except Exception:
        logger.exception("Échec envoi newsletter to=%s", recipient.get("email"))
        return False

def send_newsletter(
    subject: str,
    html_content: str,
    text_content: Optional[str] = None,
    target_tags: Optional[List[str]] = None,
    test_mode: bool = False,
) -> Dict[str, Any]:
    """Envoi aux abonnés actifs (filtrés par tags).
    - test_mode: aperçu sans envoi
    - sinon lots de BATCH_SIZE envoyés en parallèle, pause entre les lots
    - un échec par destinataire est compté, jamais bloquant
    """
    recipients = repository.list_active_recipients(target_tags)

    if test_mode:
        return {
            "message": "Test mode - newsletter not sent",
            "subject": subject,
            "recipient_count": len(recipients),
            "test_recipients": [r["email"] for r in recipients[:PREVIEW_RECIPIENTS]],
            "html_preview": html_content[:PREVIEW_HTML_CHARS] + "...",
        }

    sent = failed = 0
    with ThreadPoolExecutor(max_workers=BATCH_SIZE) as pool:
        for start in range(0, len(recipients), BATCH_SIZE):
            batch = recipients[start:start + BATCH_SIZE]
            results = list(pool.map(lambda r: _send_one(r, subject, html_content, text_content), batch))
            sent += sum(1 for ok in results if ok)
            failed += sum(1 for ok in results if not ok)
            if start + BATCH_SIZE < len(recipients):
                time.sleep(BATCH_PAUSE_SECONDS)

    logger.info("Newsletter envoyée: %s succès, %s échecs", sent, failed)
    return {
        "message": "Newsletter sent successfully",
        "subject": subject,
        "sent_count": sent,
        "failed_count": failed,
        "total_recipients": len(recipients),
    }
