"""
Service de sécurité centralisé:
- OTP: comptage des échecs, verrouillage temporaire de l’email, limite par minute
- Paiements: limite d’initiations par heure, blocage après échecs répétés
- Webhooks: prévention du rejeu (provider + event_id)
- Nettoyage périodique des données de sécurité (voir farmshare.security.tasks)
Les refus sont levés en HTTPException 429 pour être rendus tels quels par l’API.
"""
from datetime import timedelta
from typing import Optional
import logging
import math

from fastapi import HTTPException

from farmshare.utils.dates import utcnow, iso, parse_ts
from . import repository as repo

logger = logging.getLogger(__name__)

OTP_MAX_ATTEMPTS = 5
OTP_LOCKOUT_MINUTES = 15
OTP_RATE_LIMIT_PER_MINUTE = 5

PAYMENT_MAX_INITIATIONS_PER_HOUR = 5
PAYMENT_MAX_FAILURES_BEFORE_BLOCK = 3
PAYMENT_BLOCK_DURATION_MINUTES = 30

WEBHOOK_RETENTION_DAYS = 30
OTP_ATTEMPT_RETENTION_HOURS = 24

def _remaining_minutes(until) -> int:
    return max(1, math.ceil((until - utcnow()).total_seconds() / 60))

# --- OTP ---

def check_otp_rate_limit(email: str, ip_address: Optional[str] = None) -> None:
    attempt = repo.get_otp_attempt(email)
    if not attempt:
        return
    now = utcnow()

    locked_until = parse_ts(attempt.get("locked_until"))
    if locked_until and now < locked_until:
        remaining = _remaining_minutes(locked_until)
        logger.warning("OTP verrouillé email=%s ip=%s remaining=%smin", email, ip_address, remaining)
        raise HTTPException(
            status_code=429,
            detail=f"Too many failed attempts. Please try again in {remaining} minutes.",
        )

    last_attempt = parse_ts(attempt.get("last_attempt"))
    attempts = int(attempt.get("attempts") or 0)
    if last_attempt and last_attempt > now - timedelta(minutes=1) and attempts >= OTP_RATE_LIMIT_PER_MINUTE:
        logger.warning("OTP rate limit dépassé email=%s", email)
        raise HTTPException(
            status_code=429,
            detail="Too many requests. Please wait a minute before trying again.",
        )

def record_failed_otp_attempt(email: str, ip_address: Optional[str] = None) -> int:
    """Incrémente le compteur d’échecs et verrouille à OTP_MAX_ATTEMPTS. Retourne le compteur."""
    now = utcnow()
    existing = repo.get_otp_attempt(email) or {}
    previous_lock = parse_ts(existing.get("locked_until"))

    # Un verrou échu ouvre une nouvelle série
    if previous_lock and previous_lock <= now:
        attempts = 1
    else:
        attempts = int(existing.get("attempts") or 0) + 1

    data = {
        "attempts": attempts,
        "last_attempt": iso(now),
        "ip_address": ip_address or existing.get("ip_address"),
        "updated_at": iso(now),
    }
    if attempts >= OTP_MAX_ATTEMPTS:
        locked_until = now + timedelta(minutes=OTP_LOCKOUT_MINUTES)
        data["locked_until"] = iso(locked_until)
        logger.warning("Email verrouillé email=%s until=%s", email, data["locked_until"])
    elif previous_lock:
        data["locked_until"] = None

    repo.upsert_otp_attempt(email, data)
    return attempts

def clear_otp_attempts(email: str) -> None:
    repo.delete_otp_attempts(email)
    logger.info("Tentatives OTP effacées email=%s", email)

# --- Paiements ---

def check_payment_rate_limit(user_id: str) -> None:
    row = repo.get_payment_rate_limit(user_id)
    if not row:
        return
    now = utcnow()

    blocked_until = parse_ts(row.get("blocked_until"))
    if blocked_until and now < blocked_until:
        remaining = _remaining_minutes(blocked_until)
        logger.warning("Paiements bloqués user_id=%s remaining=%smin", user_id, remaining)
        raise HTTPException(
            status_code=429,
            detail=f"Payment temporarily blocked due to failed attempts. Please try again in {remaining} minutes.",
        )

    window_start = parse_ts(row.get("window_start"))
    if window_start and window_start > now - timedelta(hours=1):
        if int(row.get("initiations") or 0) >= PAYMENT_MAX_INITIATIONS_PER_HOUR:
            logger.warning("Limite d’initiations de paiement atteinte user_id=%s", user_id)
            raise HTTPException(
                status_code=429,
                detail="Maximum payment attempts reached. Please try again in an hour.",
            )

def record_payment_initiation(user_id: str) -> int:
    now = utcnow()
    row = repo.get_payment_rate_limit(user_id) or {}
    window_start = parse_ts(row.get("window_start"))

    if not window_start or window_start <= now - timedelta(hours=1):
        data = {"initiations": 1, "window_start": iso(now)}
    else:
        data = {"initiations": int(row.get("initiations") or 0) + 1}
    data["updated_at"] = iso(now)
    repo.upsert_payment_rate_limit(user_id, data)
    return data["initiations"]

def record_payment_failure(user_id: str) -> int:
    now = utcnow()
    row = repo.get_payment_rate_limit(user_id) or {}
    failures = int(row.get("failed_attempts") or 0) + 1

    data = {"failed_attempts": failures, "updated_at": iso(now)}
    if not row:
        data["window_start"] = iso(now)
    if failures >= PAYMENT_MAX_FAILURES_BEFORE_BLOCK:
        data["blocked_until"] = iso(now + timedelta(minutes=PAYMENT_BLOCK_DURATION_MINUTES))
        data["failed_attempts"] = 0
        logger.warning("Utilisateur bloqué pour les paiements user_id=%s until=%s", user_id, data["blocked_until"])
    repo.upsert_payment_rate_limit(user_id, data)
    return failures

def clear_payment_failures(user_id: str) -> None:
    if not repo.get_payment_rate_limit(user_id):
        return
    repo.upsert_payment_rate_limit(
        user_id,
        {"failed_attempts": 0, "blocked_until": None, "updated_at": iso(utcnow())},
    )

# --- Webhooks ---

def is_webhook_processed(provider: str, event_id: str) -> bool:
    if repo.get_webhook_event(provider, event_id):
        logger.warning("Webhook dupliqué détecté %s/%s", provider, event_id)
        return True
    return False

def mark_webhook_processed(provider: str, event_id: str, event_type: str, signature: Optional[str] = None) -> bool:
    """Enregistre l’événement. False si un autre traitement l’a déjà enregistré (contrainte d’unicité)."""
    try:
        repo.insert_webhook_event({
            "provider": provider,
            "event_id": event_id,
            "event_type": event_type,
            "signature": signature,
            "processed_at": iso(utcnow()),
        })
    except Exception as e:
        msg = str(e).lower()
        if "23505" in msg or "duplicate" in msg:
            logger.warning("Webhook déjà enregistré %s/%s", provider, event_id)
            return False
        raise
    logger.info("Webhook marqué comme traité %s/%s", provider, event_id)
    return True

# --- Nettoyage ---

def cleanup_old_webhook_events() -> int:
    cutoff = utcnow() - timedelta(days=WEBHOOK_RETENTION_DAYS)
    count = repo.delete_webhook_events_before(iso(cutoff))
    logger.info("Événements webhook supprimés: %s", count)
    return count

def cleanup_old_otp_attempts() -> int:
    now = utcnow()
    cutoff = now - timedelta(hours=OTP_ATTEMPT_RETENTION_HOURS)
    count = repo.delete_stale_otp_attempts(iso(cutoff), iso(now))
    logger.info("Tentatives OTP supprimées: %s", count)
    return count

def reset_expired_payment_limits() -> int:
    now = utcnow()
    count = repo.reset_payment_windows(iso(now - timedelta(hours=1)), iso(now))
    logger.info("Fenêtres de limite de paiement réinitialisées: %s", count)
    return count
