"""
Maintenance périodique des données de sécurité.

Tâche asyncio démarrée par le lifespan:
- supprime les tentatives OTP de plus de 24 h non verrouillées
- supprime les événements webhook de plus de 30 jours
- remet à zéro les fenêtres de limite de paiement échues

Chaque nettoyage est indépendant: un échec est journalisé et retenté au cycle suivant.
Les appels Supabase étant synchrones, chaque passe s’exécute dans un thread (asyncio.to_thread)
pour ne pas bloquer la boucle d’événements.
"""
import asyncio
import logging
from typing import Dict, Optional

from farmshare.config import MAINTENANCE_INTERVAL_SECONDS
from . import service as security_service

logger = logging.getLogger(__name__)

# Intervalle minimal pour éviter une boucle serrée sur mauvaise configuration
MINIMUM_INTERVAL_SECONDS = 60

def run_maintenance() -> Dict[str, Optional[int]]:
    """Exécute une passe complète. Retourne le nombre de lignes traitées par tâche (None si échec)."""
    jobs = {
        "otp_attempts_deleted": security_service.cleanup_old_otp_attempts,
        "webhook_events_deleted": security_service.cleanup_old_webhook_events,
        "payment_windows_reset": security_service.reset_expired_payment_limits,
    }
    results: Dict[str, Optional[int]] = {}
    for name, job in jobs.items():
        try:
            results[name] = job()
        except Exception:
            logger.exception("Maintenance sécurité: échec de %s", name)
            results[name] = None
    return results

async def maintenance_loop(interval_seconds: int = MAINTENANCE_INTERVAL_SECONDS) -> None:
    interval = max(MINIMUM_INTERVAL_SECONDS, int(interval_seconds))
    logger.info("Maintenance sécurité démarrée (intervalle=%ss)", interval)
    while True:
        try:
            results = await asyncio.to_thread(run_maintenance)
            logger.info("Maintenance sécurité terminée: %s", results)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Maintenance sécurité: erreur inattendue")
        await asyncio.sleep(interval)

def start_maintenance_task(interval_seconds: int = MAINTENANCE_INTERVAL_SECONDS) -> asyncio.Task:
    return asyncio.create_task(maintenance_loop(interval_seconds), name="security-maintenance")

async def stop_maintenance_task(task: Optional[asyncio.Task]) -> None:
    if not task or task.done():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        logger.info("Maintenance sécurité arrêtée")
