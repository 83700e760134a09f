"""
Planificateur APScheduler pour la synchronisation en arrière-plan de la file locale.

Le job relance une passe toutes les SYNC_INTERVAL_MINUTES, même sans transition
réseau détectée (réveil périodique, équivalent du "background sync" du navigateur).
"""

import logging
from typing import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "pending_attendance_sync"


def create_sync_scheduler(
    sync: Callable[[], Awaitable[object]],
    interval_minutes: int,
) -> AsyncIOScheduler:
    """Crée (sans le démarrer) un planificateur exécutant sync à intervalle fixe."""

    async def _sync_scheduled() -> None:
        try:
            await sync()
        except Exception as exc:
            logger.error("Erreur lors de la synchronisation planifiée : %s", exc)

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        _sync_scheduled,
        trigger="interval",
        minutes=interval_minutes,
        id=SYNC_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def start_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Démarre le planificateur (doit être appelé depuis la boucle d'événements)."""
    scheduler.start()
    logger.info("Scheduler démarré : synchronisation de la file locale planifiée.")


def stop_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Arrête le planificateur proprement."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
