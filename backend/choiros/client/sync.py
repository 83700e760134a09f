"""
Coordinateur de synchronisation de la file locale vers le serveur.

Déroulement d'une passe :
  1. Lire la file locale (instantané : les check-ins ajoutés pendant la passe
     attendent la passe suivante)
  2. Pour chaque enregistrement, dans l'ordre d'insertion et un par un :
     a. Appeler l'endpoint de check-in avec (eventId, userId, checkInAt)
     b. Succès → retirer l'enregistrement et notifier ATTENDANCE_SYNCED
     c. Échec (réseau, refus serveur, délai dépassé) → log, l'enregistrement reste en file
  3. Chaque enregistrement est tenté une seule fois par passe ; pas de retry interne

Les passes sont sérialisées par un verrou : un déclenchement reçu pendant une passe
attend sa fin puis relit la file, un enregistrement n'est donc jamais transmis
deux fois en parallèle. Aucune erreur ne remonte à l'appelant.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from choiros.client.api import AttendanceApiClient
from choiros.client.messages import AttendanceSyncedMessage
from choiros.client.store import LocalStorageError, PendingAttendanceStore

logger = logging.getLogger(__name__)

SyncListener = Callable[[AttendanceSyncedMessage], None]


@dataclass
class SyncReport:
    """Résultat d'une passe de synchronisation."""
    attempted: int = 0
    synced: List[int] = field(default_factory=list)   # local_ids retirés de la file
    failed: List[int] = field(default_factory=list)   # local_ids laissés pour la passe suivante
    storage_error: Optional[str] = None


class SyncCoordinator:
    def __init__(
        self,
        store: PendingAttendanceStore,
        api: AttendanceApiClient,
        request_timeout: Optional[float] = None,
    ):
        self._store = store
        self._api = api
        self._request_timeout = request_timeout
        self._lock = asyncio.Lock()
        self._listeners: List[SyncListener] = []

    def subscribe(self, listener: SyncListener) -> Callable[[], None]:
        """Abonne listener aux notifications ATTENDANCE_SYNCED. Retourne la fonction de désabonnement."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def _notify(self, local_id: int) -> None:
        message = AttendanceSyncedMessage(record_id=local_id)
        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception as exc:
                logger.error("Erreur dans un abonné ATTENDANCE_SYNCED : %s", exc, exc_info=True)

    async def sync_pending(self) -> SyncReport:
        """Exécute une passe complète sur l'instantané courant de la file locale."""
        async with self._lock:
            return await self._run_pass()

    async def _run_pass(self) -> SyncReport:
        report = SyncReport()

        try:
            records = await self._store.list_all()
        except LocalStorageError as exc:
            logger.error("Synchronisation impossible, lecture de la file locale échouée : %s", exc)
            report.storage_error = str(exc)
            return report

        for record in records:
            report.attempted += 1
            try:
                await asyncio.wait_for(
                    self._api.check_in(record.event_id, record.user_id, record.check_in_at),
                    timeout=self._request_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "Check-in local %s : délai de %ss dépassé, nouvel essai à la prochaine passe",
                    record.local_id, self._request_timeout,
                )
                report.failed.append(record.local_id)
                continue
            except Exception as exc:
                logger.warning("Échec de synchronisation du check-in local %s : %s", record.local_id, exc)
                report.failed.append(record.local_id)
                continue

            try:
                await self._store.remove(record.local_id)
            except LocalStorageError as exc:
                # Transmis mais toujours en file : la prochaine passe le renverra (dédupliqué côté serveur)
                logger.error("Check-in local %s transmis mais non retiré : %s", record.local_id, exc)
                report.failed.append(record.local_id)
                continue

            report.synced.append(record.local_id)
            self._notify(record.local_id)

        logger.info(
            "Passe de synchronisation : %d tentés, %d synchronisés, %d en attente",
            report.attempted, len(report.synced), len(report.failed),
        )
        return report
