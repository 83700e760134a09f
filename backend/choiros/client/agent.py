"""
Assemblage du client de check-in offline.

Relie la file locale, le client HTTP, le suivi de connectivité, le coordinateur de
synchronisation, la capture des scans et le planificateur. Les passes de
synchronisation sont déclenchées par :
- le retour en ligne (ConnectivityMonitor)
- l'utilisateur ("Sincronizza ora" → request_sync)
- le message {"type": "SYNC_ATTENDANCE"} (post_message)
- le réveil périodique APScheduler
"""

import asyncio
import logging
from typing import Callable, Optional, Set

from choiros.client.api import AttendanceApiClient
from choiros.client.checkin import CheckInCapture, QrScanner
from choiros.client.connectivity import ConnectivityMonitor, ConnectivityProvider, HttpProbeConnectivityProvider
from choiros.client.messages import AttendanceSyncedMessage, SyncAttendanceMessage, parse_message
from choiros.client.scheduler import create_sync_scheduler, start_scheduler, stop_scheduler
from choiros.client.store import LocalStorageError, PendingAttendanceStore, SqlitePendingStore
from choiros.client.sync import SyncCoordinator, SyncReport
from choiros.config import Settings, settings

logger = logging.getLogger(__name__)


class CheckInAgent:
    def __init__(
        self,
        store: PendingAttendanceStore,
        api: AttendanceApiClient,
        provider: ConnectivityProvider,
        user_id: Optional[int] = None,
        scanner: Optional[QrScanner] = None,
        request_timeout: Optional[float] = None,
        sync_interval_minutes: Optional[int] = None,
    ):
        self.store = store
        self.api = api
        self.provider = provider
        self.coordinator = SyncCoordinator(store, api, request_timeout=request_timeout)
        self.monitor = ConnectivityMonitor(provider, self.coordinator.sync_pending)
        self.capture = CheckInCapture(
            store,
            api,
            is_online=lambda: self.monitor.is_online,
            user_id=user_id,
            scanner=scanner,
            request_timeout=request_timeout,
        )
        self.scheduler = (
            create_sync_scheduler(self.coordinator.sync_pending, sync_interval_minutes)
            if sync_interval_minutes
            else None
        )
        self._tasks: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        user_id: Optional[int] = None,
        scanner: Optional[QrScanner] = None,
        config: Settings = settings,
    ) -> "CheckInAgent":
        """Client de production : file SQLite locale + sonde HTTP de connectivité."""
        api = AttendanceApiClient(
            config.SERVER_URL,
            organization_slug=config.ORGANIZATION_SLUG,
            timeout=config.SYNC_REQUEST_TIMEOUT_SECONDS,
        )
        return cls(
            store=SqlitePendingStore(config.OFFLINE_DB_URL),
            api=api,
            provider=HttpProbeConnectivityProvider(api, config.CONNECTIVITY_PROBE_INTERVAL_SECONDS),
            user_id=user_id,
            scanner=scanner,
            request_timeout=config.SYNC_REQUEST_TIMEOUT_SECONDS,
            sync_interval_minutes=config.SYNC_INTERVAL_MINUTES,
        )

    @property
    def is_online(self) -> bool:
        return self.monitor.is_online

    async def start(self) -> None:
        start_provider = getattr(self.provider, "start", None)
        if start_provider is not None:
            await start_provider()
        self.monitor.start()
        if self.scheduler is not None:
            start_scheduler(self.scheduler)
        logger.info("Client de check-in démarré (%s)", "en ligne" if self.is_online else "hors ligne")

    async def stop(self) -> None:
        if self.scheduler is not None:
            stop_scheduler(self.scheduler)
        self.monitor.stop()
        stop_provider = getattr(self.provider, "stop", None)
        if stop_provider is not None:
            await stop_provider()
        await self.monitor.wait_idle()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.api.aclose()
        close_store = getattr(self.store, "close", None)
        if close_store is not None:
            close_store()

    def on_synced(self, listener: Callable[[AttendanceSyncedMessage], None]) -> Callable[[], None]:
        """Abonne l'interface aux messages ATTENDANCE_SYNCED (mise à jour du compteur)."""
        return self.coordinator.subscribe(listener)

    async def request_sync(self) -> SyncReport:
        """Synchronisation demandée explicitement par l'utilisateur."""
        return await self.coordinator.sync_pending()

    def post_message(self, data: dict) -> Optional[asyncio.Task]:
        """
        Point d'entrée des messages inter-processus.
        SYNC_ATTENDANCE lance une passe en arrière-plan et retourne la tâche correspondante.
        Lève ValueError pour un message inconnu.
        """
        message = parse_message(data)
        if isinstance(message, SyncAttendanceMessage):
            task = asyncio.get_running_loop().create_task(self.coordinator.sync_pending())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            return task
        logger.debug("Message ignoré par le worker : %s", message.type)
        return None

    async def pending_count(self) -> Optional[int]:
        """Nombre de check-ins en attente, None si la file locale est illisible."""
        try:
            return await self.store.count()
        except LocalStorageError as exc:
            logger.error("Lecture du nombre de check-ins en attente impossible : %s", exc)
            return None
