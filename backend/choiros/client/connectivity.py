"""
Suivi de la connectivité réseau et déclenchement de la synchronisation au retour en ligne.

Deux états : online / offline. L'état initial est lu auprès du fournisseur au démarrage.
- offline → online : une passe de synchronisation est lancée (sans attente ; une erreur
  est journalisée et la file attend le prochain déclenchement)
- online → offline : seul l'état affiché change
- un signal répétant l'état courant est ignoré
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Protocol, Set

from choiros.client.api import AttendanceApiClient

logger = logging.getLogger(__name__)

ConnectivityCallback = Callable[[bool], None]


class ConnectivityProvider(Protocol):
    """Source de l'état réseau de l'appareil, injectée dans ConnectivityMonitor."""

    def is_online(self) -> bool: ...

    def subscribe(self, callback: ConnectivityCallback) -> Callable[[], None]: ...


class _CallbackRegistry:
    def __init__(self) -> None:
        self._callbacks: List[ConnectivityCallback] = []

    def subscribe(self, callback: ConnectivityCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def emit(self, online: bool) -> None:
        for callback in list(self._callbacks):
            callback(online)


class StaticConnectivityProvider(_CallbackRegistry):
    """État réseau piloté manuellement (mode kiosque, tests)."""

    def __init__(self, online: bool = True) -> None:
        super().__init__()
        self._online = online

    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        self.emit(online)


class HttpProbeConnectivityProvider(_CallbackRegistry):
    """
    Considère l'appareil en ligne tant que l'endpoint de santé du serveur répond.
    Sonde à intervalle fixe ; les abonnés ne sont notifiés qu'au changement d'état.
    """

    def __init__(self, api: AttendanceApiClient, interval: float, initial: bool = False) -> None:
        super().__init__()
        self._api = api
        self._interval = interval
        self._online = initial
        self._task: Optional[asyncio.Task] = None

    def is_online(self) -> bool:
        return self._online

    async def probe(self) -> bool:
        online = await self._api.ping()
        if online != self._online:
            self._online = online
            logger.info("Connectivité : %s", "en ligne" if online else "hors ligne")
            self.emit(online)
        return online

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.probe()
            except Exception as exc:
                logger.error("Erreur lors de la sonde de connectivité : %s", exc)

    async def start(self) -> None:
        """Sonde immédiatement (état initial) puis en tâche de fond."""
        await self.probe()
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._loop())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None


class ConnectivityMonitor:
    """Machine à états online/offline qui déclenche on_online à chaque retour en ligne."""

    def __init__(self, provider: ConnectivityProvider, on_online: Callable[[], Awaitable[object]]):
        self._provider = provider
        self._on_online = on_online
        self._online = False
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._tasks: Set[asyncio.Task] = set()
        self._status_listeners: List[ConnectivityCallback] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def start(self) -> None:
        self._online = self._provider.is_online()
        if self._unsubscribe is None:
            self._unsubscribe = self._provider.subscribe(self._handle_change)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_status_change(self, listener: ConnectivityCallback) -> None:
        """Abonne l'affichage du statut (badge Online/Offline)."""
        self._status_listeners.append(listener)

    def _handle_change(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        for listener in list(self._status_listeners):
            listener(online)
        if online:
            # Doit être appelé depuis la boucle d'événements
            task = asyncio.get_running_loop().create_task(self._trigger_sync())
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _trigger_sync(self) -> None:
        try:
            await self._on_online()
        except Exception as exc:
            logger.warning("Synchronisation au retour en ligne échouée : %s", exc)

    async def wait_idle(self) -> None:
        """Attend la fin des synchronisations lancées par les transitions (arrêt, tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
