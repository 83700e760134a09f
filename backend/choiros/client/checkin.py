"""
Capture d'un check-in par scan de QR code.

Machine à états : idle → scanning → (matched | invalid | expired) → idle

- scanning : caméra active, le premier contenu décodé termine le scan
- invalid  : contenu illisible ou discriminant "type" différent de CHECKIN_QR_TYPE
- expired  : validUntil dépassé
- matched  : scanner arrêté, puis
    * en ligne  → appel direct de l'endpoint ; un échec est affiché, sans mise en file
    * hors ligne → mise en file locale avec l'heure du scan, confirmée immédiatement

Après invalid/expired, la reprise du scan est une action de l'utilisateur (start_scanning).
"""

import asyncio
import enum
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from pydantic import ValidationError

from choiros.client.api import AttendanceApiClient
from choiros.client.store import LocalStorageError, PendingAttendanceRecord, PendingAttendanceStore
from choiros.config import settings
from choiros.schemas.checkin_qr import CheckInQrPayload

logger = logging.getLogger(__name__)

# Messages affichés à l'utilisateur
MSG_SENT = "Check-in registrato con successo!"
MSG_QUEUED = "Check-in salvato offline. Verrà sincronizzato quando tornerai online."
MSG_INVALID = "QR code non valido"
MSG_DAMAGED = "QR code non valido o danneggiato"
MSG_EXPIRED = "QR code scaduto"
MSG_UNAUTHENTICATED = "Devi essere autenticato per effettuare il check-in"
MSG_FAILED = "Errore durante il check-in: {error}"
MSG_STORAGE_FAILED = "Impossibile salvare il check-in offline: {error}"
MSG_CAMERA_UNAVAILABLE = "Impossibile accedere alla fotocamera. Verifica i permessi."


class ScannerState(str, enum.Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    MATCHED = "matched"
    INVALID = "invalid"
    EXPIRED = "expired"


class CheckInStatus(str, enum.Enum):
    SENT = "sent"
    QUEUED = "queued"
    INVALID = "invalid"
    EXPIRED = "expired"
    FAILED = "failed"
    STORAGE_FAILED = "storage_failed"
    UNAUTHENTICATED = "unauthenticated"
    CAMERA_UNAVAILABLE = "camera_unavailable"


@dataclass
class CheckInOutcome:
    status: CheckInStatus
    message: str
    payload: Optional[CheckInQrPayload] = None
    record: Optional[PendingAttendanceRecord] = None  # Renseigné si mis en file

    @property
    def ok(self) -> bool:
        return self.status in (CheckInStatus.SENT, CheckInStatus.QUEUED)


class QrScanner(Protocol):
    """Caméra + décodeur QR de la plateforme."""

    async def start(self) -> None: ...

    def stop(self) -> None: ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CheckInCapture:
    def __init__(
        self,
        store: PendingAttendanceStore,
        api: AttendanceApiClient,
        is_online: Callable[[], bool],
        user_id: Optional[int] = None,
        scanner: Optional[QrScanner] = None,
        request_timeout: Optional[float] = None,
        now: Callable[[], datetime] = _utc_now,
        expected_type: Optional[str] = None,
    ):
        self._store = store
        self._api = api
        self._is_online = is_online
        self._scanner = scanner
        self._request_timeout = request_timeout
        self._now = now
        self._expected_type = expected_type or settings.CHECKIN_QR_TYPE
        self.user_id = user_id
        self.state = ScannerState.IDLE

    async def start_scanning(self) -> Optional[CheckInOutcome]:
        """Active la caméra. Retourne un résultat d'erreur si la caméra est inaccessible."""
        if self.state == ScannerState.SCANNING:
            return None
        if self._scanner is not None:
            try:
                await self._scanner.start()
            except Exception as exc:
                logger.error("Démarrage du scanner impossible : %s", exc)
                self.state = ScannerState.IDLE
                return CheckInOutcome(CheckInStatus.CAMERA_UNAVAILABLE, MSG_CAMERA_UNAVAILABLE)
        self.state = ScannerState.SCANNING
        return None

    def stop_scanning(self) -> None:
        self._stop_scanner()
        if self.state == ScannerState.SCANNING:
            self.state = ScannerState.IDLE

    def reset(self) -> None:
        """Fin de l'affichage du résultat : retour à idle."""
        if self.state != ScannerState.SCANNING:
            self.state = ScannerState.IDLE

    def _stop_scanner(self) -> None:
        if self._scanner is not None and self.state == ScannerState.SCANNING:
            self._scanner.stop()

    def _reject(self, state: ScannerState, status: CheckInStatus, message: str) -> CheckInOutcome:
        self._stop_scanner()
        self.state = state
        return CheckInOutcome(status, message)

    def decode(self, data: str) -> CheckInQrPayload:
        """
        Décode et valide le contenu d'un QR code.
        Lève ValueError (message utilisateur) si le contenu est illisible, étranger ou expiré.
        """
        try:
            raw = json.loads(data)
        except (TypeError, ValueError):
            raise ValueError(MSG_DAMAGED)

        if not isinstance(raw, dict) or raw.get("type") != self._expected_type:
            raise ValueError(MSG_INVALID)

        try:
            payload = CheckInQrPayload.model_validate(raw)
        except ValidationError:
            raise ValueError(MSG_DAMAGED)

        now_ms = int(self._now().timestamp() * 1000)
        if payload.is_expired(now_ms):
            raise ValueError(MSG_EXPIRED)
        return payload

    async def handle_scan(self, data: str) -> Optional[CheckInOutcome]:
        """
        Traite un contenu décodé par le scanner.
        Retourne None si aucun scan n'est en cours (résultat arrivé après l'arrêt).
        """
        if self.state != ScannerState.SCANNING:
            return None

        if self.user_id is None:
            return CheckInOutcome(CheckInStatus.UNAUTHENTICATED, MSG_UNAUTHENTICATED)

        try:
            payload = self.decode(data)
        except ValueError as exc:
            message = str(exc)
            logger.info("QR code refusé : %s", message)
            if message == MSG_EXPIRED:
                return self._reject(ScannerState.EXPIRED, CheckInStatus.EXPIRED, message)
            return self._reject(ScannerState.INVALID, CheckInStatus.INVALID, message)

        self._stop_scanner()
        self.state = ScannerState.MATCHED

        if self._is_online():
            return await self._send(payload)
        return await self._enqueue(payload)

    async def _send(self, payload: CheckInQrPayload) -> CheckInOutcome:
        try:
            await asyncio.wait_for(
                self._api.check_in(payload.event_id, self.user_id),
                timeout=self._request_timeout,
            )
        except Exception as exc:
            # Pas de repli sur la file : l'utilisateur relance lui-même le check-in
            error = "délai dépassé" if isinstance(exc, asyncio.TimeoutError) else str(exc)
            logger.warning("Check-in en ligne échoué (événement %s) : %s", payload.event_id, error)
            return CheckInOutcome(CheckInStatus.FAILED, MSG_FAILED.format(error=error), payload=payload)

        logger.info("Check-in envoyé : événement %s, utilisateur %s", payload.event_id, self.user_id)
        return CheckInOutcome(CheckInStatus.SENT, MSG_SENT, payload=payload)

    async def _enqueue(self, payload: CheckInQrPayload) -> CheckInOutcome:
        try:
            record = await self._store.enqueue(
                event_id=payload.event_id,
                user_id=self.user_id,
                check_in_at=self._now().isoformat(),
            )
        except LocalStorageError as exc:
            return CheckInOutcome(
                CheckInStatus.STORAGE_FAILED,
                MSG_STORAGE_FAILED.format(error=exc),
                payload=payload,
            )

        logger.info("Check-in mis en file hors ligne : événement %s (local %s)", payload.event_id, record.local_id)
        return CheckInOutcome(CheckInStatus.QUEUED, MSG_QUEUED, payload=payload, record=record)
