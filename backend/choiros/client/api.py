"""
Client HTTP de l'endpoint de check-in (POST /api/v1/attendance/check-in).

L'identité envoyée (X-User-Id) est celle de l'enregistrement, pas celle de
l'utilisateur connecté au moment de la synchronisation.
"""

import enum
import logging
from datetime import datetime
from typing import Optional, Union

import httpx

logger = logging.getLogger(__name__)

CHECK_IN_PATH = "/api/v1/attendance/check-in"


class RpcErrorKind(str, enum.Enum):
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    NOT_A_MEMBER = "NOT_A_MEMBER"
    TRANSIENT = "TRANSIENT"


class CheckInRpcError(Exception):
    """Échec d'un appel de check-in, classé selon la réponse du serveur."""

    def __init__(self, kind: RpcErrorKind, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


def _classify(status_code: int) -> RpcErrorKind:
    if status_code == 404:
        return RpcErrorKind.EVENT_NOT_FOUND
    if status_code in (401, 403):
        return RpcErrorKind.NOT_A_MEMBER
    return RpcErrorKind.TRANSIENT


class AttendanceApiClient:
    """Appels asynchrones vers l'API ChoirOS pour une organisation donnée."""

    def __init__(
        self,
        base_url: str,
        organization_slug: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Accept": "application/json"}
        if organization_slug:
            headers["X-Organization-Slug"] = organization_slug
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def check_in(
        self,
        event_id: int,
        user_id: int,
        check_in_at: Optional[Union[str, datetime]] = None,
    ) -> dict:
        """
        Enregistre une présence. Retourne la présence créée (ou existante).
        Lève CheckInRpcError pour toute erreur réseau ou réponse non 2xx.
        """
        body = {"eventId": event_id}
        if check_in_at is not None:
            body["checkInAt"] = check_in_at.isoformat() if isinstance(check_in_at, datetime) else check_in_at

        try:
            response = await self._client.post(
                CHECK_IN_PATH,
                json=body,
                headers={"X-User-Id": str(user_id)},
            )
        except httpx.HTTPError as exc:
            raise CheckInRpcError(RpcErrorKind.TRANSIENT, f"Erreur réseau : {exc}") from exc

        if response.is_success:
            return response.json()

        try:
            detail = response.json().get("detail", response.text)
        except (ValueError, AttributeError):
            detail = response.text
        kind = _classify(response.status_code)
        logger.debug("Check-in refusé (%s) : %s %s", kind.value, response.status_code, detail)
        raise CheckInRpcError(kind, str(detail), status_code=response.status_code)

    async def ping(self, path: str = "/api/health") -> bool:
        """True si le serveur répond 2xx sur path."""
        try:
            response = await self._client.get(path)
        except httpx.HTTPError:
            return False
        return response.is_success

    async def aclose(self) -> None:
        await self._client.aclose()
