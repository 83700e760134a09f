"""
Schéma du contenu d'un QR code de check-in.

Produit par le serveur (GET /api/v1/events/{event_id}/checkin-qr) et décodé par le
client au moment du scan. Format JSON :
    {"type": "choiros-checkin", "eventId": 5, "eventTitle": "Prova",
     "timestamp": <epoch ms génération>, "validUntil": <epoch ms expiration>}
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CheckInQrPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: str                          # Discriminant : doit valoir settings.CHECKIN_QR_TYPE
    event_id: int
    event_title: Optional[str] = None
    timestamp: Optional[int] = None    # Epoch millisecondes, génération du code
    valid_until: int                   # Epoch millisecondes, expiration

    def is_expired(self, now_ms: int) -> bool:
        return now_ms > self.valid_until

    def to_wire(self) -> str:
        """Sérialise le payload tel qu'encodé dans le QR code."""
        return self.model_dump_json(by_alias=True)
