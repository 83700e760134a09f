"""
Schémas Pydantic pour les présences (check-in).
Endpoint principal : POST /api/v1/attendance/check-in

Les champs circulent en camelCase sur le réseau (eventId, checkInAt), comme les
messages du client offline ; les noms Python restent en snake_case.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

CAMEL_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CheckInRequest(BaseModel):
    """Check-in envoyé par le client, en direct (online) ou depuis la file locale (offline)."""

    model_config = CAMEL_CONFIG

    event_id: int
    check_in_at: Optional[datetime] = None  # Timestamp du scan ; absent → heure de réception serveur

    @field_validator("event_id")
    @classmethod
    def event_id_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("L'identifiant d'événement doit être positif.")
        return v


class AttendanceResponse(BaseModel):
    """Présence enregistrée, renvoyée après check-in ou lors d'une lecture."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    event_id: int
    user_id: int
    check_in_at: datetime
    check_out_at: Optional[datetime] = None
    status: str
    notes: Optional[str] = None
    synced_at: Optional[datetime] = None
    already_recorded: bool = False  # True si (event_id, user_id) existait déjà


class AttendanceStats(BaseModel):
    """Statistiques de présence d'un membre dans son organisation."""

    model_config = CAMEL_CONFIG

    total_events: int
    attended_events: int
    attendance_rate: float  # Pourcentage 0-100

