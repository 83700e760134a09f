"""
Messages échangés entre l'interface de check-in et le worker de synchronisation.

    {"type": "SYNC_ATTENDANCE"}                      → demande une passe de synchronisation
    {"type": "ATTENDANCE_SYNCED", "recordId": 12}    → un enregistrement local a été accepté
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

SYNC_ATTENDANCE = "SYNC_ATTENDANCE"
ATTENDANCE_SYNCED = "ATTENDANCE_SYNCED"


class SyncAttendanceMessage(BaseModel):
    type: Literal["SYNC_ATTENDANCE"] = SYNC_ATTENDANCE


class AttendanceSyncedMessage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: Literal["ATTENDANCE_SYNCED"] = ATTENDANCE_SYNCED
    record_id: int  # local_id de l'enregistrement retiré de la file


WorkerMessage = Annotated[
    Union[SyncAttendanceMessage, AttendanceSyncedMessage],
    Field(discriminator="type"),
]

_adapter = TypeAdapter(WorkerMessage)


def parse_message(data: dict) -> Union[SyncAttendanceMessage, AttendanceSyncedMessage]:
    """Valide un message brut. Lève ValueError si le type est inconnu ou le contenu invalide."""
    try:
        return _adapter.validate_python(data)
    except ValidationError as exc:
        raise ValueError(f"Message invalide : {data!r}") from exc
