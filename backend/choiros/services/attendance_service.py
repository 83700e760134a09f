"""
Service métier pour les présences (check-in).

Règles :
- L'événement doit appartenir à l'organisation du tenant, sinon ValueError "introuvable"
- Un seul check-in par (event_id, user_id) : un check-in rejoué (synchronisation offline
  relancée, double passe) renvoie la présence existante sans en créer une nouvelle
- Le timestamp envoyé par le client (heure du scan) est conservé tel quel ;
  synced_at marque les check-ins reçus en différé
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from choiros.models.attendance import Attendance
from choiros.models.event import Event
from choiros.schemas.attendance import AttendanceStats, CheckInRequest

logger = logging.getLogger(__name__)


def _utc_naive(value: datetime) -> datetime:
    """Normalise un datetime en UTC sans tzinfo (format des colonnes DateTime)."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def get_event(db: Session, organization_id: int, event_id: int) -> Event:
    """Retourne l'événement de l'organisation. Lève ValueError s'il est introuvable."""
    event = db.execute(
        select(Event).where(
            Event.id == event_id,
            Event.organization_id == organization_id,
        )
    ).scalar()
    if event is None:
        raise ValueError(f"Événement {event_id} introuvable.")
    return event


def _find_attendance(db: Session, event_id: int, user_id: int) -> Optional[Attendance]:
    return db.execute(
        select(Attendance).where(
            Attendance.event_id == event_id,
            Attendance.user_id == user_id,
        )
    ).scalar()


def record_check_in(
    db: Session,
    organization_id: int,
    user_id: int,
    data: CheckInRequest,
) -> Tuple[Attendance, bool]:
    """
    Enregistre la présence de user_id à l'événement demandé.

    Retourne (présence, créée). créée=False si la présence existait déjà :
    aucune erreur n'est levée, le client peut retirer l'enregistrement de sa file.
    """
    get_event(db, organization_id, data.event_id)

    existing = _find_attendance(db, data.event_id, user_id)
    if existing:
        logger.debug("Check-in déjà enregistré : événement %s, utilisateur %s", data.event_id, user_id)
        return existing, False

    now = _utc_naive(datetime.now(timezone.utc))
    attendance = Attendance(
        event_id=data.event_id,
        user_id=user_id,
        check_in_at=_utc_naive(data.check_in_at) if data.check_in_at else now,
        status="present",
        # Un timestamp client signifie un scan antérieur à l'envoi (file offline)
        synced_at=now if data.check_in_at else None,
    )
    db.add(attendance)
    try:
        db.commit()
    except IntegrityError:
        # Requête concurrente arrivée entre la vérification et l'insert : contrainte unique
        db.rollback()
        existing = _find_attendance(db, data.event_id, user_id)
        if existing is None:
            raise
        logger.debug("Check-in concurrent déjà enregistré : événement %s, utilisateur %s", data.event_id, user_id)
        return existing, False
    db.refresh(attendance)

    logger.info(
        "Check-in enregistré : événement %s, utilisateur %s%s",
        data.event_id, user_id, " (synchronisé)" if data.check_in_at else "",
    )
    return attendance, True


def list_event_attendance(db: Session, organization_id: int, event_id: int) -> List[Attendance]:
    """Présences d'un événement de l'organisation. Lève ValueError si l'événement est introuvable."""
    get_event(db, organization_id, event_id)
    return db.execute(
        select(Attendance)
        .where(Attendance.event_id == event_id)
        .order_by(Attendance.check_in_at)
    ).scalars().all()


def list_user_attendance(
    db: Session,
    organization_id: int,
    user_id: int,
    limit: Optional[int] = None,
) -> List[Attendance]:
    """Historique de présence d'un membre, limité aux événements de l'organisation."""
    query = (
        select(Attendance)
        .join(Event, Event.id == Attendance.event_id)
        .where(
            Attendance.user_id == user_id,
            Event.organization_id == organization_id,
        )
        .order_by(Attendance.check_in_at.desc())
    )
    if limit:
        query = query.limit(limit)
    return db.execute(query).scalars().all()


def get_attendance_stats(db: Session, organization_id: int, user_id: int) -> AttendanceStats:
    """Nombre d'événements de l'organisation, présences du membre et taux de présence (%)."""
    total_events = db.execute(
        select(func.count(Event.id)).where(Event.organization_id == organization_id)
    ).scalar() or 0

    attended_events = db.execute(
        select(func.count(Attendance.id))
        .join(Event, Event.id == Attendance.event_id)
        .where(
            Attendance.user_id == user_id,
            Attendance.status == "present",
            Event.organization_id == organization_id,
        )
    ).scalar() or 0

    rate = (attended_events / total_events) * 100 if total_events > 0 else 0.0

    return AttendanceStats(
        total_events=total_events,
        attended_events=attended_events,
        attendance_rate=rate,
    )
