"""
Tests unitaires pour le service de présences.
Couverture : événement introuvable, création, déduplication (event_id, user_id),
timestamp client conservé, historique, statistiques.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from choiros.models.attendance import Attendance
from choiros.models.event import Event
from choiros.schemas.attendance import CheckInRequest
from choiros.services.attendance_service import (
    get_attendance_stats,
    get_event,
    list_event_attendance,
    record_check_in,
)


# --- Helpers ---

def make_event(event_id=5, organization_id=1):
    event = MagicMock(spec=Event)
    event.id = event_id
    event.organization_id = organization_id
    event.title = "Prova generale"
    event.start_at = datetime(2025, 1, 1, 20, 0)
    return event


def scalar_result(value):
    result = MagicMock()
    result.scalar.return_value = value
    return result


def make_db(event=None, existing=None):
    """Mock de session DB : 1er execute → événement, 2e execute → présence existante."""
    db = MagicMock()
    db.execute.side_effect = [scalar_result(event), scalar_result(existing)]
    return db


# ============================================================
# get_event
# ============================================================

def test_get_event_introuvable():
    db = MagicMock()
    db.execute.return_value = scalar_result(None)

    with pytest.raises(ValueError, match="introuvable"):
        get_event(db, organization_id=1, event_id=99)


# ============================================================
# record_check_in
# ============================================================

def test_check_in_evenement_introuvable():
    """Événement d'une autre organisation (ou inexistant) → ValueError, aucun insert."""
    db = make_db(event=None)

    with pytest.raises(ValueError, match="introuvable"):
        record_check_in(db, 1, 7, CheckInRequest(event_id=5))

    db.add.assert_not_called()
    db.commit.assert_not_called()


def test_check_in_nouveau():
    """Premier check-in → présence créée, statut present, pas de synced_at."""
    db = make_db(event=make_event())

    attendance, created = record_check_in(db, 1, 7, CheckInRequest(event_id=5))

    assert created is True
    assert isinstance(attendance, Attendance)
    assert attendance.event_id == 5
    assert attendance.user_id == 7
    assert attendance.status == "present"
    assert attendance.check_in_at is not None
    assert attendance.synced_at is None
    db.add.assert_called_once_with(attendance)
    db.commit.assert_called_once()


def test_check_in_timestamp_client_conserve():
    """checkInAt fourni (file offline) → conservé en UTC, synced_at renseigné."""
    db = make_db(event=make_event())
    scanned = datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc)

    attendance, created = record_check_in(db, 1, 7, CheckInRequest(event_id=5, check_in_at=scanned))

    assert created is True
    assert attendance.check_in_at == datetime(2025, 1, 1, 10, 0)
    assert attendance.synced_at is not None


def test_check_in_deja_enregistre():
    """(event_id, user_id) déjà présent → présence existante renvoyée, aucun insert."""
    existing = MagicMock(spec=Attendance)
    db = make_db(event=make_event(), existing=existing)

    attendance, created = record_check_in(db, 1, 7, CheckInRequest(event_id=5))

    assert created is False
    assert attendance is existing
    db.add.assert_not_called()
    db.commit.assert_not_called()


def test_check_in_rejoue_deux_fois():
    """Deux envois du même check-in (double passe de sync) → une seule création."""
    first = MagicMock(spec=Attendance)
    db = MagicMock()
    db.execute.side_effect = [
        scalar_result(make_event()), scalar_result(None),
        scalar_result(make_event()), scalar_result(first),
    ]
    data = CheckInRequest(event_id=5, check_in_at=datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc))

    _, created_1 = record_check_in(db, 1, 7, data)
    _, created_2 = record_check_in(db, 1, 7, data)

    assert created_1 is True
    assert created_2 is False
    assert db.add.call_count == 1


def test_check_in_concurrent_contrainte_unique():
    """Insert refusé par la contrainte unique (requête concurrente) → présence existante, pas de 500."""
    concurrent = MagicMock(spec=Attendance)
    db = MagicMock()
    db.execute.side_effect = [
        scalar_result(make_event()), scalar_result(None), scalar_result(concurrent),
    ]
    db.commit.side_effect = IntegrityError("INSERT INTO attendance", {}, Exception("UNIQUE constraint failed"))

    attendance, created = record_check_in(db, 1, 7, CheckInRequest(event_id=5))

    assert created is False
    assert attendance is concurrent
    db.rollback.assert_called_once()
    db.refresh.assert_not_called()


def test_check_in_integrity_error_sans_presence_relevee():
    db = MagicMock()
    db.execute.side_effect = [
        scalar_result(make_event()), scalar_result(None), scalar_result(None),
    ]
    db.commit.side_effect = IntegrityError("INSERT INTO attendance", {}, Exception("FOREIGN KEY constraint failed"))

    with pytest.raises(IntegrityError):
        record_check_in(db, 1, 7, CheckInRequest(event_id=5))


def test_check_in_event_id_invalide():
    with pytest.raises(ValueError):
        CheckInRequest(event_id=0)


def test_check_in_request_camel_case():
    """Le corps réseau utilise eventId / checkInAt."""
    data = CheckInRequest.model_validate({"eventId": 5, "checkInAt": "2025-01-01T10:00:00Z"})
    assert data.event_id == 5
    assert data.check_in_at == datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc)


# ============================================================
# list_event_attendance
# ============================================================

def test_liste_evenement_introuvable():
    db = MagicMock()
    db.execute.return_value = scalar_result(None)

    with pytest.raises(ValueError, match="introuvable"):
        list_event_attendance(db, 1, 99)


def test_liste_evenement():
    rows = [MagicMock(spec=Attendance), MagicMock(spec=Attendance)]
    list_result = MagicMock()
    list_result.scalars.return_value.all.return_value = rows
    db = MagicMock()
    db.execute.side_effect = [scalar_result(make_event()), list_result]

    assert list_event_attendance(db, 1, 5) == rows


# ============================================================
# get_attendance_stats
# ============================================================

def test_stats_taux_de_presence():
    db = MagicMock()
    db.execute.side_effect = [scalar_result(8), scalar_result(6)]

    stats = get_attendance_stats(db, 1, 7)

    assert stats.total_events == 8
    assert stats.attended_events == 6
    assert stats.attendance_rate == 75.0


def test_stats_sans_evenement():
    """Aucun événement → taux 0 (pas de division par zéro)."""
    db = MagicMock()
    db.execute.side_effect = [scalar_result(0), scalar_result(0)]

    stats = get_attendance_stats(db, 1, 7)

    assert stats.total_events == 0
    assert stats.attendance_rate == 0.0
