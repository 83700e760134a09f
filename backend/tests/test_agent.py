"""
Tests d'intégration du client de check-in assemblé (CheckInAgent).
Couverture : scan hors ligne puis retour en ligne, message SYNC_ATTENDANCE,
synchronisation manuelle, compteur de la file, planificateur.
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from choiros.client.agent import CheckInAgent
from choiros.client.api import AttendanceApiClient
from choiros.client.checkin import CheckInStatus
from choiros.client.connectivity import HttpProbeConnectivityProvider, StaticConnectivityProvider
from choiros.client.scheduler import SYNC_JOB_ID, create_sync_scheduler
from choiros.client.store import InMemoryPendingStore, LocalStorageError, SqlitePendingStore
from choiros.config import Settings


def valid_qr(event_id=5):
    valid_until = datetime.now(timezone.utc) + timedelta(hours=2)
    return json.dumps({
        "type": "choiros-checkin",
        "eventId": event_id,
        "validUntil": int(valid_until.timestamp() * 1000),
    })


class BrokenCountStore(InMemoryPendingStore):
    async def count(self):
        raise LocalStorageError("database disk image is malformed")


def make_agent(fake_api, online=False, store=None, **kwargs):
    provider = StaticConnectivityProvider(online=online)
    agent = CheckInAgent(store or InMemoryPendingStore(), fake_api, provider, user_id=2, **kwargs)
    return agent, provider


# ============================================================
# Scénario hors ligne → en ligne
# ============================================================

def test_hors_ligne_puis_retour_en_ligne(fake_api):
    """Scan hors ligne mis en file, puis synchronisé automatiquement au retour du réseau."""
    agent, provider = make_agent(fake_api, online=False)
    received = []
    agent.on_synced(received.append)

    async def scenario():
        await agent.start()
        await agent.capture.start_scanning()
        outcome = await agent.capture.handle_scan(valid_qr(5))
        queued = await agent.pending_count()
        provider.set_online(True)
        await agent.monitor.wait_idle()
        remaining = await agent.pending_count()
        await agent.stop()
        return outcome, queued, remaining

    outcome, queued, remaining = asyncio.run(scenario())

    assert outcome.status == CheckInStatus.QUEUED
    assert queued == 1
    assert remaining == 0
    assert [call[:2] for call in fake_api.calls] == [(5, 2)]
    assert fake_api.calls[0][2] == outcome.record.check_in_at
    assert [m.record_id for m in received] == [outcome.record.local_id]


def test_en_ligne_envoi_direct(fake_api):
    agent, _ = make_agent(fake_api, online=True)

    async def scenario():
        await agent.start()
        await agent.capture.start_scanning()
        outcome = await agent.capture.handle_scan(valid_qr(8))
        await agent.stop()
        return outcome

    assert asyncio.run(scenario()).status == CheckInStatus.SENT
    assert fake_api.calls == [(8, 2, None)]


# ============================================================
# Déclenchements explicites
# ============================================================

def test_message_sync_attendance(fake_api):
    store = InMemoryPendingStore()
    agent, _ = make_agent(fake_api, online=True, store=store)

    async def scenario():
        await store.enqueue(3, 2, "2025-01-01T10:00:00+00:00")
        task = agent.post_message({"type": "SYNC_ATTENDANCE"})
        report = await task
        return report, await store.list_all()

    report, pending = asyncio.run(scenario())

    assert len(report.synced) == 1
    assert pending == []


def test_message_inconnu(fake_api):
    agent, _ = make_agent(fake_api)
    with pytest.raises(ValueError):
        agent.post_message({"type": "SKIP_WAITING"})


def test_message_attendance_synced_ignore(fake_api):
    agent, _ = make_agent(fake_api)
    assert agent.post_message({"type": "ATTENDANCE_SYNCED", "recordId": 1}) is None


def test_synchronisation_manuelle_hors_ligne(fake_api):
    """request_sync tente la passe même si l'appareil se croit hors ligne."""
    store = InMemoryPendingStore()
    agent, _ = make_agent(fake_api, online=False, store=store)

    async def scenario():
        await store.enqueue(3, 2, "2025-01-01T10:00:00+00:00")
        return await agent.request_sync()

    report = asyncio.run(scenario())
    assert report.attempted == 1
    assert len(fake_api.calls) == 1


def test_compteur_file_illisible(fake_api):
    agent, _ = make_agent(fake_api, store=BrokenCountStore())
    assert asyncio.run(agent.pending_count()) is None


# ============================================================
# Planificateur
# ============================================================

def test_planificateur_job_de_synchronisation(fake_api):
    scheduler = create_sync_scheduler(InMemoryPendingStore().count, interval_minutes=5)
    job = scheduler.get_job(SYNC_JOB_ID)

    assert job is not None
    assert job.max_instances == 1
    assert job.coalesce is True


def test_agent_demarre_et_arrete_le_planificateur(fake_api):
    agent, _ = make_agent(fake_api, sync_interval_minutes=5)

    async def scenario():
        await agent.start()
        running = agent.scheduler.running
        await agent.stop()
        return running

    assert asyncio.run(scenario()) is True
    assert agent.scheduler.running is False


def test_agent_sans_planificateur(fake_api):
    agent, _ = make_agent(fake_api)
    assert agent.scheduler is None


# ============================================================
# Configuration de production
# ============================================================

def test_from_settings(tmp_path):
    """Client de production : file SQLite, sonde HTTP, planificateur à l'intervalle configuré."""
    config = Settings(
        SERVER_URL="http://api.test",
        ORGANIZATION_SLUG="coro1",
        OFFLINE_DB_URL=f"sqlite:///{tmp_path / 'offline.db'}",
        SYNC_INTERVAL_MINUTES=7,
        SYNC_REQUEST_TIMEOUT_SECONDS=3.0,
    )

    agent = CheckInAgent.from_settings(user_id=2, config=config)
    try:
        assert isinstance(agent.store, SqlitePendingStore)
        assert isinstance(agent.api, AttendanceApiClient)
        assert isinstance(agent.provider, HttpProbeConnectivityProvider)
        assert agent.capture.user_id == 2
        assert agent.is_online is False

        job = agent.scheduler.get_job(SYNC_JOB_ID)
        assert job.trigger.interval == timedelta(minutes=7)

        assert asyncio.run(agent.pending_count()) == 0
    finally:
        asyncio.run(agent.api.aclose())
        agent.store.close()
