"""
Configuration partagée pour tous les tests.
Override les dépendances get_db et get_tenant_context pour éviter toute connexion réelle.
"""

import asyncio
import os

# Base en mémoire pour le create_all du lifespan ; doit précéder l'import de choiros.config
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

from choiros.client.api import CheckInRpcError, RpcErrorKind  # noqa: E402
from choiros.database import get_db  # noqa: E402
from choiros.main import app  # noqa: E402
from choiros.models.membership import Membership  # noqa: E402
from choiros.models.organization import Organization  # noqa: E402
from choiros.models.user import User  # noqa: E402
from choiros.tenancy import TenantContext, get_tenant_context  # noqa: E402


def make_tenant_context(role="member", user_id=7, organization_id=1) -> TenantContext:
    """Contexte tenant factice. role=None → utilisateur non membre."""
    organization = MagicMock(spec=Organization)
    organization.id = organization_id
    organization.slug = "coro1"
    user = MagicMock(spec=User)
    user.id = user_id
    membership = None
    if role is not None:
        membership = MagicMock(spec=Membership)
        membership.role = role
    return TenantContext(organization=organization, user=user, membership=membership)


@pytest.fixture
def tenant():
    """Contexte tenant modifiable par le test avant l'appel HTTP."""
    return {"ctx": make_tenant_context()}


@pytest.fixture
def set_tenant(tenant):
    """Remplace le contexte tenant : set_tenant(role="guest"), set_tenant(role=None)..."""

    def _set(**kwargs) -> TenantContext:
        tenant["ctx"] = make_tenant_context(**kwargs)
        return tenant["ctx"]

    return _set


@pytest.fixture
def client(tenant):
    """Client HTTP de test avec la BDD mockée et un membre de l'organisation coro1."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_tenant_context] = lambda: tenant["ctx"]
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


class FakeAttendanceApi:
    """Remplace AttendanceApiClient : enregistre les appels, échoue pour fail_events."""

    def __init__(self):
        self.calls = []
        self.fail_events = set()
        self.delay = 0.0
        self.online = True

    async def check_in(self, event_id, user_id, check_in_at=None):
        self.calls.append((event_id, user_id, check_in_at))
        if self.delay:
            await asyncio.sleep(self.delay)
        if event_id in self.fail_events:
            raise CheckInRpcError(RpcErrorKind.TRANSIENT, f"Erreur serveur pour l'événement {event_id}")
        return {"eventId": event_id, "userId": user_id, "alreadyRecorded": False}

    async def ping(self, path="/api/health"):
        return self.online

    async def aclose(self):
        pass


@pytest.fixture
def fake_api():
    return FakeAttendanceApi()
