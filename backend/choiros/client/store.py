"""
File d'attente locale des check-ins non encore acceptés par le serveur.

Invariants :
- un enregistrement est présent si et seulement s'il n'a pas encore été transmis avec succès
- check_in_at est figé à la création ; seule la suppression modifie la file
- local_id est attribué de façon monotone et n'est jamais réutilisé

La file est propre à l'appareil, pas à l'utilisateur : plusieurs membres qui
partagent un même téléphone partagent la même file (chaque enregistrement porte son user_id).

Toute erreur de stockage (disque plein, fichier verrouillé, base corrompue) est
remontée à l'appelant sous forme de LocalStorageError.
"""

import asyncio
import itertools
import logging
import threading
from typing import Dict, List, Protocol

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy import Boolean, Column, Integer, String, create_engine, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

# Base distincte du serveur : ce schéma vit dans le SQLite local de l'appareil
LocalBase = declarative_base()


class LocalStorageError(Exception):
    """Échec d'une opération sur le stockage local (le check-in n'a pas pu être sauvegardé/relu)."""


class PendingAttendanceRecord(BaseModel):
    """Check-in en attente de synchronisation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    local_id: int          # Jamais envoyé au serveur
    event_id: int
    user_id: int
    check_in_at: str       # ISO 8601, heure du scan (pas de la synchronisation)
    synced: bool = False


class PendingAttendanceRow(LocalBase):
    __tablename__ = "pending_attendance"
    # AUTOINCREMENT : SQLite ne réattribue jamais un identifiant supprimé
    __table_args__ = {"sqlite_autoincrement": True}

    local_id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Integer, nullable=False)
    user_id = Column(Integer, nullable=False)
    check_in_at = Column(String(40), nullable=False)
    synced = Column(Boolean, nullable=False, default=False)


class PendingAttendanceStore(Protocol):
    """Interface de la file locale ; l'implémentation de stockage est interchangeable."""

    async def enqueue(self, event_id: int, user_id: int, check_in_at: str) -> PendingAttendanceRecord: ...

    async def list_all(self) -> List[PendingAttendanceRecord]: ...

    async def remove(self, local_id: int) -> None: ...

    async def count(self) -> int: ...


class InMemoryPendingStore:
    """File en mémoire (tests, ou appareil sans stockage persistant)."""

    def __init__(self) -> None:
        self._records: Dict[int, PendingAttendanceRecord] = {}
        self._ids = itertools.count(1)

    async def enqueue(self, event_id: int, user_id: int, check_in_at: str) -> PendingAttendanceRecord:
        record = PendingAttendanceRecord(
            local_id=next(self._ids),
            event_id=event_id,
            user_id=user_id,
            check_in_at=check_in_at,
        )
        self._records[record.local_id] = record
        return record.model_copy()

    async def list_all(self) -> List[PendingAttendanceRecord]:
        # dict conserve l'ordre d'insertion
        return [r.model_copy() for r in self._records.values()]

    async def remove(self, local_id: int) -> None:
        self._records.pop(local_id, None)

    async def count(self) -> int:
        return len(self._records)


class SqlitePendingStore:
    """
    File persistante dans un fichier SQLite local.

    Chaque opération s'exécute dans sa propre transaction, dans un thread de travail
    (asyncio.to_thread) pour ne jamais bloquer la boucle d'événements.
    """

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url, connect_args={"check_same_thread": False})
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
        self._schema_ready = False
        self._schema_lock = threading.Lock()

    def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        # Plusieurs threads de travail peuvent arriver ici sur une base neuve
        with self._schema_lock:
            if not self._schema_ready:
                LocalBase.metadata.create_all(bind=self._engine)
                self._schema_ready = True

    async def _run(self, operation, *args):
        try:
            return await asyncio.to_thread(operation, *args)
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Erreur du stockage local (%s) : %s", operation.__name__, exc)
            raise LocalStorageError(str(exc)) from exc

    def _enqueue(self, event_id: int, user_id: int, check_in_at: str) -> PendingAttendanceRecord:
        self._ensure_schema()
        db = self._session_factory()
        try:
            row = PendingAttendanceRow(
                event_id=event_id,
                user_id=user_id,
                check_in_at=check_in_at,
                synced=False,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return PendingAttendanceRecord.model_validate(row)
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()

    def _list_all(self) -> List[PendingAttendanceRecord]:
        self._ensure_schema()
        db = self._session_factory()
        try:
            rows = db.execute(
                select(PendingAttendanceRow)
                .where(PendingAttendanceRow.synced.is_(False))
                .order_by(PendingAttendanceRow.local_id)
            ).scalars().all()
            return [PendingAttendanceRecord.model_validate(row) for row in rows]
        finally:
            db.close()

    def _remove(self, local_id: int) -> None:
        self._ensure_schema()
        db = self._session_factory()
        try:
            # DELETE sans effet si la ligne a déjà été retirée par une autre passe
            db.execute(delete(PendingAttendanceRow).where(PendingAttendanceRow.local_id == local_id))
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()

    async def enqueue(self, event_id: int, user_id: int, check_in_at: str) -> PendingAttendanceRecord:
        record = await self._run(self._enqueue, event_id, user_id, check_in_at)
        logger.debug("Check-in mis en file locale : %s", record.local_id)
        return record

    async def list_all(self) -> List[PendingAttendanceRecord]:
        return await self._run(self._list_all)

    async def remove(self, local_id: int) -> None:
        await self._run(self._remove, local_id)

    async def count(self) -> int:
        return len(await self.list_all())

    def close(self) -> None:
        self._engine.dispose()
