"""
Configuration de la connexion à la base de données serveur.
Utilise SQLAlchemy avec un moteur synchrone (SQLite par défaut, MySQL/PostgreSQL en production).
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

from choiros.config import settings

# SQLite refuse par défaut l'accès depuis un autre thread que celui qui a ouvert la connexion
_connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(settings.DATABASE_URL, connect_args=_connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dépendance FastAPI : fournit une session BDD et la ferme après usage."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
