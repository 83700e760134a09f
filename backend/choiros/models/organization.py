"""
Modèle SQLAlchemy pour les organisations (tenants = chorales).
"""

from sqlalchemy import Column, DateTime, Integer, String, func

from choiros.database import Base


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slug = Column(String(64), unique=True, nullable=False)  # Sous-domaine : coro1.choiros.app
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
