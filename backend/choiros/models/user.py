"""
Modèle SQLAlchemy pour les utilisateurs.
Le rôle plateforme (super_admin) est distinct du rôle dans une organisation (voir Membership).
"""

from sqlalchemy import Column, DateTime, Integer, String, func

from choiros.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(320), unique=True, nullable=True)
    name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default="user")  # user, super_admin
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
