"""
Modèle SQLAlchemy pour l'appartenance d'un utilisateur à une organisation, avec son rôle.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, func

from choiros.database import Base


class Membership(Base):
    __tablename__ = "memberships"
    __table_args__ = (
        Index("membership_user_org_idx", "user_id", "organization_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(20), nullable=False)  # admin, director, secretary, capo_section, member, guest
    status = Column(String(20), nullable=False, default="active")  # active, suspended, exited
    joined_at = Column(DateTime, server_default=func.now())
    left_at = Column(DateTime, nullable=True)
