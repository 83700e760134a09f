"""
Modèle SQLAlchemy pour les événements (répétitions, concerts, réunions).
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, func

from choiros.database import Base


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        Index("event_org_start_idx", "organization_id", "start_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(20), nullable=False)  # rehearsal, concert, meeting, other
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
