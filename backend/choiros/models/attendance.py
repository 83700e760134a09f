"""
Modèle SQLAlchemy pour les présences (check-in aux événements).

Architecture offline-first :
- check_in_at : timestamp du scan côté client, conservé tel quel lors d'une synchronisation différée
- synced_at   : renseigné quand le check-in provient de la file d'attente locale du client
- (event_id, user_id) unique : un check-in rejoué par une synchronisation n'est jamais dupliqué
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func

from choiros.database import Base


class Attendance(Base):
    """Présence d'un membre à un événement."""
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="attendance_event_user_idx"),
        Index("attendance_event_idx", "event_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    check_in_at = Column(DateTime, nullable=False, server_default=func.now())
    check_out_at = Column(DateTime, nullable=True)
    status = Column(String(20), nullable=False, default="present")  # present, absent, justified_absence, late
    notes = Column(Text, nullable=True)
    synced_at = Column(DateTime, nullable=True)  # Réception d'un check-in offline

    created_at = Column(DateTime, server_default=func.now())
