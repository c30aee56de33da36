"""
Modèles SQLAlchemy pour les notifications et l'outbox qui les alimente.

Les services métier n'insèrent jamais de notification directement : ils
écrivent un événement dans notification_outbox dans leur propre transaction,
puis notification_service.process_outbox le transforme en notifications.
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text, func

from app.database import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    user_type = Column(String(20), nullable=False, default="parent")  # parent, staff
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(30), nullable=False)      # homework, homework_submission, homework_graded
    priority = Column(String(10), default="medium")  # low, medium, high
    homework_id = Column(Integer, nullable=True)
    submission_id = Column(Integer, nullable=True)
    dedupe_key = Column(String(120), unique=True, nullable=True)  # Rejouer un événement ne duplique rien
    is_read = Column("read_status", Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class NotificationOutboxEvent(Base):
    __tablename__ = "notification_outbox"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(String(40), nullable=False)  # homework_created, homework_submitted, homework_graded
    payload = Column(JSON, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)  # pending, processed, failed
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    processed_at = Column(DateTime, nullable=True)
