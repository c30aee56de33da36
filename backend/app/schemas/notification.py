"""
Schémas Pydantic pour les notifications et le traitement de l'outbox.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: int
    title: str
    message: str
    type: str
    priority: Optional[str]
    homework_id: Optional[int]
    submission_id: Optional[int]
    is_read: bool
    read_at: Optional[datetime]
    created_at: Optional[datetime]

    model_config = {"from_attributes": True}


class NotificationList(BaseModel):
    success: bool = True
    notifications: List[NotificationResponse]
    unread_count: int


class UnreadCount(BaseModel):
    success: bool = True
    count: int


class MarkedRead(BaseModel):
    success: bool = True
    message: str
    updated: int


class OutboxRunReport(BaseModel):
    """Rapport d'un passage du consommateur d'outbox."""
    success: bool = True
    processed_events: int = 0
    failed_events: int = 0
    notifications_created: int = 0
    notification_errors: int = 0
