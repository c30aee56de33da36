"""
Router pour les notifications de l'utilisateur authentifié (parent ou personnel).
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.notification import MarkedRead, NotificationList, UnreadCount
from app.security import CurrentUser, get_current_user
from app.services import notification_service

router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationList, summary="Lister mes notifications")
def list_notifications(
    unread_only: bool = False,
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    """Notifications les plus récentes d'abord, avec le nombre de non lues."""
    return notification_service.list_notifications(db, user, unread_only=unread_only, limit=limit)


@router.get("/unread-count", response_model=UnreadCount, summary="Nombre de notifications non lues")
def unread_count(
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    return UnreadCount(count=notification_service.unread_count(db, user))


@router.put("/read-all", response_model=MarkedRead, summary="Tout marquer comme lu")
def mark_all_read(
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    return notification_service.mark_all_read(db, user)


@router.put("/{notification_id}/read", response_model=MarkedRead, summary="Marquer comme lue")
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    """Seul le drapeau de lecture change ; le contenu de la notification est immuable."""
    return notification_service.mark_read(db, user, notification_id)
