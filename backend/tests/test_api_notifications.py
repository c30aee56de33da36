"""
Tests d'intégration API pour les notifications de l'utilisateur.
"""

from datetime import datetime
from unittest.mock import patch

from app.errors import NotFound
from app.schemas.notification import MarkedRead, NotificationList, NotificationResponse
from app.security import ROLE_PARENT, ROLE_TEACHER


def make_notification(**kwargs) -> NotificationResponse:
    return NotificationResponse(
        id=kwargs.get("id", 1),
        title="Nouveau devoir",
        message="Mme Tulipe a publié « Coloriage ».",
        type="homework",
        priority="high",
        homework_id=kwargs.get("homework_id", 4),
        submission_id=None,
        is_read=kwargs.get("is_read", False),
        read_at=None,
        created_at=datetime.now(),
    )


def test_liste_notifications(client, login):
    user = login(ROLE_PARENT, 3)
    with patch("app.routers.notifications.notification_service.list_notifications") as mock:
        mock.return_value = NotificationList(notifications=[make_notification()], unread_count=1)
        response = client.get("/api/v1/notifications", params={"unread_only": "true", "limit": 5})

    assert response.status_code == 200
    assert response.json()["unread_count"] == 1
    assert response.json()["notifications"][0]["type"] == "homework"
    assert mock.call_args.args[1] == user
    assert mock.call_args.kwargs == {"unread_only": True, "limit": 5}


def test_liste_notifications_limite_hors_bornes(client, login):
    login(ROLE_PARENT, 3)
    response = client.get("/api/v1/notifications", params={"limit": 500})
    assert response.status_code == 422


def test_compteur_non_lus(client, login):
    login(ROLE_TEACHER, 7)
    with patch("app.routers.notifications.notification_service.unread_count") as mock:
        mock.return_value = 4
        response = client.get("/api/v1/notifications/unread-count")

    assert response.status_code == 200
    assert response.json() == {"success": True, "count": 4}


def test_marquer_comme_lue(client, login):
    login(ROLE_PARENT, 3)
    with patch("app.routers.notifications.notification_service.mark_read") as mock:
        mock.return_value = MarkedRead(message="Notification 9 marquée comme lue.", updated=1)
        response = client.put("/api/v1/notifications/9/read")

    assert response.status_code == 200
    assert response.json()["updated"] == 1
    assert mock.call_args.args[2] == 9


def test_marquer_notification_introuvable_404(client, login):
    login(ROLE_PARENT, 3)
    with patch("app.routers.notifications.notification_service.mark_read") as mock:
        mock.side_effect = NotFound("Notification introuvable.")
        response = client.put("/api/v1/notifications/9/read")

    assert response.status_code == 404
    assert response.json()["message"] == "Notification introuvable."


def test_tout_marquer_comme_lu(client, login):
    login(ROLE_PARENT, 3)
    with patch("app.routers.notifications.notification_service.mark_all_read") as mock:
        mock.return_value = MarkedRead(message="ok", updated=3)
        response = client.put("/api/v1/notifications/read-all")

    assert response.status_code == 200
    assert response.json()["updated"] == 3


def test_notifications_sans_token_401(client):
    response = client.get("/api/v1/notifications")
    assert response.status_code == 401
