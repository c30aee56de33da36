"""
Tests du job planifié de consommation de l'outbox.
"""

from unittest.mock import MagicMock, patch

from sqlalchemy import select

from app.database import Database
from app.models.notification import NotificationOutboxEvent
from app.scheduler import _process_notification_outbox
from app.services.notification_service import enqueue_event


def test_job_traite_l_outbox_dans_sa_propre_session(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'job.db'}")
    database.create_tables()
    with database.session() as db:
        enqueue_event(db, "homework_created", {"homework_id": 404})
        db.commit()

    _process_notification_outbox(database)

    with database.session() as db:
        event = db.execute(select(NotificationOutboxEvent)).scalar_one()
        assert event.status == "processed"
    database.dispose()


def test_job_n_interrompt_pas_le_scheduler_en_cas_d_erreur():
    database = MagicMock()
    with patch("app.scheduler.process_outbox", side_effect=RuntimeError("BDD indisponible")):
        _process_notification_outbox(database)

    database.session.return_value.close.assert_called_once()
