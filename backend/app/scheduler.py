"""
Planificateur APScheduler pour la consommation de l'outbox des notifications.

Le job s'exécute toutes les OUTBOX_POLL_SECONDS secondes et transforme les
événements en attente (devoir créé, rendu, noté) en notifications.
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import settings
from app.database import Database
from app.services.notification_service import process_outbox

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def _process_notification_outbox(database: Database) -> None:
    """Tâche planifiée : un passage du consommateur, dans sa propre session."""
    db = database.session()
    try:
        report = process_outbox(db)
        if report.failed_events or report.notification_errors:
            logger.warning(
                "Outbox : %d événement(s) en échec, %d notification(s) non insérée(s)",
                report.failed_events, report.notification_errors,
            )
    except Exception as exc:
        logger.error("Erreur lors du traitement de l'outbox : %s", exc, exc_info=True)
    finally:
        db.close()


def start_scheduler(database: Database) -> None:
    """Démarre le planificateur en arrière-plan (appelé au démarrage de l'API)."""
    scheduler.add_job(
        _process_notification_outbox,
        trigger="interval",
        seconds=settings.OUTBOX_POLL_SECONDS,
        args=[database],
        id="notification_outbox",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info("Scheduler démarré, outbox traitée toutes les %ds.", settings.OUTBOX_POLL_SECONDS)


def stop_scheduler() -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
