"""
Notifications : outbox, fan-out et lecture.

Flux :
  1. Les services métier appellent enqueue_event() dans leur transaction
     (création de devoir, rendu, notation). Rien n'est commité ici.
  2. process_outbox() (job APScheduler ou endpoint admin) lit les événements
     en attente et les transforme en lignes notifications.
  3. Chaque notification est insérée et commitée une par une : un échec est
     logué et n'empêche ni les suivantes ni l'opération d'origine.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import NotFound
from app.models.child import Child
from app.models.homework import Homework, HomeworkIndividualAssignment, HomeworkSubmission
from app.models.notification import Notification, NotificationOutboxEvent
from app.models.user import Staff
from app.schemas.notification import (
    MarkedRead,
    NotificationList,
    NotificationResponse,
    OutboxRunReport,
)
from app.security import CurrentUser
from app.services import roster_service

logger = logging.getLogger(__name__)

EVENT_HOMEWORK_CREATED = "homework_created"
EVENT_HOMEWORK_SUBMITTED = "homework_submitted"
EVENT_HOMEWORK_GRADED = "homework_graded"


def enqueue_event(db: Session, event_type: str, payload: dict) -> NotificationOutboxEvent:
    """Ajoute un événement à l'outbox dans la transaction de l'appelant."""
    event = NotificationOutboxEvent(event_type=event_type, payload=payload, status="pending", attempts=0)
    db.add(event)
    return event


# ============================================================
# Consommation de l'outbox
# ============================================================

def process_outbox(
    db: Session,
    batch_size: Optional[int] = None,
    max_attempts: Optional[int] = None,
) -> OutboxRunReport:
    """
    Traite les événements en attente, du plus ancien au plus récent.

    Un handler qui échoue, ou une notification non insérée, n'interrompt pas le
    lot : l'événement garde le statut pending (attempts + 1, last_error) et passe
    en failed après max_attempts.
    """
    batch_size = batch_size or settings.OUTBOX_BATCH_SIZE
    max_attempts = max_attempts or settings.OUTBOX_MAX_ATTEMPTS
    report = OutboxRunReport()

    event_ids = db.execute(
        select(NotificationOutboxEvent.id)
        .where(NotificationOutboxEvent.status == "pending")
        .order_by(NotificationOutboxEvent.id)
        .limit(batch_size)
    ).scalars().all()

    for event_id in event_ids:
        event = db.get(NotificationOutboxEvent, event_id)
        handler = _HANDLERS.get(event.event_type)
        try:
            if handler is None:
                raise ValueError(f"Type d'événement inconnu : {event.event_type}")
            created, errors = handler(db, event.payload or {})
        except Exception as exc:
            db.rollback()
            _mark_attempt_failed(db, event_id, exc, max_attempts)
            report.failed_events += 1
            continue

        report.notifications_created += created
        report.notification_errors += errors
        if errors:
            # Les destinataires déjà notifiés sont sautés au prochain passage (dedupe_key)
            _mark_attempt_failed(
                db, event_id, RuntimeError(f"{errors} notification(s) non insérée(s)"), max_attempts
            )
            report.failed_events += 1
            continue

        event = db.get(NotificationOutboxEvent, event_id)
        event.status = "processed"
        event.attempts = (event.attempts or 0) + 1
        event.processed_at = datetime.now()
        event.last_error = None
        db.commit()

        report.processed_events += 1

    if event_ids:
        logger.info(
            "Outbox : %d événement(s) traités, %d en échec, %d notification(s) créées, %d erreur(s)",
            report.processed_events, report.failed_events,
            report.notifications_created, report.notification_errors,
        )
    return report


def _mark_attempt_failed(db: Session, event_id: int, exc: Exception, max_attempts: int) -> None:
    event = db.get(NotificationOutboxEvent, event_id)
    event.attempts = (event.attempts or 0) + 1
    event.last_error = str(exc)[:1000]
    if event.attempts >= max_attempts:
        event.status = "failed"
    db.commit()
    logger.error(
        "Événement outbox %s (%s) en échec, tentative %d/%d : %s",
        event_id, event.event_type, event.attempts, max_attempts, exc,
    )


def _handle_homework_created(db: Session, payload: dict) -> Tuple[int, int]:
    """Un message par parent distinct ayant un enfant ciblé par le devoir."""
    homework = db.get(Homework, payload["homework_id"])
    if homework is None:
        logger.warning("Devoir %s supprimé avant notification, événement ignoré", payload["homework_id"])
        return 0, 0

    parent_ids = homework_parent_ids(db, homework)
    if not parent_ids and homework.class_id is None:
        logger.warning("Devoir %s sans class_id : aucun parent à notifier", homework.id)

    teacher = db.get(Staff, homework.teacher_id)
    teacher_name = teacher.name if teacher else "L'enseignant"

    return _deliver(
        db,
        recipients=parent_ids,
        user_type="parent",
        dedupe_prefix=f"{EVENT_HOMEWORK_CREATED}:{homework.id}",
        title="Nouveau devoir",
        message=(
            f"{teacher_name} a publié « {homework.title} », "
            f"à rendre pour le {homework.due_date.strftime('%d/%m/%Y')}."
        ),
        type="homework",
        priority="high",
        homework_id=homework.id,
    )


def _handle_homework_submitted(db: Session, payload: dict) -> Tuple[int, int]:
    """Confirmation au parent + information à l'enseignant."""
    submission = db.get(HomeworkSubmission, payload["submission_id"])
    if submission is None:
        return 0, 0
    homework = db.get(Homework, submission.homework_id)
    child = db.get(Child, submission.child_id)
    child_name = f"{child.first_name} {child.last_name}" if child else "votre enfant"
    parent_id = submission.parent_id or (child.parent_id if child else None)
    prefix = f"{EVENT_HOMEWORK_SUBMITTED}:{submission.id}"

    created, errors = _deliver(
        db,
        recipients=[parent_id] if parent_id else [],
        user_type="parent",
        dedupe_prefix=prefix,
        title="Devoir rendu",
        message=f"Le devoir « {homework.title} » de {child_name} a bien été rendu.",
        type="homework_submission",
        priority="low",
        homework_id=homework.id,
        submission_id=submission.id,
    )
    teacher_created, teacher_errors = _deliver(
        db,
        recipients=[homework.teacher_id],
        user_type="staff",
        dedupe_prefix=prefix,
        title="Nouveau rendu",
        message=f"{child_name} a rendu « {homework.title} ».",
        type="homework_submission",
        priority="medium",
        homework_id=homework.id,
        submission_id=submission.id,
    )
    return created + teacher_created, errors + teacher_errors


def _handle_homework_graded(db: Session, payload: dict) -> Tuple[int, int]:
    submission = db.get(HomeworkSubmission, payload["submission_id"])
    if submission is None:
        return 0, 0
    homework = db.get(Homework, submission.homework_id)
    child = db.get(Child, submission.child_id)
    parent_id = submission.parent_id or (child.parent_id if child else None)
    result = submission.grade or (f"{submission.score}/100" if submission.score is not None else "disponible")

    return _deliver(
        db,
        recipients=[parent_id] if parent_id else [],
        user_type="parent",
        # Une re-notation produit une nouvelle notification
        dedupe_prefix=f"{EVENT_HOMEWORK_GRADED}:{submission.id}:{payload.get('graded_at', '')}",
        title="Devoir noté",
        message=f"« {homework.title} » a été corrigé : {result}.",
        type="homework_graded",
        priority="medium",
        homework_id=homework.id,
        submission_id=submission.id,
    )


_HANDLERS: Dict[str, Callable[[Session, dict], Tuple[int, int]]] = {
    EVENT_HOMEWORK_CREATED: _handle_homework_created,
    EVENT_HOMEWORK_SUBMITTED: _handle_homework_submitted,
    EVENT_HOMEWORK_GRADED: _handle_homework_graded,
}


def _deliver(
    db: Session,
    recipients: Iterable[int],
    user_type: str,
    dedupe_prefix: str,
    **fields,
) -> Tuple[int, int]:
    """
    Insère une notification par destinataire, séquentiellement.
    Retourne (créées, erreurs). Un destinataire déjà notifié pour cet événement est ignoré.
    """
    created = 0
    errors = 0
    for user_id in recipients:
        dedupe_key = f"{dedupe_prefix}:{user_type}:{user_id}"
        already = db.execute(
            select(Notification.id).where(Notification.dedupe_key == dedupe_key)
        ).scalar()
        if already:
            continue
        try:
            _insert_notification(db, user_id=user_id, user_type=user_type, dedupe_key=dedupe_key, **fields)
            created += 1
        except IntegrityError:
            db.rollback()
            logger.debug("Notification %s déjà présente, ignorée", dedupe_key)
        except SQLAlchemyError as exc:
            db.rollback()
            errors += 1
            logger.error("Notification %s non insérée pour %s %s : %s", dedupe_key, user_type, user_id, exc)
    return created, errors


def _insert_notification(db: Session, **fields) -> Notification:
    notification = Notification(is_read=False, **fields)
    db.add(notification)
    db.commit()
    return notification


# ============================================================
# Lecture par l'utilisateur
# ============================================================

def _owned_by(user: CurrentUser):
    return (Notification.user_id == user.id, Notification.user_type == user.user_type)


def unread_count(db: Session, user: CurrentUser) -> int:
    return db.execute(
        select(func.count())
        .select_from(Notification)
        .where(*_owned_by(user), Notification.is_read.is_(False))
    ).scalar() or 0


def list_notifications(
    db: Session,
    user: CurrentUser,
    unread_only: bool = False,
    limit: int = 20,
) -> NotificationList:
    """Notifications de l'utilisateur, les plus récentes d'abord."""
    stmt = select(Notification).where(*_owned_by(user))
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    notifications = db.execute(
        stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
    ).scalars().all()

    return NotificationList(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=unread_count(db, user),
    )


def mark_read(db: Session, user: CurrentUser, notification_id: int) -> MarkedRead:
    """Seul le drapeau de lecture est modifié. Notification d'un autre utilisateur = introuvable."""
    notification = db.get(Notification, notification_id)
    if notification is None or (notification.user_id, notification.user_type) != (user.id, user.user_type):
        raise NotFound("Notification introuvable.")

    updated = 0
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.now()
        db.commit()
        updated = 1
    return MarkedRead(message=f"Notification {notification_id} marquée comme lue.", updated=updated)


def mark_all_read(db: Session, user: CurrentUser) -> MarkedRead:
    result = db.execute(
        update(Notification)
        .where(*_owned_by(user), Notification.is_read.is_(False))
        .values(is_read=True, read_at=datetime.now())
    )
    db.commit()
    return MarkedRead(message="Toutes les notifications sont marquées comme lues.", updated=result.rowcount or 0)


def homework_parent_ids(db: Session, homework: Homework) -> List[int]:
    """Parents distincts des enfants ciblés : la classe entière, ou les enfants assignés."""
    if homework.assignment_type == "individual":
        child_ids = db.execute(
            select(HomeworkIndividualAssignment.child_id)
            .where(HomeworkIndividualAssignment.homework_id == homework.id)
        ).scalars().all()
        return roster_service.parent_ids_for_children(db, list(child_ids))
    if homework.class_id is None:
        return []
    return roster_service.parent_ids_for_class(db, homework.class_id)
