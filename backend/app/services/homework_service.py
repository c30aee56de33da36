"""
Service métier pour la création et la gestion des devoirs.
"""

import logging

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.errors import ErrorCode, NotAuthorized, NotFound, ValidationFailed
from app.models.child import Child
from app.models.homework import (
    Homework,
    HomeworkCompletion,
    HomeworkIndividualAssignment,
    HomeworkSubmission,
)
from app.schemas.homework import (
    HomeworkCreate,
    HomeworkCreated,
    HomeworkResponse,
    HomeworkUpdate,
    HomeworkUpdated,
)
from app.security import ROLE_TEACHER, CurrentUser
from app.services import notification_service, roster_service

logger = logging.getLogger(__name__)

_NOT_NULLABLE = {"title", "due_date", "status", "content_type"}


def create_homework(db: Session, user: CurrentUser, data: HomeworkCreate) -> HomeworkCreated:
    """
    Crée un devoir pour la classe de l'enseignant.

    Étapes :
    1. L'enseignant doit être titulaire de class_name (l'admin peut cibler toute classe)
    2. La classe doit exister : class_id est toujours renseigné à l'écriture
    3. Devoir individuel : chaque enfant ciblé doit être inscrit dans la classe
    4. Insertion du devoir, des assignations individuelles et de l'événement outbox
       dans une seule transaction
    """
    staff = roster_service.get_staff(db, user)
    if not user.is_admin and staff.class_name != data.class_name:
        logger.warning(
            "Enseignant %s (classe %r) refusé pour la classe %r", staff.id, staff.class_name, data.class_name
        )
        raise NotAuthorized("Vous ne pouvez créer des devoirs que pour votre classe.")

    school_class = roster_service.resolve_class_by_name(db, data.class_name)
    if school_class is None:
        raise ValidationFailed(f"La classe '{data.class_name}' n'existe pas.", ErrorCode.INVALID_CLASS)

    if data.assignment_type == "individual":
        enrolled = set(db.execute(
            select(Child.id)
            .where(Child.id.in_(data.child_ids), Child.class_id == school_class.id)
        ).scalars().all())
        missing = [cid for cid in data.child_ids if cid not in enrolled]
        if missing:
            raise ValidationFailed(
                f"Enfant(s) hors de la classe {school_class.name} : {missing}",
                ErrorCode.CHILD_NOT_IN_CLASS,
            )

    homework = Homework(
        title=data.title,
        description=data.description,
        instructions=data.instructions,
        due_date=data.due_date,
        teacher_id=staff.id,
        class_id=school_class.id,
        assignment_type=data.assignment_type,
        content_type=data.content_type,
        status="active",
        file_url=data.file_url,
        points=data.points,
    )
    db.add(homework)
    db.flush()  # Obtenir l'ID avant les insertions liées

    if data.assignment_type == "individual":
        db.add_all([
            HomeworkIndividualAssignment(homework_id=homework.id, child_id=cid, status="assigned")
            for cid in data.child_ids
        ])

    notification_service.enqueue_event(
        db, notification_service.EVENT_HOMEWORK_CREATED, {"homework_id": homework.id}
    )
    db.commit()
    db.refresh(homework)

    logger.info(
        "Devoir créé : %s « %s » (%s) par %s pour %s",
        homework.id, homework.title, homework.assignment_type, staff.id, school_class.name,
    )
    return HomeworkCreated(homework_id=homework.id, homework=HomeworkResponse.model_validate(homework))


def get_owned_homework(db: Session, user: CurrentUser, homework_id: int) -> Homework:
    """
    Devoir géré par l'appelant : admin, auteur du devoir, ou titulaire actuel
    de la classe ciblée.
    """
    # Un parent obtient le même refus que le devoir existe ou non
    if not user.is_admin and user.role != ROLE_TEACHER:
        raise NotAuthorized()
    homework = db.get(Homework, homework_id)
    if homework is None:
        raise NotFound("Devoir introuvable.")
    if user.is_admin or (user.role == ROLE_TEACHER and homework.teacher_id == user.id):
        return homework

    staff = roster_service.get_staff(db, user)
    school_class = roster_service.resolve_teacher_class(db, staff)
    if school_class is None or homework.class_id != school_class.id:
        raise NotAuthorized()
    return homework


def update_homework(db: Session, user: CurrentUser, homework_id: int, data: HomeworkUpdate) -> HomeworkUpdated:
    """Met à jour les champs fournis d'un devoir."""
    homework = get_owned_homework(db, user, homework_id)

    update_data = data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        if value is None and field in _NOT_NULLABLE:
            continue
        setattr(homework, field, value)

    db.commit()
    db.refresh(homework)
    logger.info("Devoir %s modifié par %s : %s", homework_id, user.id, sorted(update_data))
    return HomeworkUpdated(homework=HomeworkResponse.model_validate(homework))


def delete_homework(db: Session, user: CurrentUser, homework_id: int) -> bool:
    """
    Suppression définitive (admin uniquement) avec les assignations, rendus et réponses.
    Retourne False si le devoir n'existe pas.
    """
    if not user.is_admin:
        raise NotAuthorized()
    homework = db.get(Homework, homework_id)
    if homework is None:
        return False

    for model in (HomeworkCompletion, HomeworkSubmission, HomeworkIndividualAssignment):
        db.execute(delete(model).where(model.homework_id == homework_id))
    db.delete(homework)
    db.commit()

    logger.info("Devoir %s supprimé par l'admin %s", homework_id, user.id)
    return True
