"""
Router d'administration : consommation manuelle de l'outbox, réparation des
données de classe et réaffectation d'un enfant.
Toutes les routes exigent le rôle admin.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.maintenance import (
    ChildClassResponse,
    ChildClassUpdate,
    ClassNameRepairReport,
    HomeworkClassRepairReport,
)
from app.schemas.notification import OutboxRunReport
from app.security import ROLE_ADMIN, require_roles
from app.services import maintenance_service, notification_service, roster_service

router = APIRouter(
    prefix="/api/v1/admin",
    tags=["Administration"],
    dependencies=[Depends(require_roles(ROLE_ADMIN))],
)


@router.post(
    "/notifications/process-outbox",
    response_model=OutboxRunReport,
    summary="Traiter l'outbox des notifications",
)
def process_outbox(db: Session = Depends(get_db)):
    """Exécute immédiatement un passage du consommateur (même logique que le job planifié)."""
    return notification_service.process_outbox(db)


@router.post(
    "/maintenance/repair-homework-classes",
    response_model=HomeworkClassRepairReport,
    summary="Renseigner class_id des devoirs orphelins",
)
def repair_homework_classes(db: Session = Depends(get_db)):
    return maintenance_service.repair_homework_class_ids(db)


@router.post(
    "/maintenance/repair-class-names",
    response_model=ClassNameRepairReport,
    summary="Aligner les noms de classe sur la table classes",
)
def repair_class_names(db: Session = Depends(get_db)):
    return maintenance_service.repair_class_names(db)


@router.put(
    "/children/{child_id}/class",
    response_model=ChildClassResponse,
    summary="Changer la classe d'un enfant",
)
def reassign_child_class(child_id: int, data: ChildClassUpdate, db: Session = Depends(get_db)):
    """
    Change la classe d'un enfant. Sa liste de devoirs suit immédiatement :
    aucune donnée dérivée n'est stockée.
    """
    return roster_service.reassign_child_class(db, child_id, data.class_id)
