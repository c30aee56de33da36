"""
Résolution des entités : enfants d'un parent, classe d'un enfant ou d'un enseignant,
parents d'une classe. Aucun cache : chaque appel relit les tables sources.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import NotAuthorized, NotFound
from app.models.child import Child
from app.models.school_class import SchoolClass
from app.models.user import Staff
from app.schemas.homework import ChildSummary
from app.schemas.maintenance import ChildClassResponse
from app.security import ROLE_PARENT, CurrentUser

logger = logging.getLogger(__name__)


def get_child_for_parent(db: Session, user: CurrentUser, child_id: int) -> Child:
    """
    Retourne l'enfant si l'appelant en est le parent (ou admin).
    Enfant inexistant et enfant d'un autre parent donnent la même erreur.
    """
    child = db.get(Child, child_id)
    if child is None:
        raise NotAuthorized()
    if user.is_admin:
        return child
    if user.role != ROLE_PARENT or child.parent_id != user.id:
        logger.warning("Accès refusé : utilisateur %s (%s) → enfant %s", user.id, user.role, child_id)
        raise NotAuthorized()
    return child


def list_children_for_parent(db: Session, parent_id: int) -> List[ChildSummary]:
    """Enfants d'un parent avec le nom de leur classe (pour le sélecteur côté client)."""
    rows = db.execute(
        select(Child, SchoolClass.name)
        .outerjoin(SchoolClass, SchoolClass.id == Child.class_id)
        .where(Child.parent_id == parent_id)
        .order_by(Child.first_name, Child.id)
    ).all()

    return [
        ChildSummary(
            id=child.id,
            first_name=child.first_name,
            last_name=child.last_name,
            class_id=child.class_id,
            class_name=class_name or child.class_name,
        )
        for child, class_name in rows
    ]


def get_staff(db: Session, user: CurrentUser) -> Staff:
    """Fiche staff de l'enseignant ou de l'admin authentifié."""
    if user.role == ROLE_PARENT:
        raise NotAuthorized()
    staff = db.get(Staff, user.id)
    if staff is None:
        raise NotAuthorized()
    return staff


def resolve_class_by_name(db: Session, name: Optional[str]) -> Optional[SchoolClass]:
    if not name:
        return None
    return db.execute(
        select(SchoolClass).where(SchoolClass.name == name)
    ).scalar()


def resolve_teacher_class(db: Session, staff: Staff) -> Optional[SchoolClass]:
    """Classe de l'enseignant via staff.className, ou None s'il n'en a pas."""
    return resolve_class_by_name(db, staff.class_name)


def parent_ids_for_class(db: Session, class_id: int) -> List[int]:
    """Parents distincts ayant au moins un enfant dans la classe."""
    return list(db.execute(
        select(Child.parent_id)
        .where(Child.class_id == class_id)
        .distinct()
        .order_by(Child.parent_id)
    ).scalars().all())


def parent_ids_for_children(db: Session, child_ids: List[int]) -> List[int]:
    if not child_ids:
        return []
    return list(db.execute(
        select(Child.parent_id)
        .where(Child.id.in_(child_ids))
        .distinct()
        .order_by(Child.parent_id)
    ).scalars().all())


def reassign_child_class(db: Session, child_id: int, class_id: int) -> ChildClassResponse:
    """Change la classe d'un enfant en gardant class_id et l'ancien className synchronisés."""
    child = db.get(Child, child_id)
    if child is None:
        raise NotFound("Enfant introuvable.")
    school_class = db.get(SchoolClass, class_id)
    if school_class is None:
        raise NotFound("Classe introuvable.")

    previous = child.class_id
    child.class_id = school_class.id
    child.class_name = school_class.name
    db.commit()

    logger.info("Enfant %s : classe %s → %s (%s)", child_id, previous, school_class.id, school_class.name)
    return ChildClassResponse(child_id=child.id, class_id=school_class.id, class_name=school_class.name)
