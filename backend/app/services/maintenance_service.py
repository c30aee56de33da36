"""
Procédures de réparation des données héritées.

- repair_homework_class_ids : renseigne class_id des devoirs qui n'en ont pas.
- repair_class_names : aligne les noms de classe libres (staff, children)
  sur le nom canonique de la table classes.

Les deux procédures sont idempotentes : un second passage ne modifie rien.
"""

import logging
from collections import defaultdict
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.child import Child
from app.models.homework import Homework, HomeworkIndividualAssignment
from app.models.school_class import SchoolClass
from app.models.user import Staff
from app.schemas.maintenance import ClassNameRepairReport, HomeworkClassRepairReport

logger = logging.getLogger(__name__)

_CLASS_SUFFIX = " class"


def _normalize(name: Optional[str]) -> str:
    """'Panda Class ' → 'panda'. Comparaison insensible à la casse et au suffixe."""
    key = (name or "").strip().lower()
    if key.endswith(_CLASS_SUFFIX):
        key = key[: -len(_CLASS_SUFFIX)].strip()
    return key


class _ClassLookup:
    """
    Classes par nom exact, puis par nom normalisé. Deux classes qui se
    normalisent vers la même clé sont ambiguës : seul leur nom exact les retrouve.
    """

    def __init__(self, classes: List[SchoolClass]):
        self.by_id = {c.id: c for c in classes}
        self.exact = {c.name: c for c in classes}
        grouped = defaultdict(list)
        for school_class in classes:
            grouped[_normalize(school_class.name)].append(school_class)
        self.normalized = {key: group[0] for key, group in grouped.items() if len(group) == 1}
        self.ambiguous = {key: sorted(c.name for c in group) for key, group in grouped.items() if len(group) > 1}
        for key, names in self.ambiguous.items():
            logger.warning("Noms de classe ambigus pour %r : %s", key, names)

    def get(self, name: Optional[str]) -> Optional[SchoolClass]:
        if name in self.exact:
            return self.exact[name]
        return self.normalized.get(_normalize(name))


def _class_lookup(db: Session) -> _ClassLookup:
    return _ClassLookup(db.execute(select(SchoolClass).order_by(SchoolClass.id)).scalars().all())


def repair_homework_class_ids(db: Session) -> HomeworkClassRepairReport:
    """
    Pour chaque devoir sans class_id :
    1. classe d'un enfant assigné individuellement, si elle existe
    2. sinon classe correspondant au className de l'enseignant
    """
    canonical = _class_lookup(db)
    orphans = db.execute(
        select(Homework).where(Homework.class_id.is_(None)).order_by(Homework.id)
    ).scalars().all()

    repaired = []
    unresolved = []
    for homework in orphans:
        class_id = db.execute(
            select(Child.class_id)
            .join(HomeworkIndividualAssignment, HomeworkIndividualAssignment.child_id == Child.id)
            .where(HomeworkIndividualAssignment.homework_id == homework.id, Child.class_id.isnot(None))
            .order_by(Child.id)
            .limit(1)
        ).scalar()

        if class_id is None:
            teacher = db.get(Staff, homework.teacher_id)
            school_class = canonical.get(teacher.class_name) if teacher else None
            class_id = school_class.id if school_class else None

        if class_id is None:
            unresolved.append(homework.id)
            continue
        homework.class_id = class_id
        repaired.append(homework.id)

    db.commit()
    if unresolved:
        logger.warning("Devoirs sans classe déductible : %s", unresolved)
    logger.info("Réparation class_id : %d devoir(s) corrigé(s)", len(repaired))
    return HomeworkClassRepairReport(repaired=repaired, unresolved=unresolved)


def repair_class_names(db: Session) -> ClassNameRepairReport:
    """
    Aligne staff.className et children.className sur classes.name.
    Pour un enfant, class_id fait foi quand il est renseigné ; sinon son
    className est rapproché d'une classe et class_id est complété.
    """
    canonical = _class_lookup(db)
    unmatched = set()

    staff_updated = 0
    for staff in db.execute(select(Staff).where(Staff.class_name.isnot(None))).scalars().all():
        school_class = canonical.get(staff.class_name)
        if school_class is None:
            unmatched.add(staff.class_name)
        elif staff.class_name != school_class.name:
            staff.class_name = school_class.name
            staff_updated += 1

    children_updated = 0
    for child in db.execute(select(Child)).scalars().all():
        if child.class_id is not None:
            school_class = canonical.by_id.get(child.class_id)
        elif child.class_name:
            school_class = canonical.get(child.class_name)
            if school_class is None:
                unmatched.add(child.class_name)
        else:
            school_class = None

        if school_class is None:
            continue
        if child.class_name != school_class.name or child.class_id != school_class.id:
            child.class_name = school_class.name
            child.class_id = school_class.id
            children_updated += 1

    db.commit()
    logger.info(
        "Réparation des noms de classe : %d staff, %d enfant(s), %d nom(s) sans correspondance",
        staff_updated, children_updated, len(unmatched),
    )
    return ClassNameRepairReport(
        staff_updated=staff_updated,
        children_updated=children_updated,
        unmatched_names=sorted(unmatched),
    )
