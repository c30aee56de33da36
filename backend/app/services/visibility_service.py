"""
Résolution de la visibilité des devoirs.

Vue parent (par enfant) :
  devoirs actifs de type class dont class_id = classe de l'enfant
  UNION devoirs actifs de type individual ayant une ligne
  homework_individual_assignments pour cet enfant,
  chacun joint (LEFT JOIN) au rendu de l'enfant pour dériver le statut.

Vue enseignant :
  devoirs de l'enseignant pour sa classe, avec compteurs de rendus.

Tout est recalculé à chaque requête depuis les tables sources.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from app.errors import ErrorCode, NotAuthorized, ValidationFailed
from app.models.child import Child
from app.models.homework import Homework, HomeworkIndividualAssignment, HomeworkSubmission
from app.models.school_class import SchoolClass
from app.models.user import Staff
from app.schemas.homework import (
    VALID_DERIVED_STATUSES,
    AssignedStudent,
    ChildHomeworkList,
    HomeworkDetail,
    HomeworkDetailForChild,
    HomeworkResponse,
    TeacherHomework,
    TeacherHomeworkList,
    VisibleHomework,
)
from app.security import ROLE_PARENT, ROLE_TEACHER, CurrentUser
from app.services import homework_service, roster_service

logger = logging.getLogger(__name__)


def derive_status(due_date: datetime, submission: Optional[HomeworkSubmission], now: datetime) -> str:
    """
    Statut d'un devoir pour un enfant donné, jamais stocké :
    submitted dès qu'un rendu existe (même en retard), overdue si l'échéance
    est passée sans rendu, pending sinon.
    """
    if submission is not None:
        return "submitted"
    if due_date < now:
        return "overdue"
    return "pending"


def _visible_to_child_clause(child: Child):
    """Condition WHERE des devoirs visibles par l'enfant (hors filtre de statut)."""
    individual = and_(
        Homework.assignment_type == "individual",
        Homework.id.in_(
            select(HomeworkIndividualAssignment.homework_id)
            .where(HomeworkIndividualAssignment.child_id == child.id)
        ),
    )
    # Sans classe, seul le chemin individuel reste : comparer à NULL
    # ferait remonter les devoirs orphelins (class_id IS NULL).
    if child.class_id is None:
        return individual
    class_wide = and_(
        Homework.assignment_type == "class",
        Homework.class_id == child.class_id,
    )
    return or_(class_wide, individual)


def _visible_rows(db: Session, child: Child, homework_id: Optional[int] = None):
    stmt = (
        select(Homework, HomeworkSubmission, Staff.name, SchoolClass.name)
        .outerjoin(
            HomeworkSubmission,
            and_(
                HomeworkSubmission.homework_id == Homework.id,
                HomeworkSubmission.child_id == child.id,
            ),
        )
        .outerjoin(Staff, Staff.id == Homework.teacher_id)
        .outerjoin(SchoolClass, SchoolClass.id == Homework.class_id)
        .where(Homework.status == "active", _visible_to_child_clause(child))
        .order_by(Homework.due_date.desc(), Homework.id.desc())
    )
    if homework_id is not None:
        stmt = stmt.where(Homework.id == homework_id)
    return db.execute(stmt).all()


def _to_visible(homework, submission, teacher_name, class_name, now: datetime) -> VisibleHomework:
    return VisibleHomework(
        id=homework.id,
        title=homework.title,
        description=homework.description,
        instructions=homework.instructions,
        due_date=homework.due_date,
        assignment_type=homework.assignment_type,
        content_type=homework.content_type,
        homework_status=homework.status,
        status=derive_status(homework.due_date, submission, now),
        class_id=homework.class_id,
        class_name=class_name,
        teacher_id=homework.teacher_id,
        teacher_name=teacher_name,
        file_url=homework.file_url,
        points=homework.points,
        submission_id=submission.id if submission else None,
        submitted_at=submission.submitted_at if submission else None,
        submission_status=submission.status if submission else None,
        score=submission.score if submission else None,
        grade=submission.grade if submission else None,
        teacher_feedback=submission.feedback if submission else None,
        attachment_url=submission.file_url if submission else None,
    )


def visible_homework_for_child(
    db: Session,
    child: Child,
    now: Optional[datetime] = None,
) -> List[VisibleHomework]:
    """Devoirs visibles par l'enfant, dédoublonnés par ID, échéance la plus lointaine d'abord."""
    now = now or datetime.now()
    seen = set()
    result = []
    for homework, submission, teacher_name, class_name in _visible_rows(db, child):
        if homework.id in seen:
            continue
        seen.add(homework.id)
        result.append(_to_visible(homework, submission, teacher_name, class_name, now))
    return result


def list_homework_for_child(
    db: Session,
    user: CurrentUser,
    child_id: int,
    status: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ChildHomeworkList:
    """
    Vue parent : devoirs de l'enfant + liste des enfants du parent.

    Le filtre status porte sur le statut dérivé (pending, submitted, overdue).
    """
    if status is not None and status not in VALID_DERIVED_STATUSES:
        raise ValidationFailed(f"Filtre de statut invalide. Valeurs acceptées : {VALID_DERIVED_STATUSES}")

    child = roster_service.get_child_for_parent(db, user, child_id)
    homeworks = visible_homework_for_child(db, child, now)
    if status is not None:
        homeworks = [h for h in homeworks if h.status == status]

    logger.info("Enfant %s : %d devoir(s) visible(s) (filtre=%s)", child.id, len(homeworks), status or "aucun")
    return ChildHomeworkList(
        homeworks=homeworks,
        children=roster_service.list_children_for_parent(db, child.parent_id),
    )


def is_visible_to_child(db: Session, homework_id: int, child: Child) -> bool:
    return bool(db.execute(
        select(Homework.id)
        .where(Homework.id == homework_id, _visible_to_child_clause(child))
    ).scalar())


def get_homework_detail(
    db: Session,
    user: CurrentUser,
    homework_id: int,
    child_id: Optional[int] = None,
    now: Optional[datetime] = None,
):
    """
    Détail d'un devoir.
    Parent : child_id obligatoire, le devoir doit figurer dans la liste de l'enfant.
    Enseignant : devoirs qu'il gère (auteur ou titulaire de la classe). Admin : tout.
    """
    if user.role == ROLE_PARENT:
        if child_id is None:
            raise ValidationFailed("child_id est obligatoire.", ErrorCode.VALIDATION_ERROR)
        child = roster_service.get_child_for_parent(db, user, child_id)
        rows = _visible_rows(db, child, homework_id=homework_id)
        if not rows:
            raise NotAuthorized()
        homework, submission, teacher_name, class_name = rows[0]
        return HomeworkDetailForChild(
            homework=_to_visible(homework, submission, teacher_name, class_name, now or datetime.now())
        )

    homework = homework_service.get_owned_homework(db, user, homework_id)
    return HomeworkDetail(homework=HomeworkResponse.model_validate(homework))


# ============================================================
# Vue enseignant
# ============================================================

def list_homework_for_teacher(
    db: Session,
    user: CurrentUser,
    teacher_id: int,
    now: Optional[datetime] = None,
) -> TeacherHomeworkList:
    """
    Devoirs d'un enseignant pour sa classe, avec compteurs.
    Un enseignant sans classe (ou classe introuvable) obtient une liste vide.
    """
    if not user.is_admin and (user.role != ROLE_TEACHER or user.id != teacher_id):
        raise NotAuthorized()

    now = now or datetime.now()
    teacher = db.get(Staff, teacher_id)
    if teacher is None:
        raise NotAuthorized()

    school_class = roster_service.resolve_teacher_class(db, teacher)
    if school_class is None:
        logger.info("Enseignant %s sans classe résolue (className=%r)", teacher_id, teacher.class_name)
        return TeacherHomeworkList(class_name=teacher.class_name, homeworks=[], total_homeworks=0)

    homeworks = db.execute(
        select(Homework)
        .where(Homework.teacher_id == teacher_id, Homework.class_id == school_class.id)
        .order_by(Homework.due_date.desc(), Homework.id.desc())
    ).scalars().all()

    class_child_ids = set(db.execute(
        select(Child.id).where(Child.class_id == school_class.id)
    ).scalars().all())

    homework_ids = [h.id for h in homeworks]
    submissions = _submissions_by_homework(db, homework_ids)
    assignees = _assignees_by_homework(db, homework_ids)

    items = []
    for homework in homeworks:
        subs = submissions.get(homework.id, [])
        if homework.assignment_type == "individual":
            assigned = assignees.get(homework.id, [])
            targets = {s.id for s in assigned}
        else:
            assigned = None
            targets = class_child_ids

        # Rendus des enfants ayant quitté la classe exclus des compteurs
        subs = [s for s in subs if s.child_id in targets]
        total = len(targets)
        submitted = len(subs)
        graded = sum(1 for s in subs if s.status == "graded")
        missing = max(total - submitted, 0)
        overdue = missing if homework.due_date < now else 0

        items.append(TeacherHomework(
            id=homework.id,
            title=homework.title,
            description=homework.description,
            instructions=homework.instructions,
            due_date=homework.due_date,
            assignment_type=homework.assignment_type,
            content_type=homework.content_type,
            status=homework.status,
            class_id=homework.class_id,
            class_name=school_class.name,
            teacher_name=teacher.name,
            file_url=homework.file_url,
            points=homework.points,
            created_at=homework.created_at,
            total_students=total,
            submitted_count=submitted,
            graded_count=graded,
            pending_count=missing - overdue,
            overdue_count=overdue,
            assigned_students=assigned,
        ))

    return TeacherHomeworkList(class_name=school_class.name, homeworks=items, total_homeworks=len(items))


def _submissions_by_homework(db: Session, homework_ids: List[int]) -> Dict[int, list]:
    grouped = defaultdict(list)
    if not homework_ids:
        return grouped
    rows = db.execute(
        select(HomeworkSubmission).where(HomeworkSubmission.homework_id.in_(homework_ids))
    ).scalars().all()
    for submission in rows:
        grouped[submission.homework_id].append(submission)
    return grouped


def _assignees_by_homework(db: Session, homework_ids: List[int]) -> Dict[int, List[AssignedStudent]]:
    grouped = defaultdict(list)
    if not homework_ids:
        return grouped
    rows = db.execute(
        select(HomeworkIndividualAssignment, Child)
        .join(Child, Child.id == HomeworkIndividualAssignment.child_id)
        .where(HomeworkIndividualAssignment.homework_id.in_(homework_ids))
        .order_by(Child.first_name, Child.id)
    ).all()
    for assignment, child in rows:
        grouped[assignment.homework_id].append(AssignedStudent(
            id=child.id,
            first_name=child.first_name,
            last_name=child.last_name,
            assignment_status=assignment.status,
            assigned_at=assignment.assigned_at,
        ))
    return grouped
